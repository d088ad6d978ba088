"""Reading and writing cell segmentation tables.

inForm exports one tab-delimited ``*_cell_seg_data.txt`` table per field.
Column headers carry unit suffixes such as ``(Normalized Counts, Total
Weighting)`` or ``(microns)``; ``read_cell_seg_table`` removes them so that
columns can be addressed by plain names (``Cell X Position``,
``Entire Cell PDL1 (Opal 520) Mean``).
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional, Union

import pandas as pd

from cellseg_spatial.errors import SchemaError, ValidationError
from cellseg_spatial.core.selection import X_COLUMN, Y_COLUMN

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

DEFAULT_FILE_PATTERN = "*_cell_seg_data.txt"

# Unit suffixes stripped from column headers
UNIT_SUFFIXES = re.compile(
    r"\s+\((?:Normalized Counts, Total Weighting|Percent|percent|microns|pixels"
    r"|square microns|sq microns|Total Weighting)\)$"
)


def ensure_output_dir(path: PathLike) -> Path:
    """Create the directory at path if it does not exist and return it."""
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def clean_column_names(columns: Iterable[str]) -> List[str]:
    """Strip unit suffixes and surrounding whitespace from column names.

    Examples
    --------
    >>> clean_column_names(["Cell X Position (microns)",
    ...                     "Entire Cell PDL1 (Opal 520) Mean (Normalized Counts, Total Weighting)"])
    ['Cell X Position', 'Entire Cell PDL1 (Opal 520) Mean']
    """
    return [UNIT_SUFFIXES.sub("", str(col).strip()) for col in columns]


def read_cell_seg_table(
    path: PathLike,
    pixels_per_micron: Optional[float] = None,
) -> pd.DataFrame:
    """Load one field's cell segmentation table.

    Parameters
    ----------
    path : PathLike
        Tab-delimited table (``.csv`` files are read comma-delimited)
    pixels_per_micron : float, optional
        If given, cell positions are in pixels and are converted to microns

    Returns
    -------
    pd.DataFrame
        Cell table with cleaned column names

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    SchemaError
        If cell position columns are missing
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Cell seg table not found: {path}")

    sep = "," if path.suffix.lower() == ".csv" else "\t"
    df = pd.read_csv(path, sep=sep)
    df.columns = clean_column_names(df.columns)

    missing = [c for c in (X_COLUMN, Y_COLUMN) if c not in df.columns]
    if missing:
        raise SchemaError(f"{path.name} is missing cell position columns: {missing}")

    if pixels_per_micron is not None:
        if pixels_per_micron <= 0:
            raise ValidationError(f"pixels_per_micron must be > 0, got {pixels_per_micron}")
        df[X_COLUMN] = df[X_COLUMN] / pixels_per_micron
        df[Y_COLUMN] = df[Y_COLUMN] / pixels_per_micron

    logger.debug(f"Loaded {path.name}: {len(df)} cells, {len(df.columns)} columns")
    return df


def list_cell_seg_files(
    directory: PathLike,
    pattern: str = DEFAULT_FILE_PATTERN,
) -> List[Path]:
    """List cell seg tables in a directory, sorted by name.

    Raises
    ------
    ValidationError
        If ``directory`` is not a directory or holds no matching files
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise ValidationError(f"Not a directory: {directory}")
    files = sorted(p for p in directory.glob(pattern) if p.is_file())
    if not files:
        raise ValidationError(f"No files matching '{pattern}' in {directory}")
    return files


def write_dataframe(df: pd.DataFrame, path: PathLike, *, index: bool = False) -> Path:
    """Write a DataFrame as CSV, creating the parent directory."""
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=index)
    return output_path
