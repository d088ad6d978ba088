"""Batch spatial analysis across many fields.

Each field file is loaded, gets its own distance matrix, and contributes
rows for every (pair, category, radius) combination. Fields are independent,
so they may be processed in parallel; results are always concatenated in
file order.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from cellseg_spatial.errors import FieldProcessingError, ValidationError
from cellseg_spatial.core.selection import (
    Selector,
    as_selector,
    make_phenotype_rules,
    select_rows,
    selector_label,
)
from cellseg_spatial.io.csv import (
    DEFAULT_FILE_PATTERN,
    list_cell_seg_files,
    read_cell_seg_table,
)

from .distance import PhenotypeSpec, distance_matrix, find_nearest_distance
from .within import WITHIN_COLUMNS, category_mask, count_within_masks, validate_radius

logger = logging.getLogger(__name__)

BATCH_COLUMNS: List[str] = ["source", "pair_from", "pair_to", "category"] + WITHIN_COLUMNS

PathLike = Union[str, Path]
Loader = Callable[[Path], pd.DataFrame]


def resolve_field_paths(
    paths: Union[PathLike, Sequence[PathLike]],
    pattern: str = DEFAULT_FILE_PATTERN,
) -> List[Path]:
    """Turn a directory or an explicit list of files into a list of paths.

    Raises
    ------
    ValidationError
        If the directory holds no matching files or the list is empty
    """
    if isinstance(paths, (str, Path)):
        path = Path(paths)
        if path.is_dir():
            return list_cell_seg_files(path, pattern)
        return [path]

    resolved = [Path(p) for p in paths]
    if not resolved:
        raise ValidationError("No field files given")
    return resolved


def validate_pairs(pairs: Any) -> List[Tuple[Any, Any]]:
    """Check that ``pairs`` is a non-empty list of (from, to) pairs."""
    if not isinstance(pairs, (list, tuple)):
        raise ValidationError(f"pairs must be a list of (from, to) pairs, got {pairs!r}")
    if len(pairs) == 0:
        raise ValidationError("pairs must not be empty: len(pairs) == 0")

    checked = []
    for pair in pairs:
        if isinstance(pair, (str, bytes)) or not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise ValidationError(f"Each pair must be a (from, to) pair, got {pair!r}")
        checked.append((pair[0], pair[1]))
    return checked


def normalize_categories(category: Union[None, str, Iterable[str]]) -> List[Optional[str]]:
    """Categories to loop over; ``[None]`` means no category filter."""
    if category is None:
        return [None]
    if isinstance(category, str):
        return [category]
    categories = list(category)
    return categories if categories else [None]


def _pair_member(item: Any, rules: Mapping[str, Selector]) -> Tuple[str, Selector]:
    """Label and selector for one side of a pair."""
    if isinstance(item, str):
        return item, rules[item]
    selector = as_selector(item)
    return selector_label(selector), selector


def _run_field(func: Callable[..., pd.DataFrame], path: Path, **kwargs) -> pd.DataFrame:
    """Run ``func`` on one field, naming the field in any failure."""
    try:
        return func(path, **kwargs)
    except Exception as e:
        raise FieldProcessingError(str(path), f"{type(e).__name__}: {e}") from e


def _map_fields(
    func: Callable[..., pd.DataFrame],
    paths: List[Path],
    n_jobs: int,
    **kwargs,
) -> List[pd.DataFrame]:
    """Apply ``func`` to every field, returning results in ``paths`` order."""
    n_fields = len(paths)
    if n_jobs == 1 or n_fields == 1:
        results = []
        start_time = time.time()
        for idx, path in enumerate(paths, 1):
            elapsed = time.time() - start_time
            logger.info(f"[{idx}/{n_fields}] {path.name} | elapsed: {elapsed:.0f}s")
            results.append(_run_field(func, path, **kwargs))
        return results

    logger.info(f"Processing {n_fields} fields with {n_jobs} parallel jobs")
    # Threads share the loader and rules; joblib keeps input order
    return Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(_run_field)(func, path, **kwargs) for path in paths
    )


def count_within_field(
    path: Path,
    pairs: List[Tuple[Any, Any]],
    radii: np.ndarray,
    categories: List[Optional[str]],
    rules: Mapping[str, Selector],
    loader: Loader = read_cell_seg_table,
) -> pd.DataFrame:
    """Within-radius counts for every pair and category of one field."""
    table = loader(path)
    dst = distance_matrix(table)

    frames = []
    for from_item, to_item in pairs:
        from_label, from_sel = _pair_member(from_item, rules)
        to_label, to_sel = _pair_member(to_item, rules)
        from_base = select_rows(table, from_sel)
        to_mask = select_rows(table, to_sel)

        for category in categories:
            from_mask = from_base & category_mask(table, category)
            counts = count_within_masks(dst, from_mask, to_mask, radii)
            counts.insert(0, "category", category)
            counts.insert(0, "pair_to", to_label)
            counts.insert(0, "pair_from", from_label)
            counts.insert(0, "source", path.name)
            frames.append(counts)

    logger.debug(f"{path.name}: {len(table)} cells, {sum(len(f) for f in frames)} rows")
    return pd.concat(frames, ignore_index=True)


def count_within_batch(
    paths: Union[PathLike, Sequence[PathLike]],
    pairs: Sequence[Tuple[Any, Any]],
    radius: Any,
    category: Union[None, str, Iterable[str]] = None,
    phenotype_rules: Optional[Mapping[str, Any]] = None,
    n_jobs: int = 1,
    loader: Optional[Loader] = None,
    file_pattern: str = DEFAULT_FILE_PATTERN,
) -> pd.DataFrame:
    """Count cells within radius for many fields, pairs, categories and radii.

    Parameters
    ----------
    paths : PathLike or Sequence[PathLike]
        Directory of field files (matched by ``file_pattern``) or a list of
        field files
    pairs : Sequence[Tuple[Any, Any]]
        (from, to) pairs. Strings are phenotype names resolved through
        ``phenotype_rules``; other values are used as selectors directly.
    radius : float or Sequence[float]
        Radii in microns, each strictly positive
    category : str or Iterable[str], optional
        Tissue categories; without one, no category filter is applied
    phenotype_rules : Mapping[str, Any], optional
        Rules for compound phenotypes named in ``pairs``
    n_jobs : int
        Number of fields processed in parallel
    loader : Callable, optional
        Reads one field file into a cell table (default: ``read_cell_seg_table``)
    file_pattern : str
        Glob pattern for field files when ``paths`` is a directory

    Returns
    -------
    pd.DataFrame
        Columns ``source``, ``pair_from``, ``pair_to``, ``category``,
        ``radius``, ``from_count``, ``to_count``, ``from_with``,
        ``within_mean``; one row per file x pair x category x radius, in
        that order. ``category`` is missing when no category was given.

    Raises
    ------
    ValidationError
        For malformed pairs or radii, checked before any file is read
    ConfigurationError
        If a rule names a phenotype not used in ``pairs``
    FieldProcessingError
        If any field fails; the underlying error is chained
    """
    checked_pairs = validate_pairs(pairs)
    radii = validate_radius(radius)
    categories = normalize_categories(category)
    if n_jobs == 0:
        raise ValidationError("n_jobs must not be 0")

    names = [item for pair in checked_pairs for item in pair if isinstance(item, str)]
    rules = make_phenotype_rules(names, phenotype_rules)
    field_paths = resolve_field_paths(paths, file_pattern)

    logger.info(
        f"count_within_batch: {len(field_paths)} fields, {len(checked_pairs)} pairs, "
        f"{len([c for c in categories if c is not None]) or 'no'} categories, "
        f"radii={radii.tolist()}"
    )

    frames = _map_fields(
        count_within_field,
        field_paths,
        n_jobs,
        pairs=checked_pairs,
        radii=radii,
        categories=categories,
        rules=rules,
        loader=loader or read_cell_seg_table,
    )
    result = pd.concat(frames, ignore_index=True)
    return result[BATCH_COLUMNS]


def nearest_distance_field(
    path: Path,
    phenotypes: PhenotypeSpec = None,
    loader: Loader = read_cell_seg_table,
) -> pd.DataFrame:
    """Cell table of one field with nearest-distance columns appended."""
    table = loader(path)
    nearest = find_nearest_distance(table, phenotypes)
    result = pd.concat([table, nearest], axis=1)
    result.insert(0, "source", path.name)
    return result


def nearest_distance_batch(
    paths: Union[PathLike, Sequence[PathLike]],
    phenotypes: PhenotypeSpec = None,
    n_jobs: int = 1,
    loader: Optional[Loader] = None,
    file_pattern: str = DEFAULT_FILE_PATTERN,
) -> pd.DataFrame:
    """Nearest-distance columns for every cell of many fields.

    Distances are computed within each field only. Returns the concatenated
    cell tables with a leading ``source`` column and the columns added by
    ``find_nearest_distance``.
    """
    if n_jobs == 0:
        raise ValidationError("n_jobs must not be 0")
    field_paths = resolve_field_paths(paths, file_pattern)
    frames = _map_fields(
        nearest_distance_field,
        field_paths,
        n_jobs,
        phenotypes=phenotypes,
        loader=loader or read_cell_seg_table,
    )
    return pd.concat(frames, ignore_index=True)
