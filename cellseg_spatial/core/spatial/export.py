"""Export functions for spatial analysis results.

Provides CSV export with a JSON provenance record.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import json
import logging

import pandas as pd

from cellseg_spatial import __version__
from cellseg_spatial.io.csv import ensure_output_dir, write_dataframe

from .config import WithinConfig

logger = logging.getLogger(__name__)

COUNTS_FILENAME = "count_within.csv"
NEAREST_FILENAME = "nearest_distance.csv"
PROVENANCE_FILENAME = "provenance.json"


def create_provenance(
    command: str,
    inputs: List[Union[str, Path]],
    output_dir: Path,
    result: pd.DataFrame,
    config: Optional[WithinConfig] = None,
    parameters: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Create provenance record for audit trail.

    Parameters
    ----------
    command : str
        Analysis that produced ``result`` (e.g. "count_within")
    inputs : List[str or Path]
        Field files analyzed
    output_dir : Path
        Output directory
    result : pd.DataFrame
        Result table
    config : WithinConfig, optional
        Configuration used
    parameters : Dict, optional
        Additional parameters (e.g. phenotypes for nearest distance)

    Returns
    -------
    Dict[str, Any]
        Provenance record
    """
    provenance = {
        "timestamp": datetime.now().isoformat(),
        "module": "cellseg_spatial.core.spatial",
        "version": __version__,
        "command": command,
        "inputs": {
            "n_fields": len(inputs),
            "fields": [str(p) for p in inputs],
        },
        "outputs": {
            "output_dir": str(output_dir),
            "n_rows": int(len(result)),
            "columns": [str(c) for c in result.columns],
        },
    }
    if config is not None:
        provenance["config"] = config.to_dict()
    if parameters:
        provenance["parameters"] = parameters
    return provenance


def export_provenance(provenance: Dict[str, Any], output_dir: Path) -> Path:
    """Write provenance to ``provenance.json`` in ``output_dir``."""
    path = ensure_output_dir(output_dir) / PROVENANCE_FILENAME
    with open(path, "w") as f:
        json.dump(provenance, f, indent=2, default=str)
    logger.info(f"Exported provenance to {path}")
    return path


def export_counts(
    counts: pd.DataFrame,
    output_dir: Path,
    inputs: List[Union[str, Path]],
    config: Optional[WithinConfig] = None,
) -> Path:
    """Write batch within-radius counts and their provenance.

    Returns
    -------
    Path
        Path of the counts CSV
    """
    output_dir = ensure_output_dir(output_dir)
    path = write_dataframe(counts, output_dir / COUNTS_FILENAME)
    logger.info(f"Exported {len(counts)} rows to {path}")

    provenance = create_provenance("count_within", inputs, output_dir, counts, config=config)
    export_provenance(provenance, output_dir)
    return path


def export_nearest(
    nearest: pd.DataFrame,
    output_dir: Path,
    inputs: List[Union[str, Path]],
    phenotypes: Optional[List[str]] = None,
) -> Path:
    """Write nearest-distance tables and their provenance."""
    output_dir = ensure_output_dir(output_dir)
    path = write_dataframe(nearest, output_dir / NEAREST_FILENAME)
    logger.info(f"Exported {len(nearest)} cells to {path}")

    provenance = create_provenance(
        "nearest_distance",
        inputs,
        output_dir,
        nearest,
        parameters={"phenotypes": phenotypes} if phenotypes else None,
    )
    export_provenance(provenance, output_dir)
    return path
