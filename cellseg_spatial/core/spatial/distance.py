"""Pairwise distances and nearest-neighbor queries for one field.

A distance matrix covers every cell of a single field; coordinates of
different fields are not comparable, so a matrix must never be built over
merged tables.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Union

import numpy as np
import pandas as pd
from scipy.spatial.distance import pdist, squareform

from cellseg_spatial.errors import SchemaError, ValidationError
from cellseg_spatial.core.selection import (
    CELL_ID_COLUMN,
    PHENOTYPE_COLUMN,
    X_COLUMN,
    Y_COLUMN,
    Selector,
    as_selector,
    cell_id_column,
    distance_column,
    select_rows,
)

logger = logging.getLogger(__name__)

PhenotypeSpec = Union[Mapping[str, Any], Iterable[Any], None]


def cell_coordinates(table: pd.DataFrame) -> np.ndarray:
    """Return the ``(n_cells, 2)`` array of cell centroids."""
    missing = [c for c in (X_COLUMN, Y_COLUMN) if c not in table.columns]
    if missing:
        raise SchemaError(f"Cell table missing coordinate columns: {missing}")
    return table[[X_COLUMN, Y_COLUMN]].to_numpy(dtype=np.float64)


def distance_matrix(table: pd.DataFrame) -> np.ndarray:
    """Compute the Euclidean distance between every pair of cells.

    Parameters
    ----------
    table : pd.DataFrame
        Cell table for a single field

    Returns
    -------
    np.ndarray
        Symmetric ``(n_cells, n_cells)`` matrix with zeros on the diagonal
    """
    coords = cell_coordinates(table)
    if len(coords) < 2:
        dst = np.zeros((len(coords), len(coords)), dtype=np.float64)
    else:
        dst = squareform(pdist(coords, metric="euclidean"))
    dst.flags.writeable = False
    return dst


def check_distance_matrix(dst: np.ndarray, n_cells: int) -> np.ndarray:
    """Validate that a caller-supplied matrix matches the table."""
    dst = np.asarray(dst)
    if dst.shape != (n_cells, n_cells):
        raise ValidationError(
            f"Distance matrix shape {dst.shape} does not match {n_cells} cells"
        )
    return dst


def subset_distance_matrix(
    dst: np.ndarray,
    row_mask: np.ndarray,
    col_mask: np.ndarray,
) -> np.ndarray:
    """Return the block of ``dst`` for selected rows and columns.

    Cells selected by both masks keep their zero self-distance; callers that
    need to exclude self-matches use ``self_match_mask``.
    """
    return dst[np.ix_(np.flatnonzero(row_mask), np.flatnonzero(col_mask))]


def self_match_mask(row_mask: np.ndarray, col_mask: np.ndarray) -> np.ndarray:
    """Boolean block marking where a row cell and a column cell are the same cell."""
    rows = np.flatnonzero(row_mask)
    cols = np.flatnonzero(col_mask)
    return rows[:, None] == cols[None, :]


def resolve_phenotypes(
    table: pd.DataFrame,
    phenotypes: PhenotypeSpec = None,
) -> Dict[str, Selector]:
    """Normalize a phenotype argument into a name -> selector mapping.

    ``None`` means every distinct value of the ``Phenotype`` column. A
    mapping is used as is; other iterables are named by their string value.
    """
    if phenotypes is None:
        if PHENOTYPE_COLUMN not in table.columns:
            raise SchemaError(
                f"No '{PHENOTYPE_COLUMN}' column; phenotypes must be given explicitly"
            )
        names = sorted(table[PHENOTYPE_COLUMN].dropna().astype(str).unique())
        return {name: as_selector(name) for name in names}

    if isinstance(phenotypes, Mapping):
        return {name: as_selector(sel) for name, sel in phenotypes.items()}

    if isinstance(phenotypes, str):
        phenotypes = [phenotypes]

    resolved: Dict[str, Selector] = {}
    for item in phenotypes:
        if not isinstance(item, str):
            raise ValidationError(
                f"Unnamed phenotype selector {item!r}; pass a mapping of name to selector"
            )
        resolved[item] = as_selector(item)
    return resolved


def find_nearest_distance(
    table: pd.DataFrame,
    phenotypes: PhenotypeSpec = None,
    dst: Optional[np.ndarray] = None,
) -> pd.DataFrame:
    """Find the distance from each cell to the nearest other cell of each phenotype.

    Parameters
    ----------
    table : pd.DataFrame
        Cell table for a single field
    phenotypes : Mapping[str, Any] or Iterable[str], optional
        Phenotypes to measure against. Defaults to every value of the
        ``Phenotype`` column.
    dst : np.ndarray, optional
        Precomputed distance matrix for ``table``

    Returns
    -------
    pd.DataFrame
        One row per input row (same index), with a ``Distance to <name>``
        column per phenotype and, when the table has ``Cell ID``, a
        ``Cell ID <name>`` column naming the nearest cell. Values are
        missing where no other cell of the phenotype exists.
    """
    selectors = resolve_phenotypes(table, phenotypes)
    n_cells = len(table)
    dst = distance_matrix(table) if dst is None else check_distance_matrix(dst, n_cells)
    has_ids = CELL_ID_COLUMN in table.columns

    columns: Dict[str, Any] = {}
    for name, selector in selectors.items():
        mask = select_rows(table, selector)
        distances = np.full(n_cells, np.nan)
        nearest_ids = np.full(n_cells, None, dtype=object)

        if mask.any():
            every_cell = np.ones(n_cells, dtype=bool)
            block = subset_distance_matrix(dst, every_cell, mask)
            block[self_match_mask(every_cell, mask)] = np.inf
            nearest = block.argmin(axis=1)
            nearest_dist = block[np.arange(n_cells), nearest]
            found = np.isfinite(nearest_dist)
            distances[found] = nearest_dist[found]
            if has_ids:
                candidate_ids = table[CELL_ID_COLUMN].to_numpy()[np.flatnonzero(mask)]
                nearest_ids[found] = candidate_ids[nearest[found]]

        logger.debug(f"Nearest {name}: {int(mask.sum())} candidate cells")
        columns[distance_column(name)] = distances
        if has_ids:
            columns[cell_id_column(name)] = nearest_ids

    return pd.DataFrame(columns, index=table.index)
