"""Within-radius co-occurrence counts between two cell populations.

For a "from" population and a "to" population, ``count_within`` reports how
many from-cells have at least one to-cell within a radius and the mean
number of to-cells within that radius. The measure is asymmetric: swapping
from and to generally changes ``from_with`` and ``within_mean``.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from cellseg_spatial.errors import SchemaError, ValidationError
from cellseg_spatial.core.selection import CATEGORY_COLUMN, select_rows

from .distance import (
    check_distance_matrix,
    distance_matrix,
    self_match_mask,
    subset_distance_matrix,
)

logger = logging.getLogger(__name__)

WITHIN_COLUMNS: List[str] = [
    "radius",
    "from_count",
    "to_count",
    "from_with",
    "within_mean",
]

Radius = Union[float, Sequence[float], np.ndarray]


def validate_radius(radius: Radius) -> np.ndarray:
    """Check that ``radius`` is a non-empty collection of positive numbers.

    Parameters
    ----------
    radius : float or Sequence[float]
        One radius or several

    Returns
    -------
    np.ndarray
        1-D float array of radii

    Raises
    ------
    ValidationError
        If no radius is given, or if any radius is not strictly positive
    """
    try:
        radii = np.atleast_1d(np.asarray(radius, dtype=np.float64))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"radius must be numeric: {radius!r}") from e
    if radii.ndim != 1:
        raise ValidationError(f"radius must be a number or a flat list, got {radius!r}")
    if len(radii) == 0:
        raise ValidationError("radius must not be empty: len(radius) == 0")
    if not np.all(radii > 0):
        raise ValidationError(f"every radius must satisfy radius > 0, got {radii.tolist()}")
    return radii


def category_mask(table: pd.DataFrame, category: Optional[str]) -> np.ndarray:
    """Mask of cells in ``category``; all cells when ``category`` is None."""
    if category is None:
        return np.ones(len(table), dtype=bool)
    if CATEGORY_COLUMN not in table.columns:
        raise SchemaError(f"No '{CATEGORY_COLUMN}' column in data.")
    return (table[CATEGORY_COLUMN] == category).to_numpy(dtype=bool)


def count_within_masks(
    dst: np.ndarray,
    from_mask: np.ndarray,
    to_mask: np.ndarray,
    radii: np.ndarray,
) -> pd.DataFrame:
    """Count to-cells within each radius of from-cells, given precomputed masks.

    A cell never counts as its own neighbor, even when it belongs to both
    populations.

    Parameters
    ----------
    dst : np.ndarray
        Distance matrix of the field
    from_mask : np.ndarray
        Boolean mask of from-cells
    to_mask : np.ndarray
        Boolean mask of to-cells
    radii : np.ndarray
        Validated radii (see ``validate_radius``)

    Returns
    -------
    pd.DataFrame
        One row per radius with ``WITHIN_COLUMNS``
    """
    from_count = int(from_mask.sum())
    to_count = int(to_mask.sum())

    block = None
    if from_count > 0 and to_count > 0:
        block = subset_distance_matrix(dst, from_mask, to_mask)
        block[self_match_mask(from_mask, to_mask)] = np.inf

    rows = []
    for rad in radii:
        if block is None:
            from_with, within_mean = 0, 0.0
        else:
            within = (block <= rad).sum(axis=1)
            from_with = int((within > 0).sum())
            within_mean = float(within.mean())
        rows.append({
            "radius": float(rad),
            "from_count": from_count,
            "to_count": to_count,
            "from_with": from_with,
            "within_mean": within_mean,
        })

    return pd.DataFrame(rows, columns=WITHIN_COLUMNS)


def count_within(
    table: pd.DataFrame,
    from_sel: Any,
    to_sel: Any,
    radius: Radius,
    category: Optional[str] = None,
    dst: Optional[np.ndarray] = None,
) -> pd.DataFrame:
    """Count cells of one population within a radius of another.

    For each radius:

    - ``from_count``: number of from-cells (in ``category``, if given)
    - ``to_count``: number of to-cells
    - ``from_with``: from-cells having at least one to-cell within the radius
    - ``within_mean``: mean number of to-cells within the radius of a
      from-cell, 0 when either population is empty

    The category filter applies to from-cells only; to-cells outside the
    category still count as neighbors of in-category from-cells.

    Parameters
    ----------
    table : pd.DataFrame
        Cell table for a single field
    from_sel : Any
        Selector for from-cells (structured or raw, see ``select_rows``)
    to_sel : Any
        Selector for to-cells
    radius : float or Sequence[float]
        One or more radii in microns, each strictly positive
    category : str, optional
        Tissue category restricting the from-cells
    dst : np.ndarray, optional
        Precomputed distance matrix for ``table``; reuse it across calls on
        the same field to avoid recomputing it.

    Returns
    -------
    pd.DataFrame
        One row per radius with columns ``radius``, ``from_count``,
        ``to_count``, ``from_with``, ``within_mean``

    Raises
    ------
    ValidationError
        If ``radius`` is empty or not strictly positive

    Examples
    --------
    >>> dst = distance_matrix(table)
    >>> count_within(table, "CK+", ("CD8+", "FoxP3+"), [15, 30], "Tumor", dst=dst)
    """
    radii = validate_radius(radius)

    if dst is None:
        dst = distance_matrix(table)
    else:
        dst = check_distance_matrix(dst, len(table))

    from_mask = select_rows(table, from_sel) & category_mask(table, category)
    to_mask = select_rows(table, to_sel)

    logger.debug(
        f"count_within: {int(from_mask.sum())} from-cells, "
        f"{int(to_mask.sum())} to-cells, radii={radii.tolist()}"
    )
    return count_within_masks(dst, from_mask, to_mask, radii)
