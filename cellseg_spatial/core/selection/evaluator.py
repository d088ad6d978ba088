"""Evaluate selectors against a cell table.

``select_rows`` turns a selector (structured or raw) into a boolean mask with
one entry per row of the table. Phenotype names are matched against the
unified ``Phenotype`` column when present, otherwise against per-marker
``Phenotype <marker>`` columns.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
import pandas as pd

from cellseg_spatial.errors import EvalError, SchemaError, SelectorTypeError

from .columns import PHENOTYPE_COLUMN, marker_column, split_marker
from .selectors import AnyOf, Predicate, Selector, SelectorKind, as_selector

logger = logging.getLogger(__name__)


def _evaluate_per_marker(table: pd.DataFrame, phenotype: str) -> np.ndarray:
    """Mask for one phenotype in a per-marker table."""
    _, sign = split_marker(phenotype)
    column = marker_column(phenotype)
    if column not in table.columns:
        raise SchemaError(f"No '{column}' column in data.")

    values = table[column]
    if pd.api.types.is_bool_dtype(values):
        positive = values.to_numpy(dtype=bool)
        return positive if sign == "+" else ~positive
    return (values == phenotype).to_numpy(dtype=bool)


def _evaluate_any_of(table: pd.DataFrame, selector: AnyOf) -> np.ndarray:
    if PHENOTYPE_COLUMN in table.columns:
        return table[PHENOTYPE_COLUMN].isin(selector.names).to_numpy(dtype=bool)

    mask = np.zeros(len(table), dtype=bool)
    for phenotype in selector.names:
        mask |= _evaluate_per_marker(table, phenotype)
    return mask


def _evaluate_predicate(table: pd.DataFrame, selector: Predicate) -> np.ndarray:
    try:
        if isinstance(selector.expression, str):
            result = table.eval(selector.expression, engine="python")
        else:
            result = selector.expression(table)
    except (NameError, KeyError) as e:
        # pandas reports unknown names in eval() as UndefinedVariableError (a NameError)
        raise EvalError(
            f"Cannot evaluate '{selector.label}': missing column ({e})"
        ) from e

    mask = np.asarray(result)
    if mask.shape != (len(table),):
        raise EvalError(
            f"Predicate '{selector.label}' returned shape {mask.shape}, "
            f"expected ({len(table)},)"
        )
    if mask.dtype != bool:
        if isinstance(result, pd.Series) and result.hasnans:
            raise EvalError(f"Predicate '{selector.label}' returned missing values")
        mask = mask.astype(bool)
    return mask


def evaluate(table: pd.DataFrame, selector: Selector) -> np.ndarray:
    """Evaluate one structured selector.

    Parameters
    ----------
    table : pd.DataFrame
        Cell table
    selector : Selector
        Structured selector (see ``as_selector``)

    Returns
    -------
    np.ndarray
        Boolean mask of length ``len(table)``
    """
    kind = selector.kind
    if kind is SelectorKind.SELECT_ALL:
        return np.ones(len(table), dtype=bool)
    if kind is SelectorKind.ANY_OF:
        return _evaluate_any_of(table, selector)
    if kind is SelectorKind.ALL_OF:
        mask = np.ones(len(table), dtype=bool)
        for part in selector.parts:
            mask &= evaluate(table, part)
        return mask
    if kind is SelectorKind.PREDICATE:
        return _evaluate_predicate(table, selector)
    raise SelectorTypeError(f"Unknown selector kind: {kind}")


def select_rows(table: pd.DataFrame, selector: Any) -> np.ndarray:
    """Select rows of a cell table by phenotype or expression.

    Parameters
    ----------
    table : pd.DataFrame
        Cell table
    selector : Any
        A structured selector or any raw form accepted by ``as_selector``:
        a phenotype name, a tuple of names (any of), a list of selectors
        (all of), a callable or ``Predicate`` over columns, or ``None`` to
        select all rows. A bare value is treated as a one-element list.

    Returns
    -------
    np.ndarray
        Boolean mask, one entry per row

    Raises
    ------
    SchemaError
        If a required phenotype column is missing
    SelectorTypeError
        If the table is not a DataFrame or the selector list is empty
    EvalError
        If a predicate cannot be evaluated

    Examples
    --------
    >>> # PDL1-positive tumor cells
    >>> mask = select_rows(table, ["CK+", Predicate("`Entire Cell PDL1 Mean` > 3")])
    >>> # T cells, either CD8+ or FoxP3+
    >>> mask = select_rows(table, ("CD8+", "FoxP3+"))
    """
    if not isinstance(table, pd.DataFrame):
        raise SelectorTypeError(f"Expected a DataFrame, got {type(table).__name__}")

    fragments = selector if isinstance(selector, list) else [selector]
    if not fragments:
        raise SelectorTypeError("Empty selector list")

    # Every fragment is evaluated, even after the mask is empty
    result = np.ones(len(table), dtype=bool)
    for fragment in fragments:
        result &= evaluate(table, as_selector(fragment))

    logger.debug(f"Selected {int(result.sum())} of {len(table)} rows")
    return result
