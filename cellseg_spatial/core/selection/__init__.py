"""Phenotype selection for cell segmentation tables.

This module provides:
- Selector types (any-of, all-of, predicate, select-all)
- A parser for human-readable phenotype descriptions
- Row selection against unified or per-marker phenotype tables
- Phenotype rule sets for batch analyses

Example Usage
-------------
    >>> from cellseg_spatial.core.selection import parse_phenotypes, select_rows
    >>> selectors = parse_phenotypes("CD3+/CD8+", Macrophage="CD68+,CD163+")
    >>> cytotoxic = table[select_rows(table, selectors["CD3+/CD8+"])]
"""

from .columns import (
    CATEGORY_COLUMN,
    CELL_ID_COLUMN,
    PHENOTYPE_COLUMN,
    X_COLUMN,
    Y_COLUMN,
    cell_id_column,
    distance_column,
    marker_column,
)
from .selectors import (
    SELECT_ALL,
    AllOf,
    AnyOf,
    Predicate,
    SelectAll,
    Selector,
    SelectorKind,
    as_selector,
    is_selector,
    selector_label,
)
from .parser import is_plain_name, parse_phenotype, parse_phenotypes, split_and_trim
from .evaluator import evaluate, select_rows
from .rules import make_phenotype_rules

__all__ = [
    # Columns
    "CATEGORY_COLUMN",
    "CELL_ID_COLUMN",
    "PHENOTYPE_COLUMN",
    "X_COLUMN",
    "Y_COLUMN",
    "cell_id_column",
    "distance_column",
    "marker_column",
    # Selectors
    "SELECT_ALL",
    "AllOf",
    "AnyOf",
    "Predicate",
    "SelectAll",
    "Selector",
    "SelectorKind",
    "as_selector",
    "is_selector",
    "selector_label",
    # Parser
    "is_plain_name",
    "parse_phenotype",
    "parse_phenotypes",
    "split_and_trim",
    # Evaluator
    "evaluate",
    "select_rows",
    # Rules
    "make_phenotype_rules",
]
