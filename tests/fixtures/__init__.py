"""Test fixtures for cellseg-spatial.

Provides cell table generators and test utilities.
"""

from .cell_tables import (
    PDL1_COLUMN,
    PDL1_EXPR,
    WITHIN_CONFIG_YAML,
    create_marker_table,
    create_per_marker_table,
    create_random_table,
    create_scenario_table,
    write_cell_seg_file,
)

__all__ = [
    "PDL1_COLUMN",
    "PDL1_EXPR",
    "WITHIN_CONFIG_YAML",
    "create_marker_table",
    "create_per_marker_table",
    "create_random_table",
    "create_scenario_table",
    "write_cell_seg_file",
]
