"""I/O utilities for cellseg-spatial.

Provides logging setup and cell segmentation table I/O.
"""

from .logging import configure_logging, get_timestamped_log_path, log_yaml
from .csv import (
    clean_column_names,
    ensure_output_dir,
    list_cell_seg_files,
    read_cell_seg_table,
    write_dataframe,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_timestamped_log_path",
    "log_yaml",
    # Tables
    "clean_column_names",
    "ensure_output_dir",
    "list_cell_seg_files",
    "read_cell_seg_table",
    "write_dataframe",
]
