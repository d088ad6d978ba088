"""Logging setup for cellseg-spatial commands.

All modules log through ``logging.getLogger(__name__)`` under the
``cellseg_spatial`` package logger; this module attaches console and
timestamped file handlers to it and records run parameters as YAML.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

import yaml

PathLike = Union[str, Path]

PACKAGE_LOGGER = "cellseg_spatial"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_timestamped_log_path(log_path: PathLike) -> Path:
    """Add a timestamp to a log file name.

    Example: count_within.log -> count_within_20251209_080530.log
    """
    log_path = Path(log_path)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    suffix = log_path.suffix or ".log"
    return log_path.parent / f"{log_path.stem}_{timestamp}{suffix}"


def configure_logging(
    level: int = logging.INFO,
    log_path: Optional[PathLike] = None,
    console: bool = True,
) -> Optional[Path]:
    """Attach handlers to the package logger.

    Parameters
    ----------
    level : int
        Logging level for the package logger and its handlers.
    log_path : PathLike, optional
        Base path of a log file; a timestamp is added so earlier runs are
        kept. No file is written when omitted.
    console : bool
        Also log to stderr.

    Returns
    -------
    Path or None
        Actual log file path, if a file handler was added.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    actual_log_path = None
    if log_path is not None:
        actual_log_path = get_timestamped_log_path(log_path)
        actual_log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(actual_log_path, mode="a", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return actual_log_path


def log_yaml(logger: logging.Logger, title: str, record: dict[str, Any]) -> None:
    """Log a dictionary as a YAML block, e.g. the parameters of a run."""
    yaml_text = yaml.safe_dump(record, sort_keys=False, default_flow_style=False)
    logger.info("%s:\n%s---", title, yaml_text)
