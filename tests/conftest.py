"""Pytest configuration and shared fixtures for cellseg-spatial tests."""

import sys
from pathlib import Path

import pytest
import pandas as pd

# Add package to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tests.fixtures import (
    create_marker_table,
    create_per_marker_table,
    create_random_table,
    create_scenario_table,
    write_cell_seg_file,
)


# ============================================================================
# Cell Table Fixtures
# ============================================================================


@pytest.fixture
def scenario_table() -> pd.DataFrame:
    """10-cell field with phenotypes A (4), B (3) and other (3)."""
    return create_scenario_table()


@pytest.fixture
def marker_table() -> pd.DataFrame:
    """Unified-phenotype table with marker-style phenotype names."""
    return create_marker_table()


@pytest.fixture
def per_marker_table() -> pd.DataFrame:
    """Per-marker table with text phenotype columns."""
    return create_per_marker_table()


@pytest.fixture
def random_table() -> pd.DataFrame:
    """200 randomly placed cells."""
    return create_random_table()


# ============================================================================
# File Fixtures
# ============================================================================


@pytest.fixture
def field_dir(tmp_path: Path) -> Path:
    """Directory with two cell seg exports and one unrelated file.

    field_a is the scenario table; field_b is the scenario table without
    its Stroma cells.
    """
    base = tmp_path / "fields"
    scenario = create_scenario_table()
    write_cell_seg_file(scenario, base / "field_a_cell_seg_data.txt")
    tumor_only = scenario[scenario["Tissue Category"] == "Tumor"].reset_index(drop=True)
    write_cell_seg_file(tumor_only, base / "field_b_cell_seg_data.txt")
    (base / "notes.txt").write_text("not a cell seg table")
    return base
