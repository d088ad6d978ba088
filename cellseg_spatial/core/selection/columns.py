"""Column-name conventions shared by the loader and the selector evaluator.

Cell tables follow the inForm export layout after column cleanup:

- ``Cell X Position`` / ``Cell Y Position``: centroid in microns
- ``Phenotype``: one phenotype label per cell (unified schema), or
- ``Phenotype <marker>``: one column per marker (per-marker schema)
- ``Tissue Category``: optional region label
- ``Cell ID``: optional cell identifier
"""

from __future__ import annotations

from cellseg_spatial.errors import SchemaError

X_COLUMN = "Cell X Position"
Y_COLUMN = "Cell Y Position"
PHENOTYPE_COLUMN = "Phenotype"
CATEGORY_COLUMN = "Tissue Category"
CELL_ID_COLUMN = "Cell ID"

POSITIVE = "+"
NEGATIVE = "-"


def has_sign(phenotype: str) -> bool:
    """Return True if a phenotype name ends with ``+`` or ``-``."""
    return phenotype.endswith((POSITIVE, NEGATIVE))


def split_marker(phenotype: str) -> tuple[str, str]:
    """Split a per-marker phenotype into ``(marker, sign)``.

    Examples
    --------
    >>> split_marker("CD8+")
    ('CD8', '+')
    >>> split_marker("PDL1 -")
    ('PDL1', '-')
    """
    if not has_sign(phenotype):
        raise SchemaError(f"{phenotype} is not a valid per-marker phenotype name.")
    return phenotype[:-1].strip(), phenotype[-1]


def marker_column(phenotype: str) -> str:
    """Return the per-marker column holding the status of ``phenotype``.

    ``"CD8+"`` and ``"CD8-"`` both live in ``"Phenotype CD8"``.
    """
    marker, _ = split_marker(phenotype)
    return f"{PHENOTYPE_COLUMN} {marker}"


def distance_column(name: str) -> str:
    """Nearest-distance output column for phenotype ``name``."""
    return f"Distance to {name}"


def cell_id_column(name: str) -> str:
    """Nearest-cell-ID output column for phenotype ``name``."""
    return f"{CELL_ID_COLUMN} {name}"
