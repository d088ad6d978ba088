"""cellseg-spatial: phenotype selection and spatial counting for cell segmentation tables.

This package provides tools for:
- Parsing human-readable phenotype descriptions into selectors
- Selecting cells (rows) by phenotype and expression criteria
- Nearest-neighbor distances between phenotypes
- Within-radius co-occurrence counts, per field and across batches

Example usage:
    >>> from cellseg_spatial.core.selection import parse_phenotypes, select_rows
    >>> from cellseg_spatial.core.spatial import count_within
    >>>
    >>> selectors = parse_phenotypes("CD3+/CD8+", Macrophage="CD68+,CD163+")
    >>> mask = select_rows(table, selectors["CD3+/CD8+"])
    >>> counts = count_within(table, "CK+", selectors["Macrophage"], [10, 25])
"""

__version__ = "0.1.0"
