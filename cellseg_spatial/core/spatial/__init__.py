"""Spatial analysis of cell segmentation tables.

This module provides:
- Pairwise distance matrices for a single field
- Nearest-neighbor distances from every cell to each phenotype
- Within-radius co-occurrence counts between two populations
- Batch counting across many fields, pairs, categories and radii

Example Usage
-------------
Single field:

    >>> from cellseg_spatial.core.spatial import count_within, distance_matrix
    >>> dst = distance_matrix(table)
    >>> counts = count_within(table, "CK+", "CD8+", [15, 30], dst=dst)

Many fields:

    >>> from cellseg_spatial.core.spatial import count_within_batch
    >>> counts = count_within_batch(
    ...     "fields/", pairs=[("CK+", "CD8+")], radius=[10, 25],
    ...     category=["Tumor", "Stroma"])
"""

# Configuration
from .config import InputConfig, WithinConfig, rule_from_config

# Distances
from .distance import (
    cell_coordinates,
    distance_matrix,
    find_nearest_distance,
    resolve_phenotypes,
    self_match_mask,
    subset_distance_matrix,
)

# Within-radius counts
from .within import (
    WITHIN_COLUMNS,
    category_mask,
    count_within,
    count_within_masks,
    validate_radius,
)

# Batch
from .batch import (
    BATCH_COLUMNS,
    count_within_batch,
    count_within_field,
    nearest_distance_batch,
    nearest_distance_field,
    resolve_field_paths,
    validate_pairs,
)

# Export
from .export import (
    COUNTS_FILENAME,
    NEAREST_FILENAME,
    PROVENANCE_FILENAME,
    create_provenance,
    export_counts,
    export_nearest,
    export_provenance,
)

__all__ = [
    # Config
    "InputConfig",
    "WithinConfig",
    "rule_from_config",
    # Distances
    "cell_coordinates",
    "distance_matrix",
    "find_nearest_distance",
    "resolve_phenotypes",
    "self_match_mask",
    "subset_distance_matrix",
    # Within
    "WITHIN_COLUMNS",
    "category_mask",
    "count_within",
    "count_within_masks",
    "validate_radius",
    # Batch
    "BATCH_COLUMNS",
    "count_within_batch",
    "count_within_field",
    "nearest_distance_batch",
    "nearest_distance_field",
    "resolve_field_paths",
    "validate_pairs",
    # Export
    "COUNTS_FILENAME",
    "NEAREST_FILENAME",
    "PROVENANCE_FILENAME",
    "create_provenance",
    "export_counts",
    "export_nearest",
    "export_provenance",
]
