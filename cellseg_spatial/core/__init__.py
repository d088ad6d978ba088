"""Core analysis modules: phenotype selection and spatial counting."""
