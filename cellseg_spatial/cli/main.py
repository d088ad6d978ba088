"""Command-line interface for cellseg-spatial.

Provides CLI commands for phenotype parsing, nearest-neighbor distances and
within-radius counts over cell segmentation tables.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click

from cellseg_spatial import __version__
from cellseg_spatial.errors import CellSegError


def setup_logging(
    verbose: bool = False,
    debug: bool = False,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Setup logging for CLI commands."""
    from cellseg_spatial.io.logging import PACKAGE_LOGGER, configure_logging

    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    configure_logging(level=level, log_path=log_file)
    return logging.getLogger(f"{PACKAGE_LOGGER}.cli")


def _split_named(description: str) -> Tuple[str, str]:
    """Split ``NAME=DESCRIPTION``; unnamed descriptions get an empty name."""
    if "=" in description:
        name, _, text = description.partition("=")
        return name.strip(), text
    return "", description


def _nearest_selectors(values: Tuple[str, ...]) -> Dict[str, Any]:
    """Selectors for ``nearest -p`` values.

    Bare labels (``A``, ``Helper T``) select that ``Phenotype`` value;
    anything else goes through the description grammar.
    """
    from cellseg_spatial.core.selection import AnyOf, is_plain_name, parse_phenotypes
    from cellseg_spatial.errors import ValidationError

    selectors: Dict[str, Any] = {}
    for value in values:
        name, text = _split_named(value)
        text = text.strip()
        if is_plain_name(text):
            parsed = {name or text: AnyOf((text,))}
        else:
            parsed = parse_phenotypes([(name, text)])
        for key, selector in parsed.items():
            if key in selectors:
                raise ValidationError(f"Duplicate phenotype name '{key}'")
            selectors[key] = selector
    return selectors


@click.group()
@click.version_option(version=__version__, prog_name="cellseg-spatial")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.option("--log-file", type=click.Path(), default=None,
              help="Also log to this file (a timestamp is added to the name)")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool, log_file: Optional[str]) -> None:
    """cellseg-spatial: phenotype selection and spatial counts for cell seg tables.

    Examples:

        # Show how phenotype descriptions are interpreted
        cellseg-spatial parse "CD3+/CD8+" "Macrophage=CD68+,CD163+"

        # Count CD8+ cells within 10 and 25 microns of tumor cells
        cellseg-spatial count-within fields/ --pair CK+ CD8+ -r 10 -r 25 -o out/

        # Distance from every cell to the nearest cell of each phenotype
        cellseg-spatial nearest fields/ -p CK+ -p CD8+ -o out/
    """
    ctx.ensure_object(dict)
    ctx.obj["logger"] = setup_logging(verbose, debug, log_file)


@cli.command()
@click.argument("descriptions", nargs=-1, required=True)
def parse(descriptions: Tuple[str, ...]) -> None:
    """Parse phenotype DESCRIPTIONS and print the resulting selectors.

    Use NAME=DESCRIPTION to name a phenotype.
    """
    from cellseg_spatial.core.selection import parse_phenotypes

    try:
        selectors = parse_phenotypes([_split_named(d) for d in descriptions])
    except CellSegError as e:
        raise click.ClickException(str(e)) from e

    for name, selector in selectors.items():
        click.echo(f"{name}: {selector!r}")


@cli.command("count-within")
@click.argument("input_path", type=click.Path(exists=True))
@click.option("--pair", "pairs", type=(str, str), multiple=True,
              help="FROM and TO phenotype names (repeatable)")
@click.option("--radius", "-r", "radii", type=float, multiple=True,
              help="Radius in microns (repeatable)")
@click.option("--category", "-c", "categories", multiple=True,
              help="Tissue category (repeatable)")
@click.option("--config", "config_path", type=click.Path(exists=True), default=None,
              help="YAML configuration (pairs, radii, categories, phenotype rules)")
@click.option("--out", "-o", "output_dir", required=True, type=click.Path(),
              help="Output directory")
@click.option("--n-jobs", "-j", type=int, default=None, help="Fields processed in parallel")
@click.pass_context
def count_within(
    ctx: click.Context,
    input_path: str,
    pairs: Tuple[Tuple[str, str], ...],
    radii: Tuple[float, ...],
    categories: Tuple[str, ...],
    config_path: Optional[str],
    output_dir: str,
    n_jobs: Optional[int],
) -> None:
    """Count cells within radius for every field in INPUT_PATH.

    INPUT_PATH is a directory of cell seg tables or a single table.
    Command-line pairs, radii and categories replace those in --config.
    """
    logger = ctx.obj["logger"]

    from cellseg_spatial.core.spatial import (
        WithinConfig,
        count_within_batch,
        export_counts,
        resolve_field_paths,
    )
    from cellseg_spatial.io.logging import log_yaml

    try:
        config = WithinConfig.from_yaml(Path(config_path)) if config_path else WithinConfig()
        if pairs:
            config.pairs = list(pairs)
        if radii:
            config.radii = list(radii)
        if categories:
            config.categories = list(categories)
        if n_jobs is not None:
            config.input.n_jobs = n_jobs

        log_yaml(logger, "count-within parameters", config.to_dict())

        fields = resolve_field_paths(input_path, config.input.file_pattern)
        counts = count_within_batch(
            fields,
            pairs=config.pairs,
            radius=config.radii,
            category=config.categories or None,
            phenotype_rules=config.build_rules(),
            n_jobs=config.input.n_jobs,
        )
        path = export_counts(counts, Path(output_dir), fields, config=config)
    except CellSegError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Counted {len(counts)} rows from {len(fields)} fields")
    click.echo(f"Output saved to: {path}")


@cli.command()
@click.argument("input_path", type=click.Path(exists=True))
@click.option("--phenotype", "-p", "phenotypes", multiple=True,
              help="Phenotype description, optionally NAME=DESCRIPTION (repeatable). "
                   "Default: every value of the Phenotype column.")
@click.option("--pattern", default=None, help="Glob pattern for field files")
@click.option("--out", "-o", "output_dir", required=True, type=click.Path(),
              help="Output directory")
@click.option("--n-jobs", "-j", type=int, default=1, help="Fields processed in parallel")
@click.pass_context
def nearest(
    ctx: click.Context,
    input_path: str,
    phenotypes: Tuple[str, ...],
    pattern: Optional[str],
    output_dir: str,
    n_jobs: int,
) -> None:
    """Distance from each cell to the nearest cell of each phenotype."""
    logger = ctx.obj["logger"]

    from cellseg_spatial.core.spatial import (
        export_nearest,
        nearest_distance_batch,
        resolve_field_paths,
    )
    from cellseg_spatial.io.csv import DEFAULT_FILE_PATTERN

    try:
        selectors = _nearest_selectors(phenotypes) if phenotypes else None
        fields = resolve_field_paths(input_path, pattern or DEFAULT_FILE_PATTERN)
        logger.info(f"Nearest distances for {len(fields)} fields")
        result = nearest_distance_batch(fields, selectors, n_jobs=n_jobs)
        path = export_nearest(
            result,
            Path(output_dir),
            fields,
            phenotypes=list(selectors) if selectors else None,
        )
    except CellSegError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Processed {len(result)} cells from {len(fields)} fields")
    click.echo(f"Output saved to: {path}")


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
