"""Configuration for within-radius batch analysis.

Provides dataclasses for configuring:
- Input discovery (file pattern, parallel jobs)
- Phenotype pairs, radii and tissue categories
- Phenotype rules for compound phenotypes

Example YAML::

    version: "1.0"
    input:
      file_pattern: "*_cell_seg_data.txt"
      n_jobs: 4
    pairs:
      - [CK+, CD8+]
      - [CK+ PDL1+, CD68+]
    radii: [10, 25]
    categories: [Tumor, Stroma]
    phenotype_rules:
      CK+ PDL1+:
        - CK+
        - expr: "`Entire Cell PDL1 (Opal 520) Mean` > 3"
      Macrophage: "CD68+,CD163+"
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Tuple
import logging

import yaml

from cellseg_spatial.errors import ConfigurationError
from cellseg_spatial.io.csv import DEFAULT_FILE_PATTERN
from cellseg_spatial.core.selection import (
    Predicate,
    Selector,
    as_selector,
    parse_phenotype,
)

logger = logging.getLogger(__name__)


def rule_from_config(name: str, value: Any) -> Selector:
    """Build a selector from a YAML rule value.

    A string is parsed as a phenotype description. A list is a conjunction
    whose string items are phenotype names and whose ``{expr: ...}`` items
    are predicates.
    """
    if isinstance(value, str):
        return parse_phenotype(value.strip())

    if isinstance(value, list) and value:
        parts: List[Any] = []
        for item in value:
            if isinstance(item, str):
                parts.append(item.strip())
            elif isinstance(item, list) and all(isinstance(i, str) for i in item):
                parts.append(tuple(item))
            elif isinstance(item, dict) and "expr" in item:
                parts.append(Predicate(str(item["expr"]), label=item.get("label", "")))
            else:
                raise ConfigurationError(
                    f"Rule '{name}': unsupported item {item!r} "
                    "(expected a phenotype name, a list of names or {expr: ...})"
                )
        return as_selector(parts)

    raise ConfigurationError(f"Rule '{name}': unsupported value {value!r}")


def _to_floats(values: List[Any]) -> List[float]:
    """Convert configured radii to floats."""
    radii = []
    for value in values:
        if isinstance(value, bool):
            raise ConfigurationError(f"radii must be numbers, got {value!r}")
        try:
            radii.append(float(value))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"radii must be numbers, got {value!r}") from e
    return radii


@dataclass
class InputConfig:
    """Configuration for locating and processing field files.

    Attributes
    ----------
    file_pattern : str
        Glob pattern for field files inside an input directory
    n_jobs : int
        Number of fields processed in parallel (1 = sequential)
    """

    file_pattern: str = DEFAULT_FILE_PATTERN
    n_jobs: int = 1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InputConfig":
        """Create InputConfig from dictionary."""
        if not isinstance(data, dict):
            raise ConfigurationError(f"input must be a mapping, got {data!r}")
        file_pattern = data.get("file_pattern", DEFAULT_FILE_PATTERN)
        if not isinstance(file_pattern, str):
            raise ConfigurationError(f"input.file_pattern must be a string, got {file_pattern!r}")
        n_jobs = data.get("n_jobs", 1)
        if isinstance(n_jobs, bool) or not isinstance(n_jobs, int):
            raise ConfigurationError(f"input.n_jobs must be an integer, got {n_jobs!r}")
        return cls(file_pattern=file_pattern, n_jobs=n_jobs)


@dataclass
class WithinConfig:
    """Main configuration for within-radius batch analysis.

    Attributes
    ----------
    version : str
        Configuration version
    description : str
        Optional description
    pairs : List[Tuple[str, str]]
        (from, to) phenotype name pairs
    radii : List[float]
        Radii in microns
    categories : List[str]
        Tissue categories; empty means no category filter
    phenotype_rules : Dict[str, Any]
        Rules for compound phenotypes, as raw YAML values
    input : InputConfig
        Input discovery settings
    """

    version: str = "1.0"
    description: str = ""

    pairs: List[Tuple[str, str]] = field(default_factory=list)
    radii: List[float] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    phenotype_rules: Dict[str, Any] = field(default_factory=dict)

    input: InputConfig = field(default_factory=InputConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WithinConfig":
        """Create WithinConfig from dictionary."""
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a mapping")

        pairs = []
        for pair in data.get("pairs", []) or []:
            if not isinstance(pair, (list, tuple)) or len(pair) != 2:
                raise ConfigurationError(f"Each pair must have two phenotypes: {pair!r}")
            pairs.append((str(pair[0]), str(pair[1])))

        radii = data.get("radii", data.get("radius", [])) or []
        if not isinstance(radii, list):
            radii = [radii]

        categories = data.get("categories", data.get("category", [])) or []
        if isinstance(categories, str):
            categories = [categories]

        rules = data.get("phenotype_rules", {}) or {}
        if not isinstance(rules, dict):
            raise ConfigurationError("phenotype_rules must be a mapping")

        return cls(
            version=str(data.get("version", "1.0")),
            description=data.get("description", ""),
            pairs=pairs,
            radii=_to_floats(radii),
            categories=[str(c) for c in categories],
            phenotype_rules=rules,
            input=InputConfig.from_dict(data.get("input", {}) or {}),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "WithinConfig":
        """Load configuration from YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        logger.info(f"Loaded config from {path}")
        return cls.from_dict(data or {})

    @classmethod
    def default(cls) -> "WithinConfig":
        """Return default configuration."""
        return cls()

    def build_rules(self) -> Dict[str, Selector]:
        """Convert the configured phenotype rules into selectors."""
        return {
            name: rule_from_config(name, value)
            for name, value in self.phenotype_rules.items()
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "version": self.version,
            "description": self.description,
            "input": {
                "file_pattern": self.input.file_pattern,
                "n_jobs": self.input.n_jobs,
            },
            "pairs": [list(p) for p in self.pairs],
            "radii": list(self.radii),
            "categories": list(self.categories),
            "phenotype_rules": self.phenotype_rules,
        }
