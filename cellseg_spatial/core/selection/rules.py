"""Phenotype rules: named selectors used by batch analyses.

A rule set maps each phenotype name referenced by an analysis to the
selector that defines it. Users declare rules only for compound phenotypes
(e.g. ``"CK+ PDL1+" -> ["CK+", Predicate("`PDL1 Mean` > 3")]``); every other
referenced name gets the identity rule ``name -> AnyOf((name,))``.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional

from cellseg_spatial.errors import ConfigurationError, SelectorTypeError

from .selectors import AnyOf, Selector, as_selector

logger = logging.getLogger(__name__)


def make_phenotype_rules(
    phenotypes: Iterable[str],
    existing_rules: Optional[Mapping[str, Any]] = None,
) -> Mapping[str, Selector]:
    """Build a complete, read-only rule set.

    Parameters
    ----------
    phenotypes : Iterable[str]
        Phenotype names referenced by the analysis. May be plain phenotypes
        or names of compound phenotypes defined in ``existing_rules``.
    existing_rules : Mapping[str, Any], optional
        User-declared rules. Values may be structured selectors or any raw
        form accepted by ``as_selector``.

    Returns
    -------
    Mapping[str, Selector]
        Read-only mapping with one entry per referenced name; user rules
        come first, followed by identity rules in reference order.

    Raises
    ------
    SelectorTypeError
        If ``existing_rules`` is not a mapping
    ConfigurationError
        If a rule is given for a phenotype that is not referenced
    """
    if existing_rules is None:
        existing_rules = {}
    elif not isinstance(existing_rules, Mapping):
        raise SelectorTypeError("existing_rules must be a mapping of name to selector.")

    referenced = list(dict.fromkeys(phenotypes))

    extra_names = [name for name in existing_rules if name not in referenced]
    if extra_names:
        raise ConfigurationError(
            f"A rule was given for an unused phenotype: {', '.join(map(str, extra_names))}"
        )

    rules: Dict[str, Selector] = {
        name: as_selector(rule) for name, rule in existing_rules.items()
    }
    for name in referenced:
        if name not in rules:
            rules[name] = AnyOf((name,))

    logger.debug(
        f"Phenotype rules: {len(existing_rules)} declared, "
        f"{len(rules) - len(existing_rules)} identity"
    )
    return MappingProxyType(rules)
