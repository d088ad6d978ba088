"""Parse human-readable phenotype descriptions into selectors.

Each description is either a single phenotype name (``CD3+``, ``CD8-``) or
several names separated by a slash or a comma:

- ``"CD3+/CD8-"``: slash means *all* of, a CD3+ cell that is also CD8-
- ``"CD68+,CD163+"``: comma means *any* of, a CD68+ or CD163+ cell
- ``"Total Cells"``: a name without a sign containing "Total" or "All"
  selects every cell

Slashes and commas may not be mixed in one description.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Tuple

from cellseg_spatial.errors import ParseError, SelectorTypeError, ValidationError

from .columns import has_sign
from .selectors import SELECT_ALL, AllOf, AnyOf, Selector, is_selector

logger = logging.getLogger(__name__)

_SELECT_ALL_PATTERN = re.compile(r"Total|All", re.IGNORECASE)


def split_and_trim(text: str, sep: str) -> List[str]:
    """Split ``text`` on ``sep`` and strip whitespace from each piece."""
    if not isinstance(text, str):
        raise SelectorTypeError(f"Expected a string, got {text!r}")
    return [part.strip() for part in text.split(sep)]


def parse_phenotype(description: str) -> Selector:
    """Parse a single phenotype description.

    Parameters
    ----------
    description : str
        Phenotype description, already trimmed.

    Returns
    -------
    Selector
        ``AllOf`` for slash-separated, ``AnyOf`` for comma-separated or
        single names, ``SELECT_ALL`` for "Total"/"All" descriptions.

    Raises
    ------
    ParseError
        If the description is not recognized.
    """
    if "/" in description:
        if "," in description:
            raise ParseError(
                f"Phenotype selectors may not contain both '/' and ',': {description}"
            )
        parts = []
        for part in split_and_trim(description, "/"):
            if not has_sign(part):
                raise ParseError(
                    f"Unrecognized phenotype '{part}' in selector: {description}"
                )
            parts.append(AnyOf((part,)))
        return AllOf(tuple(parts))

    if "," in description:
        return AnyOf(tuple(split_and_trim(description, ",")))

    if has_sign(description):
        return AnyOf((description,))

    if _SELECT_ALL_PATTERN.search(description):
        return SELECT_ALL

    raise ParseError(f"Unrecognized phenotype selector: {description}")


def is_plain_name(description: str) -> bool:
    """Return True if ``description`` is a bare phenotype label.

    Bare labels such as ``"Tumor"`` or ``"Helper T"`` carry no sign, no
    separator and no Total/All keyword, so the description grammar does not
    apply to them; they name a value of the ``Phenotype`` column directly.
    """
    return not (
        has_sign(description)
        or "/" in description
        or "," in description
        or _SELECT_ALL_PATTERN.search(description)
    )


def _check_description(value: Any) -> str:
    if is_selector(value) or callable(value):
        raise SelectorTypeError(
            f"parse_phenotypes does not support pre-built selectors: {value!r}"
        )
    if not isinstance(value, str):
        raise SelectorTypeError(
            f"parse_phenotypes only works with text descriptions, not {value!r}"
        )
    return value.strip()


def _check_name(name: Any) -> str:
    if not isinstance(name, str):
        raise SelectorTypeError(f"Phenotype names must be strings, not {name!r}")
    return name.strip()


def _collect_entries(
    descriptions: Tuple[Any, ...],
    named: Mapping[str, Any],
) -> List[Tuple[str, str, bool]]:
    """Flatten the accepted argument forms into ``(name, description, explicit)``.

    ``(name, description)`` pairs are only recognized inside a single list;
    a tuple among positional arguments is rejected like any other
    non-string description.
    """
    entries = []
    if len(descriptions) == 1 and isinstance(descriptions[0], dict):
        for name, description in descriptions[0].items():
            entries.append((_check_name(name), _check_description(description)))
    elif len(descriptions) == 1 and isinstance(descriptions[0], list):
        for item in descriptions[0]:
            if isinstance(item, tuple):
                if len(item) != 2:
                    raise SelectorTypeError(
                        f"Expected a (name, description) pair, got {item!r}"
                    )
                entries.append((_check_name(item[0]), _check_description(item[1])))
            else:
                entries.append(("", _check_description(item)))
    else:
        for item in descriptions:
            entries.append(("", _check_description(item)))

    for name, description in named.items():
        entries.append((_check_name(name), _check_description(description)))

    return [
        (name or description, description, bool(name))
        for name, description in entries
    ]


def parse_phenotypes(*descriptions: Any, **named: Any) -> Dict[str, Selector]:
    """Parse phenotype descriptions into a named mapping of selectors.

    Parameters
    ----------
    *descriptions
        Descriptions to parse. May also be a single list of descriptions
        and ``(name, description)`` pairs, or a single dict mapping names to
        descriptions.
    **named
        Descriptions given under an explicit name.

    Returns
    -------
    Dict[str, Selector]
        Selectors in input order. Unnamed (or blank-named) entries are named
        by their trimmed description.

    Raises
    ------
    SelectorTypeError
        If a description is not a string.
    ParseError
        If a description is not recognized.
    ValidationError
        If a name occurs twice and at least one occurrence is explicit.
        Unnamed descriptions that trim to the same text collapse silently.

    Examples
    --------
    >>> selectors = parse_phenotypes(
    ...     "CD3+", "CD3+/CD8+", "Total Cells", Macrophage="CD68+,CD163+")
    >>> list(selectors)
    ['CD3+', 'CD3+/CD8+', 'Total Cells', 'Macrophage']
    """
    entries = _collect_entries(descriptions, named)

    explicit_names: Dict[str, bool] = {}
    result: Dict[str, Selector] = {}
    for name, description, explicit in entries:
        if name in explicit_names:
            if explicit or explicit_names[name]:
                raise ValidationError(f"Duplicate phenotype name '{name}'")
            logger.debug(f"Repeated phenotype '{name}' ignored")
            continue
        explicit_names[name] = explicit
        result[name] = parse_phenotype(description)

    return result
