"""Selector types for choosing rows of a cell table.

A selector is one of four kinds, tagged by ``SelectorKind``:

- ``AnyOf``: matches cells whose phenotype is any of a set of names
- ``AllOf``: conjunction of sub-selectors
- ``Predicate``: deferred expression over table columns
- ``SelectAll``: matches every cell (use the ``SELECT_ALL`` sentinel)

Raw user input (strings, tuples, lists, callables) is converted to these
types once by ``as_selector``; the evaluator only ever sees tagged selectors.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Tuple, Union

from cellseg_spatial.errors import SelectorTypeError


class SelectorKind(Enum):
    """Tag identifying a selector's kind."""

    ANY_OF = "any_of"
    ALL_OF = "all_of"
    PREDICATE = "predicate"
    SELECT_ALL = "select_all"


@dataclass(frozen=True)
class AnyOf:
    """Select cells having any of the given phenotypes.

    Attributes
    ----------
    names : Tuple[str, ...]
        Phenotype names, e.g. ``("CD68+", "CD163+")``
    """

    names: Tuple[str, ...]

    kind = SelectorKind.ANY_OF

    def __post_init__(self):
        if not self.names:
            raise SelectorTypeError("AnyOf requires at least one phenotype name")
        for name in self.names:
            if not isinstance(name, str):
                raise SelectorTypeError(
                    f"Phenotype names must be strings, got {name!r}"
                )


@dataclass(frozen=True)
class AllOf:
    """Select cells matching every sub-selector."""

    parts: Tuple["Selector", ...]

    kind = SelectorKind.ALL_OF


@dataclass(frozen=True)
class Predicate:
    """Select cells by an expression over table columns.

    Attributes
    ----------
    expression : str or Callable
        Either a ``pandas.DataFrame.eval`` expression, with column names
        quoted in backticks when they contain spaces, or a callable taking
        the table and returning a boolean vector.
    label : str
        Display name; defaults to the expression text.
    """

    expression: Union[str, Callable[[Any], Any]]
    label: str = ""

    kind = SelectorKind.PREDICATE

    def __post_init__(self):
        if not (isinstance(self.expression, str) or callable(self.expression)):
            raise SelectorTypeError(
                f"Predicate expression must be a string or callable, got {self.expression!r}"
            )
        if not self.label:
            if isinstance(self.expression, str):
                label = self.expression.strip()
            else:
                label = getattr(self.expression, "__name__", repr(self.expression))
            object.__setattr__(self, "label", label)


@dataclass(frozen=True)
class SelectAll:
    """Select every cell."""

    kind = SelectorKind.SELECT_ALL


SELECT_ALL = SelectAll()

Selector = Union[AnyOf, AllOf, Predicate, SelectAll]

SELECTOR_TYPES = (AnyOf, AllOf, Predicate, SelectAll)


def is_selector(value: Any) -> bool:
    """Return True if ``value`` is an already-structured selector."""
    return isinstance(value, SELECTOR_TYPES)


def as_selector(value: Any) -> Selector:
    """Convert a raw selector description into a structured selector.

    Parameters
    ----------
    value : Any
        - a ``Selector``: returned unchanged
        - ``None``: select all
        - ``str``: a single phenotype name
        - ``tuple``, ``set`` or ``frozenset`` of str: any of these phenotypes
        - ``list``: conjunction of its (recursively converted) elements
        - callable: a predicate over the table

    Returns
    -------
    Selector
        Structured selector.

    Raises
    ------
    SelectorTypeError
        If ``value`` has an unsupported shape.

    Examples
    --------
    >>> as_selector("CD8+")
    AnyOf(names=('CD8+',))
    >>> as_selector(["CK+", ("CD8+", "FoxP3+")])
    AllOf(parts=(AnyOf(names=('CK+',)), AnyOf(names=('CD8+', 'FoxP3+'))))
    """
    if is_selector(value):
        return value
    if value is None:
        return SELECT_ALL
    if isinstance(value, str):
        return AnyOf((value,))
    if isinstance(value, (tuple, set, frozenset)):
        names = sorted(value) if not isinstance(value, tuple) else value
        if not all(isinstance(n, str) for n in names):
            raise SelectorTypeError(
                f"Any-of selectors may only contain phenotype names: {value!r}"
            )
        return AnyOf(tuple(names))
    if isinstance(value, list):
        if not value:
            raise SelectorTypeError("Empty selector list")
        return AllOf(tuple(as_selector(v) for v in value))
    if callable(value):
        return Predicate(value)
    raise SelectorTypeError(f"Unsupported selector: {value!r}")


def selector_label(selector: Any) -> str:
    """Return a readable name for a selector.

    Any-of names are joined with ``|``, all-of parts with ``&``.

    Examples
    --------
    >>> selector_label(AnyOf(("CD8+", "FoxP3+")))
    'CD8+|FoxP3+'
    >>> selector_label(["CK+", "PDL1+"])
    'CK+&PDL1+'
    """
    selector = as_selector(selector)
    if selector.kind is SelectorKind.ANY_OF:
        return "|".join(selector.names)
    if selector.kind is SelectorKind.ALL_OF:
        return "&".join(selector_label(p) for p in selector.parts)
    if selector.kind is SelectorKind.PREDICATE:
        return selector.label
    return "All"
