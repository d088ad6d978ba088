"""Exception types raised by cellseg-spatial.

All errors are raised where they are detected and propagate to the caller;
nothing in the package catches them to substitute a default.
"""

from typing import Optional


class CellSegError(Exception):
    """Base class for all cellseg-spatial errors."""

    pass


class ValidationError(CellSegError, ValueError):
    """Raised for malformed caller arguments (radii, pairs, duplicate names)."""

    pass


class ParseError(CellSegError, ValueError):
    """Raised when a phenotype description cannot be parsed."""

    pass


class SchemaError(CellSegError, KeyError):
    """Raised when a table lacks a column the operation needs."""

    def __str__(self) -> str:
        # KeyError quotes its message; keep it readable.
        return str(self.args[0]) if self.args else ""


class EvalError(CellSegError):
    """Raised when a predicate selector cannot be evaluated against a table."""

    pass


class ConfigurationError(CellSegError):
    """Raised for inconsistent phenotype rules or malformed configuration."""

    pass


class SelectorTypeError(CellSegError, TypeError):
    """Raised for inputs of an unsupported type or selector shape."""

    pass


class FieldProcessingError(CellSegError):
    """Raised when a single field file fails during batch processing.

    The originating exception is chained as ``__cause__``.
    """

    def __init__(self, path: str, message: Optional[str] = None):
        super().__init__(path, message)
        self.path = path
        self.message = message

    def __str__(self) -> str:
        if self.message:
            return f"Failed to process {self.path}: {self.message}"
        return f"Failed to process {self.path}"
