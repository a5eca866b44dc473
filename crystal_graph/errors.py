"""
Exception types raised while loading structures and building graphs.
"""
from typing import Optional


class CrystalGraphError(Exception):
    """Base class for all errors raised by crystal_graph."""


class StructureFormatError(CrystalGraphError, ValueError):
    """Malformed structure text. Carries the 1-based offending line number."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class InvalidParameterError(CrystalGraphError, ValueError):
    """Cutoff radius or neighbor cap outside the supported range."""


class NotLoadedError(CrystalGraphError, RuntimeError):
    """A graph operation was requested before a structure was loaded."""
