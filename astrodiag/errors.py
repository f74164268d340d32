# -*- coding: utf-8 -*-

"""

Exception taxonomy for astrodiag.

Every fatal condition the pipeline can hit derives from `DiagnosticError`, so the
command line can report it and exit without a traceback. Nothing here is retried:
all operations are deterministic.

"""

from __future__ import annotations


class DiagnosticError(Exception):
    """Base class for all fatal astrodiag errors."""


class ConfigurationError(DiagnosticError):
    """Missing or invalid run configuration (raised before any I/O)."""


class PlotfileFormatError(DiagnosticError):
    """A plotfile header or FAB record could not be parsed."""


class FieldNotFound(DiagnosticError, KeyError):
    """
    A required physical quantity has no slot under any known name.

    Args:
        quantity: canonical name of the quantity that was requested.
        candidates: the names that were tried, in order.
    """

    def __init__(self, quantity: str, candidates=()):
        self.quantity = quantity
        self.candidates = tuple(candidates)
        tried = ", ".join(self.candidates) if self.candidates else quantity
        super().__init__(f"could not find the {quantity} component (tried: {tried})")

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return self.args[0]

    def __reduce__(self):
        return (type(self), (self.quantity, self.candidates))


class SpeciesLayoutMismatch(DiagnosticError):
    """
    The species slots in a plotfile do not follow the configured network order.

    Later stages index species by offset from the first species slot, so this is
    always fatal.
    """

    def __init__(self, expected: str, actual: str, offset: int):
        self.expected = expected
        self.actual = actual
        self.offset = offset
        super().__init__(
            f"species don't match at offset {offset}: expected '{expected}', found '{actual}'. "
            "Make sure to run with the same network as the plotfile "
            "(e.g. --network aprox13 or --species He4,C12,...)"
        )

    def __reduce__(self):
        return (type(self), (self.expected, self.actual, self.offset))


class MissingParentLevel(DiagnosticError):
    """Reconstruction was requested for a level whose parent buffer is unavailable."""

    def __init__(self, level: int, reason: str = "no parent buffer in the reconstruction chain"):
        self.level = level
        self.reason = reason
        super().__init__(f"cannot reconstruct level {level}: {reason}")

    def __reduce__(self):
        # exceptions raised in worker processes are pickled back to the parent
        return (type(self), (self.level, self.reason))
