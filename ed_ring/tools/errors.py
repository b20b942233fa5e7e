"""Exception hierarchy raised by the ring-diffusion library.

Every error is fatal for a run: the workflow and the command line interface
report it and stop. The classes also derive from the closest builtin
exception, so callers catching ``ValueError`` or ``MemoryError`` keep working.
"""

__all__ = [
    "EdRingError",
    "InputValidationError",
    "InvalidPatternError",
    "ResourceExhaustedError",
    "NumericalNonConvergenceError",
    "PersistedStateMismatchError",
    "BasisLookupError",
]


class EdRingError(Exception):
    """Base class of all the library errors."""


class InputValidationError(EdRingError, ValueError):
    """Ill-formed input: ring size, particle number, times, options."""


class InvalidPatternError(InputValidationError):
    """A graphical pattern with a wrong length or an unknown character."""


class ResourceExhaustedError(EdRingError, MemoryError):
    """The requested basis or pattern list exceeds the configured ceiling."""


class NumericalNonConvergenceError(EdRingError, ArithmeticError):
    """The shifted QR iteration exceeded its iteration cap."""


class PersistedStateMismatchError(EdRingError, ValueError):
    """Stored block data do not belong to the current parameter set."""


class BasisLookupError(EdRingError, RuntimeError):
    """A configuration code is missing from the primitive basis."""
