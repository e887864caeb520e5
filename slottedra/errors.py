"""Exception and warning types raised by SlottedRA."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Invalid simulation or scheme configuration, detected at construction."""


class PreconditionError(AssertionError):
    """Internal inputs violating a documented precondition (programming error)."""


class UnsimulatedResultWarning(UserWarning):
    """A PLR was requested from a result that was never simulated."""


__all__ = ["ConfigurationError", "PreconditionError", "UnsimulatedResultWarning"]
