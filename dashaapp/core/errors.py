# dashaapp/core/errors.py
from __future__ import annotations

__all__ = ["DashaError", "ConfigurationError", "InvalidInputError", "InvariantViolation"]


class DashaError(Exception):
    """Base class for engine failures. Always fatal to the single computation."""


class ConfigurationError(DashaError):
    """A label is missing from the weight table, or the table/settings are malformed."""


class InvalidInputError(DashaError, ValueError):
    """Caller supplied an unusable value (non-finite longitude, naive datetime, ...)."""


class InvariantViolation(DashaError):
    """A partition came out non-positive or did not sum to its parent."""
