from __future__ import annotations


class MultiregError(Exception):
    """Base class for errors raised by multireg."""


class ConfigurationError(MultiregError, ValueError):
    """A configuration value is missing or malformed where it must be read."""


class UnsupportedOperationError(MultiregError, NotImplementedError):
    """A component was asked for a capability it does not provide."""
