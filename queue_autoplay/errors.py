from __future__ import annotations


class AutoplayError(Exception):
    """Base class for queue autoplay errors."""


class ConfigurationError(AutoplayError):
    """Autoplay options are invalid or incomplete."""


class ValidationError(AutoplayError):
    """Invalid arguments were passed to an autoplay mutator."""


class AuthError(AutoplayError):
    """The recommendation API credential exchange failed."""


class SourceUnavailable(AutoplayError):
    """A recommendation or search source could not be reached or parsed."""
