"""
Error taxonomy shared by the locator, stores, generators and routes.

Routes only look at the class to pick an HTTP status; the message string
is what gets reported back to the caller.
"""


class MarkvizError(Exception):
    """Base exception for markviz errors."""
    pass


class NotFoundError(MarkvizError):
    """Raised when no source document or no artifact exists yet."""
    pass


class ConfigurationError(MarkvizError):
    """Raised when no provider credential is configured."""
    pass


class ProviderError(MarkvizError):
    """Raised when a provider call fails or returns unusable output."""
    pass


class UnsupportedResponseFormatError(ProviderError):
    """Raised when a provider cannot answer in the requested format."""
    pass


class GenerationError(MarkvizError):
    """Raised when provider output lacks the expected shape."""
    pass
