"""Exceptions raised by the Wallet Sweep backend."""
from typing import Optional


class SweepError(Exception):
    """Base class for errors raised by this service."""
    pass


class InvalidCacheRequest(SweepError, ValueError):
    """A cache administration request is missing a field or names an unknown action."""
    pass


class InvalidAddressError(SweepError, ValueError):
    """A wallet or token address is not a 0x-prefixed 20-byte hex string."""
    pass


class ConfigurationError(SweepError):
    """A required setting (API key, client id) is missing."""
    pass


class UpstreamError(SweepError):
    """
    An upstream data provider failed.

    These propagate through the read-through cache untouched: the cache
    layer never fabricates a result for a failed fetch.
    """

    def __init__(self, message: str, status: Optional[int] = None, provider: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.provider = provider
