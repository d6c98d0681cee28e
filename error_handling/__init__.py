"""Error types shared across the Wallet Sweep backend."""

from .exceptions import (
    SweepError,
    InvalidCacheRequest,
    InvalidAddressError,
    ConfigurationError,
    UpstreamError
)

__all__ = [
    'SweepError',
    'InvalidCacheRequest',
    'InvalidAddressError',
    'ConfigurationError',
    'UpstreamError'
]
