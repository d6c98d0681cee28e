"""Configuration for the Wallet Sweep cache service."""

from .settings import SweepConfig, get_config
from .logging import configure_logging, log_error

__all__ = ["SweepConfig", "get_config", "configure_logging", "log_error"]
