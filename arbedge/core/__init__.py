"""
Core module - Engineering foundation

Contains configuration, logging, HTTP client, quotas, and time utilities.
"""

from arbedge.core.config import Settings, get_settings, load_yaml_config
from arbedge.core.errors import (
    ArbEdgeError,
    ConfigurationError,
    PayloadError,
    ProviderError,
    QuotaExceededError,
    StoreError,
)
from arbedge.core.logging import setup_logging, get_logger

__all__ = [
    "Settings",
    "get_settings",
    "load_yaml_config",
    "ArbEdgeError",
    "ConfigurationError",
    "PayloadError",
    "ProviderError",
    "QuotaExceededError",
    "StoreError",
    "setup_logging",
    "get_logger",
]
