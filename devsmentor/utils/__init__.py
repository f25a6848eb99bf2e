"""
Utility modules for configuration, logging, and error handling.
"""

from devsmentor.utils.errors import (
    DevsMentorError,
    ConfigurationError,
    StorageError,
    DispatchError,
    RateLimitedError,
    ProviderQuotaExhaustedError,
    MalformedResponseError,
    ProviderError,
)
from devsmentor.utils.logging import create_logger_with_context, setup_logging, JSONFormatter
from devsmentor.utils.config import ConfigManager, load_config

__all__ = [
    "DevsMentorError",
    "ConfigurationError",
    "StorageError",
    "DispatchError",
    "RateLimitedError",
    "ProviderQuotaExhaustedError",
    "MalformedResponseError",
    "ProviderError",
    "create_logger_with_context",
    "setup_logging",
    "JSONFormatter",
    "ConfigManager",
    "load_config",
]
