"""Utility modules for the rental fleet core."""

from .json_utils import EnhancedJSONEncoder, dumps

# Logging utilities
from .logger import (
    AzureQueueHandler,
    ContextAwareLogger,
    TenantContextFilter,
    configure_logging,
    get_logger,
)
from .timeout import Deadline, store_timeout, timeout_for

__all__ = [
    "EnhancedJSONEncoder",
    "dumps",
    # Logging utilities
    "ContextAwareLogger",
    "AzureQueueHandler",
    "TenantContextFilter",
    "configure_logging",
    "get_logger",
    # Store timeouts
    "Deadline",
    "store_timeout",
    "timeout_for",
]
