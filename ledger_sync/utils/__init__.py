"""
Shared utilities: configuration and structured logging
"""

from .config import (
    ConfigManager,
    ConfigError,
    ApiCredentials,
    FetchSettings,
    ReconcileSettings,
    PortfolioSettings,
    SyncConfig
)
from .structured_logging import (
    SyncContext,
    SyncLogger,
    StructuredLogFormatter,
    configure_structured_logging,
    sync_timer
)

__all__ = [
    'ConfigManager',
    'ConfigError',
    'ApiCredentials',
    'FetchSettings',
    'ReconcileSettings',
    'PortfolioSettings',
    'SyncConfig',
    'SyncContext',
    'SyncLogger',
    'StructuredLogFormatter',
    'configure_structured_logging',
    'sync_timer'
]
