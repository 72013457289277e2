"""Configuration and logging for Vaultkeep."""

from .settings import (
    DEFAULT_CONFIG,
    DEFAULT_RANKING_CONFIG,
    BackupRetentionConfig,
    CleanupConfig,
    LoggingConfig,
    RankingConfig,
    SessionRetentionConfig,
    VaultkeepConfig,
    load_config,
)
from .logging_config import get_logger, setup_logging, setup_logging_from_config

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_RANKING_CONFIG",
    "BackupRetentionConfig",
    "CleanupConfig",
    "LoggingConfig",
    "RankingConfig",
    "SessionRetentionConfig",
    "VaultkeepConfig",
    "load_config",
    "get_logger",
    "setup_logging",
    "setup_logging_from_config",
]
