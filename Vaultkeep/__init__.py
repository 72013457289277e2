"""Vaultkeep - session memory lifecycle engine for AI-assisted vaults"""

from __future__ import annotations

__version__ = "0.1.0"

# Configuration
from .config.settings import (
    VaultkeepConfig,
    CleanupConfig,
    RankingConfig,
    LoggingConfig,
    DEFAULT_CONFIG,
    load_config,
)
from .config.logging_config import setup_logging, setup_logging_from_config

# Storage
from .storage.layout import VaultNode
from .storage.inventory import (
    SessionRecord,
    StorageUsage,
    NodeStorageInfo,
    list_sessions,
    calculate_directory_size,
    calculate_node_storage,
    get_node_storage_info,
)
from .storage.archive import ArchiveEntry, ArchiveFile, ArchiveStore

# Memory ranking / archival
from .memory.quality import (
    MemoryQualityScore,
    UsageTracking,
    MemoryRecord,
    QualityRanker,
    rank_memories,
    load_top_memories,
    update_usage_tracking,
)
from .memory.archiver import SessionArchiver

# Retention
from .retention.cleanup import CleanupExecutor, CleanupResult, RetentionPlan, SessionState

# Restore
from .restore.service import RestoreService, RestoreSelection, RestorePreview, parse_restore_date

# Errors
from .utils.errors import (
    VaultkeepException,
    ConfigurationError,
    StorageError,
    ArchiveError,
    ArchiveCorruptedError,
    ValidationError,
    InvalidDateError,
    RestoreFilterError,
)

__all__ = [
    # Version
    "__version__",

    # Configuration
    "VaultkeepConfig",
    "CleanupConfig",
    "RankingConfig",
    "LoggingConfig",
    "DEFAULT_CONFIG",
    "load_config",
    "setup_logging",
    "setup_logging_from_config",

    # Storage
    "VaultNode",
    "SessionRecord",
    "StorageUsage",
    "NodeStorageInfo",
    "list_sessions",
    "calculate_directory_size",
    "calculate_node_storage",
    "get_node_storage_info",
    "ArchiveEntry",
    "ArchiveFile",
    "ArchiveStore",

    # Memory
    "MemoryQualityScore",
    "UsageTracking",
    "MemoryRecord",
    "QualityRanker",
    "rank_memories",
    "load_top_memories",
    "update_usage_tracking",
    "SessionArchiver",

    # Retention
    "CleanupExecutor",
    "CleanupResult",
    "RetentionPlan",
    "SessionState",

    # Restore
    "RestoreService",
    "RestoreSelection",
    "RestorePreview",
    "parse_restore_date",

    # Errors
    "VaultkeepException",
    "ConfigurationError",
    "StorageError",
    "ArchiveError",
    "ArchiveCorruptedError",
    "ValidationError",
    "InvalidDateError",
    "RestoreFilterError",
]
