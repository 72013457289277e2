from .layout import VaultNode
from .inventory import (
    SessionRecord,
    SessionBucket,
    StorageUsage,
    NodeStorageInfo,
    list_sessions,
    calculate_directory_size,
    calculate_node_storage,
    get_node_storage_info,
)
from .archive import ArchiveEntry, ArchiveFile, ArchiveScan, ArchiveStore

__all__ = [
    "VaultNode",
    # Inventory
    "SessionRecord",
    "SessionBucket",
    "StorageUsage",
    "NodeStorageInfo",
    "list_sessions",
    "calculate_directory_size",
    "calculate_node_storage",
    "get_node_storage_info",
    # Archives
    "ArchiveEntry",
    "ArchiveFile",
    "ArchiveScan",
    "ArchiveStore",
]
