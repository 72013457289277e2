"""Session retention, backup rotation and cleanup.

Each session moves through ACTIVE -> ARCHIVABLE -> DELETABLE as it ages.
The retention floor keeps the newest ``keep_min_sessions`` sessions no
matter how old they are: after sorting oldest first, only the oldest
``max(0, N - keep_min_sessions)`` sessions may ever be removed.
"""

from __future__ import annotations

import logging
import os
import shutil
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config.settings import CleanupConfig
from ..storage.inventory import (
    CRITICAL_PERCENT,
    SessionRecord,
    StorageUsage,
    bytes_to_mb,
    calculate_directory_size,
    calculate_node_storage,
    list_sessions,
    storage_status,
)
from ..storage.layout import VaultNode
from ..utils.errors import ValidationError, timed_operation
from ..utils.timeutils import format_duration, parse_duration

logger = logging.getLogger("VAULTKEEP.Cleanup")


class SessionState(str, Enum):
    ACTIVE = "active"
    ARCHIVABLE = "archivable"
    DELETABLE = "deletable"


@dataclass
class RetentionPlan:
    """Every session of a vault, classified against a retention policy."""
    active: List[SessionRecord] = field(default_factory=list)
    archivable: List[SessionRecord] = field(default_factory=list)
    deletable: List[SessionRecord] = field(default_factory=list)
    protected: int = 0  # old enough to delete but kept by the floor

    @property
    def total(self) -> int:
        return len(self.active) + len(self.archivable) + len(self.deletable)

    def state_of(self, session: SessionRecord) -> Optional[SessionState]:
        for state, bucket in (
            (SessionState.DELETABLE, self.deletable),
            (SessionState.ARCHIVABLE, self.archivable),
            (SessionState.ACTIVE, self.active),
        ):
            if session in bucket:
                return state
        return None


@dataclass
class CleanupResult:
    """Outcome of one cleanup invocation."""
    sessions_deleted: int = 0
    sessions_archived: int = 0
    backups_deleted: int = 0
    space_freed_mb: float = 0.0
    duration_ms: int = 0
    dry_run: bool = False
    failures: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def select_for_removal(
    sessions: List[SessionRecord],
    older_than_days: int,
    keep_min_sessions: int,
) -> List[SessionRecord]:
    """Sessions older than the threshold, limited to the floor-eligible oldest prefix.

    ``sessions`` must be sorted oldest first.
    """
    eligible = sessions[:max(0, len(sessions) - max(0, keep_min_sessions))]
    return [s for s in eligible if s.age_days > older_than_days]


class CleanupExecutor:
    """Applies a CleanupConfig to a vault's sessions and backups."""

    def __init__(self, config: CleanupConfig):
        self.config = config

    def plan(
        self,
        node: VaultNode,
        older_than_days: Optional[int] = None,
        keep_min_sessions: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> RetentionPlan:
        """Classify every session without touching the filesystem."""
        retention_days = self.config.sessions.retention_days if older_than_days is None else older_than_days
        keep_min = self.config.sessions.keep_min_sessions if keep_min_sessions is None else keep_min_sessions
        archive_after = self.config.sessions.archive_after_days

        sessions = list_sessions(node, now=now)
        removable = {s.path for s in select_for_removal(sessions, retention_days, keep_min)}

        plan = RetentionPlan()
        for session in sessions:
            if session.path in removable:
                plan.deletable.append(session)
            elif session.age_days > archive_after:
                plan.archivable.append(session)
                if session.age_days > retention_days:
                    plan.protected += 1
            else:
                plan.active.append(session)
        return plan

    def _remove(self, path: Path, kind: str) -> bool:
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
            return True
        except FileNotFoundError:
            logger.debug(f"{kind} already gone: {path}")
            return True
        except OSError as e:
            logger.warning(f"Failed to delete {kind} {path}: {e}")
            return False

    def list_backups(self, node: VaultNode) -> List[Path]:
        """Backups oldest first (modification time, then name)."""
        backups_dir = node.backups_dir
        if not backups_dir.is_dir():
            return []
        backups = []
        try:
            for entry in os.scandir(backups_dir):
                try:
                    mtime = entry.stat(follow_symlinks=False).st_mtime
                except OSError:
                    mtime = 0.0
                backups.append((mtime, entry.name, Path(entry.path)))
        except OSError as e:
            logger.warning(f"Cannot list backups in {backups_dir}: {e}")
            return []
        return [path for _, _, path in sorted(backups)]

    @timed_operation("cleanup_node", logging.DEBUG)
    def cleanup_node(
        self,
        node: VaultNode,
        older_than_days: Optional[int] = None,
        archive_only: bool = False,
        dry_run: bool = False,
        keep_min_sessions: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> CleanupResult:
        """Delete (or count for archival) sessions past retention and rotate backups.

        Sessions are left alone when ``sessions.enabled`` is false; backups still rotate.

        Args:
            node: Vault to clean
            older_than_days: Age threshold, defaults to ``sessions.retention_days``
            archive_only: Only count sessions as archived; delete nothing
            dry_run: Report what would be deleted without deleting
            keep_min_sessions: Retention floor, defaults to ``sessions.keep_min_sessions``

        Returns:
            CleanupResult; failed deletions are listed in ``failures`` and not counted
        """
        start = time.monotonic()
        older_than = self.config.sessions.retention_days if older_than_days is None else older_than_days
        keep_min = self.config.sessions.keep_min_sessions if keep_min_sessions is None else keep_min_sessions
        if older_than < 0 or keep_min < 0:
            raise ValidationError(
                f"older_than_days and keep_min_sessions must be non-negative (got {older_than}, {keep_min})"
            )

        result = CleanupResult(dry_run=dry_run)
        freed_bytes = 0

        sessions = list_sessions(node, now=now)
        if self.config.sessions.enabled:
            selected = select_for_removal(sessions, older_than, keep_min)
        else:
            logger.info(f"Session retention disabled for {node.node_id}, only rotating backups")
            selected = []
        logger.info(
            f"Cleanup {node.node_id}: {len(sessions)} sessions, {len(selected)} older than "
            f"{older_than}d outside the floor of {keep_min}"
            f"{' (dry run)' if dry_run else ''}"
        )

        for session in selected:
            if archive_only:
                result.sessions_archived += 1
                continue
            size = calculate_directory_size(session.path)
            if not dry_run and not self._remove(session.path, "session"):
                result.failures.append(str(session.path))
                continue
            freed_bytes += size
            result.sessions_deleted += 1

        if not archive_only:
            backups = self.list_backups(node)
            keep = self.config.backups.max_count
            for backup in backups[:max(0, len(backups) - keep)]:
                size = calculate_directory_size(backup)
                if not dry_run and not self._remove(backup, "backup"):
                    result.failures.append(str(backup))
                    continue
                freed_bytes += size
                result.backups_deleted += 1

        result.space_freed_mb = bytes_to_mb(freed_bytes)
        result.duration_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            f"Cleanup {node.node_id} finished: {result.sessions_deleted} sessions deleted, "
            f"{result.sessions_archived} archived, {result.backups_deleted} backups deleted, "
            f"{result.space_freed_mb}MB freed, {len(result.failures)} failures"
        )
        return result

    def storage_usage(self, node: VaultNode, now: Optional[datetime] = None) -> StorageUsage:
        return calculate_node_storage(node, self.config.sessions.max_storage_mb, now=now)

    def should_auto_cleanup(self, node: VaultNode, now: Optional[datetime] = None) -> bool:
        """True when auto cleanup is on and usage is above the critical threshold."""
        if not self.config.auto_cleanup:
            return False
        return self.storage_usage(node, now=now).percent_used > CRITICAL_PERCENT

    def storage_status(self, usage: StorageUsage) -> str:
        return storage_status(usage.percent_used, self.config.warn_at_percent)


__all__ = [
    "SessionState",
    "RetentionPlan",
    "CleanupResult",
    "CleanupExecutor",
    "select_for_removal",
    "parse_duration",
    "format_duration",
]
