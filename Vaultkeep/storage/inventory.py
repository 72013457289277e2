"""Session inventory and storage measurement.

Walks ``sessions/<vaultId>/YYYY/MM/DD/<sessionId>`` and measures the session
and backup trees. Every measurement degrades to zero instead of raising.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import psutil

from ..config.settings import CleanupConfig
from ..utils.timeutils import utc_now
from .layout import VaultNode

logger = logging.getLogger("VAULTKEEP.Inventory")

YEAR_RE = re.compile(r"^\d{4}$")
TWO_DIGIT_RE = re.compile(r"^\d{2}$")

# Sessions older than this count as "archived" in storage reports.
REPORT_ARCHIVE_AFTER_DAYS = 30
# Reporting estimate of how small an archived session becomes; not measured.
ARCHIVED_SIZE_RATIO = 0.3
# Above this usage an automatic cleanup is warranted.
CRITICAL_PERCENT = 95

BYTES_PER_MB = 1024 * 1024


@dataclass(frozen=True)
class SessionRecord:
    """One session directory, as seen by a single inventory pass."""
    path: Path
    date_key: date
    session_id: str
    age_days: int

    @property
    def date_string(self) -> str:
        return self.date_key.isoformat()


@dataclass
class SessionBucket:
    count: int = 0
    size_mb: float = 0.0
    estimated: bool = False


@dataclass
class StorageUsage:
    """Storage pressure of one vault. Recomputed on demand, never persisted."""
    sessions_size_mb: float = 0.0
    active_sessions: SessionBucket = field(default_factory=SessionBucket)
    archived_sessions: SessionBucket = field(default_factory=lambda: SessionBucket(estimated=True))
    backups_size_mb: float = 0.0
    total_size_mb: float = 0.0
    percent_used: int = 0
    max_storage_mb: float = 0.0

    @classmethod
    def empty(cls, max_storage_mb: float) -> "StorageUsage":
        return cls(max_storage_mb=max_storage_mb)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class NodeStorageInfo:
    """Storage usage plus what a cleanup could reclaim."""
    node_id: str
    node_path: str
    usage: StorageUsage
    old_sessions: int = 0          # older than retention_days
    archivable_sessions: int = 0   # between archive_after_days and retention_days
    stale_backups: int = 0         # older than backups.max_age_days
    disk_free_mb: Optional[float] = None
    status: str = "ok"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["can_clean"] = {
            "old_sessions": data.pop("old_sessions"),
            "archivable_sessions": data.pop("archivable_sessions"),
            "stale_backups": data.pop("stale_backups"),
        }
        return data


def bytes_to_mb(num_bytes: int) -> float:
    """Convert bytes to MB rounded to two decimals."""
    return round(num_bytes / BYTES_PER_MB, 2)


def percent_of(total_mb: float, max_mb: float) -> int:
    if max_mb <= 0:
        return 0
    return round(total_mb / max_mb * 100)


def storage_status(percent_used: float, warn_at_percent: float) -> str:
    """Classify usage as ``ok``, ``warning`` (advisory) or ``critical``."""
    if percent_used > CRITICAL_PERCENT:
        return "critical"
    if percent_used >= warn_at_percent:
        return "warning"
    return "ok"


def _subdirs(path: Path, pattern: re.Pattern) -> List[Path]:
    try:
        entries = sorted(os.scandir(path), key=lambda e: e.name)
    except OSError as e:
        logger.debug(f"Cannot list {path}: {e}")
        return []
    result = []
    for entry in entries:
        try:
            if pattern.match(entry.name) and entry.is_dir(follow_symlinks=False):
                result.append(Path(entry.path))
        except OSError:
            continue
    return result


def list_sessions(node: VaultNode, now: Optional[datetime] = None) -> List[SessionRecord]:
    """Enumerate session directories, oldest first.

    Year/month/day directories must match ``YYYY``/``MM``/``DD`` and form a
    real calendar date; anything else is skipped. A missing sessions
    directory yields an empty list.
    """
    sessions_dir = node.sessions_dir
    if not sessions_dir.is_dir():
        return []

    today = (now or utc_now()).date()
    records: List[SessionRecord] = []

    for year_dir in _subdirs(sessions_dir, YEAR_RE):
        for month_dir in _subdirs(year_dir, TWO_DIGIT_RE):
            for day_dir in _subdirs(month_dir, TWO_DIGIT_RE):
                try:
                    day = date(int(year_dir.name), int(month_dir.name), int(day_dir.name))
                except ValueError:
                    logger.debug(f"Skipping non-calendar session directory: {day_dir}")
                    continue

                try:
                    entries = sorted(os.scandir(day_dir), key=lambda e: e.name)
                except OSError as e:
                    logger.debug(f"Cannot list {day_dir}: {e}")
                    continue

                for entry in entries:
                    try:
                        is_dir = entry.is_dir(follow_symlinks=False)
                    except OSError:
                        continue
                    if not is_dir:
                        continue
                    records.append(SessionRecord(
                        path=Path(entry.path),
                        date_key=day,
                        session_id=entry.name,
                        age_days=max(0, (today - day).days),
                    ))

    records.sort(key=lambda r: (-r.age_days, str(r.path)))
    return records


def calculate_directory_size(path: Union[str, Path]) -> int:
    """Total size in bytes of the files under ``path`` (or of ``path`` itself).

    Missing paths and unreadable entries count as zero; this never raises.
    """
    try:
        target = Path(path)
        if not target.exists():
            return 0
        if not target.is_dir():
            return target.lstat().st_size

        total = 0
        for dirpath, _dirnames, filenames in os.walk(target, onerror=lambda e: logger.debug(f"Walk error: {e}")):
            for name in filenames:
                try:
                    total += os.lstat(os.path.join(dirpath, name)).st_size
                except OSError:
                    continue
        return total
    except OSError as e:
        logger.debug(f"Failed to measure {path}: {e}")
        return 0


def calculate_node_storage(
    node: VaultNode,
    max_storage_mb: float,
    now: Optional[datetime] = None,
) -> StorageUsage:
    """Measure session and backup storage for a vault.

    Sessions up to 30 days old are active; older ones are reported as
    archived with an estimated footprint of 30% of their raw size.
    """
    try:
        sessions_bytes = calculate_directory_size(node.sessions_dir)
        backups_bytes = calculate_directory_size(node.backups_dir)

        active = SessionBucket()
        archived = SessionBucket(estimated=True)
        active_bytes = 0
        archived_raw_bytes = 0

        for session in list_sessions(node, now=now):
            size = calculate_directory_size(session.path)
            if session.age_days > REPORT_ARCHIVE_AFTER_DAYS:
                archived.count += 1
                archived_raw_bytes += size
            else:
                active.count += 1
                active_bytes += size

        active.size_mb = bytes_to_mb(active_bytes)
        archived.size_mb = bytes_to_mb(round(archived_raw_bytes * ARCHIVED_SIZE_RATIO))

        total_mb = bytes_to_mb(sessions_bytes + backups_bytes)
        return StorageUsage(
            sessions_size_mb=bytes_to_mb(sessions_bytes),
            active_sessions=active,
            archived_sessions=archived,
            backups_size_mb=bytes_to_mb(backups_bytes),
            total_size_mb=total_mb,
            percent_used=percent_of(total_mb, max_storage_mb),
            max_storage_mb=max_storage_mb,
        )
    except Exception as e:
        logger.warning(f"Error calculating storage for {node.node_id} at {node.root}: {e}")
        return StorageUsage.empty(max_storage_mb)


def disk_free_mb(path: Union[str, Path]) -> Optional[float]:
    """Free space on the filesystem holding ``path``, or None when unknown."""
    existing = Path(path)
    while not existing.exists() and existing != existing.parent:
        existing = existing.parent
    try:
        return bytes_to_mb(psutil.disk_usage(str(existing)).free)
    except OSError as e:
        logger.debug(f"Disk usage unavailable for {existing}: {e}")
        return None


def _count_stale_backups(backups_dir: Path, max_age_days: int, now: datetime) -> int:
    if not backups_dir.is_dir():
        return 0
    cutoff = now.timestamp() - max_age_days * 86400
    stale = 0
    try:
        for entry in os.scandir(backups_dir):
            try:
                if entry.stat(follow_symlinks=False).st_mtime < cutoff:
                    stale += 1
            except OSError:
                continue
    except OSError as e:
        logger.debug(f"Cannot list backups in {backups_dir}: {e}")
    return stale


def get_node_storage_info(
    node: VaultNode,
    config: CleanupConfig,
    now: Optional[datetime] = None,
) -> NodeStorageInfo:
    """Storage usage plus counts of what cleanup and archival could reclaim."""
    now = now or utc_now()
    usage = calculate_node_storage(node, config.sessions.max_storage_mb, now=now)
    sessions = list_sessions(node, now=now)

    retention_days = config.sessions.retention_days
    archive_after = config.sessions.archive_after_days

    return NodeStorageInfo(
        node_id=node.node_id,
        node_path=str(node.root),
        usage=usage,
        old_sessions=sum(1 for s in sessions if s.age_days > retention_days),
        archivable_sessions=sum(1 for s in sessions if archive_after < s.age_days <= retention_days),
        stale_backups=_count_stale_backups(node.backups_dir, config.backups.max_age_days, now),
        disk_free_mb=disk_free_mb(node.root),
        status=storage_status(usage.percent_used, config.warn_at_percent),
    )


__all__ = [
    "SessionRecord",
    "SessionBucket",
    "StorageUsage",
    "NodeStorageInfo",
    "bytes_to_mb",
    "percent_of",
    "storage_status",
    "list_sessions",
    "calculate_directory_size",
    "calculate_node_storage",
    "disk_free_mb",
    "get_node_storage_info",
    "ARCHIVED_SIZE_RATIO",
    "CRITICAL_PERCENT",
]
