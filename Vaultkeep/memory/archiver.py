"""Move long-unused session memories into monthly archive files."""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..storage.archive import ArchiveEntry, ArchiveStore
from ..storage.inventory import bytes_to_mb, calculate_directory_size, list_sessions
from ..storage.layout import VaultNode
from ..utils.errors import ArchiveError, timed_operation
from ..utils.timeutils import iso_now, month_key, parse_timestamp, utc_now

logger = logging.getLogger("VAULTKEEP.Archiver")

METADATA_FILENAME = "metadata.json"
MEMORY_FILENAME = "memory.md"
DEFAULT_UNUSED_DAYS = 90
DEFAULT_CACHE_THRESHOLD_MB = 5.0


@dataclass
class ArchiveCandidate:
    """A session whose memory has not been used since ``last_used``."""
    session_id: str
    node_id: str
    path: Path
    last_used: datetime
    days_unused: int
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def month(self) -> str:
        return month_key(self.last_used)

    def to_entry(self) -> ArchiveEntry:
        tags = self.metadata.get("tags")
        title = self.metadata.get("title")
        summary = self.metadata.get("summary")
        return ArchiveEntry(
            session_id=self.session_id,
            node_id=self.node_id,
            title=title if isinstance(title, str) else None,
            summary=summary if isinstance(summary, str) else "",
            tags=[str(t) for t in tags] if isinstance(tags, list) else [],
            content=self.content,
            archived_at=iso_now(),
            metadata=self.metadata,
        )


@dataclass
class ArchiveRunResult:
    archived: int = 0
    archived_bytes: int = 0
    by_month: Dict[str, int] = field(default_factory=dict)
    failures: List[str] = field(default_factory=list)
    dry_run: bool = False


@dataclass
class ArchiveCheckResult:
    """Outcome of a size-triggered archive pass."""
    triggered: bool = False
    archived: int = 0
    initial_size_mb: float = 0.0
    final_size_mb: float = 0.0
    threshold_mb: float = DEFAULT_CACHE_THRESHOLD_MB
    failures: List[str] = field(default_factory=list)


class SessionArchiver:
    """Finds unused session memories and folds them into the vault's archives."""

    def __init__(self, node: VaultNode, store: Optional[ArchiveStore] = None):
        self.node = node
        self.store = store or ArchiveStore(node.archives_dir)

    def _load_candidate(self, session_path: Path, session_id: str) -> Optional[ArchiveCandidate]:
        metadata_path = session_path / METADATA_FILENAME
        memory_path = session_path / MEMORY_FILENAME
        if not (metadata_path.is_file() and memory_path.is_file()):
            return None

        try:
            metadata = json.loads(metadata_path.read_text(encoding="utf-8"))
            content = memory_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.debug(f"Skipping session with unreadable metadata {session_path}: {e}")
            return None
        if not isinstance(metadata, dict):
            return None

        usage = metadata.get("usage") if isinstance(metadata.get("usage"), dict) else {}
        raw_last_used = usage.get("lastUsed") or metadata.get("timestamp")
        try:
            last_used = parse_timestamp(raw_last_used) if raw_last_used else None
        except ValueError:
            last_used = None
        if last_used is None:
            try:
                last_used = datetime.fromtimestamp(metadata_path.stat().st_mtime, tz=timezone.utc)
            except OSError as e:
                logger.debug(f"Skipping session {session_path}, cannot stat metadata: {e}")
                return None

        return ArchiveCandidate(
            session_id=str(metadata.get("sessionId") or session_id),
            node_id=self.node.node_id,
            path=session_path,
            last_used=last_used,
            days_unused=0,
            content=content,
            metadata=metadata,
        )

    def find_candidates(self, unused_days: int = DEFAULT_UNUSED_DAYS, now: Optional[datetime] = None) -> List[ArchiveCandidate]:
        """Sessions with a memory file whose last use is older than ``unused_days``."""
        now = now or utc_now()
        cutoff = now - timedelta(days=unused_days)
        candidates = []
        for session in list_sessions(self.node, now=now):
            candidate = self._load_candidate(session.path, session.session_id)
            if candidate is None or candidate.last_used >= cutoff:
                continue
            candidate.days_unused = int((now - candidate.last_used).total_seconds() // 86400)
            candidates.append(candidate)
        candidates.sort(key=lambda c: c.last_used)
        return candidates

    @timed_operation("archive_old_memories", logging.DEBUG)
    def archive_old_memories(
        self,
        unused_days: int = DEFAULT_UNUSED_DAYS,
        dry_run: bool = False,
        now: Optional[datetime] = None,
    ) -> ArchiveRunResult:
        """Archive unused memories by month of last use, then drop their session directories.

        A session directory is removed only after its month file was written.
        """
        result = ArchiveRunResult(dry_run=dry_run)
        by_month: Dict[str, List[ArchiveCandidate]] = {}
        for candidate in self.find_candidates(unused_days, now=now):
            by_month.setdefault(candidate.month, []).append(candidate)

        for month, candidates in sorted(by_month.items()):
            if dry_run:
                result.archived += len(candidates)
                result.archived_bytes += sum(len(c.content.encode("utf-8")) for c in candidates)
                result.by_month[month] = len(candidates)
                continue

            try:
                self.store.append_entries(month, [c.to_entry() for c in candidates])
            except ArchiveError as e:
                logger.warning(f"Failed to archive {len(candidates)} sessions into {month}: {e.message}")
                result.failures.extend(str(c.path) for c in candidates)
                continue

            for candidate in candidates:
                try:
                    shutil.rmtree(candidate.path)
                except OSError as e:
                    logger.warning(f"Archived {candidate.session_id} but failed to remove {candidate.path}: {e}")
                    result.failures.append(str(candidate.path))
                result.archived += 1
                result.archived_bytes += len(candidate.content.encode("utf-8"))
                result.by_month[month] = result.by_month.get(month, 0) + 1

        logger.info(
            f"Archived {result.archived} memories for {self.node.node_id}"
            f"{' (dry run)' if dry_run else ''}"
        )
        return result

    def detect_cache_size(self) -> float:
        """Size in MB of the active session cache; archive files are not counted."""
        total = calculate_directory_size(self.node.sessions_dir)
        archived = calculate_directory_size(self.node.archives_dir)
        return bytes_to_mb(max(0, total - archived))

    @timed_operation("archive_until_below_threshold", logging.DEBUG)
    def archive_until_below_threshold(
        self,
        threshold_mb: float = DEFAULT_CACHE_THRESHOLD_MB,
        unused_days: int = DEFAULT_UNUSED_DAYS,
        now: Optional[datetime] = None,
    ) -> ArchiveCheckResult:
        """Archive the least recently used memories one at a time until the cache fits.

        Stops as soon as the cache is at or below ``threshold_mb``, or when no
        candidate is left.
        """
        size_mb = self.detect_cache_size()
        result = ArchiveCheckResult(
            triggered=True,
            initial_size_mb=size_mb,
            final_size_mb=size_mb,
            threshold_mb=threshold_mb,
        )

        for candidate in self.find_candidates(unused_days, now=now):
            if size_mb <= threshold_mb:
                break
            try:
                self.store.append_entries(candidate.month, [candidate.to_entry()])
            except ArchiveError as e:
                logger.warning(f"Failed to archive {candidate.session_id} into {candidate.month}: {e.message}")
                result.failures.append(str(candidate.path))
                continue
            try:
                shutil.rmtree(candidate.path)
            except OSError as e:
                logger.warning(f"Archived {candidate.session_id} but failed to remove {candidate.path}: {e}")
                result.failures.append(str(candidate.path))
            result.archived += 1
            size_mb = self.detect_cache_size()

        result.final_size_mb = size_mb
        if size_mb > threshold_mb:
            logger.warning(
                f"Cache for {self.node.node_id} still {size_mb}MB after archiving "
                f"{result.archived} memories (threshold {threshold_mb}MB)"
            )
        else:
            logger.info(f"Archived {result.archived} memories for {self.node.node_id}, cache now {size_mb}MB")
        return result

    def check_and_archive_if_needed(
        self,
        threshold_mb: float = DEFAULT_CACHE_THRESHOLD_MB,
        unused_days: int = DEFAULT_UNUSED_DAYS,
        now: Optional[datetime] = None,
    ) -> ArchiveCheckResult:
        """Archive only when the cache has grown past ``threshold_mb``."""
        size_mb = self.detect_cache_size()
        if size_mb <= threshold_mb:
            logger.debug(f"Cache for {self.node.node_id} is {size_mb}MB, under {threshold_mb}MB")
            return ArchiveCheckResult(
                triggered=False,
                initial_size_mb=size_mb,
                final_size_mb=size_mb,
                threshold_mb=threshold_mb,
            )
        return self.archive_until_below_threshold(threshold_mb, unused_days, now=now)


__all__ = [
    "SessionArchiver",
    "ArchiveCandidate",
    "ArchiveRunResult",
    "ArchiveCheckResult",
    "DEFAULT_UNUSED_DAYS",
    "DEFAULT_CACHE_THRESHOLD_MB",
]
