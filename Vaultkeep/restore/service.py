"""Locate archived memories for restoration.

A restore request names exactly one filter: a date (resolved to its month's
archive file), a free-text search over every archive file, or everything.
Selecting and previewing never touch the filesystem beyond reading archives;
writing restored sessions back is up to the caller.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from ..config.settings import DEFAULT_RANKING_CONFIG, RankingConfig
from ..memory.quality import MemoryRecord, QualityRanker
from ..storage.archive import ArchiveEntry, ArchiveStore
from ..utils.errors import InvalidDateError, RestoreFilterError, ValidationError

logger = logging.getLogger("VAULTKEEP.Restore")

PREVIEW_SAMPLE_SIZE = 5

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
_DAY_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

# Accepted spellings for dates that are neither YYYY-MM nor ISO
NATURAL_DATE_FORMATS = (
    "%B %d, %Y",   # January 15, 2025
    "%b %d, %Y",   # Jan 15, 2025
    "%B %d %Y",
    "%b %d %Y",
    "%d %B %Y",    # 15 January 2025
    "%d %b %Y",    # 15 Jan 2025
    "%Y/%m/%d",    # 2025/01/15
    "%m/%d/%Y",    # 01/15/2025
    "%B %Y",       # January 2025
    "%b %Y",       # Jan 2025
)


def parse_restore_date(value: str) -> str:
    """Resolve a date string to the ``YYYY-MM`` key of its archive file.

    Raises:
        InvalidDateError: when the string is not a recognisable date
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidDateError(str(value))
    raw = value.strip()

    match = _MONTH_RE.match(raw)
    if match:
        if 1 <= int(match.group(2)) <= 12:
            return raw
        raise InvalidDateError(value)

    match = _DAY_RE.match(raw)
    if match:
        try:
            datetime(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            raise InvalidDateError(value) from None
        return f"{match.group(1)}-{match.group(2)}"

    # The month is taken as written; no conversion to UTC
    try:
        parsed = datetime.fromisoformat(raw[:-1] + "+00:00" if raw.endswith("Z") else raw)
        return f"{parsed.year:04d}-{parsed.month:02d}"
    except ValueError:
        pass

    for fmt in NATURAL_DATE_FORMATS:
        try:
            parsed = datetime.strptime(raw, fmt)
        except ValueError:
            continue
        return f"{parsed.year:04d}-{parsed.month:02d}"

    raise InvalidDateError(value)


@dataclass
class RestoreCandidate:
    """An archived memory matching a restore filter."""
    session_id: str
    node_id: str
    summary: str
    source: str  # month key of the archive file it came from
    entry: ArchiveEntry

    @classmethod
    def from_entry(cls, month: str, entry: ArchiveEntry) -> "RestoreCandidate":
        return cls(
            session_id=entry.session_id,
            node_id=entry.node_id,
            summary=entry.summary or entry.title or "",
            source=month,
            entry=entry,
        )

    def to_memory_record(self) -> MemoryRecord:
        return MemoryRecord.from_archive_entry(self.entry)


@dataclass
class RestoreSelection:
    mode: str  # "date", "search" or "all"
    months: List[str] = field(default_factory=list)
    candidates: List[RestoreCandidate] = field(default_factory=list)
    found: bool = False
    message: str = ""
    skipped: List[Path] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.candidates)


@dataclass
class RestorePreview:
    """What a restore would bring back. Computed without side effects."""
    total: int = 0
    by_source: Dict[str, int] = field(default_factory=dict)
    estimated_bytes: int = 0
    sample: List[RestoreCandidate] = field(default_factory=list)
    duplicates: Dict[str, List[str]] = field(default_factory=dict)

    def lines(self) -> List[str]:
        """Plain-text summary suitable for a confirmation prompt."""
        out = [f"Found {self.total} memories to restore"]
        for month, count in self.by_source.items():
            out.append(f"  {month}: {count}")
        for candidate in self.sample:
            out.append(f"  - {candidate.session_id}: {candidate.summary[:80]}")
        if self.total > len(self.sample):
            out.append(f"  ... and {self.total - len(self.sample)} more")
        if self.duplicates:
            out.append(f"Warning: {len(self.duplicates)} session(s) appear in several archive files")
        return out


class RestoreService:
    """Selects archived memories of one vault by date, search text or all."""

    def __init__(self, store: ArchiveStore, ranking_config: RankingConfig = DEFAULT_RANKING_CONFIG):
        self.store = store
        self.ranker = QualityRanker(ranking_config)

    def by_date(self, value: str) -> RestoreSelection:
        """Every entry of the month ``value`` falls in.

        A missing month is not an error; a corrupted one raises
        ArchiveCorruptedError naming the file.
        """
        month = parse_restore_date(value)
        archive = self.store.read_month(month)
        if archive is None:
            logger.info(f"No archive for {month} in {self.store.archives_dir}")
            return RestoreSelection(mode="date", months=[month], found=False, message=f"No archive for {month}")

        candidates = [RestoreCandidate.from_entry(month, e) for e in archive.entries]
        return RestoreSelection(
            mode="date",
            months=[month],
            candidates=candidates,
            found=True,
            message=f"{len(candidates)} memories in {month}",
        )

    def by_search(self, query: str) -> RestoreSelection:
        """Entries whose summary, content or tags contain ``query`` (case-insensitive)."""
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("Search query must not be empty", context={"query": query})
        needle = query.strip().lower()

        scan = self.store.scan()
        candidates = [
            RestoreCandidate.from_entry(month, entry)
            for month, entry in scan.entries()
            if needle in entry.search_text()
        ]
        logger.info(f"Search {query!r} matched {len(candidates)} of {scan.entry_count} archived memories")
        return RestoreSelection(
            mode="search",
            months=[month for month, _ in scan.archives],
            candidates=candidates,
            found=bool(candidates),
            message=f"{len(candidates)} memories match {query!r}" if candidates else f"No memories match {query!r}",
            skipped=scan.skipped,
        )

    def by_all(self) -> RestoreSelection:
        scan = self.store.scan()
        candidates = [RestoreCandidate.from_entry(month, entry) for month, entry in scan.entries()]
        return RestoreSelection(
            mode="all",
            months=[month for month, _ in scan.archives],
            candidates=candidates,
            found=bool(candidates),
            message=f"{len(candidates)} archived memories" if candidates else "No archived memories",
            skipped=scan.skipped,
        )

    def select(self, date: Optional[str] = None, search: Optional[str] = None, all: bool = False) -> RestoreSelection:
        """Dispatch to exactly one filter.

        Raises:
            RestoreFilterError: when no filter or more than one is given
        """
        given = [name for name, present in (
            ("date", date is not None),
            ("search", search is not None),
            ("all", bool(all)),
        ) if present]
        if len(given) != 1:
            raise RestoreFilterError(
                "Specify exactly one of date, search or all"
                + (f" (got {', '.join(given)})" if given else ""),
                context={"filters": given},
            )

        if date is not None:
            return self.by_date(date)
        if search is not None:
            return self.by_search(search)
        return self.by_all()

    def preview(
        self,
        selection: RestoreSelection,
        sample_size: int = PREVIEW_SAMPLE_SIZE,
        now: Optional[datetime] = None,
    ) -> RestorePreview:
        """Counts per source month, estimated size and the best-ranked samples."""
        by_source = Counter(c.source for c in selection.candidates)

        sources_per_session: Dict[str, List[str]] = {}
        for candidate in selection.candidates:
            months = sources_per_session.setdefault(candidate.session_id, [])
            if candidate.source not in months:
                months.append(candidate.source)

        scored = [(self.ranker.score(c.to_memory_record(), now=now), c) for c in selection.candidates]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        sample = [c for _, c in scored[:max(0, sample_size)]]

        return RestorePreview(
            total=selection.count,
            by_source=dict(sorted(by_source.items())),
            estimated_bytes=sum(len(c.entry.content.encode("utf-8")) for c in selection.candidates),
            sample=sample,
            duplicates={sid: months for sid, months in sources_per_session.items() if len(months) > 1},
        )


__all__ = [
    "RestoreService",
    "RestoreSelection",
    "RestoreCandidate",
    "RestorePreview",
    "parse_restore_date",
]
