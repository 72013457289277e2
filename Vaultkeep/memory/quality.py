"""Memory quality scoring and ranking.

Ranks retained memories by a weighted combination of:
- Recency: 1.0 within a day, linear decay to 0.1 at ``max_age_days``
- Quality: the assigned ``overall`` score, or a heuristic one when unscored
- Usage: 0.0 when never used, 1.0 from 10 uses on

With the default weights an old, high-quality memory outranks a recent,
low-quality one, and heavy usage lifts a memory above an otherwise
identical, rarely used one.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError as SchemaError
from pydantic.alias_generators import to_camel

from ..config.settings import DEFAULT_RANKING_CONFIG, RankingConfig, validate_ranking_config
from ..utils.timeutils import Timestamp, age_in_days, parse_timestamp, utc_now

logger = logging.getLogger("VAULTKEEP.Quality")

RECENCY_FLOOR = 0.1
USAGE_SATURATION = 10
MAX_RECENT_ACCESSES = 10

AccessTrend = Literal["stable", "increasing", "decreasing"]


class MemoryQualityScore(BaseModel):
    """Quality of a memory; every component lies within [0, 1]."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    overall: float = Field(..., ge=0.0, le=1.0)
    relevance_to_command: float = Field(..., ge=0.0, le=1.0)
    completeness: float = Field(..., ge=0.0, le=1.0)
    accuracy: float = Field(..., ge=0.0, le=1.0)


class UsageTracking(BaseModel):
    """How often and how recently a memory has been surfaced."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    times_used: int = Field(0, ge=0)
    last_used: Optional[str] = None
    access_trend: AccessTrend = "stable"
    recent_accesses: List[str] = Field(default_factory=list)


@dataclass
class MemoryRecord:
    """The rankable view of one memory."""
    session_id: str
    timestamp: str
    node_id: str = ""
    summary: str = ""
    content: str = ""
    tags: List[str] = field(default_factory=list)
    command: str = ""
    quality: Optional[MemoryQualityScore] = None
    usage: Optional[UsageTracking] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_archive_entry(cls, entry: Any) -> "MemoryRecord":
        """Build a record from an ArchiveEntry; quality/usage come from its metadata."""
        metadata = dict(entry.metadata or {})
        return cls(
            session_id=entry.session_id,
            node_id=entry.node_id,
            timestamp=str(metadata.get("timestamp") or entry.archived_at),
            summary=entry.summary or entry.title or "",
            content=entry.content,
            tags=list(entry.tags),
            command=str(metadata.get("command") or ""),
            quality=_parse_optional(MemoryQualityScore, metadata.get("quality"), entry.session_id),
            usage=_parse_optional(UsageTracking, metadata.get("usage"), entry.session_id),
            metadata=metadata,
        )

    @classmethod
    def from_session_metadata(
        cls,
        metadata: Mapping[str, Any],
        content: str = "",
        session_id: Optional[str] = None,
        node_id: str = "",
        fallback_timestamp: Optional[str] = None,
    ) -> "MemoryRecord":
        """Build a record from a session's ``metadata.json`` and ``memory.md``."""
        sid = str(session_id or metadata.get("sessionId") or "")
        tags = metadata.get("tags") or []
        return cls(
            session_id=sid,
            node_id=str(metadata.get("nodeId") or node_id),
            timestamp=str(metadata.get("timestamp") or fallback_timestamp or ""),
            summary=str(metadata.get("summary") or metadata.get("title") or ""),
            content=content,
            tags=[str(t) for t in tags] if isinstance(tags, list) else [],
            command=str(metadata.get("command") or ""),
            quality=_parse_optional(MemoryQualityScore, metadata.get("quality"), sid),
            usage=_parse_optional(UsageTracking, metadata.get("usage"), sid),
            metadata=dict(metadata),
        )


def _parse_optional(model: Any, raw: Any, session_id: str) -> Any:
    if raw is None:
        return None
    try:
        return model.model_validate(raw)
    except SchemaError:
        logger.debug(f"Ignoring malformed {model.__name__} on {session_id}")
        return None


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def recency_score(timestamp: Timestamp, max_age_days: int = 365, now: Optional[datetime] = None) -> float:
    """Score in [0.1, 1.0]; 1.0 under a day old, 0.1 at ``max_age_days`` and beyond.

    Unparseable timestamps score the floor.
    """
    try:
        age = age_in_days(timestamp, now)
    except (TypeError, ValueError):
        logger.debug(f"Unparseable memory timestamp: {timestamp!r}")
        return RECENCY_FLOOR

    if age < 1:
        return 1.0
    if max_age_days <= 1 or age >= max_age_days:
        return RECENCY_FLOOR
    score = 1.0 - ((age - 1) / (max_age_days - 1)) * (1.0 - RECENCY_FLOOR)
    return _clamp(score, RECENCY_FLOOR, 1.0)


def usage_weight(times_used: int) -> float:
    """0.0 when unused, linear to 1.0 at 10 uses, flat after."""
    if times_used <= 0:
        return 0.0
    return min(times_used / USAGE_SATURATION, 1.0)


class QualityHeuristics:
    """Deterministic quality estimate for memories nobody has scored yet."""

    ERROR_MARKERS = (
        "traceback", "exception", "error:", "failed", "stack trace", "not found",
    )
    SECTION_RE = re.compile(r"^#{1,3}\s+\S", re.MULTILINE)
    ERRORS_SECTION_RE = re.compile(r"^#{1,3}\s+errors?\b", re.IGNORECASE | re.MULTILINE)

    @staticmethod
    def completeness(record: MemoryRecord) -> float:
        filled = sum(1 for part in (record.summary, record.content, record.command) if part and part.strip())
        filled += 1 if record.tags else 0
        score = filled / 4
        # Structured notes (several markdown sections) are more complete
        sections = len(QualityHeuristics.SECTION_RE.findall(record.content or ""))
        if sections >= 3:
            score += 0.1
        if len((record.content or "").split()) < 10:
            score -= 0.1
        return round(_clamp(score), 3)

    @staticmethod
    def relevance(record: MemoryRecord) -> float:
        score = 0.4
        score += min(len(record.tags), 3) * 0.15
        if record.command:
            score += 0.15
        return round(_clamp(score), 3)

    @staticmethod
    def accuracy(record: MemoryRecord) -> float:
        text = (record.content or "").lower()
        score = 0.9
        if QualityHeuristics.ERRORS_SECTION_RE.search(record.content or ""):
            score -= 0.2
        markers = sum(1 for m in QualityHeuristics.ERROR_MARKERS if m in text)
        if markers >= 3:
            score -= 0.3
        elif markers >= 1:
            score -= 0.1
        return round(_clamp(score), 3)


def auto_quality_score(record: MemoryRecord) -> MemoryQualityScore:
    """Heuristic quality for an unscored memory. Same input, same output."""
    completeness = QualityHeuristics.completeness(record)
    relevance = QualityHeuristics.relevance(record)
    accuracy = QualityHeuristics.accuracy(record)
    return MemoryQualityScore(
        overall=round((completeness + relevance + accuracy) / 3, 3),
        relevance_to_command=relevance,
        completeness=completeness,
        accuracy=accuracy,
    )


def ranking_score(
    record: MemoryRecord,
    config: RankingConfig = DEFAULT_RANKING_CONFIG,
    now: Optional[datetime] = None,
) -> float:
    """Weighted mean of recency, quality and usage, in [0, 1]."""
    recency = recency_score(record.timestamp, config.max_age_days, now=now)
    quality = record.quality.overall if record.quality is not None else auto_quality_score(record).overall
    usage = usage_weight(record.usage.times_used) if record.usage is not None else 0.0

    total = config.total_weight
    if total <= 0:
        return 0.0
    score = (
        recency * config.recency_weight
        + quality * config.quality_weight
        + usage * config.usage_weight
    ) / total
    return _clamp(score)


def _trend(accesses: Sequence[str]) -> AccessTrend:
    """Compare the latest gap between accesses with the average of the earlier ones."""
    if len(accesses) < 3:
        return "stable"
    try:
        times = [parse_timestamp(a) for a in accesses]
    except ValueError:
        return "stable"
    gaps = [(b - a).total_seconds() for a, b in zip(times, times[1:])]
    latest, earlier = gaps[-1], gaps[:-1]
    baseline = sum(earlier) / len(earlier)
    if baseline <= 0:
        return "stable"
    if latest < baseline * 0.5:
        return "increasing"
    if latest > baseline * 2.0:
        return "decreasing"
    return "stable"


def update_usage_tracking(existing: Optional[UsageTracking] = None, now: Optional[datetime] = None) -> UsageTracking:
    """Record one more use of a memory."""
    now_iso = (now or utc_now()).isoformat().replace("+00:00", "Z")
    previous = existing.times_used if existing is not None else 0
    recent = list(existing.recent_accesses) if existing is not None else []
    if not recent and existing is not None and existing.last_used:
        recent = [existing.last_used]
    recent = (recent + [now_iso])[-MAX_RECENT_ACCESSES:]

    return UsageTracking(
        times_used=previous + 1,
        last_used=now_iso,
        access_trend=_trend(recent),
        recent_accesses=recent,
    )


def rank_memories(
    memories: Sequence[MemoryRecord],
    config: RankingConfig = DEFAULT_RANKING_CONFIG,
    now: Optional[datetime] = None,
) -> List[MemoryRecord]:
    """Highest score first; ties keep their input order."""
    now = now or utc_now()
    scored = [(ranking_score(m, config, now=now), m) for m in memories]
    return [m for _, m in sorted(scored, key=lambda pair: pair[0], reverse=True)]


def filter_by_quality(memories: Sequence[MemoryRecord], min_threshold: float = 0.3) -> List[MemoryRecord]:
    """Keep unscored memories and those whose overall quality meets the threshold."""
    return [m for m in memories if m.quality is None or m.quality.overall >= min_threshold]


def load_top_memories(
    memories: Sequence[MemoryRecord],
    limit: int = 3,
    config: RankingConfig = DEFAULT_RANKING_CONFIG,
    now: Optional[datetime] = None,
) -> List[MemoryRecord]:
    """Filter by quality, rank, and keep the first ``limit``."""
    if limit <= 0:
        return []
    filtered = filter_by_quality(memories, config.min_quality_score)
    return rank_memories(filtered, config, now=now)[:limit]


class QualityRanker:
    """Ranking functions bound to one RankingConfig."""

    def __init__(self, config: RankingConfig = DEFAULT_RANKING_CONFIG):
        self.config = validate_ranking_config(config)

    def score(self, record: MemoryRecord, now: Optional[datetime] = None) -> float:
        return ranking_score(record, self.config, now=now)

    def rank(self, memories: Sequence[MemoryRecord], now: Optional[datetime] = None) -> List[MemoryRecord]:
        return rank_memories(memories, self.config, now=now)

    def filter(self, memories: Sequence[MemoryRecord], min_threshold: Optional[float] = None) -> List[MemoryRecord]:
        threshold = self.config.min_quality_score if min_threshold is None else min_threshold
        return filter_by_quality(memories, threshold)

    def top(self, memories: Sequence[MemoryRecord], limit: int = 3, now: Optional[datetime] = None) -> List[MemoryRecord]:
        return load_top_memories(memories, limit, self.config, now=now)


__all__ = [
    "MemoryQualityScore",
    "UsageTracking",
    "MemoryRecord",
    "QualityHeuristics",
    "QualityRanker",
    "recency_score",
    "usage_weight",
    "auto_quality_score",
    "ranking_score",
    "update_usage_tracking",
    "rank_memories",
    "filter_by_quality",
    "load_top_memories",
]
