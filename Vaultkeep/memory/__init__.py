from .quality import (
    MemoryQualityScore,
    UsageTracking,
    MemoryRecord,
    QualityRanker,
    recency_score,
    usage_weight,
    auto_quality_score,
    ranking_score,
    update_usage_tracking,
    rank_memories,
    filter_by_quality,
    load_top_memories,
)
from .archiver import SessionArchiver, ArchiveCandidate, ArchiveRunResult, ArchiveCheckResult

__all__ = [
    # Ranking
    "MemoryQualityScore",
    "UsageTracking",
    "MemoryRecord",
    "QualityRanker",
    "recency_score",
    "usage_weight",
    "auto_quality_score",
    "ranking_score",
    "update_usage_tracking",
    "rank_memories",
    "filter_by_quality",
    "load_top_memories",
    # Archival
    "SessionArchiver",
    "ArchiveCandidate",
    "ArchiveRunResult",
    "ArchiveCheckResult",
]
