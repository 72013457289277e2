from .cleanup import (
    CleanupExecutor,
    CleanupResult,
    RetentionPlan,
    SessionState,
    select_for_removal,
    parse_duration,
    format_duration,
)

__all__ = [
    "CleanupExecutor",
    "CleanupResult",
    "RetentionPlan",
    "SessionState",
    "select_for_removal",
    "parse_duration",
    "format_duration",
]
