from .service import (
    RestoreService,
    RestoreSelection,
    RestoreCandidate,
    RestorePreview,
    parse_restore_date,
)

__all__ = [
    "RestoreService",
    "RestoreSelection",
    "RestoreCandidate",
    "RestorePreview",
    "parse_restore_date",
]
