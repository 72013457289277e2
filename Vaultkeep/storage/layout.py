"""On-disk layout of a vault."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..utils.errors import ValidationError

SESSIONS_DIRNAME = "sessions"
BACKUPS_DIRNAME = "backups"
ARCHIVES_DIRNAME = ".archives"


@dataclass(frozen=True)
class VaultNode:
    """A vault identifier and the root directory its storage hangs off.

    ``<root>/sessions/<node_id>/YYYY/MM/DD/<sessionId>/`` holds sessions,
    ``<root>/sessions/<node_id>/.archives/`` the monthly archives and
    ``<root>/backups/`` the backup tarballs.
    """
    node_id: str
    root: Path  # str accepted, normalised in __post_init__

    def __post_init__(self) -> None:
        if not self.node_id or "/" in self.node_id or self.node_id in (".", ".."):
            raise ValidationError(f"Invalid vault id: {self.node_id!r}", context={"node_id": self.node_id})
        object.__setattr__(self, "root", Path(self.root))

    @property
    def sessions_root(self) -> Path:
        return self.root / SESSIONS_DIRNAME

    @property
    def sessions_dir(self) -> Path:
        return self.sessions_root / self.node_id

    @property
    def archives_dir(self) -> Path:
        return self.sessions_dir / ARCHIVES_DIRNAME

    @property
    def backups_dir(self) -> Path:
        return self.root / BACKUPS_DIRNAME

    def session_path(self, year: int, month: int, day: int, session_id: str) -> Path:
        return self.sessions_dir / f"{year:04d}" / f"{month:02d}" / f"{day:02d}" / session_id


__all__ = ["VaultNode", "SESSIONS_DIRNAME", "BACKUPS_DIRNAME", "ARCHIVES_DIRNAME"]
