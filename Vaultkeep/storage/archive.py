"""Monthly memory archive files.

One JSON file per vault per month, ``.archives/memories-archive-YYYY-MM.json``.
Files are merged into, never rewritten from scratch. A file that cannot be
parsed is skipped during multi-file scans and is fatal only when it was
requested explicitly.

There is no file locking: one writer per vault at a time.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError as SchemaError, field_validator
from pydantic.alias_generators import to_camel

from ..utils.errors import ArchiveCorruptedError, ArchiveError, ValidationError
from ..utils.timeutils import iso_now

logger = logging.getLogger("VAULTKEEP.Archive")

ARCHIVE_PREFIX = "memories-archive-"
ARCHIVE_SUFFIX = ".json"
ARCHIVE_NAME_RE = re.compile(r"^memories-archive-(\d{4}-(?:0[1-9]|1[0-2]))\.json$")
MONTH_KEY_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class ArchiveEntry(BaseModel):
    """A memory moved out of active storage. Immutable once written."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    session_id: str = Field(..., min_length=1)
    node_id: str = ""
    title: Optional[str] = None
    summary: str = ""
    tags: List[str] = Field(default_factory=list)
    content: str = ""
    archived_at: str = Field(default_factory=iso_now)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("summary", "content", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("tags", mode="before")
    @classmethod
    def normalise_tags(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [t.strip() for t in v.split(",") if t.strip()]
        return v

    def search_text(self) -> str:
        """Lower-cased summary, content and tags; restore searches match against this."""
        return " ".join([self.summary, self.content, " ".join(self.tags)]).lower()


class ArchiveFile(BaseModel):
    """Contents of one monthly archive file."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    entries: List[ArchiveEntry] = Field(default_factory=list)
    created_at: str = Field(default_factory=iso_now)
    last_updated: str = Field(default_factory=iso_now)

    def session_ids(self) -> List[str]:
        return [e.session_id for e in self.entries]

    def to_json(self) -> str:
        return json.dumps(self.model_dump(by_alias=True), indent=2, ensure_ascii=False)


@dataclass
class ArchiveScan:
    """Result of reading every archive file of a vault."""
    archives: List[Tuple[str, ArchiveFile]] = field(default_factory=list)
    skipped: List[Path] = field(default_factory=list)

    def entries(self) -> Iterator[Tuple[str, ArchiveEntry]]:
        """Yield ``(month_key, entry)`` for every valid entry, oldest month first."""
        for month, archive in self.archives:
            for entry in archive.entries:
                yield month, entry

    @property
    def entry_count(self) -> int:
        return sum(len(a.entries) for _, a in self.archives)


def validate_month_key(month: str) -> str:
    if not isinstance(month, str) or not MONTH_KEY_RE.match(month):
        raise ValidationError(f"Invalid month key: {month!r} (expected YYYY-MM)", context={"month": month})
    return month


def archive_filename(month: str) -> str:
    return f"{ARCHIVE_PREFIX}{validate_month_key(month)}{ARCHIVE_SUFFIX}"


def parse_archive(raw: str, path: Union[str, Path]) -> ArchiveFile:
    """Parse archive JSON; invalid entries are dropped with a warning.

    Raises ArchiveCorruptedError when the document itself is unusable.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ArchiveCorruptedError(path, f"invalid JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("entries"), list):
        raise ArchiveCorruptedError(path, "missing 'entries' list")

    entries: List[ArchiveEntry] = []
    for index, raw_entry in enumerate(data["entries"]):
        try:
            entries.append(ArchiveEntry.model_validate(raw_entry))
        except SchemaError as e:
            logger.warning(f"Skipping invalid entry #{index} in {path}: {e.error_count()} validation error(s)")

    now = iso_now()
    created_at = data.get("createdAt") if isinstance(data.get("createdAt"), str) else now
    last_updated = data.get("lastUpdated") if isinstance(data.get("lastUpdated"), str) else created_at
    return ArchiveFile(entries=entries, created_at=created_at, last_updated=last_updated)


class ArchiveStore:
    """Reads and writes the monthly archive files of one vault."""

    def __init__(self, archives_dir: Union[str, Path]):
        self.archives_dir = Path(archives_dir)

    def __repr__(self) -> str:
        return f"ArchiveStore({str(self.archives_dir)!r})"

    def archive_path(self, month: str) -> Path:
        return self.archives_dir / archive_filename(month)

    def exists(self) -> bool:
        return self.archives_dir.is_dir()

    def list_months(self) -> List[str]:
        """Month keys that have an archive file, oldest first."""
        if not self.archives_dir.is_dir():
            return []
        months = []
        try:
            for entry in os.scandir(self.archives_dir):
                match = ARCHIVE_NAME_RE.match(entry.name)
                if match and entry.is_file():
                    months.append(match.group(1))
        except OSError as e:
            logger.warning(f"Cannot list archives in {self.archives_dir}: {e}")
            return []
        return sorted(months)

    def read_month(self, month: str) -> Optional[ArchiveFile]:
        """Load one month explicitly.

        Returns None when there is no archive for that month; raises
        ArchiveCorruptedError naming the file when it cannot be parsed.
        """
        path = self.archive_path(month)
        if not path.is_file():
            return None
        try:
            raw = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ArchiveCorruptedError(path, "not valid UTF-8") from e
        except OSError as e:
            raise ArchiveError(f"Failed to read archive {path}: {e}", context={"path": str(path)}) from e
        return parse_archive(raw, path)

    def scan(self) -> ArchiveScan:
        """Read every archive file, skipping (and reporting) corrupted ones."""
        result = ArchiveScan()
        for month in self.list_months():
            try:
                archive = self.read_month(month)
            except ArchiveError as e:
                logger.warning(f"Skipped corrupted archive: {e.message}")
                result.skipped.append(self.archive_path(month))
                continue
            if archive is not None:
                result.archives.append((month, archive))
        return result

    def append_entries(self, month: str, entries: Iterable[ArchiveEntry]) -> int:
        """Merge entries into a month's archive, creating it on first use.

        Entries whose ``sessionId`` is already present in that month are not
        added again. A corrupted existing file is never overwritten.

        Returns:
            Number of entries actually added
        """
        existing = self.read_month(month)
        archive = existing or ArchiveFile()

        known = set(archive.session_ids())
        added: List[ArchiveEntry] = []
        for entry in entries:
            if entry.session_id in known:
                logger.debug(f"Session {entry.session_id} already archived in {month}, skipping")
                continue
            known.add(entry.session_id)
            added.append(entry)

        if not added and existing is not None:
            return 0

        updated = archive.model_copy(update={
            "entries": archive.entries + added,
            "last_updated": iso_now(),
        })
        self._write(self.archive_path(month), updated)
        logger.info(f"Archived {len(added)} entries into {month} ({len(updated.entries)} total)")
        return len(added)

    def _write(self, path: Path, archive: ArchiveFile) -> None:
        """Write atomically: temp file first, then rename over the target."""
        temp_path = path.with_suffix(".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(archive.to_json(), encoding="utf-8")
            temp_path.replace(path)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise ArchiveError(f"Failed to write archive {path}: {e}", context={"path": str(path)}) from e

    def find_entry(self, session_id: str) -> Optional[Tuple[str, ArchiveEntry]]:
        """First ``(month, entry)`` with this session id, scanning oldest month first."""
        for month, entry in self.scan().entries():
            if entry.session_id == session_id:
                return month, entry
        return None

    def find_duplicates(self) -> Dict[str, List[str]]:
        """Session ids archived in more than one month, with the months they appear in.

        Which copy is canonical is undefined; callers decide.
        """
        seen: Dict[str, List[str]] = {}
        for month, entry in self.scan().entries():
            months = seen.setdefault(entry.session_id, [])
            if month not in months:
                months.append(month)
        return {sid: months for sid, months in seen.items() if len(months) > 1}

    def total_size_bytes(self) -> int:
        total = 0
        for month in self.list_months():
            try:
                total += self.archive_path(month).stat().st_size
            except OSError:
                continue
        return total


__all__ = [
    "ArchiveEntry",
    "ArchiveFile",
    "ArchiveScan",
    "ArchiveStore",
    "archive_filename",
    "parse_archive",
    "validate_month_key",
]
