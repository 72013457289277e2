"""Tests for restore selection and preview."""

import pytest

from Vaultkeep.restore.service import RestoreService, parse_restore_date
from Vaultkeep.storage.archive import ArchiveEntry
from Vaultkeep.utils.errors import (
    ArchiveCorruptedError,
    InvalidDateError,
    RestoreFilterError,
    ValidationError,
)


def entry(session_id, summary="", content="", tags=None, metadata=None):
    return ArchiveEntry(
        session_id=session_id,
        node_id="test-vault",
        summary=summary,
        content=content,
        tags=tags or [],
        metadata=metadata or {},
    )


class TestParseRestoreDate:
    """Test date to month key resolution."""

    def test_month_key(self):
        """Test YYYY-MM passes through."""
        assert parse_restore_date("2025-01") == "2025-01"

    def test_full_date_truncated(self):
        """Test YYYY-MM-DD truncates to its month."""
        assert parse_restore_date("2025-01-15") == "2025-01"

    def test_natural_dates(self):
        """Test common human spellings."""
        assert parse_restore_date("January 15, 2025") == "2025-01"
        assert parse_restore_date("15 Jan 2025") == "2025-01"
        assert parse_restore_date("2025/03/04") == "2025-03"
        assert parse_restore_date("March 2024") == "2024-03"
        assert parse_restore_date("2025-07-04T10:30:00Z") == "2025-07"

    def test_iso_offset_keeps_written_month(self):
        """Test ISO datetimes with an offset resolve to the month as written."""
        assert parse_restore_date("2025-01-31T23:00:00-05:00") == "2025-01"
        assert parse_restore_date("2025-03-01T01:00:00+09:00") == "2025-03"

    def test_invalid_dates(self):
        """Test unrecognisable dates name the input."""
        for bad in ("not a date", "2025-13", "2025-02-30", ""):
            with pytest.raises(InvalidDateError):
                parse_restore_date(bad)

        with pytest.raises(InvalidDateError) as exc_info:
            parse_restore_date("someday")
        assert "someday" in str(exc_info.value)
        assert isinstance(exc_info.value, ValidationError)


class TestRestoreService:
    """Test restore filters."""

    @pytest.fixture(autouse=True)
    def populated(self, store):
        store.append_entries("2025-01", [
            entry("s1", summary="Python packaging notes", content="setup.py and wheels"),
            entry("s2", summary="Rust build", content="cargo workspaces"),
        ])
        store.append_entries("2025-02", [
            entry("s3", summary="Go modules", tags=["golang"]),
        ])
        self.store = store
        self.service = RestoreService(store)

    def test_search_matches_single_entry(self):
        """Test a case-insensitive search across archives."""
        selection = self.service.by_search("PYTHON")

        assert selection.found is True
        assert [c.session_id for c in selection.candidates] == ["s1"]
        assert selection.candidates[0].source == "2025-01"

    def test_search_matches_tags_and_content(self):
        """Test tags and content are searched too."""
        assert [c.session_id for c in self.service.by_search("golang").candidates] == ["s3"]
        assert [c.session_id for c in self.service.by_search("cargo").candidates] == ["s2"]

    def test_search_no_match(self):
        """Test a query that matches nothing."""
        selection = self.service.by_search("haskell")
        assert selection.found is False
        assert selection.count == 0

    def test_empty_search_rejected(self):
        """Test blank queries are invalid."""
        with pytest.raises(ValidationError):
            self.service.by_search("   ")

    def test_non_string_search_rejected(self):
        """Test a query that is not text is invalid."""
        for bad in (123, None, ["python"]):
            with pytest.raises(ValidationError):
                self.service.by_search(bad)

    def test_title_is_not_searched(self):
        """Test an entry whose title alone matches is not returned."""
        self.store.append_entries("2025-03", [
            ArchiveEntry(session_id="s4", node_id="test-vault", title="Haskell retrospective", summary="Notes"),
        ])

        selection = self.service.by_search("haskell")

        assert selection.found is False
        assert selection.count == 0

    def test_search_skips_corrupted_files(self):
        """Test corrupted archives are skipped in multi-file search."""
        self.store.archive_path("2025-03").write_text("garbage", encoding="utf-8")

        selection = self.service.by_search("python")

        assert [c.session_id for c in selection.candidates] == ["s1"]
        assert selection.skipped == [self.store.archive_path("2025-03")]

    def test_by_date(self):
        """Test a date selects its whole month."""
        selection = self.service.by_date("2025-01-20")

        assert selection.found is True
        assert selection.months == ["2025-01"]
        assert [c.session_id for c in selection.candidates] == ["s1", "s2"]

    def test_by_date_missing_month(self):
        """Test a month without an archive is reported, not raised."""
        selection = self.service.by_date("2024-06")

        assert selection.found is False
        assert selection.candidates == []
        assert selection.message == "No archive for 2024-06"

    def test_by_date_corrupted_month(self):
        """Test an explicitly requested corrupted month raises."""
        self.store.archive_path("2025-03").write_text("garbage", encoding="utf-8")

        with pytest.raises(ArchiveCorruptedError) as exc_info:
            self.service.by_date("2025-03")
        assert "memories-archive-2025-03.json" in str(exc_info.value)

    def test_by_all(self):
        """Test every valid entry is selected."""
        selection = self.service.by_all()
        assert [c.session_id for c in selection.candidates] == ["s1", "s2", "s3"]
        assert selection.months == ["2025-01", "2025-02"]

    def test_select_requires_exactly_one_filter(self):
        """Test missing or conflicting filters are rejected before anything else."""
        with pytest.raises(RestoreFilterError):
            self.service.select()
        with pytest.raises(RestoreFilterError):
            self.service.select(date="not a date", search="python")
        with pytest.raises(RestoreFilterError):
            self.service.select(search="python", all=True)

    def test_select_dispatch(self):
        """Test each filter routes to its selector."""
        assert self.service.select(date="2025-02").mode == "date"
        assert self.service.select(search="rust").mode == "search"
        assert self.service.select(all=True).count == 3


class TestRestorePreview:
    """Test restore previews."""

    def test_preview_counts_and_sample(self, store, now):
        """Test per-month counts, sample ranking and size estimate."""
        store.append_entries("2025-01", [
            entry(f"jan-{i}", summary=f"note {i}", content="x" * 10) for i in range(6)
        ])
        store.append_entries("2025-02", [
            entry("feb-best", summary="best", content="y" * 10, metadata={
                "timestamp": now.isoformat(),
                "quality": {"overall": 1.0, "relevanceToCommand": 1.0, "completeness": 1.0, "accuracy": 1.0},
                "usage": {"timesUsed": 20},
            }),
        ])
        service = RestoreService(store)

        preview = service.preview(service.by_all(), now=now)

        assert preview.total == 7
        assert preview.by_source == {"2025-01": 6, "2025-02": 1}
        assert preview.estimated_bytes == 70
        assert len(preview.sample) == 5
        assert preview.sample[0].session_id == "feb-best"
        assert preview.duplicates == {}
        assert preview.lines()[0] == "Found 7 memories to restore"

    def test_preview_reports_duplicates(self, store):
        """Test session ids archived in several months are surfaced."""
        store.append_entries("2025-01", [entry("dup", summary="first")])
        store.append_entries("2025-02", [entry("dup", summary="second")])
        service = RestoreService(store)

        preview = service.preview(service.by_all())

        assert preview.duplicates == {"dup": ["2025-01", "2025-02"]}
        assert preview.total == 2

    def test_preview_does_not_touch_files(self, store):
        """Test previewing leaves the archives unchanged."""
        store.append_entries("2025-01", [entry("s1", summary="python")])
        path = store.archive_path("2025-01")
        before = (path.read_bytes(), path.stat().st_mtime_ns)
        service = RestoreService(store)

        service.preview(service.select(search="python"))

        assert (path.read_bytes(), path.stat().st_mtime_ns) == before
        assert sorted(p.name for p in store.archives_dir.iterdir()) == ["memories-archive-2025-01.json"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
