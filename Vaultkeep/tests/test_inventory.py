"""Tests for session inventory and storage measurement."""

import pytest

from Vaultkeep.config.settings import CleanupConfig, SessionRetentionConfig
from Vaultkeep.storage import inventory
from Vaultkeep.storage.inventory import (
    bytes_to_mb,
    calculate_directory_size,
    calculate_node_storage,
    get_node_storage_info,
    list_sessions,
    percent_of,
    storage_status,
)
from Vaultkeep.storage.layout import VaultNode
from Vaultkeep.utils.errors import ValidationError

MB = 1024 * 1024


class TestVaultNode:
    """Test vault layout paths."""

    def test_derived_paths(self, tmp_path):
        """Test sessions, archives and backups directories."""
        node = VaultNode("alpha", str(tmp_path))
        assert node.root == tmp_path
        assert node.sessions_dir == tmp_path / "sessions" / "alpha"
        assert node.archives_dir == tmp_path / "sessions" / "alpha" / ".archives"
        assert node.backups_dir == tmp_path / "backups"
        assert node.session_path(2025, 1, 5, "s1") == node.sessions_dir / "2025" / "01" / "05" / "s1"

    def test_invalid_node_id(self, tmp_path):
        """Test ids that would escape the sessions tree are rejected."""
        for bad in ("", "..", "a/b"):
            with pytest.raises(ValidationError):
                VaultNode(bad, tmp_path)


class TestListSessions:
    """Test session enumeration."""

    def test_missing_directory(self, vault):
        """Test a vault without sessions yields nothing."""
        assert list_sessions(vault) == []

    def test_oldest_first(self, vault, make_session, now):
        """Test sessions are sorted by descending age."""
        for age in (3, 40, 0, 120):
            make_session(age)

        sessions = list_sessions(vault, now=now)

        assert [s.age_days for s in sessions] == [120, 40, 3, 0]
        assert sessions[0].session_id == "session-0120"
        assert sessions[-1].date_string == now.date().isoformat()

    def test_ties_broken_by_path(self, vault, make_session, now):
        """Test same-day sessions are ordered by path."""
        make_session(5, session_id="b")
        make_session(5, session_id="a")

        assert [s.session_id for s in list_sessions(vault, now=now)] == ["a", "b"]

    def test_skips_malformed_entries(self, vault, make_session, now):
        """Test non-matching names, impossible dates and files are ignored."""
        make_session(1, session_id="good")
        base = vault.sessions_dir
        (base / "20x5" / "01" / "01" / "s").mkdir(parents=True)
        (base / "2025" / "1" / "01" / "s").mkdir(parents=True)
        (base / "2025" / "02" / "30" / "s").mkdir(parents=True)
        (base / "2025" / "13" / "01" / "s").mkdir(parents=True)
        (base / "2025" / "01" / "01").mkdir(parents=True, exist_ok=True)
        (base / "2025" / "01" / "01" / "stray.txt").write_text("not a session")
        vault.archives_dir.mkdir(parents=True, exist_ok=True)

        sessions = list_sessions(vault, now=now)

        assert [s.session_id for s in sessions] == ["good"]

    def test_future_dates_have_zero_age(self, vault, make_session, now):
        """Test age is never negative."""
        make_session(-3)
        assert list_sessions(vault, now=now)[0].age_days == 0


class TestDirectorySize:
    """Test recursive size measurement."""

    def test_sums_nested_files(self, tmp_path):
        """Test sizes of nested files are added up."""
        (tmp_path / "a" / "b").mkdir(parents=True)
        (tmp_path / "a" / "one.bin").write_bytes(b"1" * 100)
        (tmp_path / "a" / "b" / "two.bin").write_bytes(b"2" * 250)

        assert calculate_directory_size(tmp_path / "a") == 350

    def test_missing_path_is_zero(self, tmp_path):
        """Test a missing path measures zero instead of raising."""
        assert calculate_directory_size(tmp_path / "nope") == 0

    def test_single_file(self, tmp_path):
        """Test a file path measures its own size."""
        target = tmp_path / "f.bin"
        target.write_bytes(b"x" * 42)
        assert calculate_directory_size(target) == 42


class TestNodeStorage:
    """Test storage usage reports."""

    def test_usage_partitions_sessions(self, vault, make_session, now):
        """Test active/archived split, estimate ratio and percentage."""
        make_session(5, size=MB)
        make_session(40, size=MB)
        vault.backups_dir.mkdir(parents=True)
        (vault.backups_dir / "vault-1.tar.gz").write_bytes(b"b" * MB)

        usage = calculate_node_storage(vault, max_storage_mb=10, now=now)

        assert usage.active_sessions.count == 1
        assert usage.active_sessions.size_mb == 1.0
        assert usage.archived_sessions.count == 1
        assert usage.archived_sessions.size_mb == 0.3
        assert usage.archived_sessions.estimated is True
        assert usage.sessions_size_mb == 2.0
        assert usage.backups_size_mb == 1.0
        assert usage.total_size_mb == 3.0
        assert usage.percent_used == 30
        assert usage.max_storage_mb == 10

    def test_thirty_days_is_still_active(self, vault, make_session, now):
        """Test the active bucket includes sessions exactly 30 days old."""
        make_session(30)
        make_session(31)

        usage = calculate_node_storage(vault, max_storage_mb=500, now=now)

        assert usage.active_sessions.count == 1
        assert usage.archived_sessions.count == 1

    def test_failure_degrades_to_zero(self, vault, make_session, now, monkeypatch):
        """Test an internal failure returns an all-zero usage."""
        make_session(1)

        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(inventory, "list_sessions", broken)
        usage = calculate_node_storage(vault, max_storage_mb=250, now=now)

        assert usage.total_size_mb == 0.0
        assert usage.percent_used == 0
        assert usage.max_storage_mb == 250

    def test_percent_helpers(self):
        """Test percentage rounding and zero maximum."""
        assert percent_of(50, 200) == 25
        assert percent_of(1, 3) == 33
        assert percent_of(10, 0) == 0
        assert bytes_to_mb(MB + MB // 2) == 1.5

    def test_storage_status_thresholds(self):
        """Test ok, warning and critical classification."""
        assert storage_status(10, 80) == "ok"
        assert storage_status(80, 80) == "warning"
        assert storage_status(95, 80) == "warning"
        assert storage_status(96, 80) == "critical"


class TestNodeStorageInfo:
    """Test the combined storage report."""

    def test_counts_what_cleanup_could_reclaim(self, vault, make_session, make_backup, now):
        """Test old, archivable and stale backup counts."""
        config = CleanupConfig(sessions=SessionRetentionConfig(retention_days=90, archive_after_days=30))
        make_session(10)
        make_session(45)
        make_session(60)
        make_session(120)
        make_backup("old.tar.gz", mtime=now.timestamp() - 60 * 86400)
        make_backup("new.tar.gz", mtime=now.timestamp() - 86400)

        info = get_node_storage_info(vault, config, now=now)

        assert info.node_id == "test-vault"
        assert info.old_sessions == 1
        assert info.archivable_sessions == 2
        assert info.stale_backups == 1
        assert info.status == "ok"

        data = info.to_dict()
        assert data["can_clean"] == {"old_sessions": 1, "archivable_sessions": 2, "stale_backups": 1}
        assert "old_sessions" not in data

    def test_disk_free_reported(self, vault, now):
        """Test free disk space is measured even before the vault exists."""
        info = get_node_storage_info(vault, CleanupConfig(), now=now)
        assert info.disk_free_mb is None or info.disk_free_mb >= 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
