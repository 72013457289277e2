"""Shared fixtures: a throwaway vault and helpers to populate it."""

import json
import os
from datetime import datetime, timedelta, timezone

import pytest

from Vaultkeep.storage.archive import ArchiveStore
from Vaultkeep.storage.layout import VaultNode

FIXED_NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def vault(tmp_path):
    return VaultNode("test-vault", tmp_path / "vault")


@pytest.fixture
def store(vault):
    return ArchiveStore(vault.archives_dir)


@pytest.fixture
def make_session(vault, now):
    """Create ``sessions/<id>/YYYY/MM/DD/<sid>`` aged ``age_days`` relative to ``now``."""

    def _make(age_days, session_id=None, size=100, metadata=None, memory=None):
        day = (now - timedelta(days=age_days)).date()
        sid = session_id or f"session-{age_days:04d}"
        path = vault.session_path(day.year, day.month, day.day, sid)
        path.mkdir(parents=True, exist_ok=True)
        (path / "session.log").write_bytes(b"x" * size)
        if metadata is not None:
            (path / "metadata.json").write_text(json.dumps(metadata), encoding="utf-8")
        if memory is not None:
            (path / "memory.md").write_text(memory, encoding="utf-8")
        return path

    return _make


@pytest.fixture
def make_backup(vault):
    """Create a backup file with a given modification time (seconds since epoch)."""

    def _make(name, mtime, size=100):
        vault.backups_dir.mkdir(parents=True, exist_ok=True)
        path = vault.backups_dir / name
        path.write_bytes(b"b" * size)
        os.utime(path, (mtime, mtime))
        return path

    return _make
