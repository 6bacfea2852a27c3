"""Tests for backup sessions, rollback and cleanup."""

import json
import shutil
from datetime import timedelta

import pytest

from untwine.backup.manager import BackupManager
from untwine.core.errors import BackupError, CatalogError


@pytest.fixture
def manager(tmp_path, project):
    return BackupManager(tmp_path / "backups", source_root=project)


@pytest.fixture
def sources(project, write_file):
    return [
        write_file(project / "Window1.cs", "class Window1 {}\n"),
        write_file(project / "Views" / "Main.cs", "class Main {}\n"),
    ]


def test_backup_and_rollback_round_trip(manager, sources):
    session = manager.create_backup(sources, name="before")
    originals = {p: p.read_bytes() for p in sources}

    for path in sources:
        path.write_text("// rewritten\n")
    sources[1].unlink()

    result = manager.rollback(session.id)

    assert result.success
    assert result.error_message is None
    assert sorted(result.restored_files) == sorted(sources)
    for path, data in originals.items():
        assert path.read_bytes() == data


def test_session_layout_mirrors_source_tree(manager, project, write_file):
    a = write_file(project / "A" / "Form.cs", "a")
    b = write_file(project / "B" / "Form.cs", "b")

    session = manager.create_backup([a, b])

    assert session.name.startswith("Backup_")
    assert session.backup_directory.name.startswith("session_")
    assert session.backup_directory.parent == manager.root
    backups = {f.backup_path.relative_to(session.backup_directory)
               for f in session.backed_up_files}
    assert {p.as_posix() for p in backups} == {
        "A/Form.cs.backup", "B/Form.cs.backup",
    }


def test_missing_files_skipped(manager, project, sources):
    session = manager.create_backup(sources + [project / "Gone.cs"])

    assert session.file_count == 2
    assert manager.get_session(session.id).file_count == 2


def test_catalog_uses_camel_case_keys(manager, sources):
    manager.create_backup(sources[:1], name="camel")

    data = json.loads(manager.catalog_file.read_text(encoding="utf-8"))
    entry = data["sessions"][0]
    assert set(entry) == {
        "id", "name", "createdAt", "backupDirectory", "backedUpFiles",
    }
    assert set(entry["backedUpFiles"][0]) == {
        "originalPath", "backupPath", "fileSize", "lastModified",
        "backupCreated",
    }


def test_rollback_unknown_session(manager, sources):
    manager.create_backup(sources)

    result = manager.rollback("no-such-session")

    assert not result.success
    assert result.error_message == "Backup session no-such-session not found"
    assert result.restored_files == []


def test_rollback_reports_missing_backup_file(manager, sources):
    session = manager.create_backup(sources)
    session.backed_up_files[0].backup_path.unlink()

    result = manager.rollback(session.id)

    assert not result.success
    assert len(result.restored_files) == 1
    assert len(result.failed_files) == 1
    assert "Backup file not found at" in result.failed_files[0]
    assert "Failed Files Details:" in result.summary()


def test_latest_session(manager, sources):
    assert manager.latest_session() is None

    manager.create_backup(sources, name="first")
    second = manager.create_backup(sources, name="second")

    assert manager.latest_session().id == second.id
    assert [s.name for s in manager.list_sessions()] == ["first", "second"]


def test_cleanup_with_zero_age_removes_everything(manager, sources):
    first = manager.create_backup(sources)
    second = manager.create_backup(sources)

    removed = manager.cleanup_older_than(timedelta(0))

    assert removed == 2
    assert manager.list_sessions() == []
    assert not first.backup_directory.exists()
    assert not second.backup_directory.exists()


def test_cleanup_keeps_recent_sessions(manager, sources):
    session = manager.create_backup(sources)

    assert manager.cleanup_older_than(timedelta(days=30)) == 0
    assert manager.get_session(session.id) is not None


def test_cleanup_keeps_entry_when_delete_fails(manager, sources, monkeypatch):
    session = manager.create_backup(sources)

    def refuse(path, *args, **kwargs):
        raise PermissionError(f"busy: {path}")

    monkeypatch.setattr(shutil, "rmtree", refuse)

    assert manager.cleanup_older_than(timedelta(0)) == 0
    assert manager.get_session(session.id) is not None


def test_total_backup_size_ignores_orphans(manager, sources):
    manager.create_backup(sources)
    orphan = manager.root / "session_orphan"
    orphan.mkdir()
    (orphan / "junk.backup").write_bytes(b"x" * 1000)

    expected = sum(p.stat().st_size for p in sources)
    assert manager.total_backup_size() == expected
    assert len(manager.list_sessions()) == 1


def test_corrupt_catalog_raises(manager, sources):
    manager.catalog_file.write_text("{not json", encoding="utf-8")

    with pytest.raises(CatalogError):
        manager.list_sessions()

    with pytest.raises(BackupError):
        manager.create_backup(sources)

    assert not any(manager.root.glob("session_*"))
    assert manager.catalog_file.read_text(encoding="utf-8") == "{not json"


def test_rollback_with_corrupt_catalog_does_not_raise(manager):
    manager.catalog_file.write_text("[]", encoding="utf-8")

    result = manager.rollback("anything")

    assert not result.success
    assert result.error_message.startswith("Rollback failed:")
