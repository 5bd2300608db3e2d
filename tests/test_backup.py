import re

import pytest

from backup.exporter import export_snapshot, verify_snapshot
from core.config import settings
from core.exceptions import BackupIntegrityError
from database import list_tables, store
from models.activity_log import ActivityLog

from conftest import auth


def test_export_writes_an_openable_snapshot(live_store):
    path, size = export_snapshot(live_store)

    assert path.parent == settings.backup_path
    assert re.fullmatch(r"cyber_hexor_backup_\d{13}\.db", path.name)
    assert size == path.stat().st_size > 0
    tables = list_tables(path)
    assert {"users", "user_sessions", "activity_logs", "services"} <= set(tables)


def test_verify_rejects_empty_file(tmp_path):
    path = tmp_path / "empty.db"
    path.write_bytes(b"")

    with pytest.raises(BackupIntegrityError):
        verify_snapshot(path)
    assert not path.exists()


def test_verify_rejects_garbage(tmp_path):
    path = tmp_path / "garbage.db"
    path.write_bytes(b"this is not a database" * 100)

    with pytest.raises(BackupIntegrityError):
        verify_snapshot(path)
    assert not path.exists()


def test_verify_rejects_database_without_application_tables(tmp_path):
    import sqlite3

    path = tmp_path / "other.db"
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE unrelated (id INTEGER)")
    conn.commit()
    conn.close()

    with pytest.raises(BackupIntegrityError):
        verify_snapshot(path)


def test_verify_reports_missing_file(tmp_path):
    with pytest.raises(BackupIntegrityError):
        verify_snapshot(tmp_path / "missing.db")


def test_download_endpoint_serves_snapshot_and_logs(client, admin_token):
    response = client.get("/api/backup", headers=auth(admin_token))

    assert response.status_code == 200
    disposition = response.headers["content-disposition"]
    assert re.search(r'filename="cyber_hexor_backup_\d{13}\.db"', disposition)
    assert response.content[:16] == b"SQLite format 3\x00"

    db = store.session()
    try:
        assert db.query(ActivityLog).filter(ActivityLog.action == "database_backup").count() == 1
    finally:
        db.close()


def test_download_schedules_file_removal(client, admin_token, monkeypatch):
    scheduled = []
    monkeypatch.setattr("backup.router.remove_file_later", lambda path, delay: scheduled.append((path, delay)))

    response = client.get("/api/backup", headers=auth(admin_token))

    assert response.status_code == 200
    assert len(scheduled) == 1
    path, delay = scheduled[0]
    assert delay == settings.backup_retention_seconds
    assert path.exists()


def test_backup_dir_with_uri_characters(client, admin_token, tmp_path, monkeypatch):
    odd_dir = tmp_path / "bk#1 50%?x"
    monkeypatch.setattr(settings, "backup_dir", str(odd_dir))

    response = client.get("/api/backup", headers=auth(admin_token))

    assert response.status_code == 200, response.text
    assert response.content[:16] == b"SQLite format 3\x00"
    snapshots = list(odd_dir.glob("cyber_hexor_backup_*.db"))
    assert len(snapshots) == 1
    assert "users" in list_tables(snapshots[0])
