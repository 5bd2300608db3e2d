import shutil
import sqlite3
from pathlib import Path

import pytest

from auth.schemas import Identity
from backup.exporter import export_snapshot
from backup.restore import RestoreOrchestrator, RestoreState
from core.config import settings
from core.exceptions import IdentityLost, InvalidBackup, RestoreFailed
from database import store
from models.activity_log import ActivityLog
from models.user import User

from conftest import ADMIN_EMAIL, auth, make_user

_real_copyfile = shutil.copyfile


def _upload(client, token, data, filename="backup.db"):
    return client.post(
        "/api/restore",
        files={"backup_file": (filename, data, "application/octet-stream")},
        headers=auth(token),
    )


def _snapshot_bytes(edit_sql=None):
    """Export the live store; optionally run *edit_sql* against the copy."""
    path, _ = export_snapshot(store)
    if edit_sql:
        conn = sqlite3.connect(path)
        conn.executescript(edit_sql)
        conn.commit()
        conn.close()
    data = path.read_bytes()
    path.unlink()
    return data


def _zero_table_db(tmp_path):
    """A valid SQLite file (header written) that holds no tables."""
    path = tmp_path / "blank.db"
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA user_version = 1")
    conn.commit()
    conn.close()
    return path.read_bytes()


def _user_emails():
    db = store.session()
    try:
        return sorted(e for (e,) in db.query(User.email))
    finally:
        db.close()


def _leftover_uploads():
    return list(settings.backup_path.glob("uploaded_backup_*.db"))


# ---------------------------------------------------------------------------
# Rejected uploads – the live file is never touched
# ---------------------------------------------------------------------------


def test_upload_without_tables_is_rejected_and_live_file_untouched(client, admin_token, tmp_path):
    data = _zero_table_db(tmp_path)
    before = store.path.read_bytes()

    response = _upload(client, admin_token, data)

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert "No tables found" in response.json()["message"]
    assert store.path.read_bytes() == before
    assert _leftover_uploads() == []


def test_garbage_upload_is_rejected(client, admin_token):
    before = store.path.read_bytes()

    response = _upload(client, admin_token, b"definitely not sqlite" * 64)

    assert response.status_code == 400
    assert store.path.read_bytes() == before
    assert _leftover_uploads() == []


def test_wrong_extension_is_rejected(client, admin_token):
    response = _upload(client, admin_token, _snapshot_bytes(), filename="backup.sql")

    assert response.status_code == 400
    assert response.json()["message"] == "Only .db files are allowed"


def test_missing_file_is_rejected(client, admin_token):
    response = client.post("/api/restore", headers=auth(admin_token))

    assert response.status_code == 400
    assert response.json()["message"] == "No backup file provided"


def test_oversized_upload_is_rejected(client, admin_token, monkeypatch):
    monkeypatch.setattr(settings, "max_backup_upload_mb", 0)

    response = _upload(client, admin_token, _snapshot_bytes())

    assert response.status_code == 400
    assert _leftover_uploads() == []


# ---------------------------------------------------------------------------
# Failures after the safety copy – rolled back before the error is returned
# ---------------------------------------------------------------------------


def test_safety_backup_failure_leaves_store_alone(client, admin_token, monkeypatch):
    data = _snapshot_bytes()
    before = store.path.read_bytes()

    def copyfile(src, dst, *args, **kwargs):
        if Path(dst).name.startswith("safety_backup_"):
            raise OSError("disk full")
        return _real_copyfile(src, dst, *args, **kwargs)

    monkeypatch.setattr("backup.restore.shutil.copyfile", copyfile)

    response = _upload(client, admin_token, data)

    assert response.status_code == 500
    assert response.json()["stage"] == "safety_backup"
    assert store.path.read_bytes() == before
    assert _leftover_uploads() == []


def test_swap_failure_rolls_back_to_original(client, admin_token, db, monkeypatch):
    data = _snapshot_bytes()
    make_user(db, "after-backup@example.com")
    emails = _user_emails()
    before = store.path.read_bytes()

    def copyfile(src, dst, *args, **kwargs):
        if Path(src).name.startswith("uploaded_backup_"):
            raise OSError("simulated I/O error")
        return _real_copyfile(src, dst, *args, **kwargs)

    monkeypatch.setattr("backup.restore.shutil.copyfile", copyfile)

    response = _upload(client, admin_token, data)

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["stage"] == "swap"
    assert "Original database has been restored" in body["message"]
    assert store.is_open
    assert store.path.read_bytes() == before
    assert _user_emails() == emails
    assert _leftover_uploads() == []
    # The caller's session survived the rollback
    assert client.get("/api/validate-session", headers=auth(admin_token)).status_code == 200


def test_reconnect_failure_rolls_back(client, admin_token, monkeypatch):
    data = _snapshot_bytes()
    emails = _user_emails()
    monkeypatch.setattr(store, "table_names", lambda: [])

    response = _upload(client, admin_token, data)

    assert response.status_code == 500
    assert response.json()["stage"] == "reconnect"
    assert _user_emails() == emails


def test_backup_without_acting_admin_rolls_back(client, admin_token, db):
    data = _snapshot_bytes(f"DELETE FROM users WHERE email = '{ADMIN_EMAIL}';")
    make_user(db, "after-backup@example.com")
    before = store.path.read_bytes()

    response = _upload(client, admin_token, data)

    assert response.status_code == 500
    body = response.json()
    assert body["stage"] == "reconcile"
    assert "not found in the restored database" in body["message"]
    assert store.path.read_bytes() == before
    assert "after-backup@example.com" in _user_emails()
    assert client.get("/api/validate-session", headers=auth(admin_token)).status_code == 200


def test_backup_with_acting_admin_deactivated_rolls_back(client, admin_token):
    data = _snapshot_bytes(f"UPDATE users SET is_active = 0 WHERE email = '{ADMIN_EMAIL}';")

    response = _upload(client, admin_token, data)

    assert response.status_code == 500
    assert response.json()["stage"] == "reconcile"
    assert client.get("/api/validate-session", headers=auth(admin_token)).status_code == 200


# ---------------------------------------------------------------------------
# Successful restore
# ---------------------------------------------------------------------------


def test_restore_replaces_data_and_keeps_admin_logged_in(client, admin_token, db):
    data = _snapshot_bytes()
    make_user(db, "after-backup@example.com")
    db.close()

    response = _upload(client, admin_token, data)

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["success"] is True
    assert body["autoLogin"] is True
    assert body["user"]["email"] == ADMIN_EMAIL
    assert "users" in body["tables"]
    assert "after-backup@example.com" not in _user_emails()

    new_token = body["sessionToken"]
    assert new_token != admin_token
    check = client.get("/api/validate-session", headers=auth(new_token))
    assert check.status_code == 200
    assert check.json()["user"]["email"] == ADMIN_EMAIL

    session = store.session()
    try:
        assert session.query(ActivityLog).filter(ActivityLog.action == "database_restore").count() == 1
    finally:
        session.close()
    assert _leftover_uploads() == []


def test_restore_reconciles_admin_by_email_when_id_changed(client, admin_token):
    data = _snapshot_bytes(f"UPDATE users SET id = 99 WHERE email = '{ADMIN_EMAIL}';")

    response = _upload(client, admin_token, data)

    assert response.status_code == 200, response.text
    assert response.json()["user"]["id"] == 99
    check = client.get("/api/validate-session", headers=auth(response.json()["sessionToken"]))
    assert check.json()["user"]["id"] == 99


# ---------------------------------------------------------------------------
# Orchestrator state machine
# ---------------------------------------------------------------------------


def _actor():
    db = store.session()
    try:
        return Identity.model_validate(db.query(User).filter(User.email == ADMIN_EMAIL).one())
    finally:
        db.close()


def _write_upload(data):
    settings.backup_path.mkdir(parents=True, exist_ok=True)
    path = settings.backup_path / "uploaded_backup_test.db"
    path.write_bytes(data)
    return path


def test_orchestrator_walks_every_state_on_success():
    actor = _actor()
    orchestrator = RestoreOrchestrator(store, _write_upload(_snapshot_bytes()), actor)

    result = orchestrator.run()

    assert result.user.email == ADMIN_EMAIL
    assert orchestrator.history == [
        RestoreState.IDLE,
        RestoreState.VALIDATING,
        RestoreState.SAFETY_BACKUP,
        RestoreState.SWAPPING,
        RestoreState.RECONNECTING,
        RestoreState.RECONCILING,
        RestoreState.COMMITTED,
    ]


def test_orchestrator_ends_rolled_back_on_failure():
    actor = _actor()
    data = _snapshot_bytes(f"DELETE FROM users WHERE email = '{ADMIN_EMAIL}';")
    orchestrator = RestoreOrchestrator(store, _write_upload(data), actor)

    with pytest.raises(IdentityLost):
        orchestrator.run()

    assert orchestrator.history[-3:] == [
        RestoreState.RECONCILING,
        RestoreState.ABORTING,
        RestoreState.ROLLED_BACK,
    ]
    assert orchestrator.state == RestoreState.ROLLED_BACK
    assert store.is_open


def test_orchestrator_stops_at_validation_for_bad_upload():
    orchestrator = RestoreOrchestrator(store, _write_upload(b""), _actor())

    with pytest.raises(InvalidBackup):
        orchestrator.run()

    assert orchestrator.history == [RestoreState.IDLE, RestoreState.VALIDATING]
    assert orchestrator.safety_path is None


def test_restore_holds_maintenance_lock(monkeypatch):
    seen = []
    real_swap = RestoreOrchestrator._swap

    def swap(self):
        seen.append(store.maintenance_lock.locked())
        return real_swap(self)

    monkeypatch.setattr(RestoreOrchestrator, "_swap", swap)

    RestoreOrchestrator(store, _write_upload(_snapshot_bytes()), _actor()).run()

    assert seen == [True]
    assert not store.maintenance_lock.locked()


def test_failed_rollback_keeps_safety_copy(client, admin_token, monkeypatch):
    data = _snapshot_bytes()

    def copyfile(src, dst, *args, **kwargs):
        if Path(dst) == store.path:
            raise OSError("read-only filesystem")
        return _real_copyfile(src, dst, *args, **kwargs)

    monkeypatch.setattr("backup.restore.shutil.copyfile", copyfile)

    response = _upload(client, admin_token, data)

    assert response.status_code == 500
    body = response.json()
    assert body["stage"] == "swap"
    assert "could not be put back" in body["message"]
    assert len(list(settings.backup_path.glob("safety_backup_*.db"))) == 1
    assert _leftover_uploads() == []


def test_restore_from_backup_dir_with_uri_characters(client, admin_token, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "backup_dir", str(tmp_path / "restore#dir%"))

    response = _upload(client, admin_token, _snapshot_bytes())

    assert response.status_code == 200, response.text
    assert response.json()["user"]["email"] == ADMIN_EMAIL


def test_restore_matches_email_case_insensitively(client, admin_token):
    data = _snapshot_bytes(f"UPDATE users SET id = 77, email = upper(email) WHERE email = '{ADMIN_EMAIL}';")

    response = _upload(client, admin_token, data)

    assert response.status_code == 200, response.text
    assert response.json()["user"]["id"] == 77
    assert response.json()["user"]["email"] == ADMIN_EMAIL.upper()


def test_restore_response_expiry_is_utc(client, admin_token):
    response = _upload(client, admin_token, _snapshot_bytes())

    assert response.status_code == 200, response.text
    assert response.json()["sessionExpires"].endswith("Z")


# ---------------------------------------------------------------------------
# Safety copy clean-up
# ---------------------------------------------------------------------------


def _capture_cleanup(monkeypatch):
    scheduled = []
    monkeypatch.setattr(
        "backup.restore.remove_file_later",
        lambda path, delay: scheduled.append((path, delay)),
    )
    return scheduled


def test_safety_copy_removal_scheduled_after_commit(monkeypatch):
    scheduled = _capture_cleanup(monkeypatch)
    orchestrator = RestoreOrchestrator(store, _write_upload(_snapshot_bytes()), _actor())

    orchestrator.run()

    assert scheduled == [(orchestrator.safety_path, settings.safety_backup_grace_seconds)]
    assert orchestrator.safety_path.exists()


def test_safety_copy_removal_scheduled_after_rollback(monkeypatch):
    scheduled = _capture_cleanup(monkeypatch)
    data = _snapshot_bytes(f"DELETE FROM users WHERE email = '{ADMIN_EMAIL}';")
    orchestrator = RestoreOrchestrator(store, _write_upload(data), _actor())

    with pytest.raises(IdentityLost):
        orchestrator.run()

    assert orchestrator.state == RestoreState.ROLLED_BACK
    assert scheduled == [(orchestrator.safety_path, settings.safety_backup_grace_seconds)]


def test_safety_copy_not_scheduled_when_rollback_fails(monkeypatch):
    scheduled = _capture_cleanup(monkeypatch)
    live = store.path

    def copyfile(src, dst, *args, **kwargs):
        if Path(dst) == live:
            raise OSError("read-only filesystem")
        return _real_copyfile(src, dst, *args, **kwargs)

    monkeypatch.setattr("backup.restore.shutil.copyfile", copyfile)
    orchestrator = RestoreOrchestrator(store, _write_upload(_snapshot_bytes()), _actor())

    with pytest.raises(RestoreFailed):
        orchestrator.run()

    assert scheduled == []
    assert orchestrator.safety_path.exists()
