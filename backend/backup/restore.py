# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Restore orchestrator – replaces the live SQLite file with an uploaded backup.

State machine
-------------
    IDLE → VALIDATING → SAFETY_BACKUP → SWAPPING → RECONNECTING
         → RECONCILING → COMMITTED

    any failure after SAFETY_BACKUP  →  ABORTING → ROLLED_BACK

Guarantees
----------
* The live file is not touched until the upload has been opened read-only
  and found to contain tables, and a safety copy of the live file exists.
* Every destructive step can be undone from the safety copy; on any failure
  after the safety copy the live file is put back and the store reopened
  *before* the error is reported.
* The restore only commits if the admin who started it still resolves (by
  id, then by email) to an active account in the restored data – otherwise
  they could lock themselves out with their own upload.

The whole run holds ``store.maintenance_lock``; the session sweep skips its
cycle instead of racing the swap.  Ordinary requests hitting the store while
its handle is closed get ``StoreUnavailable`` (503) and may retry.
"""

import enum
import shutil
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from fastapi import Request
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from auth.schemas import Identity
from auth.sessions import create_session
from bootstrap import create_tables
from core.activity import log_activity
from core.config import settings
from core.exceptions import (
    IdentityLost,
    InvalidBackup,
    ReconnectFailed,
    RestoreFailed,
    SafetyBackupFailed,
    StoreError,
    SwapFailed,
)
from core.logger import logger
from core.scheduler import remove_file_later
from core.security import get_client_ip, get_user_agent
from database import Store, list_tables
from models.user import User

# SQLite side files that belong to a specific database file.  A leftover
# hot journal would be replayed against whatever file is put in its place.
_SIDE_SUFFIXES = ("-journal", "-wal", "-shm")


class RestoreState(str, enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SAFETY_BACKUP = "safety_backup"
    SWAPPING = "swapping"
    RECONNECTING = "reconnecting"
    RECONCILING = "reconciling"
    COMMITTED = "committed"
    ABORTING = "aborting"
    ROLLED_BACK = "rolled_back"


@dataclass
class RestoreResult:
    user: Identity
    tables: list[str]
    session_token: str
    session_expires: datetime


class RestoreOrchestrator:
    """One restore attempt.  Create a new instance per uploaded file."""

    def __init__(
        self,
        store: Store,
        upload_path: Path,
        actor: Identity,
        request: Optional[Request] = None,
    ):
        self.store = store
        self.upload_path = Path(upload_path)
        self.actor = actor
        self.request = request
        self.live_path: Path = store.path
        self.safety_path: Optional[Path] = None
        self.state = RestoreState.IDLE
        self.history: list[RestoreState] = [RestoreState.IDLE]

    # -- driver ----------------------------------------------------------------

    def run(self) -> RestoreResult:
        with self.store.maintenance_lock:
            logger.info("Database restore requested by %s", self.actor.email)
            self._validate()
            self._safety_backup()
            try:
                self._swap()
                tables = self._reconnect()
                user = self._reconcile()
                result = self._commit(user, tables)
            except Exception as exc:
                logger.error("Restore failed during %s: %s", self.state.value, exc)
                self._rollback()
                if self.state != RestoreState.ROLLED_BACK:
                    err = RestoreFailed(
                        "Restore failed and the original database could not be put back. "
                        f"Safety copy kept as {self.safety_path.name}."
                    )
                    err.stage = getattr(exc, "stage", RestoreFailed.stage)
                    raise err from exc
                if isinstance(exc, RestoreFailed):
                    raise
                raise RestoreFailed() from exc
        logger.info("Database restore completed, acting user reconciled as %s", result.user.email)
        return result

    def _enter(self, state: RestoreState) -> None:
        self.state = state
        self.history.append(state)

    # -- steps -----------------------------------------------------------------

    def _validate(self) -> list[str]:
        self._enter(RestoreState.VALIDATING)
        try:
            tables = list_tables(self.upload_path)
        except SQLAlchemyError as exc:
            logger.warning("Uploaded backup could not be opened: %s", exc)
            tables = []

        if not tables:
            self._discard_upload()
            raise InvalidBackup("Invalid database file: No tables found or corrupted database")

        logger.info("Backup file verified – contains tables: %s", ", ".join(tables))
        return tables

    def _safety_backup(self) -> None:
        self._enter(RestoreState.SAFETY_BACKUP)
        backup_dir = settings.backup_path
        path = backup_dir / f"safety_backup_{int(time.time() * 1000)}.db"
        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(self.live_path, path)
        except OSError as exc:
            self._discard_upload()
            raise SafetyBackupFailed("Failed to create safety backup before restore") from exc
        self.safety_path = path
        logger.info("Safety backup created: %s", path.name)

    def _swap(self) -> None:
        self._enter(RestoreState.SWAPPING)
        try:
            self.store.close()
            self._remove_live_files()
            shutil.copyfile(self.upload_path, self.live_path)
            self.upload_path.unlink()
        except OSError as exc:
            raise SwapFailed() from exc
        logger.info("Database file replaced")

    def _reconnect(self) -> list[str]:
        self._enter(RestoreState.RECONNECTING)
        try:
            self.store.reopen()
            tables = self.store.table_names()
        except (SQLAlchemyError, OSError) as exc:
            raise ReconnectFailed("Restored database could not be opened. Original database has been restored.") from exc
        if not tables:
            raise ReconnectFailed("Restored database is empty. Original database has been restored.")
        logger.info("Restored database verified – tables: %s", ", ".join(tables))
        return tables

    def _reconcile(self) -> Identity:
        self._enter(RestoreState.RECONCILING)
        lost = IdentityLost(
            "Your user account was not found in the restored database. "
            "Original database has been restored."
        )
        db = self.store.session()
        try:
            user = db.get(User, self.actor.id)
            # Same id but another person: ids may have been reassigned
            if user is not None and user.email.lower() != self.actor.email.lower():
                user = None
            if user is None:
                logger.info("Acting user not found by id in restored database, trying email")
                user = (
                    db.query(User)
                    .filter(func.lower(User.email) == self.actor.email.lower())
                    .first()
                )
            if user is None or not user.is_active:
                raise lost
            return Identity.model_validate(user)
        except SQLAlchemyError as exc:
            raise lost from exc
        finally:
            db.close()

    def _commit(self, user: Identity, tables: list[str]) -> RestoreResult:
        ip = get_client_ip(self.request) if self.request is not None else None
        user_agent = get_user_agent(self.request) if self.request is not None else None
        try:
            # Older backups may predate a table (e.g. user_sessions)
            create_tables(self.store)
            db = self.store.session()
            try:
                log_activity(db, user.id, user.name, "database_restore", "Database restored from backup", self.request)
                db.commit()
                token, expires_at = create_session(db, user.id, ip, user_agent)
            finally:
                db.close()
        except (SQLAlchemyError, StoreError) as exc:
            raise IdentityLost(
                "Could not re-establish your session in the restored database. "
                "Original database has been restored."
            ) from exc

        self._enter(RestoreState.COMMITTED)
        remove_file_later(self.safety_path, settings.safety_backup_grace_seconds)
        return RestoreResult(user=user, tables=tables, session_token=token, session_expires=expires_at)

    # -- failure path ----------------------------------------------------------

    def _rollback(self) -> None:
        self._enter(RestoreState.ABORTING)
        logger.warning("Rolling back to safety backup %s", self.safety_path.name)
        try:
            self.store.close()
            self._remove_live_files()
            shutil.copyfile(self.safety_path, self.live_path)
            self.store.reopen()
        except (OSError, SQLAlchemyError):
            logger.critical(
                "CRITICAL: failed to restore safety backup %s – keeping it for manual recovery",
                self.safety_path,
                exc_info=True,
            )
            if not self.store.is_open:
                try:
                    self.store.reopen()
                except (OSError, SQLAlchemyError):
                    logger.critical("CRITICAL: store could not be reopened after failed rollback")
            return
        finally:
            self._discard_upload()

        self._enter(RestoreState.ROLLED_BACK)
        logger.info("Safety backup restored")
        remove_file_later(self.safety_path, settings.safety_backup_grace_seconds)

    # -- helpers ---------------------------------------------------------------

    def _remove_live_files(self) -> None:
        if self.live_path.exists():
            self.live_path.unlink()
        for suffix in _SIDE_SUFFIXES:
            side = self.live_path.with_name(self.live_path.name + suffix)
            if side.exists():
                side.unlink()

    def _discard_upload(self) -> None:
        try:
            if self.upload_path.exists():
                self.upload_path.unlink()
        except OSError:
            logger.warning("Could not remove uploaded backup %s", self.upload_path, exc_info=True)
