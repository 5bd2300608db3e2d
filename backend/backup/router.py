# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Backup / restore endpoints.  Both are guarded by ``require_admin``.

* ``GET /api/backup`` streams a verified snapshot and removes it a while
  after the response went out (slow downloads keep working).
* ``POST /api/restore`` stores the upload next to the backups and hands it
  to :class:`backup.restore.RestoreOrchestrator`.
"""

import time
from typing import Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from starlette.background import BackgroundTask

from database import get_db, store
from core.activity import log_activity
from core.config import settings
from core.exceptions import InvalidBackup
from core.logger import logger
from core.scheduler import remove_file_later
from core.security import require_admin
from auth.schemas import Identity
from backup.exporter import export_snapshot
from backup.restore import RestoreOrchestrator
from backup.schemas import RestoreResponse

router = APIRouter(prefix="/api", tags=["backup"])

_CHUNK = 1024 * 1024


# ---------------------------------------------------------------------------
# GET /api/backup  – download a snapshot of the whole database
# ---------------------------------------------------------------------------


@router.get("/backup")
def download_backup(
    request: Request,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    path, _ = export_snapshot(store)

    log_activity(db, admin.id, admin.name, "database_backup", "Created database backup", request)
    db.commit()

    return FileResponse(
        path,
        filename=path.name,
        media_type="application/octet-stream",
        # Runs once the body has been sent
        background=BackgroundTask(remove_file_later, path, settings.backup_retention_seconds),
    )


# ---------------------------------------------------------------------------
# POST /api/restore  – replace the database with an uploaded backup
# ---------------------------------------------------------------------------


@router.post("/restore", response_model=RestoreResponse)
def restore_backup(
    request: Request,
    backup_file: Optional[UploadFile] = File(None),
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Restore the database from an uploaded ``.db`` file.

    The response carries the acting admin as found in the restored data plus
    a fresh session token, so the client can carry on without a new login.
    """
    if backup_file is None or not backup_file.filename:
        raise InvalidBackup("No backup file provided")
    if not backup_file.filename.lower().endswith(".db"):
        raise InvalidBackup("Only .db files are allowed")

    backup_dir = settings.backup_path
    backup_dir.mkdir(parents=True, exist_ok=True)
    upload_path = backup_dir / f"uploaded_backup_{int(time.time() * 1000)}.db"

    # -- Stream the upload to disk, enforcing the size limit ------------------
    limit = settings.max_backup_upload_mb * 1024 * 1024
    written = 0
    with upload_path.open("wb") as out:
        while chunk := backup_file.file.read(_CHUNK):
            written += len(chunk)
            if written > limit:
                break
            out.write(chunk)
    if written > limit:
        upload_path.unlink()
        raise InvalidBackup(f"Backup file exceeds {settings.max_backup_upload_mb} MB")

    logger.info("Backup file uploaded: %s (%d bytes)", upload_path.name, written)

    # The request session is bound to the engine that is about to be closed
    db.close()

    result = RestoreOrchestrator(store, upload_path, admin, request).run()
    return RestoreResponse(
        message="Database restored successfully! You will remain logged in.",
        user=result.user,
        tables=result.tables,
        session_token=result.session_token,
        session_expires=result.session_expires,
    )
