# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Backup exporter – consistent point-in-time copy of the live store.

SQLite's ``VACUUM INTO`` writes a fresh, compacted copy of the database
from a single read transaction, so the snapshot is consistent even while
other requests keep writing.  The copy is only handed out after it has been
re-opened and found to contain at least one application table.
"""

import time
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from core.config import settings
from core.exceptions import BackupIntegrityError, StoreError
from core.logger import logger
import models  # noqa: F401  – application tables on Base.metadata
from database import Base, Store, list_tables


def backup_filename() -> str:
    return f"{settings.app_name}_backup_{int(time.time() * 1000)}.db"


def verify_snapshot(path: Path) -> list[str]:
    """
    Check a freshly written snapshot.  Returns its table names, or raises
    ``BackupIntegrityError`` after deleting the file.
    """
    if not path.exists():
        raise BackupIntegrityError("Backup file was not created")

    if path.stat().st_size == 0:
        path.unlink()
        raise BackupIntegrityError("Backup file is empty")

    try:
        tables = list_tables(path)
    except SQLAlchemyError as exc:
        path.unlink()
        raise BackupIntegrityError("Backup file could not be opened") from exc

    known = set(Base.metadata.tables)
    if not known.intersection(tables):
        path.unlink()
        raise BackupIntegrityError("Backup file contains no application tables")
    return tables


def export_snapshot(store: Store) -> tuple[Path, int]:
    """Write a verified snapshot into the backup directory; return ``(path, size)``."""
    backup_dir = settings.backup_path
    backup_dir.mkdir(parents=True, exist_ok=True)
    path = backup_dir / backup_filename()

    logger.info("Starting database backup to %s", path.name)
    try:
        # VACUUM refuses to run inside a transaction
        engine = store.engine.execution_options(isolation_level="AUTOCOMMIT")
        with engine.connect() as conn:
            conn.exec_driver_sql("VACUUM INTO ?", (str(path),))
    except SQLAlchemyError as exc:
        logger.error("Backup failed: %s", exc)
        if path.exists():
            path.unlink()
        raise StoreError("Backup failed") from exc

    tables = verify_snapshot(path)
    size = path.stat().st_size
    logger.info("Backup %s created (%d bytes, tables: %s)", path.name, size, ", ".join(tables))
    return path, size
