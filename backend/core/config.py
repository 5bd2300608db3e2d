"""
Application configuration.
Values are loaded from environment variables (and the etc/app.conf file).
Relative paths are resolved against the project root.
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Project root is two levels up from this file  (backend/core/config.py → project/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    # Used in backup filenames:  <app_name>_backup_<epoch-ms>.db
    app_name: str = "cyber_hexor"

    # SQLite store and the directory for backups / uploaded restore files
    database_path: str = "data/cyber_hexor.db"
    backup_dir: str = "backups"

    # Sessions
    session_ttl_hours: int = 24
    session_sweep_interval_seconds: int = 3600

    # Deferred cleanup delays
    backup_retention_seconds: int = 30
    safety_backup_grace_seconds: int = 10
    max_backup_upload_mb: int = 50

    # Password policy.  Rounds is lowered in the test-suite only.
    password_hash_rounds: int = 600_000
    min_password_length: int = 6

    # First-run bootstrap account.  Nothing is created when these are empty.
    first_admin_name: str = "Admin User"
    first_admin_email: str = ""
    first_admin_password: str = ""

    cors_origins: list[str] = ["http://localhost:3000"]

    # app.conf lives in etc/ – resolved relative to the project root so that
    # the file is found regardless of the working directory.
    model_config = {"env_file": str(_PROJECT_ROOT / "etc" / "app.conf")}

    def resolve(self, value: str) -> Path:
        """Return *value* as an absolute path (relative ones hang off the project root)."""
        path = Path(value)
        return path if path.is_absolute() else _PROJECT_ROOT / path

    @property
    def database_file(self) -> Path:
        return self.resolve(self.database_path)

    @property
    def backup_path(self) -> Path:
        return self.resolve(self.backup_dir)


# Module-level singleton – import this everywhere: from core.config import settings
settings = Settings()
