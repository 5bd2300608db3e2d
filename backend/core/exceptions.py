# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Error taxonomy.

Every class carries the HTTP status it maps to; ``main.py`` renders them as
``{"success": false, "message": ...}`` plus the fields from ``extra()``.
"""


class SiteError(Exception):
    """Base exception for the site backend."""

    status_code = 500

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)

    def extra(self) -> dict:
        return {}


class Unauthenticated(SiteError):
    """No session token, or the token does not resolve to a live session."""

    status_code = 401

    def __init__(self, message: str = "Session expired. Please login again."):
        super().__init__(message)

    def extra(self) -> dict:
        # Tells the client to force a re-login instead of retrying
        return {"sessionExpired": True}


class Forbidden(SiteError):
    status_code = 403

    def __init__(self, message: str = "Admin access required"):
        super().__init__(message)


class StoreError(SiteError):
    """Generic persistence failure.  Callers only ever see the generic text."""

    status_code = 500

    def __init__(self, message: str = "Database error"):
        super().__init__(message)


class StoreUnavailable(StoreError):
    """The store handle is closed (a restore is swapping the file)."""

    status_code = 503

    def __init__(self, message: str = "Database temporarily unavailable, please retry"):
        super().__init__(message)


class BackupIntegrityError(SiteError):
    status_code = 500


class InvalidBackup(SiteError):
    """The uploaded file is not a usable database.  Nothing was changed."""

    status_code = 400


class RestoreFailed(SiteError):
    """
    A restore step failed after validation.  Raised only once the rollback
    to the safety copy has been attempted.
    """

    status_code = 500
    stage = "restore"

    def __init__(self, message: str = "Restore failed. Original database has been restored."):
        super().__init__(message)

    def extra(self) -> dict:
        return {"stage": self.stage}


class SafetyBackupFailed(RestoreFailed):
    stage = "safety_backup"


class SwapFailed(RestoreFailed):
    stage = "swap"


class ReconnectFailed(RestoreFailed):
    stage = "reconnect"


class IdentityLost(RestoreFailed):
    stage = "reconcile"
