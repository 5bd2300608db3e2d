# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
FastAPI application.

Responsibilities
----------------
* Instantiate the FastAPI app.
* Register CORS middleware (the ``session-token`` header must be allowed).
* Translate ``SiteError`` / ``HTTPException`` / ``SQLAlchemyError`` into
  the ``{"success": false, "message": ...}`` body every client expects.
* Mount the feature routers (auth, admin, backup, catalog, messages).
* Open the store and run first-run setup on start-up; start the hourly
  session sweep.
* Mount the frontend static files when a ``frontend/`` directory exists.
* Expose a /health endpoint for container liveness checks.
"""

import time
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from auth.router import router as auth_router
from auth.sessions import run_session_sweep
from admin.router import router as admin_router
from backup.router import router as backup_router
from catalog.router import router as catalog_router
from messages.router import router as messages_router
from bootstrap import run_setup
from core.config import settings
from core.exceptions import SiteError, StoreError
from core.logger import logger
from core.scheduler import PeriodicTask
from core.security import SESSION_HEADER
from database import store

app = FastAPI(title="Cyber Hexor", version="1.0.0")

# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", SESSION_HEADER],
    expose_headers=["Content-Disposition"],
)


# ---------------------------------------------------------------------------
# Request-logging middleware
# ---------------------------------------------------------------------------
# Only the URL and metadata are recorded – never bodies or the session header.


class _RequestLogMiddleware(BaseHTTPMiddleware):
    """Log method, path, client IP, response status and latency (ms)."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        client_ip = request.client.host if request.client else "unknown"

        logger.info(
            "%s %s | client=%s status=%d latency=%.1fms",
            request.method,
            request.url.path,
            client_ip,
            response.status_code,
            elapsed_ms,
        )
        return response


app.add_middleware(_RequestLogMiddleware)


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(SiteError)
async def _site_error_handler(request: Request, exc: SiteError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message, **exc.extra()},
    )


@app.exception_handler(StarletteHTTPException)
async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    field = ".".join(str(p) for p in errors[0]["loc"][1:]) if errors else ""
    message = f"Invalid or missing field: {field}" if field else "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "message": message})


@app.exception_handler(SQLAlchemyError)
async def _db_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    err = StoreError()
    return JSONResponse(status_code=err.status_code, content={"success": False, "message": err.message})


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(backup_router)
app.include_router(catalog_router)
app.include_router(messages_router)

# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------
_sweeper: Optional[PeriodicTask] = None


@app.on_event("startup")
def _on_startup():
    global _sweeper
    logger.info("%s service starting up", settings.app_name)
    store.open()
    results = run_setup(store)
    failed = [name for name, ok in results.items() if not ok]
    if failed:
        logger.warning("Setup finished with failed steps: %s", ", ".join(failed))

    _sweeper = PeriodicTask("session-sweep", settings.session_sweep_interval_seconds, run_session_sweep)
    _sweeper.start()


@app.on_event("shutdown")
def _on_shutdown():
    logger.info("%s service shutting down", settings.app_name)
    if _sweeper is not None:
        _sweeper.stop()
    store.close()


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------


@app.get("/health")
def health():
    return {"status": "ok" if store.is_open else "unavailable"}


# ---------------------------------------------------------------------------
# Static files – frontend
# ---------------------------------------------------------------------------
# Mounted *after* the API routers so that /api/* is handled by FastAPI first.
_FRONTEND_DIR = Path(__file__).resolve().parent.parent / "frontend"

if _FRONTEND_DIR.is_dir():
    app.mount("/", StaticFiles(directory=str(_FRONTEND_DIR), html=True), name="frontend")
