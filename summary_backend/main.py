"""
main.py — Page Summary Backend FastAPI application entry point.

Start with: uvicorn summary_backend.main:app --reload --port 3000
(run from the repository root)
"""
import logging
import os
import subprocess
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from summary_backend.config import settings
from summary_backend.database import AsyncSessionLocal, async_engine, get_db, init_models
from summary_backend.errors import (
    NothingToAnalyseError,
    StoreUnavailableError,
    SummaryValidationError,
    error_body,
)

# ---------------------------------------------------------------------------
# Logging — configured before anything else
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan — startup & shutdown hooks
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      1. Schema: Alembic migrations (run_migrations=true) or create_all
      2. Interaction log backend (database table or JSON file)
      3. Mistral remote responder (absent key → local classifier only)
      4. Shared httpx client for webhook forwarding
    Shutdown:
      1. Close httpx client
      2. Dispose the engine pool
    """
    # --- 1. Database schema ---
    if settings.run_migrations:
        package_dir = os.path.dirname(os.path.abspath(__file__))
        result = subprocess.run(
            [sys.executable, "-m", "alembic", "upgrade", "head"],
            capture_output=True,
            text=True,
            cwd=package_dir,
        )
        if result.returncode != 0:
            logger.error("Alembic migration failed:\n%s", result.stderr)
            raise RuntimeError(f"Alembic migration failed: {result.stderr}")
        msg = result.stdout.strip() or "No pending migrations"
        logger.info("Alembic: %s", msg)
    else:
        await init_models()
        logger.info("Tables created from ORM metadata")

    # --- 2. Interaction log ---
    from summary_backend.interaction_log import build_interaction_log

    app.state.interaction_log = build_interaction_log(
        settings.interaction_log_backend,
        AsyncSessionLocal,
        settings.interaction_log_path,
    )
    logger.info("Interaction log backend=%s", app.state.interaction_log.backend_name)

    # --- 3. Remote responder ---
    from summary_backend.api.chat.responder import MistralResponder

    app.state.responder = MistralResponder.from_settings()

    # --- 4. Forwarding client ---
    app.state.http_client = httpx.AsyncClient()

    logger.info("Page Summary Backend v%s starting up", settings.app_version)
    yield

    # --- Shutdown ---
    await app.state.http_client.aclose()
    await async_engine.dispose()
    logger.info("Page Summary Backend shutting down")


# ---------------------------------------------------------------------------
# FastAPI application instance
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Page Summary Backend",
    version=settings.app_version,
    description=(
        "Stores page summaries and voice transcripts captured by the browser extension, "
        "serves them back for the dashboard, and answers chat questions about them."
    ),
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# ---------------------------------------------------------------------------
# CORS middleware — origins from settings
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error response helper
# ---------------------------------------------------------------------------
def _make_error_response(
    code: str,
    message: str,
    details: list[dict] | None = None,
    status_code: int = 500,
) -> JSONResponse:
    """Build a standard {success: false, error: {code, message, details}} response."""
    return JSONResponse(status_code=status_code, content=error_body(code, message, details))


def _route_directory() -> list[dict]:
    """Every public API route as {"route": "METHOD /path"} — shown on unknown-route 404s."""
    directory = []
    for route in app.routes:
        if not isinstance(route, APIRoute):
            continue
        for method in sorted(route.methods - {"HEAD", "OPTIONS"}):
            directory.append({"route": f"{method} {route.path}"})
    return directory


# ---------------------------------------------------------------------------
# Global exception handlers — registered BEFORE routers
# ---------------------------------------------------------------------------
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Converts Pydantic / FastAPI validation errors to a 400 naming every bad field.
    """
    details = []
    for error in exc.errors():
        # Build dot-notation field path, excluding the top-level 'body'/'query' loc
        field = ".".join(str(loc) for loc in error["loc"] if loc not in ("body", "query", "path"))
        details.append({"field": field or None, "issue": error["msg"]})
    fields = ", ".join(d["field"] for d in details if d["field"]) or "request body"
    return _make_error_response(
        code="VALIDATION_ERROR",
        message=f"Invalid or missing field(s): {fields}",
        details=details,
        status_code=400,
    )


@app.exception_handler(SummaryValidationError)
async def summary_validation_handler(
    request: Request, exc: SummaryValidationError
) -> JSONResponse:
    return _make_error_response(
        code="VALIDATION_ERROR",
        message=exc.message,
        details=[{"field": exc.field, "issue": exc.message}],
        status_code=400,
    )


@app.exception_handler(NothingToAnalyseError)
async def nothing_to_analyse_handler(
    request: Request, exc: NothingToAnalyseError
) -> JSONResponse:
    return _make_error_response(
        code="NOTHING_TO_ANALYSE",
        message=str(exc),
        status_code=400,
    )


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(
    request: Request, exc: StoreUnavailableError
) -> JSONResponse:
    """
    Persistence failures: generic "Failed to save/fetch ..." message only.
    The driver error was logged (with traceback) where it was translated.
    """
    logger.error("Store unavailable on %s %s: %s", request.method, request.url.path, exc)
    return _make_error_response(
        code="STORE_UNAVAILABLE",
        message=str(exc),
        status_code=500,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """
    Converts HTTPException to standard error format with semantic code.
    A 404 for a path no route matched lists the valid routes in details.
    """
    code_map = {
        400: "BAD_REQUEST",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        422: "VALIDATION_ERROR",
        429: "RATE_LIMITED",
        503: "SERVICE_UNAVAILABLE",
    }
    code = code_map.get(exc.status_code, f"HTTP_{exc.status_code}")
    if exc.status_code == 404 and "route" not in request.scope:
        return _make_error_response(
            code=code,
            message=f"Route {request.method} {request.url.path} not found",
            details=_route_directory(),
            status_code=404,
        )
    return _make_error_response(
        code=code,
        message=str(exc.detail),
        status_code=exc.status_code,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """
    Catch-all for unexpected errors.
    DEBUG=true  → includes exception type in details (dev only).
    DEBUG=false → generic message; full traceback logged server-side only.
    """
    logger.error(
        "Unhandled exception on %s %s",
        request.method,
        request.url.path,
        exc_info=True,
    )
    if settings.debug:
        details = [{"issue": type(exc).__name__}]
        message = "An unexpected error occurred (debug details included)"
    else:
        details = []
        message = "An unexpected error occurred"
    return _make_error_response(
        code="INTERNAL_ERROR",
        message=message,
        details=details,
        status_code=500,
    )


# ---------------------------------------------------------------------------
# Health endpoint (no auth required)
# ---------------------------------------------------------------------------
@app.get("/api/health", tags=["System"])
async def health_check(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """
    Store connectivity + counts. 503 with status=degraded if the store is unreachable.
    """
    from summary_backend.store import count_by_day, count_total, count_voice

    now = datetime.now(timezone.utc)
    responder = getattr(request.app.state, "responder", None)
    interaction_log = getattr(request.app.state, "interaction_log", None)
    body = {
        "status": "ok",
        "version": settings.app_version,
        "timestamp": now.isoformat(),
        "database": "connected",
        "remoteResponder": "configured" if responder is not None and responder.available else "not_configured",
    }
    try:
        body["counts"] = {
            "total": await count_total(db),
            "today": await count_by_day(db, now.date()),
            "voice": await count_voice(db),
        }
        if interaction_log is not None:
            body["interactionLog"] = {
                "backend": interaction_log.backend_name,
                "entries": await interaction_log.count(),
            }
    except StoreUnavailableError:
        body["status"] = "degraded"
        body["database"] = "unavailable"
        return JSONResponse(status_code=503, content=body)
    return body


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from summary_backend.api.summaries.routes import legacy_router, router as summaries_router
from summary_backend.api.chat.routes import router as chat_router

app.include_router(summaries_router)
app.include_router(chat_router)
app.include_router(legacy_router)
