"""
api/main.py -- FastAPI application entry point for the notcorp identity service.

Run with:  uvicorn asgi:app --reload
           python main.py

Middleware stack (outermost to innermost):
  1. CORSMiddleware -- lets the single client origin send the session cookie
  2. log_requests   -- one log line per request with status and latency

Lifespan handles startup (engine, stores, mailer, AuthService, session purge
task) and shutdown (cancel purge task, stop mail workers, dispose engine)
symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException

from api.models import HealthResponse, MessageResponse, ValidationErrorResponse
from api.routes.user import router as user_router
from auth.mailer import SmtpMailer
from auth.service import build_auth_service
from auth.store import make_engine
from core.config import get_settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("notcorp.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval: int) -> None:
    """Remove expired sessions every `interval` seconds.

    Expired sessions already fail on load; this only keeps the table from
    growing with records nobody presents again. A failed sweep is logged and
    retried on the next tick.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            await run_in_threadpool(app.state.auth_service.sessions.purge_expired)
        except Exception:
            logger.exception("Session purge failed")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build shared resources on startup and release them on shutdown."""
    settings = get_settings()
    logger.info("Identity service starting up")
    app.state.engine = make_engine(settings.database_url)
    mailer = SmtpMailer(
        host=settings.smtp_host,
        port=settings.smtp_port,
        sender=settings.sender_address,
        user=settings.smtp_user,
        password=settings.smtp_password,
        starttls=settings.smtp_starttls,
        timeout=settings.mail_timeout_seconds,
    )
    app.state.auth_service = build_auth_service(app.state.engine, settings, mailer)
    logger.info("Auth initialized (session max age %ds)", settings.session_max_age_seconds)
    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.session_purge_interval_seconds))

    yield

    # Shutdown
    app.state.purge_task.cancel()
    app.state.auth_service.mail.close()
    app.state.engine.dispose()
    logger.info("Identity service shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="notcorp identity",
    description="Account creation, login sessions and password reset.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
    max_age=3600,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(user_router, prefix="/user", tags=["User"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error body carries a "message" field. Validation failures add the
# per-field messages under "errors".
# ---------------------------------------------------------------------------


def _format_validation_error(err: dict) -> str:
    loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
    return f"{loc}: {err.get('msg', 'invalid value')}" if loc else str(err.get("msg", "invalid value"))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Schema failures answer 500 with one message per offending field."""
    logger.warning("%s %s input failed validation.", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ValidationErrorResponse(
            message="Request validation failed.",
            errors=[_format_validation_error(e) for e in exc.errors()],
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return `{message}` for all HTTP exceptions.

    Route handlers raise HTTPException with detail=MessageResponse(...).model_dump().
    Anything else (e.g. Starlette's 404/405) is wrapped the same way.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content=exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=MessageResponse(message=str(exc.detail)).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The traceback goes to the log only. The client receives a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=MessageResponse(message="Unknown error.").model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return liveness and current version."""
    return HealthResponse(version=__version__)
