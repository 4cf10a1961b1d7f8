"""
NoteVault Backend — Application Factory
=========================================

What:  Builds the FastAPI app: middleware, error mapping, routers, lifespan.
How:   `create_app()` returns a fresh instance; `app` at module bottom is the
       one uvicorn serves (`uvicorn notevault.main:app`). Tests call
       `create_app()` themselves and override the session dependency.

Request path:
    ┌────────────┐   ┌────────────┐   ┌──────┐   ┌──────┐   ┌──────────────────┐
    │ Request ID │──▶│ Access log │──▶│ GZip │──▶│ CORS │──▶│ /api/notes  or   │
    └────────────┘   └────────────┘   └──────┘   └──────┘   │ /, /health       │
                                                            └──────────────────┘

Error mapping (body: {error, message, [details], request_id}):
    ValidationError, RequestValidationError   400  validation_error
    UnauthorizedError                         401  unauthorized
    ForbiddenError                            403  forbidden
    NotFoundError                             404  not_found
    StoreError                                500  server_error
    anything else                             500  internal_server_error

Lifespan:
    startup   configure logging, check settings, create tables if DB_AUTO_CREATE
    shutdown  dispose the engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from notevault import __version__
from notevault.config import settings
from notevault.database import create_schema, dispose_engine
from notevault.exceptions import (
    ForbiddenError,
    NotFoundError,
    StoreError,
    UnauthorizedError,
    ValidationError,
)
from notevault.middleware.logging import RequestLoggingMiddleware
from notevault.middleware.request_id import RequestIDMiddleware, request_id_var
from notevault.routes import health, notes

logger = logging.getLogger(__name__)

# Chatty at INFO; raised so the access log stays readable
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx")


def setup_logging() -> None:
    """Root logger to stdout at LOG_LEVEL; safe to call more than once."""
    logging.basicConfig(
        level=settings.log_level_number,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("NoteVault %s starting (prefix=%r)", __version__, settings.api_prefix_normalized)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Not fatal: /health keeps answering while note routes return 401
        logger.error("%s", e)

    if settings.db_auto_create:
        await create_schema()
        logger.info("Tables created where missing (DB_AUTO_CREATE)")

    logger.info("Listening on http://%s:%d", settings.backend_host, settings.backend_port)
    yield

    await dispose_engine()
    logger.info("NoteVault stopped")


# ══════════════════════════════════════════════════════════════════════════
# Error Responses
# ══════════════════════════════════════════════════════════════════════════


def error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """The one error body shape every handler returns."""
    body: Dict[str, Any] = {"error": error, "message": message}
    if details:
        body["details"] = details
    body["request_id"] = request_id_var.get("")
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _field_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    """Flatten pydantic errors to [{field, message}], dropping the 'body'/'query' prefix."""
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ())]
        field = ".".join(loc[1:]) if len(loc) > 1 else ".".join(loc)
        errors.append({"field": field, "message": err.get("msg", "Invalid value")})
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the NoteVaultError hierarchy (and FastAPI's own body/query
    validation) onto status codes. Bodies never carry stack traces, SQL, or
    the owner of a note the caller was refused.
    """

    @app.exception_handler(ValidationError)
    async def on_validation_error(request: Request, exc: ValidationError):
        logger.warning("Validation error: %s", exc.message)
        return error_response(400, "validation_error", exc.message, details=exc.context)

    @app.exception_handler(RequestValidationError)
    async def on_request_validation_error(request: Request, exc: RequestValidationError):
        errors = _field_errors(exc)
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, errors)
        return error_response(
            400, "validation_error", "Request validation failed", details={"errors": errors}
        )

    @app.exception_handler(UnauthorizedError)
    async def on_unauthorized(request: Request, exc: UnauthorizedError):
        return error_response(
            401, "unauthorized", exc.message, headers={"WWW-Authenticate": "Bearer"}
        )

    @app.exception_handler(ForbiddenError)
    async def on_forbidden(request: Request, exc: ForbiddenError):
        return error_response(403, "forbidden", exc.message)

    @app.exception_handler(NotFoundError)
    async def on_not_found(request: Request, exc: NotFoundError):
        return error_response(404, "not_found", exc.message)

    @app.exception_handler(StoreError)
    async def on_store_error(request: Request, exc: StoreError):
        # Context (operation, driver error type) stays in the log
        logger.error("Store failure: %s | %s", exc.message, exc.context)
        return error_response(
            500, "server_error", "An internal error occurred. Please try again later."
        )

    @app.exception_handler(Exception)
    async def on_unexpected_error(request: Request, exc: Exception):
        logger.error("Unhandled %s: %s", type(exc).__name__, exc, exc_info=True)
        return error_response(
            500, "internal_server_error", "An unexpected error occurred."
        )


# ══════════════════════════════════════════════════════════════════════════
# Factory
# ══════════════════════════════════════════════════════════════════════════


def create_app() -> FastAPI:
    app = FastAPI(
        title="NoteVault API",
        description=(
            "Multi-user note-taking backend: create, list, filter, pin, archive "
            "and delete personal notes, with tag statistics."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # add_middleware prepends: the last one added is outermost
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(notes.router, prefix=settings.api_prefix_normalized)
    app.include_router(health.router)

    return app


app = create_app()
