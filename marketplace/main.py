"""
Marketplace Backend — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() returns a configured FastAPI instance; the lifespan
       builds the AppContext (engine, storage, mailer, task pool) unless one
       was handed in.
Who:   Called by uvicorn (uvicorn marketplace.main:app) and by the tests.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌──────────┐ ┌────────┐ ┌─────────┐   │
    │  │  Req ID  │→│ Logging  │→│  GZip  │→│  CORS   │   │
    │  └──────────┘ └──────────┘ └────────┘ └─────────┘   │
    │                                                     │
    │  Routes (/api/v1):                                  │
    │  auth · providers · categories · services · staff   │
    │  healthcheck                                        │
    │                                                     │
    │  Exception Handlers:                                │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ MarketplaceError→status │ body decode→400    │   │
    │  │ HTTPException→status    │ Exception→500      │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘

Error Envelope:
    {"error": "message"}  or  {"error": {"field": "message"}}

Lifecycle:
    Startup:
    1. Initialize logging
    2. Validate configuration for production
    3. Build the AppContext (unless one was injected)

    Shutdown:
    1. Drain background tasks (bounded by SHUTDOWN_GRACE_PERIOD)
    2. Dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional, Sequence, Tuple

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from marketplace import __version__
from marketplace.config import Settings, get_settings
from marketplace.context import AppContext, build_context
from marketplace.exceptions import AuthenticationError, MarketplaceError
from marketplace.middleware.logging import RequestLoggingMiddleware
from marketplace.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware, request_id_var
from marketplace.routes import api_router

logger = logging.getLogger(__name__)

SERVER_ERROR_MESSAGE = "the server encountered a problem and could not process your request"
NOT_FOUND_MESSAGE = "the requested resource could not be found"


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(settings.log_level)
    logger.info("=" * 60)
    logger.info("Marketplace Backend starting up (env=%s)...", settings.env)

    if settings.env == "production":
        try:
            settings.validate_required_for_production()
        except ValueError as e:
            logger.error("Configuration error: %s", e)
            logger.error("Fix the configuration and restart the server.")

    owns_context = getattr(app.state, "context", None) is None
    if owns_context:
        app.state.context = build_context(settings)

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Marketplace Backend shutting down...")
    if owns_context:
        context: AppContext = app.state.context
        await context.aclose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def describe_request_errors(errors: Sequence[Dict[str, Any]]) -> Tuple[int, str]:
    """
    Turn FastAPI's decoding errors into one client-facing (status, message).

    Only the first error is reported. Malformed path parameters (e.g. a
    non-numeric ID) are answered as "not found".
    """
    if not errors:
        return 400, "bad request"
    error = errors[0]
    loc = tuple(error.get("loc", ()))
    kind = error.get("type", "")

    if loc and loc[0] == "path":
        return 404, NOT_FOUND_MESSAGE
    if kind == "json_invalid":
        return 400, "body contains badly-formed JSON"
    if kind == "missing" and loc == ("body",):
        return 400, "body must not be empty"

    field = ".".join(str(part) for part in loc[1:] if not isinstance(part, int)) or "body"
    if kind == "extra_forbidden":
        return 400, f"body contains unknown key {field!r}"
    if kind == "model_attributes_type":
        return 400, "body must be a single JSON object"
    return 400, f"body contains incorrect JSON type for field {field!r}"


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to the error envelope.

    Handler hierarchy:
        MarketplaceError        → exc.status_code (422 field maps, 401, 403, 404, 409)
        MarketplaceError (5xx)  → 500 with a generic message, context logged
        RequestValidationError  → 400 (404 for malformed path parameters)
        HTTPException           → its status (unknown route, wrong method)
        Exception (fallback)    → 500, connection closed

    Security: handlers never put stack traces, SQL or storage keys in a response.
    """

    @app.exception_handler(MarketplaceError)
    async def handle_marketplace_error(request: Request, exc: MarketplaceError):
        rid = request_id_var.get("")
        headers = {}

        if exc.status_code >= 500:
            logger.error(
                "[%s] %s: %s | Context: %s",
                rid,
                type(exc).__name__,
                exc.message,
                exc.context,
                exc_info=exc.__cause__ or exc,
            )
            content: Any = SERVER_ERROR_MESSAGE
        else:
            logger.warning("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
            content = exc.message

        if isinstance(exc, AuthenticationError):
            headers["WWW-Authenticate"] = "Bearer"

        return JSONResponse(status_code=exc.status_code, content={"error": content}, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        status_code, message = describe_request_errors(exc.errors())
        logger.warning("[%s] Request decoding failed: %s", request_id_var.get(""), message)
        return JSONResponse(status_code=status_code, content={"error": message})

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            message = NOT_FOUND_MESSAGE
        elif exc.status_code == 405:
            message = f"the {request.method} method is not supported for this resource"
        else:
            message = exc.detail
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": message},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """
        Catch-all for truly unexpected errors.

        The connection is closed after the response: the handler that
        failed may have left per-connection state in an unknown shape.
        """
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": SERVER_ERROR_MESSAGE},
            headers={"Connection": "close", REQUEST_ID_HEADER: rid},
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(settings: Optional[Settings] = None, context: Optional[AppContext] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: defaults to get_settings().
        context:  an already-built AppContext (tests); when omitted the
                  lifespan builds one and closes it on shutdown.
    """
    settings = settings or (context.settings if context else get_settings())

    app = FastAPI(
        title="Marketplace API",
        description=(
            "Multi-tenant marketplace backend: providers manage staff, services, "
            "categories, business hours and images; clients browse providers."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.context = context

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition:
    # RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(api_router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
# uvicorn expects `marketplace.main:app` to be importable
app = create_app()
