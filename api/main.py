"""
api/main.py -- FastAPI application entry point for the identity service.

Run with:  uvicorn asgi:app --reload
           python asgi.py

Middleware stack (outermost to innermost):
  1. CORSMiddleware   -- adds CORS headers for the configured origins
  2. log_requests     -- one access-log line per request with latency

Lifespan builds the user directory, the credential manager and the token
issuer once at startup, stores them on app.state, and disposes the database
engine on shutdown. Route handlers read their collaborators from app.state;
nothing else holds global state.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.credentials import CredentialManager
from auth.errors import AuthError, InternalError
from auth.store import UserStore
from auth.tokens import TokenConfig, TokenIssuer
from core.config import Settings, get_settings

API_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("allin.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def build_services(settings: Settings) -> tuple[UserStore, CredentialManager, TokenIssuer]:
    """Construct the directory, credential manager and token issuer from settings.

    TokenConfig validates the secret and lifetime here, so a bad configuration
    stops startup instead of failing the first login.
    """
    store = UserStore(db_url=settings.database_url)
    credentials = CredentialManager(
        store,
        default_balance=settings.init_balance,
        rounds=settings.password_hash_rounds,
    )
    tokens = TokenIssuer(
        TokenConfig(
            secret=settings.jwt_secret,
            issuer=settings.jwt_issuer,
            ttl_minutes=settings.jwt_ttl_minutes,
        )
    )
    return store, credentials, tokens


# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.
    """
    logger.info("Identity API starting up")
    store, credentials, tokens = build_services(_settings)
    app.state.user_store = store
    app.state.credentials = credentials
    app.state.tokens = tokens
    app.state.started_at = time.monotonic()
    logger.info("Auth initialized (issuer=%s, ttl=%dm)", tokens.config.issuer, tokens.config.ttl_minutes)

    yield

    app.state.user_store.close()
    logger.info("Identity API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="All-In Identity API",
    description="User registration, password login and bearer token issuance.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

_cors_origins = _settings.cors_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    # Browsers reject credentialed requests against a wildcard origin.
    allow_credentials="*" not in _cors_origins,
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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map core error conditions to their HTTP status and the shared envelope.

    InternalError details were already logged where they happened; the client
    only sees the generic message.
    """
    if isinstance(exc, InternalError):
        logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message)).model_dump(exclude_none=True),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when the request body cannot be parsed."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions."""
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(exclude_none=True),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(exclude_none=True),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version, uptime and database reachability."""
    started_at = getattr(request.app.state, "started_at", time.monotonic())
    store: UserStore = request.app.state.user_store
    return HealthResponse(
        version=API_VERSION,
        uptime_seconds=int(time.monotonic() - started_at),
        database="ok" if store.ping() else "error",
    )
