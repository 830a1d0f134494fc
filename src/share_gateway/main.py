"""Share gateway FastAPI application factory.

The create_app() factory is the single entry point for building the gateway
ASGI application. It wires middleware (request-ID, error boundary), error
handlers, routes, and injects the registry/storage implementations.

Usage:
    # Local development (in-memory registry)
    from share_gateway import create_app, GatewaySettings
    app = create_app(GatewaySettings(admin_token=..., ...))

    # Production (Workers KV registry)
    app = create_app(GatewaySettings.from_env())

    # Testing (full DI control)
    app = create_app(settings, registry=InMemoryShareRegistry(), http_client=mock)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from .errors import GatewayError, UpstreamError
from .observability.logging import configure_logging, get_logger
from .observability.middleware import RequestIdMiddleware
from .settings import GatewaySettings
from .sharing.access import create_share_access_router
from .sharing.auth import PinAuthenticator
from .sharing.kv_registry import KVShareRegistry
from .sharing.model import InMemoryShareRegistry, ShareRegistry
from .sharing.routes import create_admin_router
from .storage.client import StorageClient
from .storage.signer import SigV4Signer

logger = get_logger(__name__)


@dataclass(frozen=True)
class GatewayDependencies:
    """Container for injected collaborators.

    Stored on ``app.state.deps`` so tests and handlers can reach them.
    """

    registry: ShareRegistry
    storage: StorageClient
    authenticator: PinAuthenticator


# ── Error handling ──────────────────────────────────────────────────


def _error_body(code: str, detail: str, request: Request) -> dict:
    return {
        "error": code,
        "detail": detail,
        "request_id": getattr(request.state, "request_id", None),
    }


async def _gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    if isinstance(exc, UpstreamError):
        logger.error(
            "upstream_error",
            path=request.url.path,
            error_type=type(exc).__name__,
            internal=exc.internal,
        )
    else:
        logger.info(
            "request_rejected",
            path=request.url.path,
            status=exc.status_code,
            code=exc.code,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, exc.detail, request),
    )


_HTTP_ERROR_CODES = {404: "not_found", 405: "method_not_allowed"}


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(
            _HTTP_ERROR_CODES.get(exc.status_code, "http_error"), str(exc.detail), request,
        ),
        headers=getattr(exc, "headers", None),
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=_error_body("invalid_request", "Invalid request parameters.", request),
    )


class ErrorBoundaryMiddleware(BaseHTTPMiddleware):
    """Turn any uncaught exception into a generic 500.

    Exception text never reaches the client; it is logged instead.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        try:
            return await call_next(request)
        except Exception:
            logger.exception("unhandled_error", path=request.url.path, method=request.method)
            return JSONResponse(
                status_code=500,
                content=_error_body("internal_error", "Internal server error.", request),
            )


# ── Factory ─────────────────────────────────────────────────────────


def create_app(
    settings: GatewaySettings | None = None,
    *,
    registry: ShareRegistry | None = None,
    storage: StorageClient | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Build the gateway application.

    Args:
        settings: Gateway configuration. Defaults to ``from_env()``.
        registry: Share registry override. Defaults to Workers KV when
            ``kv_namespace_id`` is set, else in-memory (local only).
        storage: Storage client override.
        http_client: Shared outbound client for KV and storage calls.
            When omitted one is created and closed on shutdown.

    Raises:
        ValueError: Settings fail validation, or a non-local environment
            has no registry configured.
    """
    if settings is None:
        settings = GatewaySettings.from_env()

    configure_logging()

    errors = settings.validate()
    if errors:
        raise ValueError(
            "Gateway settings validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    owns_client = http_client is None
    client = http_client or httpx.AsyncClient()

    if registry is None:
        if settings.uses_kv_registry:
            registry = KVShareRegistry(
                account_id=settings.r2_account_id,
                namespace_id=settings.kv_namespace_id,
                api_token=settings.cf_api_token,
                http_client=client,
            )
        elif settings.is_local:
            registry = InMemoryShareRegistry()
        else:
            raise ValueError(
                f"Non-local environment ({settings.environment}) requires a share registry"
            )

    if storage is None:
        storage = StorageClient(
            SigV4Signer(
                access_key_id=settings.storage_access_key_id,
                secret_access_key=settings.storage_secret_access_key,
                host=settings.storage_host,
                region=settings.storage_region,
            ),
            http_client=client,
            presign_expires_seconds=settings.presign_expires_sec,
        )

    deps = GatewayDependencies(
        registry=registry,
        storage=storage,
        authenticator=PinAuthenticator(settings.effective_cookie_secret),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "gateway_startup",
            environment=settings.environment,
            registry=type(registry).__name__,
            storage_host=settings.storage_host,
        )
        yield
        if owns_client:
            await client.aclose()
        logger.info("gateway_shutdown")

    app = FastAPI(
        title="Folder Share Gateway",
        description="Time-limited, read-only folder shares over S3-compatible storage",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.deps = deps
    app.state.settings = settings

    # ── Middleware stack (applied in reverse order) ──────────────
    # Order of execution: RequestID -> ErrorBoundary -> route handler
    app.add_middleware(ErrorBoundaryMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(GatewayError, _gateway_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    # ── Routes ──────────────────────────────────────────────────

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "environment": settings.environment,
        }

    app.include_router(
        create_admin_router(
            deps.registry,
            admin_token=settings.admin_token,
            public_base_url=settings.public_base_url,
        )
    )
    app.include_router(
        create_share_access_router(deps.registry, deps.storage, deps.authenticator)
    )

    return app


# For uvicorn, use --factory flag:
#   uvicorn share_gateway.main:create_app --factory
# This avoids executing create_app() at import time.
