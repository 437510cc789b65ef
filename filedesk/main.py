"""FastAPI application entry point."""

from __future__ import annotations

import logging
import secrets
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette.middleware.trustedhost import TrustedHostMiddleware

from filedesk import __version__
from filedesk.api.admin import CSRF_COOKIE
from filedesk.api.admin import router as admin_router
from filedesk.api.deploy import router as deploy_router
from filedesk.api.deps import ADMIN_COOKIE
from filedesk.api.events import router as events_router
from filedesk.api.files import router as files_router
from filedesk.api.pages import router as pages_router
from filedesk.api.status import router as status_router
from filedesk.config import Settings
from filedesk.database import create_engine, ensure_sqlite_dir
from filedesk.exceptions import DashboardError
from filedesk.github.client import GitHubContentClient
from filedesk.models.base import Base
from filedesk.services.audit_service import AuditLog
from filedesk.services.auth_service import hash_password
from filedesk.services.file_service import FileWorkflow
from filedesk.services.lock_service import LockStateStore
from filedesk.services.notification_service import NotificationHub
from filedesk.services.rate_limit_service import InMemoryRateLimiter

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable

    from starlette.responses import Response

    from filedesk.github.base import ContentStore

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if debug else logging.WARNING)


async def init_state(app: FastAPI, store: ContentStore | None = None) -> None:
    """Create the database, services and workflow and attach them to app state.

    ``store`` replaces the GitHub client, which tests use to run against an
    in-memory content store.
    """
    settings: Settings = app.state.settings

    ensure_sqlite_dir(settings.database_url)
    try:
        engine, session_factory = create_engine(settings)
        app.state.engine = engine
        app.state.session_factory = session_factory
    except Exception as exc:
        logger.critical(
            "Failed to initialize database: %s. Check database path and permissions.", exc
        )
        raise

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as exc:
        logger.critical("Failed to create database schema: %s.", exc)
        raise

    lock_store = LockStateStore(session_factory)
    try:
        await lock_store.load()
    except Exception as exc:
        logger.critical("Failed to load system lock state: %s.", exc)
        raise
    app.state.lock_store = lock_store

    targets = settings.resolve_targets()
    if not targets:
        logger.warning("No target files configured; set GITHUB_REPO/GITHUB_FILE_PATH or TARGETS")
    for target in targets.values():
        logger.info("Managing %s (%s:%s)", target.key, target.repo, target.path)

    if store is None:
        store = GitHubContentClient(
            api_url=settings.github_api_url,
            timeout=settings.github_timeout_seconds,
        )
    app.state.audit_log = AuditLog(session_factory)
    app.state.hub = NotificationHub()
    app.state.workflow = FileWorkflow(
        targets,
        store,
        lock_store,
        app.state.audit_log,
        app.state.hub,
    )
    app.state.admin_password_hash = hash_password(settings.admin_password)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings
    settings.validate_runtime_security()
    _configure_logging(settings.debug)
    logger.info("Starting FileDesk (debug=%s)", settings.debug)

    await init_state(app)

    yield

    try:
        await app.state.engine.dispose()
    except Exception as exc:
        logger.error("Error during engine disposal: %s", exc, exc_info=True)

    logger.info("FileDesk stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()

    docs_enabled = settings.debug or settings.expose_docs

    app = FastAPI(
        title="FileDesk",
        description="Edit GitHub-hosted files from a small dashboard",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.state.settings = settings
    app.state.rate_limiter = InMemoryRateLimiter()

    app.add_middleware(GZipMiddleware, minimum_size=500)

    trusted_hosts = settings.trusted_hosts or (
        ["localhost", "127.0.0.1", "::1", "test", "testserver"] if settings.debug else []
    )
    if trusted_hosts:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=trusted_hosts)

    @app.middleware("http")
    async def csrf_protection(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if request.method in {"POST", "PUT", "PATCH", "DELETE"} and request.url.path.startswith(
            "/api/admin/"
        ):
            auth_header = request.headers.get("Authorization", "")
            has_bearer = auth_header.lower().startswith("bearer ")
            admin_cookie = request.cookies.get(ADMIN_COOKIE)
            if admin_cookie and not has_bearer and request.url.path != "/api/admin/login":
                header_token = request.headers.get("X-CSRF-Token")
                cookie_token = request.cookies.get(CSRF_COOKIE)
                if (
                    header_token is None
                    or cookie_token is None
                    or not secrets.compare_digest(header_token, cookie_token)
                ):
                    return JSONResponse(
                        status_code=403,
                        content={"detail": "Invalid CSRF token"},
                    )
        return await call_next(request)

    @app.middleware("http")
    async def security_headers(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        response = await call_next(request)
        if settings.security_headers_enabled:
            response.headers.setdefault("X-Content-Type-Options", "nosniff")
            response.headers.setdefault("X-Frame-Options", "DENY")
            response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
            if settings.content_security_policy:
                response.headers.setdefault(
                    "Content-Security-Policy",
                    settings.content_security_policy,
                )
        return response

    app.include_router(status_router)
    app.include_router(files_router)
    app.include_router(admin_router)
    app.include_router(deploy_router)
    app.include_router(events_router)
    app.include_router(pages_router)

    # Global exception handlers

    @app.exception_handler(DashboardError)
    async def dashboard_error_handler(request: Request, exc: DashboardError) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log("%s in %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": str(exc), "kind": exc.kind},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = []
        for err in exc.errors():
            loc = err.get("loc", ())
            field = str(loc[-1]) if loc else "unknown"
            errors.append({"field": field, "message": err.get("msg", "Invalid value")})
        logger.warning(
            "RequestValidationError in %s %s: %s",
            request.method,
            request.url.path,
            errors,
        )
        return JSONResponse(status_code=422, content={"detail": errors})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.error(
            "ValueError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc
        )
        message = str(exc) or "Invalid value"
        return JSONResponse(
            status_code=422,
            content={"detail": message},
        )

    @app.exception_handler(OperationalError)
    async def operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
        logger.error(
            "OperationalError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc
        )
        return JSONResponse(
            status_code=503,
            content={"detail": "Database temporarily unavailable"},
        )

    return app


app = create_app()


def cli_entry() -> None:
    """CLI entry point for running the server."""
    import uvicorn

    settings: Settings = app.state.settings
    uvicorn.run(
        "filedesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
