from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import time
import uuid

from fastapi import FastAPI, Request
from starlette.middleware.sessions import SessionMiddleware

from vendor_request_app.core.defaults import DEFAULT_SESSION_SECRET
from vendor_request_app.core.env import (
    VREQ_PERF_LOG_ENABLED,
    VREQ_SESSION_HTTPS_ONLY,
    VREQ_SESSION_SECRET,
    get_env,
    get_env_bool,
)
from vendor_request_app.infrastructure.db import (
    clear_request_perf_context,
    get_request_perf_context,
    start_request_perf_context,
)
from vendor_request_app.infrastructure.local_db_bootstrap import ensure_local_db_ready
from vendor_request_app.infrastructure.logging import setup_app_logging
from vendor_request_app.web.core.runtime import get_config, get_repo
from vendor_request_app.web.http.exception_handlers import error_response, register_exception_handlers
from vendor_request_app.web.routers import router as web_router

PERF_LOGGER = logging.getLogger("vendor_request_app.perf")


def _route_path_label(request: Request) -> str:
    route = request.scope.get("route")
    route_path = str(getattr(route, "path", "") or "").strip()
    return route_path or str(request.url.path or "/")


def create_app() -> FastAPI:
    setup_app_logging()
    config = get_config()
    session_secret = get_env(VREQ_SESSION_SECRET, DEFAULT_SESSION_SECRET)
    if not config.is_dev_env and session_secret == DEFAULT_SESSION_SECRET:
        raise RuntimeError(
            "VREQ_SESSION_SECRET must be set to a strong, non-default value outside dev/local environments."
        )
    session_https_only = get_env_bool(VREQ_SESSION_HTTPS_ONLY, default=not config.is_dev_env)
    perf_enabled = get_env_bool(VREQ_PERF_LOG_ENABLED, default=False)

    @asynccontextmanager
    async def _app_lifespan(_app: FastAPI):
        ensure_local_db_ready(get_config())
        try:
            yield
        finally:
            if get_repo.cache_info().currsize:
                get_repo().close()
                get_repo.cache_clear()

    app = FastAPI(title="Vendor Request Manager", lifespan=_app_lifespan)

    @app.middleware("http")
    async def _request_perf_middleware(request: Request, call_next):
        request_id = uuid.uuid4().hex[:12]
        request.state.request_id = request_id
        token = start_request_perf_context(
            request_id=request_id,
            method=request.method,
            path=str(request.url.path),
        )
        started = time.perf_counter()
        response = None
        try:
            try:
                response = await call_next(request)
            except Exception as exc:  # pylint: disable=broad-except
                response = error_response(request, exc)
            return response
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000.0
            ctx = get_request_perf_context() or {}
            if perf_enabled:
                PERF_LOGGER.info(
                    "request_perf id=%s method=%s path=%s status=%s total_ms=%.2f db_calls=%s db_ms=%.2f",
                    request_id,
                    request.method,
                    _route_path_label(request),
                    getattr(response, "status_code", 500),
                    elapsed_ms,
                    int(ctx.get("db_calls", 0)),
                    float(ctx.get("db_total_ms", 0.0)),
                    extra={
                        "event": "request_perf",
                        "request_id": request_id,
                        "method": request.method,
                        "path": _route_path_label(request),
                        "status_code": getattr(response, "status_code", 500),
                        "total_ms": round(elapsed_ms, 2),
                        "db_calls": int(ctx.get("db_calls", 0)),
                        "db_cache_hits": int(ctx.get("db_cache_hits", 0)),
                        "db_errors": int(ctx.get("db_errors", 0)),
                    },
                )
            if response is not None:
                response.headers["X-Request-ID"] = request_id
            clear_request_perf_context(token)

    app.add_middleware(
        SessionMiddleware,
        secret_key=session_secret,
        same_site="lax",
        https_only=session_https_only,
    )
    register_exception_handlers(app)
    app.include_router(web_router)
    return app


app = create_app()
