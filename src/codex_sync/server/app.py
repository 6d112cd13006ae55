"""Starlette application factory.

Routes:

- ``GET /health``  -- liveness, no auth.
- ``POST /sync``   -- forward sync of a batch of changed paths.
- ``POST /export`` -- reverse export to a branch + pull request.

Handlers find their collaborators on ``request.app.state`` (``config`` and
``services``); nothing is held in module globals.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from starlette.applications import Starlette
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ..config import Config
from ..core.async_utils import run_sync
from ..sync.export import (
    ExportError,
    InvalidExportRequest,
    ReverseExportHandler,
    parse_export_request,
)
from ..sync.forward import ForwardSyncHandler, InvalidSyncRequest, parse_entries
from .auth import require_auth
from .errors import GITHUB_NOT_CONFIGURED, INVALID_JSON, error_response, unauthorized
from .lifespan import Services, open_services

logger = logging.getLogger(__name__)

SERVICE_NAME = "codex-sync"

CallNext = Callable[[Request], Awaitable[Response]]


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration of every request."""

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("%s %s failed", request.method, request.url.path)
            raise
        logger.info(
            "%s %s -> %d (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response


def _authorized(request: Request) -> bool:
    config: Config = request.app.state.config
    return require_auth(config.sync_secret, request.headers.get("authorization"))


async def _read_json(request: Request, allow_empty: bool = False) -> Any:
    """Decode the request body.

    Raises:
        ValueError: If the body is not valid JSON (or empty when not allowed).
    """
    body = await request.body()
    if allow_empty and not body.strip():
        return None
    return json.loads(body)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def health(request: Request) -> JSONResponse:
    config: Config = request.app.state.config
    return JSONResponse(
        {"status": "ok", "service": SERVICE_NAME, "env": config.environment}
    )


async def sync(request: Request) -> Response:
    if not _authorized(request):
        return unauthorized()

    try:
        payload = await _read_json(request)
    except ValueError:
        return error_response(INVALID_JSON, 400)

    config: Config = request.app.state.config
    try:
        entries = parse_entries(payload, max_batch_size=config.max_batch_size)
    except InvalidSyncRequest as e:
        logger.warning("Rejected /sync batch: %s", e)
        return error_response(str(e), 400)

    services: Services = request.app.state.services
    handler = ForwardSyncHandler(
        services.store,
        services.index,
        max_parallel=config.max_parallel,
        default_author=config.default_author,
    )
    response = await handler.sync(entries)
    return JSONResponse(response.to_json())


async def export(request: Request) -> Response:
    if not _authorized(request):
        return unauthorized()

    services: Services = request.app.state.services
    if services.github is None:
        return error_response(GITHUB_NOT_CONFIGURED, 500)

    try:
        payload = await _read_json(request, allow_empty=True)
    except ValueError:
        return error_response(INVALID_JSON, 400)

    try:
        export_request = parse_export_request(payload)
    except InvalidExportRequest as e:
        return error_response(str(e), 400)

    handler = ReverseExportHandler(services.store, services.github)
    try:
        result = await run_sync(handler.export, export_request)
    except ExportError as e:
        logger.error("Export failed: %s", e)
        return error_response(str(e), 500)
    except Exception as e:
        logger.exception("Export failed")
        return error_response(str(e), 500)

    return JSONResponse(result.to_json())


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_app(config: Config, services: Services | None = None) -> Starlette:
    """Create the Starlette application.

    Args:
        config: Resolved configuration.
        services: Ready-made services (tests).  When omitted, the lifespan
            opens them from *config* on startup and closes them on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        owned = app.state.services is None
        if owned:
            app.state.services = await run_sync(open_services, config)
        logger.info("codex-sync ready (env=%s)", config.environment)
        try:
            yield
        finally:
            if owned:
                app.state.services.close()
                app.state.services = None
            logger.info("codex-sync shutting down")

    app = Starlette(
        routes=[
            Route("/health", health, methods=["GET"]),
            Route("/sync", sync, methods=["POST"]),
            Route("/export", export, methods=["POST"]),
        ],
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.services = services
    app.add_middleware(RequestLoggingMiddleware)
    return app
