"""Starlette application wiring for the login broker."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from vipps_login.broker.clock import Clock, default_clock
from vipps_login.broker.provider import ProviderGateway, VippsGateway
from vipps_login.broker.service import LoginBrokerService
from vipps_login.broker.store import InMemorySessionStore, SessionStore
from vipps_login.broker.sweeper import SessionSweeper
from vipps_login.config import BrokerSettings
from vipps_login.servers.auth import auth_routes
from vipps_login.servers.correlation import CorrelationIdMiddleware

logger = logging.getLogger("vipps-login.server.app")


async def _not_found(request: Request, exc: HTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return JSONResponse({"error": "Not found"}, status_code=404)
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


async def _server_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=True)
    return JSONResponse({"error": "Something went wrong"}, status_code=500)


def create_app(
    settings: BrokerSettings | None = None,
    *,
    store: SessionStore | None = None,
    gateway: ProviderGateway | None = None,
    clock: Clock = default_clock,
    base_path: str = "/auth",
) -> Starlette:
    """Build the ASGI application.

    *store* and *gateway* default to :class:`InMemorySessionStore` and
    :class:`VippsGateway` configured from *settings* (itself read from the
    environment when omitted).
    """
    settings = settings or BrokerSettings.from_env()
    store = store or InMemorySessionStore(
        initial_ttl=settings.session_initial_ttl,
        extended_ttl=settings.session_extended_ttl,
        clock=clock,
    )
    gateway = gateway or VippsGateway.from_settings(settings)
    service = LoginBrokerService(
        store=store,
        gateway=gateway,
        credential_secret=settings.credential_secret,
        credential_ttl=settings.credential_ttl,
        clock=clock,
    )
    sweeper = SessionSweeper(store, interval=settings.sweep_interval)

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info("Login broker lifespan starting...")
        sweeper.start()
        try:
            yield
        finally:
            logger.info("Login broker lifespan shutting down...")
            sweeper.stop()
            logger.info("Login broker lifespan shutdown complete.")

    async def _root(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "message": "Vipps Login Broker",
                "environment": os.getenv("APP_ENV") or "development",
            }
        )

    routes = [Route("/", _root, methods=["GET"])]
    routes.extend(auth_routes(service, settings, base_path=base_path))

    app = Starlette(
        routes=routes,
        middleware=[Middleware(CorrelationIdMiddleware)],
        exception_handlers={HTTPException: _not_found, Exception: _server_error},
        lifespan=lifespan,
    )
    app.state.service = service
    app.state.sweeper = sweeper
    app.state.settings = settings
    return app
