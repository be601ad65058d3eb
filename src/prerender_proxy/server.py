"""Edge proxy entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Build AppState and the Starlette app around the dispatcher
- Close shared clients on shutdown
- Run uvicorn
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.routing import Route

from prerender_proxy import __version__
from prerender_proxy.bots import BotClassifier
from prerender_proxy.config import Settings
from prerender_proxy.dispatcher import EdgeDispatcher
from prerender_proxy.gateway import CacheGateway, build_http_client
from prerender_proxy.logging_config import setup_logging
from prerender_proxy.origin import OriginProxy, build_origin_client
from prerender_proxy.routes import RouteClassifier
from prerender_proxy.scripts import ScriptRegistryCache
from prerender_proxy.state import AppState

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable
    from contextlib import AbstractAsyncContextManager

log = structlog.get_logger()

PROXIED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def build_state(settings: Settings) -> AppState:
    """Wire every component from settings. Performs no network I/O."""
    bots = BotClassifier.from_settings(settings)
    routes = RouteClassifier(settings.sitemaps.categories)

    backend_client = build_http_client()
    origin_client = build_origin_client(settings.origin.timeout_seconds)

    gateway = CacheGateway(backend_client, settings.backend)
    scripts = ScriptRegistryCache(
        gateway.fetch_scripts,
        ttl_seconds=settings.scripts.ttl_seconds,
    )
    origin = OriginProxy(origin_client, settings.origin.url)

    dispatcher = EdgeDispatcher(
        routes=routes,
        bots=bots,
        gateway=gateway,
        scripts=scripts,
        origin=origin,
        script_injection_enabled=settings.scripts.injection_enabled,
    )

    return AppState(
        settings=settings,
        bots=bots,
        routes=routes,
        backend_client=backend_client,
        origin_client=origin_client,
        gateway=gateway,
        scripts=scripts,
        origin=origin,
        dispatcher=dispatcher,
    )


def build_edge_app(
    dispatcher: EdgeDispatcher,
    *,
    lifespan: Callable[[Starlette], AbstractAsyncContextManager[None]] | None = None,
) -> Starlette:
    """Starlette app routing every path and method through the dispatcher."""
    return Starlette(
        routes=[Route("/{path:path}", dispatcher.handle, methods=PROXIED_METHODS)],
        lifespan=lifespan,
    )


def create_app(settings: Settings | None = None) -> Starlette:
    settings = settings or Settings()
    state = build_state(settings)

    if not settings.backend.configured:
        log.warning(
            "backend_not_configured",
            message="Backend URL or auth token missing; every request goes to the origin.",
        )

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        log.info(
            "server_started",
            version=__version__,
            origin=settings.origin.url,
            backend_configured=settings.backend.configured,
            bot_agents=len(state.bots),
            bot_agents_version=state.bots.version,
            script_injection_enabled=settings.scripts.injection_enabled,
        )
        try:
            yield
        finally:
            await state.gateway.flush()
            await state.backend_client.aclose()
            await state.origin_client.aclose()
            log.info("server_stopping")

    app = build_edge_app(state.dispatcher, lifespan=lifespan)
    app.state.prerender = state
    return app


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()
    setup_logging(settings, service="edge")
    log.info("server_starting", version=__version__)

    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )


if __name__ == "__main__":
    main()
