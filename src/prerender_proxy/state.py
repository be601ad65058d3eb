"""Application state container.

AppState is created once per process by ``server.build_state`` and owned by
the Starlette lifespan, which closes the HTTP clients on shutdown. Everything
in it is shared by all in-flight requests; the only mutable piece is the
script registry cache.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from prerender_proxy.bots import BotClassifier
    from prerender_proxy.config import Settings
    from prerender_proxy.dispatcher import EdgeDispatcher
    from prerender_proxy.gateway import CacheGateway
    from prerender_proxy.origin import OriginProxy
    from prerender_proxy.routes import RouteClassifier
    from prerender_proxy.scripts import ScriptRegistryCache


@dataclass
class AppState:
    """Holds all shared runtime state for the edge proxy."""

    settings: Settings

    # Classifiers
    bots: BotClassifier
    routes: RouteClassifier

    # Outbound clients
    backend_client: httpx.AsyncClient
    origin_client: httpx.AsyncClient

    # Components
    gateway: CacheGateway
    scripts: ScriptRegistryCache
    origin: OriginProxy
    dispatcher: EdgeDispatcher
