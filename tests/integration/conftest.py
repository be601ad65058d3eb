"""Integration test fixtures.

The edge app is wired from real components (gateway, script cache, origin
proxy, dispatcher). Backend and origin are both mocked with respx; the test
client reaches the app through httpx's ASGI transport, which respx leaves
untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest
import respx

from prerender_proxy.dispatcher import EdgeDispatcher
from prerender_proxy.gateway import CacheGateway
from prerender_proxy.origin import OriginProxy
from prerender_proxy.scripts import ScriptRegistryCache
from prerender_proxy.server import build_edge_app

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable, Iterator

    from prerender_proxy.bots import BotClassifier
    from prerender_proxy.config import BackendSettings
    from prerender_proxy.routes import RouteClassifier

BACKEND_URL = "https://backend.test"
ORIGIN_URL = "https://origin.test"
EDGE_URL = "https://www.example.com"

HEAD_SCRIPT = '<script src="https://cdn.test/analytics.js"></script>'
BODY_SCRIPT = "<script>window.chat=1</script>"


@pytest.fixture()
def mock_http() -> Iterator[respx.MockRouter]:
    """respx router for backend and origin, with a populated script registry."""
    with respx.mock(assert_all_called=False) as mock:
        mock.get(f"{BACKEND_URL}/script-service", name="scripts").respond(
            json={"head": [HEAD_SCRIPT], "body": [BODY_SCRIPT]}
        )
        mock.post(f"{BACKEND_URL}/prerender/hits", name="hits").respond(204)
        yield mock


@pytest.fixture()
async def http_clients() -> AsyncGenerator[tuple[httpx.AsyncClient, httpx.AsyncClient], None]:
    async with httpx.AsyncClient() as backend_client, httpx.AsyncClient() as origin_client:
        yield backend_client, origin_client


@pytest.fixture()
def make_dispatcher(
    backend_settings: BackendSettings,
    bots: BotClassifier,
    routes: RouteClassifier,
    http_clients: tuple[httpx.AsyncClient, httpx.AsyncClient],
) -> Callable[..., EdgeDispatcher]:
    backend_client, origin_client = http_clients

    def _build(
        *,
        script_injection_enabled: bool = True,
        backend: BackendSettings | None = None,
    ) -> EdgeDispatcher:
        gateway = CacheGateway(
            backend_client,
            backend or backend_settings.model_copy(update={"record_hits": False}),
        )
        return EdgeDispatcher(
            routes=routes,
            bots=bots,
            gateway=gateway,
            scripts=ScriptRegistryCache(gateway.fetch_scripts, ttl_seconds=300),
            origin=OriginProxy(origin_client, ORIGIN_URL),
            script_injection_enabled=script_injection_enabled,
        )

    return _build


@pytest.fixture()
def make_edge_client(
    make_dispatcher: Callable[..., EdgeDispatcher],
) -> Callable[..., httpx.AsyncClient]:
    """Return a factory for test clients talking to a freshly wired edge app."""

    def _build(**kwargs: object) -> httpx.AsyncClient:
        app = build_edge_app(make_dispatcher(**kwargs))
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=EDGE_URL)

    return _build
