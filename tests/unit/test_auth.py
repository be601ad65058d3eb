"""Tests for BearerAuthMiddleware on the reference backend.

Each test exercises the middleware directly via httpx's ASGI transport so no
real server is started. The inner app is a trivial 200-OK echo that never
runs if the middleware short-circuits.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from prerender_proxy.backend.auth import BearerAuthMiddleware

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Receive, Scope, Send


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _ok_app(scope: Scope, receive: Receive, send: Send) -> None:
    """Minimal ASGI app that always returns 200 OK."""
    await send({"type": "http.response.start", "status": 200, "headers": []})
    await send({"type": "http.response.body", "body": b"ok"})


def _client(app: ASGIApp) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://localhost",
    )


# ---------------------------------------------------------------------------
# Auth disabled
# ---------------------------------------------------------------------------


async def test_auth_disabled_allows_any_request() -> None:
    app = BearerAuthMiddleware(_ok_app, auth_enabled=False)
    async with _client(app) as client:
        response = await client.get("/prerender")
    assert response.status_code == 200


async def test_auth_disabled_ignores_auth_header() -> None:
    app = BearerAuthMiddleware(_ok_app, auth_enabled=False)
    async with _client(app) as client:
        response = await client.get("/prerender", headers={"Authorization": "Bearer whatever"})
    assert response.status_code == 200


# ---------------------------------------------------------------------------
# Auth enabled
# ---------------------------------------------------------------------------


async def test_auth_enabled_correct_token_passes() -> None:
    app = BearerAuthMiddleware(_ok_app, auth_enabled=True, auth_token="secret-token")
    async with _client(app) as client:
        response = await client.get(
            "/prerender", headers={"Authorization": "Bearer secret-token"}
        )
    assert response.status_code == 200
    assert response.text == "ok"


async def test_auth_enabled_wrong_token_returns_401() -> None:
    app = BearerAuthMiddleware(_ok_app, auth_enabled=True, auth_token="secret-token")
    async with _client(app) as client:
        response = await client.get("/prerender", headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 401
    assert response.json() == {"error": "unauthorized"}


async def test_auth_enabled_missing_header_returns_401() -> None:
    app = BearerAuthMiddleware(_ok_app, auth_enabled=True, auth_token="secret-token")
    async with _client(app) as client:
        response = await client.get("/prerender")
    assert response.status_code == 401


async def test_auth_enabled_malformed_header_returns_401() -> None:
    """Header present but not in 'Bearer <token>' format."""
    app = BearerAuthMiddleware(_ok_app, auth_enabled=True, auth_token="secret-token")
    async with _client(app) as client:
        response = await client.get("/prerender", headers={"Authorization": "secret-token"})
    assert response.status_code == 401


async def test_auth_enabled_without_token_rejects_everything() -> None:
    app = BearerAuthMiddleware(_ok_app, auth_enabled=True, auth_token=None)
    async with _client(app) as client:
        response = await client.get("/prerender", headers={"Authorization": "Bearer "})
    assert response.status_code == 401
