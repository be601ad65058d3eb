"""Reference backend HTTP surface.

Endpoints consumed by the edge gateway:

- ``GET  /prerender?path=``        cached HTML, or 404 ``{"error": "not_cached"}``
- ``POST /prerender/hits?path=``   best-effort hit counter
- ``GET  /serve-sitemap?file=``    pre-generated sitemap XML
- ``GET  /generate-sitemap?type=`` sitemap assembled from cached pages
- ``GET  /script-service``         ``{"head": [...], "body": [...]}``
"""

from __future__ import annotations

import secrets
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from prerender_proxy import __version__
from prerender_proxy.backend.auth import BearerAuthMiddleware
from prerender_proxy.backend.store import PageStore
from prerender_proxy.config import Settings
from prerender_proxy.logging_config import setup_logging
from prerender_proxy.models.gateway import CacheState
from prerender_proxy.routes import SITEMAP_INDEX_FILE, normalise_path
from prerender_proxy.sitemap import EMPTY_URLSET, build_urlset

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable
    from contextlib import AbstractAsyncContextManager

    from starlette.requests import Request
    from starlette.types import ASGIApp

log = structlog.get_logger()

_HTML = "text/html; charset=utf-8"
_XML = "application/xml; charset=utf-8"


class BackendEndpoints:
    """Request handlers over a :class:`PageStore`.

    ``store`` is None until the lifespan has opened the database; requests
    arriving before that get a 503.
    """

    def __init__(self, store: PageStore | None, *, site_url: str) -> None:
        self.store = store
        self.site_url = site_url

    def _require_store(self) -> PageStore | None:
        if self.store is None:
            log.warning("backend_store_not_ready")
        return self.store

    async def prerender(self, request: Request) -> Response:
        path = normalise_path(request.query_params.get("path") or "/")
        store = self._require_store()
        if store is None:
            return JSONResponse({"error": "not_ready"}, status_code=503)

        try:
            page = await store.get_page(path)
        except aiosqlite.Error as exc:
            log.error("prerender_lookup_error", path=path, exc_info=True)
            return JSONResponse({"error": str(exc)}, status_code=500)

        if page is None:
            log.info("prerender_cache_miss", path=path)
            return JSONResponse(
                {"error": "not_cached", "path": path},
                status_code=404,
                headers={"X-Cache": CacheState.MISS},
            )

        cache_state = CacheState.STALE if page.stale else CacheState.HIT
        log.info("prerender_cache_hit", path=path, cache=cache_state)
        headers = {
            "Content-Type": _HTML,
            "X-Prerendered": "true",
            "X-Cache": cache_state,
            "Cache-Control": "public, max-age=3600, s-maxage=86400",
        }
        if page.expires_at is not None:
            headers["X-Expires-At"] = page.expires_at.isoformat()
        return Response(content=page.html, status_code=200, headers=headers)

    async def record_hit(self, request: Request) -> Response:
        path = request.query_params.get("path")
        if not path:
            return JSONResponse({"error": "missing_path"}, status_code=400)
        store = self._require_store()
        if store is None:
            return JSONResponse({"error": "not_ready"}, status_code=503)

        updated = await store.increment_hits(normalise_path(path))
        return Response(status_code=204 if updated else 404)

    async def serve_sitemap(self, request: Request) -> Response:
        filename = request.query_params.get("file") or SITEMAP_INDEX_FILE
        store = self._require_store()
        if store is None:
            return Response(EMPTY_URLSET, status_code=503, headers={"Content-Type": _XML})

        try:
            sitemap = await store.get_sitemap(filename)
        except aiosqlite.Error:
            log.error("sitemap_lookup_error", filename=filename, exc_info=True)
            return Response(EMPTY_URLSET, status_code=500, headers={"Content-Type": _XML})

        if sitemap is None:
            return Response(EMPTY_URLSET, status_code=404, headers={"Content-Type": _XML})

        return Response(
            sitemap.content,
            status_code=200,
            headers={
                "Content-Type": _XML,
                "Cache-Control": "public, max-age=1800",
                "X-Sitemap-Generated": sitemap.generated_at.isoformat(),
                "X-Sitemap-Url-Count": str(sitemap.url_count),
            },
        )

    async def generate_sitemap(self, request: Request) -> Response:
        sitemap_type = request.query_params.get("type") or "all"
        store = self._require_store()
        if store is None:
            return Response(EMPTY_URLSET, status_code=503, headers={"Content-Type": _XML})

        try:
            urls = await store.list_page_urls(None if sitemap_type == "all" else sitemap_type)
        except aiosqlite.Error:
            log.error("sitemap_generate_error", type=sitemap_type, exc_info=True)
            return Response(EMPTY_URLSET, status_code=500, headers={"Content-Type": _XML})

        log.info("sitemap_generated", type=sitemap_type, url_count=len(urls))
        return Response(
            build_urlset(self.site_url, urls),
            status_code=200,
            headers={
                "Content-Type": _XML,
                "Cache-Control": "public, max-age=3600",
                "X-Sitemap-Url-Count": str(len(urls)),
            },
        )

    async def script_service(self, request: Request) -> Response:
        store = self._require_store()
        if store is None:
            return JSONResponse({"error": "not_ready"}, status_code=503)

        try:
            fragments = await store.get_scripts()
        except aiosqlite.Error as exc:
            log.error("script_registry_read_error", exc_info=True)
            return JSONResponse({"error": str(exc)}, status_code=500)

        return JSONResponse(
            {"head": list(fragments.head), "body": list(fragments.body)},
            headers={"Cache-Control": "public, max-age=300, s-maxage=300"},
        )


def build_backend_app(
    endpoints: BackendEndpoints,
    *,
    auth_enabled: bool,
    auth_token: str | None = None,
    lifespan: Callable[[Starlette], AbstractAsyncContextManager[None]] | None = None,
) -> ASGIApp:
    app = Starlette(
        routes=[
            Route("/prerender", endpoints.prerender, methods=["GET"]),
            Route("/prerender/hits", endpoints.record_hit, methods=["POST"]),
            Route("/serve-sitemap", endpoints.serve_sitemap, methods=["GET"]),
            Route("/generate-sitemap", endpoints.generate_sitemap, methods=["GET"]),
            Route("/script-service", endpoints.script_service, methods=["GET"]),
        ],
        lifespan=lifespan,
    )
    return BearerAuthMiddleware(app, auth_enabled=auth_enabled, auth_token=auth_token)


def create_backend_app(settings: Settings) -> ASGIApp:
    service = settings.backend_service
    endpoints = BackendEndpoints(None, site_url=service.site_url)

    auth_token: str | None = service.auth_token or None
    if service.auth_enabled and not auth_token:
        auth_token = secrets.token_urlsafe(32)
        log.warning("backend_auth_token_auto_generated", auth_token=auth_token)
    if not service.auth_enabled:
        log.warning("backend_auth_disabled")

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        db_path = Path(service.db_path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(db_path))
        store = PageStore(db)
        await store.init_db()
        endpoints.store = store
        log.info("backend_started", version=__version__, db_path=str(db_path))
        try:
            yield
        finally:
            endpoints.store = None
            await db.close()
            log.info("backend_stopping")

    return build_backend_app(
        endpoints,
        auth_enabled=service.auth_enabled,
        auth_token=auth_token,
        lifespan=lifespan,
    )


def main() -> None:
    settings = Settings()
    setup_logging(settings, service="backend")

    uvicorn.run(
        create_backend_app(settings),
        host=settings.backend_service.host,
        port=settings.backend_service.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )


if __name__ == "__main__":
    main()
