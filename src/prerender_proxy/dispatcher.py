"""Edge dispatcher: the per-request decision pipeline.

1. Static asset          -> forward to origin untouched
2. Debug path            -> diagnostic JSON
3. Script fragments      -> from the script registry cache (when injection is on)
4. Sitemap paths         -> backend XML, or the empty urlset on failure
5-6. Bot with cached page -> prerendered HTML with scripts injected
7-8. Everything else     -> origin response, scripts injected into HTML

Every backend failure degrades to the next most permissive behaviour. The only
error a client can see is the origin's own.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from starlette.responses import JSONResponse, Response

from prerender_proxy import __version__
from prerender_proxy.injector import inject_scripts
from prerender_proxy.models.gateway import SitemapSource
from prerender_proxy.models.scripts import ScriptFragments
from prerender_proxy.routes import RouteKind

if TYPE_CHECKING:
    from starlette.requests import Request

    from prerender_proxy.bots import BotClassifier
    from prerender_proxy.models.gateway import PageLookup, SitemapDocument
    from prerender_proxy.origin import OriginResponse
    from prerender_proxy.protocols import (
        GatewayProtocol,
        OriginProtocol,
        ScriptSourceProtocol,
    )
    from prerender_proxy.routes import Route, RouteClassifier

SERVICE_NAME = "prerender-proxy"

XML_CONTENT_TYPE = "application/xml; charset=utf-8"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"

DYNAMIC_SITEMAP_CACHE_CONTROL = "public, max-age=3600, s-maxage=86400"
STATIC_SITEMAP_CACHE_CONTROL = "public, max-age=1800, s-maxage=3600"
PRERENDERED_CACHE_CONTROL = "public, max-age=3600"

_NO_SCRIPTS = ScriptFragments()


class EdgeDispatcher:
    """Routes each request to the origin, the backend, or a diagnostic response."""

    def __init__(
        self,
        *,
        routes: RouteClassifier,
        bots: BotClassifier,
        gateway: GatewayProtocol,
        scripts: ScriptSourceProtocol,
        origin: OriginProtocol,
        script_injection_enabled: bool = True,
    ) -> None:
        self._routes = routes
        self._bots = bots
        self._gateway = gateway
        self._scripts = scripts
        self._origin = origin
        self._script_injection_enabled = script_injection_enabled

    async def handle(self, request: Request) -> Response:
        path = request.url.path
        user_agent = request.headers.get("user-agent", "")
        route = self._routes.classify(path)

        if route.kind == RouteKind.STATIC_ASSET:
            origin_response = await self._origin.forward(request, decode_html=False)
            return _relay(origin_response)

        if route.kind == RouteKind.DEBUG:
            return self._debug_response(request, user_agent)

        fragments = await self._script_fragments()

        if route.kind in (RouteKind.SITEMAP_DYNAMIC, RouteKind.SITEMAP_STATIC):
            return await self._sitemap_response(route)

        if self._bots.is_bot(user_agent):
            lookup = await self._gateway.lookup_page(path, user_agent=user_agent)
            if lookup.found:
                return self._prerendered_response(lookup, fragments)
            # Cache miss or backend down: the bot gets what a human gets
            structlog.get_logger().info(
                "bot_fallthrough", path=path, lookup_status=lookup.status.value
            )

        origin_response = await self._origin.forward(
            request, decode_html=self._script_injection_enabled
        )
        if origin_response.decoded:
            return _inject_into_origin(origin_response, fragments)
        return _relay(origin_response)

    async def _script_fragments(self) -> ScriptFragments:
        if not self._script_injection_enabled:
            return _NO_SCRIPTS
        return await self._scripts.get()

    # ------------------------------------------------------------------
    # Response builders
    # ------------------------------------------------------------------

    async def _sitemap_response(self, route: Route) -> Response:
        if route.kind == RouteKind.SITEMAP_DYNAMIC:
            document = await self._gateway.lookup_sitemap(category=route.sitemap_category)
            cache_control = DYNAMIC_SITEMAP_CACHE_CONTROL
        else:
            document = await self._gateway.lookup_sitemap(filename=route.sitemap_file)
            cache_control = STATIC_SITEMAP_CACHE_CONTROL

        return Response(
            content=document.content,
            status_code=200,
            media_type=None,
            headers=_sitemap_headers(document, cache_control),
        )

    def _prerendered_response(self, lookup: PageLookup, fragments: ScriptFragments) -> Response:
        html = lookup.html or ""
        headers = {
            "Content-Type": HTML_CONTENT_TYPE,
            "Cache-Control": PRERENDERED_CACHE_CONTROL,
            "X-Prerendered": "true",
            "X-Cache": lookup.cache_state.value,
        }
        if self._script_injection_enabled:
            html = inject_scripts(html, fragments)
            headers["X-Scripts-Injected"] = "true"
        return Response(content=html.encode("utf-8"), status_code=200, headers=headers)

    def _debug_response(self, request: Request, user_agent: str) -> Response:
        """Diagnostic snapshot of the classifier and cache state. Never includes secrets."""
        age = self._scripts.age_seconds if self._script_injection_enabled else None
        payload: dict[str, object] = {
            "middleware": SERVICE_NAME,
            "version": __version__,
            "backend_configured": self._gateway.configured,
            "hostname": request.url.hostname,
            "user_agent": user_agent[:80],
            "is_bot": self._bots.is_bot(user_agent),
            "bot_agents_version": self._bots.version,
            "bot_agents_count": len(self._bots),
            "sitemap_categories": list(self._routes.sitemap_categories),
            "script_injection_enabled": self._script_injection_enabled,
            "script_cache_age": f"{round(age)}s" if age is not None else "cold",
            "timestamp": datetime.now(UTC).isoformat(),
        }
        probe = request.query_params.get("path")
        if probe:
            probe_route = self._routes.classify(probe)
            payload["route_probe"] = {"path": probe, "kind": probe_route.kind.value}
        return JSONResponse(payload, headers={"Cache-Control": "no-store"})


def _sitemap_headers(document: SitemapDocument, cache_control: str) -> dict[str, str]:
    headers = {
        "Content-Type": XML_CONTENT_TYPE,
        "Cache-Control": cache_control,
        "X-Sitemap-Source": document.source.value,
    }
    if document.source != SitemapSource.FALLBACK:
        if document.generated_at:
            headers["X-Sitemap-Generated"] = document.generated_at
        if document.url_count is not None:
            headers["X-Sitemap-Url-Count"] = str(document.url_count)
    return headers


def _build_response(origin_response: OriginResponse, body: bytes) -> Response:
    """Starlette response carrying the origin's raw header pairs verbatim (repeats included).

    A content-length is computed from ``body`` except for HEAD, which keeps the origin's.
    """
    status_code = origin_response.status_code
    raw_headers = list(origin_response.headers)
    if (
        status_code >= 200
        and status_code not in (204, 304)
        and not origin_response.head
    ):
        raw_headers.append((b"content-length", str(len(body)).encode("ascii")))
    response = Response(content=b"", status_code=status_code)
    response.body = body
    response.raw_headers = raw_headers
    return response


def _relay(origin_response: OriginResponse) -> Response:
    return _build_response(origin_response, origin_response.body)


def _inject_into_origin(origin_response: OriginResponse, fragments: ScriptFragments) -> Response:
    encoding = origin_response.encoding or "utf-8"
    html = origin_response.body.decode(encoding, errors="replace")
    body = inject_scripts(html, fragments).encode(encoding, errors="replace")
    response = _build_response(origin_response, body)
    response.raw_headers.append((b"x-scripts-injected", b"true"))
    return response
