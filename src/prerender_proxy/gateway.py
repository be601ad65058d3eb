"""Cache gateway: bounded outbound calls to the prerender backend.

Every public method returns a fallback value instead of raising. Failures are
raised internally as ``GatewayError`` by ``_request`` and converted at the
method boundary:

- page lookup     -> ``not_found`` or ``unavailable`` (dispatcher forwards to origin)
- sitemap lookup  -> the empty ``<urlset>`` document
- script registry -> None (script cache serves its previous value)

There is no retry: a failed call falls through immediately so the crawler- or
human-facing response is never delayed beyond one timeout.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import httpx
import structlog

from prerender_proxy.errors import ErrorCode, GatewayError
from prerender_proxy.models.gateway import (
    PageLookup,
    PageStatus,
    SitemapDocument,
    SitemapSource,
)
from prerender_proxy.models.scripts import ScriptFragments
from prerender_proxy.routes import normalise_path
from prerender_proxy.sitemap import EMPTY_URLSET

if TYPE_CHECKING:
    from collections.abc import Callable

    from prerender_proxy.config import BackendSettings

log = structlog.get_logger()


def build_http_client() -> httpx.AsyncClient:
    """Create the shared backend client. Called once at startup."""
    return httpx.AsyncClient(
        follow_redirects=False,
        headers={"User-Agent": "prerender-proxy/1.0"},
        limits=httpx.Limits(
            max_connections=50,
            max_keepalive_connections=20,
        ),
    )


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _parse_expires_at(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        log.debug("page_expires_at_unparseable", value=raw)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _parse_int(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


class CacheGateway:
    """HTTP client for the prerender, sitemap and script registry endpoints."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: BackendSettings,
        *,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client = client
        self._settings = settings
        self._now = now
        # Strong references keep detached hit-count tasks alive until they finish
        self._background: set[asyncio.Task[None]] = set()

    @property
    def configured(self) -> bool:
        return self._settings.configured

    @property
    def pending_tasks(self) -> int:
        return len(self._background)

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Issue one backend call. Raises GatewayError on every failure."""
        if not self._settings.configured:
            raise GatewayError(
                ErrorCode.BACKEND_NOT_CONFIGURED,
                "Backend URL or auth token is not configured",
            )

        timeout = self._settings.timeout_seconds
        request_headers = {"Authorization": f"Bearer {self._settings.auth_token}"}
        if headers:
            request_headers.update(headers)

        try:
            # httpx bounds each phase; wait_for bounds the whole exchange
            response = await asyncio.wait_for(
                self._client.request(
                    method,
                    f"{self._settings.url}{endpoint}",
                    params=params,
                    headers=request_headers,
                    timeout=httpx.Timeout(timeout),
                ),
                timeout=timeout,
            )
        except (TimeoutError, httpx.TimeoutException) as exc:
            raise GatewayError(
                ErrorCode.BACKEND_TIMEOUT,
                f"Backend call {endpoint} exceeded {timeout}s",
            ) from exc
        except httpx.HTTPError as exc:
            raise GatewayError(
                ErrorCode.BACKEND_UNAVAILABLE,
                f"Network error calling {endpoint}: {exc}",
            ) from exc

        if response.status_code == 404:
            raise GatewayError(ErrorCode.NOT_FOUND, f"HTTP 404 from {endpoint}")
        if not response.is_success:
            raise GatewayError(
                ErrorCode.BACKEND_UNAVAILABLE,
                f"HTTP {response.status_code} from {endpoint}",
            )
        return response

    # ------------------------------------------------------------------
    # Prerendered pages
    # ------------------------------------------------------------------

    async def lookup_page(self, path: str, *, user_agent: str | None = None) -> PageLookup:
        """Look up the prerendered HTML for ``path``.

        ``not_found`` and ``unavailable`` both send the dispatcher to the origin;
        they are kept apart so the two cases log differently.
        """
        key = normalise_path(path)
        page_log = log.bind(path=key)
        headers = {"User-Agent": user_agent} if user_agent else None

        try:
            response = await self._request(
                "GET", "/prerender", params={"path": key}, headers=headers
            )
            html = response.text
            if not html.strip():
                raise GatewayError(ErrorCode.MALFORMED_PAYLOAD, "Empty prerendered document")
        except GatewayError as exc:
            if exc.code == ErrorCode.NOT_FOUND:
                page_log.info("page_lookup_miss")
                return PageLookup(path=key, status=PageStatus.NOT_FOUND)
            if exc.code == ErrorCode.BACKEND_NOT_CONFIGURED:
                page_log.debug("page_lookup_skipped", reason="backend_not_configured")
            else:
                page_log.warning("page_lookup_unavailable", code=exc.code, message=exc.message)
            return PageLookup(path=key, status=PageStatus.UNAVAILABLE)

        expires_at = _parse_expires_at(response.headers.get("x-expires-at"))
        if expires_at is not None:
            stale = expires_at < self._now()
        else:
            stale = response.headers.get("x-cache", "").lower() == "stale"
        status = PageStatus.STALE if stale else PageStatus.HIT

        page_log.info("page_lookup_hit", cache=status.value, content_length=len(html))

        if self._settings.record_hits:
            self._record_hit_detached(key)

        return PageLookup(path=key, status=status, html=html, expires_at=expires_at)

    def _record_hit_detached(self, path: str) -> None:
        task = asyncio.create_task(self._record_hit(path))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _record_hit(self, path: str) -> None:
        """Increment the hit counter for ``path``.

        Fire-and-forget: the serving path never awaits this, and every failure
        is logged at debug and discarded.
        """
        try:
            await self._request("POST", "/prerender/hits", params={"path": path})
        except Exception:
            log.debug("page_hit_record_failed", path=path, exc_info=True)

    async def flush(self) -> None:
        """Wait for outstanding hit-count tasks. Called at shutdown."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # Sitemaps
    # ------------------------------------------------------------------

    async def lookup_sitemap(
        self, *, category: str | None = None, filename: str | None = None
    ) -> SitemapDocument:
        """Fetch sitemap XML by category (dynamic) or exact filename (static)."""
        if category is not None:
            endpoint, params, source = "/generate-sitemap", {"type": category}, SitemapSource.DYNAMIC
        elif filename is not None:
            endpoint, params, source = "/serve-sitemap", {"file": filename}, SitemapSource.STATIC
        else:
            raise ValueError("lookup_sitemap requires either category or filename")

        sitemap_log = log.bind(endpoint=endpoint, **params)
        try:
            response = await self._request("GET", endpoint, params=params)
            content = response.text
            if not content.lstrip().startswith("<"):
                raise GatewayError(ErrorCode.MALFORMED_PAYLOAD, "Sitemap body is not XML")
        except GatewayError as exc:
            sitemap_log.warning("sitemap_lookup_fallback", code=exc.code, message=exc.message)
            return SitemapDocument(content=EMPTY_URLSET, source=SitemapSource.FALLBACK)

        sitemap_log.info("sitemap_lookup_complete", content_length=len(content))
        return SitemapDocument(
            content=content,
            source=source,
            generated_at=response.headers.get("x-sitemap-generated") or None,
            url_count=_parse_int(response.headers.get("x-sitemap-url-count")),
        )

    # ------------------------------------------------------------------
    # Script registry
    # ------------------------------------------------------------------

    async def fetch_scripts(self) -> ScriptFragments | None:
        """Fetch the script registry. Returns None on any failure."""
        try:
            response = await self._request("GET", "/script-service")
            try:
                return ScriptFragments.model_validate(response.json())
            except ValueError as exc:
                raise GatewayError(
                    ErrorCode.MALFORMED_PAYLOAD,
                    f"Invalid script registry document: {exc}",
                ) from exc
        except GatewayError as exc:
            if exc.code == ErrorCode.BACKEND_NOT_CONFIGURED:
                log.debug("script_registry_skipped", reason="backend_not_configured")
            else:
                log.warning("script_registry_unavailable", code=exc.code, message=exc.message)
            return None
