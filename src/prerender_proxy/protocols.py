"""Protocol interfaces for swappable components.

The dispatcher references these protocols, not the concrete implementations,
so tests can hand it in-memory stand-ins and a different backend (for example
a direct database gateway) can be dropped in without touching dispatch code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from starlette.requests import Request

    from prerender_proxy.models.gateway import PageLookup, SitemapDocument
    from prerender_proxy.models.scripts import ScriptFragments
    from prerender_proxy.origin import OriginResponse


class GatewayProtocol(Protocol):
    """Interface for the cache backend gateway. Implementations never raise."""

    @property
    def configured(self) -> bool: ...

    async def lookup_page(self, path: str, *, user_agent: str | None = None) -> PageLookup: ...

    async def lookup_sitemap(
        self, *, category: str | None = None, filename: str | None = None
    ) -> SitemapDocument: ...

    async def fetch_scripts(self) -> ScriptFragments | None: ...


class ScriptSourceProtocol(Protocol):
    """Interface for the script registry cache."""

    @property
    def age_seconds(self) -> float | None: ...

    async def get(self) -> ScriptFragments: ...


class OriginProtocol(Protocol):
    """Interface for forwarding a request to the SPA origin."""

    async def forward(self, request: Request, *, decode_html: bool) -> OriginResponse: ...
