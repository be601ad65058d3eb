from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


class PageStatus(StrEnum):
    HIT = "hit"
    STALE = "stale"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"


class CacheState(StrEnum):
    """Value of the ``X-Cache`` response header."""

    HIT = "hit"
    STALE = "stale"
    MISS = "miss"


class PageLookup(BaseModel):
    """Result of a prerendered page lookup."""

    path: str
    status: PageStatus
    html: str | None = None
    expires_at: datetime | None = None

    @property
    def found(self) -> bool:
        return self.status in (PageStatus.HIT, PageStatus.STALE)

    @property
    def cache_state(self) -> CacheState:
        if self.status == PageStatus.HIT:
            return CacheState.HIT
        if self.status == PageStatus.STALE:
            return CacheState.STALE
        return CacheState.MISS


class SitemapSource(StrEnum):
    """Value of the ``X-Sitemap-Source`` response header."""

    DYNAMIC = "backend"
    STATIC = "backend-static"
    FALLBACK = "fallback"


class SitemapDocument(BaseModel):
    """Sitemap XML as served to crawlers."""

    content: str
    source: SitemapSource
    generated_at: str | None = None  # Passed through from X-Sitemap-Generated
    url_count: int | None = None  # Passed through from X-Sitemap-Url-Count
