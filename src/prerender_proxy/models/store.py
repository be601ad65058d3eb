from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class PrerenderedPage(BaseModel):
    """One servable static snapshot, keyed by canonical path."""

    path: str
    html: str
    title: str | None = None
    description: str | None = None
    category: str | None = None  # Sitemap category the page is listed under
    hit_count: int = 0
    expires_at: datetime | None = None
    updated_at: datetime
    stale: bool = False


class StaticSitemap(BaseModel):
    """Pre-generated sitemap XML, keyed by filename."""

    filename: str
    content: str
    url_count: int = 0
    generated_at: datetime
