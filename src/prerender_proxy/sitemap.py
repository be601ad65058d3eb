"""Sitemap XML helpers shared by the gateway fallback and the reference backend."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING
from xml.sax.saxutils import escape

if TYPE_CHECKING:
    from collections.abc import Iterable

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"

# Served whenever a sitemap cannot be produced: crawlers always get valid XML.
EMPTY_URLSET = f'<?xml version="1.0" encoding="UTF-8"?><urlset xmlns="{SITEMAP_NS}"></urlset>'

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


@dataclass(frozen=True)
class SitemapUrl:
    loc: str  # Path relative to the site root, e.g. "/market/foo"
    lastmod: str | None = None  # YYYY-MM-DD
    changefreq: str = "daily"
    priority: str = "0.7"


def escape_xml(value: str) -> str:
    return escape(value, _XML_ENTITIES)


def build_urlset(site_url: str, urls: Iterable[SitemapUrl]) -> str:
    """Render a ``<urlset>`` document for the given site-relative URLs."""
    base = site_url.rstrip("/")
    lines = ['<?xml version="1.0" encoding="UTF-8"?>', f'<urlset xmlns="{SITEMAP_NS}">']
    for url in urls:
        lines.append("  <url>")
        lines.append(f"    <loc>{escape_xml(base + url.loc)}</loc>")
        if url.lastmod:
            lines.append(f"    <lastmod>{escape_xml(url.lastmod)}</lastmod>")
        lines.append(f"    <changefreq>{url.changefreq}</changefreq>")
        lines.append(f"    <priority>{url.priority}</priority>")
        lines.append("  </url>")
    lines.append("</urlset>")
    return "\n".join(lines)
