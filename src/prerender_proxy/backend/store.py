"""SQLite store for prerendered pages, static sitemaps and injected scripts.

Reads propagate ``aiosqlite.Error`` so the HTTP layer can answer 500 and the
edge gateway treats the backend as unavailable rather than as a cache miss.
The hit counter is the exception: it is best-effort telemetry, so its write
failures are logged and swallowed.

Rows are written by the external population job through the ``upsert_*``
methods; nothing here deletes them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

import aiosqlite
import structlog

from prerender_proxy.models.scripts import ScriptFragments
from prerender_proxy.models.store import PrerenderedPage, StaticSitemap
from prerender_proxy.sitemap import SitemapUrl

log = structlog.get_logger()

ScriptPosition = Literal["head", "body"]

_CREATE_PAGE_TABLE = """
CREATE TABLE IF NOT EXISTS prerendered_pages (
    path         TEXT PRIMARY KEY,
    html         TEXT NOT NULL,
    title        TEXT,
    description  TEXT,
    category     TEXT,
    hit_count    INTEGER NOT NULL DEFAULT 0,
    expires_at   TEXT,
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL
)
"""

_CREATE_SITEMAP_TABLE = """
CREATE TABLE IF NOT EXISTS static_sitemaps (
    filename     TEXT PRIMARY KEY,
    content      TEXT NOT NULL,
    url_count    INTEGER NOT NULL DEFAULT 0,
    generated_at TEXT NOT NULL
)
"""

_CREATE_SCRIPT_TABLE = """
CREATE TABLE IF NOT EXISTS injected_scripts (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    position     TEXT NOT NULL CHECK (position IN ('head', 'body')),
    fragment     TEXT NOT NULL,
    sort_order   INTEGER NOT NULL DEFAULT 0,
    enabled      INTEGER NOT NULL DEFAULT 1
)
"""

_CREATE_PAGE_EXPIRES_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_prerendered_pages_expires ON prerendered_pages(expires_at)"
)
_CREATE_PAGE_CATEGORY_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_prerendered_pages_category ON prerendered_pages(category)"
)


def _parse_timestamp(raw: str) -> datetime:
    parsed = datetime.fromisoformat(raw)
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()


class PageStore:
    """aiosqlite-backed storage behind the reference backend."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_PAGE_TABLE)
        await self._db.execute(_CREATE_SITEMAP_TABLE)
        await self._db.execute(_CREATE_SCRIPT_TABLE)
        await self._db.execute(_CREATE_PAGE_EXPIRES_INDEX)
        await self._db.execute(_CREATE_PAGE_CATEGORY_INDEX)
        await self._db.commit()

    # ------------------------------------------------------------------
    # Prerendered pages
    # ------------------------------------------------------------------

    async def get_page(self, path: str) -> PrerenderedPage | None:
        """Read a page entry. Returns ``None`` when no entry exists for ``path``."""
        cursor = await self._db.execute(
            "SELECT path, html, title, description, category, hit_count, "
            "expires_at, updated_at FROM prerendered_pages WHERE path = ?",
            (path,),
        )
        row = await cursor.fetchone()
        if row is None or not row[1]:
            return None

        expires_at = _parse_timestamp(row[6]) if row[6] else None
        stale = expires_at is not None and datetime.now(UTC) > expires_at

        return PrerenderedPage(
            path=row[0],
            html=row[1],
            title=row[2],
            description=row[3],
            category=row[4],
            hit_count=row[5],
            expires_at=expires_at,
            updated_at=_parse_timestamp(row[7]),
            stale=stale,
        )

    async def upsert_page(
        self,
        path: str,
        html: str,
        *,
        title: str | None = None,
        description: str | None = None,
        category: str | None = None,
        expires_at: datetime | None = None,
    ) -> None:
        """Insert or overwrite a page by path. The hit counter survives overwrites."""
        now = datetime.now(UTC).isoformat()
        await self._db.execute(
            "INSERT INTO prerendered_pages "
            "(path, html, title, description, category, expires_at, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(path) DO UPDATE SET html = excluded.html, title = excluded.title, "
            "description = excluded.description, category = excluded.category, "
            "expires_at = excluded.expires_at, updated_at = excluded.updated_at",
            (
                path,
                html,
                title,
                description,
                category,
                _format_timestamp(expires_at) if expires_at else None,
                now,
                now,
            ),
        )
        await self._db.commit()

    async def increment_hits(self, path: str) -> bool:
        """Add one to the hit counter. Returns False when no row matched or on failure."""
        try:
            cursor = await self._db.execute(
                "UPDATE prerendered_pages SET hit_count = hit_count + 1 WHERE path = ?",
                (path,),
            )
            await self._db.commit()
            return cursor.rowcount > 0
        except aiosqlite.Error:
            log.warning("store_hit_increment_error", path=path, exc_info=True)
            return False

    async def list_page_urls(self, category: str | None = None) -> list[SitemapUrl]:
        """List cached page paths for sitemap assembly, optionally for one category."""
        if category is None:
            cursor = await self._db.execute(
                "SELECT path, updated_at FROM prerendered_pages ORDER BY path"
            )
        else:
            cursor = await self._db.execute(
                "SELECT path, updated_at FROM prerendered_pages WHERE category = ? ORDER BY path",
                (category,),
            )
        rows = await cursor.fetchall()
        return [SitemapUrl(loc=row[0], lastmod=row[1][:10] if row[1] else None) for row in rows]

    # ------------------------------------------------------------------
    # Static sitemaps
    # ------------------------------------------------------------------

    async def get_sitemap(self, filename: str) -> StaticSitemap | None:
        cursor = await self._db.execute(
            "SELECT filename, content, url_count, generated_at "
            "FROM static_sitemaps WHERE filename = ?",
            (filename,),
        )
        row = await cursor.fetchone()
        if row is None or not row[1]:
            return None
        return StaticSitemap(
            filename=row[0],
            content=row[1],
            url_count=row[2],
            generated_at=_parse_timestamp(row[3]),
        )

    async def upsert_sitemap(self, filename: str, content: str, url_count: int) -> None:
        await self._db.execute(
            "INSERT OR REPLACE INTO static_sitemaps (filename, content, url_count, generated_at) "
            "VALUES (?, ?, ?, ?)",
            (filename, content, url_count, datetime.now(UTC).isoformat()),
        )
        await self._db.commit()

    # ------------------------------------------------------------------
    # Script registry
    # ------------------------------------------------------------------

    async def get_scripts(self) -> ScriptFragments:
        cursor = await self._db.execute(
            "SELECT position, fragment FROM injected_scripts "
            "WHERE enabled = 1 ORDER BY sort_order, id"
        )
        head: list[str] = []
        body: list[str] = []
        for position, fragment in await cursor.fetchall():
            (head if position == "head" else body).append(fragment)
        return ScriptFragments(head=tuple(head), body=tuple(body))

    async def add_script(
        self,
        position: ScriptPosition,
        fragment: str,
        *,
        sort_order: int = 0,
        enabled: bool = True,
    ) -> None:
        await self._db.execute(
            "INSERT INTO injected_scripts (position, fragment, sort_order, enabled) "
            "VALUES (?, ?, ?, ?)",
            (position, fragment, sort_order, int(enabled)),
        )
        await self._db.commit()
