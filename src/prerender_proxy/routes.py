"""Route classification.

Pure logic over the request path: no I/O, no knowledge of the requester.
Precedence: static asset, debug, dynamic sitemap, static sitemap, page.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

DEBUG_PATH = "/__debug"
SITEMAP_INDEX_FILE = "sitemap-index.xml"

_STATIC_ASSET_RE = re.compile(
    r"\.(js|mjs|css|png|jpg|jpeg|gif|svg|ico|woff2?|ttf|otf|eot|map|json|txt|pdf"
    r"|mp4|webm|webp|avif)$",
    re.IGNORECASE,
)


class RouteKind(StrEnum):
    STATIC_ASSET = "static_asset"
    DEBUG = "debug"
    SITEMAP_DYNAMIC = "sitemap_dynamic"
    SITEMAP_STATIC = "sitemap_static"
    PAGE = "page"


@dataclass(frozen=True)
class Route:
    kind: RouteKind
    sitemap_category: str | None = None  # sitemap_dynamic only
    sitemap_file: str | None = None  # sitemap_static only


def is_static_asset(path: str) -> bool:
    return _STATIC_ASSET_RE.search(path) is not None


def normalise_path(path: str) -> str:
    """Canonical cache key: leading slash, no trailing slash except root."""
    path = "/" + path.lstrip("/")
    return path.rstrip("/") or "/"


class RouteClassifier:
    """Maps a request path to exactly one :class:`RouteKind`."""

    def __init__(self, sitemap_categories: Iterable[str]) -> None:
        self.sitemap_categories: tuple[str, ...] = tuple(sitemap_categories)
        if self.sitemap_categories:
            alternation = "|".join(re.escape(c) for c in self.sitemap_categories)
            self._dynamic_re: re.Pattern[str] | None = re.compile(
                rf"^/sitemap-({alternation})\.xml$"
            )
            self._shard_re: re.Pattern[str] | None = re.compile(
                rf"^/sitemap-({alternation})-\d+\.xml$"
            )
        else:
            self._dynamic_re = None
            self._shard_re = None

    def classify(self, path: str) -> Route:
        if is_static_asset(path):
            return Route(RouteKind.STATIC_ASSET)

        if path == DEBUG_PATH:
            return Route(RouteKind.DEBUG)

        if self._dynamic_re is not None:
            match = self._dynamic_re.match(path)
            if match:
                return Route(RouteKind.SITEMAP_DYNAMIC, sitemap_category=match.group(1))

        if path == f"/{SITEMAP_INDEX_FILE}" or (
            self._shard_re is not None and self._shard_re.match(path)
        ):
            return Route(RouteKind.SITEMAP_STATIC, sitemap_file=path.lstrip("/"))

        return Route(RouteKind.PAGE)
