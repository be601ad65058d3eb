from __future__ import annotations

from prerender_proxy.models.bots import BotAgentList
from prerender_proxy.models.gateway import (
    CacheState,
    PageLookup,
    PageStatus,
    SitemapDocument,
    SitemapSource,
)
from prerender_proxy.models.scripts import ScriptFragments
from prerender_proxy.models.store import PrerenderedPage, StaticSitemap

__all__ = [
    # bots
    "BotAgentList",
    # gateway
    "CacheState",
    "PageLookup",
    "PageStatus",
    "SitemapDocument",
    "SitemapSource",
    # scripts
    "ScriptFragments",
    # store
    "PrerenderedPage",
    "StaticSitemap",
]
