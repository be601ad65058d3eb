"""In-process cache for the third-party script registry.

Stale-while-revalidate without a background timer: ``get()`` refreshes lazily
when the TTL has elapsed, and a failed refresh keeps serving the previous
value. Concurrent callers during an expired window may each trigger a fetch;
the stored value is a single immutable record swapped in one assignment, so
readers never observe a half-written pair.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from prerender_proxy.models.scripts import ScriptFragments

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

log = structlog.get_logger()

DEFAULT_TTL_SECONDS = 300

_EMPTY = ScriptFragments()


@dataclass(frozen=True)
class _CachedFragments:
    fragments: ScriptFragments
    fetched_at: float | None  # None after invalidate()


class ScriptRegistryCache:
    """Time-bounded cache around a script registry fetch function.

    ``fetch`` returns the fragments, or None when the registry could not be
    read. It must not raise; an unexpected exception is still contained here.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[ScriptFragments | None]],
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch = fetch
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: _CachedFragments | None = None

    @property
    def age_seconds(self) -> float | None:
        """Seconds since the last successful fetch, or None when cold."""
        entry = self._entry
        if entry is None or entry.fetched_at is None:
            return None
        return self._clock() - entry.fetched_at

    def _is_fresh(self, entry: _CachedFragments | None) -> bool:
        if entry is None or entry.fetched_at is None:
            return False
        return self._clock() - entry.fetched_at < self._ttl_seconds

    async def get(self) -> ScriptFragments:
        entry = self._entry
        if entry is not None and self._is_fresh(entry):
            return entry.fragments

        try:
            fragments = await self._fetch()
        except Exception:
            log.warning("script_registry_fetch_error", exc_info=True)
            fragments = None

        if fragments is not None:
            self._entry = _CachedFragments(fragments=fragments, fetched_at=self._clock())
            log.debug(
                "script_registry_refreshed",
                head=len(fragments.head),
                body=len(fragments.body),
            )
            return fragments

        # Re-read: a concurrent refresh may have landed while we were waiting
        current = self._entry
        if current is not None:
            log.info("script_registry_refresh_failed", serving="stale")
            return current.fragments

        log.info("script_registry_refresh_failed", serving="empty")
        return _EMPTY

    def invalidate(self) -> None:
        """Force a refetch on the next ``get()``; the old value remains the fallback."""
        entry = self._entry
        if entry is not None:
            self._entry = _CachedFragments(fragments=entry.fragments, fetched_at=None)
