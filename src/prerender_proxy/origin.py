"""Forwarding to the SPA origin.

The origin's response is relayed with its status and end-to-end headers.
Non-HTML bodies are relayed byte-for-byte (compressed bodies stay compressed);
HTML bodies are decoded when the caller wants to inject scripts into them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx
import structlog

if TYPE_CHECKING:
    from starlette.requests import Request

log = structlog.get_logger()

# Hop-by-hop headers (RFC 9110 §7.6.1)
_HOP_BY_HOP = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)
_REQUEST_EXCLUDED = _HOP_BY_HOP | {"host", "content-length"}

# Response headers stay raw bytes and are relayed verbatim
_RAW_HOP_BY_HOP = frozenset(name.encode("ascii") for name in _HOP_BY_HOP)
_RAW_CONTENT_LENGTH = b"content-length"
_RAW_CONTENT_ENCODING = b"content-encoding"

_BAD_GATEWAY_HEADERS = [(b"content-type", b"text/plain; charset=utf-8")]


def build_origin_client(timeout_seconds: float) -> httpx.AsyncClient:
    """Create the shared origin client. Called once at startup."""
    return httpx.AsyncClient(
        follow_redirects=False,
        timeout=httpx.Timeout(timeout_seconds),
        limits=httpx.Limits(
            max_connections=100,
            max_keepalive_connections=20,
        ),
    )


@dataclass
class OriginResponse:
    """Origin response buffered for relaying.

    ``headers`` holds the origin's raw header pairs (names lowercased, values
    untouched) minus hop-by-hop headers. ``content-length`` is kept only when
    ``head`` is True: the body is then empty and the origin's value stands. When
    ``decoded`` is True the body holds decoded HTML and ``content-encoding``
    has been dropped.
    """

    status_code: int
    headers: list[tuple[bytes, bytes]] = field(default_factory=list)
    body: bytes = b""
    encoding: str | None = None
    decoded: bool = False
    head: bool = False


def _bad_gateway() -> OriginResponse:
    return OriginResponse(
        status_code=502,
        headers=list(_BAD_GATEWAY_HEADERS),
        body=b"Bad Gateway",
    )


def _relayed_headers(
    raw: list[tuple[bytes, bytes]], *, keep_length: bool, drop_encoding: bool
) -> list[tuple[bytes, bytes]]:
    excluded = set(_RAW_HOP_BY_HOP)
    if not keep_length:
        excluded.add(_RAW_CONTENT_LENGTH)
    if drop_encoding:
        excluded.add(_RAW_CONTENT_ENCODING)
    relayed = []
    for key, value in raw:
        name = key.lower()
        if name not in excluded:
            relayed.append((name, value))
    return relayed


class OriginProxy:
    """Reverse proxy to the origin SPA over a shared ``httpx.AsyncClient``."""

    def __init__(self, client: httpx.AsyncClient, base_url: str) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")

    def _target_url(self, request: Request) -> str:
        url = f"{self._base_url}{request.url.path}"
        if request.url.query:
            url = f"{url}?{request.url.query}"
        return url

    async def forward(self, request: Request, *, decode_html: bool) -> OriginResponse:
        """Forward ``request`` to the origin and buffer its response.

        An unreachable origin yields a 502; any status the origin itself
        returns is relayed unchanged. HEAD responses are never decoded.
        """
        headers = [
            (key, value)
            for key, value in request.headers.items()
            if key.lower() not in _REQUEST_EXCLUDED
        ]
        body = await request.body()
        target = self._target_url(request)
        is_head = request.method == "HEAD"
        outbound = self._client.build_request(
            request.method,
            target,
            headers=headers,
            content=body or None,
        )

        try:
            upstream = await self._client.send(outbound, stream=True)
        except httpx.HTTPError as exc:
            log.warning("origin_unreachable", url=target, error=str(exc))
            return _bad_gateway()

        try:
            content_type = upstream.headers.get("content-type", "")
            decode = decode_html and not is_head and "text/html" in content_type.lower()
            if decode:
                await upstream.aread()
                payload = upstream.content
            else:
                payload = b"".join([chunk async for chunk in upstream.aiter_raw()])
        except httpx.HTTPError as exc:
            log.warning("origin_read_failed", url=target, error=str(exc))
            return _bad_gateway()
        finally:
            await upstream.aclose()

        return OriginResponse(
            status_code=upstream.status_code,
            headers=_relayed_headers(
                upstream.headers.raw, keep_length=is_head, drop_encoding=decode
            ),
            body=payload,
            encoding=upstream.encoding if decode else None,
            decoded=decode,
            head=is_head,
        )
