"""Bearer-token middleware for the reference backend."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

from starlette.datastructures import Headers
from starlette.responses import JSONResponse

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Receive, Scope, Send


class BearerAuthMiddleware:
    """Pure ASGI middleware enforcing ``Authorization: Bearer <token>``.

    Implemented as pure ASGI (not BaseHTTPMiddleware) so it adds no buffering
    or task overhead to the lookup path.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        auth_enabled: bool,
        auth_token: str | None = None,
    ) -> None:
        self.app = app
        self.auth_enabled = auth_enabled
        self.auth_token = auth_token

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self.auth_enabled:
            headers = Headers(scope=scope)
            auth_header = headers.get("authorization", "")
            supplied = auth_header[7:] if auth_header.startswith("Bearer ") else ""
            if not self.auth_token or not secrets.compare_digest(supplied, self.auth_token):
                await JSONResponse({"error": "unauthorized"}, status_code=401)(
                    scope, receive, send
                )
                return

        await self.app(scope, receive, send)
