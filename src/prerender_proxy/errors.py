from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    BACKEND_NOT_CONFIGURED = "BACKEND_NOT_CONFIGURED"
    BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"
    BACKEND_TIMEOUT = "BACKEND_TIMEOUT"
    NOT_FOUND = "NOT_FOUND"
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"


class GatewayError(Exception):
    """Raised inside the cache gateway for every failed backend call.

    Caught at the public gateway methods and converted into that method's
    fallback value (empty sitemap, "proceed to origin", no scripts). Never
    let this escape the gateway: callers rely on the gateway never raising.
    """

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
