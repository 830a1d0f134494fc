"""Gateway error hierarchy.

Every failure a request can hit maps onto one of these kinds. Handlers
raise them; ``main.create_app`` installs exception handlers that turn
them into ``{"error": code, "detail": message}`` JSON responses.

We keep these dependency-free so the storage and registry layers can
raise them without importing FastAPI.
"""

from __future__ import annotations

from datetime import datetime


class GatewayError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    code: str = 'internal_error'

    def __init__(self, detail: str = '', *, code: str | None = None) -> None:
        self.detail = detail or self.code
        if code is not None:
            self.code = code
        super().__init__(self.detail)


class ValidationError(GatewayError):
    """Malformed or missing request fields, path traversal attempts."""

    status_code = 400
    code = 'invalid_request'


class AuthenticationError(GatewayError):
    """Missing/invalid admin token, wrong PIN, missing/invalid cookie."""

    status_code = 401
    code = 'unauthorized'


class NotFound(GatewayError):
    """Route or share id that can never match."""

    status_code = 404
    code = 'not_found'


class ShareExpired(GatewayError):
    """Share is absent from the registry or past its expiry.

    The two cases are deliberately indistinguishable to clients.
    """

    status_code = 410
    code = 'share_expired'

    def __init__(self, share_id: str, expired_at: datetime | None = None) -> None:
        self.share_id = share_id
        self.expired_at = expired_at
        super().__init__('Share link expired or not found.')


class UpstreamError(GatewayError):
    """Storage provider or registry failure.

    ``detail`` is safe to return to clients; ``internal`` is for logs only.
    """

    status_code = 500
    code = 'upstream_error'

    def __init__(self, detail: str = 'Upstream request failed.', *, internal: str = '') -> None:
        self.internal = internal
        super().__init__(detail)
