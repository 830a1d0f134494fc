"""Administrative share creation endpoint.

Implements the single management route of the gateway:

  POST /admin/shares  → create a share, returns ``{id, url, expiresAt}``

Auth contract:
  - ``X-Admin-Token`` must equal the configured admin token.
  - Missing or wrong token → 401, checked before the body is read.

Body contract (camelCase, as sent by the desktop client):
  - ``bucket``, ``prefix``: non-empty strings.
  - ``expiresInSec``: integer in ``1..MAX_SHARE_LIFETIME_SECONDS`` (ten
    years); booleans, floats and numeric strings are rejected. The
    registry TTL equals it.
  - ``pin``: optional; a string or a JSON number, hashed only when its
    text is exactly four digits, otherwise the share is created without
    a PIN.
  - Anything malformed → 400.

This module provides:
  ``create_admin_router`` — FastAPI router factory with injected deps.
"""

from __future__ import annotations

import hmac
from datetime import datetime, timedelta, timezone
from typing import Any

import pydantic
from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import AuthenticationError, ValidationError
from ..observability.logging import get_logger
from .auth import coerce_pin, is_valid_pin, issue_pin_hash
from .model import (
    OpenShare,
    PinProtectedShare,
    ShareRecord,
    ShareRegistry,
    format_timestamp,
    generate_share_id,
    normalize_prefix,
)

logger = get_logger(__name__)

ADMIN_TOKEN_HEADER = 'X-Admin-Token'
MAX_SHARE_LIFETIME_SECONDS = 10 * 365 * 24 * 3600


# ── Request schemas ──────────────────────────────────────────────────


class CreateShareRequest(BaseModel):
    """Request body for share creation."""

    model_config = ConfigDict(populate_by_name=True)

    bucket: str = Field(..., min_length=1)
    prefix: str = Field(..., min_length=1)
    expires_in_sec: int = Field(
        ..., gt=0, le=MAX_SHARE_LIFETIME_SECONDS, strict=True, alias='expiresInSec',
    )
    pin: str = ''

    @field_validator('pin', mode='before')
    @classmethod
    def _pin_as_text(cls, value: Any) -> str:
        return coerce_pin(value)


# ── Shared helpers ───────────────────────────────────────────────────


def _require_admin(request: Request, admin_token: str) -> None:
    presented = request.headers.get(ADMIN_TOKEN_HEADER, '')
    if not presented or not hmac.compare_digest(
        presented.encode('utf-8'), admin_token.encode('utf-8'),
    ):
        raise AuthenticationError('Missing or invalid admin token.')


async def _parse_body(request: Request) -> CreateShareRequest:
    try:
        payload = await request.json()
    except ValueError as exc:
        raise ValidationError('Request body must be JSON.') from exc
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object.')
    try:
        return CreateShareRequest.model_validate(payload)
    except pydantic.ValidationError as exc:
        fields = sorted({str(err['loc'][0]) for err in exc.errors() if err.get('loc')})
        raise ValidationError(f'Missing or invalid fields: {", ".join(fields)}') from exc


# ── Route factory ────────────────────────────────────────────────────


def create_admin_router(
    registry: ShareRegistry,
    *,
    admin_token: str,
    public_base_url: str = '',
) -> APIRouter:
    """Create the admin router.

    Args:
        registry: Share registry to write new shares into.
        admin_token: Expected ``X-Admin-Token`` value.
        public_base_url: Origin used in returned share URLs. Falls back
            to the request's own base URL when empty.

    Returns:
        FastAPI router with the share creation route.
    """
    if not admin_token:
        raise ValueError('admin_token is required')

    router = APIRouter(tags=['admin'])

    @router.post('/admin/shares')
    async def create_share(request: Request):
        """Create a share and store it with TTL = ``expiresInSec``."""
        _require_admin(request, admin_token)
        body = await _parse_body(request)

        share_id = generate_share_id()
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=body.expires_in_sec)
        prefix = normalize_prefix(body.prefix)

        record: ShareRecord
        if is_valid_pin(body.pin):
            salt, pin_hash = issue_pin_hash(body.pin)
            record = PinProtectedShare(
                id=share_id,
                bucket=body.bucket,
                prefix=prefix,
                expires_at=expires_at,
                pin_salt=salt,
                pin_hash=pin_hash,
            )
        else:
            record = OpenShare(
                id=share_id, bucket=body.bucket, prefix=prefix, expires_at=expires_at,
            )

        await registry.put(share_id, record, body.expires_in_sec)
        logger.info(
            'share_created',
            share_id=share_id,
            bucket=record.bucket,
            prefix=record.prefix,
            expires_in_sec=body.expires_in_sec,
            pin_protected=isinstance(record, PinProtectedShare),
        )

        origin = (public_base_url or str(request.base_url)).rstrip('/')
        return {
            'id': share_id,
            'url': f'{origin}/s/{share_id}',
            'expiresAt': format_timestamp(expires_at),
        }

    return router
