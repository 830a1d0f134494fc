"""Public share endpoints: browsing page, PIN unlock, listing, signing.

Implements the end-user surface of a share:

  GET  /s/{share_id}              → HTML browsing page
  POST /s/{share_id}/pin          → verify PIN, set auth cookie
  GET  /s/{share_id}/list?path=   → one folder level, relative paths
  GET  /s/{share_id}/sign?key=    → presigned download URL

Share resolution:
  - Ids must match ``[A-Za-z0-9_-]{6,}``; anything else → 404.
  - Absent or expired shares → 410 share_expired (expired entries are
    deleted from the registry on read).

Path containment:
  - ``path``/``key`` containing ``..`` → 400, checked before anything
    else so the answer does not depend on auth or share state.
  - Every storage key is ``share.prefix + relative``; listings strip the
    absolute prefix back off so clients only see share-relative paths.

Auth:
  - Open shares need nothing.
  - PIN shares need the ``auth_<id>`` cookie from ``/pin``; otherwise 401.

This module provides:
  ``create_share_access_router`` — FastAPI router factory.
"""

from __future__ import annotations

import re

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, Response

from ..errors import AuthenticationError, NotFound, ValidationError
from ..observability.logging import get_logger
from ..storage.client import StorageClient
from ..storage.listing import Listing
from .auth import PinAuthenticator, coerce_pin, verify_pin
from .model import (
    SHARE_ID_PATTERN,
    PinProtectedShare,
    ShareRecord,
    ShareRegistry,
    load_active_share,
)
from .viewer import render_viewer_page

logger = get_logger(__name__)

_SHARE_ID_RE = re.compile(rf'^{SHARE_ID_PATTERN}$')


# ── Shared helpers ───────────────────────────────────────────────────


def _check_share_id(share_id: str) -> None:
    if not _SHARE_ID_RE.match(share_id):
        raise NotFound('Not found.')


def _reject_traversal(value: str, *, code: str) -> None:
    if '..' in value:
        raise ValidationError('Path must not contain "..".', code=code)


def relativize_listing(listing: Listing, absolute_prefix: str) -> dict:
    """Build the ``{folders, objects}`` response relative to ``absolute_prefix``.

    Keys ending in ``/`` are folder placeholders (including the prefix
    itself) and are dropped. Entries outside the prefix are dropped too.
    """
    cut = len(absolute_prefix)
    folders = [
        p[cut:] for p in listing.prefixes
        if p.startswith(absolute_prefix) and len(p) > cut
    ]
    objects = []
    for obj in listing.objects:
        if obj.key.endswith('/') or not obj.key.startswith(absolute_prefix):
            continue
        entry = {'key': obj.key[cut:], 'size': obj.size}
        if obj.last_modified:
            entry['lastModified'] = obj.last_modified
        objects.append(entry)
    return {'folders': folders, 'objects': objects}


# ── Route factory ────────────────────────────────────────────────────


def create_share_access_router(
    registry: ShareRegistry,
    storage: StorageClient,
    authenticator: PinAuthenticator,
) -> APIRouter:
    """Create the public share router.

    Args:
        registry: Share registry to resolve ids against.
        storage: Storage client for listing and presigning.
        authenticator: Cookie issuer/verifier for PIN shares.

    Returns:
        FastAPI router with page, pin, list and sign routes.
    """
    router = APIRouter(tags=['share-access'])

    async def _load_authenticated(request: Request, share_id: str) -> ShareRecord:
        record = await load_active_share(registry, share_id)
        if not authenticator.is_authenticated(record, share_id, request.headers.get('cookie')):
            raise AuthenticationError('PIN required.', code='pin_required')
        return record

    @router.get('/s/{share_id}', response_class=HTMLResponse)
    async def share_page(share_id: str):
        _check_share_id(share_id)
        return HTMLResponse(render_viewer_page(share_id))

    @router.post('/s/{share_id}/pin', status_code=204)
    async def unlock_share(share_id: str, request: Request):
        """Verify the PIN and set ``auth_<id>``.

        Open shares answer 204 without a cookie.
        """
        _check_share_id(share_id)
        record = await load_active_share(registry, share_id)
        if not isinstance(record, PinProtectedShare):
            return Response(status_code=204)

        try:
            payload = await request.json()
        except ValueError:
            payload = None
        pin = coerce_pin(payload.get('pin')) if isinstance(payload, dict) else ''

        if not verify_pin(record, pin):
            logger.info('share_pin_rejected', share_id=share_id)
            raise AuthenticationError('Invalid PIN.', code='invalid_pin')

        response = Response(status_code=204)
        response.set_cookie(
            authenticator.cookie_name(share_id),
            authenticator.issue_cookie_value(share_id),
            max_age=authenticator.cookie_max_age(record),
            path='/',
            httponly=True,
            samesite='lax',
            secure=request.url.scheme == 'https',
        )
        logger.info('share_pin_accepted', share_id=share_id)
        return response

    @router.get('/s/{share_id}/list')
    async def list_share(share_id: str, request: Request, path: str = ''):
        """List one level under ``share.prefix + path``."""
        _check_share_id(share_id)
        _reject_traversal(path, code='invalid_path')
        record = await _load_authenticated(request, share_id)

        absolute_prefix = record.prefix + path
        listing = await storage.list_folder(record.bucket, absolute_prefix)
        return relativize_listing(listing, absolute_prefix)

    @router.get('/s/{share_id}/sign')
    async def sign_download(share_id: str, request: Request, key: str = ''):
        """Presign a GET for ``share.prefix + key``."""
        _check_share_id(share_id)
        _reject_traversal(key, code='invalid_key')
        if not key:
            raise ValidationError('Key is required.', code='invalid_key')
        record = await _load_authenticated(request, share_id)

        absolute_key = record.prefix + key
        if not absolute_key.startswith(record.prefix):
            raise ValidationError('Key is outside the share.', code='invalid_key')

        url = storage.presign_download(record.bucket, absolute_key)
        logger.info('share_download_signed', share_id=share_id, key=key)
        return {'url': url}

    return router
