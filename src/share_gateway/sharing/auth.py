"""PIN hashing and the stateless share cookie.

PIN-protected shares store ``sha256_hex(salt + ':' + pin)`` and a random
salt. After a correct PIN the gateway sets a cookie

    auth_<share_id> = base64url(HMAC(server_secret, 'ok:' + share_id))

which is recomputed on every request; nothing is stored server-side.

Operational invariant:
  The server secret must not rotate while shares are outstanding.
  Rotating it invalidates every issued cookie at once.

Accepted risk:
  A 4-digit PIN has 10^4 values and there is no attempt limiting, so a
  determined client can guess it online. Shares are short-lived and the
  PIN only raises the bar against casual link forwarding.
"""

from __future__ import annotations

import hmac
import math
import re
import secrets
from datetime import datetime, timezone

from ..crypto import hmac_sha256, sha256_hex, to_base64url
from .model import PinProtectedShare, ShareRecord

# ── Constants ─────────────────────────────────────────────────────────

PIN_SALT_BYTES = 16
COOKIE_PREFIX = 'auth_'
_PIN_RE = re.compile(r'^[0-9]{4}$')


# ── PIN operations ────────────────────────────────────────────────────


def coerce_pin(value: object) -> str:
    """Text form of a PIN taken from a JSON body.

    Clients may send ``4242`` as a number; it is read as ``'4242'``.
    Integral floats (``4242.0``) count as numbers too. Anything else
    that is not a string becomes ``''``, which never validates.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return ''
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return ''


def is_valid_pin(pin: object) -> bool:
    return isinstance(pin, str) and _PIN_RE.match(pin) is not None


def issue_pin_hash(pin: str) -> tuple[str, str]:
    """Return ``(salt_hex, hash_hex)`` for a new PIN."""
    salt = secrets.token_bytes(PIN_SALT_BYTES).hex()
    return salt, sha256_hex(f'{salt}:{pin}')


def verify_pin(record: ShareRecord, supplied_pin: str) -> bool:
    if not isinstance(record, PinProtectedShare):
        return True
    candidate = sha256_hex(f'{record.pin_salt}:{supplied_pin}')
    return hmac.compare_digest(candidate, record.pin_hash)


# ── Cookie parsing ────────────────────────────────────────────────────


def parse_cookie_header(header: str | None) -> dict[str, str]:
    """Split a raw ``Cookie`` header into name/value pairs.

    Pairs without ``=`` or with an empty name/value are skipped.
    """
    cookies: dict[str, str] = {}
    if not header:
        return cookies
    for part in header.split(';'):
        name, sep, value = part.partition('=')
        name, value = name.strip(), value.strip()
        if sep and name and value:
            cookies[name] = value
    return cookies


# ── Authenticator ─────────────────────────────────────────────────────


class PinAuthenticator:
    """Issues and checks per-share auth cookies under one server secret."""

    def __init__(self, server_secret: str) -> None:
        if not server_secret:
            raise ValueError('server_secret is required')
        self._secret = server_secret

    @staticmethod
    def cookie_name(share_id: str) -> str:
        return f'{COOKIE_PREFIX}{share_id}'

    def issue_cookie_value(self, share_id: str) -> str:
        return to_base64url(hmac_sha256(self._secret, f'ok:{share_id}'))

    def is_authenticated(
        self,
        record: ShareRecord,
        share_id: str,
        cookie_header: str | None,
    ) -> bool:
        if not isinstance(record, PinProtectedShare):
            return True
        presented = parse_cookie_header(cookie_header).get(self.cookie_name(share_id))
        if not presented:
            return False
        expected = self.issue_cookie_value(share_id)
        return hmac.compare_digest(presented.encode('utf-8'), expected.encode('ascii'))

    @staticmethod
    def cookie_max_age(record: ShareRecord, now: datetime | None = None) -> int:
        """Remaining share lifetime in whole seconds, never below 1."""
        now = now or datetime.now(timezone.utc)
        return max(1, math.floor(record.remaining_seconds(now)))
