"""Hashing, HMAC and encoding helpers shared by the gateway.

Everything here is a pure function over bytes. ``str`` arguments are
UTF-8 encoded before use; anything that cannot be encoded raises
``EncodingError`` rather than a bare ``TypeError``/``UnicodeError``.
"""

from __future__ import annotations

import base64
import hashlib
import hmac


class EncodingError(ValueError):
    """Input could not be converted to bytes."""


def _as_bytes(value: bytes | str) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return value.encode('utf-8')
        except UnicodeEncodeError as exc:
            raise EncodingError(f'Cannot UTF-8 encode input: {exc.reason}') from exc
    raise EncodingError(f'Expected bytes or str, got {type(value).__name__}')


def sha256_hex(data: bytes | str) -> str:
    """Lower-case hex SHA-256 digest of ``data``."""
    return hashlib.sha256(_as_bytes(data)).hexdigest()


def hmac_sha256(key: bytes | str, message: bytes | str) -> bytes:
    """Raw HMAC-SHA256 of ``message`` under ``key``."""
    return hmac.new(_as_bytes(key), _as_bytes(message), hashlib.sha256).digest()


def to_hex(data: bytes) -> str:
    return _as_bytes(data).hex()


def to_base64url(data: bytes) -> str:
    """Base64 with the URL-safe alphabet and no ``=`` padding."""
    return base64.urlsafe_b64encode(_as_bytes(data)).rstrip(b'=').decode('ascii')

