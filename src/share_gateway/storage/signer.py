"""AWS Signature Version 4 query-string signing, without an SDK.

Used for two requests against an S3-compatible endpoint (Cloudflare R2
by default, region ``auto``):

  - ListObjectsV2 one level below a prefix (the gateway fetches it).
  - GetObject for one key (the browser fetches it).

Both are signed the same way: credentials go into the query string,
the only signed header is ``host`` and the payload hash is the literal
``UNSIGNED-PAYLOAD``. Addressing is path style (``/<bucket>/<key>``).

Every function takes ``now`` so a fixed timestamp yields byte-identical
output; there is no other source of variation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Mapping

from ..crypto import hmac_sha256, sha256_hex, to_hex

# ── Constants ─────────────────────────────────────────────────────────

ALGORITHM = 'AWS4-HMAC-SHA256'
KEY_PREFIX = 'AWS4'
SCOPE_TERMINATOR = 'aws4_request'
UNSIGNED_PAYLOAD = 'UNSIGNED-PAYLOAD'
SIGNED_HEADERS = 'host'

MAX_EXPIRES_SECONDS = 7 * 24 * 3600
DEFAULT_GET_EXPIRES_SECONDS = 600
DEFAULT_LIST_EXPIRES_SECONDS = 300

_UNRESERVED = frozenset(
    'ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~'
)


# ── Encoding ──────────────────────────────────────────────────────────


def uri_encode(value: str) -> str:
    """Percent-encode everything outside the RFC 3986 unreserved set.

    Stricter than ``urllib.parse.quote``: ``!*'()`` and ``/`` are encoded
    too. Hex digits are upper-case.
    """
    out = []
    for byte in value.encode('utf-8'):
        char = chr(byte)
        if char in _UNRESERVED:
            out.append(char)
        else:
            out.append(f'%{byte:02X}')
    return ''.join(out)


def canonical_uri(bucket: str, key: str | None = None) -> str:
    """Path-style URI with every segment encoded on its own."""
    path = '/' + uri_encode(bucket)
    if key is not None:
        path += '/' + '/'.join(uri_encode(segment) for segment in key.split('/'))
    return path


def canonical_query(params: Mapping[str, str] | Iterable[tuple[str, str]]) -> str:
    """Encode, then sort by key and value, then join with ``&``."""
    items = params.items() if isinstance(params, Mapping) else params
    pairs = sorted((uri_encode(str(k)), uri_encode(str(v))) for k, v in items)
    return '&'.join(f'{k}={v}' for k, v in pairs)


def amz_timestamps(now: datetime) -> tuple[str, str]:
    """``(YYYYMMDD, YYYYMMDDTHHMMSSZ)`` in UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.strftime('%Y%m%d'), now.strftime('%Y%m%dT%H%M%SZ')


# ── Signer ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PresignedRequest:
    """A signed URL plus the intermediate values that produced it."""

    url: str
    canonical_request: str
    string_to_sign: str
    signature: str


class SigV4Signer:
    """Signs requests for one endpoint host under one credential pair."""

    def __init__(
        self,
        *,
        access_key_id: str,
        secret_access_key: str,
        host: str,
        region: str = 'auto',
        service: str = 's3',
    ) -> None:
        if not access_key_id or not secret_access_key:
            raise ValueError('access_key_id and secret_access_key are required')
        if not host:
            raise ValueError('host is required')
        self.access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self.host = host
        self.region = region
        self.service = service

    def __repr__(self) -> str:
        return f'SigV4Signer(host={self.host!r}, region={self.region!r}, access_key_id={self.access_key_id!r})'

    def credential_scope(self, date: str) -> str:
        return f'{date}/{self.region}/{self.service}/{SCOPE_TERMINATOR}'

    def canonical_request(self, method: str, uri: str, query: str) -> str:
        return '\n'.join([
            method,
            uri,
            query,
            f'host:{self.host}\n',
            SIGNED_HEADERS,
            UNSIGNED_PAYLOAD,
        ])

    def string_to_sign(self, amz_date: str, canonical_request: str) -> str:
        return '\n'.join([
            ALGORITHM,
            amz_date,
            self.credential_scope(amz_date[:8]),
            sha256_hex(canonical_request),
        ])

    def signing_key(self, date: str) -> bytes:
        k_date = hmac_sha256(KEY_PREFIX + self._secret_access_key, date)
        k_region = hmac_sha256(k_date, self.region)
        k_service = hmac_sha256(k_region, self.service)
        return hmac_sha256(k_service, SCOPE_TERMINATOR)

    def presign(
        self,
        method: str,
        uri: str,
        *,
        params: Mapping[str, str] | None = None,
        expires_in: int,
        now: datetime | None = None,
    ) -> PresignedRequest:
        """Sign ``method uri?params`` with query-string credentials.

        Args:
            method: HTTP method, upper-case.
            uri: Canonical (already encoded) path, see ``canonical_uri``.
            params: Operation query parameters, unencoded.
            expires_in: Validity window in seconds (1..604800).
            now: Signing time; defaults to the current UTC time.
        """
        if not 1 <= expires_in <= MAX_EXPIRES_SECONDS:
            raise ValueError(f'expires_in must be within 1..{MAX_EXPIRES_SECONDS}')

        date, amz_date = amz_timestamps(now or datetime.now(timezone.utc))
        query_params = dict(params or {})
        query_params.update({
            'X-Amz-Algorithm': ALGORITHM,
            'X-Amz-Credential': f'{self.access_key_id}/{self.credential_scope(date)}',
            'X-Amz-Date': amz_date,
            'X-Amz-Expires': str(expires_in),
            'X-Amz-SignedHeaders': SIGNED_HEADERS,
        })
        query = canonical_query(query_params)

        creq = self.canonical_request(method, uri, query)
        sts = self.string_to_sign(amz_date, creq)
        signature = to_hex(hmac_sha256(self.signing_key(date), sts))

        url = f'https://{self.host}{uri}?{query}&X-Amz-Signature={signature}'
        return PresignedRequest(
            url=url,
            canonical_request=creq,
            string_to_sign=sts,
            signature=signature,
        )

    def presign_get_object(
        self,
        bucket: str,
        key: str,
        *,
        expires_in: int = DEFAULT_GET_EXPIRES_SECONDS,
        now: datetime | None = None,
    ) -> PresignedRequest:
        return self.presign(
            'GET', canonical_uri(bucket, key), expires_in=expires_in, now=now,
        )

    def presign_list_objects(
        self,
        bucket: str,
        prefix: str,
        *,
        expires_in: int = DEFAULT_LIST_EXPIRES_SECONDS,
        now: datetime | None = None,
    ) -> PresignedRequest:
        """ListObjectsV2 under ``prefix``, one level deep (``delimiter=/``)."""
        return self.presign(
            'GET',
            canonical_uri(bucket),
            params={'list-type': '2', 'delimiter': '/', 'prefix': prefix},
            expires_in=expires_in,
            now=now,
        )
