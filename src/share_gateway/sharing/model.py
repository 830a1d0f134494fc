"""Share records and the registry that holds them.

A share grants read-only access to one ``bucket`` + ``prefix`` until
``expires_at``. It comes in two shapes:

  - ``OpenShare``         — anyone holding the link can browse.
  - ``PinProtectedShare`` — browsing requires a PIN-verified cookie.

Records live in a ``ShareRegistry`` keyed by share id, written with a
time-to-live equal to the share's remaining lifetime. Registry eviction
may lag, so every read goes through ``load_active_share`` which applies
the ``expires_at <= now`` check itself and deletes stale entries.

This module provides:
  1. ``OpenShare`` / ``PinProtectedShare`` — the record variants.
  2. ``generate_share_id`` / ``normalize_prefix`` — creation helpers.
  3. ``share_to_json`` / ``share_from_json`` — registry wire format.
  4. ``ShareRegistry`` — storage protocol.
  5. ``InMemoryShareRegistry`` — TTL-aware local/test implementation.
  6. ``load_active_share`` — expiry-checked read used by every route.
"""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Protocol, Union

from ..errors import ShareExpired, UpstreamError

# ── Constants ─────────────────────────────────────────────────────────

SHARE_ID_LENGTH = 18
SHARE_ID_PATTERN = r'[A-Za-z0-9_-]{6,}'


class RegistryError(UpstreamError):
    """The registry backend failed or returned a corrupt record."""


# ── Domain model ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class _ShareBase:
    id: str
    bucket: str
    prefix: str
    expires_at: datetime

    def remaining_seconds(self, now: datetime | None = None) -> float:
        now = now or datetime.now(timezone.utc)
        return (self.expires_at - now).total_seconds()

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.remaining_seconds(now) <= 0


@dataclass(frozen=True)
class OpenShare(_ShareBase):
    """Share without a PIN."""


@dataclass(frozen=True)
class PinProtectedShare(_ShareBase):
    """Share gated by a 4-digit PIN.

    Attributes:
        pin_salt: Hex of 16 random bytes.
        pin_hash: ``sha256_hex(pin_salt + ':' + pin)``.
    """

    pin_salt: str
    pin_hash: str


ShareRecord = Union[OpenShare, PinProtectedShare]


def generate_share_id() -> str:
    """Random URL-safe share id (18 lowercase hex chars)."""
    return uuid.uuid4().hex[:SHARE_ID_LENGTH]


def normalize_prefix(prefix: str) -> str:
    return prefix if prefix.endswith('/') else prefix + '/'


# ── Wire format ───────────────────────────────────────────────────────


def format_timestamp(value: datetime) -> str:
    value = value.astimezone(timezone.utc)
    return value.strftime('%Y-%m-%dT%H:%M:%S.') + f'{value.microsecond // 1000:03d}Z'


def _parse_timestamp(value: str) -> datetime:
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def share_to_json(record: ShareRecord) -> str:
    """Serialize to the ``{id, bucket, prefix, expiresAt, pinSalt?, pinHash?}`` shape."""
    payload = {
        'id': record.id,
        'bucket': record.bucket,
        'prefix': record.prefix,
        'expiresAt': format_timestamp(record.expires_at),
    }
    if isinstance(record, PinProtectedShare):
        payload['pinSalt'] = record.pin_salt
        payload['pinHash'] = record.pin_hash
    return json.dumps(payload, separators=(',', ':'))


def share_from_json(raw: str | bytes) -> ShareRecord:
    """Parse a registry value back into a record.

    Raises:
        RegistryError: The value is not a well-formed share record.
    """
    try:
        data = json.loads(raw)
        common = {
            'id': data['id'],
            'bucket': data['bucket'],
            'prefix': data['prefix'],
            'expires_at': _parse_timestamp(data['expiresAt']),
        }
    except (ValueError, KeyError, TypeError) as exc:
        raise RegistryError(internal=f'corrupt share record: {exc!r}') from exc

    salt, pin_hash = data.get('pinSalt'), data.get('pinHash')
    if salt and pin_hash:
        return PinProtectedShare(**common, pin_salt=salt, pin_hash=pin_hash)
    if salt or pin_hash:
        raise RegistryError(internal=f'share {common["id"]} has half a PIN configured')
    return OpenShare(**common)


# ── Registry protocol ─────────────────────────────────────────────────


class ShareRegistry(Protocol):
    """Key/value store with per-key expiry.

    Implementations: InMemoryShareRegistry (local/testing),
    KVShareRegistry (Cloudflare Workers KV).
    """

    async def put(self, share_id: str, record: ShareRecord, ttl_seconds: int) -> None: ...

    async def get(self, share_id: str) -> ShareRecord | None: ...

    async def delete(self, share_id: str) -> None: ...


# ── In-memory implementation ─────────────────────────────────────────


class InMemoryShareRegistry:
    """Dict-backed registry that evicts keys lazily once their TTL elapses.

    A read evicts its own key; every write sweeps all elapsed keys, so
    ids that are never read again do not accumulate.

    Values are stored in their JSON wire form so the round trip matches
    what a remote backend would do.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    async def put(self, share_id: str, record: ShareRecord, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError('ttl_seconds must be positive')
        now = self._clock()
        self._sweep(now)
        self._entries[share_id] = (share_to_json(record), now + ttl_seconds)

    def _sweep(self, now: float) -> None:
        stale = [key for key, (_, deadline) in self._entries.items() if now >= deadline]
        for key in stale:
            del self._entries[key]

    async def get(self, share_id: str) -> ShareRecord | None:
        entry = self._entries.get(share_id)
        if entry is None:
            return None
        raw, deadline = entry
        if self._clock() >= deadline:
            self._entries.pop(share_id, None)
            return None
        return share_from_json(raw)

    async def delete(self, share_id: str) -> None:
        self._entries.pop(share_id, None)

    def __len__(self) -> int:
        return len(self._entries)


# ── Expiry-checked read ───────────────────────────────────────────────


async def load_active_share(
    registry: ShareRegistry,
    share_id: str,
    *,
    now: datetime | None = None,
) -> ShareRecord:
    """Fetch a share that is still valid.

    Raises:
        ShareExpired: Absent from the registry, or past ``expires_at``
            (in which case the entry is deleted first).
    """
    record = await registry.get(share_id)
    if record is None:
        raise ShareExpired(share_id)
    now = now or datetime.now(timezone.utc)
    if record.is_expired(now):
        await registry.delete(share_id)
        raise ShareExpired(share_id, record.expires_at)
    return record
