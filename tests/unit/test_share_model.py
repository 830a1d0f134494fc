"""Tests for share records, wire format and the in-memory registry.

Validates:
  - Share ids are URL-safe, 18 chars, unique.
  - Prefix normalization always yields a trailing slash.
  - JSON wire format round-trips both variants and rejects half PINs.
  - Registry TTL eviction and explicit deletion.
  - load_active_share double-checks expiry and deletes stale entries.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timedelta, timezone

import pytest

from share_gateway.errors import ShareExpired
from share_gateway.sharing.model import (
    InMemoryShareRegistry,
    OpenShare,
    PinProtectedShare,
    RegistryError,
    generate_share_id,
    load_active_share,
    normalize_prefix,
    share_from_json,
    share_to_json,
)


# ── Helpers ───────────────────────────────────────────────────────────


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _open(expires_delta: timedelta = timedelta(hours=1), share_id: str = 'abc123def456ghi789') -> OpenShare:
    return OpenShare(
        id=share_id,
        bucket='media',
        prefix='pics/',
        expires_at=datetime.now(timezone.utc) + expires_delta,
    )


# =====================================================================
# Creation helpers
# =====================================================================


class TestShareId:

    def test_length_and_alphabet(self):
        share_id = generate_share_id()
        assert len(share_id) == 18
        assert re.fullmatch(r'[A-Za-z0-9_-]+', share_id)

    def test_unique(self):
        assert len({generate_share_id() for _ in range(500)}) == 500


class TestNormalizePrefix:

    @pytest.mark.parametrize('raw,expected', [
        ('pics', 'pics/'),
        ('pics/', 'pics/'),
        ('a/b/c', 'a/b/c/'),
    ])
    def test_trailing_slash(self, raw, expected):
        assert normalize_prefix(raw) == expected


# =====================================================================
# Wire format
# =====================================================================


class TestWireFormat:

    def test_open_share_round_trip(self):
        share = _open()
        restored = share_from_json(share_to_json(share))
        assert isinstance(restored, OpenShare)
        assert restored.bucket == 'media'
        assert restored.prefix == 'pics/'
        assert abs((restored.expires_at - share.expires_at).total_seconds()) < 0.001

    def test_pin_share_round_trip(self):
        share = PinProtectedShare(
            id='abc123def456ghi789',
            bucket='media',
            prefix='pics/',
            expires_at=datetime(2030, 1, 1, tzinfo=timezone.utc),
            pin_salt='00' * 16,
            pin_hash='ab' * 32,
        )
        restored = share_from_json(share_to_json(share))
        assert restored == share

    def test_camel_case_keys_and_z_timestamp(self):
        data = json.loads(share_to_json(_open()))
        assert set(data) == {'id', 'bucket', 'prefix', 'expiresAt'}
        assert data['expiresAt'].endswith('Z')

    def test_reads_record_written_by_earlier_deployment(self):
        raw = (
            '{"id":"0123456789abcdef01","bucket":"media","prefix":"pics/",'
            '"expiresAt":"2030-05-01T12:00:00.000Z"}'
        )
        share = share_from_json(raw)
        assert isinstance(share, OpenShare)
        assert share.expires_at == datetime(2030, 5, 1, 12, tzinfo=timezone.utc)

    def test_half_pin_is_corrupt(self):
        raw = json.dumps({
            'id': 'x' * 18, 'bucket': 'b', 'prefix': 'p/',
            'expiresAt': '2030-01-01T00:00:00Z', 'pinSalt': 'aa',
        })
        with pytest.raises(RegistryError):
            share_from_json(raw)

    def test_garbage_is_corrupt(self):
        with pytest.raises(RegistryError):
            share_from_json('not json')

    def test_missing_field_is_corrupt(self):
        with pytest.raises(RegistryError):
            share_from_json('{"id": "abc"}')


# =====================================================================
# In-memory registry
# =====================================================================


class TestInMemoryRegistry:

    @pytest.mark.asyncio
    async def test_put_then_get(self):
        registry = InMemoryShareRegistry()
        share = _open()
        await registry.put(share.id, share, 3600)
        assert await registry.get(share.id) == share

    @pytest.mark.asyncio
    async def test_get_absent_returns_none(self):
        assert await InMemoryShareRegistry().get('missing') is None

    @pytest.mark.asyncio
    async def test_ttl_evicts(self):
        clock = FakeClock()
        registry = InMemoryShareRegistry(clock=clock)
        share = _open()
        await registry.put(share.id, share, 10)
        clock.now += 9.9
        assert await registry.get(share.id) is not None
        clock.now += 0.1
        assert await registry.get(share.id) is None
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_put_sweeps_unread_elapsed_entries(self):
        clock = FakeClock()
        registry = InMemoryShareRegistry(clock=clock)
        for i in range(5):
            await registry.put(f'stale{i}00', _open(share_id=f'stale{i}00'), 10)
        await registry.put('keeper000', _open(share_id='keeper000'), 100)
        clock.now += 10
        fresh = _open(share_id='fresh0000')
        await registry.put(fresh.id, fresh, 10)
        assert len(registry) == 2
        assert await registry.get('keeper000') is not None

    @pytest.mark.asyncio
    async def test_delete(self):
        registry = InMemoryShareRegistry()
        share = _open()
        await registry.put(share.id, share, 60)
        await registry.delete(share.id)
        assert await registry.get(share.id) is None

    @pytest.mark.asyncio
    async def test_delete_absent_is_noop(self):
        await InMemoryShareRegistry().delete('missing')

    @pytest.mark.asyncio
    async def test_non_positive_ttl_rejected(self):
        with pytest.raises(ValueError):
            await InMemoryShareRegistry().put('abc123', _open(), 0)


# =====================================================================
# load_active_share
# =====================================================================


class TestLoadActiveShare:

    @pytest.mark.asyncio
    async def test_returns_active_share(self):
        registry = InMemoryShareRegistry()
        share = _open()
        await registry.put(share.id, share, 3600)
        assert await load_active_share(registry, share.id) == share

    @pytest.mark.asyncio
    async def test_absent_raises_expired(self):
        with pytest.raises(ShareExpired):
            await load_active_share(InMemoryShareRegistry(), 'missing123')

    @pytest.mark.asyncio
    async def test_expired_but_not_evicted_is_deleted(self):
        registry = InMemoryShareRegistry()
        share = _open(expires_delta=timedelta(seconds=-5))
        # Registry TTL outlives the record, as a lagging store would.
        await registry.put(share.id, share, 3600)

        with pytest.raises(ShareExpired) as exc_info:
            await load_active_share(registry, share.id)

        assert exc_info.value.expired_at == share.expires_at
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_expiry_boundary_is_inclusive(self):
        registry = InMemoryShareRegistry()
        share = _open()
        await registry.put(share.id, share, 3600)
        with pytest.raises(ShareExpired):
            await load_active_share(registry, share.id, now=share.expires_at)
