"""Tests for the Workers KV share registry (mocked httpx transport)."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from share_gateway.errors import UpstreamError
from share_gateway.sharing.kv_registry import KVShareRegistry
from share_gateway.sharing.model import OpenShare, RegistryError, share_to_json

VALUES_PATH = '/client/v4/accounts/acct123/storage/kv/namespaces/ns456/values'


def _share(share_id: str = 'abc123def456ghi789') -> OpenShare:
    return OpenShare(
        id=share_id,
        bucket='media',
        prefix='pics/',
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )


def _registry(handler) -> KVShareRegistry:
    return KVShareRegistry(
        account_id='acct123',
        namespace_id='ns456',
        api_token='cf-api-token',
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestPut:

    @pytest.mark.asyncio
    async def test_put_sends_value_and_ttl(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={'success': True})

        share = _share()
        await _registry(handler).put(share.id, share, 3600)

        request = seen[0]
        assert request.method == 'PUT'
        assert request.url.raw_path.decode().startswith(f'{VALUES_PATH}/share%3A{share.id}')
        assert request.url.params['expiration_ttl'] == '3600'
        assert request.headers['authorization'] == 'Bearer cf-api-token'
        assert json.loads(request.content)['prefix'] == 'pics/'

    @pytest.mark.asyncio
    async def test_short_ttl_raised_to_kv_minimum(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={'success': True})

        share = _share()
        await _registry(handler).put(share.id, share, 1)
        assert seen[0].url.params['expiration_ttl'] == '60'

    @pytest.mark.asyncio
    async def test_put_failure_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text='kv down')

        share = _share()
        with pytest.raises(RegistryError):
            await _registry(handler).put(share.id, share, 3600)


class TestGet:

    @pytest.mark.asyncio
    async def test_get_parses_record(self):
        share = _share()

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=share_to_json(share))

        restored = await _registry(handler).get(share.id)
        assert isinstance(restored, OpenShare)
        assert restored.id == share.id

    @pytest.mark.asyncio
    async def test_get_404_is_absent(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={'success': False})

        assert await _registry(handler).get('missing123') is None

    @pytest.mark.asyncio
    async def test_get_transport_error_raises_upstream(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout('slow', request=request)

        with pytest.raises(UpstreamError):
            await _registry(handler).get('abc123')


class TestDelete:

    @pytest.mark.asyncio
    async def test_delete(self):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.method)
            return httpx.Response(200, json={'success': True})

        await _registry(handler).delete('abc123')
        assert seen == ['DELETE']

    @pytest.mark.asyncio
    async def test_delete_404_tolerated(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        await _registry(handler).delete('abc123')

    @pytest.mark.asyncio
    async def test_delete_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403)

        with pytest.raises(RegistryError):
            await _registry(handler).delete('abc123')


def test_requires_credentials():
    with pytest.raises(ValueError):
        KVShareRegistry(
            account_id='a', namespace_id='', api_token='t', http_client=httpx.AsyncClient(),
        )
