"""Share registry backed by Cloudflare Workers KV (REST API).

Keys are ``share:<id>`` and values are the JSON wire form from
``model.share_to_json``, so a namespace written by an earlier deployment
stays readable.

KV evicts on its own once ``expiration_ttl`` passes, but rejects TTLs
below 60 seconds; shorter shares are stored with a 60 second TTL and
rely on ``load_active_share`` for the exact cut-off.

The Cloudflare API token used here is a management credential. It is
unrelated to the gateway's own admin token.
"""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from .model import RegistryError, ShareRecord, share_from_json, share_to_json

logger = logging.getLogger(__name__)

KEY_PREFIX = 'share:'
MIN_KV_TTL_SECONDS = 60
CLOUDFLARE_API_BASE = 'https://api.cloudflare.com/client/v4'


class KVShareRegistry:
    """ShareRegistry over the Workers KV ``values`` endpoint.

    ``http_client`` belongs to the caller, which closes it.
    """

    def __init__(
        self,
        *,
        account_id: str,
        namespace_id: str,
        api_token: str,
        base_url: str = CLOUDFLARE_API_BASE,
        http_client: httpx.AsyncClient,
        timeout_seconds: float = 10.0,
    ) -> None:
        if not (account_id and namespace_id and api_token):
            raise ValueError('account_id, namespace_id and api_token are required')
        self._values_url = (
            f'{base_url.rstrip("/")}/accounts/{account_id}'
            f'/storage/kv/namespaces/{namespace_id}/values'
        )
        self._api_token = api_token
        self._client = http_client
        self._timeout = float(timeout_seconds)

    def _url(self, share_id: str) -> str:
        return f'{self._values_url}/{quote(KEY_PREFIX + share_id, safe="")}'

    async def _request(
        self,
        method: str,
        share_id: str,
        *,
        content: str | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            return await self._client.request(
                method,
                self._url(share_id),
                headers={'Authorization': f'Bearer {self._api_token}'},
                content=content,
                params=params,
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning('KV %s for share %s failed: %s', method, share_id, type(exc).__name__)
            raise RegistryError(internal=f'KV {method} transport error: {exc!r}') from exc

    @staticmethod
    def _raise_for_status(resp: httpx.Response, method: str) -> None:
        if resp.is_success:
            return
        raise RegistryError(internal=f'KV {method} returned {resp.status_code}: {resp.text[:200]}')

    async def put(self, share_id: str, record: ShareRecord, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError('ttl_seconds must be positive')
        ttl = max(MIN_KV_TTL_SECONDS, int(ttl_seconds))
        resp = await self._request(
            'PUT',
            share_id,
            content=share_to_json(record),
            params={'expiration_ttl': str(ttl)},
        )
        self._raise_for_status(resp, 'PUT')

    async def get(self, share_id: str) -> ShareRecord | None:
        resp = await self._request('GET', share_id)
        if resp.status_code == 404:
            return None
        self._raise_for_status(resp, 'GET')
        return share_from_json(resp.content)

    async def delete(self, share_id: str) -> None:
        resp = await self._request('DELETE', share_id)
        if resp.status_code == 404:
            return
        self._raise_for_status(resp, 'DELETE')
