"""Async client for the two storage operations a share needs.

Listing goes over the network with ``httpx``; download presigning is
local arithmetic and never touches the provider. There are no retries:
any failure surfaces immediately as an ``UpstreamError``.
"""

from __future__ import annotations

import logging

import httpx

from ..errors import UpstreamError
from .listing import Listing, parse_listing
from .signer import DEFAULT_GET_EXPIRES_SECONDS, SigV4Signer

logger = logging.getLogger(__name__)


class StorageRequestError(UpstreamError):
    """Storage provider returned non-2xx, or the request never completed."""

    def __init__(self, status_code: int, *, internal: str = '') -> None:
        self.status_code_upstream = status_code
        super().__init__('Storage request failed.', internal=internal)


class StorageClient:
    """Lists folders and presigns downloads against one S3-compatible endpoint.

    ``http_client`` belongs to the caller, which closes it.
    """

    def __init__(
        self,
        signer: SigV4Signer,
        *,
        http_client: httpx.AsyncClient,
        timeout_seconds: float = 30.0,
        presign_expires_seconds: int = DEFAULT_GET_EXPIRES_SECONDS,
    ) -> None:
        self.signer = signer
        self._client = http_client
        self._timeout = float(timeout_seconds)
        self._presign_expires = presign_expires_seconds

    async def list_folder(self, bucket: str, prefix: str) -> Listing:
        """One level of ``bucket`` under ``prefix`` (absolute key prefix)."""
        signed = self.signer.presign_list_objects(bucket, prefix)
        try:
            resp = await self._client.get(signed.url, timeout=self._timeout)
        except httpx.HTTPError as exc:
            logger.warning('Storage list %s/%s failed: %s', bucket, prefix, type(exc).__name__)
            raise StorageRequestError(0, internal=repr(exc)) from exc

        if not resp.is_success:
            logger.warning('Storage list %s/%s returned %d', bucket, prefix, resp.status_code)
            raise StorageRequestError(
                resp.status_code,
                internal=f'list returned {resp.status_code}: {resp.text[:200]}',
            )

        return parse_listing(resp.content)

    def presign_download(self, bucket: str, key: str, *, expires_in: int | None = None) -> str:
        return self.signer.presign_get_object(
            bucket, key, expires_in=expires_in or self._presign_expires,
        ).url
