"""Share gateway configuration settings.

GatewaySettings is the single configuration object accepted by create_app().
It is intentionally a plain dataclass (not env-coupled) so tests can inject config
without touching os.environ.

Two credentials must not be confused:
  - ``admin_token`` authenticates callers of ``POST /admin/shares``.
  - ``cf_api_token`` is a Cloudflare management token, used only by the
    KV share registry.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .storage.signer import DEFAULT_GET_EXPIRES_SECONDS, MAX_EXPIRES_SECONDS

_MIN_ADMIN_TOKEN_LENGTH = 32


@dataclass(frozen=True, slots=True)
class GatewaySettings:
    """Configuration for the share gateway FastAPI application.

    Local mode runs with an in-memory share registry; every other
    environment must supply Workers KV settings.
    """

    # ── Environment ────────────────────────────────────────────────
    environment: str = "local"
    """One of: local, dev, staging, production."""

    # ── Gateway auth ───────────────────────────────────────────────
    admin_token: str = field(default="", repr=False)
    """Expected X-Admin-Token for share creation. Never log this."""

    cookie_secret: str = field(default="", repr=False)
    """HMAC key for share auth cookies. Falls back to admin_token.
    Rotating it invalidates every outstanding PIN cookie."""

    # ── Storage ────────────────────────────────────────────────────
    r2_account_id: str = ""
    """Cloudflare account id; also used to derive the R2 endpoint host."""

    storage_endpoint_host: str = ""
    """S3-compatible endpoint host. Empty means <account>.r2.cloudflarestorage.com."""

    storage_region: str = "auto"

    storage_access_key_id: str = ""

    storage_secret_access_key: str = field(default="", repr=False)

    presign_expires_sec: int = DEFAULT_GET_EXPIRES_SECONDS
    """Lifetime of presigned download URLs, independent of share expiry."""

    # ── Share registry (Workers KV) ────────────────────────────────
    kv_namespace_id: str = ""

    cf_api_token: str = field(default="", repr=False)

    # ── Public URLs ────────────────────────────────────────────────
    public_base_url: str = ""
    """Origin used in share URLs. Empty means the request's own origin."""

    @property
    def is_local(self) -> bool:
        return self.environment == "local"

    @property
    def effective_cookie_secret(self) -> str:
        return self.cookie_secret or self.admin_token

    @property
    def storage_host(self) -> str:
        if self.storage_endpoint_host:
            return self.storage_endpoint_host
        if self.r2_account_id:
            return f"{self.r2_account_id}.r2.cloudflarestorage.com"
        return ""

    @property
    def uses_kv_registry(self) -> bool:
        return bool(self.kv_namespace_id)

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if not self.admin_token:
            errors.append("admin_token is required")
        if not self.storage_host:
            errors.append("storage_endpoint_host or r2_account_id is required")
        if not self.storage_access_key_id or not self.storage_secret_access_key:
            errors.append("storage_access_key_id and storage_secret_access_key are required")
        if not 1 <= self.presign_expires_sec <= MAX_EXPIRES_SECONDS:
            errors.append(f"presign_expires_sec must be within 1..{MAX_EXPIRES_SECONDS}")
        if self.uses_kv_registry and not (self.r2_account_id and self.cf_api_token):
            errors.append("kv_namespace_id requires r2_account_id and cf_api_token")
        if not self.is_local:
            if len(self.admin_token) < _MIN_ADMIN_TOKEN_LENGTH:
                errors.append(
                    f"{self.environment}: admin_token must be >= "
                    f"{_MIN_ADMIN_TOKEN_LENGTH} characters"
                )
            if not self.uses_kv_registry:
                errors.append(f"{self.environment}: kv_namespace_id is required")
        return errors

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> GatewaySettings:
        """Build settings from environment variables.

        This is a convenience factory for production use. Tests should
        construct GatewaySettings directly.
        """
        if env is None:
            env = dict(os.environ)

        presign_raw = env.get("PRESIGN_EXPIRES_SEC", "")
        try:
            presign_expires = int(presign_raw) if presign_raw else DEFAULT_GET_EXPIRES_SECONDS
        except ValueError:
            raise ValueError(f"PRESIGN_EXPIRES_SEC must be an integer, got {presign_raw!r}")

        return cls(
            environment=env.get("ENVIRONMENT", "local"),
            admin_token=env.get("ADMIN_TOKEN", ""),
            cookie_secret=env.get("COOKIE_SECRET", ""),
            r2_account_id=env.get("R2_ACCOUNT_ID", ""),
            storage_endpoint_host=env.get("STORAGE_ENDPOINT_HOST", ""),
            storage_region=env.get("STORAGE_REGION", "auto"),
            storage_access_key_id=env.get("STORAGE_ACCESS_KEY_ID", ""),
            storage_secret_access_key=env.get("STORAGE_SECRET_ACCESS_KEY", ""),
            presign_expires_sec=presign_expires,
            kv_namespace_id=env.get("KV_NAMESPACE_ID", ""),
            cf_api_token=env.get("CF_API_TOKEN", ""),
            public_base_url=env.get("PUBLIC_BASE_URL", "").rstrip("/"),
        )
