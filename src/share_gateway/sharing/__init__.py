"""Folder shares: records, registry, PIN cookies and HTTP routes."""

from .model import (
    InMemoryShareRegistry,
    OpenShare,
    PinProtectedShare,
    RegistryError,
    ShareRecord,
    ShareRegistry,
    generate_share_id,
    load_active_share,
    normalize_prefix,
    share_from_json,
    share_to_json,
)
from .auth import (
    PinAuthenticator,
    coerce_pin,
    is_valid_pin,
    issue_pin_hash,
    parse_cookie_header,
    verify_pin,
)
from .kv_registry import KVShareRegistry
from .routes import CreateShareRequest, create_admin_router
from .access import create_share_access_router, relativize_listing

__all__ = [
    'CreateShareRequest',
    'InMemoryShareRegistry',
    'KVShareRegistry',
    'OpenShare',
    'PinAuthenticator',
    'PinProtectedShare',
    'RegistryError',
    'ShareRecord',
    'ShareRegistry',
    'coerce_pin',
    'create_admin_router',
    'create_share_access_router',
    'generate_share_id',
    'is_valid_pin',
    'issue_pin_hash',
    'load_active_share',
    'normalize_prefix',
    'parse_cookie_header',
    'relativize_listing',
    'share_from_json',
    'share_to_json',
    'verify_pin',
]
