"""Pytest configuration for share_gateway tests."""
import sys
from pathlib import Path

# Add src/ to path for src-layout imports
_PROJECT_ROOT = Path(__file__).parent.parent
_SRC = _PROJECT_ROOT / 'src'
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import pytest

from share_gateway.settings import GatewaySettings

ADMIN_TOKEN = 'test-admin-token-0123456789abcdef'
STORAGE_HOST = 'acct123.r2.cloudflarestorage.com'


def listing_xml(prefix: str, folders=(), objects=()) -> str:
    """Render a ListObjectsV2 response body.

    ``objects`` is a sequence of ``(key, size)`` or ``(key, size, last_modified)``.
    """
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<ListBucketResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">',
        '<Name>media</Name>',
        f'<Prefix>{prefix}</Prefix>',
        '<Delimiter>/</Delimiter>',
        '<IsTruncated>false</IsTruncated>',
    ]
    for obj in objects:
        key, size = obj[0], obj[1]
        modified = obj[2] if len(obj) > 2 else None
        parts.append('<Contents>')
        parts.append(f'<Key>{key}</Key>')
        if modified:
            parts.append(f'<LastModified>{modified}</LastModified>')
        parts.append(f'<Size>{size}</Size>')
        parts.append('<StorageClass>STANDARD</StorageClass>')
        parts.append('</Contents>')
    for folder in folders:
        parts.append(f'<CommonPrefixes><Prefix>{folder}</Prefix></CommonPrefixes>')
    parts.append('</ListBucketResult>')
    return ''.join(parts)


@pytest.fixture
def settings() -> GatewaySettings:
    return GatewaySettings(
        admin_token=ADMIN_TOKEN,
        r2_account_id='acct123',
        storage_access_key_id='AKIDTEST',
        storage_secret_access_key='secret-test-key',
    )


@pytest.fixture
def make_listing_xml():
    return listing_xml
