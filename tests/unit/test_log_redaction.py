"""Tests for secret redaction in the logging pipeline."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from share_gateway.observability.logging import (
    REDACTED,
    redact_secrets,
    request_id_ctx,
    shared_processors,
)
from share_gateway.storage.signer import SigV4Signer

PRESIGNED_URL = SigV4Signer(
    access_key_id='AKIDTEST',
    secret_access_key='secret-test-key',
    host='acct123.r2.cloudflarestorage.com',
).presign_get_object('media', 'pics/a.jpg').url


def _format_stdlib(message: str, *args) -> dict:
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
    )
    record = logging.LogRecord('httpx', logging.WARNING, __file__, 1, message, args, None)
    return json.loads(formatter.format(record))


class TestRedactSecrets:

    @pytest.mark.parametrize('key', [
        'pin', 'PIN', 'cookie', 'Set-Cookie', 'authorization', 'X-Admin-Token',
        'cf_api_token', 'x_amz_signature', 'X-Amz-Credential',
    ])
    def test_sensitive_keys_masked(self, key):
        event = redact_secrets(None, 'info', {'event': 'e', key: 'value-1234'})
        assert event[key] == REDACTED

    def test_share_fields_untouched(self):
        event = {'event': 'share_created', 'share_id': 'abc123', 'bucket': 'media', 'prefix': 'pics/'}
        assert redact_secrets(None, 'info', dict(event)) == event

    def test_presigned_url_credentials_masked(self):
        event = redact_secrets(None, 'info', {'event': 'signed', 'url': PRESIGNED_URL})
        assert 'AKIDTEST' not in event['url']
        assert f'X-Amz-Signature={REDACTED}' in event['url']
        assert f'X-Amz-Credential={REDACTED}' in event['url']
        assert event['url'].startswith('https://acct123.r2.cloudflarestorage.com/media/pics/a.jpg?')

    def test_auth_cookie_in_text_masked(self):
        event = redact_secrets(None, 'info', {'event': 'headers: auth_abc123=Zm9vYmFy; theme=dark'})
        assert event['event'] == f'headers: auth_abc123={REDACTED}; theme=dark'

    def test_non_string_values_kept(self):
        event = redact_secrets(None, 'info', {'event': 'e', 'size': 1024, 'pin_protected': True})
        assert event['size'] == 1024
        assert event['pin_protected'] is True


class TestStdlibRecords:

    def test_foreign_record_is_scrubbed(self):
        out = _format_stdlib('HTTP Request: GET %s "HTTP/1.1 403"', PRESIGNED_URL)
        assert 'AKIDTEST' not in out['event']
        assert REDACTED in out['event']
        assert out['level'] == 'warning'
        assert out['logger'] == 'httpx'

    def test_request_id_attached(self):
        token = request_id_ctx.set('req-12345678')
        try:
            out = _format_stdlib('storage list failed')
        finally:
            request_id_ctx.reset(token)
        assert out['request_id'] == 'req-12345678'

    def test_redaction_runs_last_before_rendering(self):
        assert shared_processors()[-1] is redact_secrets
