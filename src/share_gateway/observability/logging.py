"""Structured logging for the share gateway.

Every entry goes through structlog, including plain stdlib records from
httpx, uvicorn and the storage/registry modules. The processor chain is:

  1. context: merged contextvars and the current request id
  2. metadata: level, logger name, ISO timestamp, exception text
  3. ``redact_secrets``: masks credentials before anything is rendered
  4. rendering: JSON lines (default) or console output

Share ids, buckets and prefixes are fine to log. PINs, cookie values,
presigned-URL credentials and tokens are not; ``redact_secrets`` masks
them even when a caller passes one by mistake.

Usage::

    from share_gateway.observability.logging import configure_logging, get_logger

    configure_logging()  # once, from create_app
    logger = get_logger(__name__)
    logger.info("share_created", share_id="a1b2c3", pin_protected=True)
"""

from __future__ import annotations

import logging
import os
import re
import sys
from contextvars import ContextVar
from typing import Any

import structlog

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

REDACTED = "[redacted]"

# Compared after lower-casing and mapping '-' to '_'.
_SENSITIVE_KEYS = frozenset({
    "pin",
    "cookie",
    "set_cookie",
    "authorization",
    "x_admin_token",
    "admin_token",
    "cookie_secret",
    "api_token",
    "cf_api_token",
    "secret_access_key",
    "storage_secret_access_key",
    "signature",
    "x_amz_signature",
    "x_amz_credential",
})

_SIGNED_QUERY_RE = re.compile(r"(X-Amz-(?:Signature|Credential)=)[^&\s\"']+", re.IGNORECASE)
_AUTH_COOKIE_RE = re.compile(r"(auth_[A-Za-z0-9_-]+=)[^;\s\"']+")

_configured = False


# ── Processors ──────────────────────────────────────────────────────


def _bind_request_id(logger: Any, method_name: str, event_dict: dict) -> dict:
    rid = request_id_ctx.get()
    if rid is not None:
        event_dict.setdefault("request_id", rid)
    return event_dict


def _scrub(text: str) -> str:
    text = _SIGNED_QUERY_RE.sub(lambda m: m.group(1) + REDACTED, text)
    return _AUTH_COOKIE_RE.sub(lambda m: m.group(1) + REDACTED, text)


def redact_secrets(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Mask sensitive fields and credentials embedded in string values.

    Whole values are replaced for keys such as ``pin`` or ``cookie``.
    Inside any other string (the event text, URLs, exception output),
    ``X-Amz-Signature``/``X-Amz-Credential`` query values and
    ``auth_<id>`` cookie values are masked.
    """
    for key, value in list(event_dict.items()):
        if key.lower().replace("-", "_") in _SENSITIVE_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, str):
            event_dict[key] = _scrub(value)
    return event_dict


def shared_processors() -> list:
    """Processors applied to structlog and stdlib entries alike."""
    return [
        structlog.contextvars.merge_contextvars,
        _bind_request_id,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        redact_secrets,
    ]


# ── Setup ───────────────────────────────────────────────────────────


def configure_logging(*, level: str | None = None, json_output: bool | None = None) -> None:
    """Route structlog and stdlib logging to one stdout handler.

    Args:
        level: Root log level. Defaults to ``LOG_LEVEL`` or INFO.
        json_output: JSON lines when True, console output when False.
            Defaults to ``LOG_FORMAT`` (``json`` unless set otherwise).

    Only the first call has an effect; ``create_app`` may run many times
    in one process.
    """
    global _configured
    if _configured:
        return
    _configured = True

    level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    if json_output is None:
        json_output = os.environ.get("LOG_FORMAT", "json") == "json"

    processors = shared_processors()
    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(),
        ],
    ))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level, logging.INFO))

    # httpx logs full request URLs at INFO, presigned credentials included.
    for name, name_level in (("httpx", logging.WARNING), ("uvicorn.access", logging.WARNING)):
        logging.getLogger(name).setLevel(name_level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
