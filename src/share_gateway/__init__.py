"""Time-limited, optionally PIN-protected folder shares over S3-compatible storage."""

from .main import create_app
from .settings import GatewaySettings

__all__ = ["create_app", "GatewaySettings"]
