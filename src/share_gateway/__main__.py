"""Run the share gateway under uvicorn.

Usage:
    ADMIN_TOKEN=... R2_ACCOUNT_ID=... STORAGE_ACCESS_KEY_ID=... \
    STORAGE_SECRET_ACCESS_KEY=... python -m share_gateway

HOST and PORT default to 127.0.0.1:8787.
"""

import os

import uvicorn

from .main import create_app
from .settings import GatewaySettings


def main():
    host = os.environ.get("HOST", "127.0.0.1")
    port = int(os.environ.get("PORT", "8787"))
    app = create_app(GatewaySettings.from_env())
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
