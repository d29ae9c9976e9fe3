"""Application entrypoint: serve the exercise proxy."""

from __future__ import annotations

import logging
from uuid import uuid4

import uvicorn

from english_practice.infrastructure.llm.config import default_server_config
from english_practice.infrastructure.logging_config import configure_logging
from english_practice.presentation.api.app import create_app

LOGGER = logging.getLogger(__name__)


def main() -> int:
    """Run the proxy HTTP server."""
    configure_logging()
    try:
        server_config = default_server_config()
        app = create_app()
        if not app.state.vendor_client.is_configured:
            LOGGER.warning("event=proxy_vendor_key_missing correlation_id=-")
        uvicorn.run(app, host=server_config.host, port=server_config.port, log_config=None)
    except Exception:
        correlation_id = str(uuid4())
        LOGGER.exception("event=proxy_start_failed correlation_id=%s", correlation_id)
        print(f"Failed to start the exercise proxy. correlation_id={correlation_id}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
