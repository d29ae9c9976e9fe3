"""Logging bootstrap for the proxy service."""

from __future__ import annotations

import logging


def configure_logging(level: int = logging.INFO) -> None:
    """Configure root logger once for local and CI runs."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    # Request lines are already covered by event=proxy_* records.
    logging.getLogger("httpx").setLevel(logging.WARNING)
