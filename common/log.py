"""Logging setup shared by the API process and the simulator CLI."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def setup_logging(level: str = "INFO") -> None:
    global _configured

    if _configured:
        logging.getLogger().setLevel(level)
        return

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler()],
    )
    # paho logs every PINGREQ at DEBUG
    logging.getLogger("paho").setLevel(logging.WARNING)
    _configured = True
