from __future__ import annotations

import logging

from ..config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    level_name = (level or get_settings().LOG_LEVEL).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)
    # Request lines are noisy next to the long-lived event stream.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
