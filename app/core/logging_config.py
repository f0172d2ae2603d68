# app/core/logging_config.py

import logging

from app.core.config import get_config

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def configure_logging() -> None:
    """Configure root logging once for the API and scripts."""
    config = get_config()
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format=LOG_FORMAT,
    )
    if not config.SQL_ECHO:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
