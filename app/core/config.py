# app/core/config.py
"""Runtime configuration loaded from the environment (.env supported)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from app.core.exceptions import ConfigurationError

load_dotenv()


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    APP_NAME: str
    APP_VERSION: str
    DATABASE_URL: str
    SQL_ECHO: bool
    LOG_LEVEL: str
    BUSINESS_TIMEZONE: str
    SETTLEMENT_MAX_RETRIES: int


def _build_config() -> Config:
    config = Config(
        APP_NAME=os.getenv("APP_NAME", "Invoice Ledger API"),
        APP_VERSION=os.getenv("APP_VERSION", "0.1.0"),
        DATABASE_URL=os.getenv("DATABASE_URL", "sqlite:///db.sqlite"),
        SQL_ECHO=_as_bool(os.getenv("SQL_ECHO")),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
        BUSINESS_TIMEZONE=os.getenv("BUSINESS_TIMEZONE", "America/New_York"),
        SETTLEMENT_MAX_RETRIES=int(os.getenv("SETTLEMENT_MAX_RETRIES", "3")),
    )
    _validate_config(config)
    return config


def _validate_config(config: Config) -> None:
    scheme = urlparse(config.DATABASE_URL).scheme
    if not (scheme.startswith("sqlite") or scheme.startswith("postgresql")):
        raise ConfigurationError(
            "DATABASE_URL must use sqlite:// or postgresql:// style URL."
        )
    if config.LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigurationError(
            "LOG_LEVEL must be one of DEBUG/INFO/WARNING/ERROR/CRITICAL."
        )
    if config.SETTLEMENT_MAX_RETRIES < 1:
        raise ConfigurationError("SETTLEMENT_MAX_RETRIES must be >= 1.")
    try:
        ZoneInfo(config.BUSINESS_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigurationError(
            f"Unknown BUSINESS_TIMEZONE {config.BUSINESS_TIMEZONE!r}"
        )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Return the validated, cached configuration."""
    return _build_config()
