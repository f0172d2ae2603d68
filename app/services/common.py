# app/services/common.py

import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Iterator, Optional

from sqlalchemy.exc import DBAPIError, IntegrityError
from zoneinfo import ZoneInfo

from app.core.config import get_config
from app.core.exceptions import StorageError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def business_today(tz: Optional[str] = None) -> date:
    """Today's date in the configured business timezone."""
    return datetime.now(ZoneInfo(tz or get_config().BUSINESS_TIMEZONE)).date()


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate driver failures into StorageError, keeping detail in the log only."""
    try:
        yield
    except IntegrityError as exc:
        logger.error("Constraint violation during %s: %s", operation, exc.orig)
        raise StorageError(f"{operation} failed") from exc
    except DBAPIError as exc:
        logger.error("Storage failure during %s: %s", operation, exc)
        raise StorageError(f"{operation} failed") from exc
