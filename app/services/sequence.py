# app/services/sequence.py

import logging
from enum import Enum

from sqlalchemy.engine import Connection

from app.services.settings_store import increment_counter

logger = logging.getLogger(__name__)


class DocumentType(str, Enum):
    INVOICE = "invoice"
    ESTIMATE = "estimate"
    RECEIPT = "receipt"


def next_number(conn: Connection, user_id: str, document_type: DocumentType) -> str:
    """
    Allocate the next `{prefix}{counter}` number for a document type.

    Runs on the caller's connection so the allocation commits or rolls back
    together with the document that uses it.
    """
    kind = DocumentType(document_type).value
    row = increment_counter(conn, user_id, f"next_{kind}_number")
    number = f"{row[f'{kind}_prefix']}{row[f'next_{kind}_number'] - 1}"
    logger.debug("Allocated %s number %s for user %s", kind, number, user_id)
    return number
