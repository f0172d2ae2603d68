# app/services/settings_store.py
"""
Per-user business settings.

One row per user, created lazily from SETTINGS_DEFAULTS. The numbering
counters are only ever moved by increment_counter().
"""

import copy
import logging
from typing import Any, Dict, Mapping

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine

from app.core.exceptions import StorageError, ValidationError
from app.db.schema import settings
from app.services.common import storage_errors, utcnow

logger = logging.getLogger(__name__)

SETTINGS_DEFAULTS: Dict[str, Any] = {
    "business_name": "Afaq - The Freelancer",
    "business_email": "billing@billflow.com",
    "business_phone": "+1 (555) 123-4567",
    "business_address": "123 Business Ave, Suite 100\nSan Francisco, CA 94102",
    "currency_default": "USD",
    "tax_rate_default": 10,
    "invoice_prefix": "INV-",
    "next_invoice_number": 1001,
    "estimate_prefix": "EST-",
    "next_estimate_number": 101,
    "receipt_prefix": "REC-",
    "next_receipt_number": 501,
    "default_payment_terms_days": 30,
    "email_templates": {
        "invoice": {
            "subject": "Invoice {{invoiceNumber}} from {{businessName}}",
            "body": (
                "Dear {{clientName}},\n\n"
                "Please find attached invoice {{invoiceNumber}} for {{amount}}.\n\n"
                "Payment is due by {{dueDate}}.\n\n"
                "Thank you for your business!\n\n"
                "{{businessName}}"
            ),
        },
        "estimate": {
            "subject": "Estimate {{estimateNumber}} from {{businessName}}",
            "body": (
                "Dear {{clientName}},\n\n"
                "Please find attached estimate {{estimateNumber}} for {{amount}}.\n\n"
                "This estimate is valid until {{validUntil}}.\n\n"
                "Please let us know if you have any questions.\n\n"
                "{{businessName}}"
            ),
        },
        "reminder": {
            "subject": "Reminder: Invoice {{invoiceNumber}} is due",
            "body": (
                "Dear {{clientName}},\n\n"
                "This is a friendly reminder that invoice {{invoiceNumber}} for "
                "{{amount}} is due on {{dueDate}}.\n\n"
                "Please make payment at your earliest convenience.\n\n"
                "Thank you!\n\n"
                "{{businessName}}"
            ),
        },
    },
    "theme": "system",
}

COUNTER_FIELDS = ("next_invoice_number", "next_estimate_number", "next_receipt_number")

EDITABLE_FIELDS = {
    "business_name",
    "business_email",
    "business_phone",
    "business_address",
    "currency_default",
    "tax_rate_default",
    "invoice_prefix",
    "estimate_prefix",
    "receipt_prefix",
    "default_payment_terms_days",
    "email_templates",
    "theme",
}


def _insert_defaults_stmt(conn: Connection, user_id: str):
    now = utcnow()
    values = dict(copy.deepcopy(SETTINGS_DEFAULTS), owner_user_id=user_id,
                  created_at=now, updated_at=now)
    if conn.dialect.name == "postgresql":
        stmt = pg_insert(settings).values(**values)
    else:
        stmt = sqlite_insert(settings).values(**values)
    # a concurrent first access may have created the row already
    return stmt.on_conflict_do_nothing(index_elements=[settings.c.owner_user_id])


def _fetch(conn: Connection, user_id: str):
    stmt = select(settings).where(settings.c.owner_user_id == user_id)
    return conn.execute(stmt).mappings().first()


def get_or_create(conn: Connection, user_id: str) -> Dict[str, Any]:
    """Return the user's settings, creating the default row on first access."""
    with storage_errors("loading settings"):
        row = _fetch(conn, user_id)
        if row is None:
            conn.execute(_insert_defaults_stmt(conn, user_id))
            row = _fetch(conn, user_id)
            logger.info("Created default settings for user %s", user_id)
    if row is None:
        raise StorageError("loading settings failed")
    return dict(row)


def increment_counter(conn: Connection, user_id: str, field: str) -> Dict[str, Any]:
    """
    Atomically add one to a numbering counter and return the updated row.

    The UPDATE takes the row (or database) write lock before the new value
    is read back, so two callers can never observe the same value.
    """
    if field not in COUNTER_FIELDS:
        raise ValidationError(f"Unknown counter {field!r}")

    column = settings.c[field]
    stmt = (
        update(settings)
        .where(settings.c.owner_user_id == user_id)
        .values({field: column + 1, "updated_at": utcnow()})
    )
    with storage_errors("incrementing counter"):
        result = conn.execute(stmt)
        if result.rowcount == 0:
            get_or_create(conn, user_id)
            result = conn.execute(stmt)
        row = _fetch(conn, user_id)
    if result.rowcount != 1 or row is None:
        raise StorageError("incrementing counter failed")
    return dict(row)


def load_settings(engine: Engine, user_id: str) -> Dict[str, Any]:
    with engine.begin() as conn:
        return get_or_create(conn, user_id)


def update_settings(engine: Engine, user_id: str, patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Apply a partial update; counters are not patchable."""
    blocked = set(patch) & set(COUNTER_FIELDS)
    if blocked:
        raise ValidationError(
            "Numbering counters are managed automatically and cannot be edited"
        )
    unknown = set(patch) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown settings fields: {', '.join(sorted(unknown))}")

    with engine.begin() as conn:
        get_or_create(conn, user_id)
        if patch:
            with storage_errors("updating settings"):
                conn.execute(
                    update(settings)
                    .where(settings.c.owner_user_id == user_id)
                    .values({**patch, "updated_at": utcnow()})
                )
        return dict(_fetch(conn, user_id))
