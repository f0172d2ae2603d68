# app/services/reminders.py

import logging
import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine

from app.core.exceptions import NotFoundError
from app.db.schema import invoices, reminder_logs
from app.services.common import storage_errors, utcnow

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def render_template(template: str, context: Mapping[str, Any]) -> str:
    """Fill `{{name}}` placeholders; unknown names are left as written."""
    def _sub(match: "re.Match[str]") -> str:
        key = match.group(1)
        return str(context[key]) if key in context else match.group(0)

    return PLACEHOLDER.sub(_sub, template)


def format_amount(amount: Decimal, currency: str) -> str:
    return f"{currency} {Decimal(amount):,.2f}"


def log_reminder(
    engine: Engine,
    user_id: str,
    invoice_id: int,
    client_id: int,
    type: str,
    channel: str,
    subject: str,
    message: str,
    sent_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Append a reminder to the audit trail and stamp the invoice."""
    sent_at = sent_at or utcnow()
    with engine.begin() as conn:
        owner_check = select(invoices.c.id, invoices.c.client_id).where(
            invoices.c.id == invoice_id,
            invoices.c.owner_user_id == user_id,
        )
        invoice = conn.execute(owner_check).mappings().first()
        if invoice is None or invoice["client_id"] != client_id:
            raise NotFoundError("Invoice not found")

        with storage_errors("logging reminder"):
            log_id = conn.execute(
                insert(reminder_logs).values(
                    owner_user_id=user_id,
                    invoice_id=invoice_id,
                    client_id=client_id,
                    type=type,
                    channel=channel,
                    subject=subject,
                    message=message,
                    sent_at=sent_at,
                )
            ).inserted_primary_key[0]
            conn.execute(
                update(invoices)
                .where(invoices.c.id == invoice_id)
                .values(last_reminder_at=sent_at)
            )
        row = conn.execute(select(reminder_logs).where(reminder_logs.c.id == log_id)).mappings().one()

    logger.info("Logged %s reminder for invoice %s via %s", type, invoice_id, channel)
    return dict(row)


def list_reminders(engine: Engine, user_id: str, invoice_id: Optional[int] = None) -> List[Dict[str, Any]]:
    stmt = select(reminder_logs).where(reminder_logs.c.owner_user_id == user_id)
    if invoice_id is not None:
        stmt = stmt.where(reminder_logs.c.invoice_id == invoice_id)
    stmt = stmt.order_by(reminder_logs.c.sent_at.desc(), reminder_logs.c.id.desc())
    with engine.connect() as conn:
        return [dict(row) for row in conn.execute(stmt).mappings().all()]
