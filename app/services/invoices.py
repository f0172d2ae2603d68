# app/services/invoices.py
"""
Invoice creation, editing and lifecycle actions.

Totals are always recomputed here from the line items; callers never
supply them. Numbers come from the sequence allocator inside the same
transaction that inserts the invoice.
"""

import logging
import secrets
import uuid
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Connection, Engine

from app.core.exceptions import NotFoundError, StateConflictError, ValidationError
from app.db.schema import clients, invoices, payments, receipts, reminder_logs
from app.ledger.lifecycle import (
    InvoiceStatus,
    display_status,
    ensure_editable,
    ensure_voidable,
    initial_status,
    status_after_send,
)
from app.ledger.totals import ZERO, compute_totals
from app.models.invoices import InvoiceCreate, InvoiceUpdate, LineItem
from app.services.common import business_today, storage_errors, utcnow
from app.services.reminders import render_template, format_amount
from app.services.sequence import DocumentType, next_number
from app.services.settings_store import get_or_create

logger = logging.getLogger(__name__)


def _dump_line_items(items: List[LineItem]) -> List[Dict[str, Any]]:
    dumped = []
    for item in items:
        data = item.model_dump(mode="json")
        data["id"] = data.get("id") or uuid.uuid4().hex
        dumped.append(data)
    return dumped


def load_line_items(raw: List[Dict[str, Any]]) -> List[LineItem]:
    return [LineItem.model_validate(item) for item in raw]


def _totals_columns(items: List[LineItem], tax_rate, discount) -> Dict[str, Any]:
    totals = compute_totals(items, tax_rate, discount)
    return {
        "subtotal": totals.subtotal,
        "tax_total": totals.tax_total,
        "discount_total": totals.discount_total,
        "grand_total": totals.grand_total,
    }


def fetch_invoice(conn: Connection, user_id: str, invoice_id: int, for_update: bool = False) -> Dict[str, Any]:
    stmt = select(invoices).where(
        invoices.c.id == invoice_id,
        invoices.c.owner_user_id == user_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    with storage_errors("loading invoice"):
        row = conn.execute(stmt).mappings().first()
    if row is None:
        raise NotFoundError("Invoice not found")
    return dict(row)


def fetch_client(conn: Connection, user_id: str, client_id: int) -> Dict[str, Any]:
    with storage_errors("loading client"):
        row = conn.execute(
            select(clients).where(
                clients.c.id == client_id,
                clients.c.owner_user_id == user_id,
            )
        ).mappings().first()
    if row is None:
        raise NotFoundError("Client not found")
    return dict(row)


def _write_versioned(conn: Connection, current: Dict[str, Any], operation: str, **values: Any) -> None:
    """Update the invoice only if nobody has written it since `current` was read."""
    with storage_errors(operation):
        result = conn.execute(
            update(invoices)
            .where(
                invoices.c.id == current["id"],
                invoices.c.owner_user_id == current["owner_user_id"],
                invoices.c.version == current["version"],
            )
            .values(version=current["version"] + 1, **values)
        )
    if result.rowcount != 1:
        logger.warning("Invoice %s changed while %s", current["invoice_number"], operation)
        raise StateConflictError("Invoice was changed by another request, please retry")


def with_display_status(invoice: Dict[str, Any], today: Optional[date] = None) -> Dict[str, Any]:
    """Copy of the invoice with Overdue applied for presentation."""
    today = today or business_today()
    shown = dict(invoice)
    shown["status"] = display_status(
        invoice["status"], invoice["due_date"], invoice["balance_due"], today
    ).value
    return shown


def get_invoice(engine: Engine, user_id: str, invoice_id: int) -> Dict[str, Any]:
    with engine.connect() as conn:
        return fetch_invoice(conn, user_id, invoice_id)


def list_invoices(
    engine: Engine,
    user_id: str,
    status: Optional[str] = None,
    client_id: Optional[int] = None,
    today: Optional[date] = None,
) -> List[Dict[str, Any]]:
    """Invoices newest first; `status` filters on the displayed status."""
    if status is not None:
        try:
            InvoiceStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown invoice status {status!r}")

    stmt = select(invoices).where(invoices.c.owner_user_id == user_id)
    if client_id is not None:
        stmt = stmt.where(invoices.c.client_id == client_id)
    stmt = stmt.order_by(invoices.c.created_at.desc(), invoices.c.id.desc())

    with engine.connect() as conn:
        rows = conn.execute(stmt).mappings().all()

    shown = [with_display_status(dict(row), today) for row in rows]
    if status is not None:
        shown = [inv for inv in shown if inv["status"] == status]
    return shown


def create_invoice(engine: Engine, user_id: str, data: InvoiceCreate) -> Dict[str, Any]:
    with engine.begin() as conn:
        fetch_client(conn, user_id, data.client_id)
        prefs = get_or_create(conn, user_id)

        tax_rate = data.tax_rate if data.tax_rate is not None else prefs["tax_rate_default"]
        currency = (data.currency or prefs["currency_default"]).upper()
        due_date = data.due_date or (
            data.issue_date + timedelta(days=prefs["default_payment_terms_days"])
        )
        if due_date < data.issue_date:
            raise ValidationError("Due date cannot be before the issue date")

        totals = _totals_columns(data.line_items, tax_rate, data.discount)
        status = initial_status(data.as_draft)
        now = utcnow()

        with storage_errors("creating invoice"):
            invoice_number = next_number(conn, user_id, DocumentType.INVOICE)
            result = conn.execute(
                insert(invoices).values(
                    owner_user_id=user_id,
                    client_id=data.client_id,
                    invoice_number=invoice_number,
                    status=status.value,
                    issue_date=data.issue_date,
                    due_date=due_date,
                    currency=currency,
                    tax_rate=tax_rate,
                    discount=data.discount,
                    line_items=_dump_line_items(data.line_items),
                    paid_total=ZERO,
                    balance_due=totals["grand_total"],
                    notes=data.notes,
                    terms=data.terms,
                    sent_at=None if data.as_draft else now,
                    version=1,
                    created_at=now,
                    updated_at=now,
                    **totals,
                )
            )
            invoice_id = result.inserted_primary_key[0]

        logger.info("Created invoice %s (%s) for user %s", invoice_number, status.value, user_id)
        return fetch_invoice(conn, user_id, invoice_id)


def update_invoice(engine: Engine, user_id: str, invoice_id: int, data: InvoiceUpdate) -> Dict[str, Any]:
    """Edit an unpaid invoice. The number and the client never change."""
    patch = data.model_dump(exclude_unset=True)
    with engine.begin() as conn:
        current = fetch_invoice(conn, user_id, invoice_id, for_update=True)
        ensure_editable(current["status"], current["paid_total"])

        values: Dict[str, Any] = {}
        for field in ("issue_date", "due_date", "notes", "terms"):
            if field in patch:
                values[field] = patch[field]

        issue_date = values.get("issue_date") or current["issue_date"]
        due_date = values.get("due_date") or current["due_date"]
        if due_date < issue_date:
            raise ValidationError("Due date cannot be before the issue date")

        items = data.line_items if data.line_items is not None else load_line_items(current["line_items"])
        tax_rate = data.tax_rate if data.tax_rate is not None else current["tax_rate"]
        discount = patch["discount"] if "discount" in patch else current["discount"]

        totals = _totals_columns(items, tax_rate, discount)
        values.update(totals)
        values.update(
            tax_rate=tax_rate,
            discount=discount,
            line_items=_dump_line_items(items),
            balance_due=totals["grand_total"],
            updated_at=utcnow(),
        )

        _write_versioned(conn, current, "updating invoice", **values)
        return fetch_invoice(conn, user_id, invoice_id)


def send_invoice(
    engine: Engine,
    user_id: str,
    invoice_id: int,
    channel: str = "email",
    subject: Optional[str] = None,
    message: Optional[str] = None,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Mark an invoice as sent and record the outgoing message.

    The first send moves Draft to Sent and logs a "First" reminder rendered
    from the invoice template; later sends log "Custom" reminders from the
    reminder template.
    """
    with engine.begin() as conn:
        current = fetch_invoice(conn, user_id, invoice_id, for_update=True)
        new_status = status_after_send(current["status"])
        client = fetch_client(conn, user_id, current["client_id"])
        prefs = get_or_create(conn, user_id)

        first_send = current["sent_at"] is None
        template = prefs["email_templates"].get("invoice" if first_send else "reminder", {})
        context = {
            "invoiceNumber": current["invoice_number"],
            "businessName": prefs["business_name"] or "",
            "clientName": client["name"],
            "amount": format_amount(current["balance_due"], current["currency"]),
            "dueDate": current["due_date"].isoformat(),
        }
        now = utcnow()

        _write_versioned(
            conn, current, "sending invoice",
            status=new_status.value,
            sent_at=current["sent_at"] or now,
            last_reminder_at=now,
            updated_at=now,
        )
        with storage_errors("sending invoice"):
            log_id = conn.execute(
                insert(reminder_logs).values(
                    owner_user_id=user_id,
                    invoice_id=invoice_id,
                    client_id=current["client_id"],
                    type="First" if first_send else "Custom",
                    channel=channel,
                    subject=subject or render_template(template.get("subject", ""), context),
                    message=message or render_template(template.get("body", ""), context),
                    sent_at=now,
                )
            ).inserted_primary_key[0]

        log = conn.execute(select(reminder_logs).where(reminder_logs.c.id == log_id)).mappings().one()
        logger.info("Sent invoice %s to %s via %s", current["invoice_number"], client["email"], channel)
        return fetch_invoice(conn, user_id, invoice_id), dict(log)


def void_invoice(engine: Engine, user_id: str, invoice_id: int) -> Dict[str, Any]:
    with engine.begin() as conn:
        current = fetch_invoice(conn, user_id, invoice_id, for_update=True)
        new_status = ensure_voidable(current["status"], current["paid_total"])
        _write_versioned(conn, current, "voiding invoice", status=new_status.value, updated_at=utcnow())
        logger.info("Voided invoice %s", current["invoice_number"])
        return fetch_invoice(conn, user_id, invoice_id)


def ensure_payment_link(engine: Engine, user_id: str, invoice_id: int) -> Dict[str, Any]:
    """Give the invoice a public payment token if it has none yet."""
    with engine.begin() as conn:
        current = fetch_invoice(conn, user_id, invoice_id, for_update=True)
        if current["payment_link_token"]:
            return current
        _write_versioned(
            conn, current, "creating payment link",
            payment_link_token=secrets.token_urlsafe(24), updated_at=utcnow(),
        )
        return fetch_invoice(conn, user_id, invoice_id)


def get_invoice_by_token(engine: Engine, token: str) -> Dict[str, Any]:
    """Public view of an invoice reached through its payment link."""
    stmt = (
        select(invoices, clients.c.name.label("client_name"))
        .select_from(invoices.join(clients))
        .where(invoices.c.payment_link_token == token)
    )
    with engine.begin() as conn:
        row = conn.execute(stmt).mappings().first()
        if row is None:
            raise NotFoundError("Invoice not found")
        prefs = get_or_create(conn, row["owner_user_id"])

    shown = with_display_status(dict(row))
    shown["business_name"] = prefs["business_name"]
    return shown


def delete_invoice(engine: Engine, user_id: str, invoice_id: int) -> None:
    """Delete an invoice with its receipts, payments and reminder logs."""
    with engine.begin() as conn:
        current = fetch_invoice(conn, user_id, invoice_id)
        with storage_errors("deleting invoice"):
            removed_receipts = conn.execute(
                delete(receipts).where(receipts.c.owner_user_id == user_id, receipts.c.invoice_id == invoice_id)
            ).rowcount
            removed_payments = conn.execute(
                delete(payments).where(payments.c.owner_user_id == user_id, payments.c.invoice_id == invoice_id)
            ).rowcount
            conn.execute(
                delete(reminder_logs).where(
                    reminder_logs.c.owner_user_id == user_id,
                    reminder_logs.c.invoice_id == invoice_id,
                )
            )
            conn.execute(delete(invoices).where(invoices.c.id == invoice_id))

    logger.info(
        "Deleted invoice %s with %s payments and %s receipts",
        current["invoice_number"], removed_payments, removed_receipts,
    )
