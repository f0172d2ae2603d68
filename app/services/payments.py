# app/services/payments.py
"""
Payment settlement.

Applying a payment writes the payment, the invoice's new paid total,
balance and status, and a receipt with a freshly allocated number, all in
one transaction. The invoice update is guarded by its version column: if
another settlement committed in between, the whole unit of work is run
again and re-validated against the new balance.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection, Engine

from app.core.config import get_config
from app.core.exceptions import (
    AmountExceedsBalance,
    InvoiceAlreadySettled,
    NotFoundError,
    StorageError,
    ValidationError,
)
from app.db.schema import invoices, payments, receipts
from app.ledger.lifecycle import ensure_payable, status_after_payment
from app.ledger.totals import ZERO, balance_due, money, to_decimal
from app.services.common import storage_errors, utcnow
from app.services.invoices import fetch_invoice
from app.services.sequence import DocumentType, next_number
from app.services.settings_store import get_or_create

logger = logging.getLogger(__name__)


class _StaleInvoice(Exception):
    """The invoice changed between read and write."""


@dataclass
class Settlement:
    payment: Dict[str, Any]
    invoice: Dict[str, Any]
    receipt: Dict[str, Any]
    settings: Dict[str, Any]


def _validate_amount(amount) -> Decimal:
    value = to_decimal(amount, "amount")
    if value <= ZERO:
        raise ValidationError("Invalid payment amount")
    if value != money(value):
        raise ValidationError("Payment amount cannot have more than two decimal places")
    return money(value)


def _settle(
    conn: Connection,
    user_id: str,
    invoice_id: int,
    client_id: int,
    amount: Decimal,
    method: str,
    paid_on: date,
    reference: Optional[str],
    note: Optional[str],
) -> Settlement:
    invoice = fetch_invoice(conn, user_id, invoice_id, for_update=True)
    if invoice["client_id"] != client_id:
        raise NotFoundError("Invoice not found")

    ensure_payable(invoice["status"])
    outstanding = money(invoice["balance_due"])
    if outstanding <= ZERO:
        raise InvoiceAlreadySettled()
    if amount > outstanding:
        raise AmountExceedsBalance()

    new_paid = money(invoice["paid_total"]) + amount
    new_balance = balance_due(invoice["grand_total"], new_paid)
    new_status = status_after_payment(invoice["status"], new_paid, new_balance)
    now = utcnow()

    with storage_errors("applying payment"):
        result = conn.execute(
            update(invoices)
            .where(
                invoices.c.id == invoice_id,
                invoices.c.version == invoice["version"],
            )
            .values(
                paid_total=new_paid,
                balance_due=new_balance,
                status=new_status.value,
                updated_at=now,
                version=invoice["version"] + 1,
            )
        )
        if result.rowcount != 1:
            raise _StaleInvoice()

        payment_id = conn.execute(
            insert(payments).values(
                owner_user_id=user_id,
                invoice_id=invoice_id,
                client_id=client_id,
                amount=amount,
                method=method,
                date=paid_on,
                reference=reference or None,
                note=note or None,
                created_at=now,
            )
        ).inserted_primary_key[0]

        receipt_number = next_number(conn, user_id, DocumentType.RECEIPT)
        receipt_id = conn.execute(
            insert(receipts).values(
                owner_user_id=user_id,
                receipt_number=receipt_number,
                invoice_id=invoice_id,
                payment_id=payment_id,
                client_id=client_id,
                issued_at=paid_on,
                amount=amount,
                currency=invoice["currency"],
                created_at=now,
            )
        ).inserted_primary_key[0]

        payment = conn.execute(select(payments).where(payments.c.id == payment_id)).mappings().one()
        receipt = conn.execute(select(receipts).where(receipts.c.id == receipt_id)).mappings().one()

    logger.info(
        "Applied payment of %s to invoice %s: balance %s, status %s, receipt %s",
        amount, invoice["invoice_number"], new_balance, new_status.value, receipt_number,
    )
    return Settlement(
        payment=dict(payment),
        invoice=fetch_invoice(conn, user_id, invoice_id),
        receipt=dict(receipt),
        settings=get_or_create(conn, user_id),
    )


def apply_payment(
    engine: Engine,
    user_id: str,
    invoice_id: int,
    client_id: int,
    amount,
    method: str,
    paid_on: date,
    reference: Optional[str] = None,
    note: Optional[str] = None,
    max_attempts: Optional[int] = None,
) -> Settlement:
    """
    Record a payment against an invoice and issue its receipt.

    Raises NotFoundError, ValidationError, InvoiceAlreadySettled,
    AmountExceedsBalance or StorageError. Nothing is written unless the
    whole settlement succeeds.
    """
    value = _validate_amount(amount)
    if not method or not method.strip():
        raise ValidationError("Payment method is required")
    if paid_on is None:
        raise ValidationError("Payment date is required")

    attempts = max_attempts or get_config().SETTLEMENT_MAX_RETRIES
    for attempt in range(1, attempts + 1):
        try:
            with engine.begin() as conn:
                return _settle(
                    conn, user_id, invoice_id, client_id, value,
                    method.strip(), paid_on, reference, note,
                )
        except _StaleInvoice:
            logger.warning(
                "Invoice %s changed during settlement (attempt %s/%s), retrying",
                invoice_id, attempt, attempts,
            )

    raise StorageError("Could not apply payment, please retry")


def list_payments(engine: Engine, user_id: str, invoice_id: Optional[int] = None) -> List[Dict[str, Any]]:
    stmt = select(payments).where(payments.c.owner_user_id == user_id)
    if invoice_id is not None:
        stmt = stmt.where(payments.c.invoice_id == invoice_id)
    stmt = stmt.order_by(payments.c.created_at.desc(), payments.c.id.desc())
    with engine.connect() as conn:
        return [dict(row) for row in conn.execute(stmt).mappings().all()]


def list_receipts(engine: Engine, user_id: str, invoice_id: Optional[int] = None) -> List[Dict[str, Any]]:
    stmt = select(receipts).where(receipts.c.owner_user_id == user_id)
    if invoice_id is not None:
        stmt = stmt.where(receipts.c.invoice_id == invoice_id)
    stmt = stmt.order_by(receipts.c.created_at.desc(), receipts.c.id.desc())
    with engine.connect() as conn:
        return [dict(row) for row in conn.execute(stmt).mappings().all()]


def get_receipt(engine: Engine, user_id: str, receipt_id: int) -> Dict[str, Any]:
    stmt = select(receipts).where(
        receipts.c.id == receipt_id,
        receipts.c.owner_user_id == user_id,
    )
    with engine.connect() as conn:
        row = conn.execute(stmt).mappings().first()
    if row is None:
        raise NotFoundError("Receipt not found")
    return dict(row)
