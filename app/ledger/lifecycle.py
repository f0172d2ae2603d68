# app/ledger/lifecycle.py
"""Invoice status rules. Overdue is derived from the due date, never stored."""

from datetime import date
from decimal import Decimal
from enum import Enum

from app.core.exceptions import StateConflictError


class InvoiceStatus(str, Enum):
    DRAFT = "Draft"
    SENT = "Sent"
    PARTIALLY_PAID = "Partially Paid"
    PAID = "Paid"
    OVERDUE = "Overdue"
    VOID = "Void"


TERMINAL = {InvoiceStatus.PAID, InvoiceStatus.VOID}
NEVER_OVERDUE = {InvoiceStatus.VOID}
VOIDABLE = {InvoiceStatus.DRAFT, InvoiceStatus.SENT}
SENDABLE = {InvoiceStatus.DRAFT, InvoiceStatus.SENT, InvoiceStatus.PARTIALLY_PAID}


def initial_status(as_draft: bool) -> InvoiceStatus:
    return InvoiceStatus.DRAFT if as_draft else InvoiceStatus.SENT


def is_overdue(status: str, due_date: date, balance_due: Decimal, today: date) -> bool:
    return (
        InvoiceStatus(status) not in NEVER_OVERDUE
        and due_date < today
        and balance_due > 0
    )


def display_status(status: str, due_date: date, balance_due: Decimal, today: date) -> InvoiceStatus:
    if is_overdue(status, due_date, balance_due, today):
        return InvoiceStatus.OVERDUE
    return InvoiceStatus(status)


def status_after_payment(current: str, paid_total: Decimal, balance_due: Decimal) -> InvoiceStatus:
    if balance_due == 0:
        return InvoiceStatus.PAID
    if paid_total > 0:
        return InvoiceStatus.PARTIALLY_PAID
    return InvoiceStatus(current)


def status_after_send(current: str) -> InvoiceStatus:
    status = InvoiceStatus(current)
    if status not in SENDABLE:
        raise StateConflictError(f"Cannot send an invoice that is {status.value}")
    if status is InvoiceStatus.DRAFT:
        return InvoiceStatus.SENT
    return status


def ensure_voidable(current: str, paid_total: Decimal) -> InvoiceStatus:
    status = InvoiceStatus(current)
    if status not in VOIDABLE or paid_total > 0:
        raise StateConflictError("Only unpaid Draft or Sent invoices can be voided")
    return InvoiceStatus.VOID


def ensure_editable(current: str, paid_total: Decimal) -> None:
    status = InvoiceStatus(current)
    if status in TERMINAL or paid_total > 0:
        raise StateConflictError("Invoices can only be edited while unpaid")


def ensure_payable(current: str) -> None:
    if InvoiceStatus(current) is InvoiceStatus.VOID:
        raise StateConflictError("Cannot record a payment against a void invoice")
