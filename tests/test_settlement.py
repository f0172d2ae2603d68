from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.core.exceptions import (
    AmountExceedsBalance,
    InvoiceAlreadySettled,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from app.db.schema import payments, receipts
from app.services.invoices import get_invoice, void_invoice
from app.services.payments import apply_payment, list_payments, list_receipts
from app.services.settings_store import load_settings

from tests.conftest import OTHER_USER_ID, USER_ID

PAID_ON = date(2026, 1, 20)


def _pay(engine, invoice, amount, user_id=USER_ID, client_id=None, method="Bank Transfer"):
    return apply_payment(
        engine,
        user_id,
        invoice_id=invoice["id"],
        client_id=client_id or invoice["client_id"],
        amount=amount,
        method=method,
        paid_on=PAID_ON,
        reference="TX-1",
    )


def _count(engine, table):
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(table)).scalar_one()


def test_full_payment_marks_invoice_paid(engine, make_invoice):
    invoice = make_invoice()
    assert invoice["grand_total"] == Decimal("110")

    settlement = _pay(engine, invoice, Decimal("110"))

    assert settlement.invoice["status"] == "Paid"
    assert settlement.invoice["balance_due"] == Decimal("0")
    assert settlement.invoice["paid_total"] == Decimal("110")
    assert settlement.receipt["amount"] == Decimal("110")
    assert settlement.receipt["currency"] == "USD"
    assert settlement.receipt["payment_id"] == settlement.payment["id"]
    assert settlement.receipt["receipt_number"] == "REC-501"
    assert settlement.settings["next_receipt_number"] == 502
    assert len(list_receipts(engine, USER_ID)) == 1


def test_partial_payment_leaves_balance(engine, make_invoice):
    invoice = make_invoice()
    settlement = _pay(engine, invoice, Decimal("50"))

    assert settlement.invoice["balance_due"] == Decimal("60")
    assert settlement.invoice["status"] == "Partially Paid"

    second = _pay(engine, invoice, Decimal("60"))
    assert second.invoice["status"] == "Paid"
    assert second.invoice["balance_due"] == Decimal("0")
    assert second.receipt["receipt_number"] == "REC-502"


def test_balance_invariant_holds_after_each_payment(engine, make_invoice):
    invoice = make_invoice()
    for amount in ("10.01", "33.33", "0.66", "66"):
        result = _pay(engine, invoice, Decimal(amount)).invoice
        expected = max(Decimal("0"), result["grand_total"] - result["paid_total"])
        assert result["balance_due"] == expected
        assert Decimal("0") <= result["paid_total"] <= result["grand_total"]


def test_overpayment_is_rejected_without_changes(engine, make_invoice):
    invoice = make_invoice()
    with pytest.raises(AmountExceedsBalance) as exc:
        _pay(engine, invoice, Decimal("110.01"))
    assert str(exc.value) == "Amount exceeds balance due"
    assert isinstance(exc.value, StateConflictError)

    unchanged = get_invoice(engine, USER_ID, invoice["id"])
    assert unchanged["paid_total"] == Decimal("0")
    assert unchanged["balance_due"] == Decimal("110")
    assert unchanged["status"] == "Sent"
    assert _count(engine, payments) == 0
    assert _count(engine, receipts) == 0


def test_paying_a_settled_invoice_fails(engine, make_invoice):
    invoice = make_invoice()
    _pay(engine, invoice, Decimal("110"))
    counter = load_settings(engine, USER_ID)["next_receipt_number"]

    with pytest.raises(InvoiceAlreadySettled):
        _pay(engine, invoice, Decimal("1"))

    assert _count(engine, payments) == 1
    assert _count(engine, receipts) == 1
    assert load_settings(engine, USER_ID)["next_receipt_number"] == counter
    assert get_invoice(engine, USER_ID, invoice["id"])["paid_total"] == Decimal("110")


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), "NaN", "Infinity", Decimal("1.005")])
def test_invalid_amounts_are_rejected(engine, make_invoice, amount):
    invoice = make_invoice()
    with pytest.raises(ValidationError):
        _pay(engine, invoice, amount)
    assert _count(engine, payments) == 0


def test_missing_method_is_rejected(engine, make_invoice):
    invoice = make_invoice()
    with pytest.raises(ValidationError):
        _pay(engine, invoice, Decimal("10"), method="  ")


def test_client_mismatch_and_foreign_owner_look_like_missing(engine, make_invoice):
    invoice = make_invoice()
    with pytest.raises(NotFoundError):
        _pay(engine, invoice, Decimal("10"), client_id=invoice["client_id"] + 100)
    with pytest.raises(NotFoundError):
        _pay(engine, invoice, Decimal("10"), user_id=OTHER_USER_ID)


def test_void_invoice_cannot_be_paid(engine, make_invoice):
    invoice = make_invoice()
    void_invoice(engine, USER_ID, invoice["id"])
    with pytest.raises(StateConflictError):
        _pay(engine, invoice, Decimal("10"))


def test_draft_invoice_payment_moves_to_partially_paid(engine, make_invoice):
    invoice = make_invoice(as_draft=True)
    settlement = _pay(engine, invoice, Decimal("10"))
    assert settlement.invoice["status"] == "Partially Paid"


def test_payments_are_listed_per_invoice(engine, make_invoice):
    first = make_invoice()
    second = make_invoice()
    _pay(engine, first, Decimal("10"))
    _pay(engine, second, Decimal("20"))
    _pay(engine, second, Decimal("30"))

    assert len(list_payments(engine, USER_ID)) == 3
    assert [p["amount"] for p in list_payments(engine, USER_ID, invoice_id=second["id"])] == [
        Decimal("30"),
        Decimal("20"),
    ]
    assert list_payments(engine, OTHER_USER_ID) == []


def test_concurrent_payments_cannot_overshoot_balance(engine, make_invoice):
    invoice = make_invoice()

    def attempt(_):
        try:
            _pay(engine, invoice, Decimal("80"))
            return "ok"
        except AmountExceedsBalance:
            return "rejected"

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = sorted(pool.map(attempt, range(2)))

    assert outcomes == ["ok", "rejected"]
    final = get_invoice(engine, USER_ID, invoice["id"])
    assert final["paid_total"] == Decimal("80")
    assert final["balance_due"] == Decimal("30")
    assert _count(engine, payments) == 1
    assert _count(engine, receipts) == 1
