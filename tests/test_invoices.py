from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.core.exceptions import NotFoundError, StateConflictError, StorageError, ValidationError
from app.db.engine import build_engine
from app.db.schema import clients, invoices, payments, receipts, reminder_logs
from app.ledger import lifecycle
from app.models.invoices import InvoiceCreate, InvoiceUpdate, LineItem
from app.services.clients import delete_client
from app.services.invoices import (
    create_invoice,
    delete_invoice,
    ensure_payment_link,
    get_invoice,
    get_invoice_by_token,
    list_invoices,
    send_invoice,
    update_invoice,
    void_invoice,
)
from app.services.payments import apply_payment
from app.services.reminders import list_reminders, log_reminder, render_template
from app.services.settings_store import update_settings

from tests.conftest import OTHER_USER_ID, USER_ID


def _count(engine, table):
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(table)).scalar_one()


def test_create_assigns_number_and_computes_totals(engine, make_invoice):
    first = make_invoice()
    second = make_invoice()

    assert first["invoice_number"] == "INV-1001"
    assert second["invoice_number"] == "INV-1002"
    assert first["subtotal"] == Decimal("100")
    assert first["tax_total"] == Decimal("10")
    assert first["grand_total"] == Decimal("110")
    assert first["paid_total"] == Decimal("0")
    assert first["balance_due"] == Decimal("110")
    assert first["status"] == "Sent"
    assert first["sent_at"] is not None
    assert all(item["id"] for item in first["line_items"])


def test_create_as_draft_has_no_sent_at(make_invoice):
    invoice = make_invoice(as_draft=True)
    assert invoice["status"] == "Draft"
    assert invoice["sent_at"] is None


def test_create_uses_settings_defaults(engine, client_row):
    update_settings(engine, USER_ID, {"default_payment_terms_days": 14, "tax_rate_default": Decimal("20")})
    invoice = create_invoice(
        engine,
        USER_ID,
        InvoiceCreate(
            client_id=client_row["id"],
            issue_date=date(2026, 4, 1),
            line_items=[LineItem(name="Design", quantity=1, unit_price=Decimal("200"))],
        ),
    )
    assert invoice["due_date"] == date(2026, 4, 15)
    assert invoice["currency"] == "USD"
    assert invoice["tax_total"] == Decimal("40")
    assert invoice["grand_total"] == Decimal("240")


def test_create_rejects_unknown_client_and_bad_dates(engine, client_row, make_invoice):
    with pytest.raises(NotFoundError):
        make_invoice(client_id=client_row["id"] + 1)
    with pytest.raises(NotFoundError):
        make_invoice(user_id=OTHER_USER_ID)
    with pytest.raises(ValidationError):
        make_invoice(issue_date=date(2026, 2, 1), due_date=date(2026, 1, 1))
    assert _count(engine, invoices) == 0


def test_failed_create_does_not_consume_a_number(engine, make_invoice):
    with pytest.raises(ValidationError):
        make_invoice(issue_date=date(2026, 2, 1), due_date=date(2026, 1, 1))
    assert make_invoice()["invoice_number"] == "INV-1001"


def test_update_recomputes_totals_and_keeps_number(engine, make_invoice):
    invoice = make_invoice()
    updated = update_invoice(
        engine,
        USER_ID,
        invoice["id"],
        InvoiceUpdate(
            line_items=[
                LineItem(name="Consulting", quantity=3, unit_price=Decimal("50"), taxable=True),
                LineItem(name="Travel", quantity=1, unit_price=Decimal("50"), taxable=False),
            ],
            discount=Decimal("10"),
        ),
    )
    assert updated["invoice_number"] == invoice["invoice_number"]
    assert updated["subtotal"] == Decimal("200")
    assert updated["tax_total"] == Decimal("15")
    assert updated["discount_total"] == Decimal("20")
    assert updated["grand_total"] == Decimal("195")
    assert updated["balance_due"] == Decimal("195")


def test_update_can_clear_discount(engine, make_invoice):
    invoice = make_invoice(discount=Decimal("10"))
    assert invoice["grand_total"] == Decimal("100")
    updated = update_invoice(engine, USER_ID, invoice["id"], InvoiceUpdate(discount=None))
    assert updated["discount"] is None
    assert updated["grand_total"] == Decimal("110")


def test_update_blocked_once_paid(engine, make_invoice):
    invoice = make_invoice()
    apply_payment(engine, USER_ID, invoice["id"], invoice["client_id"], Decimal("10"), "Cash", date(2026, 1, 9))
    with pytest.raises(StateConflictError):
        update_invoice(engine, USER_ID, invoice["id"], InvoiceUpdate(notes="late edit"))


def test_send_draft_logs_first_reminder(engine, make_invoice):
    invoice = make_invoice(as_draft=True)
    sent, log = send_invoice(engine, USER_ID, invoice["id"])

    assert sent["status"] == "Sent"
    assert sent["sent_at"] is not None
    assert sent["last_reminder_at"] == log["sent_at"]
    assert log["type"] == "First"
    assert log["subject"] == "Invoice INV-1001 from Afaq - The Freelancer"
    assert "Dear Acme Retail" in log["message"]
    assert "USD 110.00" in log["message"]

    again, second_log = send_invoice(engine, USER_ID, invoice["id"])
    assert again["sent_at"] == sent["sent_at"]
    assert second_log["type"] == "Custom"
    assert second_log["subject"] == "Reminder: Invoice INV-1001 is due"
    assert len(list_reminders(engine, USER_ID, invoice_id=invoice["id"])) == 2


def test_send_rejects_paid_invoice(engine, make_invoice):
    invoice = make_invoice()
    apply_payment(engine, USER_ID, invoice["id"], invoice["client_id"], Decimal("110"), "Cash", date(2026, 1, 9))
    with pytest.raises(StateConflictError):
        send_invoice(engine, USER_ID, invoice["id"])


def test_void_is_terminal_and_keeps_totals(engine, make_invoice):
    invoice = make_invoice()
    voided = void_invoice(engine, USER_ID, invoice["id"])
    assert voided["status"] == "Void"
    assert voided["grand_total"] == invoice["grand_total"]
    with pytest.raises(StateConflictError):
        void_invoice(engine, USER_ID, invoice["id"])
    with pytest.raises(StateConflictError):
        update_invoice(engine, USER_ID, invoice["id"], InvoiceUpdate(notes="x"))


def test_overdue_is_shown_but_not_stored(engine, make_invoice):
    invoice = make_invoice(issue_date=date(2026, 1, 1), due_date=date(2026, 1, 31))
    today = date(2026, 2, 15)

    overdue = list_invoices(engine, USER_ID, status="Overdue", today=today)
    assert [row["id"] for row in overdue] == [invoice["id"]]
    assert get_invoice(engine, USER_ID, invoice["id"])["status"] == "Sent"
    assert list_invoices(engine, USER_ID, status="Sent", today=today) == []
    assert len(list_invoices(engine, USER_ID, status="Sent", today=date(2026, 1, 10))) == 1

    with pytest.raises(ValidationError):
        list_invoices(engine, USER_ID, status="Lost")


def test_payment_link_is_stable_and_public(engine, make_invoice):
    invoice = make_invoice()
    linked = ensure_payment_link(engine, USER_ID, invoice["id"])
    token = linked["payment_link_token"]
    assert token
    assert ensure_payment_link(engine, USER_ID, invoice["id"])["payment_link_token"] == token

    public = get_invoice_by_token(engine, token)
    assert public["invoice_number"] == "INV-1001"
    assert public["client_name"] == "Acme Retail"
    assert public["business_name"] == "Afaq - The Freelancer"
    with pytest.raises(NotFoundError):
        get_invoice_by_token(engine, "missing")


def test_delete_invoice_cascades(engine, make_invoice):
    invoice = make_invoice()
    keep = make_invoice()
    apply_payment(engine, USER_ID, invoice["id"], invoice["client_id"], Decimal("10"), "Cash", date(2026, 1, 9))
    apply_payment(engine, USER_ID, keep["id"], keep["client_id"], Decimal("10"), "Cash", date(2026, 1, 9))
    send_invoice(engine, USER_ID, invoice["id"])

    delete_invoice(engine, USER_ID, invoice["id"])

    assert _count(engine, invoices) == 1
    assert _count(engine, payments) == 1
    assert _count(engine, receipts) == 1
    assert _count(engine, reminder_logs) == 0
    with pytest.raises(NotFoundError):
        get_invoice(engine, USER_ID, invoice["id"])


def test_delete_client_cascades(engine, client_row, make_invoice):
    invoice = make_invoice()
    apply_payment(engine, USER_ID, invoice["id"], invoice["client_id"], Decimal("110"), "Cash", date(2026, 1, 9))
    log_reminder(
        engine, USER_ID, invoice["id"], client_row["id"],
        type="Custom", channel="email", subject="Thanks", message="Received",
    )

    delete_client(engine, USER_ID, client_row["id"])

    for table in (clients, invoices, payments, receipts, reminder_logs):
        assert _count(engine, table) == 0


def test_delete_client_of_other_user_is_not_found(engine, client_row):
    with pytest.raises(NotFoundError):
        delete_client(engine, OTHER_USER_ID, client_row["id"])
    assert _count(engine, clients) == 1


def test_reminder_updates_last_reminder_at(engine, make_invoice):
    invoice = make_invoice()
    sent_at = invoice["created_at"] + timedelta(days=3)
    log = log_reminder(
        engine, USER_ID, invoice["id"], invoice["client_id"],
        type="Custom", channel="sms", subject="Due soon", message="Please pay", sent_at=sent_at,
    )
    assert log["sent_at"] == sent_at
    assert get_invoice(engine, USER_ID, invoice["id"])["last_reminder_at"] == sent_at
    with pytest.raises(NotFoundError):
        log_reminder(
            engine, OTHER_USER_ID, invoice["id"], invoice["client_id"],
            type="Custom", channel="sms", subject="x", message="y",
        )


def test_render_template_keeps_unknown_placeholders():
    rendered = render_template("Hi {{clientName}}, see {{ invoiceNumber }} {{missing}}", {
        "clientName": "Ada",
        "invoiceNumber": "INV-7",
    })
    assert rendered == "Hi Ada, see INV-7 {{missing}}"


def _pay_before(engine, invoice, check):
    """Wrap a status check so a payment commits after the invoice was read."""

    def wrapped(*args):
        apply_payment(engine, USER_ID, invoice["id"], invoice["client_id"], Decimal("50"), "Cash", date(2026, 1, 9))
        return check(*args)

    return wrapped


def _assert_payment_kept(engine, invoice):
    current = get_invoice(engine, USER_ID, invoice["id"])
    assert current["grand_total"] == Decimal("110")
    assert current["paid_total"] == Decimal("50")
    assert current["balance_due"] == Decimal("60")
    assert current["status"] == "Partially Paid"
    return current


def test_edit_racing_a_payment_is_rejected(engine, make_invoice, monkeypatch):
    invoice = make_invoice()
    monkeypatch.setattr(
        "app.services.invoices.ensure_editable", _pay_before(engine, invoice, lifecycle.ensure_editable)
    )
    cheaper = [LineItem(name="Consulting", quantity=1, unit_price=Decimal("20"), taxable=True)]

    with pytest.raises(StateConflictError):
        update_invoice(engine, USER_ID, invoice["id"], InvoiceUpdate(line_items=cheaper))

    current = _assert_payment_kept(engine, invoice)
    assert current["line_items"][0]["quantity"] == 2


def test_void_racing_a_payment_is_rejected(engine, make_invoice, monkeypatch):
    invoice = make_invoice()
    monkeypatch.setattr(
        "app.services.invoices.ensure_voidable", _pay_before(engine, invoice, lifecycle.ensure_voidable)
    )

    with pytest.raises(StateConflictError):
        void_invoice(engine, USER_ID, invoice["id"])

    _assert_payment_kept(engine, invoice)


def test_send_racing_a_payment_is_rejected(engine, make_invoice, monkeypatch):
    invoice = make_invoice(as_draft=True)
    monkeypatch.setattr(
        "app.services.invoices.status_after_send", _pay_before(engine, invoice, lifecycle.status_after_send)
    )

    with pytest.raises(StateConflictError):
        send_invoice(engine, USER_ID, invoice["id"])

    current = _assert_payment_kept(engine, invoice)
    assert current["sent_at"] is None
    assert _count(engine, reminder_logs) == 0


def test_versioned_writes_bump_the_version(engine, make_invoice):
    invoice = make_invoice(as_draft=True)
    edited = update_invoice(engine, USER_ID, invoice["id"], InvoiceUpdate(notes="net 30"))
    sent, _ = send_invoice(engine, USER_ID, invoice["id"])
    linked = ensure_payment_link(engine, USER_ID, invoice["id"])
    voided = void_invoice(engine, USER_ID, invoice["id"])

    assert [edited["version"], sent["version"], linked["version"], voided["version"]] == [2, 3, 4, 5]


def test_failed_read_is_reported_as_storage_error(tmp_path, caplog):
    bare = build_engine(f"sqlite:///{tmp_path / 'no_tables.db'}")
    try:
        with pytest.raises(StorageError):
            get_invoice(bare, USER_ID, 1)
        assert "loading invoice" in caplog.text
    finally:
        bare.dispose()


def test_draft_past_due_is_listed_as_overdue(engine, make_invoice):
    draft = make_invoice(as_draft=True, issue_date=date(2026, 1, 1), due_date=date(2026, 1, 31))
    overdue = list_invoices(engine, USER_ID, status="Overdue", today=date(2026, 2, 15))
    assert [row["id"] for row in overdue] == [draft["id"]]
    assert get_invoice(engine, USER_ID, draft["id"])["status"] == "Draft"
