# app/db/schema.py

from sqlalchemy import (
    MetaData, Table, Column, Integer, String,
    Numeric, Date, DateTime, ForeignKey, CheckConstraint, Text, JSON,
    UniqueConstraint, Index,
)

metadata = MetaData()

MONEY = Numeric(18, 2)

clients = Table(
    "clients",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_user_id", String, nullable=False, index=True),
    Column("name", String, nullable=False),
    Column("email", String, nullable=False),
    Column("phone", String, nullable=True),
    Column("address", Text, nullable=True),
    Column("notes", Text, nullable=True),
    Column("created_at", DateTime, nullable=False),
)

invoices = Table(
    "invoices",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_user_id", String, nullable=False),
    Column("client_id", Integer, ForeignKey("clients.id"), nullable=False),
    Column("invoice_number", Text, nullable=False),
    Column("status", String, nullable=False),
    Column("issue_date", Date, nullable=False),
    Column("due_date", Date, nullable=False),
    Column("currency", String(3), nullable=False),
    Column("tax_rate", Numeric(5, 2), nullable=False),
    Column("discount", Numeric(5, 2), nullable=True),
    Column("line_items", JSON, nullable=False),
    Column("subtotal", MONEY, nullable=False),
    Column("tax_total", MONEY, nullable=False),
    Column("discount_total", MONEY, nullable=False),
    Column("grand_total", MONEY, nullable=False),
    Column("paid_total", MONEY, nullable=False),
    Column("balance_due", MONEY, nullable=False),
    Column("payment_link_token", String, nullable=True, unique=True),
    Column("notes", Text),
    Column("terms", Text),
    Column("sent_at", DateTime, nullable=True),
    Column("last_reminder_at", DateTime, nullable=True),
    Column("version", Integer, nullable=False, default=1),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
    UniqueConstraint("owner_user_id", "invoice_number", name="uq_invoices_owner_number"),
    CheckConstraint("paid_total >= 0", name="ck_invoices_paid_total_nonneg"),
    CheckConstraint("paid_total <= grand_total", name="ck_invoices_paid_within_total"),
    CheckConstraint("balance_due >= 0", name="ck_invoices_balance_due_nonneg"),
    Index("ix_invoices_owner_due_date", "owner_user_id", "due_date"),
)

payments = Table(
    "payments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_user_id", String, nullable=False, index=True),
    Column("invoice_id", Integer, ForeignKey("invoices.id"), nullable=False),
    Column("client_id", Integer, ForeignKey("clients.id"), nullable=False),
    Column("amount", MONEY, nullable=False),
    Column("method", String, nullable=False),
    Column("date", Date, nullable=False),
    Column("reference", Text),
    Column("note", Text),
    Column("created_at", DateTime, nullable=False),
    CheckConstraint("amount > 0", name="ck_payments_amount_pos"),
)

receipts = Table(
    "receipts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_user_id", String, nullable=False, index=True),
    Column("receipt_number", Text, nullable=False),
    Column("invoice_id", Integer, ForeignKey("invoices.id"), nullable=False),
    Column("payment_id", Integer, ForeignKey("payments.id"), nullable=False, unique=True),
    Column("client_id", Integer, ForeignKey("clients.id"), nullable=False),
    Column("issued_at", Date, nullable=False),
    Column("amount", MONEY, nullable=False),
    Column("currency", String(3), nullable=False),
    Column("created_at", DateTime, nullable=False),
    UniqueConstraint("owner_user_id", "receipt_number", name="uq_receipts_owner_number"),
)

reminder_logs = Table(
    "reminder_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_user_id", String, nullable=False, index=True),
    Column("invoice_id", Integer, ForeignKey("invoices.id"), nullable=False),
    Column("client_id", Integer, ForeignKey("clients.id"), nullable=False),
    Column("type", String, nullable=False),
    Column("channel", String, nullable=False),
    Column("subject", Text, nullable=False),
    Column("message", Text, nullable=False),
    Column("sent_at", DateTime, nullable=False),
)

settings = Table(
    "settings",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_user_id", String, nullable=False, unique=True),
    Column("business_name", String),
    Column("business_email", String),
    Column("business_phone", String),
    Column("business_address", Text),
    Column("currency_default", String(3), nullable=False),
    Column("tax_rate_default", Numeric(5, 2), nullable=False),
    Column("invoice_prefix", String, nullable=False),
    Column("next_invoice_number", Integer, nullable=False),
    Column("estimate_prefix", String, nullable=False),
    Column("next_estimate_number", Integer, nullable=False),
    Column("receipt_prefix", String, nullable=False),
    Column("next_receipt_number", Integer, nullable=False),
    Column("default_payment_terms_days", Integer, nullable=False),
    Column("email_templates", JSON, nullable=False),
    Column("theme", String, nullable=False),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
    CheckConstraint("next_invoice_number >= 1", name="ck_settings_next_invoice_pos"),
    CheckConstraint("next_estimate_number >= 1", name="ck_settings_next_estimate_pos"),
    CheckConstraint("next_receipt_number >= 1", name="ck_settings_next_receipt_pos"),
)
