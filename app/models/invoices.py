# app/models/invoices.py

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class LineItem(BaseModel):
    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    quantity: int = Field(..., ge=1)
    unit_price: Decimal = Field(..., ge=0)
    taxable: bool = True


class InvoiceCreate(BaseModel):
    client_id: int
    issue_date: date
    due_date: Optional[date] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    discount: Optional[Decimal] = Field(default=None, ge=0, le=100)
    line_items: List[LineItem] = Field(..., min_length=1)
    notes: Optional[str] = None
    terms: Optional[str] = None
    as_draft: bool = True


class InvoiceUpdate(BaseModel):
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    discount: Optional[Decimal] = Field(default=None, ge=0, le=100)
    line_items: Optional[List[LineItem]] = Field(default=None, min_length=1)
    notes: Optional[str] = None
    terms: Optional[str] = None


class InvoiceOut(BaseModel):
    id: int
    invoice_number: str
    client_id: int
    status: str
    issue_date: date
    due_date: date
    currency: str
    tax_rate: Decimal
    discount: Optional[Decimal] = None
    line_items: List[LineItem]
    subtotal: Decimal
    tax_total: Decimal
    discount_total: Decimal
    grand_total: Decimal
    paid_total: Decimal
    balance_due: Decimal
    payment_link_token: Optional[str] = None
    notes: Optional[str] = None
    terms: Optional[str] = None
    sent_at: Optional[datetime] = None
    last_reminder_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PublicInvoiceOut(BaseModel):
    invoice_number: str
    status: str
    issue_date: date
    due_date: date
    currency: str
    line_items: List[LineItem]
    subtotal: Decimal
    tax_total: Decimal
    discount_total: Decimal
    grand_total: Decimal
    paid_total: Decimal
    balance_due: Decimal
    business_name: Optional[str] = None
    client_name: str


class MonthlySummaryOut(BaseModel):
    month: str
    currency: str
    sum_grand_total: Decimal
    sum_balance_due: Decimal
    count_invoices: int


class PastDueInvoiceItem(BaseModel):
    invoice_number: str
    client_name: str
    issue_date: date
    due_date: date
    grand_total: Decimal
    paid_total: Decimal
    balance_due: Decimal
    currency: str
    status: str
    days_past_due: int


class PastDueResponse(BaseModel):
    items: List[PastDueInvoiceItem]
    total: int
    limit: int
    offset: int
