# app/models/payments.py

import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from app.models.invoices import InvoiceOut
from app.models.settings import SettingsOut


class PaymentIn(BaseModel):
    invoice_id: int
    client_id: int
    amount: Decimal = Field(..., gt=0, allow_inf_nan=False)
    method: str = Field(..., min_length=1)
    date: datetime.date
    reference: Optional[str] = None
    note: Optional[str] = None


class PaymentOut(BaseModel):
    id: int
    invoice_id: int
    client_id: int
    amount: Decimal
    method: str
    date: datetime.date
    reference: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime.datetime

    class Config:
        from_attributes = True


class ReceiptOut(BaseModel):
    id: int
    receipt_number: str
    invoice_id: int
    payment_id: int
    client_id: int
    issued_at: datetime.date
    amount: Decimal
    currency: str
    created_at: datetime.datetime

    class Config:
        from_attributes = True


class SettlementOut(BaseModel):
    payment: PaymentOut
    invoice: InvoiceOut
    receipt: ReceiptOut
    settings: SettingsOut
