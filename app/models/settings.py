# app/models/settings.py

from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, EmailStr, Field


class EmailTemplate(BaseModel):
    subject: str
    body: str


class SettingsOut(BaseModel):
    business_name: Optional[str] = None
    business_email: Optional[str] = None
    business_phone: Optional[str] = None
    business_address: Optional[str] = None
    currency_default: str
    tax_rate_default: Decimal
    invoice_prefix: str
    next_invoice_number: int
    estimate_prefix: str
    next_estimate_number: int
    receipt_prefix: str
    next_receipt_number: int
    default_payment_terms_days: int
    email_templates: Dict[str, EmailTemplate]
    theme: str

    class Config:
        from_attributes = True


class SettingsUpdate(BaseModel):
    business_name: Optional[str] = None
    business_email: Optional[EmailStr] = None
    business_phone: Optional[str] = None
    business_address: Optional[str] = None
    currency_default: Optional[str] = Field(default=None, min_length=3, max_length=3)
    tax_rate_default: Optional[Decimal] = Field(default=None, ge=0, le=100)
    invoice_prefix: Optional[str] = None
    estimate_prefix: Optional[str] = None
    receipt_prefix: Optional[str] = None
    default_payment_terms_days: Optional[int] = Field(default=None, ge=0)
    email_templates: Optional[Dict[str, EmailTemplate]] = None
    theme: Optional[str] = None

    class Config:
        extra = "forbid"
