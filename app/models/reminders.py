# app/models/reminders.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ReminderIn(BaseModel):
    invoice_id: int
    client_id: int
    type: str = Field(..., min_length=1)
    channel: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    sent_at: Optional[datetime] = None


class ReminderOut(BaseModel):
    id: int
    invoice_id: int
    client_id: int
    type: str
    channel: str
    subject: str
    message: str
    sent_at: datetime

    class Config:
        from_attributes = True


class SendInvoiceIn(BaseModel):
    channel: str = "email"
    subject: Optional[str] = None
    message: Optional[str] = None
