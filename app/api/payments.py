# app/api/payments.py

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.engine import Engine

from app.api.deps import get_current_user_id, get_db_engine
from app.models.invoices import InvoiceOut
from app.models.payments import PaymentIn, PaymentOut, ReceiptOut, SettlementOut
from app.models.settings import SettingsOut
from app.services import payments as payment_service
from app.services.invoices import with_display_status

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("/", response_model=List[PaymentOut])
def list_payments(
    invoice_id: Optional[int] = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> List[PaymentOut]:
    rows = payment_service.list_payments(engine, user_id, invoice_id=invoice_id)
    return [PaymentOut.model_validate(row) for row in rows]


@router.post("/", response_model=SettlementOut, status_code=201)
def record_payment(
    payload: PaymentIn,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> SettlementOut:
    """
    Apply a payment to an invoice and issue its receipt.

    Responds with the payment, the updated invoice, the receipt and the
    settings row carrying the advanced receipt counter.
    """
    settlement = payment_service.apply_payment(
        engine,
        user_id,
        invoice_id=payload.invoice_id,
        client_id=payload.client_id,
        amount=payload.amount,
        method=payload.method,
        paid_on=payload.date,
        reference=payload.reference,
        note=payload.note,
    )
    return SettlementOut(
        payment=PaymentOut.model_validate(settlement.payment),
        invoice=InvoiceOut.model_validate(with_display_status(settlement.invoice)),
        receipt=ReceiptOut.model_validate(settlement.receipt),
        settings=SettingsOut.model_validate(settlement.settings),
    )
