# app/api/pay.py

from fastapi import APIRouter, Depends
from sqlalchemy.engine import Engine

from app.api.deps import get_db_engine
from app.models.invoices import PublicInvoiceOut
from app.services.invoices import get_invoice_by_token

router = APIRouter(prefix="/pay", tags=["pay"])


@router.get("/{payment_token}", response_model=PublicInvoiceOut)
def get_payable_invoice(
    payment_token: str,
    engine: Engine = Depends(get_db_engine),
) -> PublicInvoiceOut:
    """
    Public invoice view behind a payment link. No user header required.
    """
    return PublicInvoiceOut.model_validate(get_invoice_by_token(engine, payment_token))
