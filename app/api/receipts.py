# app/api/receipts.py

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.engine import Engine

from app.api.deps import get_current_user_id, get_db_engine
from app.models.payments import ReceiptOut
from app.services import payments as payment_service

router = APIRouter(prefix="/receipts", tags=["receipts"])


@router.get("/", response_model=List[ReceiptOut])
def list_receipts(
    invoice_id: Optional[int] = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> List[ReceiptOut]:
    rows = payment_service.list_receipts(engine, user_id, invoice_id=invoice_id)
    return [ReceiptOut.model_validate(row) for row in rows]


@router.get("/{receipt_id}", response_model=ReceiptOut)
def get_receipt(
    receipt_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> ReceiptOut:
    return ReceiptOut.model_validate(payment_service.get_receipt(engine, user_id, receipt_id))
