# app/api/reminders.py

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.engine import Engine

from app.api.deps import get_current_user_id, get_db_engine
from app.models.reminders import ReminderIn, ReminderOut
from app.services import reminders as reminder_service

router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.get("/", response_model=List[ReminderOut])
def list_reminders(
    invoice_id: Optional[int] = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> List[ReminderOut]:
    rows = reminder_service.list_reminders(engine, user_id, invoice_id=invoice_id)
    return [ReminderOut.model_validate(row) for row in rows]


@router.post("/", response_model=ReminderOut, status_code=201)
def log_reminder(
    payload: ReminderIn,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> ReminderOut:
    """
    Record a reminder that was sent for an invoice.
    """
    row = reminder_service.log_reminder(engine, user_id, **payload.model_dump())
    return ReminderOut.model_validate(row)
