# app/api/invoices.py

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import and_, func, select
from sqlalchemy.engine import Engine

from app.api.deps import get_current_user_id, get_db_engine
from app.db.schema import clients, invoices
from app.ledger.lifecycle import NEVER_OVERDUE
from app.models.invoices import (
    InvoiceCreate,
    InvoiceOut,
    InvoiceUpdate,
    MonthlySummaryOut,
    PastDueInvoiceItem,
    PastDueResponse,
)
from app.models.reminders import ReminderOut, SendInvoiceIn
from app.services import invoices as invoice_service
from app.services.common import business_today

router = APIRouter(prefix="/invoices", tags=["invoices"])


def _to_invoice_out(row) -> InvoiceOut:
    return InvoiceOut.model_validate(invoice_service.with_display_status(row))


@router.get("/", response_model=List[InvoiceOut])
def list_invoices(
    status: Optional[str] = Query(
        default=None,
        description="Draft | Sent | Partially Paid | Paid | Overdue | Void",
    ),
    client_id: Optional[int] = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> List[InvoiceOut]:
    rows = invoice_service.list_invoices(engine, user_id, status=status, client_id=client_id)
    return [InvoiceOut.model_validate(row) for row in rows]


@router.post("/", response_model=InvoiceOut, status_code=201)
def create_invoice(
    payload: InvoiceCreate,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> InvoiceOut:
    """
    Create an invoice. The number is allocated and the totals computed here.
    """
    return _to_invoice_out(invoice_service.create_invoice(engine, user_id, payload))


@router.get("/past-due", response_model=PastDueResponse)
def list_past_due_invoices(
    as_of: Optional[date] = Query(
        default=None,
        description="ISO date (YYYY-MM-DD); defaults to today in the business timezone",
    ),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    sort: Optional[str] = Query(
        default="due_date.asc",
        description="due_date.asc | due_date.desc",
    ),
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> PastDueResponse:
    """
    Returns non-void invoices with a positive balance whose due date is before as_of.
    """
    if as_of is None:
        as_of = business_today()

    if sort == "due_date.desc":
        order_clause = invoices.c.due_date.desc()
    else:
        order_clause = invoices.c.due_date.asc()

    base_where = and_(
        invoices.c.owner_user_id == user_id,
        invoices.c.balance_due > 0,
        invoices.c.due_date < as_of,
        invoices.c.status.not_in([s.value for s in NEVER_OVERDUE]),
    )

    with engine.connect() as conn:
        count_stmt = select(func.count()).select_from(invoices).where(base_where)
        total = conn.execute(count_stmt).scalar_one()

        stmt = (
            select(
                invoices.c.invoice_number,
                clients.c.name.label("client_name"),
                invoices.c.issue_date,
                invoices.c.due_date,
                invoices.c.grand_total,
                invoices.c.paid_total,
                invoices.c.balance_due,
                invoices.c.currency,
            )
            .select_from(invoices.join(clients))
            .where(base_where)
            .order_by(order_clause, invoices.c.id)
            .limit(limit)
            .offset(offset)
        )
        rows = conn.execute(stmt).mappings().all()

    items = [
        PastDueInvoiceItem(
            invoice_number=row["invoice_number"],
            client_name=row["client_name"],
            issue_date=row["issue_date"],
            due_date=row["due_date"],
            grand_total=row["grand_total"],
            paid_total=row["paid_total"],
            balance_due=row["balance_due"],
            currency=row["currency"],
            status="Overdue",
            days_past_due=(as_of - row["due_date"]).days,
        )
        for row in rows
    ]

    return PastDueResponse(items=items, total=total, limit=limit, offset=offset)


@router.get("/summary/month", response_model=MonthlySummaryOut)
def monthly_summary(
    month: str = Query(..., description="Target month in YYYY-MM format"),
    client_id: Optional[int] = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> MonthlySummaryOut:
    """
    Sum of grand totals and open balances for invoices issued in the month.
    Void invoices are left out.
    """
    try:
        dt = datetime.strptime(month, "%Y-%m")
    except ValueError:
        raise HTTPException(status_code=400, detail="month must be in YYYY-MM format")

    year, m = dt.year, dt.month
    first_day = date(year, m, 1)
    next_month = date(year + (m == 12), (m % 12) + 1, 1)

    conditions = [
        invoices.c.owner_user_id == user_id,
        invoices.c.issue_date >= first_day,
        invoices.c.issue_date < next_month,
        invoices.c.status != "Void",
    ]
    if client_id is not None:
        conditions.append(invoices.c.client_id == client_id)

    stmt = select(
        func.coalesce(func.sum(invoices.c.grand_total), 0).label("sum_grand_total"),
        func.coalesce(func.sum(invoices.c.balance_due), 0).label("sum_balance_due"),
        func.count().label("count_invoices"),
        func.min(invoices.c.currency).label("currency"),
    ).where(and_(*conditions))

    with engine.connect() as conn:
        row = conn.execute(stmt).first()

    return MonthlySummaryOut(
        month=month,
        currency=row.currency or "USD",
        sum_grand_total=Decimal(str(row.sum_grand_total or 0)).quantize(Decimal("0.01")),
        sum_balance_due=Decimal(str(row.sum_balance_due or 0)).quantize(Decimal("0.01")),
        count_invoices=row.count_invoices or 0,
    )


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(
    invoice_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> InvoiceOut:
    return _to_invoice_out(invoice_service.get_invoice(engine, user_id, invoice_id))


@router.put("/{invoice_id}", response_model=InvoiceOut)
def update_invoice(
    invoice_id: int,
    payload: InvoiceUpdate,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> InvoiceOut:
    """
    Edit an unpaid invoice; totals are recomputed from the line items.
    """
    return _to_invoice_out(invoice_service.update_invoice(engine, user_id, invoice_id, payload))


@router.delete("/{invoice_id}")
def delete_invoice(
    invoice_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
):
    invoice_service.delete_invoice(engine, user_id, invoice_id)
    return {"success": True}


@router.post("/{invoice_id}/send")
def send_invoice(
    invoice_id: int,
    payload: Optional[SendInvoiceIn] = None,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
):
    payload = payload or SendInvoiceIn()
    invoice, log = invoice_service.send_invoice(
        engine,
        user_id,
        invoice_id,
        channel=payload.channel,
        subject=payload.subject,
        message=payload.message,
    )
    return {
        "invoice": _to_invoice_out(invoice),
        "reminder_log": ReminderOut.model_validate(log),
    }


@router.post("/{invoice_id}/void", response_model=InvoiceOut)
def void_invoice(
    invoice_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> InvoiceOut:
    return _to_invoice_out(invoice_service.void_invoice(engine, user_id, invoice_id))


@router.post("/{invoice_id}/payment-link", response_model=InvoiceOut)
def create_payment_link(
    invoice_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> InvoiceOut:
    return _to_invoice_out(invoice_service.ensure_payment_link(engine, user_id, invoice_id))
