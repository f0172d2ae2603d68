from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_db_engine
from app.db.engine import build_engine
from app.db.schema import metadata
from app.main import app
from app.models.clients import ClientIn
from app.models.invoices import InvoiceCreate, LineItem
from app.services.clients import create_client
from app.services.invoices import create_invoice

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


@pytest.fixture
def engine(tmp_path):
    db_engine = build_engine(f"sqlite:///{tmp_path / 'ledger_test.db'}")
    metadata.create_all(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def api(engine):
    app.dependency_overrides[get_db_engine] = lambda: engine
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def client_row(engine):
    return create_client(
        engine,
        USER_ID,
        ClientIn(name="Acme Retail", email="billing@acme.example", phone="555-0100"),
    )


@pytest.fixture
def make_invoice(engine, client_row):
    """Factory for invoices owned by USER_ID; defaults to one 2 x 50 taxable line at 10%."""

    def _make(
        line_items=None,
        tax_rate=Decimal("10"),
        discount=None,
        as_draft=False,
        issue_date=date(2026, 1, 5),
        due_date=date(2026, 2, 4),
        user_id=USER_ID,
        client_id=None,
    ):
        items = line_items or [
            LineItem(name="Consulting", quantity=2, unit_price=Decimal("50"), taxable=True)
        ]
        payload = InvoiceCreate(
            client_id=client_id or client_row["id"],
            issue_date=issue_date,
            due_date=due_date,
            currency="USD",
            tax_rate=tax_rate,
            discount=discount,
            line_items=items,
            as_draft=as_draft,
        )
        return create_invoice(engine, user_id, payload)

    return _make
