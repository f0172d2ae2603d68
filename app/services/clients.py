# app/services/clients.py

import logging
from typing import Any, Dict, List

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Engine

from app.db.schema import clients, invoices, payments, receipts, reminder_logs
from app.models.clients import ClientIn
from app.services.common import storage_errors, utcnow
from app.services.invoices import fetch_client

logger = logging.getLogger(__name__)


def list_clients(engine: Engine, user_id: str) -> List[Dict[str, Any]]:
    stmt = (
        select(clients)
        .where(clients.c.owner_user_id == user_id)
        .order_by(clients.c.created_at.desc(), clients.c.id.desc())
    )
    with engine.connect() as conn:
        return [dict(row) for row in conn.execute(stmt).mappings().all()]


def get_client(engine: Engine, user_id: str, client_id: int) -> Dict[str, Any]:
    with engine.connect() as conn:
        return fetch_client(conn, user_id, client_id)


def create_client(engine: Engine, user_id: str, data: ClientIn) -> Dict[str, Any]:
    with engine.begin() as conn:
        with storage_errors("creating client"):
            client_id = conn.execute(
                insert(clients).values(
                    owner_user_id=user_id,
                    created_at=utcnow(),
                    **data.model_dump(),
                )
            ).inserted_primary_key[0]
        return fetch_client(conn, user_id, client_id)


def update_client(engine: Engine, user_id: str, client_id: int, data: ClientIn) -> Dict[str, Any]:
    with engine.begin() as conn:
        fetch_client(conn, user_id, client_id)
        with storage_errors("updating client"):
            conn.execute(
                update(clients)
                .where(clients.c.id == client_id, clients.c.owner_user_id == user_id)
                .values(**data.model_dump())
            )
        return fetch_client(conn, user_id, client_id)


def delete_client(engine: Engine, user_id: str, client_id: int) -> None:
    """
    Delete a client and everything billed to them.

    Dependents go first, in one transaction: reminder logs, receipts,
    payments, invoices, then the client row.
    """
    with engine.begin() as conn:
        client = fetch_client(conn, user_id, client_id)
        counts = {}
        with storage_errors("deleting client"):
            for name, table in (
                ("reminder_logs", reminder_logs),
                ("receipts", receipts),
                ("payments", payments),
                ("invoices", invoices),
            ):
                counts[name] = conn.execute(
                    delete(table).where(
                        table.c.owner_user_id == user_id,
                        table.c.client_id == client_id,
                    )
                ).rowcount
            conn.execute(delete(clients).where(clients.c.id == client_id))

    logger.info("Deleted client %s (%s) with dependents %s", client_id, client["name"], counts)
