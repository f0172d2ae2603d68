# app/api/clients.py

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.engine import Engine

from app.api.deps import get_current_user_id, get_db_engine
from app.models.clients import ClientIn, ClientOut
from app.services import clients as client_service

router = APIRouter(prefix="/clients", tags=["clients"])


@router.get("/", response_model=List[ClientOut])
def list_clients(
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> List[ClientOut]:
    """
    Return the caller's clients, newest first.
    """
    rows = client_service.list_clients(engine, user_id)
    return [ClientOut.model_validate(row) for row in rows]


@router.post("/", response_model=ClientOut, status_code=201)
def create_client(
    payload: ClientIn,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> ClientOut:
    return ClientOut.model_validate(client_service.create_client(engine, user_id, payload))


@router.get("/{client_id}", response_model=ClientOut)
def get_client(
    client_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> ClientOut:
    """
    Return a single client by ID.
    """
    return ClientOut.model_validate(client_service.get_client(engine, user_id, client_id))


@router.put("/{client_id}", response_model=ClientOut)
def update_client(
    client_id: int,
    payload: ClientIn,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> ClientOut:
    return ClientOut.model_validate(
        client_service.update_client(engine, user_id, client_id, payload)
    )


@router.delete("/{client_id}")
def delete_client(
    client_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
):
    """
    Delete a client together with their invoices, payments, receipts and reminders.
    """
    client_service.delete_client(engine, user_id, client_id)
    return {"success": True}
