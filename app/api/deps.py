# app/api/deps.py

from typing import Optional

from fastapi import Header, HTTPException
from sqlalchemy.engine import Engine

from app.db.engine import get_engine


def get_db_engine() -> Engine:
    return get_engine()


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """
    The authenticated user id, as forwarded by the identity provider.

    Trusted as given; only its presence is checked.
    """
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id.strip()
