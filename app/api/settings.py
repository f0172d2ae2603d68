# app/api/settings.py

from fastapi import APIRouter, Depends
from sqlalchemy.engine import Engine

from app.api.deps import get_current_user_id, get_db_engine
from app.models.settings import SettingsOut, SettingsUpdate
from app.services import settings_store

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/", response_model=SettingsOut)
def get_settings(
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> SettingsOut:
    """
    Return the caller's settings, creating the defaults on first access.
    """
    return SettingsOut.model_validate(settings_store.load_settings(engine, user_id))


@router.put("/", response_model=SettingsOut)
def update_settings(
    payload: SettingsUpdate,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_db_engine),
) -> SettingsOut:
    patch = payload.model_dump(exclude_unset=True)
    return SettingsOut.model_validate(settings_store.update_settings(engine, user_id, patch))
