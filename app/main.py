import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.clients import router as clients_router
from app.api.invoices import router as invoices_router
from app.api.pay import router as pay_router
from app.api.payments import router as payments_router
from app.api.receipts import router as receipts_router
from app.api.reminders import router as reminders_router
from app.api.settings import router as settings_router
from app.core.config import get_config
from app.core.exceptions import (
    NotFoundError,
    StateConflictError,
    StorageError,
    ValidationError,
)
from app.core.logging_config import configure_logging

configure_logging()
logger = logging.getLogger(__name__)

config = get_config()

app = FastAPI(
    title=config.APP_NAME,
    version=config.APP_VERSION,
)


@app.exception_handler(ValidationError)
def handle_validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
def handle_not_found(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(StateConflictError)
def handle_state_conflict(request: Request, exc: StateConflictError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(StorageError)
def handle_storage_error(request: Request, exc: StorageError):
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Storage failure"})


@app.get("/health")
def health_check():
    return {"status": "ok"}

app.include_router(clients_router)
app.include_router(invoices_router)
app.include_router(payments_router)
app.include_router(receipts_router)
app.include_router(reminders_router)
app.include_router(settings_router)
app.include_router(pay_router)
