# app/core/exceptions.py
"""Domain exceptions raised by the ledger and its services."""


class LedgerError(Exception):
    """Base exception for the invoicing ledger."""

    pass


class ValidationError(LedgerError):
    """Raised when input is malformed or missing."""

    pass


class NotFoundError(LedgerError):
    """Raised when an entity is absent or not owned by the caller."""

    pass


class StateConflictError(LedgerError):
    """Raised when a business rule forbids the requested change."""

    pass


class InvoiceAlreadySettled(StateConflictError):
    def __init__(self, message: str = "Invoice already paid") -> None:
        super().__init__(message)


class AmountExceedsBalance(StateConflictError):
    def __init__(self, message: str = "Amount exceeds balance due") -> None:
        super().__init__(message)


class StorageError(LedgerError):
    """Raised when the record store fails or rejects a write."""

    pass


class ConfigurationError(LedgerError):
    """Raised when configuration is invalid."""

    pass
