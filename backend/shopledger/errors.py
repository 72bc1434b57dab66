# Overview: Ledger error taxonomy shared by services and routes.

"""
Every error raised by a ledger operation is raised before commit, so the
caller can assume nothing (totals, stock, debt balances) changed.

Categories map to HTTP statuses in the routes:
- ValidationError      400  bad input (quantity, missing customer, stock)
- BusinessAccessError  403  caller has no business / acts outside it
- NotFoundError        404  missing (or foreign) item, entry, sale, customer
- ConflictError        409  state-machine or business-rule conflict
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for ledger operation errors."""
    status_code = 400
    code = "LEDGER_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class ValidationError(LedgerError, ValueError):
    """400-level input problem."""
    status_code = 400
    code = "VALIDATION_ERROR"


class ConflictError(LedgerError, ValueError):
    """409-level business rule conflict (e.g., day already closed)."""
    status_code = 409
    code = "CONFLICT"


class NotFoundError(LedgerError, LookupError):
    status_code = 404
    code = "NOT_FOUND"


class BusinessAccessError(LedgerError):
    status_code = 403
    code = "FORBIDDEN"


class InvalidQuantityError(ValidationError):
    code = "INVALID_QUANTITY"


class InsufficientStockError(ValidationError):
    code = "INSUFFICIENT_STOCK"


class MissingCustomerError(ValidationError):
    code = "MISSING_CUSTOMER"


class OverpaymentError(ValidationError):
    code = "OVERPAYMENT"


class ItemNotFoundError(NotFoundError):
    code = "ITEM_NOT_FOUND"


class SaleNotFoundError(NotFoundError):
    code = "SALE_NOT_FOUND"


class EntryNotFoundError(NotFoundError):
    code = "ENTRY_NOT_FOUND"


class CustomerNotFoundError(NotFoundError):
    code = "CUSTOMER_NOT_FOUND"


class DebtNotFoundError(NotFoundError):
    code = "DEBT_NOT_FOUND"


class AlreadyClosedError(ConflictError):
    code = "ALREADY_CLOSED"


class NotClosedError(ConflictError):
    code = "NOT_CLOSED"


class DayClosedError(ConflictError):
    code = "DAY_CLOSED"


class DuplicateItemError(ConflictError):
    code = "DUPLICATE_ITEM"


class DebtSettledError(ConflictError):
    code = "DEBT_SETTLED"


class NoActiveBusinessError(BusinessAccessError):
    code = "NO_ACTIVE_BUSINESS"
