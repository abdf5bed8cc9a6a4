# Overview: Operator-facing error taxonomy shared by services and routes.

"""
Every failure a cashier can run into is one of these. Services raise them,
routes translate them into a JSON error body with `http_status`.
"""


class PosError(Exception):
    """Base class for POS business errors."""
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class InvalidState(PosError):
    """Missing cart or shift, or a shift in the wrong lifecycle state."""
    http_status = 409


class StockExceeded(PosError):
    """Requested quantity is above the product's available stock."""
    http_status = 409


class PaymentMismatch(PosError):
    """Sum of payment amounts does not match the cart total."""
    http_status = 400


class MissingCustomerInfo(PosError):
    """Non-cash payment without customer name and lot."""
    http_status = 400


class DuplicateCode(PosError):
    """Product code already used by another product."""
    http_status = 409


class RemoteWriteFailure(PosError):
    """The database rejected a write; nothing was persisted."""
    http_status = 502


class PermissionDeniedError(PosError):
    """Caller's authorization context lacks a required capability."""
    http_status = 403


class NotFoundError(PosError):
    """Referenced product, sale, shift or transaction does not exist."""
    http_status = 404
