"""
Payment error taxonomy. Services raise these; the API maps them to HTTP
statuses by `http_status`, the bot maps them to pre_checkout answers.
"""
from typing import Any


class PaymentError(Exception):
    code = "payment_error"
    http_status = 400

    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class ValidationError(PaymentError):
    """Missing/invalid request fields. Raised before any mutation."""
    code = "validation_error"
    http_status = 400


class NotFoundError(PaymentError):
    code = "not_found"
    http_status = 404


class OrderNotFoundError(NotFoundError):
    """Confirmation for an unknown order: stale or forged, never accepted."""
    code = "order_not_found"


class PostNotFoundError(NotFoundError):
    code = "post_not_found"


class ConflictError(PaymentError):
    code = "conflict"
    http_status = 409


class OrderStateError(ConflictError):
    """Order is in a terminal state that does not allow the requested transition."""
    code = "order_state"


class ProviderError(PaymentError):
    code = "provider_error"
    http_status = 502


class InvoiceCreationError(ProviderError):
    code = "invoice_creation_failed"

    def __init__(self, message: str = "Could not start payment, try again", detail: dict[str, Any] | None = None):
        super().__init__(message, detail)


class InsufficientFundsError(PaymentError):
    code = "insufficient_funds"
    http_status = 402
