"""
Invoice providers. The reconciler only needs "give me a payable handle for
this order"; confirmation comes back asynchronously (bot / confirm endpoint).
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx
import pybreaker

from app.core.config import settings
from app.services.circuit_breaker import get_circuit_breaker
from app.services.payments.errors import ProviderError
from app.services.telegram.client import TelegramAPIError, TelegramClient

logger = logging.getLogger(__name__)


@dataclass
class InvoiceRequest:
    """What a provider needs to bill one order."""
    order_id: str
    amount: int
    title: str
    description: str
    currency: str = "XTR"


class InvoiceProvider(ABC):
    name: str = "base"

    @abstractmethod
    def create_invoice(self, request: InvoiceRequest) -> str:
        """Return an invoice handle (link). Raise ProviderError on any failure."""


class TelegramStarsProvider(InvoiceProvider):
    """Telegram Stars invoices via Bot API createInvoiceLink; the order id is the invoice payload."""

    name = "telegram_stars"

    def __init__(
        self,
        client: TelegramClient | None = None,
        breaker: pybreaker.CircuitBreaker | None = None,
    ) -> None:
        self._client = client or TelegramClient()
        self._breaker = breaker

    @property
    def breaker(self) -> pybreaker.CircuitBreaker:
        if self._breaker is None:
            self._breaker = get_circuit_breaker("telegram_invoice")
        return self._breaker

    def create_invoice(self, request: InvoiceRequest) -> str:
        try:
            return self.breaker.call(
                self._client.create_invoice_link,
                title=request.title,
                description=request.description,
                payload=request.order_id,
                amount=request.amount,
                currency=request.currency,
                provider_token=settings.telegram_provider_token,
            )
        except pybreaker.CircuitBreakerError as e:
            raise ProviderError("Payment provider unavailable", {"order_id": request.order_id}) from e
        except (TelegramAPIError, httpx.HTTPError, ValueError, KeyError) as e:
            logger.warning(
                "invoice_provider_error",
                extra={"order_id": request.order_id, "error": str(e)},
            )
            raise ProviderError(str(e), {"order_id": request.order_id}) from e
