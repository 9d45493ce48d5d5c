"""
Telegram Bot API client wrapper using httpx sync client.
Used by the API to issue Stars invoices (createInvoiceLink); the bot answers
pre_checkout queries through aiogram.
"""
import time
import logging

import httpx

from app.core.config import settings
from app.utils.metrics import (
    telegram_requests_total,
    telegram_request_duration_seconds,
)


logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"


class TelegramAPIError(Exception):
    def __init__(self, method: str, error_code: int, description: str):
        super().__init__(f"{method} -> {error_code}: {description}")
        self.method = method
        self.error_code = error_code
        self.description = description


class TelegramClient:
    """Sync Telegram client, usable from API handlers and Celery workers."""

    def __init__(self, token: str | None = None, http_client: httpx.Client | None = None) -> None:
        self._token = token or settings.telegram_bot_token
        self._base_url = f"{TELEGRAM_API_BASE}/bot{self._token}"
        self._client = http_client

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=settings.http_client_timeout)
        return self._client

    def _record_request(self, method: str, status: str, duration: float) -> None:
        telegram_requests_total.labels(method=method, status=status).inc()
        telegram_request_duration_seconds.labels(method=method).observe(duration)

    def _api_call(self, method: str, data: dict) -> dict:
        """Make API call to Telegram. Raises TelegramAPIError on ok=false, httpx.HTTPError on transport errors."""
        start = time.time()
        try:
            resp = self.client.post(f"{self._base_url}/{method}", json=data)
            result = resp.json()
        except (httpx.HTTPError, ValueError):
            self._record_request(method, "error", time.time() - start)
            raise
        if not result.get("ok"):
            self._record_request(method, "error", time.time() - start)
            error_desc = result.get("description", "Unknown error")
            error_code = result.get("error_code", 0)
            logger.warning(f"Telegram API error: {method} -> {error_code}: {error_desc}")
            raise TelegramAPIError(method, error_code, error_desc)
        self._record_request(method, "success", time.time() - start)
        return result

    def create_invoice_link(
        self,
        title: str,
        description: str,
        payload: str,
        amount: int,
        currency: str = "XTR",
        provider_token: str = "",
    ) -> str:
        """Create an invoice link. For Stars (XTR) provider_token must be an empty string."""
        data = {
            "title": title[:32],
            "description": description[:255],
            "payload": payload,
            "provider_token": provider_token if currency != "XTR" else "",
            "currency": currency,
            "prices": [{"label": title[:32], "amount": amount}],
        }
        result = self._api_call("createInvoiceLink", data)
        return result["result"]

    def close(self) -> None:
        """Close httpx client."""
        if self._client is not None:
            try:
                self._client.close()
            except Exception as e:
                logger.warning("Failed to close client", extra={"error": str(e)})
            finally:
                self._client = None
