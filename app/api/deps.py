"""Shared FastAPI dependencies."""
import hmac

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.services.feed.service import FeedService
from app.services.payments.service import PaymentReconciler


def get_reconciler(db: Session = Depends(get_db)) -> PaymentReconciler:
    return PaymentReconciler(db)


def get_feed_service(db: Session = Depends(get_db)) -> FeedService:
    return FeedService(db)


def require_admin_key(x_admin_key: str | None = Header(None, alias="X-Admin-Key")) -> None:
    """Admin endpoints are closed unless ADMIN_API_KEY is configured and matches."""
    expected = settings.admin_api_key
    if not expected or not x_admin_key or not hmac.compare_digest(x_admin_key, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin key")


def require_webhook_secret(x_webhook_secret: str | None = Header(None, alias="X-Webhook-Secret")) -> None:
    """Payment callbacks settle money: only the provider side, holding PAYMENT_WEBHOOK_SECRET, may call them."""
    expected = settings.payment_webhook_secret
    if not expected or not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret")
