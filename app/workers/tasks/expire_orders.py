"""
Celery beat task: cancel pending orders whose invoice was never paid.
A cancelled order is rejected at pre_checkout, so a stale invoice link can no longer be charged.
"""
import logging

from app.core.celery_app import celery_app
from app.db.session import SessionLocal
from app.services.payments.service import PaymentReconciler

logger = logging.getLogger(__name__)


@celery_app.task(
    name="app.workers.tasks.expire_orders.expire_stale_orders",
    time_limit=120,
    soft_time_limit=110,
)
def expire_stale_orders(older_than_minutes: int | None = None) -> dict:
    db = SessionLocal()
    try:
        cancelled = PaymentReconciler(db).expire_stale_orders(older_than_minutes)
        return {"ok": True, "cancelled": cancelled}
    except Exception as e:
        logger.exception("expire_stale_orders_failed", extra={"error": str(e)})
        raise
    finally:
        db.close()
