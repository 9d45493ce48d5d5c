"""
PaymentReconciler: drives an Order through its lifecycle with Telegram Stars.

Lifecycle:
- create_order: pending order (fee/net locked in) -> invoice from provider;
  invoice failure deletes the order (compensation)
- validate_pre_checkout: provider asks before charging; only pending orders pass
- confirm_order: atomic pending -> completed, then ledger + wallets + entitlement
  in the same transaction; repeated confirmations are no-ops
- fail_order / cancel_order / expire_stale_orders: pending -> failed / cancelled
- purchase_with_balance: direct spend from wallet balance, settled immediately

The order's status column is the only lock: every effect of an order is gated on
one conditional UPDATE ... WHERE status = 'pending'.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import redis
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.ledger_entry import LedgerEntry
from app.models.order import (
    ORDER_CANCELLED,
    ORDER_COMPLETED,
    ORDER_FAILED,
    ORDER_PENDING,
    REFERENCE_TYPES,
    Order,
)
from app.models.post import Post
from app.services.audit.service import AuditService
from app.services.entitlements.service import EntitlementService
from app.services.payments.errors import (
    ConflictError,
    InsufficientFundsError,
    InvoiceCreationError,
    OrderNotFoundError,
    OrderStateError,
    PostNotFoundError,
    ProviderError,
    ValidationError,
)
from app.services.payments.fees import compute_fee
from app.services.payments.ledger import build_ledger_entries, get_entries
from app.services.payments.provider import InvoiceProvider, InvoiceRequest, TelegramStarsProvider
from app.services.platform_settings.settings_service import PlatformSettingsService
from app.services.wallets.service import WalletService
from app.utils.metrics import (
    insufficient_funds_total,
    invoice_failures_total,
    orders_completed_total,
    orders_confirm_duplicates_total,
    orders_created_total,
    orders_failed_total,
    pre_checkout_total,
)

logger = logging.getLogger(__name__)

PRE_CHECKOUT_REJECT_MESSAGE = "Order not found or already processed"

INVOICE_TITLES = {
    "subscription": "Creator subscription",
    "unlock": "Unlock post",
    "tip": "Tip to creator",
    "livestream": "Livestream ticket",
}


@dataclass
class ConfirmResult:
    order: Order
    already_completed: bool = False


class PaymentReconciler:
    def __init__(
        self,
        db: Session,
        provider: InvoiceProvider | None = None,
        redis_client: redis.Redis | None = None,
    ):
        self.db = db
        self.provider = provider or TelegramStarsProvider()
        self._redis = redis_client or redis.Redis.from_url(settings.redis_url, decode_responses=True)
        self.wallets = WalletService(db)
        self.entitlements = EntitlementService(db)
        self.audit = AuditService(db)

    # ------------------------------------------------------------------
    # Order creation
    # ------------------------------------------------------------------

    def create_order(
        self,
        user_id: str,
        reference_type: str,
        reference_id: str,
        amount: int,
        creator_id: str | None = None,
    ) -> tuple[Order, str]:
        """
        Insert a pending order and obtain an invoice for it.
        Returns (order, invoice_url). On provider failure the order is deleted and
        InvoiceCreationError is raised: no pending order outlives a failed invoice.
        """
        self._validate_request(user_id, reference_type, reference_id, amount, creator_id)
        if reference_type == "unlock":
            self._check_unlock_terms(user_id, reference_id, amount, creator_id)

        fee_percent = PlatformSettingsService(self.db).get_fee_percent()
        fee, net = compute_fee(amount, fee_percent)

        order = Order(
            user_id=str(user_id),
            creator_id=str(creator_id) if creator_id else None,
            reference_type=reference_type,
            reference_id=str(reference_id),
            amount=amount,
            fee_percent=fee_percent,
            fee=fee,
            net=net,
            currency=settings.stars_currency,
            status=ORDER_PENDING,
            payment_method="telegram_stars",
        )
        self.db.add(order)
        # committed before the invoice exists: the invoice payload is the order id
        self.db.commit()
        order_id = order.id
        orders_created_total.labels(reference_type=reference_type, payment_method="telegram_stars").inc()

        try:
            invoice_url = self.provider.create_invoice(
                InvoiceRequest(
                    order_id=order_id,
                    amount=amount,
                    title=INVOICE_TITLES.get(reference_type, "Order"),
                    description=f"{reference_type} for {reference_id}",
                    currency=settings.stars_currency,
                )
            )
        except Exception as e:
            self._rollback_order(order_id)
            invoice_failures_total.inc()
            logger.warning(
                "order_rolled_back_invoice_failed",
                extra={"order_id": order_id, "user_id": user_id, "amount": amount, "error": str(e)},
            )
            if isinstance(e, ProviderError):
                raise InvoiceCreationError(detail={"order_id": order_id}) from e
            raise

        order.invoice_url = invoice_url
        self.db.commit()
        logger.info(
            "order_created",
            extra={
                "order_id": order_id,
                "user_id": order.user_id,
                "creator_id": order.creator_id,
                "reference_type": reference_type,
                "reference_id": order.reference_id,
                "amount": amount,
                "fee": fee,
                "net": net,
            },
        )
        return order, invoice_url

    def create_unlock_order(self, user_id: str, post_id: str) -> tuple[Order, str]:
        post = self._get_unlockable_post(user_id, post_id)
        return self.create_order(
            user_id=user_id,
            reference_type="unlock",
            reference_id=post.id,
            amount=post.unlock_price,
            creator_id=post.creator_id,
        )

    def create_tip_order(
        self, user_id: str, to_user_id: str, amount: int, post_id: str | None = None
    ) -> tuple[Order, str]:
        if not to_user_id:
            raise ValidationError("to_user_id is required")
        if str(to_user_id) == str(user_id):
            raise ValidationError("Cannot tip yourself")
        return self.create_order(
            user_id=user_id,
            reference_type="tip",
            reference_id=str(post_id) if post_id else str(to_user_id),
            amount=amount,
            creator_id=to_user_id,
        )

    def _rollback_order(self, order_id: str) -> None:
        """Compensation for a failed invoice: remove the half-created order."""
        self.db.rollback()
        self.db.query(Order).filter(Order.id == order_id, Order.status == ORDER_PENDING).delete(
            synchronize_session=False
        )
        self.db.commit()

    def _validate_request(
        self,
        user_id: str,
        reference_type: str,
        reference_id: str,
        amount: int,
        creator_id: str | None,
    ) -> None:
        if not user_id or not reference_type or not reference_id:
            raise ValidationError("Missing fields")
        if reference_type not in REFERENCE_TYPES:
            raise ValidationError("Unknown reference_type", {"reference_type": reference_type})
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 1:
            raise ValidationError("amount must be a positive integer", {"amount": amount})
        if reference_type in ("subscription", "tip") and not creator_id:
            raise ValidationError(f"creator_id is required for {reference_type}")
        if reference_type == "subscription" and str(reference_id) != str(creator_id):
            raise ValidationError("subscription reference_id must be the creator id")
        if creator_id and str(creator_id) == str(user_id) and reference_type != "livestream":
            raise ValidationError("Payer and payee must differ")

    def _check_unlock_terms(self, user_id: str, post_id: str, amount: int, creator_id: str | None) -> None:
        """An unlock costs exactly the post's price and pays the post's creator."""
        post = self._get_unlockable_post(user_id, post_id)
        if amount != post.unlock_price:
            raise ValidationError(
                "amount must equal the post unlock price",
                {"post_id": post.id, "amount": amount, "unlock_price": post.unlock_price},
            )
        if str(creator_id or "") != post.creator_id:
            raise ValidationError("creator_id must be the post creator", {"post_id": post.id})

    def _get_unlockable_post(self, user_id: str, post_id: str) -> Post:
        post = self.db.get(Post, str(post_id)) if post_id else None
        if post is None:
            raise PostNotFoundError("Post not found", {"post_id": post_id})
        if post.unlock_price <= 0:
            raise ValidationError("Post is not locked", {"post_id": post_id})
        if post.creator_id == str(user_id):
            raise ValidationError("Cannot unlock your own post", {"post_id": post_id})
        if self.entitlements.has_purchased(str(user_id), post.id):
            raise ConflictError("Already purchased", {"post_id": post_id})
        return post

    # ------------------------------------------------------------------
    # Pre-checkout (provider asks before charging; answer fast)
    # ------------------------------------------------------------------

    def validate_pre_checkout(
        self,
        payload: str,
        total_amount: int | None = None,
        currency: str | None = None,
        telegram_user_id: str | None = None,
    ) -> tuple[bool, str]:
        """
        Returns (ok, error_message). Rejects unknown / non-pending orders so the
        provider never collects money for a stale or duplicate order.
        """
        order_id = (payload or "").strip()
        order = self.get_order(order_id) if order_id else None
        ok, error = True, ""
        if order is None or order.status != ORDER_PENDING:
            ok, error = False, PRE_CHECKOUT_REJECT_MESSAGE
        elif telegram_user_id is not None and order.user_id != str(telegram_user_id):
            ok, error = False, "User mismatch"
        elif total_amount is not None and total_amount != order.amount:
            ok, error = False, "Amount mismatch"
        elif currency is not None and currency != order.currency:
            ok, error = False, "Currency mismatch"
        elif not self._check_rate_limit(order.user_id):
            ok, error = False, "Too many purchases. Try again later."

        pre_checkout_total.labels(result="approved" if ok else "rejected").inc()
        if not ok:
            logger.warning(
                "pre_checkout_rejected",
                extra={"order_id": order_id, "user_id": telegram_user_id, "reason": error},
            )
        return ok, error

    # ------------------------------------------------------------------
    # Confirmation (webhook / successful_payment, at-least-once)
    # ------------------------------------------------------------------

    def confirm_order(self, order_id: str, provider_payment_id: str | None = None) -> ConfirmResult:
        """
        Complete the order exactly once. The pending -> completed UPDATE is the
        compare-and-set: only the caller whose UPDATE hits a row settles the order.
        Later calls see status == completed and return already_completed=True.
        """
        if not order_id:
            raise ValidationError("orderId required")

        values = {"status": ORDER_COMPLETED, "completed_at": datetime.now(timezone.utc)}
        if provider_payment_id:
            values["provider_payment_id"] = provider_payment_id

        try:
            res = self.db.execute(
                update(Order)
                .where(Order.id == order_id, Order.status == ORDER_PENDING)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount == 0:
                self.db.rollback()
                return self._resolve_lost_transition(order_id)

            order = self.db.query(Order).populate_existing().filter(Order.id == order_id).one()
            self._settle(order)
            self.audit.log(
                actor_type="provider",
                actor_id=provider_payment_id,
                action="order_completed",
                entity_type="order",
                entity_id=order.id,
                payload={"amount": order.amount, "fee": order.fee, "net": order.net},
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.error(
                "order_confirm_integrity_error",
                extra={"order_id": order_id, "charge_id": provider_payment_id, "error": str(e)},
            )
            raise ConflictError("Payment id already used by another order", {"order_id": order_id}) from e
        except Exception:
            self.db.rollback()
            raise

        orders_completed_total.labels(reference_type=order.reference_type).inc()
        logger.info(
            "order_completed",
            extra={
                "order_id": order.id,
                "user_id": order.user_id,
                "creator_id": order.creator_id,
                "amount": order.amount,
                "fee": order.fee,
                "net": order.net,
                "charge_id": provider_payment_id,
            },
        )
        return ConfirmResult(order=order)

    def _resolve_lost_transition(self, order_id: str) -> ConfirmResult:
        order = self.get_order(order_id)
        if order is None:
            logger.error("order_confirm_not_found", extra={"order_id": order_id})
            raise OrderNotFoundError("Order not found", {"order_id": order_id})
        if order.status == ORDER_COMPLETED:
            orders_confirm_duplicates_total.inc()
            logger.info("order_already_completed", extra={"order_id": order_id})
            return ConfirmResult(order=order, already_completed=True)
        # paid after being failed/cancelled: needs a manual refund
        logger.error(
            "order_confirm_terminal_state",
            extra={"order_id": order_id, "status": order.status},
        )
        raise OrderStateError(f"Order is {order.status}", {"order_id": order_id, "status": order.status})

    def _settle(self, order: Order) -> None:
        """Ledger, wallets, entitlement. Runs only after winning the status transition."""
        self.db.add_all(build_ledger_entries(order, settings.platform_account_id))
        if order.creator_id and order.net > 0:
            self.wallets.credit_earnings(order.creator_id, order.net)
        if order.payment_method == "telegram_stars":
            self.wallets.record_spend(order.user_id, order.amount)
        self.entitlements.grant(order.reference_type, order.reference_id, order.user_id, order_id=order.id)
        self.db.flush()

    # ------------------------------------------------------------------
    # Failure / cancellation
    # ------------------------------------------------------------------

    def fail_order(self, order_id: str, reason: str = "provider_failed") -> bool:
        return self._close_order(order_id, ORDER_FAILED, reason)

    def cancel_order(self, order_id: str, reason: str = "cancelled") -> bool:
        return self._close_order(order_id, ORDER_CANCELLED, reason)

    def _close_order(self, order_id: str, status: str, reason: str) -> bool:
        """pending -> failed/cancelled. False if the order already reached a terminal state."""
        res = self.db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == ORDER_PENDING)
            .values(status=status, failure_reason=reason)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            self.db.rollback()
            if self.get_order(order_id) is None:
                raise OrderNotFoundError("Order not found", {"order_id": order_id})
            return False
        self.audit.log(
            actor_type="system",
            actor_id=None,
            action=f"order_{status}",
            entity_type="order",
            entity_id=order_id,
            payload={"reason": reason},
        )
        self.db.commit()
        orders_failed_total.labels(status=status, reason=reason).inc()
        logger.info("order_closed", extra={"order_id": order_id, "status": status, "reason": reason})
        return True

    def expire_stale_orders(self, older_than_minutes: int | None = None) -> int:
        """Cancel pending orders older than the TTL. Returns how many were cancelled."""
        ttl = older_than_minutes if older_than_minutes is not None else settings.order_pending_ttl_minutes
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=ttl)
        stale_ids = [
            row[0]
            for row in self.db.query(Order.id)
            .filter(Order.status == ORDER_PENDING, Order.created_at < cutoff)
            .all()
        ]
        cancelled = sum(1 for order_id in stale_ids if self.cancel_order(order_id, reason="expired"))
        if cancelled:
            logger.info("stale_orders_expired", extra={"count": cancelled})
        return cancelled

    # ------------------------------------------------------------------
    # Direct spend from wallet balance
    # ------------------------------------------------------------------

    def purchase_with_balance(self, user_id: str, post_id: str) -> Order:
        """
        Unlock a post paying from the wallet's stars_balance. The debit is a
        conditional update, so a short balance raises InsufficientFundsError
        before anything else is written.
        """
        post = self._get_unlockable_post(user_id, post_id)
        amount = post.unlock_price
        fee_percent = PlatformSettingsService(self.db).get_fee_percent()
        fee, net = compute_fee(amount, fee_percent)

        try:
            self.wallets.debit(str(user_id), amount)
            order = Order(
                user_id=str(user_id),
                creator_id=post.creator_id,
                reference_type="unlock",
                reference_id=post.id,
                amount=amount,
                fee_percent=fee_percent,
                fee=fee,
                net=net,
                currency=settings.stars_currency,
                status=ORDER_COMPLETED,
                payment_method="wallet",
                completed_at=datetime.now(timezone.utc),
            )
            self.db.add(order)
            self.db.flush()
            self._settle(order)
            grant = self.entitlements.get(order.user_id, "unlock", post.id)
            if grant is None or grant.order_id != order.id:
                raise ConflictError("Already purchased", {"post_id": post.id})
            self.db.commit()
        except InsufficientFundsError:
            self.db.rollback()
            insufficient_funds_total.inc()
            logger.info("balance_purchase_rejected", extra={"user_id": user_id, "post_id": post_id, "amount": amount})
            raise
        except Exception:
            self.db.rollback()
            raise

        orders_created_total.labels(reference_type="unlock", payment_method="wallet").inc()
        orders_completed_total.labels(reference_type="unlock").inc()
        logger.info(
            "balance_purchase_completed",
            extra={"order_id": order.id, "user_id": user_id, "post_id": post.id, "amount": amount},
        )
        return order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order | None:
        return self.db.query(Order).populate_existing().filter(Order.id == order_id).one_or_none()

    def get_ledger(self, order_id: str) -> list[LedgerEntry]:
        return get_entries(self.db, order_id)

    def list_orders_for_user(self, user_id: str, limit: int = 50) -> list[Order]:
        """Completed orders where the user paid or was paid, newest first."""
        return (
            self.db.query(Order)
            .filter(
                Order.status == ORDER_COMPLETED,
                (Order.user_id == str(user_id)) | (Order.creator_id == str(user_id)),
            )
            .order_by(Order.created_at.desc())
            .limit(limit)
            .all()
        )

    # ------------------------------------------------------------------
    # Rate-limit (Redis, shared across API/bot replicas)
    # ------------------------------------------------------------------

    def _check_rate_limit(self, user_id: str) -> bool:
        """At most purchase_rate_limit pre-checkouts per window per user."""
        key = f"purchase_rate:{user_id}"
        try:
            current = self._redis.incr(key)
            if current == 1:
                self._redis.expire(key, settings.purchase_rate_window_seconds)
            return current <= settings.purchase_rate_limit
        except redis.RedisError as e:
            logger.warning("purchase_rate_limit_redis_error", extra={"error": str(e)})
            return True  # fail open: pre_checkout must be answered even without Redis
