import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from app.core.config import settings
from app.models.entitlement import Entitlement

logger = logging.getLogger(__name__)

# reference types that produce an entitlement row; tips only move money
GRANTABLE_TYPES = frozenset({"subscription", "unlock", "livestream"})


class EntitlementService:
    def __init__(self, db: DBSession):
        self.db = db

    def get(self, user_id: str, reference_type: str, reference_id: str) -> Entitlement | None:
        return (
            self.db.query(Entitlement)
            .filter(
                Entitlement.user_id == user_id,
                Entitlement.reference_type == reference_type,
                Entitlement.reference_id == reference_id,
            )
            .one_or_none()
        )

    def grant(
        self,
        reference_type: str,
        reference_id: str,
        user_id: str,
        order_id: str | None = None,
    ) -> Entitlement | None:
        """
        Grant (user, reference_type, reference_id). Exactly-once-effective: a second
        call finds the row (or loses the unique-constraint race) and leaves it alone.
        A subscription renewal from a different order extends expires_at.
        """
        if reference_type not in GRANTABLE_TYPES:
            return None

        now = datetime.now(timezone.utc)
        expires_at = None
        if reference_type == "subscription":
            expires_at = now + timedelta(days=settings.subscription_period_days)

        existing = self.get(user_id, reference_type, reference_id)
        if existing is None:
            try:
                with self.db.begin_nested():
                    row = Entitlement(
                        user_id=user_id,
                        reference_type=reference_type,
                        reference_id=reference_id,
                        order_id=order_id,
                        expires_at=expires_at,
                    )
                    self.db.add(row)
                logger.info(
                    "entitlement_granted",
                    extra={
                        "user_id": user_id,
                        "reference_type": reference_type,
                        "reference_id": reference_id,
                        "order_id": order_id,
                    },
                )
                return row
            except IntegrityError:
                existing = self.get(user_id, reference_type, reference_id)
                if existing is None:
                    raise

        if existing.order_id == order_id:
            return existing

        if reference_type == "subscription":
            current = _aware(existing.expires_at)
            base = current if current and current > now else now
            existing.expires_at = base + timedelta(days=settings.subscription_period_days)
            existing.order_id = order_id
            self.db.add(existing)
            self.db.flush()
            logger.info(
                "subscription_extended",
                extra={"user_id": user_id, "creator_id": reference_id, "order_id": order_id},
            )
        return existing

    def has_purchased(self, user_id: str, post_id: str) -> bool:
        return self.get(user_id, "unlock", post_id) is not None

    def purchased_post_ids(self, user_id: str, post_ids: list[str]) -> set[str]:
        if not post_ids:
            return set()
        rows = (
            self.db.query(Entitlement.reference_id)
            .filter(
                Entitlement.user_id == user_id,
                Entitlement.reference_type == "unlock",
                Entitlement.reference_id.in_(post_ids),
            )
            .all()
        )
        return {r[0] for r in rows}

    def active_subscription_creator_ids(self, user_id: str, creator_ids: list[str]) -> set[str]:
        if not creator_ids:
            return set()
        now = datetime.now(timezone.utc)
        rows = (
            self.db.query(Entitlement.reference_id)
            .filter(
                Entitlement.user_id == user_id,
                Entitlement.reference_type == "subscription",
                Entitlement.reference_id.in_(creator_ids),
                or_(Entitlement.expires_at.is_(None), Entitlement.expires_at > now),
            )
            .all()
        )
        return {r[0] for r in rows}


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
