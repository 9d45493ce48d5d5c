"""
Entitlement: right to view/use gated content, granted once per
(user, reference_type, reference_id) when an order settles.
Unlock: reference_id = post id. Subscription: reference_id = creator id.
Livestream: reference_id = stream id.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, String, UniqueConstraint

from app.db.base import Base


class Entitlement(Base):
    __tablename__ = "entitlements"
    __table_args__ = (
        UniqueConstraint("user_id", "reference_type", "reference_id", name="uq_entitlement_grant"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    reference_type = Column(String, nullable=False)
    reference_id = Column(String, nullable=False)
    order_id = Column(String, nullable=True)  # last order that granted/extended it
    expires_at = Column(DateTime(timezone=True), nullable=True)  # subscriptions only
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
