"""
Order: one paid action (subscription, unlock, tip, livestream ticket).
fee/net are locked in at creation; status moves only out of "pending", once.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String

from app.db.base import Base


ORDER_PENDING = "pending"
ORDER_COMPLETED = "completed"
ORDER_FAILED = "failed"
ORDER_CANCELLED = "cancelled"

REFERENCE_TYPES = ("subscription", "unlock", "tip", "livestream")


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("amount >= 1", name="ck_orders_amount_positive"),
        CheckConstraint("fee + net = amount", name="ck_orders_fee_net_sum"),
        CheckConstraint("fee_percent >= 0 AND fee_percent <= 100", name="ck_orders_fee_percent"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)       # payer
    creator_id = Column(String, nullable=True, index=True)     # payee; None = platform
    reference_type = Column(String, nullable=False)            # subscription / unlock / tip / livestream
    reference_id = Column(String, nullable=False)
    amount = Column(Integer, nullable=False)                    # Stars
    fee_percent = Column(Integer, nullable=False)
    fee = Column(Integer, nullable=False)
    net = Column(Integer, nullable=False)
    currency = Column(String, nullable=False, default="XTR")
    status = Column(String, nullable=False, default=ORDER_PENDING, index=True)
    payment_method = Column(String, nullable=False, default="telegram_stars")  # telegram_stars / wallet
    provider_payment_id = Column(String, nullable=True, unique=True)
    invoice_url = Column(String, nullable=True)
    failure_reason = Column(String, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    completed_at = Column(DateTime(timezone=True), nullable=True)
