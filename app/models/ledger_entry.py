from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from app.db.base import Base


class LedgerEntry(Base):
    """Append-only. Entries of one order always sum to zero."""

    __tablename__ = "ledger_entries"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    order_id = Column(String, ForeignKey("orders.id"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    amount = Column(Integer, nullable=False)  # signed, negative = debit
    role = Column(String, nullable=False)     # user / creator / platform
    description = Column(String, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
