from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer

from app.db.base import Base


class PlatformSettings(Base):
    """Platform-wide settings (single row, id=1). Fee percent is edited from admin."""

    __tablename__ = "platform_settings"

    id = Column(Integer, primary_key=True, default=1)
    platform_fee_percent = Column(Integer, nullable=True)  # null = settings.platform_fee_percent
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
