"""Platform-wide settings edited from admin: currently the platform fee percent."""
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.platform_settings import PlatformSettings
from app.services.payments.errors import ValidationError


class PlatformSettingsService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self) -> PlatformSettings | None:
        return self.db.query(PlatformSettings).filter(PlatformSettings.id == 1).first()

    def get_or_create(self) -> PlatformSettings:
        row = self.get()
        if row:
            return row
        row = PlatformSettings(id=1, platform_fee_percent=None)
        self.db.add(row)
        self.db.flush()
        return row

    def get_fee_percent(self) -> int:
        """
        Current fee percent. Read fresh for every new order (never cached) so an
        admin change applies to orders created after it and to no earlier ones.
        """
        row = self.get()
        if row is not None and row.platform_fee_percent is not None:
            return int(row.platform_fee_percent)
        return settings.platform_fee_percent

    def as_dict(self) -> dict[str, Any]:
        row = self.get()
        return {
            "platform_fee_percent": self.get_fee_percent(),
            "is_default": row is None or row.platform_fee_percent is None,
            "updated_at": row.updated_at.isoformat() if row and row.updated_at else None,
        }

    def update_fee_percent(self, fee_percent: int | None) -> dict[str, Any]:
        """Set the fee percent; None resets to the env default. Caller commits."""
        if fee_percent is not None and not 0 <= fee_percent <= 100:
            raise ValidationError("platform_fee_percent must be between 0 and 100", {"fee_percent": fee_percent})
        row = self.get_or_create()
        row.platform_fee_percent = fee_percent
        row.updated_at = datetime.now(timezone.utc)
        self.db.add(row)
        self.db.flush()
        return self.as_dict()
