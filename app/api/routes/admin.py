"""
Admin API: platform fee. Guarded by X-Admin-Key.
A fee change applies to orders created after it; pending orders keep the fee they were created with.
"""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.api.deps import require_admin_key
from app.db.session import get_db
from app.schemas.admin import FeeSettingsIn, FeeSettingsOut
from app.services.audit.service import AuditService
from app.services.platform_settings.settings_service import PlatformSettingsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_key)])


@router.get("/settings/fee", response_model=FeeSettingsOut)
def get_fee_settings(db: Session = Depends(get_db)):
    return PlatformSettingsService(db).as_dict()


@router.put("/settings/fee", response_model=FeeSettingsOut)
def update_fee_settings(body: FeeSettingsIn, request: Request, db: Session = Depends(get_db)):
    svc = PlatformSettingsService(db)
    before = svc.get_fee_percent()
    result = svc.update_fee_percent(body.platform_fee_percent)
    AuditService(db).log(
        actor_type="admin",
        actor_id=request.client.host if request.client else None,
        action="update_fee",
        entity_type="platform_settings",
        entity_id="1",
        payload={"before": before, "after": result["platform_fee_percent"]},
    )
    db.commit()
    logger.info(
        "platform_fee_updated",
        extra={"fee": result["platform_fee_percent"], "reason": "reset" if result["is_default"] else "set"},
    )
    return result
