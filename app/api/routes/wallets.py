from fastapi import APIRouter, Depends, Query

from app.api.deps import get_reconciler
from app.schemas.orders import OrderOut
from app.schemas.wallets import WalletOut
from app.services.payments.service import PaymentReconciler


router = APIRouter(prefix="/wallets", tags=["wallets"])


@router.get("/{user_id}", response_model=WalletOut, response_model_by_alias=True)
def get_wallet(user_id: str, reconciler: PaymentReconciler = Depends(get_reconciler)):
    wallet = reconciler.wallets.get(user_id)
    if wallet is None:
        # no wallet row until the first settlement touches the user
        return WalletOut(user_id=user_id, stars_balance=0, total_earned=0, total_spent=0)
    return WalletOut.model_validate(wallet)


@router.get("/{user_id}/orders", response_model=list[OrderOut], response_model_by_alias=True)
def list_orders(
    user_id: str,
    limit: int = Query(50, ge=1, le=200),
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    return [OrderOut.model_validate(o) for o in reconciler.list_orders_for_user(user_id, limit=limit)]
