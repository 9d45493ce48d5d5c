"""
Orders API used by the Mini App: create an order (returns a Stars invoice link),
spend from wallet balance. Confirm/fail are provider callbacks and require X-Webhook-Secret.
"""
from fastapi import APIRouter, Depends, Query

from app.api.deps import get_reconciler, require_webhook_secret
from app.schemas.orders import (
    BalancePurchaseIn,
    ConfirmOrderIn,
    ConfirmOrderOut,
    CreateOrderIn,
    CreateOrderOut,
    FailOrderIn,
    OrderOut,
    PurchaseCheckOut,
    TipOrderIn,
    UnlockOrderIn,
)
from app.services.payments.errors import OrderNotFoundError
from app.services.payments.service import PaymentReconciler


router = APIRouter(tags=["orders"])


@router.post("/orders", response_model=CreateOrderOut, response_model_by_alias=True)
def create_order(body: CreateOrderIn, reconciler: PaymentReconciler = Depends(get_reconciler)):
    order, invoice_url = reconciler.create_order(
        user_id=body.user_id,
        reference_type=body.reference_type,
        reference_id=body.reference_id,
        amount=body.amount,
        creator_id=body.creator_id,
    )
    return CreateOrderOut(order_id=order.id, invoice_url=invoice_url, amount=order.amount)


@router.post("/orders/unlock", response_model=CreateOrderOut, response_model_by_alias=True)
def create_unlock_order(body: UnlockOrderIn, reconciler: PaymentReconciler = Depends(get_reconciler)):
    order, invoice_url = reconciler.create_unlock_order(body.user_id, body.post_id)
    return CreateOrderOut(order_id=order.id, invoice_url=invoice_url, amount=order.amount)


@router.post("/orders/tip", response_model=CreateOrderOut, response_model_by_alias=True)
def create_tip_order(body: TipOrderIn, reconciler: PaymentReconciler = Depends(get_reconciler)):
    order, invoice_url = reconciler.create_tip_order(
        body.user_id, body.to_user_id, body.amount, post_id=body.post_id
    )
    return CreateOrderOut(order_id=order.id, invoice_url=invoice_url, amount=order.amount)


@router.post(
    "/orders/confirm",
    response_model=ConfirmOrderOut,
    response_model_by_alias=True,
    dependencies=[Depends(require_webhook_secret)],
)
def confirm_order(body: ConfirmOrderIn, reconciler: PaymentReconciler = Depends(get_reconciler)):
    result = reconciler.confirm_order(body.order_id, body.provider_payment_id)
    if result.already_completed:
        return ConfirmOrderOut(message="Already completed")
    return ConfirmOrderOut()


@router.post(
    "/orders/fail",
    response_model=ConfirmOrderOut,
    response_model_by_alias=True,
    dependencies=[Depends(require_webhook_secret)],
)
def fail_order(body: FailOrderIn, reconciler: PaymentReconciler = Depends(get_reconciler)):
    if not reconciler.fail_order(body.order_id, reason=body.reason):
        return ConfirmOrderOut(message="Order already closed")
    return ConfirmOrderOut()


@router.get("/orders/{order_id}", response_model=OrderOut, response_model_by_alias=True)
def get_order(order_id: str, reconciler: PaymentReconciler = Depends(get_reconciler)):
    order = reconciler.get_order(order_id)
    if order is None:
        raise OrderNotFoundError("Order not found", {"order_id": order_id})
    return OrderOut.model_validate(order)


@router.post("/purchases/balance", response_model=OrderOut, response_model_by_alias=True)
def purchase_with_balance(body: BalancePurchaseIn, reconciler: PaymentReconciler = Depends(get_reconciler)):
    order = reconciler.purchase_with_balance(body.user_id, body.post_id)
    return OrderOut.model_validate(order)


@router.get("/purchases/check", response_model=PurchaseCheckOut)
def check_purchase(
    user_id: str = Query(..., alias="userId"),
    post_id: str = Query(..., alias="postId"),
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    return PurchaseCheckOut(purchased=reconciler.entitlements.has_purchased(user_id, post_id))
