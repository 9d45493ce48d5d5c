from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    # Mini-App client sends camelCase (userId, referenceType, ...)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateOrderIn(CamelModel):
    user_id: str
    creator_id: str | None = None
    reference_type: Literal["subscription", "unlock", "tip", "livestream"]
    reference_id: str
    amount: int = Field(..., ge=1)


class UnlockOrderIn(CamelModel):
    user_id: str
    post_id: str


class TipOrderIn(CamelModel):
    user_id: str
    to_user_id: str
    amount: int = Field(..., ge=1)
    post_id: str | None = None


class CreateOrderOut(CamelModel):
    ok: bool = True
    order_id: str
    invoice_url: str
    amount: int


class ConfirmOrderIn(CamelModel):
    order_id: str
    provider_payment_id: str = Field(..., min_length=1)


class FailOrderIn(CamelModel):
    order_id: str
    reason: str = Field("provider_failed", max_length=64)


class ConfirmOrderOut(CamelModel):
    ok: bool = True
    message: str | None = None


class BalancePurchaseIn(CamelModel):
    user_id: str
    post_id: str


class OrderOut(CamelModel):
    id: str
    user_id: str
    creator_id: str | None
    reference_type: str
    reference_id: str
    amount: int
    fee: int
    net: int
    status: str
    payment_method: str
    created_at: datetime
    completed_at: datetime | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PurchaseCheckOut(CamelModel):
    purchased: bool
