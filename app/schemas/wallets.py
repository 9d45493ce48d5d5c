from pydantic import ConfigDict
from pydantic.alias_generators import to_camel

from app.schemas.orders import CamelModel


class WalletOut(CamelModel):
    user_id: str
    stars_balance: int
    total_earned: int
    total_spent: int

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)
