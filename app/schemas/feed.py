from app.paywall import UnlockOptions
from app.schemas.orders import CamelModel


class PostOut(CamelModel):
    id: str
    creator_id: str
    visibility: str
    is_nsfw: bool
    unlock_price: int
    # content/media are withheld when can_view is False
    content: str | None = None
    media_url: str | None = None
    is_following: bool
    is_subscribed: bool
    is_purchased: bool
    can_view: bool
    locked_reason: str | None = None
    unlock_options: UnlockOptions


class CreatorPostsOut(CamelModel):
    posts: list[PostOut]
    is_following: bool
    is_subscribed: bool
