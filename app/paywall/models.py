"""
Paywall DTOs: PostPolicy and ViewerRelationship (input to decide_access),
AccessDecision and UnlockOptions (output).
"""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

Visibility = Literal["public", "followers", "subscribers"]
LockedReason = Literal["purchase_required", "subscription_required", "follow_required"]


# ----- Input for decide_access -----


class PostPolicy(BaseModel):
    """Visibility policy of one post. Built from a Post row; edits take effect on the next evaluation."""

    id: str
    creator_id: str
    visibility: Visibility = "public"
    is_nsfw: bool = False
    unlock_price: int = Field(0, ge=0)

    model_config = {"frozen": True}


class ViewerRelationship(BaseModel):
    """
    Viewer's relationship to the post's creator, computed per request from
    follows, entitlements (subscriptions, unlocks). Never cached across requests.
    """

    is_owner: bool = False
    is_following: bool = False
    is_subscribed: bool = False
    is_purchased: bool = False

    model_config = {"frozen": True}


# ----- Paywall button options (client renders them) -----


class UnlockOptions(BaseModel):
    """Which paywall buttons to show and for how much."""

    show_unlock: bool = False
    unlock_price: int = 0
    show_subscribe: bool = False
    show_follow: bool = False

    model_config = {"frozen": True}


# ----- Access decision (pure logic, no I/O) -----


class AccessDecision(BaseModel):
    """Result of decide_access: visible or not, and why it is locked."""

    can_view: bool = Field(..., description="True = content is returned unblurred")
    locked_reason: LockedReason | None = Field(
        None,
        description="First rule that locked the post; None when can_view",
    )
    unlock_options: UnlockOptions = Field(default_factory=UnlockOptions)

    model_config = {"frozen": True}
