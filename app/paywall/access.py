"""
Decision only: decide_access(post, viewer_id, relationship) -> AccessDecision.
Pure function, no I/O. Rules are evaluated in a fixed order and the first match wins;
reordering changes who can see what (e.g. whether a purchase bypasses the NSFW gate).
"""
from __future__ import annotations

from app.paywall.models import AccessDecision, PostPolicy, UnlockOptions, ViewerRelationship


def decide_access(
    post: PostPolicy, viewer_id: str | None, relationship: ViewerRelationship
) -> AccessDecision:
    """
    1. owner -> visible
    2. public, not NSFW, free -> visible
    3. paid and not purchased -> locked (even for followers/subscribers)
    4. NSFW and not subscribed -> locked (purchase does not help)
    5. subscribers-only and not subscribed -> locked
    6. followers-only and neither following nor subscribed -> locked
    7. otherwise visible
    """
    if viewer_id is not None and post.creator_id == viewer_id:
        return AccessDecision(can_view=True)

    if post.visibility == "public" and not post.is_nsfw and post.unlock_price == 0:
        return AccessDecision(can_view=True)

    if post.unlock_price > 0 and not relationship.is_purchased:
        return _locked(post, relationship, "purchase_required")

    if post.is_nsfw and not relationship.is_subscribed:
        return _locked(post, relationship, "subscription_required")

    if post.visibility == "subscribers" and not relationship.is_subscribed:
        return _locked(post, relationship, "subscription_required")

    if post.visibility == "followers" and not (relationship.is_following or relationship.is_subscribed):
        return _locked(post, relationship, "follow_required")

    return AccessDecision(can_view=True)


def can_view(post: PostPolicy, viewer_id: str | None, relationship: ViewerRelationship) -> bool:
    return decide_access(post, viewer_id, relationship).can_view


def _locked(post: PostPolicy, relationship: ViewerRelationship, reason: str) -> AccessDecision:
    needs_subscription = (post.is_nsfw or post.visibility == "subscribers") and not relationship.is_subscribed
    return AccessDecision(
        can_view=False,
        locked_reason=reason,
        unlock_options=UnlockOptions(
            show_unlock=post.unlock_price > 0 and not relationship.is_purchased,
            unlock_price=post.unlock_price,
            show_subscribe=needs_subscription,
            show_follow=reason == "follow_required",
        ),
    )
