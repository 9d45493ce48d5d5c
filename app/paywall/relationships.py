"""
Per-request relationship snapshot: the viewer's follows, active subscriptions
and unlocked posts, fetched once for a page of posts and turned into one
ViewerRelationship per post.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from app.paywall.models import ViewerRelationship


@dataclass(frozen=True)
class RelationshipSnapshot:
    viewer_id: str | None
    following_ids: frozenset[str] = field(default_factory=frozenset)
    subscribed_creator_ids: frozenset[str] = field(default_factory=frozenset)
    purchased_post_ids: frozenset[str] = field(default_factory=frozenset)

    def for_post(self, post_id: str, creator_id: str) -> ViewerRelationship:
        return ViewerRelationship(
            is_owner=self.viewer_id is not None and self.viewer_id == creator_id,
            is_following=creator_id in self.following_ids,
            is_subscribed=creator_id in self.subscribed_creator_ids,
            is_purchased=post_id in self.purchased_post_ids,
        )
