"""
FeedService: posts with per-viewer access decisions.
Relationship sets (follows, active subscriptions, unlocks) are fetched once per
request for the creators/posts on the page; nothing is cached between requests.
"""
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.models.follow import Follow
from app.models.post import Post
from app.paywall import AccessDecision, PostPolicy, RelationshipSnapshot, ViewerRelationship, decide_access
from app.services.entitlements.service import EntitlementService
from app.services.payments.errors import PostNotFoundError


@dataclass
class FeedItem:
    post: Post
    relationship: ViewerRelationship
    decision: AccessDecision

    @property
    def can_view(self) -> bool:
        return self.decision.can_view


def post_policy(post: Post) -> PostPolicy:
    return PostPolicy(
        id=post.id,
        creator_id=post.creator_id,
        visibility=post.visibility,
        is_nsfw=bool(post.is_nsfw),
        unlock_price=post.unlock_price or 0,
    )


class FeedService:
    def __init__(self, db: Session):
        self.db = db
        self.entitlements = EntitlementService(db)

    def get_feed(self, viewer_id: str | None, limit: int = 20) -> list[FeedItem]:
        posts = self.db.query(Post).order_by(Post.created_at.desc()).limit(limit).all()
        return self._evaluate(viewer_id, posts)

    def get_creator_posts(self, creator_id: str, viewer_id: str | None) -> list[FeedItem]:
        posts = (
            self.db.query(Post)
            .filter(Post.creator_id == creator_id)
            .order_by(Post.created_at.desc())
            .all()
        )
        return self._evaluate(viewer_id, posts)

    def get_post(self, post_id: str, viewer_id: str | None) -> FeedItem:
        post = self.db.get(Post, post_id)
        if post is None:
            raise PostNotFoundError("Post not found", {"post_id": post_id})
        return self._evaluate(viewer_id, [post])[0]

    def creator_relationship(self, creator_id: str, viewer_id: str | None) -> tuple[bool, bool]:
        """(is_following, is_subscribed) of the viewer towards one creator."""
        if viewer_id is None:
            return False, False
        following = (
            self.db.query(Follow.id)
            .filter(Follow.follower_id == viewer_id, Follow.following_id == creator_id)
            .first()
            is not None
        )
        subscribed = creator_id in self.entitlements.active_subscription_creator_ids(viewer_id, [creator_id])
        return following, subscribed

    def build_snapshot(self, viewer_id: str | None, posts: list[Post]) -> RelationshipSnapshot:
        if viewer_id is None or not posts:
            return RelationshipSnapshot(viewer_id=viewer_id)
        creator_ids = sorted({p.creator_id for p in posts})
        post_ids = [p.id for p in posts]
        following = {
            row[0]
            for row in self.db.query(Follow.following_id)
            .filter(Follow.follower_id == viewer_id, Follow.following_id.in_(creator_ids))
            .all()
        }
        return RelationshipSnapshot(
            viewer_id=viewer_id,
            following_ids=frozenset(following),
            subscribed_creator_ids=frozenset(
                self.entitlements.active_subscription_creator_ids(viewer_id, creator_ids)
            ),
            purchased_post_ids=frozenset(self.entitlements.purchased_post_ids(viewer_id, post_ids)),
        )

    def _evaluate(self, viewer_id: str | None, posts: list[Post]) -> list[FeedItem]:
        snapshot = self.build_snapshot(viewer_id, posts)
        items = []
        for post in posts:
            relationship = snapshot.for_post(post.id, post.creator_id)
            items.append(
                FeedItem(
                    post=post,
                    relationship=relationship,
                    decision=decide_access(post_policy(post), viewer_id, relationship),
                )
            )
        return items
