"""
Feed endpoints. Every post carries the viewer's access decision; locked posts are
returned without content or media so the client can render the unlock card.
"""
from fastapi import APIRouter, Depends, Query

from app.api.deps import get_feed_service
from app.schemas.feed import CreatorPostsOut, PostOut
from app.services.feed.service import FeedItem, FeedService


router = APIRouter(tags=["feed"])


def to_post_out(item: FeedItem) -> PostOut:
    post = item.post
    visible = item.can_view
    return PostOut(
        id=post.id,
        creator_id=post.creator_id,
        visibility=post.visibility,
        is_nsfw=bool(post.is_nsfw),
        unlock_price=post.unlock_price or 0,
        content=post.content if visible else None,
        media_url=post.media_url if visible else None,
        is_following=item.relationship.is_following,
        is_subscribed=item.relationship.is_subscribed,
        is_purchased=item.relationship.is_purchased,
        can_view=visible,
        locked_reason=item.decision.locked_reason,
        unlock_options=item.decision.unlock_options,
    )


@router.get("/feed", response_model=list[PostOut], response_model_by_alias=True)
def get_feed(
    viewer_id: str | None = Query(None, alias="viewerId"),
    limit: int = Query(20, ge=1, le=100),
    feed: FeedService = Depends(get_feed_service),
):
    return [to_post_out(item) for item in feed.get_feed(viewer_id, limit=limit)]


@router.get("/creators/{creator_id}/posts", response_model=CreatorPostsOut, response_model_by_alias=True)
def get_creator_posts(
    creator_id: str,
    viewer_id: str | None = Query(None, alias="viewerId"),
    feed: FeedService = Depends(get_feed_service),
):
    items = feed.get_creator_posts(creator_id, viewer_id)
    is_following, is_subscribed = feed.creator_relationship(creator_id, viewer_id)
    return CreatorPostsOut(
        posts=[to_post_out(item) for item in items],
        is_following=is_following,
        is_subscribed=is_subscribed,
    )


@router.get("/posts/{post_id}", response_model=PostOut, response_model_by_alias=True)
def get_post(
    post_id: str,
    viewer_id: str | None = Query(None, alias="viewerId"),
    feed: FeedService = Depends(get_feed_service),
):
    return to_post_out(feed.get_post(post_id, viewer_id))
