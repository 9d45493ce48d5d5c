"""
Content paywall (internal library).
Decision (decide_access) is pure; relationship data is fetched by the caller
per request and passed in as ViewerRelationship.
"""
from app.paywall.access import can_view, decide_access
from app.paywall.models import (
    AccessDecision,
    PostPolicy,
    UnlockOptions,
    ViewerRelationship,
)
from app.paywall.relationships import RelationshipSnapshot

__all__ = [
    "AccessDecision",
    "PostPolicy",
    "RelationshipSnapshot",
    "UnlockOptions",
    "ViewerRelationship",
    "can_view",
    "decide_access",
]
