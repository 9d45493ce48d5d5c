"""EntitlementService: exactly-once grants, subscription renewal, lookups."""
from datetime import datetime, timedelta, timezone

from app.models.entitlement import Entitlement
from app.models.order import Order
from app.services.entitlements.service import EntitlementService, _aware
from app.services.payments.ledger import build_ledger_entries


def test_grant_is_idempotent_for_same_order(db):
    svc = EntitlementService(db)

    first = svc.grant("unlock", "post-1", "fan-1", order_id="order-1")
    second = svc.grant("unlock", "post-1", "fan-1", order_id="order-1")
    db.commit()

    assert first.id == second.id
    assert db.query(Entitlement).count() == 1


def test_tip_is_not_grantable(db):
    assert EntitlementService(db).grant("tip", "creator-1", "fan-1", order_id="order-1") is None
    assert db.query(Entitlement).count() == 0


def test_subscription_renewal_extends_from_current_expiry(db):
    svc = EntitlementService(db)
    first = svc.grant("subscription", "creator-1", "fan-1", order_id="order-1")
    db.commit()
    first_expiry = _aware(first.expires_at)

    renewed = svc.grant("subscription", "creator-1", "fan-1", order_id="order-2")
    db.commit()

    assert renewed.id == first.id
    assert renewed.order_id == "order-2"
    delta = _aware(renewed.expires_at) - first_expiry
    assert timedelta(days=29) < delta <= timedelta(days=30, seconds=1)


def test_expired_subscription_is_not_active(db):
    db.add(
        Entitlement(
            user_id="fan-1",
            reference_type="subscription",
            reference_id="creator-1",
            expires_at=datetime.now(timezone.utc) - timedelta(days=1),
        )
    )
    db.commit()

    svc = EntitlementService(db)
    assert svc.active_subscription_creator_ids("fan-1", ["creator-1"]) == set()

    renewed = svc.grant("subscription", "creator-1", "fan-1", order_id="order-3")
    db.commit()
    assert _aware(renewed.expires_at) > datetime.now(timezone.utc) + timedelta(days=29)
    assert svc.active_subscription_creator_ids("fan-1", ["creator-1"]) == {"creator-1"}


def test_purchased_post_ids(db):
    svc = EntitlementService(db)
    svc.grant("unlock", "post-1", "fan-1", order_id="o1")
    svc.grant("unlock", "post-2", "fan-2", order_id="o2")
    db.commit()

    assert svc.purchased_post_ids("fan-1", ["post-1", "post-2", "post-3"]) == {"post-1"}
    assert svc.purchased_post_ids("fan-1", []) == set()
    assert svc.has_purchased("fan-1", "post-1")
    assert not svc.has_purchased("fan-1", "post-2")


def test_ledger_entries_full_fee_skip_creator_credit():
    order = Order(
        id="o1", user_id="fan-1", creator_id="creator-1", reference_type="tip",
        reference_id="creator-1", amount=10, fee_percent=100, fee=10, net=0,
    )

    entries = build_ledger_entries(order, "platform")

    assert [(e.role, e.amount) for e in entries] == [("user", -10), ("platform", 10)]
    assert sum(e.amount for e in entries) == 0


def test_ledger_entries_zero_fee_skip_platform_credit():
    order = Order(
        id="o2", user_id="fan-1", creator_id="creator-1", reference_type="unlock",
        reference_id="post-1", amount=10, fee_percent=0, fee=0, net=10,
    )

    entries = build_ledger_entries(order, "platform")

    assert [(e.role, e.user_id, e.amount) for e in entries] == [("user", "fan-1", -10), ("creator", "creator-1", 10)]
