"""HTTP surface: FastAPI TestClient with the database and reconciler overridden."""
import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_feed_service, get_reconciler
from app.db.session import get_db
from app.main import app
from app.models.wallet import Wallet
from app.services.feed.service import FeedService
from app.services.payments.errors import ProviderError

ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}
WEBHOOK_HEADERS = {"X-Webhook-Secret": "test-webhook-secret"}


@pytest.fixture
def client(db, reconciler):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_reconciler] = lambda: reconciler
    app.dependency_overrides[get_feed_service] = lambda: FeedService(db)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _create_subscription(client, amount=100):
    return client.post(
        "/orders",
        json={
            "userId": "fan-1",
            "creatorId": "creator-1",
            "referenceType": "subscription",
            "referenceId": "creator-1",
            "amount": amount,
        },
    )


class TestOrders:
    def test_create_and_confirm(self, client):
        resp = _create_subscription(client)
        assert resp.status_code == 200
        body = resp.json()
        assert body["ok"] is True
        assert body["amount"] == 100
        order_id = body["orderId"]
        assert body["invoiceUrl"].endswith(order_id)

        resp = client.post(
            "/orders/confirm",
            json={"orderId": order_id, "providerPaymentId": "charge-1"},
            headers=WEBHOOK_HEADERS,
        )
        assert resp.status_code == 200
        assert resp.json()["message"] is None

        resp = client.post(
            "/orders/confirm",
            json={"orderId": order_id, "providerPaymentId": "charge-1"},
            headers=WEBHOOK_HEADERS,
        )
        assert resp.status_code == 200
        assert resp.json()["message"] == "Already completed"

        wallet = client.get("/wallets/creator-1").json()
        assert wallet["totalEarned"] == 85
        assert wallet["starsBalance"] == 85

        order = client.get(f"/orders/{order_id}").json()
        assert order["status"] == "completed"
        assert (order["fee"], order["net"]) == (15, 85)

    def test_invalid_body_is_422(self, client):
        resp = client.post(
            "/orders",
            json={"userId": "fan-1", "referenceType": "gift", "referenceId": "x", "amount": 10},
        )
        assert resp.status_code == 422

    def test_domain_validation_error(self, client):
        resp = client.post(
            "/orders",
            json={"userId": "fan-1", "creatorId": "fan-1", "referenceType": "tip", "referenceId": "fan-1", "amount": 5},
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"

    def test_invoice_failure_is_502(self, client, provider):
        provider.error = ProviderError("Bad Request")
        resp = _create_subscription(client, amount=50)
        assert resp.status_code == 502
        assert resp.json() == {"error": "Could not start payment, try again", "code": "invoice_creation_failed"}

    def test_confirm_unknown_order_is_404(self, client):
        resp = client.post(
            "/orders/confirm",
            json={"orderId": "missing", "providerPaymentId": "charge-1"},
            headers=WEBHOOK_HEADERS,
        )
        assert resp.status_code == 404
        assert resp.json()["code"] == "order_not_found"

    @pytest.mark.parametrize("headers", [{}, {"X-Webhook-Secret": "wrong"}])
    def test_confirm_requires_webhook_secret(self, client, headers):
        order_id = _create_subscription(client).json()["orderId"]

        resp = client.post(
            "/orders/confirm",
            json={"orderId": order_id, "providerPaymentId": "charge-1"},
            headers=headers,
        )
        assert resp.status_code == 401

        assert client.get(f"/orders/{order_id}").json()["status"] == "pending"
        wallet = client.get("/wallets/creator-1").json()
        assert wallet["totalEarned"] == 0
        assert wallet["starsBalance"] == 0

    def test_confirm_requires_payment_id(self, client):
        order_id = _create_subscription(client).json()["orderId"]
        resp = client.post("/orders/confirm", json={"orderId": order_id}, headers=WEBHOOK_HEADERS)
        assert resp.status_code == 422

    def test_fail_closes_pending_order(self, client):
        order_id = _create_subscription(client).json()["orderId"]

        resp = client.post("/orders/fail", json={"orderId": order_id, "reason": "declined"})
        assert resp.status_code == 401
        assert client.get(f"/orders/{order_id}").json()["status"] == "pending"

        resp = client.post("/orders/fail", json={"orderId": order_id, "reason": "declined"}, headers=WEBHOOK_HEADERS)
        assert resp.status_code == 200
        assert resp.json()["message"] is None
        assert client.get(f"/orders/{order_id}").json()["status"] == "failed"

        resp = client.post("/orders/fail", json={"orderId": order_id}, headers=WEBHOOK_HEADERS)
        assert resp.json()["message"] == "Order already closed"

        resp = client.post(
            "/orders/confirm",
            json={"orderId": order_id, "providerPaymentId": "charge-1"},
            headers=WEBHOOK_HEADERS,
        )
        assert resp.status_code == 409

    def test_generic_unlock_below_price_is_400(self, client, provider, make_post):
        post = make_post(unlock_price=500)
        resp = client.post(
            "/orders",
            json={
                "userId": "fan-1",
                "creatorId": "creator-1",
                "referenceType": "unlock",
                "referenceId": post.id,
                "amount": 1,
            },
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"
        assert provider.requests == []

    def test_unlock_and_tip(self, client, make_post):
        post = make_post(unlock_price=30)

        resp = client.post("/orders/unlock", json={"userId": "fan-1", "postId": post.id})
        assert resp.status_code == 200
        assert resp.json()["amount"] == 30

        resp = client.post("/orders/tip", json={"userId": "fan-1", "toUserId": "creator-1", "amount": 7})
        assert resp.status_code == 200
        assert resp.json()["amount"] == 7

    def test_balance_purchase(self, client, db, make_post):
        post = make_post(unlock_price=30)
        resp = client.post("/purchases/balance", json={"userId": "fan-1", "postId": post.id})
        assert resp.status_code == 402
        assert resp.json()["code"] == "insufficient_funds"

        db.add(Wallet(user_id="fan-1", stars_balance=50))
        db.commit()
        resp = client.post("/purchases/balance", json={"userId": "fan-1", "postId": post.id})
        assert resp.status_code == 200
        assert resp.json()["paymentMethod"] == "wallet"

        check = client.get("/purchases/check", params={"userId": "fan-1", "postId": post.id})
        assert check.json() == {"purchased": True}

        orders = client.get("/wallets/fan-1/orders").json()
        assert [o["referenceId"] for o in orders] == [post.id]


class TestFeed:
    def test_locked_post_hides_content(self, client, make_post):
        locked = make_post(visibility="subscribers", content="secret", media_url="https://cdn/x.jpg")
        make_post(content="hello")

        items = client.get("/feed", params={"viewerId": "fan-1"}).json()
        by_id = {item["id"]: item for item in items}

        assert by_id[locked.id]["canView"] is False
        assert by_id[locked.id]["content"] is None
        assert by_id[locked.id]["mediaUrl"] is None
        assert by_id[locked.id]["lockedReason"] == "subscription_required"
        assert by_id[locked.id]["unlockOptions"]["show_subscribe"] is True

        owner_view = client.get(f"/posts/{locked.id}", params={"viewerId": locked.creator_id}).json()
        assert owner_view["canView"] is True
        assert owner_view["content"] == "secret"

    def test_creator_posts(self, client, make_post):
        make_post(creator_id="creator-9")
        body = client.get("/creators/creator-9/posts").json()
        assert len(body["posts"]) == 1
        assert body["isFollowing"] is False

    def test_missing_post(self, client):
        resp = client.get("/posts/missing")
        assert resp.status_code == 404
        assert resp.json()["code"] == "post_not_found"


class TestAdmin:
    def test_requires_key(self, client):
        assert client.get("/admin/settings/fee").status_code == 401
        assert client.get("/admin/settings/fee", headers={"X-Admin-Key": "wrong"}).status_code == 401

    def test_update_fee_applies_to_new_orders(self, client):
        resp = client.get("/admin/settings/fee", headers=ADMIN_HEADERS)
        assert resp.json()["platform_fee_percent"] == 15
        assert resp.json()["is_default"] is True

        resp = client.put("/admin/settings/fee", json={"platform_fee_percent": 20}, headers=ADMIN_HEADERS)
        assert resp.status_code == 200
        assert resp.json()["platform_fee_percent"] == 20

        order_id = _create_subscription(client).json()["orderId"]
        assert client.get(f"/orders/{order_id}").json()["fee"] == 20

        resp = client.put("/admin/settings/fee", json={"platform_fee_percent": None}, headers=ADMIN_HEADERS)
        assert resp.json()["platform_fee_percent"] == 15
        assert resp.json()["is_default"] is True

    def test_out_of_range_fee(self, client):
        resp = client.put("/admin/settings/fee", json={"platform_fee_percent": 150}, headers=ADMIN_HEADERS)
        assert resp.status_code == 422


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
