"""
Shared fixtures. Settings are read at import time, so the required env vars are
set before anything under app/ is imported.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456:TEST")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "test-webhook-secret")

from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
# register every table on Base.metadata
import app.models.audit_log  # noqa: F401
import app.models.entitlement  # noqa: F401
import app.models.follow  # noqa: F401
import app.models.ledger_entry  # noqa: F401
import app.models.order  # noqa: F401
import app.models.platform_settings  # noqa: F401
import app.models.wallet  # noqa: F401
from app.models.post import Post
from app.services.payments.provider import InvoiceProvider, InvoiceRequest
from app.services.payments.service import PaymentReconciler


class FakeProvider(InvoiceProvider):
    name = "fake"

    def __init__(self):
        self.requests: list[InvoiceRequest] = []
        self.error: Exception | None = None

    def create_invoice(self, request: InvoiceRequest) -> str:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return f"https://t.me/$invoice-{request.order_id}"


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite: let SQLAlchemy own BEGIN so SAVEPOINTs nest inside the outer transaction
    @event.listens_for(eng, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(eng, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def redis_client():
    client = MagicMock()
    client.incr.return_value = 1
    return client


@pytest.fixture
def reconciler(db, provider, redis_client):
    return PaymentReconciler(db, provider=provider, redis_client=redis_client)


@pytest.fixture
def make_post(db):
    def _make(**kwargs):
        post_row = Post(
            creator_id=kwargs.pop("creator_id", "creator-1"),
            content=kwargs.pop("content", "hello"),
            visibility=kwargs.pop("visibility", "public"),
            is_nsfw=kwargs.pop("is_nsfw", False),
            unlock_price=kwargs.pop("unlock_price", 0),
            **kwargs,
        )
        db.add(post_row)
        db.commit()
        return post_row

    return _make
