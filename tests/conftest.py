import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["CRON_API_KEY"] = "test-cron-key"
os.environ["CHECKOUT_WEBHOOK_SECRET"] = "test-checkout-secret"
os.environ["FRONTEND_URL"] = "https://shop.example.com"
for _name in ("SMTP_HOST", "SMTP_USER", "SMTP_PASS", "RUN_CART_NURTURE"):
    os.environ.pop(_name, None)

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from core.auth import hash_password  # noqa: E402
from core.database import init_db  # noqa: E402
from models.customer import Customer  # noqa: E402
from utils.cart_snapshots import CartSnapshotStore  # noqa: E402

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
PASSWORD = "correct-horse"
PASSWORD_HASH = hash_password(PASSWORD)


class FakeMailer:
    """Records messages instead of talking to SMTP."""

    def __init__(self, configured=True):
        self.configured = configured
        self.sent = []
        self.fail_for = set()
        self.raise_for = set()

    def is_configured(self):
        return self.configured

    def send(self, to_addr, subject, html, text=None):
        if to_addr in self.raise_for:
            raise RuntimeError("connection reset")
        if to_addr in self.fail_for:
            return False
        self.sent.append({"to": to_addr, "subject": subject, "html": html, "text": text})
        return True


def cart_item(**overrides):
    item = {"id": "p-1", "name": "Monstera", "price": 10.0, "quantity": 2, "sku": "MON-1", "image": ""}
    item.update(overrides)
    return item


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return CartSnapshotStore(session_factory)


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def make_customer(session_factory):
    counter = {"n": 0}

    def _make(snapshot_age=None, sent=(False, False, False), items=None, **overrides):
        counter["n"] += 1
        if items is None:
            items = [cart_item()] if snapshot_age is not None else []
        fields = {
            "email": f"customer{counter['n']}@example.com",
            "password_hash": PASSWORD_HASH,
            "first_name": "Ada",
            "last_name": "Lovelace",
            "cart_items": items,
            "cart_snapshot_at": (NOW - snapshot_age) if snapshot_age is not None else None,
            "cart_last_activity": (NOW - snapshot_age) if snapshot_age is not None else None,
            "cart_reminder1_sent": sent[0],
            "cart_reminder2_sent": sent[1],
            "cart_reminder3_sent": sent[2],
        }
        fields.update(overrides)
        db = session_factory()
        try:
            customer = Customer(**fields)
            db.add(customer)
            db.commit()
            return customer.id
        finally:
            db.close()

    return _make
