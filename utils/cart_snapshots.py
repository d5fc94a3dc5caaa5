"""
Cart snapshot store
Reads and narrowly updates the abandoned cart fields on customer rows
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from core.config import logger
from core.database import SessionLocal
from models.customer import Customer
from utils.reminder_policy import CartSnapshot

_REMINDER_COLUMNS = {
    1: Customer.cart_reminder1_sent,
    2: Customer.cart_reminder2_sent,
    3: Customer.cart_reminder3_sent,
}

_RESET_VALUES = {
    Customer.cart_items: [],
    Customer.cart_snapshot_at: None,
    Customer.cart_last_activity: None,
    Customer.cart_reminder1_sent: False,
    Customer.cart_reminder2_sent: False,
    Customer.cart_reminder3_sent: False,
}


@dataclass
class Candidate:
    id: str
    email: str
    first_name: str
    snapshot: CartSnapshot


def _now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


class CartSnapshotStore:
    """
    Every method opens its own short-lived session from the factory so the
    scheduler, the cart sync endpoint and the checkout hook never share one.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def find_candidates(self) -> List[Candidate]:
        """Customers with an active snapshot and a non-empty cart."""
        db = self._session_factory()
        try:
            rows = db.query(Customer).filter(Customer.cart_snapshot_at.isnot(None)).all()
            return [
                Candidate(id=c.id, email=c.email, first_name=c.first_name or "", snapshot=c.cart_snapshot())
                for c in rows
                if c.cart_items
            ]
        finally:
            db.close()

    def set_reminder_sent(self, customer_id: str, reminder_number: int, snapshot_at: Optional[datetime] = None) -> bool:
        """
        Flip a single reminder flag.

        Only matches while the snapshot is still active, the flag is still
        false and the previous reminder is already set, so a cart cleared by
        checkout mid-cycle is left alone. Passing the snapshot_at the email
        was rendered from pins the write to that snapshot, so a cart reset
        and re-synced in the meantime keeps its own flags.
        """
        column = _REMINDER_COLUMNS.get(reminder_number)
        if column is None:
            raise ValueError(f"unknown reminder number: {reminder_number}")

        db = self._session_factory()
        try:
            query = db.query(Customer).filter(
                Customer.id == customer_id,
                Customer.cart_snapshot_at.isnot(None),
                column == False,  # noqa: E712
            )
            if reminder_number > 1:
                query = query.filter(_REMINDER_COLUMNS[reminder_number - 1] == True)  # noqa: E712
            if snapshot_at is not None:
                query = query.filter(Customer.cart_snapshot_at == snapshot_at)
            changed = query.update({column: True}, synchronize_session=False)
            db.commit()
            return changed == 1
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def reset_cart(self, customer_id: str) -> bool:
        return self._reset(Customer.id == customer_id)

    def reset_cart_by_email(self, email: str) -> bool:
        email = normalize_email(email)
        if not email:
            return False
        return self._reset(Customer.email == email)

    def _reset(self, criterion) -> bool:
        db = self._session_factory()
        try:
            changed = db.query(Customer).filter(criterion).update(dict(_RESET_VALUES), synchronize_session=False)
            db.commit()
            return changed > 0
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def sync_cart(self, customer_id: str, items: list, now: Optional[datetime] = None) -> bool:
        """
        Apply a cart report from the client.

        An empty cart is a full reset. A non-empty cart replaces the items and
        bumps last activity; the snapshot time is only set when none exists.
        """
        if not items:
            return self.reset_cart(customer_id)

        now = now or _now()
        db = self._session_factory()
        try:
            changed = db.query(Customer).filter(Customer.id == customer_id).update(
                {Customer.cart_items: list(items), Customer.cart_last_activity: now},
                synchronize_session=False,
            )
            if changed:
                db.query(Customer).filter(
                    Customer.id == customer_id,
                    Customer.cart_snapshot_at.is_(None),
                ).update({Customer.cart_snapshot_at: now}, synchronize_session=False)
            db.commit()
            return changed > 0
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def get_snapshot(self, customer_id: str) -> Optional[CartSnapshot]:
        db = self._session_factory()
        try:
            customer = db.query(Customer).filter(Customer.id == customer_id).first()
            return customer.cart_snapshot() if customer else None
        finally:
            db.close()


def clear_cart_for_checkout(store: CartSnapshotStore, customer_email: Optional[str]) -> bool:
    """
    Checkout completion hook: fully reset the cart snapshot of the customer
    who just paid. Safe to call repeatedly for the same payment.
    """
    email = normalize_email(customer_email)
    if not email:
        return False
    cleared = store.reset_cart_by_email(email)
    if cleared:
        logger.info(f"Cleared abandoned cart after checkout for {email}")
    return cleared


def get_cart_store() -> CartSnapshotStore:
    """FastAPI dependency backed by the application session factory."""
    return CartSnapshotStore(SessionLocal)
