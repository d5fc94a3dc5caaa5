"""
Customer account model
Carries the abandoned cart snapshot that drives the reminder email sequence
"""
from sqlalchemy import Column, String, JSON, DateTime, Boolean
from sqlalchemy.sql import func
import uuid
from core.database import Base
from utils.reminder_policy import CartSnapshot


class Customer(Base):
    """
    A storefront customer.

    The cart_* columns form the cart snapshot:
    - cart_snapshot_at is set the first time a non-empty cart is synced
    - cart_reminderN_sent flip to true as reminder emails go out
    - a full reset (empty cart sync or completed checkout) clears all of them
    """
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(255), nullable=False, default="")
    last_name = Column(String(255), nullable=False, default="")

    # Cart snapshot
    cart_items = Column(JSON, nullable=False, default=lambda: [])  # [{id, name, price, quantity, sku, image}]
    cart_snapshot_at = Column(DateTime(timezone=True), nullable=True, index=True)
    cart_last_activity = Column(DateTime(timezone=True), nullable=True)
    cart_reminder1_sent = Column(Boolean, nullable=False, default=False)  # ~1 hour
    cart_reminder2_sent = Column(Boolean, nullable=False, default=False)  # ~24 hours
    cart_reminder3_sent = Column(Boolean, nullable=False, default=False)  # ~72 hours

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def cart_snapshot(self) -> CartSnapshot:
        return CartSnapshot(
            items=list(self.cart_items or []),
            snapshot_at=self.cart_snapshot_at,
            last_activity=self.cart_last_activity,
            reminder1_sent=bool(self.cart_reminder1_sent),
            reminder2_sent=bool(self.cart_reminder2_sent),
            reminder3_sent=bool(self.cart_reminder3_sent),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
