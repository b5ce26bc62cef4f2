"""
SQLAlchemy Database Models

Tables backing the ordering site:
- customers: canonical customer identities plus a rolling-stats attribute bag
- orders / catering_requests: one row per submission, with a contact snapshot
- discount_codes: promotional rules with a usage counter
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.sql import func

from app.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Channel(str, enum.Enum):
    """Submission pathway; each keeps its own counter in the stats bag."""
    ORDER = "order"
    CATERING = "catering"


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class Customer(Base):
    """
    Canonical customer identity.

    Email and phone are deliberately not unique: identity resolution is
    best-effort. ``data`` holds the serialized rolling-stats bag and
    ``version`` is the compare-and-swap token for concurrent updates.
    """
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    uuid = Column(Uuid, nullable=False, unique=True, default=uuid.uuid4)

    name = Column(String(100), nullable=False, default="")
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(20), nullable=True, index=True)
    consent_to_updates = Column(Boolean, nullable=False, default=False)

    # Opaque JSON bag (number_of_orders, number_of_catering_requests, total_spent, ...)
    data = Column(Text, nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Customer #{self.id} - {self.name} - {self.email or self.phone}>"


class Order(Base):
    """
    Standard order. Contact fields are a snapshot taken at order time and are
    never synchronized with later customer edits.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    uuid = Column(Uuid, nullable=False, unique=True, default=uuid.uuid4)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)

    # =========================================================================
    # CUSTOMER SNAPSHOT
    # =========================================================================
    customer_name = Column(String(100), nullable=False)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(20), nullable=True)

    # =========================================================================
    # DELIVERY
    # =========================================================================
    delivery_address = Column(String(255), nullable=False)
    delivery_date = Column(Date, nullable=False)

    # =========================================================================
    # PRICING
    # =========================================================================
    order_total = Column(Numeric(10, 2), nullable=False)
    tip = Column(Numeric(10, 2), nullable=False, default=0)
    discount = Column(Numeric(10, 2), nullable=False, default=0)

    # JSON: items, additional_info, payment_token, sales_tax, discount_code
    data = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    def __repr__(self):
        return f"<Order {self.uuid} - customer #{self.customer_id} - {self.order_total}>"


class CateringRequest(Base):
    """Catering request for an event; same shape as an order."""
    __tablename__ = "catering_requests"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    uuid = Column(Uuid, nullable=False, unique=True, default=uuid.uuid4)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)

    customer_name = Column(String(100), nullable=False)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(20), nullable=True)

    delivery_address = Column(String(255), nullable=False)
    delivery_date = Column(Date, nullable=False)
    order_total = Column(Numeric(10, 2), nullable=False)

    # JSON: event_details, special_instructions, cart
    data = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    def __repr__(self):
        return f"<CateringRequest {self.uuid} - customer #{self.customer_id} - {self.order_total}>"


class DiscountCode(Base):
    """
    Promotional rule plus its usage counter.

    ``code`` is stored upper-cased and is unique by convention only.
    Deleting a code flips ``is_active``; rows are never removed.
    """
    __tablename__ = "discount_codes"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    uuid = Column(Uuid, nullable=False, unique=True, default=uuid.uuid4)
    code = Column(String(50), nullable=False, index=True)

    # =========================================================================
    # RULE
    # =========================================================================
    discount_type = Column(String(20), nullable=False, default=DiscountType.PERCENTAGE.value)
    discount_value = Column(Numeric(10, 2), nullable=False)
    minimum_order_amount = Column(Numeric(10, 2), nullable=True)
    max_uses = Column(Integer, nullable=True)
    current_uses = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    def __repr__(self):
        return f"<DiscountCode {self.code} - {self.discount_type} {self.discount_value}>"
