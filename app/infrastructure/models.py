"""SQLAlchemy models for database tables.

Provides ORM models for users, shops, orders, payments and notifications.
Money columns hold integer paise.
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)

from app.infrastructure.database import Base


def _uuid() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserModel(Base):
    """Marketplace user."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(32), nullable=True)
    role = Column(String(20), nullable=False, default="STUDENT")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class ShopModel(Base):
    """Print shop with location and rate table."""

    __tablename__ = "shops"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(36), ForeignKey("users.id"), nullable=False, unique=True)
    business_name = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    pricing = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class OrderModel(Base):
    """Print order.

    ``version`` is the optimistic lock for status writes.
    """

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_number = Column(String(32), nullable=False, unique=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    shop_id = Column(String(36), ForeignKey("shops.id"), nullable=False, index=True)
    file = Column(JSON, nullable=False)
    print_config = Column(JSON, nullable=False)
    status = Column(String(20), nullable=False, default="PENDING", index=True)
    total_paise = Column(Integer, nullable=False)
    payment_method = Column(String(20), nullable=False, default="cod")
    payment_status = Column(String(20), nullable=False, default="pending")
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class PaymentModel(Base):
    """Gateway payment; at most one per order."""

    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, unique=True)
    provider_order_id = Column(String(64), nullable=False, index=True)
    provider_payment_id = Column(String(64), nullable=True)
    amount_paise = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="PENDING")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class NotificationModel(Base):
    """In-app notification."""

    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(40), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    order_id = Column(String(36), nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
