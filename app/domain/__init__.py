"""Domain layer - Entities, state machines, domain events, pricing engine.

This module exports the core domain building blocks:

- **Entities**: Objects with identity (User, Shop, Order, Payment, Notification)
- **Value Objects**: Immutable objects compared by value (PrintConfig, ShopPricing, GeoPoint)
- **State Machines**: Deterministic state transitions (OrderStatus, PaymentStatus)
- **Domain Events**: Closed vocabulary of typed lifecycle events
- **Pricing**: Pure fee computation
- **Exceptions**: Domain-specific errors and invariant violations

Example usage:
    from app.domain import OrderStatus, PrintConfig, ShopPricing, calculate_price

    breakdown = calculate_price(
        ShopPricing(),
        PrintConfig(pages=10, copies=2),
        distance_km=1.0,
        recent_active_orders=0,
        at=datetime(2024, 1, 6, 8, 0),
    )
    print(breakdown.total)  # 44.72
"""

from app.domain.base import Entity, ValueObject
from app.domain.entities import (
    FileRef,
    GeoPoint,
    Notification,
    Order,
    Payment,
    PrintConfig,
    Shop,
    ShopPricing,
    User,
    UserRole,
)
from app.domain.events import (
    PAYLOAD_TYPES,
    DomainEvent,
    EventPayload,
    EventType,
    OrderCancelled,
    OrderCompleted,
    OrderConfirmed,
    OrderCreated,
    OrderReady,
    PaymentFailed,
    PaymentSucceeded,
    ShopRegistered,
)
from app.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ChannelDeliveryError,
    ConcurrentUpdateError,
    DomainError,
    InfrastructureError,
    InvalidStateTransitionError,
    MessageFormatError,
    NotFoundError,
    ValidationError,
)
from app.domain.pricing import PricingBreakdown, calculate_price
from app.domain.state_machines import OrderStatus, PaymentStatus

__all__ = [
    # Base
    "Entity",
    "ValueObject",
    # Entities
    "FileRef",
    "GeoPoint",
    "Notification",
    "Order",
    "Payment",
    "PrintConfig",
    "Shop",
    "ShopPricing",
    "User",
    "UserRole",
    # Events
    "PAYLOAD_TYPES",
    "DomainEvent",
    "EventPayload",
    "EventType",
    "OrderCancelled",
    "OrderCompleted",
    "OrderConfirmed",
    "OrderCreated",
    "OrderReady",
    "PaymentFailed",
    "PaymentSucceeded",
    "ShopRegistered",
    # Exceptions
    "AuthenticationError",
    "AuthorizationError",
    "ChannelDeliveryError",
    "ConcurrentUpdateError",
    "DomainError",
    "InfrastructureError",
    "InvalidStateTransitionError",
    "MessageFormatError",
    "NotFoundError",
    "ValidationError",
    # Pricing
    "PricingBreakdown",
    "calculate_price",
    # State machines
    "OrderStatus",
    "PaymentStatus",
]
