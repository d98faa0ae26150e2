"""Domain events for the print marketplace.

Domain events represent significant occurrences in the order lifecycle.
They are created and consumed in-process by the event bus and are used for:
- Writing in-app notifications
- Handing off durable messages to the notification worker
- Analytics and file-processing fan-out

The event vocabulary is closed: ``EventType`` lists every kind, and
``PAYLOAD_TYPES`` maps each kind to its typed payload. The same strings are
used as ``eventType`` on the queue wire format.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar
from uuid import uuid4

from app.domain.exceptions import MessageFormatError


class EventType(str, Enum):
    """Closed set of domain event kinds."""

    ORDER_CREATED = "order.created"
    ORDER_CONFIRMED = "order.confirmed"
    ORDER_READY = "order.ready"
    ORDER_COMPLETED = "order.completed"
    ORDER_CANCELLED = "order.cancelled"
    PAYMENT_SUCCESS = "payment.success"
    PAYMENT_FAILED = "payment.failed"
    SHOP_REGISTERED = "shop.registered"

    @classmethod
    def parse(cls, value: Any) -> "EventType":
        """Parse a wire event type.

        Raises:
            MessageFormatError: If the value is not a known event type.
        """
        try:
            return cls(value)
        except ValueError as e:
            raise MessageFormatError(
                f"Unknown event type: {value!r}",
                details={"event_type": value},
            ) from e


# ============================================================================
# Payloads
# ============================================================================


@dataclass(frozen=True)
class EventPayload(ABC):
    """Base class for typed event payloads."""

    event_type: ClassVar[EventType]

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible wire form."""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EventPayload":
        """Build a payload from its wire form.

        Raises:
            MessageFormatError: If a required key is missing or malformed.
        """
        try:
            return cls._from_dict(data)
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            raise MessageFormatError(
                f"Malformed {cls.event_type.value} payload: {e}",
                details={"event_type": cls.event_type.value},
            ) from e

    @classmethod
    @abstractmethod
    def _from_dict(cls, data: dict[str, Any]) -> "EventPayload":
        """Build from wire form; may raise KeyError/TypeError/ValueError."""


@dataclass(frozen=True)
class OrderCreated(EventPayload):
    """Raised when a student places an order."""

    event_type: ClassVar[EventType] = EventType.ORDER_CREATED

    order_id: str
    user_id: str
    shop_id: str
    order_number: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "orderId": self.order_id,
            "userId": self.user_id,
            "shopId": self.shop_id,
            "orderNumber": self.order_number,
        }

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "OrderCreated":
        return cls(
            order_id=data["orderId"],
            user_id=data["userId"],
            shop_id=data["shopId"],
            order_number=data["orderNumber"],
        )


@dataclass(frozen=True)
class OrderConfirmed(EventPayload):
    """Raised when the shop accepts an order."""

    event_type: ClassVar[EventType] = EventType.ORDER_CONFIRMED

    order_id: str
    user_id: str

    def to_dict(self) -> dict[str, Any]:
        return {"orderId": self.order_id, "userId": self.user_id}

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "OrderConfirmed":
        return cls(order_id=data["orderId"], user_id=data["userId"])


@dataclass(frozen=True)
class OrderReady(EventPayload):
    """Raised when the prints are ready for pickup."""

    event_type: ClassVar[EventType] = EventType.ORDER_READY

    order_id: str
    user_id: str

    def to_dict(self) -> dict[str, Any]:
        return {"orderId": self.order_id, "userId": self.user_id}

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "OrderReady":
        return cls(order_id=data["orderId"], user_id=data["userId"])


@dataclass(frozen=True)
class OrderCompleted(EventPayload):
    """Raised when the order is handed over."""

    event_type: ClassVar[EventType] = EventType.ORDER_COMPLETED

    order_id: str
    user_id: str
    total_cost: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "orderId": self.order_id,
            "userId": self.user_id,
            "totalCost": float(self.total_cost),
        }

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "OrderCompleted":
        return cls(
            order_id=data["orderId"],
            user_id=data["userId"],
            total_cost=Decimal(str(data["totalCost"])),
        )


@dataclass(frozen=True)
class OrderCancelled(EventPayload):
    """Raised when an order is cancelled."""

    event_type: ClassVar[EventType] = EventType.ORDER_CANCELLED

    order_id: str
    user_id: str
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"orderId": self.order_id, "userId": self.user_id, "reason": self.reason}

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "OrderCancelled":
        return cls(
            order_id=data["orderId"],
            user_id=data["userId"],
            reason=data.get("reason"),
        )


@dataclass(frozen=True)
class PaymentSucceeded(EventPayload):
    """Raised when the gateway confirms a payment."""

    event_type: ClassVar[EventType] = EventType.PAYMENT_SUCCESS

    order_id: str
    user_id: str
    amount: Decimal
    payment_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "orderId": self.order_id,
            "userId": self.user_id,
            "amount": float(self.amount),
            "paymentId": self.payment_id,
        }

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "PaymentSucceeded":
        return cls(
            order_id=data["orderId"],
            user_id=data["userId"],
            amount=Decimal(str(data["amount"])),
            payment_id=data["paymentId"],
        )


@dataclass(frozen=True)
class PaymentFailed(EventPayload):
    """Raised when the gateway rejects a payment."""

    event_type: ClassVar[EventType] = EventType.PAYMENT_FAILED

    order_id: str
    user_id: str
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"orderId": self.order_id, "userId": self.user_id, "reason": self.reason}

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "PaymentFailed":
        return cls(order_id=data["orderId"], user_id=data["userId"], reason=data["reason"])


@dataclass(frozen=True)
class ShopRegistered(EventPayload):
    """Raised when a new print shop joins the marketplace."""

    event_type: ClassVar[EventType] = EventType.SHOP_REGISTERED

    shop_id: str
    owner_id: str
    business_name: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "shopId": self.shop_id,
            "ownerId": self.owner_id,
            "businessName": self.business_name,
        }

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "ShopRegistered":
        return cls(
            shop_id=data["shopId"],
            owner_id=data["ownerId"],
            business_name=data["businessName"],
        )


# ============================================================================
# Event Envelope
# ============================================================================


@dataclass(frozen=True)
class DomainEvent:
    """An in-process notification of a state change.

    Attributes:
        event_type: Kind of event.
        payload: Typed payload matching ``event_type``.
        event_id: Unique identifier for this event instance.
        timestamp: When the event was published.
    """

    event_type: EventType
    payload: EventPayload
    event_id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for logging and serialization."""
        return {
            "eventId": self.event_id,
            "eventType": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "payload": self.payload.to_dict(),
        }


# ============================================================================
# Payload Registry
# ============================================================================


# Registry of payload types for deserialization
PAYLOAD_TYPES: dict[EventType, type[EventPayload]] = {
    EventType.ORDER_CREATED: OrderCreated,
    EventType.ORDER_CONFIRMED: OrderConfirmed,
    EventType.ORDER_READY: OrderReady,
    EventType.ORDER_COMPLETED: OrderCompleted,
    EventType.ORDER_CANCELLED: OrderCancelled,
    EventType.PAYMENT_SUCCESS: PaymentSucceeded,
    EventType.PAYMENT_FAILED: PaymentFailed,
    EventType.SHOP_REGISTERED: ShopRegistered,
}


def parse_payload(event_type: EventType, data: Any) -> EventPayload:
    """Parse a wire payload into its typed form.

    Args:
        event_type: Event kind.
        data: Decoded JSON payload.

    Returns:
        Typed payload instance.

    Raises:
        MessageFormatError: If the payload is not an object or is malformed.
    """
    if not isinstance(data, dict):
        raise MessageFormatError(
            f"Payload for {event_type.value} must be an object",
            details={"event_type": event_type.value},
        )
    return PAYLOAD_TYPES[event_type].from_dict(data)


# ============================================================================
# Notification Delivery Context
# ============================================================================


@dataclass(frozen=True)
class DeliveryContext:
    """Recipient details attached to ``notifications`` queue messages.

    Resolved in the API process when the event is handed to the queue, so
    the notification worker never reads Order state.
    """

    user_id: str
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    order_number: str | None = None
    shop_name: str | None = None
    shop_address: str | None = None
    total_cost: Decimal | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "orderNumber": self.order_number,
            "shopName": self.shop_name,
            "shopAddress": self.shop_address,
            "totalCost": float(self.total_cost) if self.total_cost is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "DeliveryContext":
        """Parse the ``delivery`` object of a queue payload.

        Raises:
            MessageFormatError: If the object is missing or has no userId.
        """
        if not isinstance(data, dict) or not data.get("userId"):
            raise MessageFormatError("Notification message has no delivery recipient")
        total_cost = data.get("totalCost")
        try:
            return cls(
                user_id=data["userId"],
                name=data.get("name"),
                phone=data.get("phone"),
                email=data.get("email"),
                order_number=data.get("orderNumber"),
                shop_name=data.get("shopName"),
                shop_address=data.get("shopAddress"),
                total_cost=Decimal(str(total_cost)) if total_cost is not None else None,
            )
        except ArithmeticError as e:
            raise MessageFormatError(f"Invalid delivery totalCost: {total_cost!r}") from e
