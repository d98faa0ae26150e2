"""Domain entities and value objects for the print marketplace.

Entities:
- User: student, shop owner or administrator
- Shop: a print shop with location and per-page rate table
- Order: a print job placed by a user at a shop
- Payment: at most one per order
- Notification: in-app notification for a user
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from app.domain.base import Entity, ValueObject
from app.domain.state_machines import OrderStatus, PaymentStatus

NO_BINDING = "No Binding"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_paise(amount: Decimal) -> int:
    """Convert a rupee amount to integer paise."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_paise(paise: int) -> Decimal:
    """Convert integer paise to a rupee amount with two decimals."""
    return (Decimal(paise) / 100).quantize(Decimal("0.01"))


# ============================================================================
# Value Objects
# ============================================================================


@dataclass(frozen=True)
class GeoPoint(ValueObject):
    """Latitude/longitude pair in decimal degrees."""

    lat: float
    lng: float


@dataclass(frozen=True)
class PrintConfig(ValueObject):
    """What to print and how.

    Attributes:
        pages: Pages in the document.
        copies: Number of copies.
        color: Color print when True, black & white otherwise.
        double_sided: Duplex printing.
        binding: Binding option label, None or "No Binding" for none.
    """

    pages: int
    copies: int = 1
    color: bool = False
    double_sided: bool = False
    binding: str | None = None

    @property
    def wants_binding(self) -> bool:
        return bool(self.binding) and self.binding != NO_BINDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "pages": self.pages,
            "copies": self.copies,
            "color": self.color,
            "doubleSided": self.double_sided,
            "binding": self.binding,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PrintConfig":
        return cls(
            pages=int(data["pages"]),
            copies=int(data.get("copies", 1)),
            color=bool(data.get("color", False)),
            double_sided=bool(data.get("doubleSided", False)),
            binding=data.get("binding"),
        )


@dataclass(frozen=True)
class FileRef(ValueObject):
    """Reference to an uploaded document in object storage."""

    name: str
    url: str
    pages: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "url": self.url, "pages": self.pages}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FileRef":
        return cls(name=data["name"], url=data["url"], pages=data.get("pages"))


@dataclass(frozen=True)
class ShopPricing(ValueObject):
    """Per-page rate table for a shop, in rupees.

    Missing entries in a stored table fall back to the platform defaults.
    """

    bw_single: Decimal = Decimal("2")
    bw_double: Decimal = Decimal("1.5")
    color_single: Decimal = Decimal("5")
    color_double: Decimal = Decimal("4")
    binding: Decimal = Decimal("20")

    def per_page_rate(self, color: bool, double_sided: bool) -> Decimal:
        """Look up the per-page rate for a (color, duplex) combination."""
        if color:
            return self.color_double if double_sided else self.color_single
        return self.bw_double if double_sided else self.bw_single

    def to_dict(self) -> dict[str, str]:
        return {
            "bwSingle": str(self.bw_single),
            "bwDouble": str(self.bw_double),
            "colorSingle": str(self.color_single),
            "colorDouble": str(self.color_double),
            "binding": str(self.binding),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ShopPricing":
        data = data or {}
        defaults = cls()

        def rate(key: str, default: Decimal) -> Decimal:
            value = data.get(key)
            # Zero or missing rates fall back to the default
            return Decimal(str(value)) if value else default

        return cls(
            bw_single=rate("bwSingle", defaults.bw_single),
            bw_double=rate("bwDouble", defaults.bw_double),
            color_single=rate("colorSingle", defaults.color_single),
            color_double=rate("colorDouble", defaults.color_double),
            binding=rate("binding", defaults.binding),
        )


# ============================================================================
# Entities
# ============================================================================


class UserRole(str, Enum):
    """Marketplace roles."""

    STUDENT = "STUDENT"
    SHOP_OWNER = "SHOP_OWNER"
    ADMIN = "ADMIN"


@dataclass(kw_only=True, eq=False)
class User(Entity[str]):
    """Marketplace user."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    role: UserRole = UserRole.STUDENT

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass(kw_only=True, eq=False)
class Shop(Entity[str]):
    """Print shop listed on the marketplace."""

    owner_id: str
    business_name: str
    location: GeoPoint
    address: str | None = None
    pricing: ShopPricing = field(default_factory=ShopPricing)
    is_active: bool = True
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(kw_only=True, eq=False)
class Order(Entity[str]):
    """Print order.

    ``status`` changes only through the order state machine and
    ``total_cost`` is fixed when the order is created.

    Attributes:
        version: Optimistic locking version, bumped on every status write.
    """

    order_number: str
    user_id: str
    shop_id: str
    file: FileRef
    print_config: PrintConfig
    total_cost: Decimal
    status: OrderStatus = OrderStatus.PENDING
    payment_method: str = "cod"
    payment_status: str = "pending"
    version: int = 1
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "orderNumber": self.order_number,
            "userId": self.user_id,
            "shopId": self.shop_id,
            "file": self.file.to_dict(),
            "printConfig": self.print_config.to_dict(),
            "totalCost": float(self.total_cost),
            "status": self.status.value,
            "paymentMethod": self.payment_method,
            "paymentStatus": self.payment_status,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass(kw_only=True, eq=False)
class Payment(Entity[str]):
    """Payment for an order through the external gateway."""

    order_id: str
    amount: Decimal
    provider_order_id: str
    provider_payment_id: str | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


@dataclass(kw_only=True, eq=False)
class Notification(Entity[str]):
    """In-app notification shown in the user's notification tray."""

    user_id: str
    type: str
    title: str
    message: str
    order_id: str | None = None
    read: bool = False
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "orderId": self.order_id,
            "read": self.read,
            "createdAt": self.created_at.isoformat(),
        }
