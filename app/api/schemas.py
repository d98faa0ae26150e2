"""Pydantic schemas for API request/response validation.

Request and response bodies use camelCase on the wire; error bodies keep
the ``error_code``/``message``/``details``/``request_id`` shape.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.domain.entities import FileRef, Notification, Order, Payment, PrintConfig, Shop, ShopPricing
from app.domain.pricing import CURRENCY, PricingBreakdown
from app.domain.state_machines import OrderStatus, PaymentStatus


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | list[Any] = Field(
        default_factory=dict, description="Additional error context"
    )
    request_id: str | None = Field(default=None, description="Request ID for correlation")


class PaginationSchema(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


# ============================================================================
# Order Schemas
# ============================================================================


class PrintConfigSchema(CamelModel):
    """Print job options."""

    pages: int = Field(..., ge=1, description="Pages in the document")
    copies: int = Field(default=1, ge=1, description="Number of copies")
    color: bool = Field(default=False, description="Color printing")
    double_sided: bool = Field(default=False, description="Duplex printing")
    binding: str | None = Field(default=None, description="Binding option")

    def to_domain(self) -> PrintConfig:
        return PrintConfig(
            pages=self.pages,
            copies=self.copies,
            color=self.color,
            double_sided=self.double_sided,
            binding=self.binding,
        )

    @classmethod
    def from_domain(cls, config: PrintConfig) -> "PrintConfigSchema":
        return cls(
            pages=config.pages,
            copies=config.copies,
            color=config.color,
            double_sided=config.double_sided,
            binding=config.binding,
        )


class FileSchema(CamelModel):
    """Uploaded document reference."""

    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    pages: int | None = Field(default=None, ge=1)

    def to_domain(self) -> FileRef:
        return FileRef(name=self.name, url=self.url, pages=self.pages)


class OrderCreateRequest(CamelModel):
    """Request to place a print order."""

    shop_id: str
    file: FileSchema
    print_config: PrintConfigSchema
    user_lat: float = Field(..., ge=-90, le=90)
    user_lng: float = Field(..., ge=-180, le=180)
    payment_method: Literal["cod", "online"] = "cod"


class OrderStatusUpdateRequest(CamelModel):
    """Request to move an order to a new status."""

    status: OrderStatus
    reason: str | None = Field(default=None, max_length=500)


class OrderResponse(CamelModel):
    """Print order."""

    id: str
    order_number: str
    user_id: str
    shop_id: str
    file: FileSchema
    print_config: PrintConfigSchema
    total_cost: float
    status: OrderStatus
    payment_method: str
    payment_status: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            shop_id=order.shop_id,
            file=FileSchema(name=order.file.name, url=order.file.url, pages=order.file.pages),
            print_config=PrintConfigSchema.from_domain(order.print_config),
            total_cost=float(order.total_cost),
            status=order.status,
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrdersListResponse(CamelModel):
    orders: list[OrderResponse]
    pagination: PaginationSchema


# ============================================================================
# Pricing Schemas
# ============================================================================


class PriceQuoteRequest(CamelModel):
    """Request for a price quote."""

    shop_id: str
    user_lat: float = Field(..., ge=-90, le=90)
    user_lng: float = Field(..., ge=-180, le=180)
    print_config: PrintConfigSchema


class PricingBreakdownResponse(CamelModel):
    """Fee breakdown in rupees."""

    base_cost: float
    distance_km: float
    distance_multiplier: float
    surge_multiplier: float
    surge_reason: str | None
    subtotal: float
    platform_fee: float
    convenience_fee: float
    gst: float
    total: float
    currency: str = CURRENCY

    @classmethod
    def from_domain(cls, breakdown: PricingBreakdown) -> "PricingBreakdownResponse":
        return cls.model_validate(breakdown.to_dict())


class SurgeInfoResponse(CamelModel):
    surge_active: bool
    multiplier: float
    reason: str | None
    level: Literal["low", "medium", "high"]


# ============================================================================
# Shop Schemas
# ============================================================================


class ShopPricingSchema(CamelModel):
    """Per-page rates in rupees."""

    bw_single: float = Field(default=2, gt=0)
    bw_double: float = Field(default=1.5, gt=0)
    color_single: float = Field(default=5, gt=0)
    color_double: float = Field(default=4, gt=0)
    binding: float = Field(default=20, ge=0)

    def to_domain(self) -> ShopPricing:
        return ShopPricing.from_dict(self.model_dump(by_alias=True))

    @classmethod
    def from_domain(cls, pricing: ShopPricing) -> "ShopPricingSchema":
        return cls(
            bw_single=float(pricing.bw_single),
            bw_double=float(pricing.bw_double),
            color_single=float(pricing.color_single),
            color_double=float(pricing.color_double),
            binding=float(pricing.binding),
        )


class ShopCreateRequest(CamelModel):
    """Request to register a print shop."""

    business_name: str = Field(..., min_length=1, max_length=255)
    address: str | None = None
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    pricing: ShopPricingSchema | None = None


class ShopResponse(CamelModel):
    id: str
    owner_id: str
    business_name: str
    address: str | None
    lat: float
    lng: float
    pricing: ShopPricingSchema
    is_active: bool
    created_at: datetime

    @classmethod
    def from_domain(cls, shop: Shop) -> "ShopResponse":
        return cls(
            id=shop.id,
            owner_id=shop.owner_id,
            business_name=shop.business_name,
            address=shop.address,
            lat=shop.location.lat,
            lng=shop.location.lng,
            pricing=ShopPricingSchema.from_domain(shop.pricing),
            is_active=shop.is_active,
            created_at=shop.created_at,
        )


# ============================================================================
# Payment Schemas
# ============================================================================


class PaymentResponse(CamelModel):
    """Payment for an order."""

    id: str
    order_id: str
    amount: float
    currency: str = CURRENCY
    status: PaymentStatus
    provider_order_id: str
    provider_payment_id: str | None = None
    key_id: str | None = Field(default=None, description="Public gateway key for checkout")

    @classmethod
    def from_domain(cls, payment: Payment, key_id: str | None = None) -> "PaymentResponse":
        return cls(
            id=payment.id,
            order_id=payment.order_id,
            amount=float(payment.amount),
            status=payment.status,
            provider_order_id=payment.provider_order_id,
            provider_payment_id=payment.provider_payment_id,
            key_id=key_id,
        )


class PaymentVerifyRequest(CamelModel):
    """Checkout result handed back by the client."""

    order_id: str
    provider_payment_id: str = Field(..., min_length=1)
    signature: str


# ============================================================================
# Notification Schemas
# ============================================================================


class NotificationResponse(CamelModel):
    id: str
    type: str
    title: str
    message: str
    order_id: str | None
    read: bool
    created_at: datetime

    @classmethod
    def from_domain(cls, notification: Notification) -> "NotificationResponse":
        return cls(
            id=notification.id,
            type=notification.type,
            title=notification.title,
            message=notification.message,
            order_id=notification.order_id,
            read=notification.read,
            created_at=notification.created_at,
        )


class NotificationsListResponse(CamelModel):
    notifications: list[NotificationResponse]


class UnreadCountResponse(CamelModel):
    count: int


class MarkAllReadResponse(CamelModel):
    updated: int
