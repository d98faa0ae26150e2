"""Order application service.

Orchestrates the order lifecycle:
- Creating orders priced by the pricing engine
- Validating and persisting status transitions
- Emitting exactly one domain event per successful transition
- Best-effort realtime pushes to the customer and the shop
"""

import math
import secrets
import string
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import uuid4

import structlog

from app.application.event_bus import EventBus
from app.application.pricing_service import PricingService, validate_print_config
from app.domain.entities import FileRef, GeoPoint, Order, PrintConfig, Shop
from app.domain.events import (
    EventPayload,
    OrderCancelled,
    OrderCompleted,
    OrderConfirmed,
    OrderCreated,
    OrderReady,
)
from app.domain.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.domain.state_machines import OrderStatus, validate_order_transition
from app.infrastructure.auth import Identity
from app.infrastructure.realtime import RealtimeEvent, RealtimeGateway
from app.infrastructure.repositories import OrderRepository, ShopRepository

logger = structlog.get_logger()

DEFAULT_CANCEL_REASON = "Cancelled by shop"
PAYMENT_METHODS = ("cod", "online")

_ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number(now: datetime | None = None) -> str:
    """Human-facing order number, e.g. ``QP-20240106-K3Z9QA``."""
    now = now or datetime.now(timezone.utc)
    suffix = "".join(secrets.choice(_ORDER_NUMBER_ALPHABET) for _ in range(6))
    return f"QP-{now:%Y%m%d}-{suffix}"


# ============================================================================
# Status Events
# ============================================================================


def _confirmed(order: Order, reason: str | None) -> EventPayload:
    return OrderConfirmed(order_id=order.id, user_id=order.user_id)


def _ready(order: Order, reason: str | None) -> EventPayload:
    return OrderReady(order_id=order.id, user_id=order.user_id)


def _completed(order: Order, reason: str | None) -> EventPayload:
    return OrderCompleted(order_id=order.id, user_id=order.user_id, total_cost=order.total_cost)


def _cancelled(order: Order, reason: str | None) -> EventPayload:
    return OrderCancelled(
        order_id=order.id,
        user_id=order.user_id,
        reason=reason or DEFAULT_CANCEL_REASON,
    )


# Event emitted for each reachable target status
STATUS_EVENTS: dict[OrderStatus, Callable[[Order, str | None], EventPayload]] = {
    OrderStatus.ACCEPTED: _confirmed,
    OrderStatus.READY: _ready,
    OrderStatus.COMPLETED: _completed,
    OrderStatus.CANCELLED: _cancelled,
}


# ============================================================================
# Result Types
# ============================================================================


@dataclass
class OrderPage:
    """One page of an order listing."""

    orders: list[Order]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> dict[str, int]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
        }


# ============================================================================
# Service
# ============================================================================


class OrderService:
    """Service for the print order lifecycle.

    The service is the sole writer of ``Order.status``.
    """

    def __init__(
        self,
        orders: OrderRepository,
        shops: ShopRepository,
        pricing: PricingService,
        event_bus: EventBus,
        realtime: RealtimeGateway | None = None,
    ) -> None:
        self.orders = orders
        self.shops = shops
        self.pricing = pricing
        self.event_bus = event_bus
        self.realtime = realtime

    async def _get_shop(self, shop_id: str) -> Shop:
        shop = await self.shops.get(shop_id)
        if shop is None:
            raise NotFoundError("Shop", shop_id)
        return shop

    async def _get_order(self, order_id: str) -> Order:
        order = await self.orders.get(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    async def create_order(
        self,
        user_id: str,
        shop_id: str,
        file: FileRef,
        print_config: PrintConfig,
        user_lat: float,
        user_lng: float,
        payment_method: str = "cod",
    ) -> Order:
        """Place a new order.

        Args:
            user_id: Customer placing the order.
            shop_id: Target shop.
            file: Uploaded document reference.
            print_config: Requested print job.
            user_lat: Customer latitude.
            user_lng: Customer longitude.
            payment_method: "cod" or "online".

        Returns:
            The persisted PENDING order.

        Raises:
            ValidationError: If the job is invalid or the shop is inactive.
            NotFoundError: If the shop does not exist.
        """
        validate_print_config(print_config)
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(
                f"Unsupported payment method: {payment_method}",
                details={"payment_method": payment_method, "allowed": list(PAYMENT_METHODS)},
            )

        shop = await self._get_shop(shop_id)
        if not shop.is_active:
            raise ValidationError(
                "Shop is currently not accepting orders",
                details={"shop_id": shop_id},
            )

        breakdown = await self.pricing.quote_for_shop(
            shop, GeoPoint(lat=user_lat, lng=user_lng), print_config
        )

        now = datetime.now(timezone.utc)
        order = Order(
            id=str(uuid4()),
            order_number=generate_order_number(now),
            user_id=user_id,
            shop_id=shop.id,
            file=file,
            print_config=print_config,
            total_cost=breakdown.total,
            status=OrderStatus.PENDING,
            payment_method=payment_method,
            payment_status="pending",
            created_at=now,
            updated_at=now,
        )
        await self.orders.add(order)

        logger.info(
            "Order created",
            order_id=order.id,
            order_number=order.order_number,
            shop_id=shop.id,
            total_cost=str(order.total_cost),
        )

        await self.event_bus.publish(
            OrderCreated.event_type,
            OrderCreated(
                order_id=order.id,
                user_id=user_id,
                shop_id=shop.id,
                order_number=order.order_number,
            ),
        )

        if self.realtime:
            data = {
                "id": order.id,
                "orderNumber": order.order_number,
                "shopId": order.shop_id,
                "userId": order.user_id,
                "file": order.file.to_dict(),
                "totalCost": float(order.total_cost),
                "createdAt": order.created_at.isoformat(),
            }
            await self.realtime.emit_to_shop(order.shop_id, RealtimeEvent.ORDER_CREATED, data)
            await self.realtime.emit_to_user(order.user_id, RealtimeEvent.ORDER_CREATED, data)

        return order

    async def update_status(
        self,
        order_id: str,
        target_status: OrderStatus,
        actor: Identity,
        reason: str | None = None,
    ) -> Order:
        """Move an order to a new status.

        Args:
            order_id: Order to update.
            target_status: Requested status.
            actor: Caller; must own the order's shop or be an admin.
            reason: Free-text reason, used for cancellations.

        Returns:
            The updated order.

        Raises:
            NotFoundError: If the order or its shop does not exist.
            AuthorizationError: If the actor is neither shop owner nor admin.
            InvalidStateTransitionError: If the transition is not allowed.
            ConcurrentUpdateError: If another writer changed the order first.
        """
        order = await self._get_order(order_id)

        if not actor.is_admin:
            shop = await self._get_shop(order.shop_id)
            if shop.owner_id != actor.user_id:
                raise AuthorizationError(actor.user_id, "update status of", f"order {order_id}")

        validate_order_transition(order.id, order.status, target_status)

        previous_status = order.status
        updated = await self.orders.update_status(
            order.id, target_status, expected_version=order.version
        )

        logger.info(
            "Order status updated",
            order_id=order.id,
            previous_status=previous_status.value,
            new_status=target_status.value,
            actor_id=actor.user_id,
        )

        build_payload = STATUS_EVENTS.get(target_status)
        if build_payload is not None:
            payload = build_payload(updated, reason)
            await self.event_bus.publish(payload.event_type, payload)

        if self.realtime:
            data = {
                "orderId": updated.id,
                "orderNumber": updated.order_number,
                "previousStatus": previous_status.value,
                "newStatus": updated.status.value,
                "updatedAt": updated.updated_at.isoformat(),
            }
            await self.realtime.emit_to_user(
                updated.user_id, RealtimeEvent.ORDER_STATUS_CHANGED, data
            )
            await self.realtime.emit_to_shop(
                updated.shop_id, RealtimeEvent.ORDER_STATUS_CHANGED, data
            )

        return updated

    async def get_order(self, order_id: str, viewer: Identity) -> Order:
        """Get an order visible to the viewer.

        Raises:
            NotFoundError: If the order does not exist.
            AuthorizationError: If the viewer is not the customer, the shop
                owner or an admin.
        """
        order = await self._get_order(order_id)
        if viewer.is_admin or order.user_id == viewer.user_id:
            return order

        shop = await self.shops.get(order.shop_id)
        if shop is None or shop.owner_id != viewer.user_id:
            raise AuthorizationError(viewer.user_id, "view", f"order {order_id}")
        return order

    async def list_user_orders(
        self,
        user_id: str,
        status: OrderStatus | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> OrderPage:
        """List a customer's orders, newest first."""
        orders, total = await self.orders.list_for_user(user_id, status, page, limit)
        return OrderPage(orders=orders, page=page, limit=limit, total=total)

    async def list_shop_orders(
        self,
        owner_id: str,
        status: OrderStatus | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> OrderPage:
        """List the orders of the shop owned by ``owner_id``, newest first.

        Raises:
            NotFoundError: If the owner has no shop.
        """
        shop = await self.shops.get_by_owner(owner_id)
        if shop is None:
            raise NotFoundError("Shop", owner_id)
        orders, total = await self.orders.list_for_shop(shop.id, status, page, limit)
        return OrderPage(orders=orders, page=page, limit=limit, total=total)
