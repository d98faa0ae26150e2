"""Tests for the order lifecycle service."""

import re
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch
from zoneinfo import ZoneInfo

import pytest

from app.application.order_service import OrderService, generate_order_number
from app.application.pricing_service import PricingService
from app.domain.entities import GeoPoint, PrintConfig, Shop, UserRole
from app.domain.events import EventType
from app.domain.exceptions import (
    AuthorizationError,
    ConcurrentUpdateError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from app.domain.state_machines import OrderStatus
from app.infrastructure.auth import Identity
from app.infrastructure.realtime import RealtimeEvent

# Monday 08:00 in the pricing time zone: no peak surcharge
QUIET_MORNING = datetime(2024, 1, 8, 8, 0, tzinfo=ZoneInfo("Asia/Kolkata"))

OWNER = Identity("owner-1", UserRole.SHOP_OWNER, "shop-1")
STUDENT = Identity("student-1")
ADMIN = Identity("admin-1", UserRole.ADMIN)


@pytest.fixture
def realtime() -> MagicMock:
    gateway = MagicMock()
    gateway.emit_to_user = AsyncMock(return_value=1)
    gateway.emit_to_shop = AsyncMock(return_value=1)
    return gateway


@pytest.fixture
def service(repos, event_bus, realtime) -> OrderService:
    pricing = PricingService(repos.shops, repos.orders, "Asia/Kolkata")
    pricing.now = MagicMock(return_value=QUIET_MORNING)
    return OrderService(repos.orders, repos.shops, pricing, event_bus, realtime)


async def _place(service: OrderService, file, **overrides):
    kwargs = {
        "user_id": "student-1",
        "shop_id": "shop-1",
        "file": file,
        "print_config": PrintConfig(pages=10, copies=2),
        "user_lat": 12.9716,
        "user_lng": 77.5946,
    }
    kwargs.update(overrides)
    return await service.create_order(**kwargs)


def test_order_number_format() -> None:
    assert re.fullmatch(r"QP-20240106-[A-Z0-9]{6}", generate_order_number(datetime(2024, 1, 6)))


class TestCreateOrder:
    """Tests for placing orders."""

    @pytest.mark.asyncio
    async def test_creates_priced_pending_order(self, service, seed, sample_file, published) -> None:
        order = await _place(service, sample_file)

        assert order.status == OrderStatus.PENDING
        assert order.total_cost == Decimal("44.72")
        assert order.payment_method == "cod"
        assert order.version == 1
        stored = await service.orders.get(order.id)
        assert stored.order_number == order.order_number

    @pytest.mark.asyncio
    async def test_publishes_one_created_event(self, service, seed, sample_file, published) -> None:
        order = await _place(service, sample_file)

        assert [e.event_type for e in published] == [EventType.ORDER_CREATED]
        assert published[0].payload.to_dict() == {
            "orderId": order.id,
            "userId": "student-1",
            "shopId": "shop-1",
            "orderNumber": order.order_number,
        }

    @pytest.mark.asyncio
    async def test_pushes_to_shop_and_customer(self, service, seed, sample_file, realtime) -> None:
        order = await _place(service, sample_file)

        shop_call = realtime.emit_to_shop.await_args
        assert shop_call.args[:2] == ("shop-1", RealtimeEvent.ORDER_CREATED)
        assert shop_call.args[2]["orderNumber"] == order.order_number
        realtime.emit_to_user.assert_awaited_once()
        assert realtime.emit_to_user.await_args.args[0] == "student-1"

    @pytest.mark.asyncio
    async def test_invalid_pages_rejected(self, service, seed, sample_file, published) -> None:
        with pytest.raises(ValidationError):
            await _place(service, sample_file, print_config=PrintConfig(pages=0))

        assert published == []
        _, total = await service.orders.list_for_user("student-1")
        assert total == 0

    @pytest.mark.asyncio
    async def test_unknown_payment_method_rejected(self, service, seed, sample_file) -> None:
        with pytest.raises(ValidationError):
            await _place(service, sample_file, payment_method="barter")

    @pytest.mark.asyncio
    async def test_unknown_shop(self, service, seed, sample_file) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await _place(service, sample_file, shop_id="missing")
        assert exc_info.value.error_code == "SHOP_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_inactive_shop_rejected(self, service, repos, seed, sample_file, published) -> None:
        await repos.shops.add(
            Shop(
                id="shop-closed",
                owner_id="student-2",
                business_name="Closed Copies",
                location=GeoPoint(12.97, 77.59),
                is_active=False,
            )
        )

        with pytest.raises(ValidationError):
            await _place(service, sample_file, shop_id="shop-closed")
        assert published == []


class TestUpdateStatus:
    """Tests for status transitions."""

    @pytest.mark.asyncio
    async def test_owner_accepts_order(self, service, seed, sample_file, published, realtime) -> None:
        order = await _place(service, sample_file)
        published.clear()

        updated = await service.update_status(order.id, OrderStatus.ACCEPTED, OWNER)

        assert updated.status == OrderStatus.ACCEPTED
        assert updated.version == 2
        assert [e.event_type for e in published] == [EventType.ORDER_CONFIRMED]

        user_id, event, data = realtime.emit_to_user.await_args.args
        assert (user_id, event) == ("student-1", RealtimeEvent.ORDER_STATUS_CHANGED)
        assert data["previousStatus"] == "PENDING"
        assert data["newStatus"] == "ACCEPTED"

    @pytest.mark.asyncio
    async def test_full_lifecycle_emits_one_event_per_step(
        self, service, seed, sample_file, published
    ) -> None:
        order = await _place(service, sample_file)
        published.clear()

        for status in (OrderStatus.ACCEPTED, OrderStatus.READY, OrderStatus.COMPLETED):
            await service.update_status(order.id, status, OWNER)

        assert [e.event_type for e in published] == [
            EventType.ORDER_CONFIRMED,
            EventType.ORDER_READY,
            EventType.ORDER_COMPLETED,
        ]
        assert published[-1].payload.total_cost == Decimal("44.72")

    @pytest.mark.asyncio
    async def test_cancel_uses_default_reason(self, service, seed, sample_file, published) -> None:
        order = await _place(service, sample_file)
        published.clear()

        await service.update_status(order.id, OrderStatus.CANCELLED, OWNER)

        assert published[0].payload.reason == "Cancelled by shop"

    @pytest.mark.asyncio
    async def test_cancel_keeps_given_reason(self, service, seed, sample_file, published) -> None:
        order = await _place(service, sample_file)
        published.clear()

        await service.update_status(order.id, OrderStatus.CANCELLED, OWNER, reason="Printer down")

        assert published[0].payload.reason == "Printer down"

    @pytest.mark.asyncio
    async def test_invalid_transition_emits_nothing(
        self, service, seed, sample_file, published
    ) -> None:
        order = await _place(service, sample_file)
        published.clear()

        with pytest.raises(InvalidStateTransitionError):
            await service.update_status(order.id, OrderStatus.COMPLETED, OWNER)

        assert published == []
        assert (await service.orders.get(order.id)).status == OrderStatus.PENDING

    @pytest.mark.asyncio
    async def test_terminal_order_cannot_move(self, service, seed, sample_file) -> None:
        order = await _place(service, sample_file)
        await service.update_status(order.id, OrderStatus.CANCELLED, OWNER)

        with pytest.raises(InvalidStateTransitionError):
            await service.update_status(order.id, OrderStatus.ACCEPTED, OWNER)

    @pytest.mark.asyncio
    async def test_customer_cannot_update(self, service, seed, sample_file, published) -> None:
        order = await _place(service, sample_file)
        published.clear()

        with pytest.raises(AuthorizationError):
            await service.update_status(order.id, OrderStatus.CANCELLED, STUDENT)
        assert published == []

    @pytest.mark.asyncio
    async def test_admin_can_update(self, service, seed, sample_file) -> None:
        order = await _place(service, sample_file)

        updated = await service.update_status(order.id, OrderStatus.ACCEPTED, ADMIN)

        assert updated.status == OrderStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_missing_order(self, service, seed) -> None:
        with pytest.raises(NotFoundError):
            await service.update_status("missing", OrderStatus.ACCEPTED, OWNER)

    @pytest.mark.asyncio
    async def test_lost_race_emits_nothing(self, service, seed, sample_file, published) -> None:
        """A writer holding a stale version fails without side effects."""
        order = await _place(service, sample_file)
        stale = await service.orders.get(order.id)
        await service.orders.update_status(order.id, OrderStatus.ACCEPTED, expected_version=1)
        published.clear()

        with patch.object(service.orders, "get", AsyncMock(return_value=stale)):
            with pytest.raises(ConcurrentUpdateError):
                await service.update_status(order.id, OrderStatus.CANCELLED, OWNER)

        assert published == []
        assert (await service.orders.get(order.id)).status == OrderStatus.ACCEPTED


class TestQueries:
    """Tests for reading orders."""

    @pytest.mark.asyncio
    async def test_visibility(self, service, seed, sample_file) -> None:
        order = await _place(service, sample_file)

        assert await service.get_order(order.id, STUDENT) == order
        assert await service.get_order(order.id, OWNER) == order
        with pytest.raises(AuthorizationError):
            await service.get_order(order.id, Identity("student-2"))

    @pytest.mark.asyncio
    async def test_list_shop_orders_requires_shop(self, service, seed) -> None:
        with pytest.raises(NotFoundError):
            await service.list_shop_orders("student-1")

    @pytest.mark.asyncio
    async def test_list_pages(self, service, seed, sample_file) -> None:
        for _ in range(3):
            await _place(service, sample_file)

        page = await service.list_shop_orders("owner-1", page=1, limit=2)

        assert len(page.orders) == 2
        assert page.pagination() == {"page": 1, "limit": 2, "total": 3, "totalPages": 2}
