"""Tests for the SQLAlchemy repositories."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.context import Repositories
from app.domain.entities import Notification
from app.domain.exceptions import ConcurrentUpdateError
from app.domain.state_machines import OrderStatus


class TestOrderRepository:
    """Tests for order persistence."""

    @pytest.mark.asyncio
    async def test_round_trips_order(self, repos: Repositories, seed, order_factory) -> None:
        """Money survives storage as paise."""
        order = await repos.orders.add(order_factory(total_cost=Decimal("44.72")))

        loaded = await repos.orders.get(order.id)

        assert loaded is not None
        assert loaded.total_cost == Decimal("44.72")
        assert loaded.status == OrderStatus.PENDING
        assert loaded.version == 1
        assert loaded.print_config.copies == 2
        assert loaded.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, repos: Repositories) -> None:
        assert await repos.orders.get("missing") is None

    @pytest.mark.asyncio
    async def test_update_status_bumps_version(self, repos: Repositories, seed, order_factory) -> None:
        order = await repos.orders.add(order_factory())

        updated = await repos.orders.update_status(
            order.id, OrderStatus.ACCEPTED, expected_version=1
        )

        assert updated.status == OrderStatus.ACCEPTED
        assert updated.version == 2

    @pytest.mark.asyncio
    async def test_stale_version_loses(self, repos: Repositories, seed, order_factory) -> None:
        """Two writers that read the same version: exactly one wins."""
        order = await repos.orders.add(order_factory())

        await repos.orders.update_status(order.id, OrderStatus.ACCEPTED, expected_version=1)
        with pytest.raises(ConcurrentUpdateError) as exc_info:
            await repos.orders.update_status(order.id, OrderStatus.CANCELLED, expected_version=1)

        assert exc_info.value.error_code == "CONCURRENT_UPDATE"
        stored = await repos.orders.get(order.id)
        assert stored.status == OrderStatus.ACCEPTED
        assert stored.version == 2

    @pytest.mark.asyncio
    async def test_count_recent_active(self, repos: Repositories, seed, order_factory) -> None:
        """Only active orders inside the window count."""
        now = datetime.now(timezone.utc)
        await repos.orders.add(order_factory(created_at=now - timedelta(minutes=10)))
        await repos.orders.add(order_factory(created_at=now - timedelta(minutes=20)))
        await repos.orders.add(
            order_factory(created_at=now - timedelta(minutes=5), status=OrderStatus.READY)
        )
        await repos.orders.add(order_factory(created_at=now - timedelta(minutes=90)))
        await repos.orders.add(order_factory(shop_id="other-shop", created_at=now))

        count = await repos.orders.count_recent_active("shop-1", now - timedelta(minutes=60))

        assert count == 2

    @pytest.mark.asyncio
    async def test_list_for_user_newest_first(self, repos: Repositories, seed, order_factory) -> None:
        now = datetime.now(timezone.utc)
        older = await repos.orders.add(order_factory(created_at=now - timedelta(hours=2)))
        newer = await repos.orders.add(order_factory(created_at=now - timedelta(hours=1)))
        await repos.orders.add(order_factory(user_id="student-2"))

        orders, total = await repos.orders.list_for_user("student-1")

        assert total == 2
        assert [o.id for o in orders] == [newer.id, older.id]

    @pytest.mark.asyncio
    async def test_list_for_shop_filters_and_pages(self, repos: Repositories, seed, order_factory) -> None:
        now = datetime.now(timezone.utc)
        for minutes in range(5):
            await repos.orders.add(order_factory(created_at=now - timedelta(minutes=minutes)))
        await repos.orders.add(order_factory(status=OrderStatus.CANCELLED))

        page, total = await repos.orders.list_for_shop(
            "shop-1", status=OrderStatus.PENDING, page=2, limit=2
        )

        assert total == 5
        assert len(page) == 2
        assert all(o.status == OrderStatus.PENDING for o in page)


class TestShopRepository:
    """Tests for shop persistence."""

    @pytest.mark.asyncio
    async def test_get_by_owner(self, repos: Repositories, seed) -> None:
        shop = await repos.shops.get_by_owner("owner-1")
        assert shop is not None
        assert shop.business_name == "Campus Prints"
        assert shop.pricing.bw_single == Decimal("2")

    @pytest.mark.asyncio
    async def test_get_by_owner_without_shop(self, repos: Repositories, seed) -> None:
        assert await repos.shops.get_by_owner("student-1") is None


class TestNotificationRepository:
    """Tests for in-app notification persistence."""

    @staticmethod
    def _notification(id: str, user_id: str = "student-1") -> Notification:
        return Notification(
            id=id, user_id=user_id, type="status_update", title="Title", message="Body"
        )

    @pytest.mark.asyncio
    async def test_unread_count_and_mark_all_read(self, repos: Repositories, seed) -> None:
        await repos.notifications.add(self._notification("n1"))
        await repos.notifications.add(self._notification("n2"))
        await repos.notifications.add(self._notification("n3", user_id="owner-1"))

        assert await repos.notifications.unread_count("student-1") == 2
        assert await repos.notifications.mark_all_read("student-1") == 2
        assert await repos.notifications.unread_count("student-1") == 0
        assert await repos.notifications.unread_count("owner-1") == 1

    @pytest.mark.asyncio
    async def test_mark_read(self, repos: Repositories, seed) -> None:
        await repos.notifications.add(self._notification("n1"))

        notification = await repos.notifications.mark_read("n1")

        assert notification.read is True
        assert (await repos.notifications.get("n1")).read is True
