"""Tests for in-app notifications."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.application.notification_service import NotificationService
from app.domain.exceptions import AuthorizationError, NotFoundError
from app.infrastructure.realtime import RealtimeEvent


@pytest.fixture
def realtime() -> MagicMock:
    gateway = MagicMock()
    gateway.emit_to_user = AsyncMock(return_value=1)
    return gateway


@pytest.fixture
def service(repos, realtime) -> NotificationService:
    return NotificationService(repos.notifications, realtime)


class TestNotificationService:
    """Tests for creating and reading notifications."""

    @pytest.mark.asyncio
    async def test_create_persists_and_pushes(self, service, realtime, seed) -> None:
        notification = await service.create(
            "student-1", "status_update", "Ready for Pickup", "Your order is ready", order_id="o1"
        )

        assert [n.id for n in await service.list("student-1")] == [notification.id]
        user_id, event, data = realtime.emit_to_user.await_args.args
        assert (user_id, event) == ("student-1", RealtimeEvent.NOTIFICATION_NEW)
        assert data["orderId"] == "o1"
        assert data["read"] is False

    @pytest.mark.asyncio
    async def test_mark_read_own_notification(self, service, seed) -> None:
        notification = await service.create("student-1", "payment", "Paid", "Thanks")

        updated = await service.mark_read(notification.id, "student-1")

        assert updated.read is True
        assert await service.unread_count("student-1") == 0

    @pytest.mark.asyncio
    async def test_cannot_mark_others_notification(self, service, seed) -> None:
        notification = await service.create("student-1", "payment", "Paid", "Thanks")

        with pytest.raises(AuthorizationError):
            await service.mark_read(notification.id, "student-2")

    @pytest.mark.asyncio
    async def test_mark_missing(self, service, seed) -> None:
        with pytest.raises(NotFoundError):
            await service.mark_read("missing", "student-1")

    @pytest.mark.asyncio
    async def test_mark_all_read(self, service, seed) -> None:
        for i in range(3):
            await service.create("student-1", "status_update", f"Title {i}", "Body")

        assert await service.unread_count("student-1") == 3
        assert await service.mark_all_read("student-1") == 3
        assert await service.unread_count("student-1") == 0
