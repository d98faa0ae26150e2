"""Tests for the worker's queue handlers."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from app.domain.events import EventType
from app.domain.exceptions import MessageFormatError
from app.infrastructure.queue import QueueConsumer, QueueMessage, QueueName
from app.worker.channels import ChannelResult, EmailChannel, PushChannel, SmsChannel
from app.worker.handlers import (
    EVENT_CATEGORIES,
    AnalyticsHandler,
    FileProcessingHandler,
    NotificationHandler,
)

DELIVERY = {
    "userId": "student-1",
    "name": "Asha",
    "phone": "+919800000001",
    "email": "asha@example.edu",
    "orderNumber": "QP-20240108-ABC123",
    "shopName": "Campus Prints",
    "shopAddress": "Gate 2, Main Campus",
    "totalCost": 44.72,
}


def _ok(channel: str) -> AsyncMock:
    return AsyncMock(return_value=ChannelResult(channel, True, message_id=f"{channel}-1"))


@pytest.fixture
def channels() -> tuple[MagicMock, MagicMock, MagicMock]:
    sms, email, push = MagicMock(), MagicMock(), MagicMock()
    sms.send = _ok("sms")
    email.send_template = _ok("email")
    push.send = _ok("push")
    return sms, email, push


@pytest.fixture
def handler(channels) -> NotificationHandler:
    return NotificationHandler(*channels)


def _message(event_type: EventType, payload: dict) -> QueueMessage:
    return QueueMessage(event_type=event_type, payload=payload)


class TestNotificationHandler:
    """Tests for channel fan-out."""

    @pytest.mark.asyncio
    async def test_order_ready_uses_every_channel(self, handler, channels) -> None:
        sms, email, push = channels

        results = await handler(
            _message(EventType.ORDER_READY, {"orderId": "o1", "userId": "student-1", "delivery": DELIVERY})
        )

        assert sorted(r.channel for r in results) == ["email", "push", "sms"]
        sms.send.assert_awaited_once_with(
            "+919800000001", "Order QP-20240108-ABC123 is ready for pickup at Campus Prints!"
        )
        to, subject, template = email.send_template.await_args.args
        assert (to, subject, template) == (
            "asha@example.edu",
            "Order Ready - QP-20240108-ABC123",
            "order_ready",
        )
        assert push.send.await_args.args[0] == "student-1"

    @pytest.mark.asyncio
    async def test_channels_skipped_without_contact_details(self, handler, channels) -> None:
        sms, email, push = channels

        results = await handler(
            _message(
                EventType.ORDER_CONFIRMED,
                {"orderId": "o1", "userId": "student-1", "delivery": {"userId": "student-1"}},
            )
        )

        assert [r.channel for r in results] == ["push"]
        sms.send.assert_not_awaited()
        email.send_template.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_order_created_goes_to_owner_without_email(self, handler, channels) -> None:
        sms, email, push = channels
        owner = {**DELIVERY, "userId": "owner-1"}

        await handler(
            _message(
                EventType.ORDER_CREATED,
                {
                    "orderId": "o1",
                    "userId": "student-1",
                    "shopId": "shop-1",
                    "orderNumber": "QP-1",
                    "delivery": owner,
                },
            )
        )

        sms.send.assert_awaited_once_with("+919800000001", "New order QP-1. Open QuickPrint to accept.")
        email.send_template.assert_not_awaited()
        assert push.send.await_args.args[0] == "owner-1"

    @pytest.mark.asyncio
    async def test_payment_receipt_carries_amount(self, handler, channels) -> None:
        _, email, _ = channels

        await handler(
            _message(
                EventType.PAYMENT_SUCCESS,
                {
                    "orderId": "o1",
                    "userId": "student-1",
                    "amount": 44.72,
                    "paymentId": "pay_1",
                    "delivery": DELIVERY,
                },
            )
        )

        assert email.send_template.await_args.args[2] == "payment_receipt"
        assert email.send_template.await_args.kwargs["payment_id"] == "pay_1"

    @pytest.mark.asyncio
    async def test_missing_delivery_is_format_error(self, handler) -> None:
        with pytest.raises(MessageFormatError):
            await handler(_message(EventType.ORDER_READY, {"orderId": "o1", "userId": "student-1"}))

    @pytest.mark.asyncio
    async def test_malformed_payload_is_format_error(self, handler) -> None:
        with pytest.raises(MessageFormatError):
            await handler(_message(EventType.PAYMENT_SUCCESS, {"delivery": DELIVERY}))

    @pytest.mark.asyncio
    async def test_every_event_type_is_routed(self) -> None:
        """Each event type renders and sends through mock-mode channels."""
        handler = NotificationHandler(
            SmsChannel("", "", "", use_mock=True),
            EmailChannel("", "noreply@quickprint.com", "http://localhost:5173", use_mock=True),
            PushChannel(),
        )
        payloads = {
            EventType.ORDER_CREATED: {"orderId": "o1", "userId": "u1", "shopId": "s1", "orderNumber": "QP-1"},
            EventType.ORDER_CONFIRMED: {"orderId": "o1", "userId": "u1"},
            EventType.ORDER_READY: {"orderId": "o1", "userId": "u1"},
            EventType.ORDER_COMPLETED: {"orderId": "o1", "userId": "u1", "totalCost": 44.72},
            EventType.ORDER_CANCELLED: {"orderId": "o1", "userId": "u1", "reason": "Closed"},
            EventType.PAYMENT_SUCCESS: {"orderId": "o1", "userId": "u1", "amount": 44.72, "paymentId": "p1"},
            EventType.PAYMENT_FAILED: {"orderId": "o1", "userId": "u1", "reason": "Declined"},
            EventType.SHOP_REGISTERED: {"shopId": "s1", "ownerId": "u1", "businessName": "Campus Prints"},
        }
        assert set(payloads) == set(EventType)

        for event_type, payload in payloads.items():
            results = await handler(_message(event_type, {**payload, "delivery": DELIVERY}))
            assert results
            assert all(r.success for r in results)


class TestChannelFailureIsolation:
    """A failed channel is logged; the message is still acknowledged."""

    @staticmethod
    def _delivery() -> MagicMock:
        message = MagicMock()
        message.message_id = "m1"
        message.body = json.dumps(
            {
                "eventType": "order.ready",
                "payload": {"orderId": "o1", "userId": "student-1", "delivery": DELIVERY},
                "timestamp": "2024-01-08T08:00:00+00:00",
            }
        ).encode()
        message.ack = AsyncMock()
        message.nack = AsyncMock()
        return message

    @pytest.mark.asyncio
    async def test_failed_sms_still_acks(self, channels) -> None:
        sms, email, push = channels
        sms.send = AsyncMock(return_value=ChannelResult("sms", False, error="HTTP 500"))
        consumer = QueueConsumer(QueueName.NOTIFICATIONS, NotificationHandler(sms, email, push))

        message = self._delivery()

        assert await consumer.handle_delivery(message) is True
        message.ack.assert_awaited_once()
        message.nack.assert_not_awaited()
        email.send_template.assert_awaited_once()
        push.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_garbled_provider_response_still_acks(self, channels) -> None:
        """An SMS provider answering 200 with an HTML page does not dead-letter the message."""
        _, email, push = channels
        sms = SmsChannel(
            "AC123",
            "token",
            "+15550000000",
            use_mock=False,
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>ok</html>")),
        )
        consumer = QueueConsumer(QueueName.NOTIFICATIONS, NotificationHandler(sms, email, push))
        message = self._delivery()

        assert await consumer.handle_delivery(message) is True
        await sms.close()

        message.ack.assert_awaited_once()
        message.nack.assert_not_awaited()
        assert consumer.dead_lettered == 0


class TestAnalyticsHandler:
    """Tests for analytics counters."""

    def test_categories_cover_every_event_type(self) -> None:
        assert set(EVENT_CATEGORIES) == set(EventType)

    @pytest.mark.asyncio
    async def test_counts_by_type_and_category(self) -> None:
        handler = AnalyticsHandler()

        await handler(_message(EventType.ORDER_READY, {"orderId": "o1", "userId": "u1"}))
        await handler(_message(EventType.ORDER_READY, {"orderId": "o2", "userId": "u1"}))
        await handler(_message(EventType.SHOP_REGISTERED, {"shopId": "s1", "ownerId": "u1", "businessName": "X"}))

        assert handler.snapshot() == {
            "byType": {"order.ready": 2, "shop.registered": 1},
            "byCategory": {"order": 2, "shop": 1},
            "total": 3,
        }

    @pytest.mark.asyncio
    async def test_malformed_payload_rejected(self) -> None:
        with pytest.raises(MessageFormatError):
            await AnalyticsHandler()(_message(EventType.ORDER_READY, {}))


class TestFileProcessingHandler:
    """Tests for file-processing intake."""

    @pytest.mark.asyncio
    async def test_accepts_order_file(self) -> None:
        handler = FileProcessingHandler()

        await handler(
            _message(
                EventType.ORDER_CREATED,
                {"orderId": "o1", "file": {"name": "notes.pdf", "url": "https://f/notes.pdf", "pages": 10}},
            )
        )

        [(order_id, file)] = handler.processed
        assert order_id == "o1"
        assert file.pages == 10

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"orderId": "o1"},
            {"file": {"name": "a.pdf", "url": "u"}},
            {"orderId": "o1", "file": {"name": "a.pdf"}},
        ],
    )
    async def test_incomplete_message_rejected(self, payload: dict) -> None:
        with pytest.raises(MessageFormatError):
            await FileProcessingHandler()(_message(EventType.ORDER_CREATED, payload))

    @pytest.mark.asyncio
    async def test_other_event_types_rejected(self) -> None:
        with pytest.raises(MessageFormatError):
            await FileProcessingHandler()(_message(EventType.ORDER_READY, {"orderId": "o1"}))
