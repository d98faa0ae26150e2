"""Queue message handlers run by the worker.

Each handler is awaited by a QueueConsumer. Raising MessageFormatError
(or any other exception) dead-letters the message; channel failures are
reported in the returned results and the message is still acknowledged.
"""

import asyncio
from collections import Counter
from collections.abc import Awaitable, Callable, Coroutine, Mapping
from typing import Any

import structlog

from app.domain.entities import FileRef
from app.domain.events import (
    DeliveryContext,
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
    parse_payload,
)
from app.domain.exceptions import MessageFormatError
from app.infrastructure.queue import QueueMessage
from app.worker.channels import ChannelResult, EmailChannel, PushChannel, SmsChannel
from app.worker.channels import sms as sms_text

logger = structlog.get_logger()


def require_exhaustive(table: Mapping[EventType, Any], name: str) -> None:
    """Fail fast when a dispatch table misses an event type."""
    missing = sorted(t.value for t in EventType if t not in table)
    if missing:
        raise RuntimeError(f"{name} has no entry for: {', '.join(missing)}")


# ============================================================================
# Notifications
# ============================================================================


Route = Callable[[Any, DeliveryContext], Awaitable[list[ChannelResult]]]


class NotificationHandler:
    """Fans a ``notifications`` message out to SMS, email and push.

    Channels are skipped when the recipient has no phone or email on file.
    """

    def __init__(self, sms: SmsChannel, email: EmailChannel, push: PushChannel) -> None:
        self.sms = sms
        self.email = email
        self.push = push
        self._routes: dict[EventType, Route] = {
            EventType.ORDER_CREATED: self._order_created,
            EventType.ORDER_CONFIRMED: self._order_confirmed,
            EventType.ORDER_READY: self._order_ready,
            EventType.ORDER_COMPLETED: self._order_completed,
            EventType.ORDER_CANCELLED: self._order_cancelled,
            EventType.PAYMENT_SUCCESS: self._payment_success,
            EventType.PAYMENT_FAILED: self._payment_failed,
            EventType.SHOP_REGISTERED: self._shop_registered,
        }
        require_exhaustive(self._routes, "NotificationHandler")

    async def __call__(self, message: QueueMessage) -> list[ChannelResult]:
        payload = parse_payload(message.event_type, message.payload)
        delivery = DeliveryContext.from_dict(message.payload.get("delivery"))

        results = await self._routes[message.event_type](payload, delivery)

        failed = [r.channel for r in results if not r.success]
        log = logger.warning if failed else logger.info
        log(
            "Notification dispatched",
            event_type=message.event_type.value,
            user_id=delivery.user_id,
            channels=[r.channel for r in results],
            failed=failed,
        )
        return results

    # -- channel helpers ------------------------------------------------------

    def _sms(self, delivery: DeliveryContext, body: str) -> Coroutine[Any, Any, ChannelResult] | None:
        if not delivery.phone:
            return None
        return self.sms.send(delivery.phone, body)

    def _email(
        self, delivery: DeliveryContext, subject: str, template: str, **context: Any
    ) -> Coroutine[Any, Any, ChannelResult] | None:
        if not delivery.email:
            return None
        return self.email.send_template(
            delivery.email,
            subject,
            template,
            name=delivery.name,
            order_number=delivery.order_number,
            shop_name=delivery.shop_name,
            shop_address=delivery.shop_address,
            total_cost=delivery.total_cost,
            **context,
        )

    def _push(
        self, delivery: DeliveryContext, title: str, body: str
    ) -> Coroutine[Any, Any, ChannelResult]:
        return self.push.send(delivery.user_id, title, body)

    @staticmethod
    async def _fan_out(
        *sends: Coroutine[Any, Any, ChannelResult] | None,
    ) -> list[ChannelResult]:
        return list(await asyncio.gather(*(s for s in sends if s is not None)))

    @staticmethod
    def _order_number(payload: EventPayload, delivery: DeliveryContext) -> str:
        return delivery.order_number or getattr(payload, "order_id", "")

    # -- routes ---------------------------------------------------------------

    async def _order_created(
        self, payload: OrderCreated, delivery: DeliveryContext
    ) -> list[ChannelResult]:
        return await self._fan_out(
            self._sms(delivery, sms_text.order_created_text(payload.order_number)),
            self._push(delivery, "New Order!", f"New print order {payload.order_number}"),
        )

    async def _order_confirmed(
        self, payload: OrderConfirmed, delivery: DeliveryContext
    ) -> list[ChannelResult]:
        number = self._order_number(payload, delivery)
        shop = delivery.shop_name or "the shop"
        return await self._fan_out(
            self._sms(delivery, sms_text.order_confirmed_text(number, shop)),
            self._email(delivery, f"Order Confirmed - {number}", "order_confirmed"),
            self._push(delivery, "Order Confirmed", f"Order {number} accepted by {shop}"),
        )

    async def _order_ready(
        self, payload: OrderReady, delivery: DeliveryContext
    ) -> list[ChannelResult]:
        number = self._order_number(payload, delivery)
        shop = delivery.shop_name or "the shop"
        return await self._fan_out(
            self._sms(delivery, sms_text.order_ready_text(number, shop)),
            self._email(delivery, f"Order Ready - {number}", "order_ready"),
            self._push(delivery, "Order Ready", f"Order {number} is ready at {shop}"),
        )

    async def _order_completed(
        self, payload: OrderCompleted, delivery: DeliveryContext
    ) -> list[ChannelResult]:
        number = self._order_number(payload, delivery)
        return await self._fan_out(
            self._push(delivery, "Order Completed", f"Thanks for using QuickPrint! Order {number} is complete."),
        )

    async def _order_cancelled(
        self, payload: OrderCancelled, delivery: DeliveryContext
    ) -> list[ChannelResult]:
        number = self._order_number(payload, delivery)
        return await self._fan_out(
            self._sms(delivery, sms_text.order_cancelled_text(number, payload.reason)),
            self._email(
                delivery, f"Order Cancelled - {number}", "order_cancelled", reason=payload.reason
            ),
            self._push(delivery, "Order Cancelled", f"Order {number} was cancelled"),
        )

    async def _payment_success(
        self, payload: PaymentSucceeded, delivery: DeliveryContext
    ) -> list[ChannelResult]:
        number = self._order_number(payload, delivery)
        return await self._fan_out(
            self._sms(delivery, sms_text.payment_received_text(payload.amount, number)),
            self._email(
                delivery,
                f"Payment Receipt - {number}",
                "payment_receipt",
                amount=payload.amount,
                payment_id=payload.payment_id,
            ),
            self._push(delivery, "Payment Received", f"₹{payload.amount:.2f} paid for {number}"),
        )

    async def _payment_failed(
        self, payload: PaymentFailed, delivery: DeliveryContext
    ) -> list[ChannelResult]:
        number = self._order_number(payload, delivery)
        return await self._fan_out(
            self._push(delivery, "Payment Failed", f"Payment for {number} failed: {payload.reason}"),
        )

    async def _shop_registered(
        self, payload: ShopRegistered, delivery: DeliveryContext
    ) -> list[ChannelResult]:
        return await self._fan_out(
            self._email(
                delivery,
                "Welcome to QuickPrint!",
                "welcome",
                business_name=payload.business_name,
            ),
            self._push(delivery, "Shop Registered", f"{payload.business_name} is now live"),
        )


# ============================================================================
# Analytics
# ============================================================================


EVENT_CATEGORIES: dict[EventType, str] = {
    EventType.ORDER_CREATED: "order",
    EventType.ORDER_CONFIRMED: "order",
    EventType.ORDER_READY: "order",
    EventType.ORDER_COMPLETED: "order",
    EventType.ORDER_CANCELLED: "order",
    EventType.PAYMENT_SUCCESS: "payment",
    EventType.PAYMENT_FAILED: "payment",
    EventType.SHOP_REGISTERED: "shop",
}
require_exhaustive(EVENT_CATEGORIES, "EVENT_CATEGORIES")


class AnalyticsHandler:
    """Records ``analytics`` messages as per-type and per-category counters."""

    def __init__(self) -> None:
        self.by_type: Counter[EventType] = Counter()
        self.by_category: Counter[str] = Counter()

    async def __call__(self, message: QueueMessage) -> None:
        payload = parse_payload(message.event_type, message.payload)
        category = EVENT_CATEGORIES[message.event_type]

        self.by_type[message.event_type] += 1
        self.by_category[category] += 1

        logger.info(
            "Analytics event recorded",
            category=category,
            event_type=message.event_type.value,
            occurred_at=message.timestamp.isoformat(),
            **payload.to_dict(),
        )

    def snapshot(self) -> dict[str, Any]:
        return {
            "byType": {t.value: n for t, n in self.by_type.items()},
            "byCategory": dict(self.by_category),
            "total": sum(self.by_type.values()),
        }


# ============================================================================
# File Processing
# ============================================================================


class FileProcessingHandler:
    """Accepts uploaded documents for processing once an order is placed."""

    def __init__(self) -> None:
        self.processed: list[tuple[str, FileRef]] = []

    async def __call__(self, message: QueueMessage) -> None:
        if message.event_type != EventType.ORDER_CREATED:
            raise MessageFormatError(
                f"file-processing does not handle {message.event_type.value}"
            )

        order_id = message.payload.get("orderId")
        file_data = message.payload.get("file")
        if not order_id or not isinstance(file_data, dict):
            raise MessageFormatError("file-processing message needs orderId and file")
        try:
            file = FileRef.from_dict(file_data)
        except KeyError as e:
            raise MessageFormatError(f"file reference is missing {e.args[0]}") from e

        self.processed.append((order_id, file))
        logger.info(
            "File queued for processing",
            order_id=order_id,
            file_name=file.name,
            pages=file.pages,
        )
