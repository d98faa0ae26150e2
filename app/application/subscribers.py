"""In-process subscribers connecting the event bus to the durable queues.

- Notification subscriber: writes the in-app notification first, then hands
  the event to the ``notifications`` queue with its recipient resolved.
- Analytics subscriber: forwards every event to ``analytics``.
- File-processing subscriber: forwards new orders' files to ``file-processing``.

Broker outages degrade to a logged warning; the in-app notification is
already stored by then.
"""

from collections.abc import Callable
from dataclasses import dataclass

import structlog

from app.application.event_bus import EventBus
from app.application.notification_service import NotificationService
from app.domain.entities import Order, Shop
from app.domain.events import DeliveryContext, DomainEvent, EventType
from app.infrastructure.queue import QueueClient, QueueName
from app.infrastructure.repositories import OrderRepository, ShopRepository, UserRepository

logger = structlog.get_logger()


@dataclass(frozen=True)
class NotificationCopy:
    """In-app notification text for an event type.

    ``message`` is a format string over the event payload and delivery
    context keys.
    """

    type: str
    title: str
    message: str


NOTIFICATION_COPY: dict[EventType, NotificationCopy] = {
    EventType.ORDER_CREATED: NotificationCopy(
        "new_order", "New Order", "New order {orderNumber} received. Open QuickPrint to accept."
    ),
    EventType.ORDER_CONFIRMED: NotificationCopy(
        "status_update", "Order Accepted", "Your order {orderNumber} was accepted by {shopName}."
    ),
    EventType.ORDER_READY: NotificationCopy(
        "status_update", "Ready for Pickup", "Your order {orderNumber} is ready at {shopName}."
    ),
    EventType.ORDER_COMPLETED: NotificationCopy(
        "status_update",
        "Order Completed",
        "Your order {orderNumber} is complete. Thank you for using QuickPrint!",
    ),
    EventType.ORDER_CANCELLED: NotificationCopy(
        "status_update", "Order Cancelled", "Your order {orderNumber} was cancelled. Reason: {reason}"
    ),
    EventType.PAYMENT_SUCCESS: NotificationCopy(
        "payment", "Payment Received", "Payment of ₹{amount:.2f} received for order {orderNumber}."
    ),
    EventType.PAYMENT_FAILED: NotificationCopy(
        "payment", "Payment Failed", "Payment for order {orderNumber} failed: {reason}"
    ),
    EventType.SHOP_REGISTERED: NotificationCopy(
        "welcome", "Welcome to QuickPrint", "{businessName} is now live on QuickPrint."
    ),
}


class NotificationSubscriber:
    """Turns domain events into in-app notifications and queue messages."""

    def __init__(
        self,
        notifications: NotificationService,
        users: UserRepository,
        shops: ShopRepository,
        orders: OrderRepository,
        queue: QueueClient,
    ) -> None:
        self.notifications = notifications
        self.users = users
        self.shops = shops
        self.orders = orders
        self.queue = queue

    async def _delivery_context(self, event: DomainEvent) -> DeliveryContext | None:
        payload = event.payload.to_dict()
        order: Order | None = None
        shop: Shop | None = None

        if "orderId" in payload:
            order = await self.orders.get(payload["orderId"])
            if order is None:
                return None
            shop = await self.shops.get(order.shop_id)
        else:
            shop = await self.shops.get(payload["shopId"])

        # New orders and shop events go to the shop owner
        if event.event_type in (EventType.ORDER_CREATED, EventType.SHOP_REGISTERED):
            if shop is None:
                return None
            recipient_id = shop.owner_id
        else:
            recipient_id = payload["userId"]

        user = await self.users.get(recipient_id)
        return DeliveryContext(
            user_id=recipient_id,
            name=user.name if user else None,
            phone=user.phone if user else None,
            email=user.email if user else None,
            order_number=order.order_number if order else None,
            shop_name=shop.business_name if shop else None,
            shop_address=shop.address if shop else None,
            total_cost=order.total_cost if order else None,
        )

    async def handle(self, event: DomainEvent) -> None:
        delivery = await self._delivery_context(event)
        if delivery is None:
            logger.warning(
                "Notification recipient not found",
                event_type=event.event_type.value,
                event_id=event.event_id,
            )
            return

        payload = event.payload.to_dict()
        copy = NOTIFICATION_COPY[event.event_type]
        await self.notifications.create(
            user_id=delivery.user_id,
            type=copy.type,
            title=copy.title,
            message=copy.message.format(**{**delivery.to_dict(), **payload}),
            order_id=payload.get("orderId"),
        )

        await self.queue.publish(
            QueueName.NOTIFICATIONS,
            event.event_type,
            {**payload, "delivery": delivery.to_dict()},
        )


class AnalyticsSubscriber:
    """Forwards every domain event to the analytics queue."""

    def __init__(self, queue: QueueClient) -> None:
        self.queue = queue

    async def handle(self, event: DomainEvent) -> None:
        await self.queue.publish(QueueName.ANALYTICS, event.event_type, event.payload.to_dict())


class FileProcessingSubscriber:
    """Hands the uploaded document of a new order to the file-processing queue."""

    def __init__(self, orders: OrderRepository, queue: QueueClient) -> None:
        self.orders = orders
        self.queue = queue

    async def handle(self, event: DomainEvent) -> None:
        order_id = event.payload.to_dict()["orderId"]
        order = await self.orders.get(order_id)
        if order is None:
            logger.warning("Order for file processing not found", order_id=order_id)
            return
        await self.queue.publish(
            QueueName.FILE_PROCESSING,
            event.event_type,
            {"orderId": order.id, "file": order.file.to_dict()},
        )


def register_subscribers(
    event_bus: EventBus,
    notification: NotificationSubscriber,
    analytics: AnalyticsSubscriber,
    file_processing: FileProcessingSubscriber,
) -> list[Callable[[], None]]:
    """Subscribe the queue hand-off handlers.

    Returns:
        Unsubscribe closures for every registration.
    """
    unsubscribers = []
    for event_type in EventType:
        unsubscribers.append(event_bus.subscribe(event_type, notification.handle))
        unsubscribers.append(event_bus.subscribe(event_type, analytics.handle))
    unsubscribers.append(
        event_bus.subscribe(EventType.ORDER_CREATED, file_processing.handle)
    )
    logger.info("Event subscribers registered", subscriptions=len(unsubscribers))
    return unsubscribers
