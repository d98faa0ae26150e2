"""Process context for the API.

Every shared resource (database, broker connection, realtime gateway,
services) is constructed here once at process start and torn down on
shutdown. Nothing is held in module-level singletons.
"""

from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from app.application.event_bus import EventBus
from app.application.notification_service import NotificationService
from app.application.order_service import OrderService
from app.application.payment_service import PaymentProvider, PaymentService, SignaturePaymentProvider
from app.application.pricing_service import PricingService
from app.application.shop_service import ShopService
from app.application.subscribers import (
    AnalyticsSubscriber,
    FileProcessingSubscriber,
    NotificationSubscriber,
    register_subscribers,
)
from app.domain.exceptions import InfrastructureError
from app.infrastructure.auth import TokenCodec
from app.infrastructure.config import Settings
from app.infrastructure.database import Database
from app.infrastructure.queue import QueueClient
from app.infrastructure.realtime import RealtimeGateway
from app.infrastructure.repositories import (
    NotificationRepository,
    OrderRepository,
    PaymentRepository,
    ShopRepository,
    UserRepository,
)

logger = structlog.get_logger()


@dataclass
class Repositories:
    users: UserRepository
    shops: ShopRepository
    orders: OrderRepository
    payments: PaymentRepository
    notifications: NotificationRepository

    @classmethod
    def create(cls, database: Database) -> "Repositories":
        return cls(
            users=UserRepository(database),
            shops=ShopRepository(database),
            orders=OrderRepository(database),
            payments=PaymentRepository(database),
            notifications=NotificationRepository(database),
        )


@dataclass
class AppContext:
    """Wiring of the API process."""

    settings: Settings
    database: Database
    queue: QueueClient
    token_codec: TokenCodec
    realtime: RealtimeGateway
    event_bus: EventBus
    repositories: Repositories
    pricing: PricingService
    orders: OrderService
    shops: ShopService
    payments: PaymentService
    notifications: NotificationService
    _unsubscribers: list[Callable[[], None]] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        settings: Settings,
        payment_provider: PaymentProvider | None = None,
    ) -> "AppContext":
        """Construct every component without touching the network."""
        database = Database(settings.database_url, echo=settings.debug)
        queue = QueueClient(settings.rabbitmq_url, prefetch=settings.queue_prefetch)
        token_codec = TokenCodec(settings.token_secret, settings.token_ttl_seconds)
        realtime = RealtimeGateway(token_codec)
        event_bus = EventBus()
        repos = Repositories.create(database)

        pricing = PricingService(repos.shops, repos.orders, settings.pricing_timezone)
        notifications = NotificationService(repos.notifications, realtime)
        provider = payment_provider or SignaturePaymentProvider(
            settings.payment_key_id, settings.payment_key_secret
        )

        context = cls(
            settings=settings,
            database=database,
            queue=queue,
            token_codec=token_codec,
            realtime=realtime,
            event_bus=event_bus,
            repositories=repos,
            pricing=pricing,
            orders=OrderService(repos.orders, repos.shops, pricing, event_bus, realtime),
            shops=ShopService(repos.shops, event_bus),
            payments=PaymentService(repos.payments, repos.orders, provider, event_bus, realtime),
            notifications=notifications,
        )
        context._unsubscribers = register_subscribers(
            event_bus,
            NotificationSubscriber(notifications, repos.users, repos.shops, repos.orders, queue),
            AnalyticsSubscriber(queue),
            FileProcessingSubscriber(repos.orders, queue),
        )
        return context

    async def start(self) -> None:
        """Create tables and connect to the broker.

        A broker outage at startup is logged and the API runs without the
        durable queue; publishes are then dropped with a warning.
        """
        if self.settings.database_auto_create:
            await self.database.create_all()

        if not self.settings.queue_enabled:
            logger.warning("Message broker disabled, durable notifications are off")
            return

        try:
            await self.queue.connect()
        except InfrastructureError as e:
            logger.warning("Message broker unavailable, continuing without queue", error=e.message)

    async def close(self) -> None:
        """Release every resource; safe to call once after start."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

        await self.realtime.close()
        await self.queue.close()
        await self.database.dispose()
        logger.info("Application context closed")
