"""Notification worker process.

Consumes the ``notifications``, ``analytics`` and ``file-processing``
queues, one consumer task per queue. SIGINT/SIGTERM stop the consumers
after their in-flight message is settled.
"""

import asyncio
import signal

import structlog

from app.domain.exceptions import InfrastructureError
from app.infrastructure.config import Settings, get_settings
from app.infrastructure.log_config import configure_logging
from app.infrastructure.queue import QueueClient, QueueConsumer, QueueName
from app.worker.channels import EmailChannel, PushChannel, SmsChannel
from app.worker.handlers import AnalyticsHandler, FileProcessingHandler, NotificationHandler

logger = structlog.get_logger()


class Worker:
    """Wires channels, handlers and consumers around one broker connection."""

    def __init__(self, settings: Settings, queue: QueueClient | None = None) -> None:
        self.settings = settings
        self.queue = queue or QueueClient(settings.rabbitmq_url, prefetch=settings.queue_prefetch)

        self.sms = SmsChannel(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_from_number,
            use_mock=settings.use_mock_sms,
            timeout=settings.provider_timeout_seconds,
        )
        self.email = EmailChannel(
            api_key=settings.sendgrid_api_key,
            from_address=settings.email_from_address,
            app_base_url=settings.app_base_url,
            use_mock=settings.use_mock_email,
            timeout=settings.provider_timeout_seconds,
        )
        self.push = PushChannel(use_mock=settings.use_mock_push)

        self.analytics = AnalyticsHandler()
        self.consumers = [
            QueueConsumer(QueueName.NOTIFICATIONS, NotificationHandler(self.sms, self.email, self.push)),
            QueueConsumer(QueueName.ANALYTICS, self.analytics),
            QueueConsumer(QueueName.FILE_PROCESSING, FileProcessingHandler()),
        ]
        self._stop = asyncio.Event()

    async def start(self) -> None:
        """Connect to the broker and start one consumer per queue.

        Raises:
            InfrastructureError: If no broker is configured or it is unreachable.
        """
        if not self.settings.queue_enabled:
            raise InfrastructureError("RABBITMQ_URL is required to run the worker")

        await self.queue.connect()
        for consumer in self.consumers:
            consumer.start(self.queue.queue(consumer.queue_name))
        logger.info("Worker started", queues=[c.queue_name.value for c in self.consumers])

    def request_stop(self) -> None:
        logger.info("Worker shutdown requested")
        self._stop.set()

    async def shutdown(self) -> None:
        """Drain consumers, then release HTTP clients and the broker connection."""
        for consumer in self.consumers:
            consumer.stop()
        await asyncio.gather(*(c.wait_closed() for c in self.consumers))

        await self.sms.close()
        await self.email.close()
        await self.queue.close()

        logger.info(
            "Worker stopped",
            processed={c.queue_name.value: c.processed for c in self.consumers},
            dead_lettered={c.queue_name.value: c.dead_lettered for c in self.consumers},
            analytics=self.analytics.snapshot(),
        )

    async def run(self) -> None:
        """Run until SIGINT or SIGTERM."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.request_stop)

        await self.start()
        try:
            await self._stop.wait()
        finally:
            await self.shutdown()


def main() -> None:
    """Worker entry point."""
    settings = get_settings()
    configure_logging(settings.log_level, json=settings.log_json)
    try:
        asyncio.run(Worker(settings).run())
    except InfrastructureError as e:
        logger.error("Worker failed to start", error=e.message)
        raise SystemExit(1) from e
