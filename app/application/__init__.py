"""Application layer module.

Contains application services (use cases) that orchestrate
domain logic, persistence and event publication.
"""

from app.application.event_bus import EventBus
from app.application.notification_service import NotificationService
from app.application.order_service import OrderService
from app.application.payment_service import PaymentService, SignaturePaymentProvider
from app.application.pricing_service import PricingService
from app.application.shop_service import ShopService

__all__ = [
    "EventBus",
    "NotificationService",
    "OrderService",
    "PaymentService",
    "PricingService",
    "ShopService",
    "SignaturePaymentProvider",
]
