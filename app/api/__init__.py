"""API layer module.

Contains FastAPI routers, middleware and request/response schemas.
"""

from app.api.health import router as health_router
from app.api.notifications import router as notifications_router
from app.api.orders import router as orders_router
from app.api.payments import router as payments_router
from app.api.pricing import router as pricing_router
from app.api.realtime import router as realtime_router
from app.api.shops import router as shops_router

__all__ = [
    "health_router",
    "notifications_router",
    "orders_router",
    "payments_router",
    "pricing_router",
    "realtime_router",
    "shops_router",
]
