"""QuickPrint API main application module.

This module builds the FastAPI application and configures core
middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.errors import setup_exception_handlers
from app.api.health import router as health_router
from app.api.middleware import setup_middleware
from app.api.notifications import router as notifications_router
from app.api.orders import router as orders_router
from app.api.payments import router as payments_router
from app.api.pricing import router as pricing_router
from app.api.realtime import router as realtime_router
from app.api.shops import router as shops_router
from app.context import AppContext
from app.infrastructure.config import Settings, get_settings
from app.infrastructure.log_config import configure_logging

logger = structlog.get_logger()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the API application.

    Args:
        settings: Settings to use; loaded from the environment when omitted.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, json=settings.log_json)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Build the process context on startup and release it on shutdown."""
        logger.info(
            "Starting QuickPrint API",
            version=settings.api_version,
            environment=settings.environment,
            queue_enabled=settings.queue_enabled,
        )
        context = AppContext.build(settings)
        await context.start()
        app.state.context = context

        yield

        logger.info("Shutting down QuickPrint API")
        await context.close()

    app = FastAPI(
        title="QuickPrint API",
        description="Campus print-order marketplace: orders, pricing and notifications",
        version=settings.api_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware (must be added before custom middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Setup custom middleware (request ID, bearer auth, error handling)
    setup_middleware(app)
    setup_exception_handlers(app)

    # Include routers
    app.include_router(health_router, tags=["Health"])
    app.include_router(orders_router)
    app.include_router(pricing_router)
    app.include_router(shops_router)
    app.include_router(payments_router)
    app.include_router(notifications_router)
    app.include_router(realtime_router)

    return app


app = create_app()
