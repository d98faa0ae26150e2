"""Pricing application service.

Loads the shop and the recent-demand signal, then hands everything to the
pure pricing engine.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any
from zoneinfo import ZoneInfo

import structlog

from app.domain.entities import GeoPoint, PrintConfig, Shop
from app.domain.exceptions import NotFoundError, ValidationError
from app.domain.pricing import (
    MIN_SURGE,
    SURGE_WINDOW_MINUTES,
    PricingBreakdown,
    calculate_price,
    haversine_km,
    surge_level,
    surge_multiplier,
)
from app.infrastructure.repositories import OrderRepository, ShopRepository

logger = structlog.get_logger()


@dataclass
class SurgeInfo:
    """Current surge state for a shop."""

    surge_active: bool
    multiplier: Decimal
    reason: str | None
    level: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "surgeActive": self.surge_active,
            "multiplier": float(self.multiplier),
            "reason": self.reason,
            "level": self.level,
        }


def validate_print_config(print_config: PrintConfig) -> None:
    """Reject print jobs the pricing engine must never see.

    Raises:
        ValidationError: If pages or copies is below 1.
    """
    if print_config.pages < 1:
        raise ValidationError("pages must be at least 1", details={"pages": print_config.pages})
    if print_config.copies < 1:
        raise ValidationError(
            "copies must be at least 1", details={"copies": print_config.copies}
        )


class PricingService:
    """Computes price quotes and surge information for shops."""

    def __init__(
        self,
        shops: ShopRepository,
        orders: OrderRepository,
        tz_name: str = "Asia/Kolkata",
    ) -> None:
        self.shops = shops
        self.orders = orders
        self.tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        """Current instant in the pricing time zone."""
        return datetime.now(self.tz)

    async def _get_shop(self, shop_id: str) -> Shop:
        shop = await self.shops.get(shop_id)
        if shop is None:
            raise NotFoundError("Shop", shop_id)
        return shop

    async def _recent_active_orders(self, shop_id: str, at: datetime) -> int:
        since = at.astimezone(timezone.utc) - timedelta(minutes=SURGE_WINDOW_MINUTES)
        return await self.orders.count_recent_active(shop_id, since)

    async def quote_for_shop(
        self,
        shop: Shop,
        customer: GeoPoint,
        print_config: PrintConfig,
        at: datetime | None = None,
    ) -> PricingBreakdown:
        """Price a print job against an already loaded shop."""
        validate_print_config(print_config)
        at = (at or self.now()).astimezone(self.tz)

        distance_km = haversine_km(customer, shop.location)
        recent = await self._recent_active_orders(shop.id, at)
        breakdown = calculate_price(shop.pricing, print_config, distance_km, recent, at)

        logger.debug(
            "Price computed",
            shop_id=shop.id,
            distance_km=float(breakdown.distance_km),
            recent_active_orders=recent,
            surge_multiplier=float(breakdown.surge_multiplier),
            total=float(breakdown.total),
        )
        return breakdown

    async def quote(
        self,
        shop_id: str,
        user_lat: float,
        user_lng: float,
        print_config: PrintConfig,
        at: datetime | None = None,
    ) -> PricingBreakdown:
        """Price a print job for a customer location.

        Args:
            shop_id: Target shop.
            user_lat: Customer latitude.
            user_lng: Customer longitude.
            print_config: Requested print job.
            at: Evaluation instant, defaults to now.

        Returns:
            PricingBreakdown for the job.

        Raises:
            NotFoundError: If the shop does not exist.
            ValidationError: If pages or copies is below 1.
        """
        shop = await self._get_shop(shop_id)
        return await self.quote_for_shop(
            shop, GeoPoint(lat=user_lat, lng=user_lng), print_config, at
        )

    async def surge_info(self, shop_id: str, at: datetime | None = None) -> SurgeInfo:
        """Current surge multiplier, reason and level for a shop."""
        shop = await self._get_shop(shop_id)
        at = (at or self.now()).astimezone(self.tz)

        recent = await self._recent_active_orders(shop.id, at)
        multiplier, reason = surge_multiplier(recent, at)
        return SurgeInfo(
            surge_active=multiplier > MIN_SURGE,
            multiplier=multiplier,
            reason=reason,
            level=surge_level(multiplier),
        )
