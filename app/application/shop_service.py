"""Shop registration service."""

from datetime import datetime, timezone
from uuid import uuid4

import structlog

from app.application.event_bus import EventBus
from app.domain.entities import GeoPoint, Shop, ShopPricing
from app.domain.events import ShopRegistered
from app.domain.exceptions import ValidationError
from app.infrastructure.repositories import ShopRepository

logger = structlog.get_logger()


class ShopService:
    """Registers print shops on the marketplace."""

    def __init__(self, shops: ShopRepository, event_bus: EventBus) -> None:
        self.shops = shops
        self.event_bus = event_bus

    async def register_shop(
        self,
        owner_id: str,
        business_name: str,
        lat: float,
        lng: float,
        address: str | None = None,
        pricing: ShopPricing | None = None,
    ) -> Shop:
        """Register an active shop for an owner.

        Raises:
            ValidationError: If the owner already has a shop or the name is blank.
        """
        if not business_name.strip():
            raise ValidationError("business_name must not be blank")

        existing = await self.shops.get_by_owner(owner_id)
        if existing is not None:
            raise ValidationError(
                "Owner already has a registered shop",
                details={"owner_id": owner_id, "shop_id": existing.id},
            )

        shop = Shop(
            id=str(uuid4()),
            owner_id=owner_id,
            business_name=business_name.strip(),
            address=address,
            location=GeoPoint(lat=lat, lng=lng),
            pricing=pricing or ShopPricing(),
            is_active=True,
            created_at=datetime.now(timezone.utc),
        )
        await self.shops.add(shop)
        logger.info("Shop registered", shop_id=shop.id, owner_id=owner_id)

        await self.event_bus.publish(
            ShopRegistered.event_type,
            ShopRegistered(
                shop_id=shop.id,
                owner_id=owner_id,
                business_name=shop.business_name,
            ),
        )
        return shop
