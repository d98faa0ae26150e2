"""Pricing API endpoints."""

from fastapi import APIRouter

from app.api.dependencies import ContextDep, IdentityDep
from app.api.schemas import PriceQuoteRequest, PricingBreakdownResponse, SurgeInfoResponse

router = APIRouter(prefix="/pricing", tags=["Pricing"])


@router.post("/quote", response_model=PricingBreakdownResponse)
async def quote(
    body: PriceQuoteRequest,
    context: ContextDep,
    identity: IdentityDep,
) -> PricingBreakdownResponse:
    """Price a print job for the caller's location."""
    breakdown = await context.pricing.quote(
        body.shop_id,
        body.user_lat,
        body.user_lng,
        body.print_config.to_domain(),
    )
    return PricingBreakdownResponse.from_domain(breakdown)


@router.get("/shops/{shop_id}/surge", response_model=SurgeInfoResponse)
async def surge(shop_id: str, context: ContextDep, identity: IdentityDep) -> SurgeInfoResponse:
    """Current surge state of a shop."""
    info = await context.pricing.surge_info(shop_id)
    return SurgeInfoResponse.model_validate(info.to_dict())
