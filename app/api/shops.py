"""Shop registration endpoint."""

from fastapi import APIRouter, status

from app.api.dependencies import ContextDep, IdentityDep
from app.api.schemas import ErrorResponse, ShopCreateRequest, ShopResponse
from app.domain.entities import UserRole
from app.domain.exceptions import AuthorizationError

router = APIRouter(prefix="/shops", tags=["Shops"])


@router.post(
    "",
    response_model=ShopResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse, "description": "Caller is not a shop owner"}},
)
async def register_shop(
    body: ShopCreateRequest,
    context: ContextDep,
    identity: IdentityDep,
) -> ShopResponse:
    """Register the caller's print shop."""
    if identity.role not in (UserRole.SHOP_OWNER, UserRole.ADMIN):
        raise AuthorizationError(identity.user_id, "register", "shop")

    shop = await context.shops.register_shop(
        owner_id=identity.user_id,
        business_name=body.business_name,
        lat=body.lat,
        lng=body.lng,
        address=body.address,
        pricing=body.pricing.to_domain() if body.pricing else None,
    )
    return ShopResponse.from_domain(shop)
