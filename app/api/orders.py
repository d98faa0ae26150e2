"""Order API endpoints.

Provides endpoints for the print order lifecycle:
- POST /orders - place an order
- GET /orders - the caller's orders (paginated)
- GET /orders/shop - orders of the caller's shop (paginated)
- GET /orders/{id} - order details
- PATCH /orders/{id}/status - move an order to a new status
"""

from typing import Annotated

from fastapi import APIRouter, Query, status

from app.api.dependencies import ContextDep, IdentityDep
from app.api.schemas import (
    ErrorResponse,
    OrderCreateRequest,
    OrderResponse,
    OrdersListResponse,
    OrderStatusUpdateRequest,
    PaginationSchema,
)
from app.application.order_service import OrderPage
from app.domain.state_machines import OrderStatus

router = APIRouter(prefix="/orders", tags=["Orders"])

PageQuery = Annotated[int, Query(ge=1, description="Page number (1-based)")]
LimitQuery = Annotated[int, Query(ge=1, le=100, description="Items per page")]


def page_to_response(page: OrderPage) -> OrdersListResponse:
    return OrdersListResponse(
        orders=[OrderResponse.from_domain(order) for order in page.orders],
        pagination=PaginationSchema(
            page=page.page,
            limit=page.limit,
            total=page.total,
            total_pages=page.total_pages,
        ),
    )


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse, "description": "Shop not found"},
        422: {"model": ErrorResponse, "description": "Invalid order"},
    },
)
async def create_order(
    body: OrderCreateRequest,
    context: ContextDep,
    identity: IdentityDep,
) -> OrderResponse:
    """Place a print order.

    The total is computed by the pricing engine and fixed on the order.
    """
    order = await context.orders.create_order(
        user_id=identity.user_id,
        shop_id=body.shop_id,
        file=body.file.to_domain(),
        print_config=body.print_config.to_domain(),
        user_lat=body.user_lat,
        user_lng=body.user_lng,
        payment_method=body.payment_method,
    )
    return OrderResponse.from_domain(order)


@router.get("", response_model=OrdersListResponse)
async def list_my_orders(
    context: ContextDep,
    identity: IdentityDep,
    status_filter: Annotated[OrderStatus | None, Query(alias="status")] = None,
    page: PageQuery = 1,
    limit: LimitQuery = 20,
) -> OrdersListResponse:
    """List the caller's orders, newest first."""
    result = await context.orders.list_user_orders(identity.user_id, status_filter, page, limit)
    return page_to_response(result)


@router.get("/shop", response_model=OrdersListResponse)
async def list_shop_orders(
    context: ContextDep,
    identity: IdentityDep,
    status_filter: Annotated[OrderStatus | None, Query(alias="status")] = None,
    page: PageQuery = 1,
    limit: LimitQuery = 20,
) -> OrdersListResponse:
    """List the orders of the caller's shop, newest first."""
    result = await context.orders.list_shop_orders(identity.user_id, status_filter, page, limit)
    return page_to_response(result)


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Not allowed to view"},
        404: {"model": ErrorResponse, "description": "Order not found"},
    },
)
async def get_order(order_id: str, context: ContextDep, identity: IdentityDep) -> OrderResponse:
    """Get order details."""
    order = await context.orders.get_order(order_id, identity)
    return OrderResponse.from_domain(order)


@router.patch(
    "/{order_id}/status",
    response_model=OrderResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Not the shop owner"},
        404: {"model": ErrorResponse, "description": "Order not found"},
        409: {"model": ErrorResponse, "description": "Invalid transition or concurrent update"},
    },
)
async def update_order_status(
    order_id: str,
    body: OrderStatusUpdateRequest,
    context: ContextDep,
    identity: IdentityDep,
) -> OrderResponse:
    """Move an order to a new status.

    Allowed transitions:
    - PENDING → ACCEPTED, CANCELLED
    - ACCEPTED → READY, CANCELLED
    - PRINTING → READY, CANCELLED
    - READY → COMPLETED, CANCELLED
    """
    order = await context.orders.update_status(order_id, body.status, identity, body.reason)
    return OrderResponse.from_domain(order)
