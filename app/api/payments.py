"""Payment API endpoints."""

from fastapi import APIRouter

from app.api.dependencies import ContextDep, IdentityDep
from app.api.schemas import ErrorResponse, PaymentResponse, PaymentVerifyRequest

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post(
    "/orders/{order_id}",
    response_model=PaymentResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Not the order owner"},
        404: {"model": ErrorResponse, "description": "Order not found"},
        422: {"model": ErrorResponse, "description": "Order already paid or cancelled"},
    },
)
async def initiate_payment(
    order_id: str,
    context: ContextDep,
    identity: IdentityDep,
) -> PaymentResponse:
    """Start an online payment; returns the provider order for checkout."""
    payment = await context.payments.initiate(order_id, identity.user_id)
    return PaymentResponse.from_domain(payment, key_id=context.payments.provider.key_id)


@router.post(
    "/verify",
    response_model=PaymentResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Order or payment not found"},
        409: {"model": ErrorResponse, "description": "Payment is not pending"},
    },
)
async def verify_payment(
    body: PaymentVerifyRequest,
    context: ContextDep,
    identity: IdentityDep,
) -> PaymentResponse:
    """Record the checkout result; a bad signature marks the payment FAILED."""
    payment = await context.payments.verify(
        body.order_id,
        identity.user_id,
        body.provider_payment_id,
        body.signature,
    )
    return PaymentResponse.from_domain(payment)
