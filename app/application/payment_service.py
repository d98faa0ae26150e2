"""Payment application service.

The payment gateway is a black box behind ``PaymentProvider``: it creates
provider orders and verifies the signature the client hands back after
checkout. Outcomes are recorded on the Payment, mirrored on the Order's
``payment_status`` and announced as domain events.
"""

import hashlib
import hmac
from datetime import datetime, timezone
from decimal import Decimal
from typing import Protocol
from uuid import uuid4

import structlog

from app.application.event_bus import EventBus
from app.domain.entities import Order, Payment
from app.domain.events import PaymentFailed, PaymentSucceeded
from app.domain.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.domain.state_machines import OrderStatus, PaymentStatus, validate_payment_transition
from app.infrastructure.realtime import RealtimeEvent, RealtimeGateway
from app.infrastructure.repositories import OrderRepository, PaymentRepository

logger = structlog.get_logger()

SIGNATURE_MISMATCH_REASON = "Payment signature verification failed"


# ============================================================================
# Provider
# ============================================================================


class PaymentProvider(Protocol):
    """Payment gateway seen as a black box."""

    key_id: str

    async def create_order(self, amount: Decimal, receipt: str) -> str:
        """Create a provider-side order and return its id."""
        ...

    def verify(self, provider_order_id: str, provider_payment_id: str, signature: str) -> bool:
        """Check the checkout signature returned by the client."""
        ...


class SignaturePaymentProvider:
    """Gateway adapter verifying HMAC-SHA256 checkout signatures.

    The signature is the hex HMAC of ``"<provider_order_id>|<provider_payment_id>"``
    keyed with the account secret.
    """

    def __init__(self, key_id: str, key_secret: str) -> None:
        self.key_id = key_id
        self.key_secret = key_secret

    async def create_order(self, amount: Decimal, receipt: str) -> str:
        provider_order_id = f"order_{uuid4().hex[:14]}"
        logger.info(
            "Provider order created",
            provider_order_id=provider_order_id,
            amount=str(amount),
            receipt=receipt,
        )
        return provider_order_id

    def sign(self, provider_order_id: str, provider_payment_id: str) -> str:
        return hmac.new(
            self.key_secret.encode(),
            f"{provider_order_id}|{provider_payment_id}".encode(),
            hashlib.sha256,
        ).hexdigest()

    def verify(self, provider_order_id: str, provider_payment_id: str, signature: str) -> bool:
        if not signature:
            logger.warning("Missing payment signature", provider_order_id=provider_order_id)
            return False

        expected = self.sign(provider_order_id, provider_payment_id)
        if not hmac.compare_digest(expected, signature):
            logger.warning("Payment signature mismatch", provider_order_id=provider_order_id)
            return False
        return True


# ============================================================================
# Service
# ============================================================================


class PaymentService:
    """Online payments for orders, at most one Payment per Order."""

    def __init__(
        self,
        payments: PaymentRepository,
        orders: OrderRepository,
        provider: PaymentProvider,
        event_bus: EventBus,
        realtime: RealtimeGateway | None = None,
    ) -> None:
        self.payments = payments
        self.orders = orders
        self.provider = provider
        self.event_bus = event_bus
        self.realtime = realtime

    async def _get_owned_order(self, order_id: str, user_id: str) -> Order:
        order = await self.orders.get(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        if order.user_id != user_id:
            raise AuthorizationError(user_id, "pay for", f"order {order_id}")
        return order

    async def initiate(self, order_id: str, user_id: str) -> Payment:
        """Start (or resume) an online payment for an order.

        A PENDING payment is returned as is; a FAILED one is retried with a
        fresh provider order.

        Raises:
            NotFoundError: If the order does not exist.
            AuthorizationError: If the user does not own the order.
            ValidationError: If the order is cancelled or already paid.
        """
        order = await self._get_owned_order(order_id, user_id)
        if order.status == OrderStatus.CANCELLED:
            raise ValidationError("Cannot pay for a cancelled order", details={"order_id": order_id})

        existing = await self.payments.get_by_order(order_id)
        if existing is not None:
            if existing.status == PaymentStatus.PENDING:
                return existing
            if existing.status != PaymentStatus.FAILED:
                raise ValidationError(
                    "Order is already paid",
                    details={"order_id": order_id, "payment_status": existing.status.value},
                )

            validate_payment_transition(existing.id, existing.status, PaymentStatus.PENDING)
            provider_order_id = await self.provider.create_order(order.total_cost, order.order_number)
            payment = await self.payments.update(
                existing.id, PaymentStatus.PENDING, provider_order_id=provider_order_id
            )
            logger.info("Payment retried", order_id=order_id, payment_id=payment.id)
            return payment

        provider_order_id = await self.provider.create_order(order.total_cost, order.order_number)
        now = datetime.now(timezone.utc)
        payment = Payment(
            id=str(uuid4()),
            order_id=order.id,
            amount=order.total_cost,
            provider_order_id=provider_order_id,
            status=PaymentStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        await self.payments.add(payment)
        logger.info("Payment initiated", order_id=order_id, payment_id=payment.id)
        return payment

    async def verify(
        self,
        order_id: str,
        user_id: str,
        provider_payment_id: str,
        signature: str,
    ) -> Payment:
        """Record the checkout outcome reported by the client.

        Raises:
            NotFoundError: If the order or its payment does not exist.
            AuthorizationError: If the user does not own the order.
            InvalidStateTransitionError: If the payment is not PENDING.
        """
        order = await self._get_owned_order(order_id, user_id)
        payment = await self.payments.get_by_order(order_id)
        if payment is None:
            raise NotFoundError("Payment", order_id)

        if self.provider.verify(payment.provider_order_id, provider_payment_id, signature):
            return await self._succeed(order, payment, provider_payment_id)
        return await self._fail(order, payment, SIGNATURE_MISMATCH_REASON)

    async def _succeed(self, order: Order, payment: Payment, provider_payment_id: str) -> Payment:
        validate_payment_transition(payment.id, payment.status, PaymentStatus.SUCCESS)
        payment = await self.payments.update(
            payment.id, PaymentStatus.SUCCESS, provider_payment_id=provider_payment_id
        )
        await self.orders.set_payment_status(order.id, "paid")
        logger.info("Payment succeeded", order_id=order.id, payment_id=payment.id)

        await self.event_bus.publish(
            PaymentSucceeded.event_type,
            PaymentSucceeded(
                order_id=order.id,
                user_id=order.user_id,
                amount=payment.amount,
                payment_id=provider_payment_id,
            ),
        )

        if self.realtime:
            data = {
                "orderId": order.id,
                "orderNumber": order.order_number,
                "amount": float(payment.amount),
                "paymentId": provider_payment_id,
            }
            await self.realtime.emit_to_user(order.user_id, RealtimeEvent.PAYMENT_COMPLETED, data)
            await self.realtime.emit_to_shop(order.shop_id, RealtimeEvent.PAYMENT_COMPLETED, data)
        return payment

    async def _fail(self, order: Order, payment: Payment, reason: str) -> Payment:
        validate_payment_transition(payment.id, payment.status, PaymentStatus.FAILED)
        payment = await self.payments.update(payment.id, PaymentStatus.FAILED)
        await self.orders.set_payment_status(order.id, "failed")
        logger.warning("Payment failed", order_id=order.id, payment_id=payment.id, reason=reason)

        await self.event_bus.publish(
            PaymentFailed.event_type,
            PaymentFailed(order_id=order.id, user_id=order.user_id, reason=reason),
        )

        if self.realtime:
            await self.realtime.emit_to_user(
                order.user_id,
                RealtimeEvent.PAYMENT_FAILED,
                {"orderId": order.id, "orderNumber": order.order_number, "reason": reason},
            )
        return payment
