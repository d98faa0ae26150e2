"""State machines for domain entities.

Deterministic state machines that define valid state transitions
for print orders and payments. The order transition table is the only
path by which an order's status may change.
"""

from enum import Enum

from app.domain.exceptions import InvalidStateTransitionError


# ============================================================================
# Order State Machine
# ============================================================================


class OrderStatus(str, Enum):
    """Order lifecycle states.

    State diagram:
        PENDING ─────────────────────────────────────► CANCELLED
          │                                              ▲
          │ accept                                       │
          ▼                                              │
        ACCEPTED (PRINTING) ─────────────────────────►───┤
          │                                              │
          │ mark ready                                   │
          ▼                                              │
        READY ───────────────────────────────────────►───┘
          │
          │ hand over
          ▼
        COMPLETED

    PRINTING is a legacy alias of ACCEPTED kept for rows written by older
    clients. Nothing transitions into it, but it may transition out.
    """

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    PRINTING = "PRINTING"
    READY = "READY"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    def can_transition_to(self, target: "OrderStatus") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _ORDER_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["OrderStatus"]:
        """Get list of valid target states.

        Returns:
            List of states that can be transitioned to, in declaration order.
        """
        allowed = _ORDER_TRANSITIONS.get(self, set())
        return [status for status in OrderStatus if status in allowed]

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state.

        Returns:
            True if no further transitions are possible.
        """
        return len(_ORDER_TRANSITIONS.get(self, set())) == 0

    def is_active(self) -> bool:
        """Check if the order still occupies the shop's print queue.

        Returns:
            True for states counted by the demand surge signal.
        """
        return self in ACTIVE_ORDER_STATUSES


# Order state transitions (defined outside enum to avoid Enum restrictions)
_ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.ACCEPTED, OrderStatus.CANCELLED},
    OrderStatus.ACCEPTED: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.PRINTING: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),  # Terminal state
    OrderStatus.CANCELLED: set(),  # Terminal state
}

# Orders still waiting on the shop
ACTIVE_ORDER_STATUSES: frozenset[OrderStatus] = frozenset(
    {OrderStatus.PENDING, OrderStatus.ACCEPTED, OrderStatus.PRINTING}
)


# ============================================================================
# Payment State Machine
# ============================================================================


class PaymentStatus(str, Enum):
    """Payment lifecycle states.

    State diagram:
        PENDING ──────► FAILED ──► PENDING (retry)
          │
          │ verified
          ▼
        SUCCESS ──────► REFUNDED
    """

    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"

    def can_transition_to(self, target: "PaymentStatus") -> bool:
        """Check if transition to target state is valid."""
        return target in _PAYMENT_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["PaymentStatus"]:
        """Get list of valid target states."""
        allowed = _PAYMENT_TRANSITIONS.get(self, set())
        return [status for status in PaymentStatus if status in allowed]


_PAYMENT_TRANSITIONS: dict[PaymentStatus, set[PaymentStatus]] = {
    PaymentStatus.PENDING: {PaymentStatus.SUCCESS, PaymentStatus.FAILED},
    PaymentStatus.FAILED: {PaymentStatus.PENDING},
    PaymentStatus.SUCCESS: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),  # Terminal state
}


# ============================================================================
# State Machine Helpers
# ============================================================================


def validate_order_transition(
    order_id: str,
    current_status: OrderStatus,
    target_status: OrderStatus,
) -> None:
    """Validate and raise if order state transition is invalid.

    Args:
        order_id: Order identifier for error message.
        current_status: Current order status.
        target_status: Target order status.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="Order",
            entity_id=order_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
        )


def validate_payment_transition(
    payment_id: str,
    current_status: PaymentStatus,
    target_status: PaymentStatus,
) -> None:
    """Validate and raise if payment state transition is invalid.

    Args:
        payment_id: Payment identifier for error message.
        current_status: Current payment status.
        target_status: Target payment status.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="Payment",
            entity_id=payment_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
        )
