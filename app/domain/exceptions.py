"""Domain exceptions.

All domain-level errors that represent business rule violations,
plus the infrastructure and channel errors the services log and degrade on.
Services raise these; the API layer maps them to HTTP responses and the
worker decides between ack and dead-lettering based on them.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Request Errors
# ============================================================================


class ValidationError(DomainError):
    """Raised when input is malformed or violates a business precondition."""

    error_code = "VALIDATION_ERROR"


class AuthenticationError(DomainError):
    """Raised when a bearer token is missing, malformed, expired or forged."""

    error_code = "UNAUTHORIZED"


class AuthorizationError(DomainError):
    """Raised when the actor is not allowed to perform the operation."""

    error_code = "FORBIDDEN"

    def __init__(self, actor_id: str, action: str, resource: str) -> None:
        """Initialize authorization error.

        Args:
            actor_id: ID of the acting user.
            action: What the actor attempted.
            resource: Resource identifier.
        """
        super().__init__(
            f"Not authorized to {action} {resource}",
            details={"actor_id": actor_id, "action": action, "resource": resource},
        )


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""

    error_code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str) -> None:
        """Initialize not found error.

        Args:
            entity_type: Type of entity (e.g., "Order", "Shop").
            entity_id: ID that was looked up.
        """
        super().__init__(
            f"{entity_type} not found: {entity_id}",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )
        self.error_code = f"{entity_type.upper()}_NOT_FOUND"


# ============================================================================
# State Machine Errors
# ============================================================================


class InvalidStateTransitionError(DomainError):
    """Raised when an invalid state transition is attempted.

    This error indicates that the requested operation cannot be performed
    in the current state of the entity.
    """

    error_code = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
    ) -> None:
        """Initialize invalid state transition error.

        Args:
            entity_type: Type of entity (e.g., "Order", "Payment").
            entity_id: ID of the entity.
            current_state: Current state of the entity.
            target_state: Attempted target state.
            allowed_transitions: List of allowed target states from current state.
        """
        allowed = allowed_transitions or []
        message = (
            f"Cannot transition {entity_type}({entity_id}) "
            f"from '{current_state}' to '{target_state}'. "
            f"Allowed transitions: {allowed}"
        )
        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
            },
        )
        self.current_state = current_state
        self.target_state = target_state


class ConcurrentUpdateError(DomainError):
    """Raised when a versioned write loses a race against another writer."""

    error_code = "CONCURRENT_UPDATE"

    def __init__(self, entity_type: str, entity_id: str, expected_version: int) -> None:
        """Initialize concurrent update error.

        Args:
            entity_type: Type of entity.
            entity_id: ID of the entity.
            expected_version: Version the writer read before writing.
        """
        super().__init__(
            f"{entity_type}({entity_id}) was modified concurrently; "
            f"expected version {expected_version}",
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "expected_version": expected_version,
            },
        )


# ============================================================================
# Infrastructure Errors
# ============================================================================


class InfrastructureError(DomainError):
    """Raised when the broker or another backing service is unreachable."""

    error_code = "INFRASTRUCTURE_ERROR"


class ChannelDeliveryError(DomainError):
    """Raised by a channel adapter when its provider rejects or fails a send.

    Adapters catch this and report ``success=False``; it never escapes
    into queue processing.
    """

    error_code = "CHANNEL_DELIVERY_FAILED"

    def __init__(self, channel: str, reason: str) -> None:
        """Initialize channel delivery error.

        Args:
            channel: Channel name (sms, email, push).
            reason: Provider error description.
        """
        super().__init__(
            f"{channel} delivery failed: {reason}",
            details={"channel": channel, "reason": reason},
        )
        self.channel = channel
        self.reason = reason


class MessageFormatError(DomainError):
    """Raised when a queue message cannot be parsed or routed."""

    error_code = "MESSAGE_FORMAT_ERROR"
