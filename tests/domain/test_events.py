"""Tests for domain events and payload parsing."""

from decimal import Decimal

import pytest

from app.domain.events import (
    PAYLOAD_TYPES,
    DeliveryContext,
    EventType,
    OrderCancelled,
    PaymentSucceeded,
    parse_payload,
)
from app.domain.exceptions import MessageFormatError


class TestEventType:
    """Tests for the event vocabulary."""

    def test_every_type_has_a_payload(self) -> None:
        assert set(PAYLOAD_TYPES) == set(EventType)

    def test_wire_values(self) -> None:
        assert EventType.ORDER_CREATED.value == "order.created"
        assert EventType.PAYMENT_SUCCESS.value == "payment.success"

    def test_parse_unknown_type_raises(self) -> None:
        with pytest.raises(MessageFormatError):
            EventType.parse("order.shipped")


class TestParsePayload:
    """Tests for typed payload parsing."""

    def test_parses_camel_case_payload(self) -> None:
        payload = parse_payload(
            EventType.PAYMENT_SUCCESS,
            {"orderId": "o1", "userId": "u1", "amount": 44.72, "paymentId": "pay_1"},
        )
        assert payload == PaymentSucceeded("o1", "u1", Decimal("44.72"), "pay_1")

    def test_optional_reason(self) -> None:
        payload = parse_payload(EventType.ORDER_CANCELLED, {"orderId": "o1", "userId": "u1"})
        assert payload == OrderCancelled("o1", "u1", None)

    def test_missing_key_raises(self) -> None:
        with pytest.raises(MessageFormatError):
            parse_payload(EventType.ORDER_CREATED, {"orderId": "o1"})

    def test_non_object_raises(self) -> None:
        with pytest.raises(MessageFormatError):
            parse_payload(EventType.ORDER_READY, ["o1"])

    def test_bad_amount_raises(self) -> None:
        with pytest.raises(MessageFormatError):
            parse_payload(
                EventType.PAYMENT_SUCCESS,
                {"orderId": "o1", "userId": "u1", "amount": "lots", "paymentId": "p"},
            )


class TestDeliveryContext:
    """Tests for the notification recipient block."""

    def test_from_dict(self) -> None:
        context = DeliveryContext.from_dict(
            {"userId": "u1", "phone": "+911234567890", "totalCost": 44.72}
        )
        assert context.user_id == "u1"
        assert context.phone == "+911234567890"
        assert context.email is None
        assert context.total_cost == Decimal("44.72")

    def test_requires_user_id(self) -> None:
        with pytest.raises(MessageFormatError):
            DeliveryContext.from_dict({"phone": "+911234567890"})
        with pytest.raises(MessageFormatError):
            DeliveryContext.from_dict(None)
