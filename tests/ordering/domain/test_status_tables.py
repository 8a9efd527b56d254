"""Tests for status vocabularies, the transition table and labels."""

import pytest
from ordering.order.status import (
    ORDER_TRANSITIONS,
    OrderStatus,
    PaymentStatus,
    ShippingStatus,
    allowed_transitions,
    can_transition,
    is_failed_final,
    is_successful,
    label,
)

ALLOWED = {
    ("pending", "confirmed"),
    ("pending", "cancelled"),
    ("confirmed", "processing"),
    ("confirmed", "cancelled"),
    ("processing", "shipped"),
    ("processing", "cancelled"),
    ("shipped", "delivered"),
    ("delivered", "refunded"),
}


class TestOrderTransitionTable:
    @pytest.mark.parametrize("current", list(OrderStatus))
    @pytest.mark.parametrize("target", list(OrderStatus))
    def test_only_listed_edges_are_allowed(self, current, target):
        assert can_transition(current, target) == ((current.value, target.value) in ALLOWED)

    def test_terminal_statuses_have_no_exits(self):
        assert allowed_transitions(OrderStatus.CANCELLED) == frozenset()
        assert allowed_transitions(OrderStatus.REFUNDED) == frozenset()

    def test_accepts_raw_string_values(self):
        assert can_transition("pending", "confirmed")
        assert not can_transition("shipped", "cancelled")

    def test_every_status_has_an_entry(self):
        assert set(ORDER_TRANSITIONS) == set(OrderStatus)


class TestWireValues:
    def test_order_status_values(self):
        assert [s.value for s in OrderStatus] == [
            "pending",
            "confirmed",
            "processing",
            "shipped",
            "delivered",
            "cancelled",
            "refunded",
        ]

    def test_payment_status_values_round_trip(self):
        for status in PaymentStatus:
            assert PaymentStatus(status.value) is status

    def test_shipping_status_values_round_trip(self):
        for status in ShippingStatus:
            assert ShippingStatus(status.value) is status


class TestPaymentPredicates:
    def test_paid_and_approved_are_successful(self):
        assert is_successful("paid")
        assert is_successful(PaymentStatus.APPROVED)
        assert not is_successful("pending")

    def test_failed_rejected_cancelled_are_final_failures(self):
        assert is_failed_final("failed")
        assert is_failed_final("rejected")
        assert is_failed_final("cancelled")
        assert not is_failed_final("refunded")


class TestLabels:
    def test_order_label(self):
        assert label(OrderStatus.PENDING) == "Pending"

    def test_failed_shipment_reads_as_delivery_failed(self):
        assert label(ShippingStatus.FAILED) == "Delivery Failed"

    def test_multi_word_labels(self):
        assert label(PaymentStatus.PARTIALLY_REFUNDED) == "Partially Refunded"
        assert label(ShippingStatus.OUT_FOR_DELIVERY) == "Out for Delivery"

    def test_every_status_has_a_label(self):
        for enum in (OrderStatus, PaymentStatus, ShippingStatus):
            for status in enum:
                assert label(status)
