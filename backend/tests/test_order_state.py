"""
Order state machine tests (no database).
"""

import pytest

from laundromat.models import Order
from laundromat.services import order_state
from laundromat.services.order_state import InvalidTransitionError
from laundromat.validation import ValidationError, ForbiddenError


def make_order(status="received"):
    return Order(order_number="KP00001", status=status)


class TestTransitions:

    def test_happy_path_stamps_each_stage(self):
        order = make_order()
        for status in ("cleaned", "ready", "delivered"):
            order_state.apply_transition(order, status, "Sam")
        assert order.status == "delivered"
        assert order.cleaned_by == "Sam"
        assert order.ready_by == "Sam"
        assert order.delivered_by == "Sam"
        assert order.delivered_at is not None

    def test_cannot_skip_cleaned(self):
        order = make_order()
        with pytest.raises(InvalidTransitionError):
            order_state.apply_transition(order, "ready", "Sam")
        assert order.status == "received"
        assert order.ready_at is None

    def test_cancel_from_received(self):
        order = make_order()
        order_state.apply_transition(order, "cancelled", "Sam")
        assert order.status == "cancelled"
        assert order.cancelled_by == "Sam"

    def test_cancelled_is_terminal(self):
        order = make_order("cancelled")
        with pytest.raises(InvalidTransitionError):
            order_state.apply_transition(order, "cleaned", "Sam")

    @pytest.mark.parametrize("target", ["received", "cleaned", "ready", "cancelled", "delivered"])
    def test_delivered_is_terminal(self, target):
        order = make_order("delivered")
        with pytest.raises(InvalidTransitionError):
            order_state.apply_transition(order, target, "Sam")

    def test_cannot_cancel_after_cleaning(self):
        order = make_order("cleaned")
        with pytest.raises(InvalidTransitionError, match="received"):
            order_state.cancel(order, "Sam")

    def test_same_status_restamps(self):
        order = make_order("cleaned")
        order_state.apply_transition(order, "cleaned", "Kim")
        assert order.status == "cleaned"
        assert order.cleaned_by == "Kim"

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            order_state.apply_transition(make_order(), "washing", "Sam")


class TestDeliverFastPath:

    def test_delivers_from_received(self):
        order = make_order()
        order_state.mark_delivered(order, "Dee")
        assert order.status == "delivered"
        assert order.cleaned_at is None
        assert order.delivered_by == "Dee"

    def test_rejects_terminal(self):
        with pytest.raises(InvalidTransitionError):
            order_state.mark_delivered(make_order("cancelled"), "Dee")


class TestEditability:

    def test_customer_edit_only_while_received(self):
        order_state.ensure_customer_editable(make_order("received"))
        with pytest.raises(ForbiddenError):
            order_state.ensure_customer_editable(make_order("cleaned"))

    def test_staff_edit_blocked_when_terminal(self):
        order_state.ensure_editable(make_order("ready"))
        with pytest.raises(InvalidTransitionError):
            order_state.ensure_editable(make_order("delivered"))
