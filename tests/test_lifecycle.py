"""
Unit Tests for the Order Lifecycle state machine
"""

import pytest
from taponce.errors import InvalidTransitionError, StateError, TerminalStateError
from taponce.lifecycle import FORWARD_CHAIN, KANBAN_COLUMNS, TRANSITIONS, OrderLifecycle
from taponce.models import Order, OrderStatus
from decimal import Decimal


@pytest.fixture
def lifecycle():
    return OrderLifecycle()


class TestTransitionTable:
    """Test which transitions are legal."""

    def test_initial_state_is_pending_approval(self, lifecycle):
        assert lifecycle.initial_state == OrderStatus.PENDING_APPROVAL

    def test_pending_approval_successors(self, lifecycle):
        assert set(lifecycle.allowed_transitions(OrderStatus.PENDING_APPROVAL)) == {
            OrderStatus.APPROVED, OrderStatus.REJECTED, OrderStatus.CANCELLED
        }

    def test_approved_can_still_be_dropped(self, lifecycle):
        assert set(lifecycle.allowed_transitions(OrderStatus.APPROVED)) == {
            OrderStatus.PRINTING, OrderStatus.REJECTED, OrderStatus.CANCELLED
        }

    @pytest.mark.parametrize("status", FORWARD_CHAIN[2:-1])
    def test_production_states_only_move_forward(self, lifecycle, status):
        index = FORWARD_CHAIN.index(status)
        assert lifecycle.allowed_transitions(status) == [FORWARD_CHAIN[index + 1]]

    @pytest.mark.parametrize("status", [OrderStatus.PAID, OrderStatus.REJECTED, OrderStatus.CANCELLED])
    def test_terminal_states_have_no_successors(self, lifecycle, status):
        assert lifecycle.is_terminal(status)
        assert lifecycle.allowed_transitions(status) == []

    def test_every_status_in_table_and_board(self):
        assert set(TRANSITIONS) == set(OrderStatus)
        assert list(KANBAN_COLUMNS) == FORWARD_CHAIN + [OrderStatus.REJECTED, OrderStatus.CANCELLED]

    def test_next_status(self, lifecycle):
        assert lifecycle.next_status(OrderStatus.PRINTING) == OrderStatus.PRINTED
        assert lifecycle.next_status(OrderStatus.PAID) is None
        assert lifecycle.next_status(OrderStatus.REJECTED) is None

    def test_reached(self, lifecycle):
        assert lifecycle.reached(OrderStatus.SHIPPED, OrderStatus.APPROVED)
        assert lifecycle.reached(OrderStatus.APPROVED, OrderStatus.APPROVED)
        assert not lifecycle.reached(OrderStatus.PENDING_APPROVAL, OrderStatus.APPROVED)
        assert not lifecycle.reached(OrderStatus.CANCELLED, OrderStatus.APPROVED)


class TestValidateTransition:
    """Test the error raised for each kind of illegal move."""

    @pytest.mark.parametrize("target", [
        OrderStatus.PRINTING, OrderStatus.PRINTED, OrderStatus.READY_TO_SHIP,
        OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.PAID,
    ])
    def test_cannot_skip_from_pending(self, lifecycle, target):
        with pytest.raises(InvalidTransitionError):
            lifecycle.validate_transition(OrderStatus.PENDING_APPROVAL, target)

    def test_cannot_skip_printing(self, lifecycle):
        with pytest.raises(InvalidTransitionError):
            lifecycle.validate_transition(OrderStatus.APPROVED, OrderStatus.PRINTED)

    def test_cannot_move_backwards(self, lifecycle):
        with pytest.raises(InvalidTransitionError):
            lifecycle.validate_transition(OrderStatus.SHIPPED, OrderStatus.PRINTING)

    @pytest.mark.parametrize("current", FORWARD_CHAIN[2:-1])
    @pytest.mark.parametrize("target", [OrderStatus.REJECTED, OrderStatus.CANCELLED])
    def test_cannot_drop_after_printing_started(self, lifecycle, current, target):
        with pytest.raises(StateError, match="production has started"):
            lifecycle.validate_transition(current, target)

    @pytest.mark.parametrize("current", [OrderStatus.PAID, OrderStatus.REJECTED, OrderStatus.CANCELLED])
    def test_terminal_states_reject_everything(self, lifecycle, current):
        with pytest.raises(TerminalStateError):
            lifecycle.validate_transition(current, OrderStatus.APPROVED)

    def test_valid_transition_passes(self, lifecycle):
        lifecycle.validate_transition(OrderStatus.READY_TO_SHIP, OrderStatus.SHIPPED)


class TestKanbanGrouping:

    def test_groups_orders_by_status(self, lifecycle):
        orders = [
            Order(id=str(i), order_number=12001 + i, card_design_id="d1",
                  msp_at_order=Decimal('600'), sale_price=Decimal('699'), status=status)
            for i, status in enumerate([OrderStatus.APPROVED, OrderStatus.APPROVED, OrderStatus.PAID])
        ]
        board = lifecycle.group_by_status(orders)

        assert len(board) == 10
        assert [o.id for o in board[OrderStatus.APPROVED]] == ["0", "1"]
        assert [o.id for o in board[OrderStatus.PAID]] == ["2"]
        assert board[OrderStatus.SHIPPED] == []
