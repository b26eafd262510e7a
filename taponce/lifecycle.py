"""
Order Lifecycle

Single source of truth for order status transitions. Every status change
goes through OrderLifecycle.validate_transition before it is applied.
"""

from typing import Dict, FrozenSet, Iterable, List, Optional

from .errors import InvalidTransitionError, TerminalStateError
from .models import Order, OrderStatus

# Forward fulfillment path, one step at a time
FORWARD_CHAIN: List[OrderStatus] = [
    OrderStatus.PENDING_APPROVAL,
    OrderStatus.APPROVED,
    OrderStatus.PRINTING,
    OrderStatus.PRINTED,
    OrderStatus.READY_TO_SHIP,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.PAID,
]

ESCAPE_STATES: FrozenSet[OrderStatus] = frozenset({OrderStatus.REJECTED, OrderStatus.CANCELLED})

# Production has not started yet, so the order can still be dropped
ESCAPABLE_FROM: FrozenSet[OrderStatus] = frozenset({OrderStatus.PENDING_APPROVAL, OrderStatus.APPROVED})

TERMINAL_STATES: FrozenSet[OrderStatus] = frozenset({OrderStatus.PAID}) | ESCAPE_STATES


def _build_transitions() -> Dict[OrderStatus, FrozenSet[OrderStatus]]:
    table = {status: set() for status in OrderStatus}
    for current, following in zip(FORWARD_CHAIN, FORWARD_CHAIN[1:]):
        table[current].add(following)
    for status in ESCAPABLE_FROM:
        table[status] |= ESCAPE_STATES
    return {status: frozenset(targets) for status, targets in table.items()}


TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = _build_transitions()

# Kanban board columns (admin orders page), in display order
KANBAN_COLUMNS: Dict[OrderStatus, str] = {
    OrderStatus.PENDING_APPROVAL: "Pending Approval",
    OrderStatus.APPROVED: "Approved",
    OrderStatus.PRINTING: "Printing",
    OrderStatus.PRINTED: "Printed",
    OrderStatus.READY_TO_SHIP: "Ready to Ship",
    OrderStatus.SHIPPED: "Shipped",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.PAID: "Paid",
    OrderStatus.REJECTED: "Rejected",
    OrderStatus.CANCELLED: "Cancelled",
}


class OrderLifecycle:
    """Finite-state machine over OrderStatus."""

    initial_state = OrderStatus.PENDING_APPROVAL

    def is_terminal(self, status: OrderStatus) -> bool:
        return status in TERMINAL_STATES

    def allowed_transitions(self, status: OrderStatus) -> List[OrderStatus]:
        """Legal next states, in Kanban order."""
        targets = TRANSITIONS[status]
        return [s for s in KANBAN_COLUMNS if s in targets]

    def can_transition(self, current: OrderStatus, target: OrderStatus) -> bool:
        return target in TRANSITIONS[current]

    def next_status(self, status: OrderStatus) -> Optional[OrderStatus]:
        """The forward successor, or None for the end of the chain and escape states."""
        if status not in FORWARD_CHAIN:
            return None
        index = FORWARD_CHAIN.index(status)
        if index + 1 < len(FORWARD_CHAIN):
            return FORWARD_CHAIN[index + 1]
        return None

    def reached(self, status: OrderStatus, milestone: OrderStatus) -> bool:
        """True when status is milestone or later on the forward chain."""
        if status not in FORWARD_CHAIN:
            return False
        return FORWARD_CHAIN.index(status) >= FORWARD_CHAIN.index(milestone)

    def validate_transition(self, current: OrderStatus, target: OrderStatus) -> None:
        """
        Raise a StateError if current -> target is not permitted.

        The message distinguishes terminal orders, late rejections and
        skipped steps.
        """
        if self.is_terminal(current):
            raise TerminalStateError(
                f"Order is {current.value}; no further transitions are permitted"
            )

        if self.can_transition(current, target):
            return

        allowed = ", ".join(s.value for s in self.allowed_transitions(current))
        if target in ESCAPE_STATES:
            raise InvalidTransitionError(
                f"Cannot move to {target.value} from {current.value}: production has started. "
                f"Allowed: {allowed}"
            )
        raise InvalidTransitionError(
            f"Cannot move from {current.value} to {target.value}. Allowed: {allowed}"
        )

    def group_by_status(self, orders: Iterable[Order]) -> Dict[OrderStatus, List[Order]]:
        """Bucket orders into Kanban columns; every column is present."""
        board = {status: [] for status in KANBAN_COLUMNS}
        for order in orders:
            board[order.status].append(order)
        return board
