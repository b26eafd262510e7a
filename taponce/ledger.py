"""
Agent Ledger

Keeps per-agent earnings, sales and payouts. Every mutation for one agent
runs under that agent's lock, so concurrent approvals or payouts cannot
lose updates or overdraw the balance.

Earnings are recorded per originating order:
- credited to total_earnings when the order is approved
- released into available_balance when the order is paid
- reversed (while still unreleased) if an approved order is dropped
"""

import threading
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Set, Tuple

from .errors import DuplicateEarningError, InsufficientBalanceError, LedgerError, ValidationError
from .models import LedgerSnapshot, PaymentMethod, Payout, PayoutStatus, utcnow

COMMISSION = "commission"
OVERRIDE = "override"


@dataclass
class _Earning:
    amount: Decimal
    kind: str
    source_agent_id: Optional[str] = None
    released: bool = False


@dataclass
class _Account:
    earnings: Dict[Tuple[str, str], _Earning] = field(default_factory=dict)
    sales: Set[str] = field(default_factory=set)
    payouts: List[Payout] = field(default_factory=list)

    @property
    def total_earnings(self) -> Decimal:
        return sum((e.amount for e in self.earnings.values()), Decimal("0"))

    @property
    def released_earnings(self) -> Decimal:
        return sum((e.amount for e in self.earnings.values() if e.released), Decimal("0"))

    @property
    def amount_received(self) -> Decimal:
        return sum(
            (p.amount for p in self.payouts if p.status == PayoutStatus.COMPLETED), Decimal("0")
        )

    @property
    def available_balance(self) -> Decimal:
        return self.released_earnings - self.amount_received


class AgentLedger:
    """Per-agent running aggregates derived from orders and payouts."""

    def __init__(self):
        self._accounts: Dict[str, _Account] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, agent_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(agent_id)
            if lock is None:
                lock = self._locks[agent_id] = threading.Lock()
                self._accounts[agent_id] = _Account()
            return lock

    # -------------------------------------------------------------------------
    # Earnings
    # -------------------------------------------------------------------------

    def record_commission_earning(
        self, agent_id: str, order_id: str, amount: Decimal, released: bool = False
    ) -> None:
        """Credit the selling agent's commission for an order, exactly once."""
        self._record_earning(agent_id, order_id, _Earning(amount, COMMISSION, agent_id, released))

    def record_override_earning(
        self,
        parent_agent_id: str,
        order_id: str,
        amount: Decimal,
        source_agent_id: Optional[str] = None,
        released: bool = False,
    ) -> None:
        """Credit a parent agent's override for a sub-agent order, exactly once."""
        self._record_earning(parent_agent_id, order_id, _Earning(amount, OVERRIDE, source_agent_id, released))

    def _record_earning(self, agent_id: str, order_id: str, earning: _Earning) -> None:
        if earning.amount < 0:
            raise ValidationError(f"Earning amount cannot be negative, got: {earning.amount}")

        with self._lock_for(agent_id):
            account = self._accounts[agent_id]
            key = (order_id, earning.kind)
            if key in account.earnings:
                raise DuplicateEarningError(
                    f"{earning.kind.capitalize()} for order {order_id} already recorded for agent {agent_id}"
                )
            account.earnings[key] = earning

    def has_earning(self, agent_id: str, order_id: str, kind: str = COMMISSION) -> bool:
        with self._lock_for(agent_id):
            return (order_id, kind) in self._accounts[agent_id].earnings

    def release_order_earnings(self, agent_id: str, order_id: str) -> Decimal:
        """Make an order's earnings payable. Returns the amount newly released."""
        released = Decimal("0")
        with self._lock_for(agent_id):
            for (entry_order_id, _), earning in self._accounts[agent_id].earnings.items():
                if entry_order_id == order_id and not earning.released:
                    earning.released = True
                    released += earning.amount
        return released

    def reverse_order_earnings(self, agent_id: str, order_id: str) -> Decimal:
        """Remove an order's unreleased earnings. Returns the amount removed."""
        with self._lock_for(agent_id):
            account = self._accounts[agent_id]
            keys = [key for key in account.earnings if key[0] == order_id]
            if any(account.earnings[key].released for key in keys):
                raise LedgerError(
                    f"Earnings for order {order_id} were already released to agent {agent_id}"
                )
            return sum((account.earnings.pop(key).amount for key in keys), Decimal("0"))

    # -------------------------------------------------------------------------
    # Sales
    # -------------------------------------------------------------------------

    def record_sale(self, agent_id: str, order_id: str) -> bool:
        """Count a delivered order once. Returns False if it was already counted."""
        with self._lock_for(agent_id):
            sales = self._accounts[agent_id].sales
            if order_id in sales:
                return False
            sales.add(order_id)
            return True

    # -------------------------------------------------------------------------
    # Payouts
    # -------------------------------------------------------------------------

    def record_payout(
        self,
        agent_id: str,
        amount: Decimal,
        method: PaymentMethod,
        admin_notes: Optional[str] = None,
    ) -> Payout:
        """
        Pay out part of the available balance.

        The balance check and the debit happen under the agent's lock, so a
        second concurrent payout sees the first one.
        """
        if amount <= 0:
            raise ValidationError(f"Payout amount must be positive, got: {amount}")

        with self._lock_for(agent_id):
            account = self._accounts[agent_id]
            available = account.available_balance
            if amount > available:
                raise InsufficientBalanceError(
                    f"Payout of {amount} exceeds available balance of {available} for agent {agent_id}"
                )
            payout = Payout(
                id=str(uuid.uuid4()),
                agent_id=agent_id,
                amount=amount,
                payment_method=method,
                status=PayoutStatus.COMPLETED,
                admin_notes=admin_notes,
                created_at=utcnow(),
            )
            account.payouts.append(payout)
            return payout

    def payouts_for(self, agent_id: str) -> List[Payout]:
        with self._lock_for(agent_id):
            return list(self._accounts[agent_id].payouts)

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def snapshot(self, agent_id: str) -> LedgerSnapshot:
        with self._lock_for(agent_id):
            account = self._accounts[agent_id]
            total = account.total_earnings
            completed = [p for p in account.payouts if p.status == PayoutStatus.COMPLETED]
            return LedgerSnapshot(
                agent_id=agent_id,
                total_sales=len(account.sales),
                total_earnings=total,
                pending_earnings=total - account.released_earnings,
                available_balance=account.available_balance,
                amount_received=account.amount_received,
                override_earnings=sum(
                    (e.amount for e in account.earnings.values() if e.kind == OVERRIDE), Decimal("0")
                ),
                last_payout_at=completed[-1].created_at if completed else None,
            )

    def override_earnings_from(self, parent_agent_id: str, source_agent_id: str) -> Decimal:
        """Override earned by a parent on one sub-agent's orders."""
        with self._lock_for(parent_agent_id):
            return sum(
                (
                    e.amount
                    for e in self._accounts[parent_agent_id].earnings.values()
                    if e.kind == OVERRIDE and e.source_agent_id == source_agent_id
                ),
                Decimal("0"),
            )

    def commission_liabilities(self) -> List[LedgerSnapshot]:
        """Agents still owed money, largest balance first (admin finance view)."""
        with self._registry_lock:
            agent_ids = list(self._accounts)
        owed = [s for s in (self.snapshot(a) for a in agent_ids) if s.available_balance > 0]
        return sorted(owed, key=lambda s: s.available_balance, reverse=True)
