"""
Order Processor - Main Orchestrator

Coordinates order creation, status transitions, commission snapshots and
payouts across the calculators, the lifecycle controller and the ledger.
"""

import logging
import secrets
import threading
import uuid
from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Union

from .calculators import CommissionCalculator, MspResolver
from .config import DEFAULT_SETTINGS, Settings
from .errors import BelowMspApprovalError, NotFoundError, ValidationError
from .ledger import AgentLedger
from .lifecycle import OrderLifecycle
from .models import (
    ActiveStatus,
    Agent,
    AgentMsp,
    CardDesign,
    CreateAgentRequest,
    CreateOrderRequest,
    LedgerSnapshot,
    Order,
    OrderStatus,
    PaymentStatus,
    Payout,
    PayoutRequest,
    SubAgentSummary,
    TransitionContext,
    parse_active_status,
    parse_order_status,
    to_decimal,
    utcnow,
)
from .repository import InMemoryRepository, Repository
from .validators import InputValidator

logger = logging.getLogger(__name__)


class OrderProcessor:
    """
    Main orchestrator for the order economics.

    Transition pipeline:
    1. Lock the order
    2. Short-circuit retries (target == current status)
    3. Validate against the lifecycle table
    4. Build the updated order (all required fields checked here)
    5. Apply ledger side effects
    6. Commit the order
    """

    def __init__(
        self,
        repository: Optional[Repository] = None,
        ledger: Optional[AgentLedger] = None,
        settings: Settings = DEFAULT_SETTINGS,
    ):
        self.settings = settings
        self.repository = repository if repository is not None else InMemoryRepository(
            order_number_prefix=settings.order_number_prefix
        )
        self.ledger = ledger if ledger is not None else AgentLedger()
        self.validator = InputValidator()
        self.lifecycle = OrderLifecycle()
        self.commission_calculator = CommissionCalculator(settings)
        self.msp_resolver = MspResolver(self.repository)

        self._order_locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _order_lock(self, order_id: str) -> threading.Lock:
        with self._registry_lock:
            return self._order_locks.setdefault(order_id, threading.Lock())

    def _release_order_lock(self, order_id: str) -> None:
        # Terminal orders never change again, so their lock is not needed.
        with self._registry_lock:
            self._order_locks.pop(order_id, None)

    # =========================================================================
    # CATALOG & AGENT DIRECTORY
    # =========================================================================

    def add_card_design(self, design: Union[CardDesign, Dict[str, Any]]) -> CardDesign:
        if isinstance(design, dict):
            data = dict(design)
            data.setdefault("id", str(uuid.uuid4()))
            design = CardDesign.from_dict(data)
        self.validator.validate_card_design(design)
        return self.repository.add_card_design(design)

    def set_agent_msp(self, agent_id: str, design_id: str, msp_amount) -> AgentMsp:
        self._require_agent(agent_id)
        self._require_design(design_id)
        amount = to_decimal(msp_amount, "msp_amount")
        self.validator.validate_agent_msp(amount)
        return self.repository.set_agent_msp(AgentMsp(agent_id, design_id, amount))

    def set_design_status(self, design_id: str, status: Union[ActiveStatus, str]) -> CardDesign:
        """Take a design off sale (or back on). Existing orders are unaffected."""
        design = self._require_design(design_id)
        status = parse_active_status(status)
        if design.status == status:
            return design
        logger.info(f"Card design {design_id}: {design.status.value} -> {status.value}")
        return self.repository.update_card_design(replace(design, status=status))

    def list_card_designs(
        self,
        search: Optional[str] = None,
        status: Union[ActiveStatus, str, None] = None,
    ) -> List[CardDesign]:
        designs = self.repository.card_designs()
        if status is not None:
            wanted = parse_active_status(status)
            designs = [d for d in designs if d.status == wanted]
        if search:
            term = search.lower()
            designs = [
                d for d in designs
                if term in d.name.lower() or term in (d.description or "").lower()
            ]
        return designs

    def clear_agent_msp(self, agent_id: str, design_id: str) -> bool:
        return self.repository.clear_agent_msp(agent_id, design_id)

    def agent_catalog(self, agent_id: str) -> List[Tuple[CardDesign, Decimal]]:
        self._require_agent(agent_id)
        return self.msp_resolver.agent_catalog(agent_id)

    def register_agent(self, request: Union[CreateAgentRequest, Dict[str, Any]]) -> Agent:
        """Create an agent with a fresh referral code."""
        if isinstance(request, dict):
            request = CreateAgentRequest.from_dict(request)
        self.validator.validate_create_agent(request)

        agent_id = str(uuid.uuid4())
        self.validator.validate_parent_link(agent_id, request.parent_agent_id, self.repository.get_agent)

        base_commission = request.base_commission
        if base_commission is None:
            base_commission = self.settings.default_base_commission

        agent = Agent(
            id=agent_id,
            full_name=request.full_name,
            referral_code=self._generate_referral_code(request.full_name),
            base_commission=base_commission,
            parent_agent_id=request.parent_agent_id,
            email=request.email,
            phone=request.phone,
            city=request.city,
        )
        logger.info(f"Registered agent {agent.id} ({agent.referral_code})")
        return self.repository.add_agent(agent)

    def set_parent_agent(self, agent_id: str, parent_agent_id: Optional[str]) -> Agent:
        agent = self._require_agent(agent_id)
        self.validator.validate_parent_link(agent_id, parent_agent_id, self.repository.get_agent)
        return self.repository.update_agent(replace(agent, parent_agent_id=parent_agent_id))

    def set_agent_status(self, agent_id: str, status: Union[ActiveStatus, str]) -> Agent:
        """
        Activate or deactivate an agent.

        Inactive agents cannot take new orders. Their in-flight orders and
        ledger balance are left as they are, so payouts still work.
        """
        agent = self._require_agent(agent_id)
        status = parse_active_status(status)
        if agent.status == status:
            return agent
        logger.info(f"Agent {agent_id}: {agent.status.value} -> {status.value}")
        return self.repository.update_agent(replace(agent, status=status))

    def list_agents(
        self,
        search: Optional[str] = None,
        status: Union[ActiveStatus, str, None] = None,
    ) -> List[Agent]:
        """Agents matching a name/email/referral code/phone search, newest first."""
        agents = sorted(self.repository.agents(), key=lambda a: a.created_at, reverse=True)
        if status is not None:
            wanted = parse_active_status(status)
            agents = [a for a in agents if a.status == wanted]
        if search:
            term = search.lower()
            agents = [
                a for a in agents
                if term in a.full_name.lower()
                or term in (a.email or "").lower()
                or term in a.referral_code.lower()
                or term in (a.phone or "")
            ]
        return agents

    def _generate_referral_code(self, full_name: str) -> str:
        prefix = "".join(ch for ch in full_name.upper() if ch.isalpha())[:4] or "TAP"
        for _ in range(8):
            code = f"{prefix}{secrets.randbelow(9000) + 1000}"
            if self.repository.find_agent_by_referral_code(code) is None:
                return code
        # fallback (should never happen)
        return f"{prefix}{secrets.token_hex(4).upper()}"

    # =========================================================================
    # ORDERS
    # =========================================================================

    def create_order(self, request: Union[CreateOrderRequest, Dict[str, Any]]) -> Order:
        """
        Create an order in pending_approval.

        The MSP is snapshotted now; commission is not computed until approval.
        """
        if isinstance(request, dict):
            request = CreateOrderRequest.from_dict(request)
        self.validator.validate_create_order(request)

        design = self._require_design(request.card_design_id)
        if not design.is_active:
            raise ValidationError(f"Card design {design.id} is not available for sale")

        agent = self._resolve_selling_agent(request)
        if agent is not None and not agent.is_active:
            raise ValidationError(f"Agent {agent.id} is inactive and cannot take orders")

        msp = self.msp_resolver.resolve(agent.id if agent else None, design)
        now = utcnow()

        order = Order(
            id=str(uuid.uuid4()),
            order_number=self.repository.next_order_number(),
            card_design_id=design.id,
            msp_at_order=msp,
            sale_price=request.sale_price,
            agent_id=agent.id if agent else None,
            status=self.lifecycle.initial_state,
            payment_status=request.payment_status,
            is_below_msp=request.sale_price < msp,
            customer_name=request.customer_name,
            customer_phone=request.customer_phone,
            customer_email=request.customer_email,
            customer_company=request.customer_company,
            special_instructions=request.special_instructions,
            created_at=now,
            updated_at=now,
        )
        self.repository.save_order(order)

        logger.info(
            f"Created order #{order.order_number} for design {design.id} "
            f"(agent={order.agent_id or 'direct'}, below_msp={order.is_below_msp})"
        )
        return order

    def _resolve_selling_agent(self, request: CreateOrderRequest) -> Optional[Agent]:
        if request.agent_id:
            return self._require_agent(request.agent_id)
        if request.referral_code:
            agent = self.repository.find_agent_by_referral_code(request.referral_code)
            if agent is None:
                raise NotFoundError(f"No agent with referral code {request.referral_code}")
            return agent
        return None

    def transition_order(
        self,
        order_id: str,
        target: Union[OrderStatus, str],
        context: Union[TransitionContext, Dict[str, Any], None] = None,
    ) -> Order:
        """
        Move an order to its next state and apply side effects.

        Retrying a transition that already happened returns the order
        unchanged. A failed transition leaves the order and ledger untouched.
        """
        target = parse_order_status(target)
        context = self._context(context)

        with self._order_lock(order_id):
            order = self._require_order(order_id)

            if order.status == target:
                return order

            self.lifecycle.validate_transition(order.status, target)

            if target == OrderStatus.APPROVED and order.is_below_msp:
                raise BelowMspApprovalError(
                    f"Order #{order.order_number} sold at {order.sale_price} below MSP "
                    f"{order.msp_at_order}; requires below-MSP override approval"
                )

            updated = self._build_transition(order, target, context)
            self._apply_ledger_effects(order, updated)
            self.repository.save_order(updated)

            if self.lifecycle.is_terminal(target):
                self._release_order_lock(order_id)

        logger.info(f"Order #{order.order_number}: {order.status.value} -> {target.value}")
        return updated

    def approve_below_msp(
        self,
        order_id: str,
        context: Union[TransitionContext, Dict[str, Any], None] = None,
    ) -> Order:
        """Admin override that approves an order sold below MSP."""
        context = self._context(context)

        with self._order_lock(order_id):
            order = self._require_order(order_id)

            if order.status == OrderStatus.APPROVED and order.below_msp_override:
                return order

            self.lifecycle.validate_transition(order.status, OrderStatus.APPROVED)

            if not order.is_below_msp:
                raise ValidationError(
                    f"Order #{order.order_number} is not below MSP; use the normal approval"
                )

            updated = self._build_approval(order, context, below_msp_override=True)
            self._apply_ledger_effects(order, updated)
            self.repository.save_order(updated)

        logger.info(
            f"Order #{order.order_number}: approved below MSP by override "
            f"(sale={order.sale_price}, msp={order.msp_at_order})"
        )
        return updated

    def _context(self, context) -> TransitionContext:
        if context is None:
            return TransitionContext()
        if isinstance(context, dict):
            return TransitionContext.from_dict(context)
        return context

    def _build_transition(self, order: Order, target: OrderStatus, context: TransitionContext) -> Order:
        """Return the order as it will look after the transition. No side effects."""
        if target == OrderStatus.APPROVED:
            return self._build_approval(order, context, below_msp_override=False)

        now = utcnow()
        changes: Dict[str, Any] = {"status": target, "updated_at": now}
        if context.admin_notes:
            changes["admin_notes"] = context.admin_notes

        if target == OrderStatus.SHIPPED:
            tracking = (context.tracking_number or "").strip()
            if not tracking:
                raise ValidationError(f"tracking_number is required to ship order #{order.order_number}")
            changes.update(tracking_number=tracking, shipped_at=now)
        elif target == OrderStatus.DELIVERED:
            changes["delivered_at"] = now
        elif target == OrderStatus.PAID:
            changes.update(paid_at=now, payment_status=PaymentStatus.PAID)
        elif target in (OrderStatus.REJECTED, OrderStatus.CANCELLED):
            if context.rejection_reason:
                changes["rejection_reason"] = context.rejection_reason

        return replace(order, **changes)

    def _build_approval(self, order: Order, context: TransitionContext, below_msp_override: bool) -> Order:
        """
        Snapshot commission and override at approval.

        Below-MSP orders approved by override earn the agent's base
        commission with no negotiation bonus. Override commission is
        withheld for below-MSP orders until that override happens.
        """
        commission_amount = Decimal("0")
        override_commission = Decimal("0")
        override_agent_id = None

        if order.agent_id is not None:
            agent = self._require_agent(order.agent_id)
            result = self.commission_calculator.calculate(
                order.sale_price, order.msp_at_order, agent.base_commission
            )
            if result.is_below_msp:
                commission_amount = result.base_commission if below_msp_override else Decimal("0")
            else:
                commission_amount = result.total_commission

            if agent.parent_agent_id is not None:
                override_agent_id = agent.parent_agent_id
                override_commission = self.commission_calculator.calculate_override(order.sale_price)

        now = utcnow()
        return replace(
            order,
            status=OrderStatus.APPROVED,
            commission_amount=commission_amount,
            override_commission=override_commission,
            override_agent_id=override_agent_id,
            below_msp_override=below_msp_override,
            approved_at=now,
            updated_at=now,
            admin_notes=context.admin_notes or order.admin_notes,
            portfolio_slug=context.portfolio_slug or order.portfolio_slug,
        )

    def _apply_ledger_effects(self, before: Order, after: Order) -> None:
        """Ledger writes for a committed transition, undone if a later write fails."""
        status = after.status

        if status == OrderStatus.APPROVED:
            if after.agent_id is None:
                return
            self.ledger.record_commission_earning(after.agent_id, after.id, after.commission_amount)
            if after.override_agent_id is not None:
                try:
                    self.ledger.record_override_earning(
                        after.override_agent_id,
                        after.id,
                        after.override_commission,
                        source_agent_id=after.agent_id,
                    )
                except Exception:
                    self.ledger.reverse_order_earnings(after.agent_id, after.id)
                    raise

        elif status == OrderStatus.DELIVERED:
            if after.agent_id is not None:
                self.ledger.record_sale(after.agent_id, after.id)

        elif status == OrderStatus.PAID:
            for agent_id in self._earning_agents(after):
                self.ledger.release_order_earnings(agent_id, after.id)
            self.repository.increment_design_sales(after.card_design_id)

        elif status in (OrderStatus.REJECTED, OrderStatus.CANCELLED):
            if before.status == OrderStatus.APPROVED:
                for agent_id in self._earning_agents(after):
                    self.ledger.reverse_order_earnings(agent_id, after.id)

    def _earning_agents(self, order: Order) -> List[str]:
        return [a for a in (order.agent_id, order.override_agent_id) if a is not None]

    # =========================================================================
    # PAYOUTS & LEDGER
    # =========================================================================

    def record_payout(self, agent_id: str, amount, method, admin_notes: Optional[str] = None) -> Payout:
        self._require_agent(agent_id)
        request = PayoutRequest.from_dict(
            {"amount": amount, "payment_method": method, "admin_notes": admin_notes}
        )
        self.validator.validate_payout(request)

        payout = self.ledger.record_payout(
            agent_id, request.amount, request.payment_method, request.admin_notes
        )
        logger.info(f"Payout {payout.id}: {payout.amount} to agent {agent_id} via {payout.payment_method.value}")
        return payout

    def payouts_for(self, agent_id: str) -> List[Payout]:
        self._require_agent(agent_id)
        return self.ledger.payouts_for(agent_id)

    def ledger_snapshot(self, agent_id: str) -> LedgerSnapshot:
        self._require_agent(agent_id)
        return self.ledger.snapshot(agent_id)

    def sub_agents(self, parent_agent_id: str) -> List[SubAgentSummary]:
        """Sub-agents referred by this agent, with the override they generated."""
        self._require_agent(parent_agent_id)
        return [
            SubAgentSummary(
                id=child.id,
                full_name=child.full_name,
                total_sales=self.ledger.snapshot(child.id).total_sales,
                override_earnings=self.ledger.override_earnings_from(parent_agent_id, child.id),
                joined_at=child.created_at,
                status=child.status,
            )
            for child in self.repository.children_of(parent_agent_id)
        ]

    def commission_liabilities(self) -> List[Tuple[Agent, LedgerSnapshot]]:
        liabilities = []
        for snapshot in self.ledger.commission_liabilities():
            agent = self.repository.get_agent(snapshot.agent_id)
            if agent is not None:
                liabilities.append((agent, snapshot))
        return liabilities

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_order(self, order_id: str) -> Order:
        return self._require_order(order_id)

    def list_orders(
        self,
        status: Union[OrderStatus, str, None] = None,
        agent_id: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Tuple[List[Order], int]:
        """Filter and paginate orders. Returns (page of orders, total matches)."""
        if limit is None:
            limit = self.settings.default_page_size
        if page < 1:
            raise ValidationError(f"page must be at least 1, got: {page}")
        if limit < 1:
            raise ValidationError(f"limit must be at least 1, got: {limit}")
        limit = min(limit, self.settings.max_page_size)

        orders = self.repository.orders()
        if status is not None:
            wanted = parse_order_status(status)
            orders = [o for o in orders if o.status == wanted]
        if agent_id is not None:
            orders = [o for o in orders if o.agent_id == agent_id]
        if search:
            term = search.lower()
            orders = [
                o for o in orders
                if term in o.customer_name.lower()
                or term in o.customer_phone
                or term in o.customer_email.lower()
                or term in str(o.order_number)
            ]

        start = (page - 1) * limit
        return orders[start:start + limit], len(orders)

    def kanban_board(self) -> Dict[OrderStatus, List[Order]]:
        return self.lifecycle.group_by_status(self.repository.orders())

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def _require_order(self, order_id: str) -> Order:
        order = self.repository.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order not found: {order_id}")
        return order

    def _require_agent(self, agent_id: str) -> Agent:
        agent = self.repository.get_agent(agent_id)
        if agent is None:
            raise NotFoundError(f"Agent not found: {agent_id}")
        return agent

    def _require_design(self, design_id: str) -> CardDesign:
        design = self.repository.get_card_design(design_id)
        if design is None:
            raise NotFoundError(f"Card design not found: {design_id}")
        return design
