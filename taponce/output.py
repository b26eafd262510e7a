"""
Output Builder

Turns engine objects into JSON-ready dictionaries for the HTTP layers.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Tuple

from .config import DEFAULT_SETTINGS
from .models import (
    Agent,
    CardDesign,
    CommissionResult,
    LedgerSnapshot,
    Order,
    OrderStatus,
    Payout,
    SubAgentSummary,
)
from .lifecycle import KANBAN_COLUMNS, OrderLifecycle


def to_money(value: Decimal) -> float:
    """Convert Decimal to float with 2 decimal places."""
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _plain(value: Decimal) -> str:
    """Shortest plain rendering: 100 -> '100', 100.50 -> '100.5'."""
    return format(value.normalize(), "f")


def format_inr(amount: Decimal, decimals: int = 0, symbol: str = DEFAULT_SETTINGS.currency_symbol) -> str:
    """
    Format an amount with Indian digit grouping.

    format_inr(Decimal('1500'))   -> '₹1,500'
    format_inr(Decimal('150000')) -> '₹1,50,000'
    """
    exponent = Decimal(1).scaleb(-decimals)
    rounded = Decimal(amount).quantize(exponent, rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    whole, _, fraction = format(abs(rounded), "f").partition(".")

    # Last three digits, then pairs
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        pairs = []
        while len(head) > 2:
            pairs.insert(0, head[-2:])
            head = head[:-2]
        pairs.insert(0, head)
        whole = ",".join(pairs + [tail])

    return f"{sign}{symbol}{whole}" + (f".{fraction}" if fraction else "")


def _fmt(value: Decimal) -> str:
    """Format a number as currency string for descriptions."""
    return format_inr(value, decimals=2)


def format_commission_breakdown(result: CommissionResult) -> str:
    """
    Human-readable commission line shown to agents and admins.

    '₹100 (base) + ₹49.50 (bonus) = ₹149.50'
    """
    if result.is_below_msp:
        return "Below MSP - requires approval"

    if result.negotiation_bonus == 0:
        return f"₹{_plain(result.base_commission)} (base commission)"

    bonus = result.negotiation_bonus.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    total = result.total_commission.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"₹{_plain(result.base_commission)} (base) + ₹{bonus} (bonus) = ₹{total}"


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


class OutputBuilder:
    """Builds API response bodies."""

    def commission(self, result: CommissionResult, sale_price: Decimal, msp: Decimal) -> dict:
        """Commission calculation with value and description for each field."""
        above = sale_price - msp
        return {
            "base_commission": {
                "value": to_money(result.base_commission),
                "description": "Flat commission per sale for this agent",
            },
            "negotiation_bonus": {
                "value": to_money(result.negotiation_bonus),
                "description": (
                    "No bonus: sale is below MSP"
                    if result.is_below_msp
                    else f"50% × ({_fmt(sale_price)} - {_fmt(msp)}) = {_fmt(result.negotiation_bonus)}"
                    if above > 0
                    else "Sold exactly at MSP - no negotiation bonus"
                ),
            },
            "total_commission": {
                "value": to_money(result.total_commission),
                "description": format_commission_breakdown(result),
            },
            "is_below_msp": result.is_below_msp,
        }

    def override(self, sale_price: Decimal, amount: Decimal, rate: Decimal) -> dict:
        return {
            "sale_price": to_money(sale_price),
            "override_commission": {
                "value": to_money(amount),
                "description": f"{_plain(rate * 100)}% × {_fmt(sale_price)} = {_fmt(amount)}",
            },
        }

    def order(self, order: Order) -> dict:
        return {
            "id": order.id,
            "order_number": order.order_number,
            "card_design_id": order.card_design_id,
            "agent_id": order.agent_id,
            "is_direct_sale": order.is_direct_sale,
            "status": order.status.value,
            "payment_status": order.payment_status.value,
            "allowed_transitions": [
                s.value for s in OrderLifecycle().allowed_transitions(order.status)
            ],
            "msp_at_order": to_money(order.msp_at_order),
            "sale_price": to_money(order.sale_price),
            "commission_amount": to_money(order.commission_amount),
            "override_commission": to_money(order.override_commission),
            "override_agent_id": order.override_agent_id,
            "is_below_msp": order.is_below_msp,
            "below_msp_override": order.below_msp_override,
            "customer_name": order.customer_name,
            "customer_phone": order.customer_phone,
            "customer_email": order.customer_email,
            "customer_company": order.customer_company,
            "tracking_number": order.tracking_number,
            "portfolio_slug": order.portfolio_slug,
            "admin_notes": order.admin_notes,
            "rejection_reason": order.rejection_reason,
            "created_at": _iso(order.created_at),
            "updated_at": _iso(order.updated_at),
            "approved_at": _iso(order.approved_at),
            "shipped_at": _iso(order.shipped_at),
            "delivered_at": _iso(order.delivered_at),
            "paid_at": _iso(order.paid_at),
        }

    def order_list(self, orders: List[Order], total: int, page: int, limit: int) -> dict:
        return {
            "orders": [self.order(o) for o in orders],
            "total": total,
            "page": page,
            "limit": limit,
        }

    def kanban(self, board: Dict[OrderStatus, List[Order]]) -> dict:
        return {
            "columns": [
                {
                    "status": status.value,
                    "label": KANBAN_COLUMNS[status],
                    "count": len(board[status]),
                    "orders": [self.order(o) for o in board[status]],
                }
                for status in KANBAN_COLUMNS
            ]
        }

    def design(self, design: CardDesign, your_msp: Optional[Decimal] = None) -> dict:
        data = {
            "id": design.id,
            "name": design.name,
            "description": design.description,
            "base_msp": to_money(design.base_msp),
            "preview_url": design.preview_url,
            "status": design.status.value,
            "total_sales": design.total_sales,
        }
        if your_msp is not None:
            data["your_msp"] = to_money(your_msp)
        return data

    def agent(self, agent: Agent) -> dict:
        return {
            "id": agent.id,
            "full_name": agent.full_name,
            "referral_code": agent.referral_code,
            "base_commission": to_money(agent.base_commission),
            "parent_agent_id": agent.parent_agent_id,
            "status": agent.status.value,
            "email": agent.email,
            "phone": agent.phone,
            "city": agent.city,
            "created_at": _iso(agent.created_at),
        }

    def ledger(self, snapshot: LedgerSnapshot) -> dict:
        return {
            "agent_id": snapshot.agent_id,
            "total_sales": snapshot.total_sales,
            "total_earnings": to_money(snapshot.total_earnings),
            "pending_earnings": to_money(snapshot.pending_earnings),
            "available_balance": to_money(snapshot.available_balance),
            "amount_received": to_money(snapshot.amount_received),
            "override_earnings": to_money(snapshot.override_earnings),
            "last_payout_at": _iso(snapshot.last_payout_at),
        }

    def payout(self, payout: Payout) -> dict:
        return {
            "id": payout.id,
            "agent_id": payout.agent_id,
            "amount": to_money(payout.amount),
            "payment_method": payout.payment_method.value,
            "status": payout.status.value,
            "admin_notes": payout.admin_notes,
            "created_at": _iso(payout.created_at),
        }

    def sub_agent(self, summary: SubAgentSummary) -> dict:
        return {
            "id": summary.id,
            "full_name": summary.full_name,
            "total_sales": summary.total_sales,
            "override_earnings": to_money(summary.override_earnings),
            "joined_at": _iso(summary.joined_at),
            "status": summary.status.value,
        }

    def liabilities(self, rows: List[Tuple[Agent, LedgerSnapshot]]) -> dict:
        total = sum((s.available_balance for _, s in rows), Decimal("0"))
        return {
            "total_liability": to_money(total),
            "total_liability_display": format_inr(total),
            "agents": [
                {
                    "agent_id": agent.id,
                    "full_name": agent.full_name,
                    "available_balance": to_money(snapshot.available_balance),
                    "last_payout_date": _iso(snapshot.last_payout_at),
                }
                for agent, snapshot in rows
            ],
        }
