"""
Domain Models for the TapOnce Engine

These dataclasses provide type-safe representations of all business entities.
All monetary values use Decimal for precision.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum

from .errors import ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_decimal(value, field_name: str) -> Decimal:
    """Convert a JSON number or string to Decimal, rejecting garbage."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field_name} is required and must be a number, got: {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field_name} must be a number, got: {value!r}") from None
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be finite, got: {value!r}")
    return result


def _pick(data: dict, snake: str, camel: str, default=None):
    """Read a payload key, accepting the web client's camelCase spelling."""
    if snake in data:
        return data[snake]
    return data.get(camel, default)


def _text(value, field_name: str) -> str:
    """Coerce a JSON scalar to str. Missing values become ""."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return str(value)
    raise ValidationError(f"{field_name} must be a string, got: {value!r}")


def _optional_text(value, field_name: str) -> str | None:
    if value is None:
        return None
    return _text(value, field_name)


def _count(value, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a whole number, got: {value!r}")
    try:
        return int(str(value))
    except ValueError:
        raise ValidationError(f"{field_name} must be a whole number, got: {value!r}") from None


def _enum(enum_cls, value, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {field_name}: {value!r}. Must be one of: {allowed}") from None


# =============================================================================
# ENUMERATIONS
# =============================================================================


class OrderStatus(str, Enum):
    """Fulfillment states; each maps to a Kanban column."""

    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    PRINTING = "printing"
    PRINTED = "printed"
    READY_TO_SHIP = "ready_to_ship"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    PAID = "paid"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    ADVANCE_PAID = "advance_paid"
    PAID = "paid"
    COD = "cod"


class PaymentMethod(str, Enum):
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"


class PayoutStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ActiveStatus(str, Enum):
    """Status shared by card designs and agents."""

    ACTIVE = "active"
    INACTIVE = "inactive"


# =============================================================================
# CATALOG & AGENT DIRECTORY
# =============================================================================


@dataclass
class CardDesign:
    """A sellable card template."""

    id: str
    name: str
    base_msp: Decimal
    status: ActiveStatus = ActiveStatus.ACTIVE
    total_sales: int = 0
    description: str | None = None
    preview_url: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == ActiveStatus.ACTIVE

    @classmethod
    def from_dict(cls, data: dict) -> "CardDesign":
        return cls(
            id=_text(data.get("id"), "id"),
            name=_text(data.get("name"), "name"),
            base_msp=to_decimal(_pick(data, "base_msp", "baseMsp"), "base_msp"),
            status=_enum(ActiveStatus, data.get("status", "active"), "status"),
            total_sales=_count(_pick(data, "total_sales", "totalSales", 0), "total_sales"),
            description=_optional_text(data.get("description"), "description"),
            preview_url=_optional_text(_pick(data, "preview_url", "previewUrl"), "preview_url"),
        )


@dataclass(frozen=True)
class AgentMsp:
    """Agent-specific MSP for one card design."""

    agent_id: str
    card_design_id: str
    msp_amount: Decimal


@dataclass
class Agent:
    """A seller. Aggregates (sales, earnings, balance) live in the ledger."""

    id: str
    full_name: str
    referral_code: str
    base_commission: Decimal = Decimal("100")
    parent_agent_id: str | None = None  # one override level only
    status: ActiveStatus = ActiveStatus.ACTIVE
    email: str | None = None
    phone: str | None = None
    city: str | None = None
    created_at: datetime = field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == ActiveStatus.ACTIVE


@dataclass
class CreateAgentRequest:
    """Agent creation payload (admin)."""

    full_name: str
    base_commission: Decimal | None = None
    parent_agent_id: str | None = None
    email: str | None = None
    phone: str | None = None
    city: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "CreateAgentRequest":
        base = _pick(data, "base_commission", "baseCommission")
        return cls(
            full_name=_text(_pick(data, "full_name", "fullName"), "full_name"),
            base_commission=to_decimal(base, "base_commission") if base is not None else None,
            parent_agent_id=_optional_text(_pick(data, "parent_agent_id", "parentAgentId"), "parent_agent_id"),
            email=_optional_text(data.get("email"), "email"),
            phone=_optional_text(data.get("phone"), "phone"),
            city=_optional_text(data.get("city"), "city"),
        )


# =============================================================================
# ORDERS
# =============================================================================


@dataclass
class Order:
    """A card order moving through the fulfillment pipeline."""

    id: str
    order_number: int
    card_design_id: str
    msp_at_order: Decimal
    sale_price: Decimal
    agent_id: str | None = None  # None for direct/website sales
    status: OrderStatus = OrderStatus.PENDING_APPROVAL
    payment_status: PaymentStatus = PaymentStatus.PENDING
    is_below_msp: bool = False

    # Snapshotted at approval, immutable afterwards
    commission_amount: Decimal = Decimal("0")
    override_commission: Decimal = Decimal("0")
    override_agent_id: str | None = None
    below_msp_override: bool = False

    customer_name: str = ""
    customer_phone: str = ""
    customer_email: str = ""
    customer_company: str | None = None
    special_instructions: str | None = None

    tracking_number: str | None = None
    portfolio_slug: str | None = None
    admin_notes: str | None = None
    rejection_reason: str | None = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    approved_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    paid_at: datetime | None = None

    @property
    def is_direct_sale(self) -> bool:
        return self.agent_id is None


@dataclass
class CreateOrderRequest:
    """Order creation payload, from an agent or from the website."""

    card_design_id: str
    sale_price: Decimal
    customer_name: str
    customer_phone: str
    customer_email: str
    agent_id: str | None = None
    referral_code: str | None = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    customer_company: str | None = None
    special_instructions: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "CreateOrderRequest":
        return cls(
            card_design_id=_text(_pick(data, "card_design_id", "cardDesignId"), "card_design_id"),
            sale_price=to_decimal(_pick(data, "sale_price", "salePrice"), "sale_price"),
            customer_name=_text(_pick(data, "customer_name", "customerName"), "customer_name"),
            customer_phone=_text(_pick(data, "customer_phone", "customerPhone"), "customer_phone"),
            customer_email=_text(_pick(data, "customer_email", "customerEmail"), "customer_email"),
            agent_id=_optional_text(_pick(data, "agent_id", "agentId"), "agent_id"),
            referral_code=_optional_text(_pick(data, "referral_code", "referralCode"), "referral_code"),
            payment_status=_enum(
                PaymentStatus, _pick(data, "payment_status", "paymentStatus", "pending"), "payment_status"
            ),
            customer_company=_pick(data, "customer_company", "customerCompany"),
            special_instructions=_pick(data, "special_instructions", "specialInstructions"),
        )


@dataclass
class TransitionContext:
    """Extra fields supplied with a status change."""

    tracking_number: str | None = None
    admin_notes: str | None = None
    rejection_reason: str | None = None
    portfolio_slug: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "TransitionContext":
        return cls(
            tracking_number=_pick(data, "tracking_number", "trackingNumber"),
            admin_notes=_pick(data, "admin_notes", "adminNotes"),
            rejection_reason=_pick(data, "rejection_reason", "rejectionReason"),
            portfolio_slug=_pick(data, "portfolio_slug", "portfolioSlug"),
        )


def parse_order_status(value) -> OrderStatus:
    return _enum(OrderStatus, value, "status")


def parse_active_status(value) -> ActiveStatus:
    return _enum(ActiveStatus, value, "status")


# =============================================================================
# PAYOUTS & LEDGER
# =============================================================================


@dataclass
class Payout:
    """Money paid out to an agent."""

    id: str
    agent_id: str
    amount: Decimal
    payment_method: PaymentMethod
    status: PayoutStatus = PayoutStatus.COMPLETED
    admin_notes: str | None = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class PayoutRequest:
    amount: Decimal
    payment_method: PaymentMethod
    admin_notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "PayoutRequest":
        return cls(
            amount=to_decimal(data.get("amount"), "amount"),
            payment_method=_enum(
                PaymentMethod, _pick(data, "payment_method", "paymentMethod", "upi"), "payment_method"
            ),
            admin_notes=_pick(data, "admin_notes", "adminNotes"),
        )


# =============================================================================
# RESULT MODELS
# =============================================================================


@dataclass(frozen=True)
class CommissionResult:
    """Breakdown of the commission owed to the selling agent."""

    base_commission: Decimal
    negotiation_bonus: Decimal
    total_commission: Decimal
    is_below_msp: bool


@dataclass(frozen=True)
class LedgerSnapshot:
    """Read-only view of an agent's aggregates.

    pending_earnings is commission earned at approval that is not yet
    payable because the order has not been paid.
    """

    agent_id: str
    total_sales: int
    total_earnings: Decimal
    pending_earnings: Decimal
    available_balance: Decimal
    amount_received: Decimal
    override_earnings: Decimal = Decimal("0")
    last_payout_at: datetime | None = None


@dataclass(frozen=True)
class SubAgentSummary:
    """Sub-agent row shown on the parent agent's dashboard."""

    id: str
    full_name: str
    total_sales: int
    override_earnings: Decimal
    joined_at: datetime
    status: ActiveStatus
