"""
Input Validation for the TapOnce Engine

Validates request data before it reaches the calculators, the lifecycle
controller or the ledger. Raises ValidationError with clear messages for
any constraint violation.
"""

from decimal import Decimal
from typing import Callable, Optional

from .errors import ValidationError
from .models import Agent, CardDesign, CreateAgentRequest, CreateOrderRequest, PayoutRequest


class InputValidator:
    """Validates engine input according to business rules."""

    def validate_commission_inputs(self, sale_price: Decimal, msp: Decimal, base_commission: Decimal) -> None:
        """Commission math is only defined for positive amounts."""
        if sale_price <= 0:
            raise ValidationError(f"sale_price must be positive, got: {sale_price}")
        if msp <= 0:
            raise ValidationError(f"msp must be positive, got: {msp}")
        if base_commission <= 0:
            raise ValidationError(f"base_commission must be positive, got: {base_commission}")

    def validate_override_inputs(self, sale_price: Decimal, rate: Decimal) -> None:
        if sale_price < 0:
            raise ValidationError(f"sale_price cannot be negative, got: {sale_price}")
        if not (0 <= rate <= 1):
            raise ValidationError(f"override rate must be between 0 and 1, got: {rate}")

    def validate_card_design(self, design: CardDesign) -> None:
        if not design.name:
            raise ValidationError("Card design name is required")
        if design.base_msp <= 0:
            raise ValidationError(f"base_msp must be positive, got: {design.base_msp}")
        if design.total_sales < 0:
            raise ValidationError(f"total_sales cannot be negative, got: {design.total_sales}")

    def validate_agent_msp(self, msp_amount: Decimal) -> None:
        if msp_amount <= 0:
            raise ValidationError(f"msp_amount must be positive, got: {msp_amount}")

    def validate_create_order(self, request: CreateOrderRequest) -> None:
        if not request.card_design_id:
            raise ValidationError("card_design_id is required")
        if request.sale_price <= 0:
            raise ValidationError(f"sale_price must be positive, got: {request.sale_price}")
        if not request.customer_name:
            raise ValidationError("customer_name is required")
        if not request.customer_phone:
            raise ValidationError("customer_phone is required")

    def validate_create_agent(self, request: CreateAgentRequest) -> None:
        if not request.full_name:
            raise ValidationError("full_name is required")
        if request.base_commission is not None and request.base_commission <= 0:
            raise ValidationError(f"base_commission must be positive, got: {request.base_commission}")

    def validate_payout(self, request: PayoutRequest) -> None:
        if request.amount <= 0:
            raise ValidationError(f"Payout amount must be positive, got: {request.amount}")

    def validate_parent_link(
        self,
        agent_id: str,
        parent_agent_id: Optional[str],
        get_agent: Callable[[str], Optional[Agent]],
    ) -> None:
        """
        Reject a parent reference that is unknown or that would make the
        agent its own ancestor.

        Override commission only ever flows one level up, but a parent may
        itself have been referred, so the whole ancestor chain is walked.
        """
        if parent_agent_id is None:
            return

        if parent_agent_id == agent_id:
            raise ValidationError(f"Agent {agent_id} cannot be its own parent")

        seen = {agent_id}
        current_id = parent_agent_id
        while current_id is not None:
            if current_id in seen:
                raise ValidationError(
                    f"Parent {parent_agent_id} would create a referral cycle for agent {agent_id}"
                )
            seen.add(current_id)
            ancestor = get_agent(current_id)
            if ancestor is None:
                raise ValidationError(f"Parent agent not found: {current_id}")
            current_id = ancestor.parent_agent_id
