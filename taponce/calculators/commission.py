"""
Commission Calculator

Handles agent commission and parent-agent override commission.
"""

from decimal import Decimal
from typing import Optional

from ..config import DEFAULT_SETTINGS, Settings
from ..models import CommissionResult
from ..validators import InputValidator


class CommissionCalculator:
    """Calculates agent commissions from sale price and MSP."""

    def __init__(self, settings: Settings = DEFAULT_SETTINGS):
        self.settings = settings
        self.validator = InputValidator()

    def calculate(
        self,
        sale_price: Decimal,
        msp: Decimal,
        base_commission: Optional[Decimal] = None,
    ) -> CommissionResult:
        """
        Calculate the selling agent's commission.

        - Below MSP: nothing is payable until an admin approves the sale,
          so total is zero and the order is flagged.
        - At or above MSP: base + NEGOTIATION_BONUS_RATE of the amount
          negotiated above the floor.
        """
        if base_commission is None:
            base_commission = self.settings.default_base_commission

        self.validator.validate_commission_inputs(sale_price, msp, base_commission)

        if sale_price < msp:
            return CommissionResult(
                base_commission=base_commission,
                negotiation_bonus=Decimal("0"),
                total_commission=Decimal("0"),
                is_below_msp=True,
            )

        negotiation_bonus = (sale_price - msp) * self.settings.negotiation_bonus_rate

        return CommissionResult(
            base_commission=base_commission,
            negotiation_bonus=negotiation_bonus,
            total_commission=base_commission + negotiation_bonus,
            is_below_msp=False,
        )

    def calculate_override(self, sub_agent_sale_price: Decimal, rate: Optional[Decimal] = None) -> Decimal:
        """Flat share of a sub-agent's sale price credited to the parent agent."""
        if rate is None:
            rate = self.settings.override_rate

        self.validator.validate_override_inputs(sub_agent_sale_price, rate)

        return sub_agent_sale_price * rate


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

_default_calculator = CommissionCalculator()


def calculate_commission(
    sale_price: Decimal,
    msp: Decimal,
    base_commission: Optional[Decimal] = None,
) -> CommissionResult:
    return _default_calculator.calculate(sale_price, msp, base_commission)


def calculate_override_commission(sub_agent_sale_price: Decimal, rate: Optional[Decimal] = None) -> Decimal:
    return _default_calculator.calculate_override(sub_agent_sale_price, rate)
