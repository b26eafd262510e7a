"""
Calculators Package

Provides the pricing and commission components used by the order processor.
"""

from .commission import CommissionCalculator, calculate_commission, calculate_override_commission
from .msp import MspResolver

__all__ = [
    "CommissionCalculator",
    "MspResolver",
    "calculate_commission",
    "calculate_override_commission",
]
