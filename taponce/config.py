"""
Configuration for the TapOnce engine.

Business constants live here so no calculator or handler hardcodes them.
Every value can be overridden through a TAPONCE_* environment variable.
"""

import os
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class Settings:
    """Engine-wide settings."""

    default_base_commission: Decimal = Decimal("100")  # ₹100 per sale
    negotiation_bonus_rate: Decimal = Decimal("0.5")  # 50% of amount above MSP
    override_rate: Decimal = Decimal("0.02")  # 2% for parent agent
    order_number_prefix: int = 12000  # orders start from #12001
    default_page_size: int = 20
    max_page_size: int = 100
    currency_symbol: str = "₹"

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            default_base_commission=Decimal(
                env.get("TAPONCE_BASE_COMMISSION", str(defaults.default_base_commission))
            ),
            negotiation_bonus_rate=Decimal(
                env.get("TAPONCE_NEGOTIATION_BONUS_RATE", str(defaults.negotiation_bonus_rate))
            ),
            override_rate=Decimal(env.get("TAPONCE_OVERRIDE_RATE", str(defaults.override_rate))),
            order_number_prefix=int(
                env.get("TAPONCE_ORDER_NUMBER_PREFIX", defaults.order_number_prefix)
            ),
            default_page_size=int(env.get("TAPONCE_PAGE_SIZE", defaults.default_page_size)),
            max_page_size=int(env.get("TAPONCE_MAX_PAGE_SIZE", defaults.max_page_size)),
            currency_symbol=env.get("TAPONCE_CURRENCY_SYMBOL", defaults.currency_symbol),
        )


DEFAULT_SETTINGS = Settings()

DEFAULT_BASE_COMMISSION = DEFAULT_SETTINGS.default_base_commission
NEGOTIATION_BONUS_RATE = DEFAULT_SETTINGS.negotiation_bonus_rate
OVERRIDE_RATE = DEFAULT_SETTINGS.override_rate
ORDER_NUMBER_PREFIX = DEFAULT_SETTINGS.order_number_prefix
