"""
TAPONCE ORDER ECONOMICS ENGINE
Commission calculation, order lifecycle and agent ledger
"""

from .calculators import calculate_commission, calculate_override_commission
from .ledger import AgentLedger
from .lifecycle import OrderLifecycle
from .models import CommissionResult, Order, OrderStatus
from .processor import OrderProcessor
from .repository import InMemoryRepository, Repository

__all__ = [
    'OrderProcessor',
    'OrderLifecycle',
    'AgentLedger',
    'Repository',
    'InMemoryRepository',
    'Order',
    'OrderStatus',
    'CommissionResult',
    'calculate_commission',
    'calculate_override_commission',
]
