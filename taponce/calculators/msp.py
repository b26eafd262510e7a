"""
MSP Resolver

Determines the minimum selling price that applies to an agent for a design.
"""

from decimal import Decimal
from typing import List, Optional, Tuple

from ..models import CardDesign
from ..repository import Repository


class MspResolver:
    """Resolves agent-specific MSP overrides against the design default."""

    def __init__(self, repository: Repository):
        self.repository = repository

    def resolve(self, agent_id: Optional[str], design: CardDesign) -> Decimal:
        """
        Agent override wins; otherwise the design's base MSP.

        Direct sales have no agent and always use the base MSP.
        """
        if agent_id is None:
            return design.base_msp

        override = self.repository.get_agent_msp(agent_id, design.id)
        if override is None:
            return design.base_msp
        return override

    def agent_catalog(self, agent_id: str) -> List[Tuple[CardDesign, Decimal]]:
        """Active designs paired with the agent's personalized MSP."""
        return [
            (design, self.resolve(agent_id, design))
            for design in self.repository.card_designs()
            if design.is_active
        ]
