"""
Repository Interface

The engine never talks to a database directly. Everything it needs from
the card catalog, the agent directory and the order store goes through
this interface; InMemoryRepository is the reference implementation used
by the HTTP app and the tests.
"""

import threading
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Iterable, List, Optional

from .config import ORDER_NUMBER_PREFIX
from .models import Agent, AgentMsp, CardDesign, Order


class Repository(ABC):
    """Storage collaborator consumed by the engine."""

    # Card catalog

    @abstractmethod
    def get_card_design(self, design_id: str) -> Optional[CardDesign]: ...

    @abstractmethod
    def add_card_design(self, design: CardDesign) -> CardDesign: ...

    @abstractmethod
    def update_card_design(self, design: CardDesign) -> CardDesign: ...

    @abstractmethod
    def card_designs(self) -> List[CardDesign]: ...

    @abstractmethod
    def increment_design_sales(self, design_id: str) -> None: ...

    @abstractmethod
    def get_agent_msp(self, agent_id: str, design_id: str) -> Optional[Decimal]: ...

    @abstractmethod
    def set_agent_msp(self, msp: AgentMsp) -> AgentMsp: ...

    @abstractmethod
    def clear_agent_msp(self, agent_id: str, design_id: str) -> bool: ...

    # Agent directory

    @abstractmethod
    def get_agent(self, agent_id: str) -> Optional[Agent]: ...

    @abstractmethod
    def add_agent(self, agent: Agent) -> Agent: ...

    @abstractmethod
    def update_agent(self, agent: Agent) -> Agent: ...

    @abstractmethod
    def find_agent_by_referral_code(self, code: str) -> Optional[Agent]: ...

    @abstractmethod
    def agents(self) -> List[Agent]: ...

    def children_of(self, parent_agent_id: str) -> List[Agent]:
        return [a for a in self.agents() if a.parent_agent_id == parent_agent_id]

    # Orders

    @abstractmethod
    def next_order_number(self) -> int: ...

    @abstractmethod
    def save_order(self, order: Order) -> Order: ...

    @abstractmethod
    def get_order(self, order_id: str) -> Optional[Order]: ...

    @abstractmethod
    def orders(self) -> List[Order]: ...


class InMemoryRepository(Repository):
    """Dictionary-backed repository. Thread-safe for single-key operations."""

    def __init__(
        self,
        designs: Iterable[CardDesign] = (),
        agents: Iterable[Agent] = (),
        order_number_prefix: int = ORDER_NUMBER_PREFIX,
    ):
        self._lock = threading.Lock()
        self._designs = {d.id: d for d in designs}
        self._agents = {a.id: a for a in agents}
        self._agent_msps = {}
        self._orders = {}
        self._last_order_number = order_number_prefix

    def get_card_design(self, design_id: str) -> Optional[CardDesign]:
        return self._designs.get(design_id)

    def add_card_design(self, design: CardDesign) -> CardDesign:
        with self._lock:
            self._designs[design.id] = design
        return design

    def update_card_design(self, design: CardDesign) -> CardDesign:
        return self.add_card_design(design)

    def card_designs(self) -> List[CardDesign]:
        return list(self._designs.values())

    def increment_design_sales(self, design_id: str) -> None:
        with self._lock:
            design = self._designs.get(design_id)
            if design is not None:
                design.total_sales += 1

    def get_agent_msp(self, agent_id: str, design_id: str) -> Optional[Decimal]:
        msp = self._agent_msps.get((agent_id, design_id))
        return msp.msp_amount if msp else None

    def set_agent_msp(self, msp: AgentMsp) -> AgentMsp:
        with self._lock:
            self._agent_msps[(msp.agent_id, msp.card_design_id)] = msp
        return msp

    def clear_agent_msp(self, agent_id: str, design_id: str) -> bool:
        with self._lock:
            return self._agent_msps.pop((agent_id, design_id), None) is not None

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        return self._agents.get(agent_id)

    def add_agent(self, agent: Agent) -> Agent:
        with self._lock:
            self._agents[agent.id] = agent
        return agent

    def update_agent(self, agent: Agent) -> Agent:
        return self.add_agent(agent)

    def find_agent_by_referral_code(self, code: str) -> Optional[Agent]:
        code = code.upper()
        for agent in self._agents.values():
            if agent.referral_code.upper() == code:
                return agent
        return None

    def agents(self) -> List[Agent]:
        return list(self._agents.values())

    def next_order_number(self) -> int:
        with self._lock:
            self._last_order_number += 1
            return self._last_order_number

    def save_order(self, order: Order) -> Order:
        with self._lock:
            self._orders[order.id] = order
        return order

    def get_order(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    def orders(self) -> List[Order]:
        return sorted(self._orders.values(), key=lambda o: o.order_number)
