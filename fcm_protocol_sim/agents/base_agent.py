#!/usr/bin/env python3
"""
Position Agent Interface

Base class for the strategy policies. Agents hold only immutable market
parameters; all evolving quantities travel in the state snapshots the caller
threads through the day loop.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from ..core.math import LendingMath
from ..simulation.state import EventType, PositionState, SimulationEvent, Strategy
from ..simulation.thresholds import ControlThresholds


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DayContext:
    """Market inputs for one simulated day"""
    day: int
    previous_price: float
    price: float
    intraday_prices: Tuple[float, ...]
    thresholds: ControlThresholds
    volatility: Optional[float] = None  # None until enough returns exist
    vault_apy: float = 0.0


class BasePositionAgent(ABC):
    """Base class for Traditional and Protected position policies"""

    strategy: Strategy = None

    def __init__(self, collateral_factor: float, borrow_apy: float, supply_apy: float):
        self.collateral_factor = collateral_factor
        self.borrow_apy = borrow_apy
        self.supply_apy = supply_apy

    def health(self, collateral_amount: float, price: float, debt_amount: float) -> float:
        return LendingMath.calculate_health_factor(collateral_amount, price, debt_amount, self.collateral_factor)

    def opening_amounts(self, deposit: float, day0_price: float, target_health: float) -> Tuple[float, float]:
        """Collateral tokens bought with the deposit and the debt sized to hit target health"""
        if deposit <= 0 or day0_price <= 0:
            return 0.0, 0.0
        collateral_amount = deposit / day0_price
        borrow_amount = LendingMath.calculate_initial_borrow(
            collateral_amount, day0_price, target_health, self.collateral_factor
        )
        return collateral_amount, borrow_amount

    def opening_events(self, deposit: float, borrow_amount: float, health: float) -> List[SimulationEvent]:
        return [
            SimulationEvent(0, self.strategy, EventType.CREATE, deposit, health_after=health),
            SimulationEvent(0, self.strategy, EventType.BORROW, borrow_amount, health_after=health),
        ]

    def returns(self, collateral_value: float, debt_amount: float, state: PositionState, liquidated: bool = False) -> float:
        return LendingMath.calculate_net_returns(
            collateral_value, state.initial_collateral_value, debt_amount, state.initial_debt, liquidated
        )

    def carry_liquidated(self, state: PositionState, ctx: DayContext) -> PositionState:
        """Liquidation is absorbing: only the day and price move forward"""
        return replace(state, day=ctx.day, price=ctx.price)

    def liquidation_event(self, day: int, debt_amount: float, health_before: float,
                          health_after: float, price: float, checkpoint: Optional[int] = None) -> SimulationEvent:
        logger.info("%s position liquidated on day %d at price %.4f (health %.3f)",
                    self.strategy.value, day, price, health_after)
        return SimulationEvent(
            day, self.strategy, EventType.LIQUIDATION, debt_amount,
            health_before=health_before, health_after=health_after, checkpoint=checkpoint,
            details={"price": price},
        )

    @abstractmethod
    def initialize_position(self, deposit: float, day0_price: float,
                            thresholds: ControlThresholds) -> Tuple[PositionState, List[SimulationEvent]]:
        """Open the day-0 position"""
        pass

    @abstractmethod
    def advance_day(self, state: PositionState, ctx: DayContext) -> Tuple[PositionState, List[SimulationEvent]]:
        """Advance a position by one day"""
        pass
