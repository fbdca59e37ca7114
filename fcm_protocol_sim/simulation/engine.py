#!/usr/bin/env python3
"""
FCM Simulation Engine

Runs the Traditional and Protected positions side by side over one price path.
Every call recomputes from day 0, so seeking to any day is reproducible and a
shorter horizon is always a prefix of a longer one.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np

from ..agents.base_agent import BasePositionAgent, DayContext
from ..agents.protected_agent import ProtectedAgent
from ..agents.traditional_agent import TraditionalAgent
from .config import SimulationConfig
from .price_paths import PricePathProvider, PriceSeriesCache, build_price_path, clamp_day_index
from .state import (
    EventType, PositionState, ProtectedPositionState, SimulationEvent, Strategy, TraditionalPositionState
)
from .thresholds import ControlThresholds, resolve_thresholds
from .volatility import calculate_volatility, has_volatility_data


logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """Trajectories and event log from a single pass over days 0..target_day"""
    config: SimulationConfig
    target_day: int
    collateral_factor: float
    traditional: TraditionalPositionState
    protected: ProtectedPositionState
    traditional_trajectory: List[TraditionalPositionState] = field(default_factory=list)
    protected_trajectory: List[ProtectedPositionState] = field(default_factory=list)
    events: List[SimulationEvent] = field(default_factory=list)
    prices: List[float] = field(default_factory=list)
    volatilities: List[float] = field(default_factory=list)
    thresholds: List[ControlThresholds] = field(default_factory=list)
    # First day the passive position is liquidated over the full horizon
    projected_liquidation_day: Optional[int] = None

    def events_for(self, position: Optional[Strategy] = None,
                   event_type: Optional[EventType] = None,
                   day: Optional[int] = None) -> List[SimulationEvent]:
        """Filter the event log"""
        return [
            e for e in self.events
            if (position is None or e.position == position)
            and (event_type is None or e.event_type == event_type)
            and (day is None or e.day == day)
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "config": self.config.model_dump(mode="json"),
            "target_day": self.target_day,
            "collateral_factor": self.collateral_factor,
            "traditional": self.traditional.to_dict(),
            "protected": self.protected.to_dict(),
            "events": [e.to_dict() for e in self.events],
            "prices": list(self.prices),
            "volatilities": list(self.volatilities),
            "projected_liquidation_day": self.projected_liquidation_day,
        }


class FCMSimulationEngine:
    """Dual-position simulation engine"""

    def __init__(
        self,
        config: SimulationConfig,
        cache: Optional[PriceSeriesCache] = None,
        price_path: Optional[PricePathProvider] = None,
        live_prices: Optional[Mapping[str, float]] = None
    ):
        self.config = config
        self.cache = cache if cache is not None else PriceSeriesCache()
        self.price_path = price_path or build_price_path(config, self.cache, live_prices)

        self.collateral_factor = config.resolved_collateral_factor()
        self.borrow_apy = config.resolved_borrow_apy()
        self.supply_apy = config.resolved_supply_apy()

        self.traditional_agent = TraditionalAgent(self.collateral_factor, self.borrow_apy, self.supply_apy)
        self.protected_agent = ProtectedAgent(
            self.collateral_factor, self.borrow_apy, self.supply_apy, config.intraday_checkpoints
        )

        # Read-only after construction
        self._prices = self.price_path.prices()
        self._projected: bool = False
        self._projected_liquidation_day: Optional[int] = None

    @property
    def total_days(self) -> int:
        return self.price_path.total_days

    def clamp_day(self, day: float) -> int:
        """Clamp a day index into [0, total_days]; NaN maps to day 0"""
        return clamp_day_index(day, self.total_days)

    def price_at(self, day: int) -> float:
        return float(self._prices[self.clamp_day(day)])

    def volatility_at(self, day: int) -> float:
        """Trailing annualized volatility (%) at a day; 0.0 before enough data exists"""
        return calculate_volatility(self._prices, self.clamp_day(day), self.config.volatility_window)

    def _threshold_volatility(self, day: int) -> Optional[float]:
        if not has_volatility_data(day):
            return None
        return self.volatility_at(day)

    def thresholds_at(self, day: int) -> ControlThresholds:
        """Control thresholds in force on a day"""
        day = self.clamp_day(day)
        return resolve_thresholds(
            self._threshold_volatility(day),
            self._threshold_asset(),
            self.config.threshold_overrides(),
        )

    def _threshold_asset(self) -> Optional[str]:
        # Per-asset base thresholds only apply to replayed market data
        return self.config.collateral_asset if self.config.is_historic else None

    def initialize_positions(self) -> Tuple[TraditionalPositionState, ProtectedPositionState, List[SimulationEvent]]:
        """Open both positions at the day-0 price"""
        day0_price = self.price_at(0)
        thresholds = self.thresholds_at(0)
        deposit = self.config.initial_deposit

        traditional, traditional_events = self.traditional_agent.initialize_position(deposit, day0_price, thresholds)
        protected, protected_events = self.protected_agent.initialize_position(deposit, day0_price, thresholds)
        return traditional, protected, traditional_events + protected_events

    def day_context(self, day: int) -> DayContext:
        day = self.clamp_day(day)
        return DayContext(
            day=day,
            previous_price=self.price_at(day - 1),
            price=self.price_at(day),
            intraday_prices=tuple(self.price_path.intraday_prices(day, self.protected_agent.intraday_checkpoints)),
            thresholds=self.thresholds_at(day),
            volatility=self._threshold_volatility(day),
            vault_apy=self.price_path.vault_apy_at(day),
        )

    def simulate_to_day(self, target_day: int) -> SimulationResult:
        """Replay days 1..target_day from a fresh day-0 position"""
        target_day = self.clamp_day(target_day)
        traditional, protected, events = self.initialize_positions()

        result = SimulationResult(
            config=self.config,
            target_day=target_day,
            collateral_factor=self.collateral_factor,
            traditional=traditional,
            protected=protected,
            traditional_trajectory=[traditional],
            protected_trajectory=[protected],
            events=list(events),
            prices=[self.price_at(0)],
            volatilities=[self.volatility_at(0)],
            thresholds=[self.thresholds_at(0)],
        )

        for day in range(1, target_day + 1):
            ctx = self.day_context(day)

            traditional, traditional_events = self.traditional_agent.advance_day(traditional, ctx)
            protected, protected_events = self.protected_agent.advance_day(protected, ctx)

            result.traditional_trajectory.append(traditional)
            result.protected_trajectory.append(protected)
            result.events.extend(traditional_events)
            result.events.extend(protected_events)
            result.prices.append(ctx.price)
            result.volatilities.append(self.volatility_at(day))
            result.thresholds.append(ctx.thresholds)

        result.traditional = traditional
        result.protected = protected
        result.projected_liquidation_day = self.project_traditional_liquidation_day()

        logger.debug("Simulated %d days: traditional %s (health %.3f), protected %s (health %.3f)",
                     target_day, traditional.status.value, traditional.health_factor,
                     protected.status.value, protected.health_factor)
        return result

    def project_traditional_liquidation_day(self) -> Optional[int]:
        """
        First day the passive position is liquidated over the full horizon.

        The Traditional position never depends on the Protected one, so this
        runs it alone and remembers the answer for the engine's lifetime.
        """
        if not self._projected:
            state, _ = self.traditional_agent.initialize_position(
                self.config.initial_deposit, self.price_at(0), self.thresholds_at(0)
            )
            day = 1
            while day <= self.total_days and not state.is_liquidated:
                state, _ = self.traditional_agent.advance_day(state, self.day_context(day))
                day += 1
            self._projected_liquidation_day = state.liquidation_day
            self._projected = True
        return self._projected_liquidation_day

    def run(self) -> SimulationResult:
        """Simulate the full horizon"""
        logger.info("Running %s simulation for %s over %d days",
                    self.config.data_mode.value, self.config.collateral_asset, self.total_days)
        result = self.simulate_to_day(self.total_days)
        logger.info("Finished: %d rebalances, %d leverage-ups, traditional %s",
                    result.protected.rebalance_count, result.protected.leverage_up_count,
                    result.traditional.status.value)
        return result

    def volatility_series(self) -> np.ndarray:
        return np.array([self.volatility_at(day) for day in range(self.total_days + 1)])


def initialize_position(
    deposit: float,
    day0_price: float,
    config: SimulationConfig,
    strategy: Union[Strategy, str] = Strategy.PROTECTED
) -> PositionState:
    """Open a single day-0 position without building a price path"""
    agent_cls = TraditionalAgent if Strategy(strategy) == Strategy.TRADITIONAL else ProtectedAgent
    agent: BasePositionAgent = agent_cls(
        config.resolved_collateral_factor(), config.resolved_borrow_apy(), config.resolved_supply_apy()
    )
    asset_id = config.collateral_asset if config.is_historic else None
    thresholds = resolve_thresholds(None, asset_id, config.threshold_overrides())
    state, _ = agent.initialize_position(deposit, day0_price, thresholds)
    return state


def simulate_to_day(
    config: SimulationConfig,
    target_day: int,
    cache: Optional[PriceSeriesCache] = None
) -> SimulationResult:
    """Recompute the comparison from scratch up to target_day"""
    return FCMSimulationEngine(config, cache=cache).simulate_to_day(target_day)
