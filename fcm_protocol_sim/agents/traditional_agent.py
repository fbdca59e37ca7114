#!/usr/bin/env python3
"""
Traditional Agent Implementation

Passive lending position: debt compounds, yield accrues on the side, and
nothing is ever done to defend health. Liquidated the first day health falls
to the liquidation threshold.
"""

import logging
from dataclasses import replace
from typing import List, Tuple

from ..core.math import LendingMath
from ..simulation.state import (
    EventType, PositionStatus, SimulationEvent, Strategy, TraditionalPositionState, derive_status
)
from ..simulation.thresholds import ControlThresholds
from .base_agent import BasePositionAgent, DayContext


logger = logging.getLogger(__name__)


class TraditionalAgent(BasePositionAgent):
    """Passive position that never rebalances"""

    strategy = Strategy.TRADITIONAL

    def initialize_position(self, deposit: float, day0_price: float,
                            thresholds: ControlThresholds) -> Tuple[TraditionalPositionState, List[SimulationEvent]]:
        target = thresholds.target_health
        collateral_amount, borrow_amount = self.opening_amounts(deposit, day0_price, target)
        collateral_value = collateral_amount * day0_price
        health = self.health(collateral_amount, day0_price, borrow_amount)

        state = TraditionalPositionState(
            day=0,
            price=day0_price,
            collateral_amount=collateral_amount,
            collateral_value=collateral_value,
            debt_amount=borrow_amount,
            health_factor=health,
            status=derive_status(health, target),
            target_health=target,
            initial_collateral_value=collateral_value,
            initial_debt=borrow_amount,
            # equity plus the borrowed funds still on hand
            net_position_value=collateral_value,
            borrowed_funds_balance=borrow_amount,
        )
        return state, self.opening_events(deposit, borrow_amount, health)

    def advance_day(self, state: TraditionalPositionState,
                    ctx: DayContext) -> Tuple[TraditionalPositionState, List[SimulationEvent]]:
        if state.is_liquidated:
            return self.carry_liquidated(state, ctx), []

        events: List[SimulationEvent] = []
        price = ctx.price

        interest = state.debt_amount * LendingMath.daily_rate(self.borrow_apy)
        debt = state.debt_amount + interest

        collateral_value = state.collateral_amount * price
        supply_rate = LendingMath.daily_rate(self.supply_apy)
        supply_yield = state.supply_yield * (1 + supply_rate) + collateral_value * supply_rate
        borrowed_funds = state.borrowed_funds_balance * (1 + LendingMath.daily_rate(ctx.vault_apy))
        earned_yield = supply_yield + (borrowed_funds - state.initial_debt)

        health = self.health(state.collateral_amount, price, debt)

        if LendingMath.is_liquidatable(health, debt_amount=debt):
            events.append(self.liquidation_event(ctx.day, debt, state.health_factor, health, price))
            liquidated = replace(
                state,
                day=ctx.day,
                price=price,
                collateral_amount=0.0,
                collateral_value=0.0,
                debt_amount=0.0,
                health_factor=0.0,
                status=PositionStatus.LIQUIDATED,
                total_returns=self.returns(0.0, 0.0, state, liquidated=True),
                accrued_interest=state.accrued_interest + interest,
                earned_yield=earned_yield,
                net_position_value=0.0,
                liquidation_day=ctx.day,
                borrowed_funds_balance=0.0,
                supply_yield=supply_yield,
            )
            return liquidated, events

        status = derive_status(health, state.target_health)
        warning_issued = state.warning_issued
        if status == PositionStatus.WARNING and not warning_issued:
            warning_issued = True
            logger.debug("traditional position below target on day %d (health %.3f)", ctx.day, health)
            events.append(SimulationEvent(
                ctx.day, self.strategy, EventType.WARNING, 0.0,
                health_before=state.health_factor, health_after=health,
            ))

        new_state = replace(
            state,
            day=ctx.day,
            price=price,
            collateral_value=collateral_value,
            debt_amount=debt,
            health_factor=health,
            status=status,
            total_returns=self.returns(collateral_value, debt, state),
            accrued_interest=state.accrued_interest + interest,
            earned_yield=earned_yield,
            net_position_value=collateral_value - debt + borrowed_funds,
            borrowed_funds_balance=borrowed_funds,
            supply_yield=supply_yield,
            warning_issued=warning_issued,
        )
        return new_state, events
