#!/usr/bin/env python3
"""
Protected Agent Implementation

Actively managed lending position. Borrowed funds sit in a yield vault; when
health drops below the day's minimum the agent repays debt back to the target
(yield reserve first, then vault, then collateral sales), checking at several
intraday samples so a fast crash cannot skip past the trigger. In sustained
calm uptrends it adds leverage into the vault.
"""

import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from ..core.math import LendingMath
from ..simulation.state import (
    HEALTH_EPSILON, EventType, PositionStatus, ProtectedPositionState, SimulationEvent, Strategy, derive_status
)
from ..simulation.thresholds import ControlThresholds
from .base_agent import BasePositionAgent, DayContext


logger = logging.getLogger(__name__)

# Repayments smaller than this are treated as complete
REPAY_DUST = 1e-9


@dataclass
class _DayBook:
    """Working balances for a single day; discarded once the day is frozen into a state"""
    collateral_amount: float
    debt: float
    reserve: float
    vault: float
    repaid: bool = False


class ProtectedAgent(BasePositionAgent):
    """Auto-managed position with adaptive rebalance and leverage thresholds"""

    strategy = Strategy.PROTECTED

    INTRADAY_CHECKPOINTS = 4
    UPTREND_DAYS_REQUIRED = 7
    UPTREND_EPSILON = 0.001
    LEVERAGE_VOLATILITY_CEILING = 60.0  # annualized %
    LEVERAGE_FRACTION = 0.75

    def __init__(self, collateral_factor: float, borrow_apy: float, supply_apy: float,
                 intraday_checkpoints: int = INTRADAY_CHECKPOINTS):
        super().__init__(collateral_factor, borrow_apy, supply_apy)
        self.intraday_checkpoints = max(1, int(intraday_checkpoints))

    def initialize_position(self, deposit: float, day0_price: float,
                            thresholds: ControlThresholds) -> Tuple[ProtectedPositionState, List[SimulationEvent]]:
        target = thresholds.target_health
        collateral_amount, borrow_amount = self.opening_amounts(deposit, day0_price, target)
        collateral_value = collateral_amount * day0_price
        health = self.health(collateral_amount, day0_price, borrow_amount)

        state = ProtectedPositionState(
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
            net_position_value=collateral_value,
            vault_balance=borrow_amount,
            min_health=thresholds.min_health,
            max_health=thresholds.max_health,
        )
        events = self.opening_events(deposit, borrow_amount, health)
        events.append(SimulationEvent(0, self.strategy, EventType.VAULT_DEPLOY, borrow_amount, health_after=health))
        return state, events

    def advance_day(self, state: ProtectedPositionState,
                    ctx: DayContext) -> Tuple[ProtectedPositionState, List[SimulationEvent]]:
        if state.is_liquidated:
            return self.carry_liquidated(state, ctx), []

        thresholds = ctx.thresholds
        events: List[SimulationEvent] = []
        up_days = self._update_uptrend(state.consecutive_up_days, ctx.previous_price, ctx.price)
        book = _DayBook(state.collateral_amount, state.debt_amount, state.yield_reserve, state.vault_balance)

        # Intraday checkpoints
        for checkpoint, sample in enumerate(ctx.intraday_prices or (ctx.price,), start=1):
            events.extend(self._rebalance_down(book, sample, thresholds, ctx.day, checkpoint))
            health = self.health(book.collateral_amount, sample, book.debt)
            if LendingMath.is_liquidatable(health, debt_amount=book.debt):
                events.append(self.liquidation_event(ctx.day, book.debt, state.health_factor, health, sample, checkpoint))
                return self._liquidated_state(state, ctx, book, up_days), events

        # End-of-day mechanics
        price = ctx.price
        supply_yield = book.collateral_amount * price * LendingMath.daily_rate(self.supply_apy)
        book.reserve += supply_yield
        vault_yield = book.vault * LendingMath.daily_rate(ctx.vault_apy)
        book.vault += vault_yield
        interest = book.debt * LendingMath.daily_rate(self.borrow_apy)
        book.debt += interest

        health = self.health(book.collateral_amount, price, book.debt)
        if health < thresholds.target_health - HEALTH_EPSILON and book.reserve > 0 and book.debt > 0:
            events.append(self._apply_yield_reserve(book, price, health, ctx.day))

        events.extend(self._rebalance_down(book, price, thresholds, ctx.day, None))
        health = self.health(book.collateral_amount, price, book.debt)
        if LendingMath.is_liquidatable(health, debt_amount=book.debt):
            events.append(self.liquidation_event(ctx.day, book.debt, state.health_factor, health, price))
            return self._liquidated_state(state, ctx, book, up_days, interest, supply_yield, vault_yield), events

        leverage_up_count = state.leverage_up_count
        if self._leverage_allowed(health, thresholds, up_days, ctx.volatility):
            leverage_events = self._leverage_up(book, price, thresholds, health, ctx.day)
            if leverage_events:
                events.extend(leverage_events)
                leverage_up_count += 1
                up_days = 0
                health = self.health(book.collateral_amount, price, book.debt)

        collateral_value = book.collateral_amount * price
        new_state = replace(
            state,
            day=ctx.day,
            price=price,
            collateral_amount=book.collateral_amount,
            collateral_value=collateral_value,
            debt_amount=book.debt,
            health_factor=health,
            status=derive_status(health, thresholds.target_health),
            target_health=thresholds.target_health,
            total_returns=self.returns(collateral_value, book.debt, state),
            accrued_interest=state.accrued_interest + interest,
            earned_yield=state.earned_yield + supply_yield,
            net_position_value=collateral_value - book.debt + book.vault,
            yield_reserve=book.reserve,
            vault_balance=book.vault,
            vault_yield_earned=state.vault_yield_earned + vault_yield,
            rebalance_count=state.rebalance_count + (1 if book.repaid else 0),
            leverage_up_count=leverage_up_count,
            consecutive_up_days=up_days,
            min_health=thresholds.min_health,
            max_health=thresholds.max_health,
            volatility=ctx.volatility,
        )
        return new_state, events

    def _update_uptrend(self, up_days: int, previous_price: float, price: float) -> int:
        """Count consecutive days gaining more than the epsilon"""
        if price > previous_price * (1 + self.UPTREND_EPSILON):
            return up_days + 1
        return 0

    def _rebalance_down(self, book: _DayBook, price: float, thresholds: ControlThresholds,
                        day: int, checkpoint: Optional[int]) -> List[SimulationEvent]:
        """
        Repay debt back to target health when health is below the minimum.

        Sources in order: yield reserve, vault, collateral. The collateral leg
        sells exactly enough for the remaining repayment to land on target, and
        is skipped when the position cannot cover it.
        """
        if not thresholds.rebalance_enabled or book.debt <= 0 or price <= 0:
            return []

        health_before = self.health(book.collateral_amount, price, book.debt)
        if not 0 < health_before < thresholds.min_health:
            return []

        target = thresholds.target_health
        needed = LendingMath.calculate_rebalance_repay_amount(
            book.debt, book.collateral_amount, price, target, self.collateral_factor
        )
        if needed <= 0:
            return []

        from_reserve = min(book.reserve, needed)
        book.reserve -= from_reserve
        book.debt -= from_reserve
        needed -= from_reserve

        from_vault = min(book.vault, needed)
        book.vault -= from_vault
        book.debt -= from_vault
        needed -= from_vault

        sale_value = 0.0
        tokens_sold = 0.0
        if needed > REPAY_DUST:
            sale = LendingMath.calculate_collateral_sale_for_target(
                book.debt, book.collateral_amount, price, target, self.collateral_factor
            )
            if 0 < sale <= min(book.collateral_amount * price, book.debt):
                tokens_sold = min(sale / price, book.collateral_amount)
                book.collateral_amount -= tokens_sold
                book.debt -= sale
                sale_value = sale

        repaid = from_reserve + from_vault + sale_value
        if repaid <= 0:
            return []

        book.repaid = True
        health_after = self.health(book.collateral_amount, price, book.debt)
        logger.debug("day %d checkpoint %s: rebalanced %.2f (reserve %.2f, vault %.2f, collateral %.2f), "
                     "health %.3f -> %.3f", day, checkpoint, repaid, from_reserve, from_vault,
                     sale_value, health_before, health_after)

        events = [SimulationEvent(
            day, self.strategy, EventType.REBALANCE, repaid,
            health_before=health_before, health_after=health_after, checkpoint=checkpoint,
            details={
                "price": price,
                "target_health": target,
                "from_reserve": from_reserve,
                "from_vault": from_vault,
                "from_collateral": sale_value,
                "collateral_sold": tokens_sold,
            },
        )]
        if from_vault > 0:
            events.append(SimulationEvent(
                day, self.strategy, EventType.VAULT_WITHDRAW, from_vault, checkpoint=checkpoint,
                details={"vault_balance": book.vault},
            ))
        if sale_value > 0:
            events.append(SimulationEvent(
                day, self.strategy, EventType.COLLATERAL_SALE, sale_value, checkpoint=checkpoint,
                details={"price": price, "collateral_sold": tokens_sold},
            ))
        return events

    def _apply_yield_reserve(self, book: _DayBook, price: float, health_before: float, day: int) -> SimulationEvent:
        """Protection mode: put accrued yield against debt"""
        applied = min(book.reserve, book.debt)
        book.reserve -= applied
        book.debt -= applied
        return SimulationEvent(
            day, self.strategy, EventType.YIELD_APPLIED, applied,
            health_before=health_before,
            health_after=self.health(book.collateral_amount, price, book.debt),
        )

    def _leverage_allowed(self, health: float, thresholds: ControlThresholds,
                          up_days: int, volatility: Optional[float]) -> bool:
        if not thresholds.leverage_enabled or health <= thresholds.max_health:
            return False
        if up_days < self.UPTREND_DAYS_REQUIRED:
            return False
        return volatility is not None and volatility < self.LEVERAGE_VOLATILITY_CEILING

    def _leverage_up(self, book: _DayBook, price: float, thresholds: ControlThresholds,
                     health_before: float, day: int) -> List[SimulationEvent]:
        """Borrow part of the way back to target health and deploy it to the vault"""
        target_debt = LendingMath.calculate_initial_borrow(
            book.collateral_amount, price, thresholds.target_health, self.collateral_factor
        )
        additional = self.LEVERAGE_FRACTION * (target_debt - book.debt)
        if additional <= 0:
            return []

        book.debt += additional
        book.vault += additional
        health_after = self.health(book.collateral_amount, price, book.debt)
        logger.debug("day %d: leverage up %.2f, health %.3f -> %.3f", day, additional, health_before, health_after)

        return [
            SimulationEvent(day, self.strategy, EventType.LEVERAGE_UP, additional,
                            health_before=health_before, health_after=health_after,
                            details={"price": price, "target_health": thresholds.target_health}),
            SimulationEvent(day, self.strategy, EventType.VAULT_DEPLOY, additional,
                            details={"vault_balance": book.vault}),
        ]

    def _liquidated_state(self, state: ProtectedPositionState, ctx: DayContext, book: _DayBook, up_days: int,
                          interest: float = 0.0, supply_yield: float = 0.0,
                          vault_yield: float = 0.0) -> ProtectedPositionState:
        return replace(
            state,
            day=ctx.day,
            price=ctx.price,
            collateral_amount=0.0,
            collateral_value=0.0,
            debt_amount=0.0,
            health_factor=0.0,
            status=PositionStatus.LIQUIDATED,
            target_health=ctx.thresholds.target_health,
            total_returns=self.returns(0.0, 0.0, state, liquidated=True),
            accrued_interest=state.accrued_interest + interest,
            earned_yield=state.earned_yield + supply_yield,
            net_position_value=0.0,
            liquidation_day=ctx.day,
            yield_reserve=0.0,
            vault_balance=0.0,
            vault_yield_earned=state.vault_yield_earned + vault_yield,
            rebalance_count=state.rebalance_count + (1 if book.repaid else 0),
            consecutive_up_days=up_days,
            min_health=ctx.thresholds.min_health,
            max_health=ctx.thresholds.max_health,
            volatility=ctx.volatility,
        )
