#!/usr/bin/env python3
"""
Simulation Engine Test Suite

End-to-end properties of the dual-position engine:
1. Day-0 identity and opening borrow sizing
2. Passive baseline reproducible by hand
3. Intraday catch through the engine
4. Monotonic debt, absorbing liquidation, rebalance and leverage invariants
5. Idempotent, prefix-consistent re-simulation
"""

import math

import pytest

from fcm_protocol_sim.core.math import LendingMath
from fcm_protocol_sim.simulation.config import SimulationConfig
from fcm_protocol_sim.simulation.engine import FCMSimulationEngine, initialize_position, simulate_to_day
from fcm_protocol_sim.simulation.price_paths import PriceSeriesCache, ReplayPricePath
from fcm_protocol_sim.simulation.state import EventType, PositionStatus, Strategy


class TestDayZero:
    """Opening positions"""

    def setup_method(self):
        self.config = SimulationConfig(
            initial_deposit=1000.0, base_price=100.0, collateral_factor=0.80, target_health=1.15
        )

    def test_opening_borrow(self):
        result = simulate_to_day(self.config, 0)

        for state in (result.traditional, result.protected):
            assert state.collateral_amount == pytest.approx(10.0)
            assert state.debt_amount == pytest.approx(695.6521739, rel=1e-9)
            assert state.health_factor == pytest.approx(1.15)
            assert state.total_returns == 0.0
            assert state.status == PositionStatus.HEALTHY

        assert len(result.traditional_trajectory) == 1
        assert result.protected.vault_balance == pytest.approx(result.protected.debt_amount)

    def test_initialize_position_helper(self):
        traditional = initialize_position(1000.0, 100.0, self.config, "traditional")
        protected = initialize_position(1000.0, 100.0, self.config, Strategy.PROTECTED)
        assert traditional.debt_amount == pytest.approx(695.6521739, rel=1e-9)
        assert protected.debt_amount == pytest.approx(traditional.debt_amount)
        assert protected.vault_balance == pytest.approx(protected.debt_amount)

    def test_asset_thresholds_in_replay_mode(self):
        config = SimulationConfig(data_mode="historic", collateral_asset="btc", start_year=2021, end_year=2021)
        engine = FCMSimulationEngine(config)
        assert engine.thresholds_at(0).as_tuple() == (1.10, 1.25, math.inf)
        assert engine.volatility_at(0) == 0.0

        traditional, protected, _ = engine.initialize_positions()
        assert traditional.health_factor == pytest.approx(1.25)
        assert protected.health_factor == pytest.approx(1.25)


class TestPassiveBaseline:
    """50% linear decline over 100 days with rebalancing disabled"""

    def setup_method(self):
        self.config = SimulationConfig(
            base_price=100.0,
            collateral_factor=0.80,
            target_health=2.5,
            min_health=0.0,
            price_change=-50.0,
            total_days=100,
            volatility="low",
            pattern="linear",
            debt_asset="usdc",
        )
        self.engine = FCMSimulationEngine(self.config)
        self.result = self.engine.run()

    def test_traditional_health_by_hand(self):
        collateral = 1000.0 / 100.0
        opening_debt = collateral * 100.0 * 0.80 / 2.5
        debt = opening_debt * (1 + 0.065 / 365) ** 100
        price = self.engine.price_at(100)
        expected = collateral * price * 0.80 / debt

        traditional = self.result.traditional
        assert self.result.target_day == 100
        assert not traditional.is_liquidated
        assert traditional.debt_amount == pytest.approx(debt, rel=1e-9)
        assert traditional.health_factor == pytest.approx(expected, rel=1e-9)

    def test_price_path_declines(self):
        assert self.engine.price_at(0) == 100.0
        assert self.engine.price_at(100) == pytest.approx(50.0, abs=0.5)

    def test_no_protected_intervention(self):
        assert self.result.protected.rebalance_count == 0
        assert not self.result.events_for(Strategy.PROTECTED, EventType.REBALANCE)


class TestIntradayCatch:
    """A wick below the trigger is caught even though the close is fine"""

    def _run(self, intraday_lows):
        config = SimulationConfig(collateral_factor=0.80, min_health=1.10, target_health=1.25, supply_apy=0.0)
        path = ReplayPricePath([100.0, 98.0], intraday_lows=intraday_lows)
        return FCMSimulationEngine(config, price_path=path).run()

    def test_wick_triggers_rebalance(self):
        result = self._run({1: 85.0})
        rebalances = result.events_for(Strategy.PROTECTED, EventType.REBALANCE, day=1)

        assert result.protected.rebalance_count == 1
        assert len(rebalances) == 1
        assert rebalances[0].checkpoint is not None
        assert result.protected.health_factor > 1.10

    def test_close_alone_does_not_trigger(self):
        result = self._run(None)
        assert result.protected.rebalance_count == 0


class TestTrajectoryInvariants:
    """Properties over a full stressed run"""

    def setup_method(self):
        self.config = SimulationConfig(
            base_price=100.0, price_change=-60.0, pattern="crash", volatility="high", total_days=365
        )
        self.result = FCMSimulationEngine(self.config).run()

    def test_traditional_debt_never_decreases(self):
        trajectory = self.result.traditional_trajectory
        for before, after in zip(trajectory, trajectory[1:]):
            if after.is_liquidated:
                break
            assert after.debt_amount >= before.debt_amount, f"Debt fell on day {after.day}"

    def test_traditional_liquidation_is_absorbing(self):
        trajectory = self.result.traditional_trajectory
        liquidated_days = [s.day for s in trajectory if s.is_liquidated]
        assert liquidated_days, "A 60% crash should liquidate the passive position"

        first = liquidated_days[0]
        for state in trajectory[first:]:
            assert state.status == PositionStatus.LIQUIDATED
            assert state.collateral_amount == 0.0
            assert state.debt_amount == 0.0
            assert state.total_returns == pytest.approx(-state.initial_equity)

        events = self.result.events_for(Strategy.TRADITIONAL, EventType.LIQUIDATION)
        assert len(events) == 1 and events[0].day == first

    def test_protected_survives(self):
        protected = self.result.protected
        assert not protected.is_liquidated
        assert protected.rebalance_count > 0
        assert protected.total_returns > self.result.traditional.total_returns

    def test_rebalances_restore_target(self):
        rebalances = self.result.events_for(Strategy.PROTECTED, EventType.REBALANCE)
        assert rebalances
        for event in rebalances:
            assert event.health_after > event.health_before
            assert event.health_after == pytest.approx(event.details["target_health"], rel=1e-6)

    def test_leverage_ups_stay_above_target(self):
        for event in self.result.events_for(Strategy.PROTECTED, EventType.LEVERAGE_UP):
            assert event.health_after < event.health_before
            assert event.health_after > event.details["target_health"]

    def test_non_negative_balances(self):
        for state in self.result.protected_trajectory:
            assert state.collateral_amount >= 0
            assert state.debt_amount >= 0
            assert state.vault_balance >= -1e-9
            assert state.yield_reserve >= -1e-9

    def test_status_matches_health(self):
        for state in self.result.protected_trajectory[1:]:
            if state.health_factor >= state.target_health + 1e-6:
                assert state.status == PositionStatus.HEALTHY
            elif 1.0 < state.health_factor < state.target_health - 1e-6:
                assert state.status == PositionStatus.WARNING

    def test_counters_are_monotonic(self):
        trajectory = self.result.protected_trajectory
        for before, after in zip(trajectory, trajectory[1:]):
            assert after.rebalance_count >= before.rebalance_count
            assert after.leverage_up_count >= before.leverage_up_count


class TestResimulation:
    """Seeking to a day recomputes from scratch"""

    def setup_method(self):
        self.config = SimulationConfig(base_price=50.0, price_change=-40.0, pattern="v_shape", total_days=200)
        self.engine = FCMSimulationEngine(self.config)

    def test_idempotent(self):
        first = self.engine.simulate_to_day(150)
        second = self.engine.simulate_to_day(150)
        assert first.to_dict() == second.to_dict()
        assert first.protected_trajectory == second.protected_trajectory

    def test_independent_engines_agree(self):
        assert simulate_to_day(self.config, 120).to_dict() == self.engine.simulate_to_day(120).to_dict()

    def test_shorter_horizon_is_prefix(self):
        short = self.engine.simulate_to_day(60)
        long = self.engine.simulate_to_day(180)
        assert long.traditional_trajectory[:61] == short.traditional_trajectory
        assert long.protected_trajectory[:61] == short.protected_trajectory
        assert long.events[:len(short.events)] == short.events

    def test_target_day_clamped(self):
        assert self.engine.simulate_to_day(-10).target_day == 0
        assert self.engine.simulate_to_day(10_000).target_day == 200
        assert self.engine.simulate_to_day(float("nan")).target_day == 0
        assert self.engine.simulate_to_day(float("inf")).target_day == 200
        assert self.engine.price_at(float("-inf")) == self.engine.price_at(0)


class TestHistoricReplay:
    """Replay of the 2022 ETH bear market"""

    def setup_method(self):
        self.cache = PriceSeriesCache()
        self.config = SimulationConfig(data_mode="historic", collateral_asset="eth", start_year=2022, end_year=2022)
        self.result = FCMSimulationEngine(self.config, cache=self.cache).run()

    def test_horizon_is_calendar_year(self):
        assert self.result.target_day == 365
        assert len(self.result.prices) == 366

    def test_passive_liquidated_protected_survives(self):
        assert self.result.traditional.is_liquidated
        assert not self.result.protected.is_liquidated

    def test_cache_shared_between_engines(self):
        FCMSimulationEngine(self.config, cache=self.cache)
        assert self.cache.misses == 1
        assert self.cache.hits == 1

    def test_dynamic_thresholds_vary(self):
        targets = {t.target_health for t in self.result.thresholds}
        assert len(targets) > 1, "Volatility tiers should change over a bear market"


class TestBorrowRate:
    """Interest rate change feeds the effective borrow APY"""

    def test_higher_rate_more_interest(self):
        base = SimulationConfig(base_price=100.0, price_change=0.0, total_days=90, volatility="low")
        shifted = base.update(interest_rate_change=3.0)

        base_result = simulate_to_day(base, 90)
        shifted_result = simulate_to_day(shifted, 90)
        assert shifted_result.traditional.accrued_interest > base_result.traditional.accrued_interest

        expected = LendingMath.calculate_compound_interest(
            base_result.traditional.initial_debt, base.resolved_borrow_apy(), 90
        )
        assert base_result.traditional.accrued_interest == pytest.approx(expected, rel=1e-9)


class TestThresholdOrderingInEngine:
    """Overrides never produce an inverted threshold tuple on any day"""

    def test_low_max_override_through_extreme_volatility(self):
        config = SimulationConfig(max_health=1.2, price_change=-60.0, pattern="crash", volatility="high")
        engine = FCMSimulationEngine(config)

        for day in range(engine.total_days + 1):
            t = engine.thresholds_at(day)
            assert 1.0 < t.min_health < t.target_health <= t.max_health, f"Bad ordering {t} on day {day}"
            assert t.max_health == 1.2


class TestEventWicks:
    """Black-swan days replayed as intraday wicks"""

    def _run(self, event_wicks):
        config = SimulationConfig(data_mode="historic", collateral_asset="eth", start_year=2020,
                                  end_year=2020, event_wicks=event_wicks)
        engine = FCMSimulationEngine(config)
        return engine, engine.simulate_to_day(80)

    def _events_below_close(self, engine, result, day):
        floor = min(engine.price_at(day - 1), engine.price_at(day)) * 0.99
        return [e for e in result.events_for(Strategy.PROTECTED, day=day)
                if e.details.get("price", floor) < floor]

    def test_wick_reaches_protected_position(self):
        engine, result = self._run(True)
        reacted = self._events_below_close(engine, result, 72)
        assert reacted, "Protected position should react to the COVID wick"
        assert all(e.checkpoint is not None for e in reacted)

    def test_closes_only_without_wicks(self):
        engine, result = self._run(False)
        assert self._events_below_close(engine, result, 72) == []

    def test_traditional_sees_closes_only(self):
        _, with_wicks = self._run(True)
        _, without = self._run(False)
        assert with_wicks.traditional_trajectory == without.traditional_trajectory
