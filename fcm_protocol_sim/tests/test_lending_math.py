#!/usr/bin/env python3
"""
Lending Math and Asset Registry Tests

Health factor, borrow sizing, interest and rebalance formulas, plus asset
lookups with fallback behaviour.
"""

import pytest

from fcm_protocol_sim.core.math import LendingMath, MAX_HEALTH_FACTOR
from fcm_protocol_sim.core.assets import (
    Asset, DebtAsset, get_asset, get_debt_asset, is_known_asset, resolve_base_price
)


class TestHealthFactor:
    """Health factor edge cases"""

    def test_basic_ratio(self):
        health = LendingMath.calculate_health_factor(10, 100, 640, 0.8)
        assert health == pytest.approx(1.25), "800 effective over 640 debt should be 1.25"

    def test_debt_free_position_is_capped(self):
        assert LendingMath.calculate_health_factor(10, 100, 0, 0.8) == MAX_HEALTH_FACTOR

    def test_huge_ratio_is_capped(self):
        assert LendingMath.calculate_health_factor(1e9, 1e6, 1.0, 0.8) == MAX_HEALTH_FACTOR

    def test_empty_collateral_or_bad_price(self):
        assert LendingMath.calculate_health_factor(0, 100, 500, 0.8) == 0.0
        assert LendingMath.calculate_health_factor(10, 0, 500, 0.8) == 0.0
        assert LendingMath.calculate_health_factor(10, -5, 500, 0.8) == 0.0

    def test_liquidation_boundary(self):
        assert LendingMath.is_liquidatable(1.0), "Health exactly at 1.0 is liquidatable"
        assert LendingMath.is_liquidatable(0.5)
        assert not LendingMath.is_liquidatable(1.0001)
        assert not LendingMath.is_liquidatable(0.5, debt_amount=0.0), "No debt means nothing to liquidate"


class TestBorrowAndRebalanceMath:
    """Borrow sizing and rebalance closed forms"""

    def test_initial_borrow_hits_target(self):
        borrow = LendingMath.calculate_initial_borrow(10, 100, 1.15, 0.8)
        assert borrow == pytest.approx(695.652173913, rel=1e-9)
        assert LendingMath.calculate_health_factor(10, 100, borrow, 0.8) == pytest.approx(1.15)

    def test_initial_borrow_without_target(self):
        assert LendingMath.calculate_initial_borrow(10, 100, 0, 0.8) == 0.0

    def test_compound_interest(self):
        assert LendingMath.calculate_compound_interest(1000, 0.0365, 1) == pytest.approx(0.1)
        assert LendingMath.calculate_compound_interest(1000, 0.0365, 0) == 0.0
        two_days = LendingMath.calculate_compound_interest(1000, 0.0365, 2)
        assert two_days == pytest.approx(1000 * (1.0001 ** 2 - 1))

    def test_repay_amount_restores_target(self):
        repay = LendingMath.calculate_rebalance_repay_amount(800, 10, 100, 1.25, 0.8)
        assert repay == pytest.approx(160.0)
        assert LendingMath.calculate_health_factor(10, 100, 800 - repay, 0.8) == pytest.approx(1.25)

    def test_repay_amount_never_negative(self):
        assert LendingMath.calculate_rebalance_repay_amount(100, 10, 100, 1.25, 0.8) == 0.0

    def test_collateral_sale_lands_on_target(self):
        sale = LendingMath.calculate_collateral_sale_for_target(800, 10, 100, 1.25, 0.8)
        assert sale == pytest.approx(200 / 0.45)

        remaining_tokens = 10 - sale / 100
        health = LendingMath.calculate_health_factor(remaining_tokens, 100, 800 - sale, 0.8)
        assert health == pytest.approx(1.25), "Selling collateral to repay should land exactly on target"

    def test_collateral_sale_impossible_below_factor(self):
        assert LendingMath.calculate_collateral_sale_for_target(800, 10, 100, 0.8, 0.8) == 0.0

    def test_liquidation_price(self):
        assert LendingMath.calculate_liquidation_price(10, 400, 0.8) == pytest.approx(50.0)
        assert LendingMath.calculate_liquidation_price(0, 400, 0.8) == 0.0

    def test_net_returns(self):
        assert LendingMath.calculate_net_returns(1200, 1000, 700, 650, False) == pytest.approx(150.0)
        assert LendingMath.calculate_net_returns(0, 1000, 0, 650, True) == pytest.approx(-350.0)


class TestAssetRegistry:
    """Asset lookups and price fallback"""

    def test_known_assets(self):
        btc = get_asset("BTC")
        assert btc.asset == Asset.BTC
        assert btc.base_price == 97_000.0
        assert btc.collateral_factor == 0.75
        assert btc.has_multi_year_data

    def test_unknown_asset_falls_back(self):
        assert get_asset("doge").asset == Asset.FLOW
        assert not is_known_asset("doge")
        assert is_known_asset("Sol")

    def test_debt_assets(self):
        assert get_debt_asset("usdt").borrow_apy == 0.07
        assert get_debt_asset("nope").asset == DebtAsset.USDC

    def test_risky_assets_bar_leverage(self):
        for asset_id in ("btc", "sol", "avax"):
            assert get_asset(asset_id).base_thresholds[2] == float("inf")
        assert get_asset("eth").base_thresholds == (1.10, 1.25, 1.50)

    def test_live_price_used_when_valid(self):
        assert resolve_base_price("eth", {"eth": 4000.0}) == 4000.0

    def test_live_price_fallback(self):
        assert resolve_base_price("eth", {"eth": 0.0}) == 3_900.0
        assert resolve_base_price("eth", {"btc": 90_000.0}) == 3_900.0
        assert resolve_base_price("eth") == 3_900.0
