#!/usr/bin/env python3
"""
FCM Lending Math

Pure mathematical functions for collateralized lending positions: health
factors, borrow sizing, compound interest and rebalance amounts.
"""

from typing import Optional


# Finite stand-in for an infinite health factor (debt-free position)
MAX_HEALTH_FACTOR = 999.0
LIQUIDATION_THRESHOLD = 1.0
DAYS_PER_YEAR = 365


class LendingMath:
    """Pure mathematical functions for position calculations"""

    @staticmethod
    def daily_rate(annual_rate: float) -> float:
        """Convert an APY into a simple daily rate"""
        return annual_rate / DAYS_PER_YEAR

    @staticmethod
    def calculate_effective_collateral(
        collateral_amount: float,
        collateral_price: float,
        collateral_factor: float
    ) -> float:
        """Collateral value that counts toward borrowing power"""
        if collateral_amount <= 0 or collateral_price <= 0:
            return 0.0
        return collateral_amount * collateral_price * collateral_factor

    @staticmethod
    def calculate_health_factor(
        collateral_amount: float,
        collateral_price: float,
        debt_amount: float,
        collateral_factor: float
    ) -> float:
        """
        Health = (Collateral × Price × CollateralFactor) / Debt

        Returns 0.0 for empty collateral or a non-positive price and
        MAX_HEALTH_FACTOR for a debt-free position.
        """
        if collateral_amount <= 0 or collateral_price <= 0:
            return 0.0
        if debt_amount <= 0:
            return MAX_HEALTH_FACTOR

        effective_collateral = collateral_amount * collateral_price * collateral_factor
        return min(effective_collateral / debt_amount, MAX_HEALTH_FACTOR)

    @staticmethod
    def calculate_initial_borrow(
        collateral_amount: float,
        collateral_price: float,
        target_health: float,
        collateral_factor: float
    ) -> float:
        """Borrow = Effective Collateral / Target Health"""
        if target_health <= 0:
            return 0.0
        effective_collateral = LendingMath.calculate_effective_collateral(
            collateral_amount, collateral_price, collateral_factor
        )
        return effective_collateral / target_health

    @staticmethod
    def calculate_compound_interest(principal: float, annual_rate: float, days: int) -> float:
        """Interest = Principal × ((1 + rate/365)^days - 1)"""
        if days <= 0:
            return 0.0
        return principal * ((1 + LendingMath.daily_rate(annual_rate)) ** days - 1)

    @staticmethod
    def calculate_rebalance_repay_amount(
        debt_amount: float,
        collateral_amount: float,
        collateral_price: float,
        target_health: float,
        collateral_factor: float
    ) -> float:
        """Debt Reduction Needed = Current Debt - (Effective Collateral / Target Health)"""
        if target_health <= 0:
            return 0.0
        effective_collateral = LendingMath.calculate_effective_collateral(
            collateral_amount, collateral_price, collateral_factor
        )
        return max(0.0, debt_amount - effective_collateral / target_health)

    @staticmethod
    def calculate_collateral_sale_for_target(
        debt_amount: float,
        collateral_amount: float,
        collateral_price: float,
        target_health: float,
        collateral_factor: float
    ) -> float:
        """
        Currency value of collateral to sell so that repaying debt with the
        proceeds lands exactly on the target health.

        Solves (E - cf·s) / (D - s) = T for s:
            s = (T·D - E) / (T - cf)

        Selling collateral also shrinks effective collateral, which is why this
        differs from the plain repay amount.
        """
        if target_health <= collateral_factor:
            return 0.0
        effective_collateral = LendingMath.calculate_effective_collateral(
            collateral_amount, collateral_price, collateral_factor
        )
        sale_value = (target_health * debt_amount - effective_collateral) / (target_health - collateral_factor)
        return max(0.0, sale_value)

    @staticmethod
    def calculate_liquidation_price(
        collateral_amount: float,
        debt_amount: float,
        collateral_factor: float,
        liquidation_threshold: float = LIQUIDATION_THRESHOLD
    ) -> float:
        """Price at which health hits the liquidation threshold"""
        if collateral_amount <= 0 or collateral_factor <= 0:
            return 0.0
        return (debt_amount * liquidation_threshold) / (collateral_amount * collateral_factor)

    @staticmethod
    def calculate_net_returns(
        current_collateral_value: float,
        initial_collateral_value: float,
        current_debt: float,
        initial_debt: float,
        is_liquidated: bool
    ) -> float:
        """
        Returns = Current Equity - Initial Equity

        A liquidated position has lost all of its initial equity.
        """
        initial_equity = initial_collateral_value - initial_debt
        if is_liquidated:
            return -initial_equity
        return (current_collateral_value - current_debt) - initial_equity

    @staticmethod
    def is_liquidatable(
        health_factor: float,
        threshold: float = LIQUIDATION_THRESHOLD,
        debt_amount: Optional[float] = None
    ) -> bool:
        """A position with debt is liquidatable once health is at or below the threshold"""
        if debt_amount is not None and debt_amount <= 0:
            return False
        return health_factor <= threshold
