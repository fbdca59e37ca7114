#!/usr/bin/env python3
"""
Strategy Comparison

Consumer-side helpers that summarize a SimulationResult and flatten it into
pandas tables for export.
"""

from typing import Any, Dict, List, Optional

import pandas as pd

from ..core.math import LendingMath
from ..simulation.engine import SimulationResult
from ..simulation.historic_data import day_to_date, event_to_simulation_day, events_in_range
from ..simulation.state import PositionState, PositionStatus


def first_liquidation_day(trajectory: List[PositionState]) -> Optional[int]:
    for state in trajectory:
        if state.status == PositionStatus.LIQUIDATED:
            return state.day
    return None


def _last_open_state(trajectory: List[PositionState]) -> PositionState:
    """Latest snapshot before liquidation (or the final one)"""
    for state in reversed(trajectory):
        if not state.is_liquidated:
            return state
    return trajectory[0]


def get_comparison_summary(result: SimulationResult) -> Dict[str, Any]:
    """Headline comparison between the two strategies at the result's target day"""
    traditional = result.traditional
    protected = result.protected
    opening = result.traditional_trajectory[0]

    liquidation_day = first_liquidation_day(result.traditional_trajectory)
    open_state = _last_open_state(result.traditional_trajectory)
    liquidation_price = LendingMath.calculate_liquidation_price(
        open_state.collateral_amount, open_state.debt_amount, result.collateral_factor
    )

    # Days from the target day until the passive position would be liquidated
    days_until_liquidation = None
    projected = result.projected_liquidation_day
    if not traditional.is_liquidated and projected is not None and projected > result.target_day:
        days_until_liquidation = projected - result.target_day

    final_price = result.prices[-1] if result.prices else opening.price
    hold_value = opening.collateral_amount * final_price

    return {
        "day": result.target_day,
        "price": final_price,
        "traditional_health": traditional.health_factor,
        "protected_health": protected.health_factor,
        "health_difference": protected.health_factor - traditional.health_factor,
        "traditional_returns": traditional.total_returns,
        "protected_returns": protected.total_returns,
        "returns_difference": protected.total_returns - traditional.total_returns,
        "traditional_net_value": traditional.net_position_value,
        "protected_net_value": protected.net_position_value,
        "traditional_liquidated": traditional.is_liquidated,
        "traditional_liquidation_day": liquidation_day,
        "days_until_liquidation": days_until_liquidation,
        "protected_liquidated": protected.is_liquidated,
        "protected_liquidation_day": first_liquidation_day(result.protected_trajectory),
        "rebalance_count": protected.rebalance_count,
        "leverage_up_count": protected.leverage_up_count,
        "traditional_liquidation_price": liquidation_price,
        "hold_value": hold_value,
        "hold_returns": hold_value - opening.initial_collateral_value,
    }


def trajectory_to_dataframe(result: SimulationResult) -> pd.DataFrame:
    """One row per day with market inputs, thresholds and both positions"""
    rows = []
    for i, (traditional, protected) in enumerate(zip(result.traditional_trajectory, result.protected_trajectory)):
        thresholds = result.thresholds[i]
        row = {
            "day": traditional.day,
            "price": result.prices[i],
            "volatility": result.volatilities[i],
            "min_health": thresholds.min_health,
            "target_health": thresholds.target_health,
            "max_health": thresholds.max_health,
        }
        for prefix, state in (("traditional", traditional), ("protected", protected)):
            row[f"{prefix}_collateral"] = state.collateral_amount
            row[f"{prefix}_collateral_value"] = state.collateral_value
            row[f"{prefix}_debt"] = state.debt_amount
            row[f"{prefix}_health"] = state.health_factor
            row[f"{prefix}_status"] = state.status.value
            row[f"{prefix}_returns"] = state.total_returns
            row[f"{prefix}_net_value"] = state.net_position_value
        row["traditional_borrowed_funds"] = traditional.borrowed_funds_balance
        row["protected_yield_reserve"] = protected.yield_reserve
        row["protected_vault"] = protected.vault_balance
        row["protected_rebalances"] = protected.rebalance_count
        row["protected_leverage_ups"] = protected.leverage_up_count
        rows.append(row)

    df = pd.DataFrame(rows)
    if result.config.is_historic and not df.empty:
        df.insert(1, "date", [day_to_date(day, result.config.start_year) for day in df["day"]])
    return df


def events_to_dataframe(result: SimulationResult) -> pd.DataFrame:
    columns = ["day", "position", "event_type", "amount", "health_before", "health_after", "checkpoint"]
    records = [{k: e.to_dict()[k] for k in columns} for e in result.events]
    return pd.DataFrame(records, columns=columns)


def market_event_markers(result: SimulationResult) -> List[Dict[str, Any]]:
    """Black-swan annotations that fall inside a historic run"""
    config = result.config
    if not config.is_historic:
        return []
    markers = []
    for event in events_in_range(config.start_year, config.end_year):
        day = event_to_simulation_day(event, config.start_year)
        if day <= result.target_day:
            markers.append({"day": day, "name": event.short_name, "price_drop_percent": event.price_drop_percent})
    return markers
