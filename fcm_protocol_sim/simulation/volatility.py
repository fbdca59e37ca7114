#!/usr/bin/env python3
"""
Volatility Estimator

Trailing annualized volatility from realized daily returns. Stateless and
recomputed per day; the window is small so there is no incremental update.
"""

from typing import Sequence

import numpy as np


DEFAULT_WINDOW_DAYS = 30
ANNUALIZATION_DAYS = 365
MIN_RETURNS = 2


def daily_returns(prices: Sequence[float], current_day: int, window_days: int = DEFAULT_WINDOW_DAYS) -> np.ndarray:
    """Simple returns over the trailing window ending at current_day"""
    series = np.asarray(prices, dtype=float)
    if series.size < 2 or current_day <= 0:
        return np.empty(0)

    end = min(int(current_day), series.size - 1)
    start = max(0, end - max(1, int(window_days)))
    window = series[start:end + 1]

    previous, current = window[:-1], window[1:]
    usable = (previous > 0) & (current > 0)
    return current[usable] / previous[usable] - 1


def calculate_volatility(prices: Sequence[float], current_day: int, window_days: int = DEFAULT_WINDOW_DAYS) -> float:
    """
    Annualized volatility in percent.

    Sample standard deviation of the trailing returns × √365 × 100; 0.0 when
    fewer than two returns are available.
    """
    returns = daily_returns(prices, current_day, window_days)
    if returns.size < MIN_RETURNS:
        return 0.0
    return float(np.std(returns, ddof=1) * np.sqrt(ANNUALIZATION_DAYS) * 100)


def has_volatility_data(current_day: int) -> bool:
    """Whether enough days have elapsed for a volatility reading"""
    return current_day >= MIN_RETURNS


def volatility_series(prices: Sequence[float], window_days: int = DEFAULT_WINDOW_DAYS) -> np.ndarray:
    """Volatility for every day of a series"""
    return np.array([calculate_volatility(prices, day, window_days) for day in range(len(prices))])
