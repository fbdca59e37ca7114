#!/usr/bin/env python3
"""
Price Path Provider

Supplies the collateral price for any simulated day, either by replaying a
recorded series or by synthesizing one from a named shape plus deterministic
noise. Day indices outside the horizon are clamped, never rejected.
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..core.assets import get_asset, resolve_base_price
from .config import DataMode, ProtocolParameters, Shape, SimulationConfig, VolatilityLevel
from .historic_data import (
    event_intraday_lows, generate_multi_year_prices, generate_single_year_prices, yield_for_day
)


logger = logging.getLogger(__name__)

# Noise amplitude per volatility level, as a fraction of base price
NOISE_FACTORS: Dict[VolatilityLevel, float] = {
    VolatilityLevel.LOW: 0.003,
    VolatilityLevel.MEDIUM: 0.008,
    VolatilityLevel.HIGH: 0.015,
}

PRICE_FLOOR_FRACTION = 0.001
NOISE_SEED_MULTIPLIER = 137.5

# Fraction of the horizon at which the crash shape bottoms out
CRASH_BOTTOM_PROGRESS = 0.35
V_SHAPE_TURN_PROGRESS = 0.5
V_SHAPE_MAX_TROUGH = -0.9


def linear_trend(progress: float, change: float) -> float:
    return change * progress


def crash_trend(progress: float, change: float) -> float:
    """Fast drop that overshoots the target, then a shallow bounce to it"""
    bottom = min(change * 1.3, -0.3 * abs(change))
    if progress <= CRASH_BOTTOM_PROGRESS:
        return bottom * (progress / CRASH_BOTTOM_PROGRESS) ** 0.8
    recovery = (progress - CRASH_BOTTOM_PROGRESS) / (1 - CRASH_BOTTOM_PROGRESS)
    return bottom + (change - bottom) * recovery ** 0.6


def v_shape_trend(progress: float, change: float) -> float:
    """Sine descent to a trough at mid-horizon, cosine recovery to the target"""
    trough = max(V_SHAPE_MAX_TROUGH, min(change * 1.5, -0.5 * abs(change)))
    if progress <= V_SHAPE_TURN_PROGRESS:
        return trough * math.sin(math.pi / 2 * progress / V_SHAPE_TURN_PROGRESS)
    recovery = (progress - V_SHAPE_TURN_PROGRESS) / (1 - V_SHAPE_TURN_PROGRESS)
    return trough + (change - trough) * (1 - math.cos(math.pi * recovery)) / 2


def bull_trend(progress: float, change: float) -> float:
    """Accelerating trend with periodic pullbacks"""
    pullback = abs(change) * 0.08 * math.sin(4 * math.pi * progress) ** 2 * progress
    return change * progress ** 1.5 - pullback


SHAPE_FUNCTIONS: Dict[Shape, Callable[[float, float], float]] = {
    Shape.LINEAR: linear_trend,
    Shape.CRASH: crash_trend,
    Shape.V_SHAPE: v_shape_trend,
    Shape.BULL: bull_trend,
}


def price_noise(day: int, volatility: VolatilityLevel) -> float:
    """Deterministic pseudo-noise for a day, as a fraction of base price"""
    amplitude = NOISE_FACTORS[VolatilityLevel(volatility)]
    seed = day * NOISE_SEED_MULTIPLIER
    return math.sin(seed * 0.1) * amplitude + math.cos(seed * 0.07) * amplitude * 0.5


def clamp_day_index(day: float, total_days: int) -> int:
    """Clamp a possibly malformed day index into [0, total_days]"""
    if math.isnan(day):
        return 0
    if math.isinf(day):
        return max(0, total_days) if day > 0 else 0
    return max(0, min(int(day), max(0, total_days)))


def calculate_price_at_day(
    base_price: float,
    change_percent: float,
    day: int,
    total_days: int,
    volatility: VolatilityLevel = VolatilityLevel.MEDIUM,
    shape: Shape = Shape.LINEAR
) -> float:
    """
    Synthetic price for a day.

    Price = base × (1 + trend(progress) + noise(day)), floored at a small
    fraction of base. Day 0 (and any non-positive day) returns base exactly.
    """
    day = clamp_day_index(day, total_days)
    if day == 0:
        return base_price

    progress = day / total_days
    trend = SHAPE_FUNCTIONS[Shape(shape)](progress, change_percent / 100)
    price = base_price * (1 + trend + price_noise(day, volatility))
    return max(price, base_price * PRICE_FLOOR_FRACTION)


SeriesKey = Tuple[str, int, int]


class PriceSeriesCache:
    """
    Memoizes generated replay series keyed by (asset, start_year, end_year).

    Series are stored as tuples so callers cannot mutate a cached entry.
    """

    def __init__(self):
        self._series: Dict[SeriesKey, Tuple[float, ...]] = {}
        self.hits = 0
        self.misses = 0

    def get_or_build(self, key: SeriesKey, builder: Callable[[], Sequence[float]]) -> Tuple[float, ...]:
        if key in self._series:
            self.hits += 1
            return self._series[key]

        self.misses += 1
        series = tuple(float(p) for p in builder())
        self._series[key] = series
        logger.debug("Built price series %s (%d points)", key, len(series))
        return series

    def invalidate(self, key: Optional[SeriesKey] = None):
        """Drop one entry, or everything when no key is given"""
        if key is None:
            self._series.clear()
        else:
            self._series.pop(key, None)

    def __contains__(self, key: SeriesKey) -> bool:
        return key in self._series

    def __len__(self) -> int:
        return len(self._series)


class PricePathProvider(ABC):
    """Price for any simulated day"""

    def __init__(self, vault_apy: Optional[float] = None):
        self._vault_apy = vault_apy

    @property
    @abstractmethod
    def total_days(self) -> int:
        pass

    @property
    def base_price(self) -> float:
        return self.price_at(0)

    @abstractmethod
    def price_at(self, day: int) -> float:
        pass

    def clamp_day(self, day: float) -> int:
        return clamp_day_index(day, self.total_days)

    def intraday_low(self, day: int) -> Optional[float]:
        """Recorded intraday low for a day, if any"""
        return None

    def vault_apy_at(self, day: int) -> float:
        if self._vault_apy is not None:
            return self._vault_apy
        return ProtocolParameters.DEFAULT_VAULT_APY

    def prices(self, up_to_day: Optional[int] = None) -> np.ndarray:
        """Daily closes for days 0..up_to_day"""
        last_day = self.total_days if up_to_day is None else self.clamp_day(up_to_day)
        return np.array([self.price_at(day) for day in range(last_day + 1)], dtype=float)

    def intraday_prices(self, day: int, checkpoints: int) -> List[float]:
        """
        Sub-day price samples between the previous close and this day's close.

        Samples are geometric interpolations. When the day has a recorded low
        beneath both closes, the first half of the samples descends to the low
        and the second half recovers. The final sample is always the close.
        """
        day = self.clamp_day(day)
        close = self.price_at(day)
        checkpoints = max(1, int(checkpoints))
        if day == 0:
            return [close] * checkpoints

        prev_close = self.price_at(day - 1)
        low = self.intraday_low(day)

        if low is None or low <= 0 or low >= min(prev_close, close) or checkpoints < 2:
            samples = [prev_close * (close / prev_close) ** (k / checkpoints)
                       for k in range(1, checkpoints + 1)]
        else:
            descend = checkpoints // 2
            recover = checkpoints - descend
            samples = [prev_close * (low / prev_close) ** (k / descend) for k in range(1, descend + 1)]
            samples += [low * (close / low) ** (k / recover) for k in range(1, recover + 1)]

        samples[-1] = close
        return samples


class SyntheticPricePath(PricePathProvider):
    """Shape-driven synthetic path"""

    def __init__(
        self,
        base_price: float,
        change_percent: float,
        total_days: int,
        volatility: VolatilityLevel = VolatilityLevel.MEDIUM,
        shape: Shape = Shape.LINEAR,
        vault_apy: Optional[float] = None
    ):
        super().__init__(vault_apy)
        self._base_price = base_price
        self.change_percent = change_percent
        self._total_days = max(0, int(total_days))
        self.volatility = VolatilityLevel(volatility)
        self.shape = Shape(shape)

    @property
    def total_days(self) -> int:
        return self._total_days

    @property
    def base_price(self) -> float:
        return self._base_price

    def price_at(self, day: int) -> float:
        return calculate_price_at_day(
            self._base_price, self.change_percent, day, self._total_days, self.volatility, self.shape
        )


class ReplayPricePath(PricePathProvider):
    """Replays a prebuilt daily series; day N maps to series[N]"""

    def __init__(
        self,
        series: Sequence[float],
        start_year: int = 2020,
        intraday_lows: Optional[Mapping[int, float]] = None,
        vault_apy: Optional[float] = None
    ):
        super().__init__(vault_apy)
        floor = min((p for p in series if p > 0), default=1.0) * PRICE_FLOOR_FRACTION
        self._series = tuple(max(float(p), floor) for p in series) or (ProtocolParameters.DEFAULT_BASE_PRICE,)
        self.start_year = start_year
        self._intraday_lows = dict(intraday_lows or {})

    @property
    def total_days(self) -> int:
        return len(self._series) - 1

    def price_at(self, day: int) -> float:
        return self._series[self.clamp_day(day)]

    def intraday_low(self, day: int) -> Optional[float]:
        return self._intraday_lows.get(self.clamp_day(day))

    def vault_apy_at(self, day: int) -> float:
        if self._vault_apy is not None:
            return self._vault_apy
        return yield_for_day(self.clamp_day(day), self.start_year)


def build_price_path(
    config: SimulationConfig,
    cache: Optional[PriceSeriesCache] = None,
    live_prices: Optional[Mapping[str, float]] = None
) -> PricePathProvider:
    """Create the provider the configuration asks for"""
    if config.data_mode == DataMode.HISTORIC:
        cache = cache if cache is not None else PriceSeriesCache()
        info = get_asset(config.collateral_asset)
        key = (info.asset.value, config.start_year, config.end_year)

        if info.has_multi_year_data:
            series = cache.get_or_build(
                key, lambda: generate_multi_year_prices(info.asset, config.start_year, config.end_year)
            )
        else:
            series = cache.get_or_build(key, lambda: generate_single_year_prices(info.asset))
            if config.base_price is not None:
                scale = config.base_price / info.base_price
                series = tuple(p * scale for p in series)

        logger.debug("Replay path for %s %d-%d", info.symbol, config.start_year, config.end_year)
        intraday_lows = None
        if config.event_wicks:
            intraday_lows = event_intraday_lows(series, config.start_year, config.end_year)
        return ReplayPricePath(series, config.start_year, intraday_lows=intraday_lows, vault_apy=config.vault_apy)

    base_price = config.base_price or resolve_base_price(config.collateral_asset, live_prices)
    return SyntheticPricePath(
        base_price,
        config.price_change,
        config.total_days,
        config.volatility,
        config.pattern,
        vault_apy=config.vault_apy,
    )
