#!/usr/bin/env python3
"""
Threshold Resolver

Maps rolling volatility (and, without volatility data, the collateral asset)
to the Protected strategy's control thresholds.

Precedence: user override > dynamic volatility tier > static asset default.
"""

import math
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from ..core.assets import get_asset, is_known_asset
from ..core.math import LIQUIDATION_THRESHOLD
from .config import ProtocolParameters


THRESHOLD_FIELDS = ("min_health", "target_health", "max_health")


@dataclass(frozen=True)
class ControlThresholds:
    """(min, target, max) health thresholds; an infinite max disables leverage-up"""
    min_health: float
    target_health: float
    max_health: float

    @property
    def leverage_enabled(self) -> bool:
        return math.isfinite(self.max_health)

    @property
    def rebalance_enabled(self) -> bool:
        return self.min_health > 0

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.min_health, self.target_health, self.max_health)


@dataclass(frozen=True)
class VolatilityTier:
    name: str
    ceiling: float  # annualized volatility %, inclusive
    thresholds: ControlThresholds


VOLATILITY_TIERS: Tuple[VolatilityTier, ...] = (
    VolatilityTier("calm", 40.0, ControlThresholds(1.05, 1.15, 1.30)),
    VolatilityTier("moderate", 70.0, ControlThresholds(1.10, 1.25, 1.50)),
    VolatilityTier("elevated", 100.0, ControlThresholds(1.15, 1.35, 1.80)),
    VolatilityTier("extreme", math.inf, ControlThresholds(1.25, 1.50, math.inf)),
)

PROTOCOL_DEFAULT_THRESHOLDS = ControlThresholds(
    ProtocolParameters.DEFAULT_MIN_HEALTH,
    ProtocolParameters.DEFAULT_TARGET_HEALTH,
    ProtocolParameters.DEFAULT_MAX_HEALTH,
)


def select_tier(volatility: float) -> VolatilityTier:
    """Tightest tier whose ceiling covers the volatility; boundaries go to the lower tier"""
    for tier in VOLATILITY_TIERS:
        if volatility <= tier.ceiling:
            return tier
    # NaN compares false against every ceiling
    return VOLATILITY_TIERS[-1]


def static_thresholds(asset_id: Optional[str] = None) -> ControlThresholds:
    """Per-asset base thresholds, or protocol defaults"""
    if asset_id is None or not is_known_asset(asset_id):
        return PROTOCOL_DEFAULT_THRESHOLDS
    base = get_asset(asset_id).base_thresholds
    return ControlThresholds(*base) if base else PROTOCOL_DEFAULT_THRESHOLDS


def apply_overrides(base: ControlThresholds, overrides: Optional[Mapping[str, float]] = None) -> ControlThresholds:
    """
    Overlay user overrides, then shift any field the user did not set so the
    ordering min < target < max still holds.
    """
    overrides = {k: v for k, v in (overrides or {}).items() if k in THRESHOLD_FIELDS and v is not None}
    if not overrides:
        return base

    min_health = overrides.get("min_health", base.min_health)
    target_health = overrides.get("target_health", base.target_health)
    max_health = overrides.get("max_health", base.max_health)

    if "target_health" not in overrides:
        if min_health > 0 and target_health <= min_health:
            target_health = min_health + ProtocolParameters.MAX_HEALTH_SHIFT
        if "max_health" in overrides and max_health <= target_health:
            floor = min_health if LIQUIDATION_THRESHOLD < min_health < max_health else LIQUIDATION_THRESHOLD
            target_health = (floor + max_health) / 2
    if "min_health" not in overrides and min_health >= target_health:
        min_health = (LIQUIDATION_THRESHOLD + target_health) / 2
    if "max_health" not in overrides and max_health <= target_health:
        max_health = target_health + ProtocolParameters.MAX_HEALTH_SHIFT

    return ControlThresholds(min_health, target_health, max_health)


def resolve_thresholds(
    volatility: Optional[float] = None,
    asset_id: Optional[str] = None,
    overrides: Optional[Mapping[str, float]] = None
) -> ControlThresholds:
    """
    Control thresholds for a day.

    `volatility=None` means no volatility data yet: the asset's static
    thresholds (or protocol defaults) apply. Otherwise the volatility tier
    decides. User overrides win per field in both cases.
    """
    if volatility is None:
        base = static_thresholds(asset_id)
    else:
        base = select_tier(volatility).thresholds
    return apply_overrides(base, overrides)
