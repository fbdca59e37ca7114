#!/usr/bin/env python3
"""
Simulation Configuration

Pydantic schema for a single comparison run plus protocol-wide constants.
Construction validates the threshold ordering; `SimulationConfig.update` is the
edit path that shifts dependent values so an edit never leaves an invalid tuple.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.assets import get_asset, get_debt_asset
from ..core.math import LIQUIDATION_THRESHOLD


class DataMode(str, Enum):
    """Where the price path comes from"""
    SIMULATED = "simulated"
    HISTORIC = "historic"


class Shape(str, Enum):
    """Synthetic price path shapes"""
    LINEAR = "linear"
    CRASH = "crash"
    V_SHAPE = "v_shape"
    BULL = "bull"


class VolatilityLevel(str, Enum):
    """Noise amplitude tiers for synthetic paths"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ProtocolParameters:
    """Protocol-wide constants shared by both strategies"""

    DEFAULT_DEPOSIT = 1000.0
    DEFAULT_COLLATERAL_FACTOR = 0.80
    DEFAULT_TARGET_HEALTH = 1.40
    DEFAULT_MIN_HEALTH = 1.20
    DEFAULT_MAX_HEALTH = 1.60
    LIQUIDATION_THRESHOLD = LIQUIDATION_THRESHOLD
    LIQUIDATION_BONUS = 0.05
    DEFAULT_BORROW_APY = 0.065
    DEFAULT_SUPPLY_APY = 0.042
    DEFAULT_VAULT_APY = 0.05
    DEFAULT_BASE_PRICE = 1.00

    # Step used when an edit forces a dependent threshold to move
    THRESHOLD_SHIFT = 0.05
    MAX_HEALTH_SHIFT = 0.10


class SimulationConfig(BaseModel):
    """Configuration for one Traditional vs Protected comparison"""

    model_config = ConfigDict(frozen=True)

    # Position
    initial_deposit: float = Field(default=ProtocolParameters.DEFAULT_DEPOSIT, gt=0,
                                   description="Deposit value in currency units")
    collateral_factor: Optional[float] = Field(default=None, gt=0, lt=1,
                                               description="LTV override; asset default when unset")

    # Threshold overrides; min_health of 0 disables rebalancing
    target_health: Optional[float] = Field(default=None, gt=LIQUIDATION_THRESHOLD)
    min_health: Optional[float] = Field(default=None, ge=0)
    max_health: Optional[float] = Field(default=None, gt=LIQUIDATION_THRESHOLD)

    # Rates
    borrow_apy: Optional[float] = Field(default=None, ge=0, le=1)
    supply_apy: Optional[float] = Field(default=None, ge=0, le=1)
    vault_apy: Optional[float] = Field(default=None, ge=0, le=1)
    interest_rate_change: float = Field(default=0.0, ge=-10, le=10,
                                        description="Shift to the borrow APY in percentage points")
    base_price: Optional[float] = Field(default=None, gt=0)

    # Market
    data_mode: DataMode = DataMode.SIMULATED
    collateral_asset: str = "eth"
    debt_asset: str = "usdc"

    # Historic mode
    start_year: int = Field(default=2020, ge=2020, le=2025)
    end_year: int = Field(default=2020, ge=2020, le=2025)
    event_wicks: bool = Field(default=False,
                              description="Replay black-swan drops as single-day intraday wicks")

    # Simulated mode
    price_change: float = Field(default=-30.0, ge=-99, le=500,
                                description="Total price change over the horizon in percent")
    volatility: VolatilityLevel = VolatilityLevel.MEDIUM
    pattern: Shape = Shape.LINEAR
    total_days: int = Field(default=365, ge=1, le=3650)

    # Engine
    intraday_checkpoints: int = Field(default=4, ge=1, le=96)
    volatility_window: int = Field(default=30, ge=2, le=365)

    @field_validator('collateral_asset', 'debt_asset')
    @classmethod
    def normalize_asset_id(cls, v: str) -> str:
        """Asset ids are case-insensitive"""
        return v.strip().lower()

    @model_validator(mode='after')
    def validate_ordering(self) -> 'SimulationConfig':
        """Reject threshold tuples and year ranges that are out of order"""
        min_h, target, max_h = self.min_health, self.target_health, self.max_health

        if min_h is not None and 0 < min_h <= LIQUIDATION_THRESHOLD:
            raise ValueError("min_health must be above the liquidation threshold (or 0 to disable)")
        if min_h and target is not None and min_h >= target:
            raise ValueError("min_health must be below target_health")
        if target is not None and max_h is not None and max_h <= target:
            raise ValueError("max_health must be above target_health")
        if min_h and max_h is not None and min_h >= max_h:
            raise ValueError("min_health must be below max_health")
        if self.end_year < self.start_year:
            raise ValueError("end_year must not be before start_year")
        return self

    @property
    def is_historic(self) -> bool:
        return self.data_mode == DataMode.HISTORIC

    def resolved_collateral_factor(self) -> float:
        if self.collateral_factor is not None:
            return self.collateral_factor
        return get_asset(self.collateral_asset).collateral_factor

    def resolved_borrow_apy(self) -> float:
        """Debt asset rate (or override) shifted by the interest rate change"""
        base_rate = self.borrow_apy if self.borrow_apy is not None else get_debt_asset(self.debt_asset).borrow_apy
        return max(0.0, base_rate + self.interest_rate_change / 100)

    def resolved_supply_apy(self) -> float:
        if self.supply_apy is not None:
            return self.supply_apy
        return get_asset(self.collateral_asset).supply_apy

    def threshold_overrides(self) -> Dict[str, float]:
        """User-supplied threshold fields only"""
        overrides = {
            "min_health": self.min_health,
            "target_health": self.target_health,
            "max_health": self.max_health,
        }
        return {k: v for k, v in overrides.items() if v is not None}

    def update(self, **changes: Any) -> 'SimulationConfig':
        """
        Return a copy with `changes` applied.

        Dependent fields the caller did not touch are shifted to keep the
        ordering valid: an edited target pushes min below and max above it,
        an edited min pulls the target above it, an edited max pulls the target
        below it, and year edits drag the other end of the range along.
        Explicitly conflicting edits still raise ValidationError.
        """
        data = self.model_dump()
        data.update(changes)
        step = ProtocolParameters.THRESHOLD_SHIFT

        if changes.get("target_health") is not None:
            target = changes["target_health"]
            if "min_health" not in changes and data["min_health"] and data["min_health"] >= target:
                data["min_health"] = _shift_below(target, step)
            if "max_health" not in changes and data["max_health"] is not None and data["max_health"] <= target:
                data["max_health"] = target + ProtocolParameters.MAX_HEALTH_SHIFT

        elif changes.get("min_health"):
            min_h = changes["min_health"]
            target = data["target_health"]
            if target is not None and target <= min_h:
                data["target_health"] = target = min_h + step
                if "max_health" not in changes and data["max_health"] is not None and data["max_health"] <= target:
                    data["max_health"] = target + ProtocolParameters.MAX_HEALTH_SHIFT

        elif changes.get("max_health") is not None:
            max_h = changes["max_health"]
            target = data["target_health"]
            if target is not None and target >= max_h:
                data["target_health"] = target = _shift_below(max_h, step)
                if data["min_health"] and data["min_health"] >= target:
                    data["min_health"] = _shift_below(target, step)

        if "start_year" in changes and "end_year" not in changes and data["end_year"] < data["start_year"]:
            data["end_year"] = data["start_year"]
        if "end_year" in changes and "start_year" not in changes and data["end_year"] < data["start_year"]:
            data["start_year"] = data["end_year"]

        return type(self).model_validate(data)


def _shift_below(value: float, step: float) -> float:
    """Step below `value` without crossing the liquidation threshold"""
    shifted = value - step
    if shifted <= LIQUIDATION_THRESHOLD:
        shifted = (LIQUIDATION_THRESHOLD + value) / 2
    return shifted
