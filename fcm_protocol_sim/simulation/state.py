#!/usr/bin/env python3
"""
Position and Event Records

Immutable per-day snapshots of each position plus the structured event log
emitted by the day loop. Agents return new snapshots instead of mutating.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..core.math import LIQUIDATION_THRESHOLD


# Tolerance for float round-off when comparing health against a target
HEALTH_EPSILON = 1e-9


class Strategy(str, Enum):
    """The two compared strategies"""
    TRADITIONAL = "traditional"
    PROTECTED = "protected"


class PositionStatus(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    LIQUIDATED = "liquidated"


class EventType(str, Enum):
    CREATE = "create"
    BORROW = "borrow"
    VAULT_DEPLOY = "vault_deploy"
    REBALANCE = "rebalance"
    VAULT_WITHDRAW = "vault_withdraw"
    COLLATERAL_SALE = "collateral_sale"
    YIELD_APPLIED = "yield_applied"
    LEVERAGE_UP = "leverage_up"
    WARNING = "warning"
    LIQUIDATION = "liquidation"


def derive_status(health_factor: float, target_health: float, liquidated: bool = False) -> PositionStatus:
    """Status is a pure function of health; it is never set directly"""
    if liquidated or health_factor <= LIQUIDATION_THRESHOLD:
        return PositionStatus.LIQUIDATED
    if health_factor >= target_health - HEALTH_EPSILON:
        return PositionStatus.HEALTHY
    return PositionStatus.WARNING


@dataclass(frozen=True)
class PositionState:
    """Snapshot of one position at the close of a simulated day"""
    day: int
    price: float
    collateral_amount: float
    collateral_value: float
    debt_amount: float
    health_factor: float
    status: PositionStatus
    target_health: float
    initial_collateral_value: float
    initial_debt: float
    total_returns: float = 0.0
    accrued_interest: float = 0.0
    earned_yield: float = 0.0
    net_position_value: float = 0.0
    liquidation_day: Optional[int] = None

    @property
    def is_liquidated(self) -> bool:
        return self.status == PositionStatus.LIQUIDATED

    @property
    def initial_equity(self) -> float:
        return self.initial_collateral_value - self.initial_debt

    @property
    def equity(self) -> float:
        return self.collateral_value - self.debt_amount

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass(frozen=True)
class TraditionalPositionState(PositionState):
    # Borrowed funds parked in a simple yield balance, never used to repay
    borrowed_funds_balance: float = 0.0
    supply_yield: float = 0.0
    warning_issued: bool = False


@dataclass(frozen=True)
class ProtectedPositionState(PositionState):
    yield_reserve: float = 0.0
    vault_balance: float = 0.0
    vault_yield_earned: float = 0.0
    rebalance_count: int = 0
    leverage_up_count: int = 0
    consecutive_up_days: int = 0
    min_health: float = 0.0
    max_health: float = float("inf")
    volatility: Optional[float] = None


@dataclass(frozen=True)
class SimulationEvent:
    """Single entry in the structured event log"""
    day: int
    position: Strategy
    event_type: EventType
    amount: float = 0.0
    health_before: Optional[float] = None
    health_after: Optional[float] = None
    checkpoint: Optional[int] = None  # None means end of day
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["position"] = self.position.value
        data["event_type"] = self.event_type.value
        return data
