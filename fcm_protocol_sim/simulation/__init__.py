"""Simulation engine, configuration and market inputs"""

from .config import SimulationConfig, ProtocolParameters, DataMode, Shape, VolatilityLevel
from .state import (
    PositionStatus, PositionState, TraditionalPositionState, ProtectedPositionState,
    SimulationEvent, EventType, Strategy
)
from .price_paths import (
    PricePathProvider, SyntheticPricePath, ReplayPricePath, PriceSeriesCache,
    calculate_price_at_day, build_price_path
)
from .volatility import calculate_volatility
from .thresholds import ControlThresholds, resolve_thresholds

__all__ = [
    "SimulationConfig", "ProtocolParameters", "DataMode", "Shape", "VolatilityLevel",
    "PositionStatus", "PositionState", "TraditionalPositionState", "ProtectedPositionState",
    "SimulationEvent", "EventType", "Strategy",
    "PricePathProvider", "SyntheticPricePath", "ReplayPricePath", "PriceSeriesCache",
    "calculate_price_at_day", "build_price_path",
    "calculate_volatility", "ControlThresholds", "resolve_thresholds"
]
