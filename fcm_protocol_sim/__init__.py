"""
FCM Protocol Simulation

Day-by-day comparison of a passive lending position against an auto-managed
one that rebalances on adaptive health thresholds.
"""

__version__ = "1.0.0"
__author__ = "FCM Protocol Team"

# Core
from .core.math import LendingMath
from .core.assets import Asset, DebtAsset, get_asset, get_debt_asset

# Simulation
from .simulation.config import SimulationConfig, ProtocolParameters, DataMode, Shape, VolatilityLevel
from .simulation.state import PositionStatus, EventType, Strategy
from .simulation.thresholds import ControlThresholds, resolve_thresholds
from .simulation.price_paths import PriceSeriesCache, build_price_path
from .simulation.engine import FCMSimulationEngine, SimulationResult, initialize_position, simulate_to_day

# Agents
from .agents.traditional_agent import TraditionalAgent
from .agents.protected_agent import ProtectedAgent

# Analysis
from .analysis.comparison import get_comparison_summary, trajectory_to_dataframe

__all__ = [
    # Core
    "LendingMath", "Asset", "DebtAsset", "get_asset", "get_debt_asset",

    # Simulation
    "SimulationConfig", "ProtocolParameters", "DataMode", "Shape", "VolatilityLevel",
    "PositionStatus", "EventType", "Strategy",
    "ControlThresholds", "resolve_thresholds", "PriceSeriesCache", "build_price_path",
    "FCMSimulationEngine", "SimulationResult", "initialize_position", "simulate_to_day",

    # Agents
    "TraditionalAgent", "ProtectedAgent",

    # Analysis
    "get_comparison_summary", "trajectory_to_dataframe"
]
