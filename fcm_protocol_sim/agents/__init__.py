"""Position strategy agents"""

from .base_agent import BasePositionAgent, DayContext
from .traditional_agent import TraditionalAgent
from .protected_agent import ProtectedAgent

__all__ = [
    "BasePositionAgent", "DayContext",
    "TraditionalAgent", "ProtectedAgent"
]
