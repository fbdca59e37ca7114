"""Comparison, export and results storage"""

from .comparison import get_comparison_summary, trajectory_to_dataframe, events_to_dataframe
from .results_manager import ResultsManager, RunMetadata

__all__ = [
    "get_comparison_summary", "trajectory_to_dataframe", "events_to_dataframe",
    "ResultsManager", "RunMetadata"
]
