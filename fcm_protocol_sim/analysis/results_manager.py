#!/usr/bin/env python3
"""
Results Management System

Stores command-line runs in numbered directories: JSON results and metadata
plus CSV trajectory and event tables.
"""

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..simulation.engine import SimulationResult
from .comparison import events_to_dataframe, get_comparison_summary, trajectory_to_dataframe


logger = logging.getLogger(__name__)


@dataclass
class RunMetadata:
    """Metadata for a single simulation run"""
    run_id: str
    scenario_name: str
    timestamp: str
    parameters: Dict[str, Any]
    execution_time: float
    status: str = "completed"


class ResultsManager:
    """Handles results storage and run numbering"""

    def __init__(self, base_results_dir: str = "results"):
        self.base_results_dir = Path(base_results_dir)
        self.base_results_dir.mkdir(parents=True, exist_ok=True)

    def create_run_directory(self, scenario_name: str) -> Path:
        """Create run_NNN_<timestamp> under the scenario directory"""
        scenario_dir = self.base_results_dir / scenario_name
        scenario_dir.mkdir(exist_ok=True)

        run_number = self._get_next_run_number(scenario_dir)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        run_dir = scenario_dir / f"run_{run_number:03d}_{timestamp}"
        run_dir.mkdir(exist_ok=True)
        return run_dir

    def _get_next_run_number(self, scenario_dir: Path) -> int:
        run_numbers = []
        for run_dir in scenario_dir.iterdir():
            if not run_dir.is_dir() or not run_dir.name.startswith("run_"):
                continue
            try:
                run_numbers.append(int(run_dir.name.split("_")[1]))
            except (ValueError, IndexError):
                continue
        return max(run_numbers) + 1 if run_numbers else 1

    def save_results(self, run_dir: Path, result: SimulationResult, metadata: RunMetadata) -> Path:
        """
        Write results.json, metadata.json, summary.json, trajectory.csv and
        events.csv into the run directory.

        Returns:
            Path to results.json
        """
        results_file = run_dir / "results.json"
        with open(results_file, 'w') as f:
            json.dump(self._make_serializable(result.to_dict()), f, indent=2)

        with open(run_dir / "metadata.json", 'w') as f:
            json.dump(self._make_serializable(asdict(metadata)), f, indent=2)

        with open(run_dir / "summary.json", 'w') as f:
            json.dump(self._make_serializable(get_comparison_summary(result)), f, indent=2)

        trajectory_to_dataframe(result).to_csv(run_dir / "trajectory.csv", index=False)
        events_to_dataframe(result).to_csv(run_dir / "events.csv", index=False)

        logger.info("Saved run to %s", run_dir)
        return results_file

    def list_scenario_runs(self, scenario_name: str) -> List[Dict[str, Any]]:
        scenario_dir = self.base_results_dir / scenario_name
        if not scenario_dir.exists():
            return []

        runs = []
        for run_dir in scenario_dir.iterdir():
            if not run_dir.is_dir() or not run_dir.name.startswith("run_"):
                continue
            metadata = self._load_json(run_dir / "metadata.json") or {"scenario_name": scenario_name}
            runs.append({"run_id": run_dir.name, "path": str(run_dir), **metadata})

        runs.sort(key=lambda x: x["run_id"])
        return runs

    def load_results(self, run_path: Path) -> Optional[Dict[str, Any]]:
        return self._load_json(Path(run_path) / "results.json")

    def load_metadata(self, run_path: Path) -> Optional[RunMetadata]:
        data = self._load_json(Path(run_path) / "metadata.json")
        if data is None:
            return None
        try:
            return RunMetadata(**data)
        except TypeError:
            return None

    def _load_json(self, path: Path) -> Optional[Dict[str, Any]]:
        """Parsed JSON, or None for a missing or unreadable file"""
        if not path.exists():
            return None
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except json.JSONDecodeError:
            logger.warning("Could not parse %s", path)
            return None

    def _make_serializable(self, obj: Any) -> Any:
        """Convert objects to JSON-serializable format"""
        if hasattr(obj, 'tolist'):  # numpy arrays
            return obj.tolist()
        elif hasattr(obj, 'value') and not isinstance(obj, (int, float, str)):  # Enum
            return obj.value
        elif isinstance(obj, dict):
            return {str(getattr(k, 'value', k)): self._make_serializable(v) for k, v in obj.items()}
        elif isinstance(obj, (list, tuple, set, frozenset)):
            return [self._make_serializable(item) for item in obj]
        elif isinstance(obj, float) and obj != obj:
            return None
        elif isinstance(obj, float) and obj in (float('inf'), float('-inf')):
            return "inf" if obj > 0 else "-inf"
        elif hasattr(obj, 'isoformat'):
            return obj.isoformat()
        try:
            json.dumps(obj)
            return obj
        except (TypeError, ValueError):
            return str(obj)
