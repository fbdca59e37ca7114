#!/usr/bin/env python3
"""
Comparison, Results Storage and CLI Tests
"""

import json
from datetime import date

import pytest

from fcm_protocol_sim.analysis.comparison import (
    events_to_dataframe, first_liquidation_day, get_comparison_summary, market_event_markers, trajectory_to_dataframe
)
from fcm_protocol_sim.analysis.results_manager import ResultsManager, RunMetadata
from fcm_protocol_sim.main import build_parser, create_simulation_config, main
from fcm_protocol_sim.simulation.config import SimulationConfig
from fcm_protocol_sim.simulation.engine import FCMSimulationEngine, simulate_to_day


class TestComparisonSummary:
    """Headline numbers derived from a result"""

    def setup_method(self):
        self.config = SimulationConfig(
            base_price=100.0, price_change=-60.0, pattern="crash", volatility="high", total_days=365
        )
        self.result = FCMSimulationEngine(self.config).run()
        self.summary = get_comparison_summary(self.result)

    def test_liquidation_fields(self):
        liquidation_day = first_liquidation_day(self.result.traditional_trajectory)
        assert self.summary["traditional_liquidated"] is True
        assert self.summary["traditional_liquidation_day"] == liquidation_day
        assert self.summary["days_until_liquidation"] is None, "Already liquidated by the target day"
        assert self.summary["protected_liquidated"] is False
        assert self.summary["protected_liquidation_day"] is None

    def test_differences(self):
        assert self.summary["returns_difference"] == pytest.approx(
            self.result.protected.total_returns - self.result.traditional.total_returns
        )
        assert self.summary["health_difference"] > 0
        assert self.summary["rebalance_count"] == self.result.protected.rebalance_count

    def test_hold_value(self):
        assert self.summary["day"] == 365
        assert self.summary["hold_value"] == pytest.approx(10.0 * self.result.prices[-1])
        assert self.summary["hold_returns"] == pytest.approx(self.summary["hold_value"] - 1000.0)

    def test_liquidation_price_of_open_position(self):
        result = simulate_to_day(self.config, 0)
        summary = get_comparison_summary(result)
        traditional = result.traditional
        expected = traditional.debt_amount / (traditional.collateral_amount * result.collateral_factor)
        assert summary["traditional_liquidation_price"] == pytest.approx(expected)
        assert summary["traditional_liquidation_day"] is None

    def test_days_until_future_liquidation(self):
        engine = FCMSimulationEngine(self.config)
        liquidation_day = engine.project_traditional_liquidation_day()
        assert liquidation_day == first_liquidation_day(self.result.traditional_trajectory)

        seek = liquidation_day // 2
        summary = get_comparison_summary(engine.simulate_to_day(seek))
        assert summary["traditional_liquidated"] is False
        assert summary["traditional_liquidation_day"] is None
        assert summary["days_until_liquidation"] == liquidation_day - seek

    def test_no_liquidation_on_path(self):
        config = SimulationConfig(base_price=100.0, target_health=2.5, min_health=0.0, price_change=-20.0,
                                  total_days=100, volatility="low")
        summary = get_comparison_summary(simulate_to_day(config, 50))
        assert summary["days_until_liquidation"] is None


class TestDataFrames:
    """Tabular export"""

    def test_synthetic_trajectory(self):
        result = simulate_to_day(SimulationConfig(total_days=60), 45)
        df = trajectory_to_dataframe(result)

        assert len(df) == 46
        assert "date" not in df.columns
        assert list(df["day"]) == list(range(46))
        assert df["protected_vault"].iloc[0] == pytest.approx(result.protected_trajectory[0].vault_balance)

    def test_historic_trajectory_has_dates(self):
        config = SimulationConfig(data_mode="historic", collateral_asset="eth", start_year=2022, end_year=2022)
        df = trajectory_to_dataframe(simulate_to_day(config, 40))

        assert len(df) == 41
        assert df.columns[1] == "date"
        assert df["date"].iloc[0] == date(2022, 1, 1)
        assert df["date"].iloc[40] == date(2022, 2, 10)

    def test_events_table(self):
        result = simulate_to_day(SimulationConfig(price_change=-60.0, pattern="crash"), 200)
        df = events_to_dataframe(result)
        assert len(df) == len(result.events)
        assert list(df.columns) == [
            "day", "position", "event_type", "amount", "health_before", "health_after", "checkpoint"
        ]

    def test_market_markers(self):
        config = SimulationConfig(data_mode="historic", collateral_asset="eth", start_year=2022, end_year=2022)
        engine = FCMSimulationEngine(config)

        markers = market_event_markers(engine.run())
        assert [m["name"] for m in markers] == ["LUNA", "FTX"]
        assert [m["day"] for m in markers] == [130, 310]
        assert [m["name"] for m in market_event_markers(engine.simulate_to_day(200))] == ["LUNA"]
        assert market_event_markers(simulate_to_day(SimulationConfig(), 30)) == []


class TestResultsManager:
    """Run directories and JSON round trips"""

    def setup_method(self):
        self.result = simulate_to_day(SimulationConfig(total_days=30), 30)
        self.metadata = RunMetadata(
            run_id="run_001", scenario_name="simulated_eth", timestamp="2024-01-01T00:00:00",
            parameters=self.result.config.model_dump(mode="json"), execution_time=0.1,
        )

    def test_run_numbering(self, tmp_path):
        manager = ResultsManager(str(tmp_path))
        first = manager.create_run_directory("simulated_eth")
        second = manager.create_run_directory("simulated_eth")
        assert first.name.startswith("run_001_")
        assert second.name.startswith("run_002_")

    def test_save_and_load(self, tmp_path):
        manager = ResultsManager(str(tmp_path))
        run_dir = manager.create_run_directory("simulated_eth")
        manager.save_results(run_dir, self.result, self.metadata)

        for name in ("results.json", "metadata.json", "summary.json", "trajectory.csv", "events.csv"):
            assert (run_dir / name).exists(), f"{name} missing"

        loaded = manager.load_results(run_dir)
        assert loaded["target_day"] == 30
        assert loaded["config"]["total_days"] == 30
        assert loaded["protected"]["rebalance_count"] == self.result.protected.rebalance_count
        assert manager.load_metadata(run_dir) == self.metadata

        runs = manager.list_scenario_runs("simulated_eth")
        assert len(runs) == 1 and runs[0]["run_id"] == run_dir.name

    def test_unreadable_files(self, tmp_path):
        manager = ResultsManager(str(tmp_path))
        run_dir = manager.create_run_directory("broken")
        (run_dir / "results.json").write_text("{not json")

        assert manager.load_results(run_dir) is None
        assert manager.load_metadata(run_dir) is None
        assert manager.list_scenario_runs("missing") == []

    def test_serializable_values(self, tmp_path):
        manager = ResultsManager(str(tmp_path))
        assert manager._make_serializable({"a": float("nan"), "b": float("-inf"), "c": (1, 2)}) == {
            "a": None, "b": "-inf", "c": [1, 2]
        }
        json.dumps(manager._make_serializable(self.result.to_dict()))


class TestCommandLine:
    """fcm-sim entry point"""

    def test_parser_to_config(self):
        args = build_parser().parse_args(["--mode", "historic", "--asset", "BTC", "--start-year", "2021",
                                          "--end-year", "2022", "--min-health", "0"])
        config = create_simulation_config(args)
        assert config.is_historic
        assert config.collateral_asset == "btc"
        assert config.min_health == 0.0

    def test_synthetic_run(self, capsys):
        assert main(["--days", "30", "--events", "0"]) == 0
        out = capsys.readouterr().out
        assert "Day 30" in out
        assert "Traditional" in out

    def test_seek_to_day(self, capsys):
        assert main(["--mode", "historic", "--asset", "eth", "--start-year", "2022",
                     "--end-year", "2022", "--day", "140"]) == 0
        out = capsys.readouterr().out
        assert "Day 140" in out
        assert "LUNA" in out

    def test_invalid_threshold_rejected(self, capsys):
        assert main(["--min-health", "0.5"]) == 1
        assert "Invalid configuration" in capsys.readouterr().out

    def test_output_directory(self, tmp_path):
        assert main(["--days", "20", "--output", str(tmp_path)]) == 0
        run_dirs = list((tmp_path / "simulated_eth").iterdir())
        assert len(run_dirs) == 1
        assert (run_dirs[0] / "trajectory.csv").exists()
