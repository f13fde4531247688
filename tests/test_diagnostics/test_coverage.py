"""Tests for CoverageAnalyzer."""

import pandas as pd
import pytest

from panel_cluster_se import CrossoverSchedule, InvalidConfiguration
from panel_cluster_se.diagnostics import CoverageAnalyzer


class TestCoverageAnalyzer:
    def test_compute_returns_expected_columns(self, scenario_panel, config):
        analyzer = CoverageAnalyzer(config=config)
        result = analyzer.compute(scenario_panel)
        expected = ["unit_id", "n_obs", "n_periods", "n_duplicates",
                    "min_time", "max_time", "is_complete"]
        assert result.columns.tolist() == expected

    def test_compute_one_row_per_unit(self, scenario_panel, config):
        analyzer = CoverageAnalyzer(config=config)
        result = analyzer.compute(scenario_panel)
        assert len(result) == scenario_panel["unit_id"].nunique()

    def test_generated_panel_complete(self, scenario_panel, config):
        analyzer = CoverageAnalyzer(config=config)
        result = analyzer.compute(scenario_panel, num_periods=4)
        assert result["is_complete"].all()
        assert (result["n_duplicates"] == 0).all()
        analyzer.validate(scenario_panel, num_periods=4)

    def test_gap_detected(self, config):
        df = pd.DataFrame({
            "unit_id": [1, 1, 1, 2, 2, 2],
            "time_period": [1, 2, 3, 1, 3, 3],
        })
        analyzer = CoverageAnalyzer(config=config)
        result = analyzer.compute(df).set_index("unit_id")
        assert result.loc[1, "is_complete"]
        assert not result.loc[2, "is_complete"]
        assert result.loc[2, "n_duplicates"] == 1
        with pytest.raises(InvalidConfiguration, match="Incomplete panel"):
            analyzer.validate(df)

    def test_periods_must_start_at_one(self, config):
        df = pd.DataFrame({"unit_id": [1, 1], "time_period": [2, 3]})
        result = CoverageAnalyzer(config=config).compute(df)
        assert not result["is_complete"].iloc[0]

    def test_missing_column(self, config):
        df = pd.DataFrame({"unit_id": [1]})
        with pytest.raises(InvalidConfiguration, match="Missing required columns"):
            CoverageAnalyzer(config=config).compute(df)

    def test_schedule_fidelity(self, scenario_panel, crossover, config):
        analyzer = CoverageAnalyzer(config=config)
        assert analyzer.schedule_fidelity(scenario_panel, crossover) == 1.0

        flipped = CrossoverSchedule({"A": [3, 4], "B": [1, 2]})
        assert analyzer.schedule_fidelity(scenario_panel, flipped) == 0.0

    def test_summary(self, scenario_panel, config):
        analyzer = CoverageAnalyzer(config=config)
        result = analyzer.summary(scenario_panel)
        assert isinstance(result, pd.DataFrame)
        row = result.iloc[0]
        assert row["n_units"] == 10
        assert row["n_complete"] == 10
        assert row["pct_complete"] == 100.0
        assert row["pct_treated"] == 50.0
