"""Tests for PanelSimulator and generate()."""

import numpy as np
import pandas as pd
import pytest

from panel_cluster_se import (
    CrossoverSchedule,
    InvalidConfiguration,
    InvalidSchedule,
    Observation,
    PanelConfig,
    PanelSimulator,
    SimulationParams,
    generate,
    observations,
)

EXPECTED_COLUMNS = ["unit_id", "time_period", "group", "treatment_indicator", "outcome"]


def _generate(schedule, seed=1, **overrides):
    kwargs = dict(
        num_units=10,
        num_periods=4,
        schedule_fn=schedule,
        baseline_mean=60,
        baseline_sd=5,
        trend_mean=3,
        trend_sd=2,
        treatment_effect_mean=4,
        treatment_effect_sd=3,
        rng_seed=seed,
    )
    kwargs.update(overrides)
    return generate(**kwargs)


class TestGenerateShape:
    def test_columns_and_rows(self, scenario_panel):
        assert scenario_panel.columns.tolist() == EXPECTED_COLUMNS
        assert len(scenario_panel) == 40

    def test_sorted_by_unit_then_period(self, scenario_panel):
        expected = scenario_panel.sort_values(["unit_id", "time_period"])
        pd.testing.assert_frame_equal(scenario_panel, expected)

    def test_panel_complete(self, scenario_panel):
        for _, grp in scenario_panel.groupby("unit_id"):
            assert sorted(grp["time_period"]) == [1, 2, 3, 4]
        assert not scenario_panel.duplicated(["unit_id", "time_period"]).any()
        assert scenario_panel["unit_id"].min() == 1

    def test_groups_in_contiguous_blocks(self, scenario_panel):
        units = scenario_panel.drop_duplicates("unit_id").set_index("unit_id")["group"]
        assert units.loc[1:5].eq("A").all()
        assert units.loc[6:10].eq("B").all()

    def test_uneven_group_split(self, crossover):
        panel = _generate(crossover, num_units=5)
        units = panel.drop_duplicates("unit_id")["group"].tolist()
        assert units == ["A", "A", "A", "B", "B"]

    def test_single_unit_single_period(self, crossover):
        panel = _generate(crossover, num_units=1, num_periods=1)
        assert len(panel) == 1
        assert panel["treatment_indicator"].iloc[0] == 1

    def test_custom_config(self, crossover):
        config = PanelConfig(unit_col="subject", time_col="week", outcome_col="score")
        panel = _generate(crossover, config=config)
        assert {"subject", "week", "score"} <= set(panel.columns)


class TestDeterminism:
    def test_same_seed_same_panel(self, crossover):
        pd.testing.assert_frame_equal(_generate(crossover, seed=7), _generate(crossover, seed=7))

    def test_different_seed_different_outcomes(self, crossover):
        a = _generate(crossover, seed=7)["outcome"]
        b = _generate(crossover, seed=8)["outcome"]
        assert not np.allclose(a, b)

    def test_generator_and_seed_sequence_accepted(self, crossover):
        from_int = _generate(crossover, seed=3)
        from_ss = _generate(crossover, seed=np.random.SeedSequence(3))
        from_gen = _generate(crossover, seed=np.random.default_rng(3))
        pd.testing.assert_frame_equal(from_int, from_ss)
        pd.testing.assert_frame_equal(from_int, from_gen)

    def test_no_global_random_state(self, crossover):
        np.random.seed(0)
        a = _generate(crossover, seed=5)
        np.random.seed(999)
        b = _generate(crossover, seed=5)
        pd.testing.assert_frame_equal(a, b)


class TestScheduleFidelity:
    def test_indicator_matches_schedule(self, scenario_panel, crossover):
        for obs in observations(scenario_panel):
            assert obs.treatment_indicator == crossover(obs.group, obs.time_period)

    def test_lambda_schedule(self):
        panel = _generate(lambda g, t: int(t >= 3 and g == "B"))
        treated = panel[panel["treatment_indicator"] == 1]
        assert set(treated["group"]) == {"B"}
        assert set(treated["time_period"]) == {3, 4}

    def test_invalid_schedule_raises(self):
        with pytest.raises(InvalidSchedule):
            _generate(lambda g, t: 2)


class TestOutcomeModel:
    def test_random_walk_without_treatment(self):
        """With sd 0 everywhere the walk is baseline + trend * (t - 1)."""
        panel = _generate(
            lambda g, t: 0,
            baseline_sd=0,
            trend_sd=0,
            treatment_effect_sd=0,
        )
        expected = 60 + 3 * (panel["time_period"] - 1)
        np.testing.assert_allclose(panel["outcome"], expected)

    def test_effect_added_only_when_treated(self, crossover):
        panel, effects = _generate(
            crossover,
            baseline_sd=0,
            trend_sd=0,
            return_effects=True,
        )
        base = 60 + 3 * (panel["time_period"] - 1)
        tau = panel["unit_id"].map(effects)
        expected = base + tau * panel["treatment_indicator"]
        np.testing.assert_allclose(panel["outcome"], expected)

    def test_effects_indexed_by_unit(self, crossover):
        _, effects = _generate(crossover, return_effects=True)
        assert effects.index.tolist() == list(range(1, 11))
        assert effects.name == "unit_effect"

    def test_effects_do_not_change_panel(self, crossover):
        panel, _ = _generate(crossover, return_effects=True)
        pd.testing.assert_frame_equal(panel, _generate(crossover))

    def test_serial_correlation_from_walk(self, crossover):
        panel = _generate(crossover, num_units=400, baseline_sd=0, treatment_effect_sd=0)
        wide = panel.pivot(index="unit_id", columns="time_period", values="outcome")
        # Var(y_t) grows linearly along a random walk.
        variances = wide.var().to_numpy()
        assert variances[3] > variances[1] > variances[0]


class TestValidation:
    @pytest.mark.parametrize("field", ["num_units", "num_periods"])
    @pytest.mark.parametrize("value", [0, -3])
    def test_sizes_below_one(self, crossover, field, value):
        with pytest.raises(InvalidConfiguration, match=field):
            _generate(crossover, **{field: value})

    def test_non_integer_size(self, crossover):
        with pytest.raises(InvalidConfiguration):
            _generate(crossover, num_units=2.5)

    def test_negative_sd(self, crossover):
        with pytest.raises(InvalidConfiguration, match="trend_sd"):
            _generate(crossover, trend_sd=-1)

    def test_non_finite_parameter(self, crossover):
        with pytest.raises(InvalidConfiguration, match="baseline_mean"):
            _generate(crossover, baseline_mean=float("nan"))

    def test_empty_groups(self, crossover):
        params = SimulationParams(num_units=2, num_periods=2)
        with pytest.raises(InvalidConfiguration):
            PanelSimulator(params, crossover, groups=[])

    def test_schedule_not_callable(self):
        params = SimulationParams(num_units=2, num_periods=2)
        with pytest.raises(InvalidConfiguration):
            PanelSimulator(params, {"A": [1]})


class TestObservations:
    def test_round_trip_fields(self, scenario_panel):
        obs = list(observations(scenario_panel))
        assert len(obs) == len(scenario_panel)
        first = obs[0]
        assert isinstance(first, Observation)
        assert (first.unit_id, first.time_period, first.group) == (1, 1, "A")
        assert first.outcome == scenario_panel["outcome"].iloc[0]


class TestPanelSimulatorObject:
    def test_matches_functional_form(self, scenario_params, scenario_panel):
        sim = PanelSimulator(scenario_params, CrossoverSchedule.two_group(4))
        pd.testing.assert_frame_equal(sim.generate(rng_seed=1), scenario_panel)

    def test_assign_groups(self, scenario_params, crossover):
        sim = PanelSimulator(scenario_params, crossover, groups=["A", "B", "C"])
        labels = sim.assign_groups().tolist()
        assert labels == ["A"] * 4 + ["B"] * 3 + ["C"] * 3
