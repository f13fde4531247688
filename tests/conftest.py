"""Shared fixtures for panel-cluster-se tests."""

import numpy as np
import pandas as pd
import pytest

from panel_cluster_se import CrossoverSchedule, PanelConfig, SimulationParams, generate


@pytest.fixture
def config() -> PanelConfig:
    return PanelConfig()


@pytest.fixture
def crossover() -> CrossoverSchedule:
    """Group A treated in periods 1-2, group B in periods 3-4."""
    return CrossoverSchedule({"A": [1, 2], "B": [3, 4]})


@pytest.fixture
def scenario_params() -> SimulationParams:
    """10 subjects, 4 periods, the classroom crossover example."""
    return SimulationParams(
        num_units=10,
        num_periods=4,
        baseline_mean=60,
        baseline_sd=5,
        trend_mean=3,
        trend_sd=2,
        treatment_effect_mean=4,
        treatment_effect_sd=3,
    )


@pytest.fixture
def scenario_panel(crossover) -> pd.DataFrame:
    return generate(
        num_units=10,
        num_periods=4,
        schedule_fn=crossover,
        baseline_mean=60,
        baseline_sd=5,
        trend_mean=3,
        trend_sd=2,
        treatment_effect_mean=4,
        treatment_effect_sd=3,
        rng_seed=1,
    )


@pytest.fixture
def clustered_xy() -> pd.DataFrame:
    """Cross-section with a shared cluster shock, 12 clusters of uneven size."""
    rng = np.random.default_rng(42)
    rows = []
    for g in range(12):
        shock = rng.normal(0, 1.5)
        x_shift = rng.normal(0, 1)
        for _ in range(3 + g % 4):
            x = x_shift + rng.normal()
            rows.append({
                "cluster": f"c{g:02d}",
                "x": x,
                "z": rng.normal(),
                "y": 1.0 + 2.0 * x + shock + rng.normal(0, 0.5),
            })
    return pd.DataFrame(rows)
