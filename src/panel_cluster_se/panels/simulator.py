"""Synthetic repeated-measures panels.

Each unit follows a random walk around its own baseline, so observations of
the same unit are serially correlated by construction. A per-unit treatment
effect is added in the periods the schedule marks as treated.

    y_i1 = b_i,                     b_i ~ N(baseline_mean, baseline_sd)
    y_it = y_i,t-1 + u_it,          u_it ~ N(trend_mean, trend_sd)
    y_it += tau_i * D_it,           tau_i ~ N(treatment_effect_mean, treatment_effect_sd)

where ``D_it = schedule_fn(group_i, t)``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Hashable, Sequence
from dataclasses import dataclass, fields
from typing import Union

import numpy as np
import pandas as pd

from .._types import PanelConfig
from ..exceptions import InvalidConfiguration
from ..treatment.schedule import ScheduleFn, evaluate_schedule

logger = logging.getLogger(__name__)

SeedLike = Union[int, np.random.SeedSequence, np.random.Generator, None]

DEFAULT_GROUPS = ("A", "B")


def _is_int(value: object) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, (bool, np.bool_))


@dataclass(frozen=True)
class SimulationParams:
    """Numeric parameters of the panel data-generating process.

    Parameters
    ----------
    num_units : int
        Number of units (clusters). Must be >= 1.
    num_periods : int
        Number of time periods per unit. Must be >= 1.
    baseline_mean, baseline_sd : float
        Distribution of the period-1 outcome.
    trend_mean, trend_sd : float
        Distribution of the period-to-period increment of the walk.
    treatment_effect_mean, treatment_effect_sd : float
        Distribution of the per-unit treatment effect.
    """

    num_units: int
    num_periods: int
    baseline_mean: float = 0.0
    baseline_sd: float = 1.0
    trend_mean: float = 0.0
    trend_sd: float = 1.0
    treatment_effect_mean: float = 0.0
    treatment_effect_sd: float = 0.0

    def __post_init__(self) -> None:
        for name in ("num_units", "num_periods"):
            value = getattr(self, name)
            if not _is_int(value) or value < 1:
                raise InvalidConfiguration(f"{name} must be an integer >= 1, got {value!r}")

        for f in fields(self):
            if f.name in ("num_units", "num_periods"):
                continue
            value = getattr(self, f.name)
            if not isinstance(value, (int, float, np.number)) or not math.isfinite(value):
                raise InvalidConfiguration(f"{f.name} must be a finite number, got {value!r}")
            if f.name.endswith("_sd") and value < 0:
                raise InvalidConfiguration(f"{f.name} must be >= 0, got {value!r}")


class PanelSimulator:
    """Generate complete repeated-measures panels under a treatment schedule.

    Parameters
    ----------
    params : SimulationParams
        Panel size and distribution parameters.
    schedule_fn : callable
        ``schedule_fn(group, time_period) -> 0 | 1``. Any pure function works,
        see ``panel_cluster_se.treatment`` for ready-made designs.
    groups : sequence, optional
        Group labels. Units are split into contiguous, near-equal blocks in
        unit order: with 10 units and groups ``("A", "B")`` units 1-5 are in A
        and 6-10 in B.
    config : PanelConfig, optional
        Output column names.

    Example
    -------
    >>> params = SimulationParams(num_units=10, num_periods=4, baseline_mean=60)
    >>> sim = PanelSimulator(params, CrossoverSchedule.two_group(4))
    >>> panel = sim.generate(rng_seed=1)
    """

    def __init__(
        self,
        params: SimulationParams,
        schedule_fn: ScheduleFn,
        groups: Sequence[Hashable] = DEFAULT_GROUPS,
        config: PanelConfig | None = None,
    ) -> None:
        if not callable(schedule_fn):
            raise InvalidConfiguration(f"schedule_fn must be callable, got {schedule_fn!r}")
        groups = list(groups)
        if not groups:
            raise InvalidConfiguration("groups must contain at least one label")
        if len(set(groups)) != len(groups):
            raise InvalidConfiguration(f"Duplicate group labels: {groups}")

        self.params = params
        self.schedule_fn = schedule_fn
        self.groups = groups
        self.config = config or PanelConfig()

    def assign_groups(self) -> np.ndarray:
        """Group label of each unit, in unit order."""
        n = self.params.num_units
        blocks = np.array_split(np.arange(n), len(self.groups))
        labels = np.empty(n, dtype=object)
        for label, block in zip(self.groups, blocks):
            labels[block] = label
        return labels

    def generate(
        self,
        rng_seed: SeedLike = None,
        return_effects: bool = False,
    ) -> pd.DataFrame | tuple[pd.DataFrame, pd.Series]:
        """Draw one panel.

        Parameters
        ----------
        rng_seed : int, SeedSequence or Generator, optional
            Source of randomness. The same seed always produces the same
            panel. A Generator is used as-is and advanced.
        return_effects : bool
            Also return the latent per-unit treatment effects.

        Returns
        -------
        pd.DataFrame
            One row per (unit, period), sorted by unit then period, with the
            columns named in ``config``. If ``return_effects`` is true, a
            ``(panel, effects)`` tuple where ``effects`` is indexed by unit id.
        """
        p = self.params
        c = self.config
        n, t_max = p.num_units, p.num_periods
        rng = np.random.default_rng(rng_seed)

        unit_ids = np.arange(1, n + 1)
        tau = rng.normal(p.treatment_effect_mean, p.treatment_effect_sd, size=n)
        baseline = rng.normal(p.baseline_mean, p.baseline_sd, size=n)
        steps = rng.normal(p.trend_mean, p.trend_sd, size=(n, t_max - 1))

        walk = np.empty((n, t_max))
        walk[:, 0] = baseline
        walk[:, 1:] = baseline[:, None] + np.cumsum(steps, axis=1)

        unit_panel = np.repeat(unit_ids, t_max)
        time_panel = np.tile(np.arange(1, t_max + 1), n)
        group_panel = np.repeat(self.assign_groups(), t_max)
        treat_panel = evaluate_schedule(self.schedule_fn, group_panel, time_panel)

        outcome = walk.ravel() + np.repeat(tau, t_max) * treat_panel

        df = pd.DataFrame({
            c.unit_col: unit_panel,
            c.time_col: time_panel,
            c.group_col: group_panel,
            c.treatment_col: treat_panel.astype(np.int64),
            c.outcome_col: outcome,
        })

        logger.info(
            "Panel generated: %s observations, %s units, %s periods, %s treated obs",
            f"{len(df):,}",
            f"{n:,}",
            t_max,
            f"{int(treat_panel.sum()):,}",
        )

        if return_effects:
            effects = pd.Series(tau, index=pd.Index(unit_ids, name=c.unit_col), name="unit_effect")
            return df, effects
        return df


def generate(
    num_units: int,
    num_periods: int,
    schedule_fn: ScheduleFn,
    baseline_mean: float,
    baseline_sd: float,
    trend_mean: float,
    trend_sd: float,
    treatment_effect_mean: float,
    treatment_effect_sd: float,
    rng_seed: SeedLike,
    *,
    groups: Sequence[Hashable] = DEFAULT_GROUPS,
    config: PanelConfig | None = None,
    return_effects: bool = False,
) -> pd.DataFrame | tuple[pd.DataFrame, pd.Series]:
    """Generate a synthetic repeated-measures panel.

    Functional form of ``PanelSimulator``; see its docstring for the model.

    Raises
    ------
    InvalidConfiguration
        If ``num_units`` or ``num_periods`` is below 1, or a standard
        deviation is negative.
    InvalidSchedule
        If ``schedule_fn`` returns a value other than 0 or 1.
    """
    params = SimulationParams(
        num_units=num_units,
        num_periods=num_periods,
        baseline_mean=baseline_mean,
        baseline_sd=baseline_sd,
        trend_mean=trend_mean,
        trend_sd=trend_sd,
        treatment_effect_mean=treatment_effect_mean,
        treatment_effect_sd=treatment_effect_sd,
    )
    simulator = PanelSimulator(params, schedule_fn, groups=groups, config=config)
    return simulator.generate(rng_seed, return_effects=return_effects)
