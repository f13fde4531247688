"""Panel coverage analysis: completeness, duplicates, schedule fidelity."""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd

from .._types import PanelConfig
from ..exceptions import InvalidConfiguration
from ..treatment.schedule import ScheduleFn, evaluate_schedule

logger = logging.getLogger(__name__)


class CoverageAnalyzer:
    """Check that every unit is observed exactly once in each period 1..T.

    Parameters
    ----------
    config : PanelConfig, optional
        Column name mapping.
    """

    def __init__(self, config: PanelConfig | None = None):
        self.config = config or PanelConfig()

    def compute(self, df: pd.DataFrame, num_periods: int | None = None) -> pd.DataFrame:
        """Compute unit-level coverage statistics.

        Parameters
        ----------
        df : pd.DataFrame
            Panel data.
        num_periods : int, optional
            Expected number of periods T. Defaults to the largest period
            observed in the panel.

        Returns
        -------
        pd.DataFrame
            One row per unit with columns: n_obs, n_periods, n_duplicates,
            min_time, max_time, is_complete.
        """
        c = self.config
        self._require(df, [c.unit_col, c.time_col])
        if num_periods is None:
            num_periods = int(df[c.time_col].max()) if len(df) else 0
        expected = set(range(1, num_periods + 1))

        rows = []
        for unit, times in df.groupby(c.unit_col)[c.time_col]:
            observed = set(times.dropna().astype(int))
            n_obs = len(times)
            rows.append({
                c.unit_col: unit,
                "n_obs": n_obs,
                "n_periods": len(observed),
                "n_duplicates": n_obs - times.nunique(),
                "min_time": times.min(),
                "max_time": times.max(),
                "is_complete": observed == expected and n_obs == num_periods,
            })

        columns = [c.unit_col, "n_obs", "n_periods", "n_duplicates",
                   "min_time", "max_time", "is_complete"]
        return pd.DataFrame(rows, columns=columns)

    def validate(self, df: pd.DataFrame, num_periods: int | None = None) -> None:
        """Raise ``InvalidConfiguration`` unless the panel is complete."""
        coverage = self.compute(df, num_periods=num_periods)
        bad = coverage[~coverage["is_complete"].astype(bool)]
        if len(bad):
            units = bad[self.config.unit_col].tolist()
            raise InvalidConfiguration(
                f"Incomplete panel: {len(units)} unit(s) do not cover periods "
                f"1..{num_periods or int(df[self.config.time_col].max())} exactly once: "
                f"{units[:10]}"
            )
        logger.info("Panel complete: %s units", f"{len(coverage):,}")

    def schedule_fidelity(self, df: pd.DataFrame, schedule_fn: ScheduleFn) -> float:
        """Share of rows whose treatment indicator matches ``schedule_fn``."""
        c = self.config
        self._require(df, [c.group_col, c.time_col, c.treatment_col])
        if len(df) == 0:
            return 1.0
        expected = evaluate_schedule(schedule_fn, df[c.group_col], df[c.time_col])
        matches = np.asarray(df[c.treatment_col]) == expected
        return float(matches.mean())

    def summary(self, df: pd.DataFrame) -> pd.DataFrame:
        """Aggregate coverage statistics across all units.

        Returns
        -------
        pd.DataFrame
            One-row DataFrame with n_obs, n_units, n_periods, n_complete,
            pct_complete and the treated share of observations when the
            treatment column is present.
        """
        c = self.config
        coverage = self.compute(df)
        n_units = len(coverage)
        n_complete = int(coverage["is_complete"].astype(bool).sum())

        stats = {
            "n_obs": len(df),
            "n_units": n_units,
            "n_periods": df[c.time_col].nunique(),
            "n_complete": n_complete,
            "pct_complete": round(100 * n_complete / n_units, 1) if n_units else 0.0,
        }
        if c.treatment_col in df.columns:
            stats["pct_treated"] = round(100 * df[c.treatment_col].mean(), 1)

        return pd.DataFrame([stats])

    @staticmethod
    def _require(df: pd.DataFrame, columns: list[str]) -> None:
        missing = [col for col in columns if col not in df.columns]
        if missing:
            raise InvalidConfiguration(
                f"Missing required columns: {missing}. "
                f"Available: {sorted(df.columns.tolist())}"
            )
