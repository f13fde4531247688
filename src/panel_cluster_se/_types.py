"""Shared types and configuration for panel-cluster-se."""

from __future__ import annotations

from collections.abc import Hashable, Iterator
from dataclasses import dataclass

import pandas as pd


@dataclass(frozen=True)
class PanelConfig:
    """Column name mapping for panel data.

    The simulator writes these columns, the diagnostics read them, and the
    estimator uses them as defaults. Create one and pass it to every
    component that touches the same panel.

    Parameters
    ----------
    unit_col : str
        Column name for the unit identifier (subject, firm, store).
    time_col : str
        Column name for the time period, numbered 1..T.
    group_col : str
        Column name for the schedule group label.
    treatment_col : str
        Column name for the binary treatment indicator.
    outcome_col : str
        Column name for the real-valued outcome.

    Example
    -------
    >>> config = PanelConfig(unit_col="subject", time_col="week")
    """

    unit_col: str = "unit_id"
    time_col: str = "time_period"
    group_col: str = "group"
    treatment_col: str = "treatment_indicator"
    outcome_col: str = "outcome"

    @property
    def columns(self) -> list[str]:
        return [
            self.unit_col,
            self.time_col,
            self.group_col,
            self.treatment_col,
            self.outcome_col,
        ]


@dataclass(frozen=True)
class Observation:
    """One (unit, time) row of a panel."""

    unit_id: int
    time_period: int
    group: Hashable
    treatment_indicator: int
    outcome: float


def observations(
    panel: pd.DataFrame, config: PanelConfig | None = None
) -> Iterator[Observation]:
    """Iterate a panel DataFrame as ``Observation`` records, in row order."""
    c = config or PanelConfig()
    for unit, t, group, d, y in panel[c.columns].itertuples(index=False, name=None):
        yield Observation(
            unit_id=int(unit),
            time_period=int(t),
            group=group,
            treatment_indicator=int(d),
            outcome=float(y),
        )
