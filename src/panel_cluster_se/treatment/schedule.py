"""Treatment schedules for repeated-measures designs.

A schedule is any callable ``schedule_fn(group, time_period) -> 0 | 1``.
The simulator takes it as a plain function argument, so a lambda works as
well as the strategies defined here.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterable, Mapping, Sequence

import numpy as np

from ..exceptions import InvalidConfiguration, InvalidSchedule

logger = logging.getLogger(__name__)

ScheduleFn = Callable[[Hashable, int], int]


class CrossoverSchedule:
    """Crossover design: each group is treated in its own set of periods.

    Parameters
    ----------
    treated_periods : Mapping
        ``{group: periods}`` where ``periods`` is an iterable of the time
        periods in which that group receives treatment. Groups that are not
        listed stay in control for the whole panel.

    Example
    -------
    >>> schedule = CrossoverSchedule({"A": [1, 2], "B": [3, 4]})
    >>> schedule("A", 1), schedule("B", 1)
    (1, 0)
    """

    def __init__(self, treated_periods: Mapping[Hashable, Iterable[int]]) -> None:
        self.treated_periods = {
            group: frozenset(int(t) for t in periods)
            for group, periods in treated_periods.items()
        }

    @classmethod
    def two_group(
        cls,
        num_periods: int,
        groups: Sequence[Hashable] = ("A", "B"),
    ) -> CrossoverSchedule:
        """Two-arm crossover: first group treated in the first half of periods,
        second group in the second half.

        With an odd number of periods the first group gets the shorter half.
        """
        if num_periods < 2:
            raise InvalidConfiguration(
                f"A two-group crossover needs at least 2 periods, got {num_periods}"
            )
        if len(groups) != 2:
            raise InvalidConfiguration(
                f"A two-group crossover needs exactly 2 groups, got {list(groups)}"
            )
        switch = num_periods // 2
        first, second = groups
        return cls({
            first: range(1, switch + 1),
            second: range(switch + 1, num_periods + 1),
        })

    @property
    def groups(self) -> list[Hashable]:
        return list(self.treated_periods)

    def __call__(self, group: Hashable, time_period: int) -> int:
        return int(time_period in self.treated_periods.get(group, frozenset()))

    def __repr__(self) -> str:
        periods = {g: sorted(p) for g, p in self.treated_periods.items()}
        return f"{type(self).__name__}({periods})"


def staggered_schedule(adoption: Mapping[Hashable, int | None]) -> ScheduleFn:
    """Absorbing treatment: a group is treated from its adoption period on.

    ``None`` as adoption period means the group is never treated.
    """
    adoption = dict(adoption)

    def schedule(group: Hashable, time_period: int) -> int:
        start = adoption.get(group)
        return int(start is not None and time_period >= start)

    return schedule


def _as_indicator(value: object) -> int | None:
    """Return 0/1 for valid schedule output, None otherwise."""
    if isinstance(value, (bool, np.bool_)):
        return int(value)
    if isinstance(value, (int, np.integer)) and value in (0, 1):
        return int(value)
    return None


def evaluate_schedule(
    schedule_fn: ScheduleFn,
    groups: Iterable[Hashable],
    periods: Iterable[int],
) -> np.ndarray:
    """Evaluate a schedule row by row and validate its output.

    Parameters
    ----------
    schedule_fn : callable
        ``schedule_fn(group, time_period)``.
    groups, periods : iterable
        Paired group labels and time periods, one entry per observation.

    Returns
    -------
    np.ndarray
        ``int8`` array of treatment indicators.

    Raises
    ------
    InvalidSchedule
        If the schedule returns anything other than 0, 1, True or False.
    """
    cache: dict[tuple[Hashable, int], int] = {}
    out = []
    for group, t in zip(groups, periods):
        key = (group, int(t))
        if key not in cache:
            value = schedule_fn(group, int(t))
            indicator = _as_indicator(value)
            if indicator is None:
                raise InvalidSchedule(
                    f"Schedule returned {value!r} for group={group!r}, "
                    f"time_period={int(t)}; expected 0 or 1"
                )
            cache[key] = indicator
        out.append(cache[key])

    logger.debug("Schedule evaluated on %s distinct (group, period) cells", len(cache))
    return np.asarray(out, dtype=np.int8)
