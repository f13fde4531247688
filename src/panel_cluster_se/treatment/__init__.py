"""Treatment schedules: who is treated when."""

from .schedule import CrossoverSchedule, ScheduleFn, evaluate_schedule, staggered_schedule

__all__ = ["CrossoverSchedule", "ScheduleFn", "evaluate_schedule", "staggered_schedule"]
