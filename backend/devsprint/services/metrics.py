"""
Derived task metrics.

Pure functions: complexity points, efficiency, the efficiency bonus, the
business-hours estimator and week bucketing. Nothing here touches storage,
so values are recomputed on every read instead of being stored.
"""

import math
from datetime import datetime, timedelta
from typing import Iterable, Union

from devsprint.models.task import COMPLEXITY_POINTS, TaskComplexity

DEFAULT_WORK_DAYS = (0, 1, 2, 3, 4)  # Monday..Friday
EFFECTIVE_WORK_HOURS = 6.5
LUNCH_BREAK_HOURS = 1.5
LUNCH_BREAK_THRESHOLD_HOURS = 5.0

EFFICIENCY_DISPLAY_CAP = 999
BONUS_PER_SAVED_HOUR = 10
PENALTY_PER_OVERDUE_HOUR = 5

WEEK_SECONDS = 7 * 24 * 3600


def round_half_up(value: float) -> int:
    """Round halves upward (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def points_for(complexity: Union[TaskComplexity, str]) -> int:
    """Fixed point value for a complexity tier."""
    return COMPLEXITY_POINTS[TaskComplexity(complexity)]


def efficiency_percent(estimated_hours: float, actual_hours: float) -> int:
    """Estimated over actual, as a whole percentage. 100 until time is logged."""
    if actual_hours and actual_hours > 0:
        return round_half_up(estimated_hours / actual_hours * 100)
    return 100


def format_efficiency(percent: int) -> str:
    if percent > EFFICIENCY_DISPLAY_CAP:
        return f">{EFFICIENCY_DISPLAY_CAP}%"
    return f"{percent}%"


def efficiency_bonus(estimated_hours: float, seconds_spent: float) -> int:
    """
    Score adjustment at submission time.

    +10 per hour finished under the estimate, -5 per hour over it.
    """
    estimated_seconds = estimated_hours * 3600
    if seconds_spent < estimated_seconds:
        saved_hours = (estimated_seconds - seconds_spent) / 3600
        return round_half_up(saved_hours * BONUS_PER_SAVED_HOUR)
    if seconds_spent > estimated_seconds:
        overdue_hours = (seconds_spent - estimated_seconds) / 3600
        return -round_half_up(overdue_hours * PENALTY_PER_OVERDUE_HOUR)
    return 0


def calculate_business_hours(
    start: datetime,
    end: datetime,
    work_days: Iterable[int] = DEFAULT_WORK_DAYS,
    effective_hours: float = EFFECTIVE_WORK_HOURS,
    lunch_break_hours: float = LUNCH_BREAK_HOURS,
    lunch_threshold_hours: float = LUNCH_BREAK_THRESHOLD_HOURS,
) -> float:
    """
    Estimate working hours in a scheduled range.

    Same calendar day: the raw duration, minus the lunch break when longer
    than the threshold, clamped to ``[0, effective_hours]``; zero on a
    non-working day. Longer ranges: every working day in ``[start, end]``
    (inclusive, time of day ignored) counts as ``effective_hours``.
    """
    days = frozenset(work_days)
    if end < start:
        return 0.0

    if start.date() == end.date():
        if start.weekday() not in days:
            return 0.0
        hours = (end - start).total_seconds() / 3600
        if hours > lunch_threshold_hours:
            hours -= lunch_break_hours
        return min(max(hours, 0.0), effective_hours)

    working_days = 0
    day = start.date()
    last = end.date()
    while day <= last:
        if day.weekday() in days:
            working_days += 1
        day += timedelta(days=1)

    return working_days * effective_hours


def current_week_number(now: datetime) -> int:
    """Coarse leaderboard bucket: whole weeks since Jan 1, rounded up (1..53)."""
    year_start = datetime(now.year, 1, 1, tzinfo=now.tzinfo)
    weeks = math.ceil((now - year_start).total_seconds() / WEEK_SECONDS)
    return min(max(weeks, 1), 53)


def format_duration(hours: float) -> str:
    """Render hours as "Xh Ym"; tiny non-zero values show as "< 1m"."""
    if hours == 0:
        return "0h 0m"

    sign = "-" if hours < 0 else ""
    abs_hours = abs(hours)
    if abs_hours < 0.01:
        return "< 1m"

    total_seconds = round_half_up(abs_hours * 3600)
    h = total_seconds // 3600
    m = (total_seconds % 3600) // 60
    return f"{sign}{h}h {m}m"
