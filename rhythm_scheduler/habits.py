# rhythm_scheduler/habits.py
import math
from datetime import date, timedelta
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from .log import get_logger
from .models import (ActivityRecord, ActivityType, Consistency, HabitReport,
                     Priority, Recommendation, Streak, Trend)
from .patterns import records_to_frame

logger = get_logger("habits")

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday",
                 "Thursday", "Friday", "Saturday"]

TREND_WINDOW = 5
MIN_PER_WEEK = 3


def _consistency(group: pd.DataFrame) -> Consistency:
    days = sorted(set(group["day"]))
    span_days = (days[-1] - days[0]).days + 1
    weeks = max(1, math.ceil(span_days / 7))

    per_weekday = np.bincount(group["weekday"].astype(int), minlength=7)
    return Consistency(
        average_per_week=len(group) / weeks,
        most_frequent_weekday=int(np.argmax(per_weekday)),
        least_frequent_weekday=int(np.argmin(per_weekday)),
    )


def compute_streak(days: Iterable[date], as_of: Optional[date] = None) -> Streak:
    """
    Consecutive-day streaks over the distinct days an activity happened.

    The first day starts a streak of 1. With ``as_of`` given, a streak whose
    last day is before yesterday counts as broken (current streak 0).
    """
    current, longest, last = 0, 0, None
    for day in sorted(set(days)):
        if last is not None and (day - last).days == 1:
            current += 1
        else:
            current = 1
        longest = max(longest, current)
        last = day

    if as_of is not None and last is not None and (as_of - last) > timedelta(days=1):
        current = 0
    return Streak(current_streak=current, max_streak=longest)


def _trend(group: pd.DataFrame) -> Optional[Trend]:
    scores = group.sort_values("start")["efficiency"].to_numpy()
    if len(scores) < 2:
        return None
    older = float(np.mean(scores[:TREND_WINDOW]))
    recent = float(np.mean(scores[-TREND_WINDOW:]))
    change = recent - older
    # equal means are neither improving nor declining
    if math.isclose(change, 0.0, abs_tol=1e-9):
        label = "stable"
    else:
        label = "improving" if change > 0 else "declining"
    return Trend(efficiency_change=change, trend=label)


def analyze_habits(records: Iterable[ActivityRecord],
                   types: Sequence[ActivityType],
                   as_of: Optional[date] = None) -> HabitReport:
    """
    Consistency, streak and efficiency-trend metrics per activity type.

    Only types with at least one record appear in the report. Streaks are
    judged against ``as_of``, today by default.
    """
    as_of = as_of or date.today()
    report = HabitReport()
    df = records_to_frame(records, types)
    if df.empty:
        return report

    for type_id, group in df.groupby("type_id"):
        type_id = int(type_id)
        report.consistency[type_id] = _consistency(group)
        report.streaks[type_id] = compute_streak(group["day"], as_of)
        trend = _trend(group)
        if trend is not None:
            report.trends[type_id] = trend

    logger.debug("habit report for %d types", len(report.consistency))
    return report


def generate_habit_recommendations(report: HabitReport,
                                   types: Sequence[ActivityType]) -> List[Recommendation]:
    """Turn a habit report into advice. Always returns at least one entry."""
    names = {t.id: t.name for t in types}
    recs: List[Recommendation] = []

    for type_id, data in report.consistency.items():
        if type_id not in names or data.average_per_week >= MIN_PER_WEEK:
            continue
        name = names[type_id]
        recs.append(Recommendation(
            kind="consistency",
            type_id=type_id,
            type_name=name,
            suggestion=(f"Try to do {name} more often: currently "
                        f"{data.average_per_week:.1f} times a week, usually on "
                        f"{WEEKDAY_NAMES[data.most_frequent_weekday]}."),
            expected_benefit="A more regular rhythm makes the habit stick",
            priority=Priority.HIGH,
        ))

    for type_id, data in report.streaks.items():
        if type_id not in names:
            continue
        name = names[type_id]
        if data.current_streak == 0:
            recs.append(Recommendation(
                kind="streak",
                type_id=type_id,
                type_name=name,
                suggestion=f"Your {name} streak is broken; resume it today.",
                expected_benefit="Rebuild continuity before the habit fades",
                priority=Priority.HIGH,
            ))
        elif data.current_streak < data.max_streak / 2:
            recs.append(Recommendation(
                kind="streak",
                type_id=type_id,
                type_name=name,
                suggestion=(f"You are on a {data.current_streak}-day {name} streak; "
                            f"your record is {data.max_streak} days. Try to beat it."),
                expected_benefit="Beating a personal best keeps motivation up",
            ))

    for type_id, data in report.trends.items():
        if type_id not in names or data.trend != "declining":
            continue
        name = names[type_id]
        recs.append(Recommendation(
            kind="improvement",
            type_id=type_id,
            type_name=name,
            suggestion=(f"Your {name} efficiency dropped by {abs(data.efficiency_change):.1f} "
                        "points; adjust its timing or take more rest around it."),
            expected_benefit="Recover focus by moving the activity to a better time",
            priority=Priority.HIGH,
        ))

    if not recs:
        recs.append(Recommendation(
            kind="general",
            type_id=None,
            type_name="All activities",
            suggestion="Your habits look steady. Keep it up!",
            expected_benefit="Keep a healthy time-management routine",
            priority=Priority.LOW,
        ))
    return recs
