# rhythm_scheduler/profile.py
from collections import Counter
from datetime import time
from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from .log import get_logger
from .models import (ActivityRecord, ActivityType, FixedActivity, RestPattern,
                     RestWindow, SchedulePrefs, SleepPattern, TimePattern,
                     UserProfile)
from .patterns import analyze_time_patterns, records_to_frame

logger = get_logger("profile")

MINUTES_PER_DAY = 24 * 60


def _blend(current: Optional[float], value: float) -> float:
    """
    Two-point running blend used for rest and sleep averages.

    Later days weigh more than earlier ones, so this is not a true mean and
    not order independent; for stable routines the difference is negligible.
    """
    if current is None:
        return value
    return (current + value) / 2.0


def _span_minutes(start: pd.Timestamp, end: pd.Timestamp) -> float:
    return max(0.0, (end - start).total_seconds() / 60.0)


def _minutes_to_time(minutes: float) -> time:
    minutes = int(round(min(max(minutes, 0.0), MINUTES_PER_DAY - 1)))
    return time(minutes // 60, minutes % 60)


def _rest_pattern(df: pd.DataFrame, prefs: SchedulePrefs) -> RestPattern:
    avg_work: Optional[float] = None
    avg_rest: Optional[float] = None
    rest_hours: Counter = Counter()

    for _, day in df.sort_values("start").groupby("day", sort=True):
        rows = list(day.itertuples(index=False))
        blocks, gaps = [], []
        block_start, block_end = rows[0].start, rows[0].end
        for row in rows[1:]:
            gap = (row.start - block_end).total_seconds() / 60.0
            if gap >= prefs.rest_gap_minutes:
                blocks.append(_span_minutes(block_start, block_end))
                gaps.append(gap)
                rest_hours[block_end.hour] += 1
                block_start = row.start
            block_end = max(block_end, row.end)
        blocks.append(_span_minutes(block_start, block_end))

        avg_work = _blend(avg_work, float(np.mean(blocks)))
        if gaps:
            avg_rest = _blend(avg_rest, float(np.mean(gaps)))

    return RestPattern(
        avg_work_minutes=avg_work or 0.0,
        avg_rest_minutes=avg_rest or 0.0,
        common_rest_windows=[RestWindow(hour, n) for hour, n in rest_hours.most_common(3)],
    )


def _sleep_pattern(df: pd.DataFrame) -> SleepPattern:
    wake: Optional[float] = None
    sleep: Optional[float] = None

    for day_value, day in df.groupby("day", sort=True):
        first = day["start"].min()
        last = day["end"].max()
        wake = _blend(wake, first.hour * 60 + first.minute)
        if last.date() > day_value:
            # ran past midnight
            last_minutes = MINUTES_PER_DAY - 1
        else:
            last_minutes = last.hour * 60 + last.minute
        sleep = _blend(sleep, last_minutes)

    return SleepPattern(
        avg_wake_time=_minutes_to_time(wake) if wake is not None else None,
        avg_sleep_time=_minutes_to_time(sleep) if sleep is not None else None,
    )


def _fixed_activities(df: pd.DataFrame, prefs: SchedulePrefs):
    clocked = df.assign(clock=df["start"].map(lambda ts: ts.strftime("%H:%M")))
    grouped = clocked.groupby(["type_id", "clock"])["minutes"].agg(["mean", "count"])

    fixed = {}
    for (type_id, clock), row in grouped.iterrows():
        if row["count"] < prefs.fixed_min_occurrences:
            continue
        fixed.setdefault(int(type_id), []).append(FixedActivity(
            time_of_day=time.fromisoformat(clock),
            average_duration_minutes=float(row["mean"]),
            frequency=int(row["count"]),
        ))
    for activities in fixed.values():
        activities.sort(key=lambda a: a.time_of_day)
    return fixed


def build_user_profile(records: Iterable[ActivityRecord],
                       types: Sequence[ActivityType],
                       pattern: Optional[TimePattern] = None,
                       prefs: Optional[SchedulePrefs] = None) -> UserProfile:
    """
    Derive efficiency baselines, rest and sleep rhythm and recurring
    activities from the history.

    An empty history yields a profile of zeros with no fixed activities.
    """
    prefs = prefs or SchedulePrefs()
    records = list(records)
    if pattern is None:
        pattern = analyze_time_patterns(records, types)

    profile = UserProfile(
        average_efficiency=dict(pattern.average_efficiency),
        type_names={t.id: t.name for t in types},
    )

    df = records_to_frame(records, types)
    if df.empty:
        return profile

    df["start"] = pd.to_datetime(df["start"])
    df["end"] = pd.to_datetime(df["end"])

    profile.rest_pattern = _rest_pattern(df, prefs)
    profile.sleep_pattern = _sleep_pattern(df)
    profile.fixed_activities = _fixed_activities(df, prefs)

    logger.debug(
        "profile: work %.0f min, rest %.0f min, %d fixed activities",
        profile.rest_pattern.avg_work_minutes,
        profile.rest_pattern.avg_rest_minutes,
        sum(len(v) for v in profile.fixed_activities.values()),
    )
    return profile
