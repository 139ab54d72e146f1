# rhythm_scheduler/scheduler.py
import math
from datetime import date, datetime, time
from typing import Dict, Iterable, List, Optional, Sequence, Union

import pandas as pd

from .conflicts import resolve_with_drops
from .log import get_logger
from .metrics import SCHEDULE_TIME
from .models import (ActivityRecord, ActivityType, DayPlan, EfficiencyTip,
                     ModelWeights, SchedulePrefs, ScheduleDifference,
                     ScheduleItem, ScheduleSummary, Task, TimePattern)
from .optimizer import optimize_plan
from .patterns import analyze_time_patterns, best_hour, weekday_index
from .profile import build_user_profile
from .skeleton import generate_skeleton_plan

logger = get_logger("scheduler")

# a weekday total this much above the daily average replaces it
WEEKDAY_OVERRIDE_FACTOR = 1.2
LOW_EFFICIENCY = 3.0

# changes smaller than these are not reported by compare_schedules
MOVE_THRESHOLD_MINUTES = 30
DURATION_THRESHOLD_MINUTES = 30
CONFIDENCE_THRESHOLD = 0.2

PARTS_OF_DAY = ("morning", "afternoon", "evening", "night")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _split_target(target: Union[date, datetime, None]):
    if target is None:
        target = datetime.now()
    if isinstance(target, datetime):
        return target.date(), target.tzinfo
    return target, None


def generate_schedule(pattern: TimePattern,
                      types: Sequence[ActivityType],
                      target_date: Union[date, datetime, None] = None) -> List[ScheduleItem]:
    """
    Suggest one block per activity type at its historically best hour.

    Used when there is no task backlog. The block length is the type's daily
    average, or its total for this weekday when that is clearly higher.
    """
    day, tz = _split_target(target_date)
    weekday = weekday_index(day)
    day_minutes = pattern.weekly_minutes.get(weekday, {})

    schedule = []
    for t in types:
        daily = pattern.daily_average_minutes.get(t.id, 0.0)
        on_weekday = day_minutes.get(t.id, 0.0)
        minutes = on_weekday if on_weekday > daily * WEEKDAY_OVERRIDE_FACTOR else daily
        minutes = _round_half_up(minutes)
        if minutes <= 0:
            continue

        hour = best_hour(pattern, t.id)
        efficiency = pattern.average_efficiency.get(t.id, 0.0)
        schedule.append(ScheduleItem(
            type_id=t.id,
            type_name=t.name,
            suggested_start_time=datetime.combine(day, time(hour), tzinfo=tz),
            suggested_duration_minutes=minutes,
            confidence=max(0.0, min(1.0, efficiency / 5.0)),
            reason=f"{t.name} has been most efficient around {hour:02d}:00",
            expected_efficiency=round(efficiency, 2),
        ))

    schedule.sort(key=lambda item: item.suggested_start_time)
    return schedule


def generate_efficiency_tips(pattern: TimePattern,
                             types: Sequence[ActivityType]) -> List[EfficiencyTip]:
    """Point low-efficiency activity types at the hour they go best."""
    tips = []
    for t in types:
        if not pattern.record_counts.get(t.id):
            continue
        efficiency = pattern.average_efficiency.get(t.id, 0.0)
        if efficiency >= LOW_EFFICIENCY:
            continue
        hour = best_hour(pattern, t.id)
        best = pattern.hourly_efficiency.get(hour, {}).get(t.id, 0.0)
        tips.append(EfficiencyTip(
            type_id=t.id,
            type_name=t.name,
            current_efficiency=efficiency,
            best_hour=hour,
            suggestion=f"Try doing {t.name} at {hour}:00, your most efficient time for it.",
            improvement=_round_half_up((best - efficiency) * 20),
        ))
    return tips


def plan_day(records: Iterable[ActivityRecord],
             types: Sequence[ActivityType],
             tasks: Optional[Sequence[Task]] = None,
             target_date: Union[date, datetime, None] = None,
             weights: Optional[ModelWeights] = None,
             prefs: Optional[SchedulePrefs] = None,
             method: str = "greedy") -> DayPlan:
    """
    Produce a conflict-free plan for one day.

    With a task backlog the day is laid out as a skeleton and its flexible
    slots are filled by the optimizer; without one the direct best-hour
    schedule is used.
    """
    prefs = prefs or SchedulePrefs()
    records = list(records)
    day, _ = _split_target(target_date)

    with SCHEDULE_TIME.time():
        pattern = analyze_time_patterns(records, types)
        skeleton = None
        if tasks:
            profile = build_user_profile(records, types, pattern, prefs)
            skeleton = generate_skeleton_plan(day, profile, prefs)
            items = optimize_plan(skeleton, tasks, profile, pattern, weights, prefs, method)
        else:
            items = generate_schedule(pattern, types, target_date or day)
        kept, dropped = resolve_with_drops(items, prefs)

    logger.info("planned %s: %d items (%d dropped, %s path)", day, len(kept),
                len(dropped), "task" if tasks else "direct")
    return DayPlan(date=day, items=kept, skeleton=skeleton, dropped=dropped)


def _by_type(schedule: Sequence[ScheduleItem]) -> Dict[int, ScheduleItem]:
    return {item.type_id: item for item in schedule}


def _span(item: ScheduleItem) -> str:
    return f"{item.suggested_start_time:%H:%M}-{item.end_time:%H:%M}"


def compare_schedules(current: Sequence[ScheduleItem],
                      other: Sequence[ScheduleItem]) -> List[ScheduleDifference]:
    """
    Describe how ``other`` (e.g. another day's plan) differs from ``current``.
    """
    ours, theirs = _by_type(current), _by_type(other)
    diffs = []

    for type_id, item in theirs.items():
        if type_id not in ours:
            diffs.append(ScheduleDifference(
                "new", type_id, f"{item.type_name} added",
                f"suggested {_span(item)}, {item.suggested_duration_minutes} min",
                item.confidence))

    for type_id, item in ours.items():
        if type_id not in theirs:
            diffs.append(ScheduleDifference(
                "removed", type_id, f"{item.type_name} removed",
                f"was {_span(item)}, {item.suggested_duration_minutes} min",
                item.confidence))

    for type_id, item in ours.items():
        if type_id not in theirs:
            continue
        prev = theirs[type_id]
        ours_clock = item.suggested_start_time.hour * 60 + item.suggested_start_time.minute
        prev_clock = prev.suggested_start_time.hour * 60 + prev.suggested_start_time.minute
        moved = abs(ours_clock - prev_clock)
        if moved > MOVE_THRESHOLD_MINUTES:
            diffs.append(ScheduleDifference(
                "time", type_id, f"{item.type_name} moved",
                f"from {prev.suggested_start_time:%H:%M} to "
                f"{item.suggested_start_time:%H:%M} ({moved} min)",
                item.confidence))

        resized = abs(item.suggested_duration_minutes - prev.suggested_duration_minutes)
        if resized > DURATION_THRESHOLD_MINUTES:
            diffs.append(ScheduleDifference(
                "duration", type_id, f"{item.type_name} duration changed",
                f"from {prev.suggested_duration_minutes} to "
                f"{item.suggested_duration_minutes} min",
                item.confidence))

        if abs(item.confidence - prev.confidence) > CONFIDENCE_THRESHOLD:
            diffs.append(ScheduleDifference(
                "confidence", type_id, f"{item.type_name} confidence changed",
                f"from {prev.confidence:.0%} to {item.confidence:.0%}",
                item.confidence))

    return diffs


def _part_of_day(hour: int) -> str:
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 18:
        return "afternoon"
    if 18 <= hour < 22:
        return "evening"
    return "night"


def summarize_schedule(schedule: Sequence[ScheduleItem]) -> ScheduleSummary:
    """Item counts per part of the day and planned minutes per activity type."""
    if not schedule:
        return ScheduleSummary({part: 0 for part in PARTS_OF_DAY}, {}, 0.0)

    df = pd.DataFrame([{
        "part": _part_of_day(item.suggested_start_time.hour),
        "type_name": item.type_name,
        "minutes": item.suggested_duration_minutes,
        "confidence": item.confidence,
    } for item in schedule])

    parts = df["part"].value_counts().to_dict()
    minutes = df.groupby("type_name")["minutes"].sum().to_dict()
    return ScheduleSummary(
        time_distribution={part: int(parts.get(part, 0)) for part in PARTS_OF_DAY},
        type_minutes={name: int(total) for name, total in minutes.items()},
        average_confidence=float(df["confidence"].mean()),
    )
