# rhythm_scheduler/patterns.py
from datetime import date, datetime
from typing import Iterable, List, Sequence, Union

import pandas as pd

from .log import get_logger
from .models import ActivityRecord, ActivityType, TimePattern

logger = get_logger("patterns")

# daily averages are always taken over a one-week window, however long the
# history actually is
NORMALIZATION_DAYS = 7

FRAME_COLUMNS = ["record_id", "type_id", "start", "end", "minutes",
                 "efficiency", "weekday", "hour", "day"]


def weekday_index(moment: Union[date, datetime]) -> int:
    """Calendar weekday with 0=Sunday ... 6=Saturday."""
    return (moment.weekday() + 1) % 7


def records_to_frame(records: Iterable[ActivityRecord],
                     types: Sequence[ActivityType]) -> pd.DataFrame:
    """
    Flatten records into a dataframe, one row per record of a known type.

    Records pointing at a deleted type are dropped here so every downstream
    aggregation can assume a resolvable type id.
    """
    known = {t.id for t in types}
    rows = []
    skipped = 0
    for r in records:
        if r.type_id not in known:
            skipped += 1
            continue
        rows.append({
            "record_id": r.id,
            "type_id": r.type_id,
            "start": r.start_time,
            "end": r.end_time,
            "minutes": r.duration_minutes,
            "efficiency": float(r.efficiency_score or 0),
            "weekday": weekday_index(r.start_time),
            "hour": r.start_time.hour,
            "day": r.start_time.date(),
        })
    if skipped:
        logger.debug("skipped %d records with unknown type ids", skipped)
    if not rows:
        return pd.DataFrame(columns=FRAME_COLUMNS)
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


def _empty_pattern(type_ids: List[int]) -> TimePattern:
    return TimePattern(
        daily_average_minutes={tid: 0.0 for tid in type_ids},
        weekly_minutes={wd: {tid: 0.0 for tid in type_ids} for wd in range(7)},
        average_efficiency={tid: 0.0 for tid in type_ids},
        hourly_efficiency={h: {tid: 0.0 for tid in type_ids} for h in range(24)},
        record_counts={tid: 0 for tid in type_ids},
        hourly_share={h: 0.0 for h in range(24)},
    )


def analyze_time_patterns(records: Iterable[ActivityRecord],
                          types: Sequence[ActivityType]) -> TimePattern:
    """
    Per-type, per-weekday and per-hour statistics of the activity history.

    Types without records score 0 everywhere rather than NaN.
    """
    type_ids = [t.id for t in types]
    pattern = _empty_pattern(type_ids)

    df = records_to_frame(records, types)
    if df.empty:
        return pattern

    totals = df.groupby("type_id")["minutes"].sum().to_dict()
    means = df.groupby("type_id")["efficiency"].mean().to_dict()
    counts = df.groupby("type_id").size().to_dict()
    for tid in type_ids:
        pattern.daily_average_minutes[tid] = float(totals.get(tid, 0.0)) / NORMALIZATION_DAYS
        pattern.average_efficiency[tid] = float(means.get(tid, 0.0))
        pattern.record_counts[tid] = int(counts.get(tid, 0))

    weekly = df.groupby(["weekday", "type_id"])["minutes"].sum().to_dict()
    for (weekday, tid), minutes in weekly.items():
        pattern.weekly_minutes[int(weekday)][int(tid)] = float(minutes)

    hourly = df.groupby(["hour", "type_id"])["efficiency"].mean().to_dict()
    for (hour, tid), score in hourly.items():
        pattern.hourly_efficiency[int(hour)][int(tid)] = float(score)

    buckets = df.groupby(["weekday", "hour", "type_id"])["efficiency"].agg(["mean", "count"])
    for (weekday, hour, tid), row in buckets.iterrows():
        key = (int(weekday), int(hour))
        pattern.bucket_efficiency.setdefault(key, {})[int(tid)] = float(row["mean"])
        pattern.bucket_counts.setdefault(key, {})[int(tid)] = int(row["count"])

    share = df["hour"].value_counts(normalize=True).to_dict()
    for hour, value in share.items():
        pattern.hourly_share[int(hour)] = float(value)

    logger.debug("analyzed %d records across %d types", len(df), len(type_ids))
    return pattern


def best_hour(pattern: TimePattern, type_id: int) -> int:
    """Hour with the highest mean efficiency for a type; 0 when nothing scores."""
    best, best_score = 0, 0.0
    for hour in range(24):
        score = pattern.hourly_efficiency.get(hour, {}).get(type_id, 0.0)
        if score > best_score:
            best, best_score = hour, score
    return best
