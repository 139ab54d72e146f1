# rhythm_scheduler/conflicts.py
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .log import get_logger
from .metrics import CONFLICTS_DROPPED
from .models import (PRIORITY_RANK, SLOT_KIND_RANK, Conflict, PlanEdit, PlanEntry,
                     SchedulePrefs, ScheduleItem, Slot)
from .optimizer import time_fit_score

logger = get_logger("conflicts")


def entry_start(entry: PlanEntry) -> datetime:
    if isinstance(entry, ScheduleItem):
        return entry.suggested_start_time
    return entry.start_time


def entry_minutes(entry: PlanEntry) -> int:
    if isinstance(entry, ScheduleItem):
        return entry.suggested_duration_minutes
    return entry.duration_minutes


def entry_end(entry: PlanEntry) -> datetime:
    return entry_start(entry) + timedelta(minutes=entry_minutes(entry))


def _rank(entry: PlanEntry) -> int:
    if isinstance(entry, ScheduleItem):
        # items without a priority (direct schedule) yield to any prioritized task
        return PRIORITY_RANK.get(entry.priority, len(PRIORITY_RANK))
    return SLOT_KIND_RANK[entry.kind]


def _confidence(entry: PlanEntry) -> float:
    return entry.confidence if isinstance(entry, ScheduleItem) else 0.0


def _with_times(entry: PlanEntry, start: Optional[datetime] = None,
                minutes: Optional[int] = None) -> PlanEntry:
    if isinstance(entry, ScheduleItem):
        changes = {}
        if start is not None:
            changes["suggested_start_time"] = start
        if minutes is not None:
            changes["suggested_duration_minutes"] = int(minutes)
        return replace(entry, **changes)
    changes = {}
    if start is not None:
        changes["start_time"] = start
    if minutes is not None:
        changes["duration_minutes"] = int(minutes)
    return replace(entry, **changes)


def overlap_minutes(a: PlanEntry, b: PlanEntry) -> float:
    latest_start = max(entry_start(a), entry_start(b))
    earliest_end = min(entry_end(a), entry_end(b))
    return max(0.0, (earliest_end - latest_start).total_seconds() / 60.0)


def detect_conflicts(plan: Sequence[PlanEntry]) -> List[Conflict]:
    """Every pair of plan entries whose time intervals overlap."""
    conflicts = []
    for i in range(len(plan)):
        for j in range(i + 1, len(plan)):
            minutes = overlap_minutes(plan[i], plan[j])
            if minutes > 0:
                conflicts.append(Conflict(first=plan[i], second=plan[j], overlap_minutes=minutes))
    return conflicts


def free_intervals(day_start: datetime, day_end: datetime,
                   occupied: Iterable[PlanEntry]) -> List[Tuple[datetime, datetime]]:
    free = []
    cursor = day_start
    for entry in sorted(occupied, key=entry_start):
        start, end = entry_start(entry), entry_end(entry)
        if end <= cursor:
            continue
        if start >= day_end:
            break
        if start > cursor:
            free.append((cursor, start))
        cursor = max(cursor, end)
    if cursor < day_end:
        free.append((cursor, day_end))
    return free


def find_alternative(entry: PlanEntry, placed: Sequence[PlanEntry],
                     prefs: SchedulePrefs) -> Optional[datetime]:
    """
    Start of the open interval that fits the entry most snugly, or None.

    Ties go to the interval closest to where the entry originally was.
    """
    original = entry_start(entry)
    day = original.date()
    day_start = datetime.combine(day, prefs.day_start, tzinfo=original.tzinfo)
    day_end = datetime.combine(day, prefs.day_end, tzinfo=original.tzinfo)
    minutes = entry_minutes(entry)

    best: Optional[Tuple[float, float, datetime]] = None
    for start, end in free_intervals(day_start, day_end, placed):
        length = (end - start).total_seconds() / 60.0
        if length < minutes:
            continue
        fit = time_fit_score(minutes, length)
        distance = abs((start - original).total_seconds())
        key = (-fit, distance, start)
        if best is None or key < best:
            best = key
    return best[2] if best else None


def _resolve(plan: Sequence[PlanEntry], prefs: SchedulePrefs,
             pinned: Set[int] = frozenset()) -> Tuple[List[PlanEntry], List[PlanEntry]]:
    order = sorted(range(len(plan)), key=lambda i: (
        _rank(plan[i]),
        i not in pinned,
        -_confidence(plan[i]),
        entry_start(plan[i]),
        i,
    ))

    placed: List[PlanEntry] = []
    dropped: List[PlanEntry] = []
    for i in order:
        entry = plan[i]
        if not any(overlap_minutes(entry, other) > 0 for other in placed):
            placed.append(entry)
            continue

        start = find_alternative(entry, placed, prefs)
        if start is None:
            logger.info("dropping %s at %s: no free interval of %d minutes",
                        _label(entry), entry_start(entry), entry_minutes(entry))
            CONFLICTS_DROPPED.inc()
            dropped.append(entry)
        else:
            logger.debug("moving %s from %s to %s", _label(entry), entry_start(entry), start)
            placed.append(_with_times(entry, start=start))

    return sorted(placed, key=entry_start), dropped


def _label(entry: PlanEntry) -> str:
    if isinstance(entry, ScheduleItem):
        return entry.type_name
    return entry.label or entry.kind.value


def resolve_conflicts(plan: Sequence[PlanEntry],
                      prefs: Optional[SchedulePrefs] = None) -> List[PlanEntry]:
    """
    Remove overlaps from a plan.

    Higher-priority entries keep their time; a displaced entry moves into the
    best-fitting open interval of the working day or is dropped.
    """
    kept, _ = _resolve(list(plan), prefs or SchedulePrefs())
    return kept


def resolve_with_drops(plan: Sequence[PlanEntry],
                       prefs: Optional[SchedulePrefs] = None
                       ) -> Tuple[List[PlanEntry], List[PlanEntry]]:
    """Like resolve_conflicts, but also return what had to be dropped."""
    return _resolve(list(plan), prefs or SchedulePrefs())


def adjust_plan(plan: Sequence[PlanEntry], edits: Iterable[PlanEdit],
                prefs: Optional[SchedulePrefs] = None) -> List[PlanEntry]:
    """
    Apply user edits (move, resize, remove) and re-resolve conflicts.

    Edited entries win against unedited ones of the same priority. Edits
    pointing outside the plan are ignored.
    """
    entries = list(plan)
    removed: Set[int] = set()
    edited: Set[int] = set()

    for edit in edits:
        if not 0 <= edit.index < len(entries):
            logger.warning("ignoring edit for missing plan index %d", edit.index)
            continue
        if edit.remove:
            removed.add(edit.index)
            continue
        duration = edit.duration_minutes
        if duration is not None and duration <= 0:
            logger.warning("ignoring non-positive duration %s for index %d", duration, edit.index)
            duration = None
        entries[edit.index] = _with_times(entries[edit.index], edit.start_time, duration)
        edited.add(edit.index)

    remaining = []
    pinned = set()
    for idx, entry in enumerate(entries):
        if idx in removed:
            continue
        if idx in edited:
            pinned.add(len(remaining))
        remaining.append(entry)

    kept, _ = _resolve(remaining, prefs or SchedulePrefs(), pinned)
    return kept
