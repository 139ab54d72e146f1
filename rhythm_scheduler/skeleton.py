# rhythm_scheduler/skeleton.py
import math
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from .log import get_logger
from .models import SchedulePrefs, SkeletonPlan, Slot, SlotKind, UserProfile

logger = get_logger("skeleton")


def _at(day: date, clock: time) -> datetime:
    return datetime.combine(day, clock)


def _overlaps(a: Slot, b: Slot) -> bool:
    return a.start_time < b.end_time and b.start_time < a.end_time


def _place(candidate: Slot, placed: List[Slot]) -> bool:
    """Accept candidate unless it collides with something already placed."""
    if candidate.duration_minutes <= 0:
        return False
    if any(_overlaps(candidate, other) for other in placed):
        logger.debug("skipping %s slot %r at %s: overlaps",
                     candidate.kind.value, candidate.label, candidate.start_time)
        return False
    placed.append(candidate)
    return True


def build_fixed_slots(day: date, profile: UserProfile, placed: List[Slot]) -> List[Slot]:
    candidates = []
    for type_id, activities in profile.fixed_activities.items():
        name = profile.type_names.get(type_id, f"type {type_id}")
        for act in activities:
            candidates.append((act.frequency, Slot(
                kind=SlotKind.FIXED,
                start_time=_at(day, act.time_of_day),
                duration_minutes=int(round(act.average_duration_minutes)),
                label=name,
                source_type_id=type_id,
            )))
    # the more habitual activity wins when two recurring ones collide
    candidates.sort(key=lambda c: (-c[0], c[1].start_time))
    return [slot for _, slot in candidates if _place(slot, placed)]


def build_health_slots(day: date, profile: UserProfile, prefs: SchedulePrefs,
                       placed: List[Slot]) -> List[Slot]:
    health = []
    for clock, minutes, label in prefs.meal_windows:
        slot = Slot(SlotKind.HEALTH, _at(day, clock), minutes, label)
        if _place(slot, placed):
            health.append(slot)

    # learned averages are fractional; keep every slot on the minute grid
    work = int(round(profile.rest_pattern.avg_work_minutes or prefs.default_work_minutes))
    rest = int(round(profile.rest_pattern.avg_rest_minutes or prefs.default_rest_minutes))
    rest_len = min(rest, prefs.max_rest_slot_minutes)
    step = timedelta(minutes=work + rest)
    if rest_len <= 0 or step <= timedelta(0):
        return sorted(health, key=lambda s: s.start_time)

    day_end = _at(day, prefs.day_end)
    cursor = _at(day, prefs.day_start) + timedelta(minutes=work)
    while cursor + timedelta(minutes=rest_len) <= day_end:
        slot = Slot(SlotKind.HEALTH, cursor, rest_len, "Rest")
        if _place(slot, placed):
            health.append(slot)
        cursor += step

    return sorted(health, key=lambda s: s.start_time)


def build_buffer_slots(committed: List[Slot], prefs: SchedulePrefs) -> List[Slot]:
    """
    A short buffer right after each committed slot, when the next one starts
    more than a buffer length later.
    """
    ordered = sorted(committed, key=lambda s: s.start_time)
    buffers = []
    for prev, nxt in zip(ordered, ordered[1:]):
        gap = (nxt.start_time - prev.start_time).total_seconds() / 60.0
        if gap <= prefs.buffer_minutes:
            continue
        length = math.ceil(min(prefs.buffer_minutes, gap - prev.duration_minutes))
        if length > 0:
            buffers.append(Slot(SlotKind.BUFFER, prev.end_time, length,
                                f"Buffer after {prev.label}"))
    return buffers


def build_flexible_slots(day: date, occupied: List[Slot], prefs: SchedulePrefs) -> List[Slot]:
    """Every stretch of the working window not covered by an occupied slot."""
    day_start, day_end = _at(day, prefs.day_start), _at(day, prefs.day_end)
    flexible = []
    cursor = day_start
    for slot in sorted(occupied, key=lambda s: s.start_time):
        if slot.start_time >= day_end:
            break
        if slot.end_time <= cursor:
            continue
        if slot.start_time > cursor:
            flexible.append(_flexible(cursor, slot.start_time))
        cursor = max(cursor, slot.end_time)
    if cursor < day_end:
        flexible.append(_flexible(cursor, day_end))
    return flexible


def _flexible(start: datetime, end: datetime) -> Slot:
    minutes = math.ceil((end - start).total_seconds() / 60)
    return Slot(SlotKind.FLEXIBLE, start, minutes, "Open")


def generate_skeleton_plan(day: date, profile: UserProfile,
                           prefs: Optional[SchedulePrefs] = None) -> SkeletonPlan:
    """
    Lay out the non-negotiable parts of a day.

    Fixed activities go in first, then meals and rest breaks, then short
    buffers behind them; whatever is left of the working window becomes
    flexible slots. Together the four lists tile the working window.
    """
    prefs = prefs or SchedulePrefs()
    if isinstance(day, datetime):
        day = day.date()

    placed: List[Slot] = []
    fixed = build_fixed_slots(day, profile, placed)
    health = build_health_slots(day, profile, prefs, placed)
    buffers = build_buffer_slots(fixed + health, prefs)
    flexible = build_flexible_slots(day, fixed + health + buffers, prefs)

    logger.debug("skeleton for %s: %d fixed, %d health, %d buffer, %d flexible",
                 day, len(fixed), len(health), len(buffers), len(flexible))
    return SkeletonPlan(
        date=day,
        fixed_slots=sorted(fixed, key=lambda s: s.start_time),
        health_slots=health,
        buffer_slots=buffers,
        flexible_slots=flexible,
    )
