# rhythm_scheduler/optimizer.py
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from ortools.sat.python import cp_model

from .log import get_logger
from .models import (INTENSITY_SCORE, PRIORITY_RANK, PRIORITY_SCORE, Intensity,
                     ModelWeights, SchedulePrefs, ScheduleItem, SkeletonPlan,
                     Slot, Task, TimePattern, UserProfile)
from .patterns import weekday_index

logger = get_logger("optimizer")

# history below this many samples in a (weekday, hour) bucket is discounted
FULL_CONFIDENCE_SAMPLES = 10
NEUTRAL_CONFIDENCE = 0.5
CP_SAT_SCALE = 1000


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def sort_tasks(tasks: Sequence[Task]) -> List[Task]:
    """Priority first, then earliest deadline (none last), then shortest."""
    return sorted(tasks, key=lambda t: (
        PRIORITY_RANK[t.priority],
        t.deadline is None,
        t.deadline or datetime.max,
        t.estimated_duration_minutes,
    ))


def predict_efficiency(type_id: int, when: datetime,
                       profile: UserProfile, pattern: TimePattern) -> float:
    """
    Expected efficiency (0..1) of doing a type of activity at a given time.

    Blends the (weekday, hour) bucket average, the type's overall average and
    how busy that hour usually is.
    """
    bucket = (weekday_index(when), when.hour)
    bucket_eff = pattern.bucket_efficiency.get(bucket, {}).get(type_id, 0.0)
    type_eff = profile.average_efficiency.get(type_id, 0.0)
    share = pattern.hourly_share.get(when.hour, 0.0)
    return _clamp(0.4 * bucket_eff / 5.0 + 0.4 * type_eff / 5.0 + 0.2 * share)


def time_fit_score(task_minutes: float, slot_minutes: float) -> float:
    if slot_minutes <= 0 or task_minutes > slot_minutes:
        return 0.0
    return _clamp(1.0 - (slot_minutes - task_minutes) / slot_minutes)


def energy_score(intensity: Intensity, hour: int,
                 prefs: Optional[SchedulePrefs] = None) -> float:
    prefs = prefs or SchedulePrefs()
    high_slot = hour in prefs.high_energy_hours
    low_slot = hour in prefs.low_energy_hours

    if (high_slot and intensity == Intensity.HIGH) or (low_slot and intensity == Intensity.LOW):
        return 1.0
    if high_slot and intensity == Intensity.LOW:
        return 0.7
    if low_slot and intensity == Intensity.HIGH:
        return 0.3
    return INTENSITY_SCORE[intensity]


def historical_confidence(type_id: int, when: datetime, pattern: TimePattern) -> float:
    bucket = (weekday_index(when), when.hour)
    count = pattern.bucket_counts.get(bucket, {}).get(type_id, 0)
    if not count:
        return NEUTRAL_CONFIDENCE
    bucket_eff = pattern.bucket_efficiency.get(bucket, {}).get(type_id, 0.0)
    return _clamp(min(1.0, (count / FULL_CONFIDENCE_SAMPLES) * (bucket_eff / 5.0)))


def score_task_for_slot(task: Task, slot: Slot, profile: UserProfile,
                        pattern: TimePattern, weights: ModelWeights,
                        prefs: Optional[SchedulePrefs] = None) -> Optional[float]:
    """
    Weighted score of putting a task in a slot, or None if it does not fit.
    """
    fit = time_fit_score(task.estimated_duration_minutes, slot.duration_minutes)
    if fit <= 0:
        return None
    return (
        weights.efficiency * predict_efficiency(task.type_id, slot.start_time, profile, pattern)
        + weights.priority * PRIORITY_SCORE[task.priority]
        + weights.time_fit * fit
        + weights.energy_level * energy_score(task.intensity, slot.start_time.hour, prefs)
    )


def confidence_for(task: Task, slot: Slot, profile: UserProfile, pattern: TimePattern) -> float:
    predicted = predict_efficiency(task.type_id, slot.start_time, profile, pattern)
    fit = time_fit_score(task.estimated_duration_minutes, slot.duration_minutes)
    history = historical_confidence(task.type_id, slot.start_time, pattern)
    return _clamp(0.4 * predicted + 0.3 * fit + 0.3 * history)


def _make_item(task: Task, slot: Slot, score: float, profile: UserProfile,
               pattern: TimePattern) -> ScheduleItem:
    predicted = predict_efficiency(task.type_id, slot.start_time, profile, pattern)
    name = profile.type_names.get(task.type_id, task.label or f"type {task.type_id}")
    return ScheduleItem(
        type_id=task.type_id,
        type_name=name,
        suggested_start_time=slot.start_time,
        suggested_duration_minutes=int(min(slot.duration_minutes, task.estimated_duration_minutes)),
        confidence=confidence_for(task, slot, profile, pattern),
        reason=f"{task.label or name} scored {score:.2f} for the {slot.start_time:%H:%M} slot",
        task_id=task.id,
        priority=task.priority,
        expected_efficiency=round(predicted * 5.0, 2),
    )


def _score_matrix(tasks: List[Task], slots: List[Slot], profile: UserProfile,
                  pattern: TimePattern, weights: ModelWeights,
                  prefs: Optional[SchedulePrefs]) -> Dict[Tuple[int, int], float]:
    scores = {}
    for t_idx, task in enumerate(tasks):
        for s_idx, slot in enumerate(slots):
            score = score_task_for_slot(task, slot, profile, pattern, weights, prefs)
            if score is not None:
                scores[(t_idx, s_idx)] = score
    return scores


def _assign_greedy(tasks: List[Task], slots: List[Slot],
                   scores: Dict[Tuple[int, int], float]) -> List[Tuple[int, int]]:
    assigned: List[Tuple[int, int]] = []
    used = set()
    for s_idx in range(len(slots)):
        best_idx, best_score = None, None
        for t_idx in range(len(tasks)):
            if t_idx in used or (t_idx, s_idx) not in scores:
                continue
            # strict comparison keeps the earlier task on ties
            if best_score is None or scores[(t_idx, s_idx)] > best_score:
                best_idx, best_score = t_idx, scores[(t_idx, s_idx)]
        if best_idx is not None:
            used.add(best_idx)
            assigned.append((best_idx, s_idx))
    return assigned


def _assign_cp_sat(tasks: List[Task], slots: List[Slot],
                   scores: Dict[Tuple[int, int], float],
                   max_seconds: float = 10.0) -> List[Tuple[int, int]]:
    """Jointly maximize total score: each slot and each task used at most once."""
    if not scores:
        return []

    model = cp_model.CpModel()
    x: Dict[Tuple[int, int], cp_model.IntVar] = {}
    for (t_idx, s_idx) in scores:
        x[(t_idx, s_idx)] = model.NewBoolVar(f"x_t{t_idx}_s{s_idx}")

    for t_idx in range(len(tasks)):
        cand = [x[k] for k in x if k[0] == t_idx]
        if cand:
            model.Add(sum(cand) <= 1)

    for s_idx in range(len(slots)):
        cand = [x[k] for k in x if k[1] == s_idx]
        if cand:
            model.Add(sum(cand) <= 1)

    # CP-SAT wants integer coefficients
    model.Maximize(sum(int(round(scores[k] * CP_SAT_SCALE)) * var for k, var in x.items()))

    solver = cp_model.CpSolver()
    solver.parameters.max_time_in_seconds = max_seconds
    status = solver.Solve(model)
    if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
        logger.warning("CP-SAT found no assignment (status %s)", solver.StatusName(status))
        return []

    return sorted(
        (k for k, var in x.items() if solver.Value(var) == 1),
        key=lambda k: k[1],
    )


def optimize_plan(skeleton: SkeletonPlan,
                  tasks: Sequence[Task],
                  profile: UserProfile,
                  pattern: TimePattern,
                  weights: Optional[ModelWeights] = None,
                  prefs: Optional[SchedulePrefs] = None,
                  method: str = "greedy") -> List[ScheduleItem]:
    """
    Fill the skeleton's flexible slots with tasks, one task per slot.

    method="greedy" walks the slots in time order and gives each one the
    best-scoring task still unassigned. method="cp-sat" maximizes the same
    scores over the whole day with OR-Tools. Slots no task fits stay empty.

    Returns:
        schedule items ordered by start time
    """
    weights = (weights or ModelWeights()).normalized()
    ordered = sort_tasks(tasks)
    slots = sorted(skeleton.flexible_slots, key=lambda s: s.start_time)
    scores = _score_matrix(ordered, slots, profile, pattern, weights, prefs)

    if method == "greedy":
        pairs = _assign_greedy(ordered, slots, scores)
    elif method == "cp-sat":
        pairs = _assign_cp_sat(ordered, slots, scores)
    else:
        raise ValueError(f"unknown optimization method: {method!r}")

    items = [
        _make_item(ordered[t_idx], slots[s_idx], scores[(t_idx, s_idx)], profile, pattern)
        for t_idx, s_idx in pairs
    ]
    unplaced = len(ordered) - len(items)
    if unplaced:
        logger.info("%d of %d tasks did not fit any flexible slot", unplaced, len(ordered))
    return sorted(items, key=lambda i: i.suggested_start_time)
