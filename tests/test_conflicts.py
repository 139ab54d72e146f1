from datetime import datetime

from rhythm_scheduler.conflicts import (adjust_plan, detect_conflicts,
                                        free_intervals, resolve_conflicts,
                                        resolve_with_drops)
from rhythm_scheduler.models import (PlanEdit, Priority, ScheduleItem, Slot,
                                     SlotKind)


def _item(type_id, hour, minute, minutes, priority=None, name=None, confidence=0.5):
    return ScheduleItem(
        type_id=type_id,
        type_name=name or f"type {type_id}",
        suggested_start_time=datetime(2024, 6, 10, hour, minute),
        suggested_duration_minutes=minutes,
        confidence=confidence,
        priority=priority,
    )


def _overlap_count(plan):
    return len(detect_conflicts(plan))


def test_overlapping_pair_is_reported_once():
    plan = [_item(1, 10, 0, 60, Priority.HIGH), _item(2, 10, 30, 60, Priority.LOW)]

    conflicts = detect_conflicts(plan)

    assert len(conflicts) == 1
    assert conflicts[0].kind == "overlap"
    assert conflicts[0].overlap_minutes == 30


def test_touching_items_do_not_conflict():
    plan = [_item(1, 10, 0, 60), _item(2, 11, 0, 60)]

    assert detect_conflicts(plan) == []


def test_adjust_plan_keeps_higher_priority_and_relocates_other():
    high = _item(1, 10, 0, 60, Priority.HIGH)
    low = _item(2, 10, 30, 60, Priority.LOW)

    resolved = adjust_plan([high, low], [])

    assert _overlap_count(resolved) == 0
    assert high in resolved
    moved = next(i for i in resolved if i.type_id == 2)
    # 09:00-10:00 is the snuggest open interval for a one hour item
    assert moved.suggested_start_time == datetime(2024, 6, 10, 9, 0)
    assert moved.suggested_duration_minutes == 60


def test_displaced_item_dropped_when_day_is_full():
    blocker = _item(1, 9, 0, 9 * 60, Priority.HIGH)
    loser = _item(2, 12, 0, 30, Priority.MEDIUM)

    kept, dropped = resolve_with_drops([loser, blocker])

    assert kept == [blocker]
    assert dropped == [loser]


def test_items_without_priority_yield_to_tasks():
    direct = _item(1, 14, 0, 60, confidence=0.9)
    task = _item(2, 14, 0, 60, Priority.LOW)

    resolved = resolve_conflicts([direct, task])

    assert task in resolved
    assert _overlap_count(resolved) == 0


def test_slots_resolve_by_kind():
    fixed = Slot(SlotKind.FIXED, datetime(2024, 6, 10, 10, 0), 60, "Standup")
    flexible = Slot(SlotKind.FLEXIBLE, datetime(2024, 6, 10, 10, 0), 30, "Open")

    resolved = resolve_conflicts([flexible, fixed])

    assert fixed in resolved
    assert _overlap_count(resolved) == 0


def test_edit_moves_item_and_wins_its_new_place():
    first = _item(1, 9, 0, 60, Priority.MEDIUM)
    second = _item(2, 13, 0, 60, Priority.MEDIUM)

    resolved = adjust_plan([first, second], [PlanEdit(index=1, start_time=datetime(2024, 6, 10, 9, 30))])

    assert _overlap_count(resolved) == 0
    edited = next(i for i in resolved if i.type_id == 2)
    assert edited.suggested_start_time == datetime(2024, 6, 10, 9, 30)
    bumped = next(i for i in resolved if i.type_id == 1)
    assert bumped.suggested_start_time != datetime(2024, 6, 10, 9, 0)


def test_edit_remove_and_resize():
    plan = [_item(1, 9, 0, 60), _item(2, 11, 0, 60)]

    resolved = adjust_plan(plan, [
        PlanEdit(index=0, remove=True),
        PlanEdit(index=1, duration_minutes=90),
    ])

    assert len(resolved) == 1
    assert resolved[0].type_id == 2
    assert resolved[0].suggested_duration_minutes == 90


def test_invalid_edit_index_is_ignored():
    plan = [_item(1, 9, 0, 60)]

    assert adjust_plan(plan, [PlanEdit(index=5, remove=True)]) == plan


def test_free_intervals():
    start, end = datetime(2024, 6, 10, 9, 0), datetime(2024, 6, 10, 18, 0)
    busy = [_item(1, 10, 0, 60), _item(2, 10, 30, 60), _item(3, 17, 0, 120)]

    assert free_intervals(start, end, busy) == [
        (start, datetime(2024, 6, 10, 10, 0)),
        (datetime(2024, 6, 10, 11, 30), datetime(2024, 6, 10, 17, 0)),
    ]
