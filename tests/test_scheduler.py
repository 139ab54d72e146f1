from datetime import date, datetime, timedelta

import pytest

from conftest import make_record
from rhythm_scheduler.conflicts import detect_conflicts
from rhythm_scheduler.models import (ActivityType, Intensity, Priority,
                                     ScheduleItem, SlotKind, Task)
from rhythm_scheduler.patterns import analyze_time_patterns
from rhythm_scheduler.scheduler import (compare_schedules,
                                        generate_efficiency_tips,
                                        generate_schedule, plan_day,
                                        summarize_schedule)


def test_empty_history_gives_empty_schedule(work_type):
    pattern = analyze_time_patterns([], [work_type])

    assert generate_schedule(pattern, [work_type], date(2024, 6, 10)) == []
    assert generate_efficiency_tips(pattern, [work_type]) == []


def test_direct_schedule_uses_best_hour_and_daily_average(work_type, week_of_work):
    pattern = analyze_time_patterns(week_of_work, [work_type])

    items = generate_schedule(pattern, [work_type], date(2024, 6, 10))

    assert len(items) == 1
    assert items[0].suggested_start_time == datetime(2024, 6, 10, 9, 0)
    assert items[0].suggested_duration_minutes == 120
    assert items[0].confidence == 1.0


def test_weekday_total_overrides_daily_average(work_type):
    # three long Mondays, nothing else
    mondays = [datetime(2024, 6, 3, 14), datetime(2024, 6, 10, 14), datetime(2024, 6, 17, 14)]
    records = [make_record(i, 1, d, 140, 3) for i, d in enumerate(mondays)]
    pattern = analyze_time_patterns(records, [work_type])

    monday = generate_schedule(pattern, [work_type], date(2024, 6, 24))
    tuesday = generate_schedule(pattern, [work_type], date(2024, 6, 25))

    assert monday[0].suggested_duration_minutes == 420
    assert tuesday[0].suggested_duration_minutes == 60


def test_each_item_gets_its_own_start_time():
    types = [ActivityType(1, "Work"), ActivityType(2, "Gym")]
    day = datetime(2024, 6, 3)
    records = [
        make_record(1, 1, day.replace(hour=9), 60, 5),
        make_record(2, 2, day.replace(hour=18), 60, 4),
    ]
    pattern = analyze_time_patterns(records, types)

    items = generate_schedule(pattern, types, datetime(2024, 6, 10, 7, 45))

    assert [i.suggested_start_time.hour for i in items] == [9, 18]
    assert items[0].suggested_start_time is not items[1].suggested_start_time
    assert all(0 <= i.confidence <= 1 for i in items)


def test_efficiency_tip_for_weak_type():
    types = [ActivityType(1, "Study")]
    day = datetime(2024, 6, 3)
    records = [
        make_record(1, 1, day.replace(hour=8), 60, 1),
        make_record(2, 1, day.replace(hour=8) + timedelta(days=1), 60, 1),
        make_record(3, 1, day.replace(hour=16), 60, 4),
    ]
    pattern = analyze_time_patterns(records, types)

    tips = generate_efficiency_tips(pattern, types)

    assert len(tips) == 1
    assert tips[0].best_hour == 16
    assert "16:00" in tips[0].suggestion
    assert tips[0].improvement == 40  # (4 - 2) * 20


def test_plan_day_with_backlog_uses_skeleton(work_type, week_of_work):
    tasks = [
        Task(id="a", type_id=1, priority=Priority.HIGH, estimated_duration_minutes=45,
             intensity=Intensity.HIGH),
        Task(id="b", type_id=1, priority=Priority.LOW, estimated_duration_minutes=30),
    ]

    plan = plan_day(week_of_work, [work_type], tasks=tasks, target_date=date(2024, 6, 10))

    assert plan.skeleton is not None
    assert {i.task_id for i in plan.items} == {"a", "b"}
    assert detect_conflicts(plan.items) == []
    committed = [s for s in plan.skeleton.all_slots() if s.kind != SlotKind.FLEXIBLE]
    for item in plan.items:
        for slot in committed:
            assert item.end_time <= slot.start_time or slot.end_time <= item.suggested_start_time


def test_plan_day_without_backlog_uses_direct_schedule(work_type, week_of_work):
    plan = plan_day(week_of_work, [work_type], target_date=date(2024, 6, 10))

    assert plan.skeleton is None
    assert [i.type_id for i in plan.items] == [1]
    assert plan.dropped == []


def test_plan_day_resolves_direct_collisions():
    types = [ActivityType(1, "Work"), ActivityType(2, "Study")]
    start = datetime(2024, 6, 3, 10, 0)
    records = [make_record(i, 1 + i % 2, start + timedelta(days=i // 2), 120, 4) for i in range(8)]

    plan = plan_day(records, types, target_date=date(2024, 6, 10))

    assert detect_conflicts(plan.items) == []
    assert len(plan.items) + len(plan.dropped) == 2


def _sched(type_id, hour, minutes, confidence, name="Work"):
    return ScheduleItem(type_id, name, datetime(2024, 6, 10, hour), minutes, confidence)


def test_compare_schedules():
    today = [_sched(1, 9, 60, 0.9), _sched(2, 14, 30, 0.5, "Gym")]
    other = [_sched(1, 11, 120, 0.5), _sched(3, 20, 45, 0.4, "Read")]

    kinds = {(d.kind, d.type_id) for d in compare_schedules(today, other)}

    assert kinds == {
        ("new", 3),
        ("removed", 2),
        ("time", 1),
        ("duration", 1),
        ("confidence", 1),
    }


def test_summarize_schedule():
    items = [_sched(1, 9, 60, 0.8), _sched(1, 15, 30, 0.6), _sched(2, 20, 45, 0.4, "Gym")]

    summary = summarize_schedule(items)

    assert summary.time_distribution == {"morning": 1, "afternoon": 1, "evening": 1, "night": 0}
    assert summary.type_minutes == {"Work": 90, "Gym": 45}
    assert summary.average_confidence == pytest.approx(0.6)
    assert summarize_schedule([]).time_distribution["night"] == 0
