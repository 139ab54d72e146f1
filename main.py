# main.py
import json
from datetime import datetime, timedelta
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from rhythm_scheduler import (ActivityRecord, ActivityType, EfficiencyModel,
                              Feedback, Intensity, ModelWeights, Priority,
                              StateError, Task, UserPreference,
                              analyze_habits, analyze_time_patterns,
                              generate_efficiency_tips,
                              generate_habit_recommendations, plan_day,
                              summarize_schedule, update_model)
from rhythm_scheduler.log import setup_logging
from rhythm_scheduler.metrics import start_metrics_server

STATE_PATH = Path("model_state.json")
METRICS_PORT = 8000


def build_history(days: int = 21, seed: int = 7):
    """A few weeks of synthetic history: morning work, lunch walks, evening reading."""
    rng = np.random.default_rng(seed)
    types = [
        ActivityType(1, "Deep Work", "#d62728"),
        ActivityType(2, "Walk", "#2ca02c"),
        ActivityType(3, "Reading", "#1f77b4"),
    ]

    start_day = pd.Timestamp("2025-11-03")
    records = []
    rid = 0
    for offset in range(days):
        day = (start_day + pd.Timedelta(days=offset)).to_pydatetime()
        plan = [
            (1, 9, 0, 120, 4.5),
            (2, 12, 30, 30, 4.0),
            (1, 14, 0, 90, 3.0),
            (3, 20, 0, 45, 2.5),
        ]
        for type_id, hour, minute, minutes, mean_eff in plan:
            if type_id == 3 and rng.random() < 0.4:
                continue  # reading is patchy
            start = day.replace(hour=hour, minute=minute)
            eff = float(np.clip(round(rng.normal(mean_eff, 0.6)), 1, 5))
            rid += 1
            records.append(ActivityRecord(
                id=rid,
                type_id=type_id,
                start_time=start,
                end_time=start + timedelta(minutes=minutes),
                efficiency_score=eff,
            ))
    return records, types


def load_state():
    if not STATE_PATH.exists():
        return ModelWeights(), UserPreference(), EfficiencyModel()
    data = json.loads(STATE_PATH.read_text(encoding="utf-8"))
    try:
        return (
            ModelWeights.from_dict(data["weights"]),
            UserPreference.from_dict(data["preferences"]),
            EfficiencyModel.from_dict(data["efficiency_model"]),
        )
    except KeyError as exc:
        raise StateError(f"missing section {exc}", corrupted_data=str(data)) from exc


def save_state(weights, preferences, efficiency_model):
    STATE_PATH.write_text(json.dumps({
        "weights": weights.to_dict(),
        "preferences": preferences.to_dict(),
        "efficiency_model": efficiency_model.to_dict(),
    }, indent=2), encoding="utf-8")


def main():
    setup_logging()
    start_metrics_server(METRICS_PORT)
    records, types = build_history()
    weights, preferences, efficiency_model = load_state()

    target = datetime(2025, 11, 24)
    tasks = [
        Task(id="report", type_id=1, priority=Priority.HIGH,
             estimated_duration_minutes=90, intensity=Intensity.HIGH,
             deadline=datetime(2025, 11, 25, 17, 0), label="Quarterly report"),
        Task(id="inbox", type_id=1, priority=Priority.LOW,
             estimated_duration_minutes=30, intensity=Intensity.LOW, label="Inbox zero"),
        Task(id="walk", type_id=2, priority=Priority.MEDIUM,
             estimated_duration_minutes=30, intensity=Intensity.LOW, label="Walk"),
    ]

    plan = plan_day(records, types, tasks=tasks, target_date=target, weights=weights)
    print("=== Skeleton ===")
    for slot in plan.skeleton.all_slots():
        print(f"{slot.start_time:%H:%M} {slot.duration_minutes:>4} min  "
              f"{slot.kind.value:<8} {slot.label}")

    print("\n=== Schedule ===")
    for item in plan.items:
        print(f"{item.suggested_start_time:%H:%M} {item.suggested_duration_minutes:>4} min  "
              f"{item.type_name:<10} confidence {item.confidence:.2f}")

    print("\n=== Direct schedule (no backlog) ===")
    direct = plan_day(records, types, target_date=target)
    for item in direct.items:
        print(f"{item.suggested_start_time:%H:%M} {item.suggested_duration_minutes:>4} min  "
              f"{item.type_name}")
    print(summarize_schedule(direct.items))

    pattern = analyze_time_patterns(records, types)
    print("\n=== Tips ===")
    for tip in generate_efficiency_tips(pattern, types):
        print(f"{tip.suggestion} (+{tip.improvement}%)")

    print("\n=== Habits ===")
    report = analyze_habits(records, types, as_of=target.date())
    for rec in generate_habit_recommendations(report, types):
        print(f"[{rec.kind}] {rec.suggestion}")

    if plan.items:
        update = update_model(Feedback(plan.items[0], score=2, comment="too early"),
                              weights, preferences, efficiency_model)
        save_state(update.weights, update.preferences, update.efficiency_model)
        print("\nweights after feedback:", update.weights.to_dict())

    # Hourly efficiency per type
    hours = list(range(24))
    plt.figure(figsize=(10, 3))
    for t in types:
        plt.plot(hours, [pattern.hourly_efficiency[h][t.id] for h in hours], label=t.name)
    plt.title("Average Efficiency by Start Hour")
    plt.xlabel("Hour")
    plt.ylabel("Efficiency (1-5)")
    plt.legend()
    plt.tight_layout()
    plt.show()


if __name__ == "__main__":
    main()
