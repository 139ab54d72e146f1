import logging

from .conflicts import adjust_plan, detect_conflicts, resolve_conflicts
from .exceptions import SchedulerError, StateError
from .feedback import update_model
from .habits import analyze_habits, generate_habit_recommendations
from .models import (ActivityRecord, ActivityType, EfficiencyModel, Feedback,
                     Intensity, ModelWeights, PlanEdit, Priority, SchedulePrefs,
                     ScheduleItem, Slot, SlotKind, Task, UserPreference)
from .optimizer import optimize_plan
from .patterns import analyze_time_patterns
from .profile import build_user_profile
from .scheduler import (compare_schedules, generate_efficiency_tips,
                        generate_schedule, plan_day, summarize_schedule)
from .skeleton import generate_skeleton_plan

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "ActivityRecord",
    "ActivityType",
    "EfficiencyModel",
    "Feedback",
    "Intensity",
    "ModelWeights",
    "PlanEdit",
    "Priority",
    "SchedulePrefs",
    "ScheduleItem",
    "SchedulerError",
    "Slot",
    "SlotKind",
    "StateError",
    "Task",
    "UserPreference",
    "adjust_plan",
    "analyze_habits",
    "analyze_time_patterns",
    "build_user_profile",
    "compare_schedules",
    "detect_conflicts",
    "generate_efficiency_tips",
    "generate_habit_recommendations",
    "generate_schedule",
    "generate_skeleton_plan",
    "optimize_plan",
    "plan_day",
    "resolve_conflicts",
    "summarize_schedule",
    "update_model",
]
