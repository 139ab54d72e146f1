# rhythm_scheduler/models.py
from dataclasses import dataclass, field, fields
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from .exceptions import StateError


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Intensity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SlotKind(str, Enum):
    FIXED = "fixed"
    HEALTH = "health"
    BUFFER = "buffer"
    FLEXIBLE = "flexible"


# lower rank wins when two items compete for the same time
PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}
PRIORITY_SCORE = {Priority.HIGH: 1.0, Priority.MEDIUM: 0.7, Priority.LOW: 0.4}
INTENSITY_SCORE = {Intensity.HIGH: 1.0, Intensity.MEDIUM: 0.7, Intensity.LOW: 0.4}
SLOT_KIND_RANK = {
    SlotKind.FIXED: 0,
    SlotKind.HEALTH: 1,
    SlotKind.BUFFER: 2,
    SlotKind.FLEXIBLE: 3,
}


@dataclass
class SchedulePrefs:
    day_start: time = time(9, 0)
    day_end: time = time(18, 0)
    # (start, minutes, label)
    meal_windows: Tuple[Tuple[time, int, str], ...] = (
        (time(8, 0), 30, "Breakfast"),
        (time(12, 0), 60, "Lunch"),
        (time(18, 0), 60, "Dinner"),
    )
    buffer_minutes: int = 15           # max buffer after a fixed/health slot
    rest_gap_minutes: int = 15         # gap between records counted as rest
    max_rest_slot_minutes: int = 15
    fixed_min_occurrences: int = 3     # recurrences before a start time is "fixed"
    default_work_minutes: int = 120    # used when history has no rest gaps
    default_rest_minutes: int = 15
    high_energy_hours: Tuple[int, ...] = (9, 10, 11, 14, 15, 16)
    low_energy_hours: Tuple[int, ...] = (12, 13, 17, 18)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchedulePrefs":
        """Build prefs from a settings mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            if key not in known:
                continue
            if key in ("day_start", "day_end") and isinstance(value, str):
                value = time.fromisoformat(value)
            values[key] = value
        return cls(**values)


@dataclass(frozen=True)
class ActivityType:
    id: int
    name: str
    color_code: str = "#1976d2"


@dataclass(frozen=True)
class ActivityRecord:
    id: int
    type_id: int
    start_time: datetime
    end_time: datetime
    description: str = ""
    efficiency_score: float = 3.0   # 1..5

    @property
    def duration_minutes(self) -> float:
        return max(0.0, (self.end_time - self.start_time).total_seconds() / 60.0)


@dataclass
class Task:
    id: str
    type_id: int
    priority: Priority = Priority.MEDIUM
    estimated_duration_minutes: int = 60
    intensity: Intensity = Intensity.MEDIUM
    deadline: Optional[datetime] = None
    label: str = ""


@dataclass(frozen=True)
class Slot:
    kind: SlotKind
    start_time: datetime
    duration_minutes: int
    label: str = ""
    source_type_id: Optional[int] = None

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration_minutes)


@dataclass(frozen=True)
class ScheduleItem:
    type_id: int
    type_name: str
    suggested_start_time: datetime
    suggested_duration_minutes: int
    confidence: float               # 0..1
    reason: Optional[str] = None
    task_id: Optional[str] = None
    priority: Optional[Priority] = None
    expected_efficiency: Optional[float] = None  # 1..5 scale

    @property
    def end_time(self) -> datetime:
        return self.suggested_start_time + timedelta(minutes=self.suggested_duration_minutes)


PlanEntry = Union[ScheduleItem, Slot]


@dataclass
class TimePattern:
    daily_average_minutes: Dict[int, float] = field(default_factory=dict)
    weekly_minutes: Dict[int, Dict[int, float]] = field(default_factory=dict)     # weekday -> type -> min
    average_efficiency: Dict[int, float] = field(default_factory=dict)
    hourly_efficiency: Dict[int, Dict[int, float]] = field(default_factory=dict)  # hour -> type -> score
    record_counts: Dict[int, int] = field(default_factory=dict)
    # (weekday, hour) buckets used by the optimizer
    bucket_efficiency: Dict[Tuple[int, int], Dict[int, float]] = field(default_factory=dict)
    bucket_counts: Dict[Tuple[int, int], Dict[int, int]] = field(default_factory=dict)
    hourly_share: Dict[int, float] = field(default_factory=dict)


@dataclass
class RestWindow:
    hour: int
    occurrences: int


@dataclass
class RestPattern:
    avg_work_minutes: float = 0.0
    avg_rest_minutes: float = 0.0
    common_rest_windows: List[RestWindow] = field(default_factory=list)


@dataclass
class SleepPattern:
    avg_wake_time: Optional[time] = None
    avg_sleep_time: Optional[time] = None


@dataclass
class FixedActivity:
    time_of_day: time
    average_duration_minutes: float
    frequency: int


@dataclass
class UserProfile:
    average_efficiency: Dict[int, float] = field(default_factory=dict)
    rest_pattern: RestPattern = field(default_factory=RestPattern)
    sleep_pattern: SleepPattern = field(default_factory=SleepPattern)
    fixed_activities: Dict[int, List[FixedActivity]] = field(default_factory=dict)
    type_names: Dict[int, str] = field(default_factory=dict)


@dataclass
class SkeletonPlan:
    date: date
    fixed_slots: List[Slot] = field(default_factory=list)
    health_slots: List[Slot] = field(default_factory=list)
    buffer_slots: List[Slot] = field(default_factory=list)
    flexible_slots: List[Slot] = field(default_factory=list)

    def all_slots(self) -> List[Slot]:
        slots = self.fixed_slots + self.health_slots + self.buffer_slots + self.flexible_slots
        return sorted(slots, key=lambda s: (s.start_time, SLOT_KIND_RANK[s.kind]))


@dataclass
class ModelWeights:
    efficiency: float = 0.4
    priority: float = 0.3
    time_fit: float = 0.2
    energy_level: float = 0.1

    def normalized(self) -> "ModelWeights":
        values = [max(0.0, v) for v in (self.efficiency, self.priority,
                                         self.time_fit, self.energy_level)]
        total = sum(values)
        if total <= 0:
            return ModelWeights(0.25, 0.25, 0.25, 0.25)
        return ModelWeights(*(v / total for v in values))

    def to_dict(self) -> Dict[str, float]:
        return {
            "efficiency": self.efficiency,
            "priority": self.priority,
            "time_fit": self.time_fit,
            "energy_level": self.energy_level,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelWeights":
        try:
            weights = cls(
                efficiency=float(data["efficiency"]),
                priority=float(data["priority"]),
                time_fit=float(data["time_fit"]),
                energy_level=float(data["energy_level"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise StateError(f"invalid model weights: {exc}", corrupted_data=repr(data)) from exc
        return weights.normalized()


@dataclass
class ScoreTally:
    total: float = 0.0
    count: int = 0

    @property
    def average(self) -> float:
        return self.total / self.count if self.count else 0.0


def _tallies_from_dict(data: Dict[str, Any], what: str) -> Dict[str, ScoreTally]:
    try:
        return {
            str(key): ScoreTally(float(value["total"]), int(value["count"]))
            for key, value in data.items()
        }
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise StateError(f"invalid {what}: {exc}", corrupted_data=repr(data)) from exc


@dataclass
class UserPreference:
    """Running feedback score per activity type."""
    scores: Dict[int, ScoreTally] = field(default_factory=dict)

    def average(self, type_id: int) -> float:
        tally = self.scores.get(type_id)
        return tally.average if tally else 0.0

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {str(k): {"total": v.total, "count": v.count} for k, v in self.scores.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserPreference":
        tallies = _tallies_from_dict(data, "user preferences")
        try:
            return cls({int(k): v for k, v in tallies.items()})
        except ValueError as exc:
            raise StateError(f"invalid user preferences: {exc}", corrupted_data=repr(data)) from exc


@dataclass
class EfficiencyModel:
    """Running feedback score per (hour, weekday) bucket."""
    buckets: Dict[Tuple[int, int], ScoreTally] = field(default_factory=dict)

    def average(self, hour: int, weekday: int) -> float:
        tally = self.buckets.get((hour, weekday))
        return tally.average if tally else 0.0

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {f"{h}-{d}": {"total": v.total, "count": v.count}
                for (h, d), v in self.buckets.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EfficiencyModel":
        tallies = _tallies_from_dict(data, "efficiency model")
        buckets = {}
        for key, tally in tallies.items():
            try:
                hour, weekday = (int(part) for part in key.split("-"))
            except ValueError as exc:
                raise StateError(f"invalid efficiency bucket key {key!r}",
                                 corrupted_data=repr(data)) from exc
            buckets[(hour, weekday)] = tally
        return cls(buckets)


@dataclass
class Feedback:
    item: Union[ScheduleItem, ActivityRecord]
    score: float                    # 1..5
    comment: str = ""


@dataclass
class ModelUpdate:
    weights: ModelWeights
    preferences: UserPreference
    efficiency_model: EfficiencyModel


@dataclass
class Conflict:
    first: PlanEntry
    second: PlanEntry
    overlap_minutes: float
    kind: str = "overlap"


@dataclass
class PlanEdit:
    index: int
    start_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    remove: bool = False


@dataclass
class EfficiencyTip:
    type_id: int
    type_name: str
    current_efficiency: float
    best_hour: int
    suggestion: str
    improvement: int                # expected gain, percent


@dataclass
class Consistency:
    average_per_week: float
    most_frequent_weekday: int      # 0=Sunday
    least_frequent_weekday: int


@dataclass
class Streak:
    current_streak: int
    max_streak: int


@dataclass
class Trend:
    efficiency_change: float
    trend: str                      # improving / declining / stable


@dataclass
class HabitReport:
    consistency: Dict[int, Consistency] = field(default_factory=dict)
    streaks: Dict[int, Streak] = field(default_factory=dict)
    trends: Dict[int, Trend] = field(default_factory=dict)


@dataclass
class Recommendation:
    kind: str                       # consistency / streak / improvement / general
    type_id: Optional[int]
    type_name: str
    suggestion: str
    expected_benefit: str
    priority: Priority = Priority.MEDIUM


@dataclass
class ScheduleDifference:
    kind: str                       # new / removed / time / duration / confidence
    type_id: int
    message: str
    details: str
    confidence: float


@dataclass
class ScheduleSummary:
    time_distribution: Dict[str, int]
    type_minutes: Dict[str, int]
    average_confidence: float


@dataclass
class DayPlan:
    date: date
    items: List[ScheduleItem]
    skeleton: Optional[SkeletonPlan] = None
    dropped: List[ScheduleItem] = field(default_factory=list)
