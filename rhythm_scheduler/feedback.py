# rhythm_scheduler/feedback.py
import math
from copy import deepcopy
from datetime import datetime
from typing import Optional, Tuple

from .log import get_logger
from .metrics import FEEDBACK_COUNTER
from .models import (ActivityRecord, EfficiencyModel, Feedback, ModelUpdate,
                     ModelWeights, Priority, ScheduleItem, ScoreTally,
                     UserPreference)
from .patterns import weekday_index

logger = get_logger("feedback")

MIN_SCORE, MAX_SCORE = 1.0, 5.0
LOW_SCORE = 3.0
HIGH_EFFICIENCY = 4.0
# share of the efficiency weight handed to priority per triggered rule
WEIGHT_SHIFT = 0.1


def _describe(item) -> Tuple[int, datetime, Optional[float], Optional[Priority]]:
    if isinstance(item, ActivityRecord):
        return item.type_id, item.start_time, item.efficiency_score, None
    if isinstance(item, ScheduleItem):
        return item.type_id, item.suggested_start_time, item.expected_efficiency, item.priority
    raise TypeError(f"feedback must reference a ScheduleItem or ActivityRecord, got {type(item).__name__}")


def _shift_to_priority(weights: ModelWeights) -> ModelWeights:
    moved = weights.efficiency * WEIGHT_SHIFT
    return ModelWeights(
        efficiency=weights.efficiency - moved,
        priority=weights.priority + moved,
        time_fit=weights.time_fit,
        energy_level=weights.energy_level,
    )


def update_model(feedback: Feedback,
                 weights: ModelWeights,
                 preferences: UserPreference,
                 efficiency_model: Optional[EfficiencyModel] = None) -> ModelUpdate:
    """
    Fold one rating into the adaptive state and return the new state.

    The weight rule is a heuristic nudge, not a fitted update: each poor
    rating of a high-efficiency or high-priority suggestion moves a tenth of
    the efficiency weight over to priority, and repeated ratings keep
    pushing in that direction. Inputs are left untouched.
    """
    preferences = deepcopy(preferences)
    efficiency_model = deepcopy(efficiency_model) if efficiency_model else EfficiencyModel()
    new_weights = weights.normalized()

    try:
        score = float(feedback.score)
    except (TypeError, ValueError):
        score = math.nan
    if not math.isfinite(score):
        logger.warning("ignoring feedback with unusable score %r", feedback.score)
        return ModelUpdate(new_weights, preferences, efficiency_model)
    if not MIN_SCORE <= score <= MAX_SCORE:
        logger.warning("clamping out-of-range feedback score %s", score)
        score = min(MAX_SCORE, max(MIN_SCORE, score))

    type_id, when, efficiency, priority = _describe(feedback.item)

    tally = preferences.scores.setdefault(type_id, ScoreTally())
    tally.total += score
    tally.count += 1

    bucket = efficiency_model.buckets.setdefault((when.hour, weekday_index(when)), ScoreTally())
    bucket.total += score
    bucket.count += 1

    if score < LOW_SCORE:
        if efficiency is not None and efficiency > HIGH_EFFICIENCY:
            new_weights = _shift_to_priority(new_weights)
        if priority == Priority.HIGH:
            new_weights = _shift_to_priority(new_weights)
    new_weights = new_weights.normalized()

    FEEDBACK_COUNTER.labels(rating=str(int(round(score)))).inc()
    logger.debug("feedback %.0f for type %s -> weights %s", score, type_id, new_weights.to_dict())
    return ModelUpdate(new_weights, preferences, efficiency_model)
