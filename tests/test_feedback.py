from datetime import datetime

import pytest

from conftest import make_record
from rhythm_scheduler.exceptions import StateError
from rhythm_scheduler.feedback import update_model
from rhythm_scheduler.models import (EfficiencyModel, Feedback, ModelWeights,
                                     Priority, ScheduleItem, UserPreference)


def _item(priority=None, expected=None):
    return ScheduleItem(
        type_id=1,
        type_name="Work",
        suggested_start_time=datetime(2024, 6, 10, 10, 0),  # Monday
        suggested_duration_minutes=60,
        confidence=0.8,
        priority=priority,
        expected_efficiency=expected,
    )


def _assert_normalized(weights):
    values = weights.to_dict().values()
    assert all(v >= 0 for v in values)
    assert sum(values) == pytest.approx(1.0, abs=1e-9)


def test_preferences_and_buckets_accumulate():
    state = update_model(Feedback(_item(), 4), ModelWeights(), UserPreference())
    state = update_model(Feedback(_item(), 2), state.weights, state.preferences,
                         state.efficiency_model)

    assert state.preferences.scores[1].count == 2
    assert state.preferences.average(1) == 3
    assert state.efficiency_model.average(10, 1) == 3
    _assert_normalized(state.weights)


def test_inputs_are_not_mutated():
    weights, prefs = ModelWeights(), UserPreference()

    update_model(Feedback(_item(Priority.HIGH, 4.5), 1), weights, prefs)

    assert weights == ModelWeights()
    assert prefs.scores == {}


def test_low_score_on_efficient_item_shifts_weight_to_priority():
    base = ModelWeights()
    state = update_model(Feedback(_item(expected=4.6), 2), base, UserPreference())

    assert state.weights.efficiency == pytest.approx(base.efficiency * 0.9)
    assert state.weights.priority == pytest.approx(base.priority + base.efficiency * 0.1)
    _assert_normalized(state.weights)


def test_rules_compound_for_high_priority_efficient_item():
    base = ModelWeights()
    state = update_model(Feedback(_item(Priority.HIGH, 4.8), 1), base, UserPreference())

    assert state.weights.efficiency == pytest.approx(base.efficiency * 0.81)
    _assert_normalized(state.weights)


def test_good_score_leaves_weights_alone():
    base = ModelWeights()
    state = update_model(Feedback(_item(Priority.HIGH, 5), 5), base, UserPreference())

    assert state.weights.to_dict() == pytest.approx(base.to_dict())


def test_record_feedback_uses_recorded_efficiency():
    record = make_record(7, 3, datetime(2024, 6, 9, 20, 0), 30, efficiency=5)  # Sunday
    base = ModelWeights()

    state = update_model(Feedback(record, 1), base, UserPreference())

    assert state.weights.efficiency < base.efficiency
    assert state.efficiency_model.buckets[(20, 0)].count == 1
    assert state.preferences.scores[3].total == 1


@pytest.mark.parametrize("score, stored", [(9, 5), (-3, 1)])
def test_out_of_range_scores_are_clamped(score, stored):
    state = update_model(Feedback(_item(), score), ModelWeights(), UserPreference())

    assert state.preferences.scores[1].total == stored
    _assert_normalized(state.weights)


def test_unusable_score_is_ignored():
    state = update_model(Feedback(_item(), float("nan")), ModelWeights(), UserPreference())

    assert state.preferences.scores == {}
    _assert_normalized(state.weights)


def test_weights_stay_normalized_under_repeated_negative_feedback():
    weights, prefs, model = ModelWeights(), UserPreference(), EfficiencyModel()
    for _ in range(50):
        state = update_model(Feedback(_item(Priority.HIGH, 5), 1), weights, prefs, model)
        weights, prefs, model = state.weights, state.preferences, state.efficiency_model
        _assert_normalized(weights)
    assert weights.efficiency < 0.01


def test_state_round_trip_and_corruption():
    state = update_model(Feedback(_item(), 4), ModelWeights(), UserPreference())

    prefs = UserPreference.from_dict(state.preferences.to_dict())
    model = EfficiencyModel.from_dict(state.efficiency_model.to_dict())
    weights = ModelWeights.from_dict(state.weights.to_dict())

    assert prefs.average(1) == 4
    assert model.average(10, 1) == 4
    assert weights.to_dict() == pytest.approx(state.weights.to_dict())

    with pytest.raises(StateError):
        ModelWeights.from_dict({"efficiency": 1})
    with pytest.raises(StateError):
        EfficiencyModel.from_dict({"noon": {"total": 1, "count": 1}})
