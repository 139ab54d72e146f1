import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from rhythm_scheduler.models import ActivityRecord, ActivityType  # noqa: E402


def make_record(rid, type_id, start, minutes, efficiency=3):
    return ActivityRecord(
        id=rid,
        type_id=type_id,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        efficiency_score=efficiency,
    )


@pytest.fixture
def work_type():
    return ActivityType(id=1, name="Work")


@pytest.fixture
def week_of_work():
    # 2024-06-03 is a Monday
    first = datetime(2024, 6, 3, 9, 0)
    return [make_record(i + 1, 1, first + timedelta(days=i), 120, 5) for i in range(7)]
