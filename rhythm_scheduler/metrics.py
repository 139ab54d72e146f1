# rhythm_scheduler/metrics.py
from prometheus_client import Counter, Summary, start_http_server

SCHEDULE_TIME = Summary(
    "schedule_generation_seconds",
    "Time spent generating a daily schedule",
)

FEEDBACK_COUNTER = Counter(
    "schedule_feedback_total",
    "Count of feedback submissions by rating",
    ["rating"],  # label = rating 1-5
)

CONFLICTS_DROPPED = Counter(
    "schedule_conflicts_dropped_total",
    "Plan items dropped because no free interval was left",
)


def start_metrics_server(port: int = 8000) -> None:
    """Expose the metrics above over HTTP for the host process."""
    start_http_server(port)
