"""Prometheus metrics for monitoring match suggestions, box completeness and field conflicts"""

from typing import Iterable

from prometheus_client import Counter, Histogram

# Record linking
match_suggestion_counter = Counter(
    "docbox_match_suggestions_total",
    "Placement suggestions made for incoming documents",
    ["action"],  # attach-to-existing | create-new
)

match_top_score_histogram = Histogram(
    "docbox_match_top_score",
    "Best candidate score per placement request",
    buckets=[0, 30, 45, 60, 75, 90, 100],
)

# Checklist
status_evaluation_counter = Counter(
    "docbox_status_evaluations_total",
    "Box checklist evaluations by resulting document status",
    ["status"],  # INCOMPLETE | COMPLETE | NA
)

# Aggregation
field_conflict_counter = Counter(
    "docbox_field_conflicts_total",
    "Aggregated fields left in conflict for human resolution",
    ["field"],
)

extraction_failure_counter = Counter(
    "docbox_extraction_failures_total",
    "Extraction records received in failed state",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_match(suggested_action: str, top_score: int) -> None:
    """Record placement outcome for monitoring attach vs create rates"""
    match_suggestion_counter.labels(action=suggested_action).inc()
    match_top_score_histogram.observe(top_score)


def record_status(status: str) -> None:
    status_evaluation_counter.labels(status=status).inc()


def record_conflicts(fields: Iterable[str]) -> None:
    for field in fields:
        field_conflict_counter.labels(field=field).inc()
