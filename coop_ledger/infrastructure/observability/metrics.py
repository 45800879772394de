"""Prometheus metrics for action throughput, penalties, dividends and persistence health"""

from prometheus_client import Counter, Histogram

# Action metrics
action_counter = Counter(
    "coop_actions_total",
    "Total state actions dispatched",
    ["action", "outcome"],  # outcome: applied | rejected
)

penalties_assessed_counter = Counter(
    "coop_penalties_assessed_total",
    "Penalties automatically assessed for missed installments",
)

dividend_distribution_counter = Counter(
    "coop_dividend_distributions_total",
    "Dividend distributions recorded",
)

# Persistence metrics
persistence_failure_counter = Counter(
    "coop_persistence_failures_total",
    "Failed state loads or saves",
    ["target"],  # remote | local
)

remote_save_latency_histogram = Histogram(
    "coop_remote_save_seconds",
    "Row store save time including retries",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_action(action_type: str, applied: bool, penalties_assessed: int = 0) -> None:
    """Record one dispatched action and any penalties it produced"""
    action_counter.labels(action=action_type, outcome="applied" if applied else "rejected").inc()
    if penalties_assessed:
        penalties_assessed_counter.inc(penalties_assessed)
    if applied and action_type == "DISTRIBUTE_DIVIDENDS":
        dividend_distribution_counter.inc()
