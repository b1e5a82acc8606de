"""
Prometheus metrics for review-history

Counters and histograms describing each run: records rejected and
deduplicated, history rows inserted and expired, run duration and
consistency of the history table.
"""
import os
from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()


# =======================
# INPUT METRICS
# =======================

records_received_total = Counter(
    name="history_records_received_total",
    documentation="Raw records received by the pipeline",
    labelnames=["mode"],
    registry=REGISTRY,
)

records_rejected_total = Counter(
    name="history_records_rejected_total",
    documentation="Raw records dropped as malformed",
    labelnames=["field_name"],
    registry=REGISTRY,
)

records_deduplicated_total = Counter(
    name="history_records_deduplicated_total",
    documentation="Records collapsed by natural-key deduplication",
    registry=REGISTRY,
)

# =======================
# HISTORY TABLE METRICS
# =======================

history_rows_inserted_total = Counter(
    name="history_rows_inserted_total",
    documentation="History rows inserted (new keys and new versions)",
    labelnames=["mode"],
    registry=REGISTRY,
)

history_rows_expired_total = Counter(
    name="history_rows_expired_total",
    documentation="History rows closed out by the expirer",
    registry=REGISTRY,
)

simulated_changes_total = Counter(
    name="history_simulated_changes_total",
    documentation="Candidate rows perturbed by the mutation simulator",
    registry=REGISTRY,
)

inconsistent_keys = Gauge(
    name="history_inconsistent_keys",
    documentation="Business keys with more than one current row at the start of the last run",
    registry=REGISTRY,
)

# =======================
# RUN METRICS
# =======================

runs_total = Counter(
    name="history_runs_total",
    documentation="Pipeline runs",
    labelnames=["mode", "status"],  # status: success, failure
    registry=REGISTRY,
)

run_duration_seconds = Histogram(
    name="history_run_duration_seconds",
    documentation="Duration of a pipeline run in seconds",
    labelnames=["mode"],
    buckets=[0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0, 900.0],
    registry=REGISTRY,
)

retries_total = Counter(
    name="history_retries_total",
    documentation="Retry attempts against the history store",
    labelnames=["operation", "status"],  # status: retry, failure
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """Metrics in Prometheus text format"""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


class track_duration:
    """
    Context manager observing an operation's duration in a histogram

    Usage:
        with track_duration(run_duration_seconds, mode="seed"):
            ...
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        self.timer = self.histogram.labels(**self.labels).time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric, with or without labels

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if value <= 0:
        return
    if labels:
        counter.labels(**labels).inc(value)
    else:
        counter.inc(value)


def set_gauge(gauge: Gauge, value: float, **labels) -> None:
    if labels:
        gauge.labels(**labels).set(value)
    else:
        gauge.set(value)


def record_run(result, status: str = "success") -> None:
    """
    Record the counters of a completed run.

    Args:
        result: RunResult of the run
        status: "success" or "failure"
    """
    increment_counter(records_received_total, result.total_records, mode=result.mode)
    increment_counter(records_deduplicated_total, result.duplicate_records)
    increment_counter(history_rows_inserted_total, result.inserted_rows, mode=result.mode)
    increment_counter(simulated_changes_total, len(result.simulated_keys))
    runs_total.labels(mode=result.mode, status=status).inc()
