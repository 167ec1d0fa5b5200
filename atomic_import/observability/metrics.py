"""
Prometheus instruments for the importer.

Everything lives on a private REGISTRY so embedding applications and tests
can scrape or inspect it without touching the process-wide default.
"""
import os

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

REGISTRY = CollectorRegistry(auto_describe=True)


# =======================
# GROUP METRICS
# =======================

groups_processed_total = Counter(
    name="import_groups_processed_total",
    documentation="Total number of entity groups that reached an outcome",
    labelnames=["entity_kind", "action", "status"],  # status: success, failure
    registry=REGISTRY,
)

group_failures_total = Counter(
    name="import_group_failures_total",
    documentation="Failed groups by error kind",
    labelnames=["entity_kind", "error_kind"],
    registry=REGISTRY,
)

group_rows_total = Counter(
    name="import_group_rows_total",
    documentation="Source rows covered by finished groups",
    labelnames=["entity_kind", "status"],
    registry=REGISTRY,
)

group_processing_duration_seconds = Histogram(
    name="import_group_processing_duration_seconds",
    documentation="Wall time of one atomic group write including retries",
    labelnames=["entity_kind"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0],
    registry=REGISTRY,
)

# =======================
# RETRY / COMPENSATION METRICS
# =======================

retries_total = Counter(
    name="import_retries_total",
    documentation="Total number of retry attempts after transient store errors",
    labelnames=["entity_kind"],
    registry=REGISTRY,
)

rollbacks_total = Counter(
    name="import_rollbacks_total",
    documentation="Compensating rollbacks executed",
    labelnames=["entity_kind", "status"],  # status: success, failure
    registry=REGISTRY,
)

# =======================
# SCHEDULER METRICS
# =======================

wave_duration_seconds = Histogram(
    name="import_wave_duration_seconds",
    documentation="Time spent processing one wave of groups",
    labelnames=["entity_kind"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
    registry=REGISTRY,
)

wave_size = Histogram(
    name="import_wave_size_groups",
    documentation="Number of groups in each wave",
    labelnames=["entity_kind"],
    buckets=[1, 2, 5, 10, 20, 50],
    registry=REGISTRY,
)

runs_total = Counter(
    name="import_runs_total",
    documentation="Import runs by terminal state",
    labelnames=["entity_kind", "state"],  # state: finished, cancelled, paused
    registry=REGISTRY,
)

# =======================
# STORE METRICS
# =======================

store_call_duration_seconds = Histogram(
    name="import_store_call_duration_seconds",
    documentation="Latency of store repository calls",
    labelnames=["entity_kind", "operation"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
    registry=REGISTRY,
)

store_errors_total = Counter(
    name="import_store_errors_total",
    documentation="Store call failures by error class",
    labelnames=["entity_kind", "operation", "error_type"],
    registry=REGISTRY,
)

# =======================
# JOB METRICS
# =======================

job_progress_percent = Gauge(
    name="import_job_progress_percent",
    documentation="Progress of a running import job",
    labelnames=["job_type"],
    registry=REGISTRY,
)

job_transitions_total = Counter(
    name="import_job_transitions_total",
    documentation="Job status transitions",
    labelnames=["job_type", "status"],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def start_metrics_server(port: int | None = None, addr: str = "0.0.0.0") -> int:
    """Serve REGISTRY over HTTP (port from METRICS_PORT, else 8000); returns the port."""
    port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(port, addr=addr, registry=REGISTRY)
    return port


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    (counter.labels(**labels) if labels else counter).inc(value)


def set_gauge(gauge: Gauge, value: float, **labels) -> None:
    (gauge.labels(**labels) if labels else gauge).set(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    (histogram.labels(**labels) if labels else histogram).observe(value)


# =======================
# IMPORT-SPECIFIC HELPERS
# =======================

def record_group_outcome(
    entity_kind: str,
    action: str,
    success: bool,
    row_count: int,
    error_kind: str | None = None,
    duration_seconds: float | None = None,
) -> None:
    """
    Record metrics for one finished group.

    Args:
        entity_kind: Entity kind of the group ("order", "sku")
        action: Outcome action (created, updated, skipped, failed)
        success: Whether the group succeeded
        row_count: Number of source rows in the group
        error_kind: Error kind for failed groups
        duration_seconds: Processing time, if measured
    """
    status = "success" if success else "failure"
    increment_counter(groups_processed_total, 1, entity_kind=entity_kind, action=action, status=status)
    if row_count > 0:
        increment_counter(group_rows_total, row_count, entity_kind=entity_kind, status=status)
    if not success and error_kind:
        increment_counter(group_failures_total, 1, entity_kind=entity_kind, error_kind=error_kind)
    if duration_seconds is not None:
        observe_histogram(group_processing_duration_seconds, duration_seconds, entity_kind=entity_kind)


def record_rollback(entity_kind: str, success: bool) -> None:
    """Record a compensating rollback and whether it fully succeeded."""
    increment_counter(
        rollbacks_total, 1, entity_kind=entity_kind, status="success" if success else "failure"
    )
