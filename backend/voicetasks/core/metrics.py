"""Prometheus metrics.

HTTP request metrics come from prometheus-fastapi-instrumentator; the rest
are defined here under the ``voicetasks_`` namespace and updated by the
database layer, the voice workflow and the external service clients.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI
from prometheus_client import Counter, Gauge, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

logger = structlog.get_logger("voicetasks.metrics")

NAMESPACE = "voicetasks"
METRICS_PATH = "/metrics"
UNINSTRUMENTED_PATHS = [METRICS_PATH, "/docs", "/redoc", "/openapi.json"]

app_info = Gauge("app_info", "Running voicetasks version", ["version"], namespace=NAMESPACE)

# Connection pool
db_pool_size = Gauge("db_pool_size", "Configured pool size", namespace=NAMESPACE)
db_pool_max_overflow = Gauge(
    "db_pool_max_overflow", "Configured pool overflow limit", namespace=NAMESPACE
)
db_connections_active = Gauge(
    "db_connections_active", "Connections checked out of the pool", namespace=NAMESPACE
)
db_connections_idle = Gauge(
    "db_connections_idle", "Connections waiting in the pool", namespace=NAMESPACE
)
db_connections_overflow = Gauge(
    "db_connections_overflow", "Checked out connections above the pool size", namespace=NAMESPACE
)

# SQLite lock retries
db_lock_errors_total = Counter(
    "db_lock_errors_total", "'database is locked' errors seen", namespace=NAMESPACE
)
db_retry_attempts_total = Counter(
    "db_retry_attempts_total", "Retries of database operations", ["operation_type"],
    namespace=NAMESPACE,
)
db_retries_succeeded_total = Counter(
    "db_retries_succeeded_total", "Operations that succeeded after retrying", ["operation_type"],
    namespace=NAMESPACE,
)
db_retries_failed_total = Counter(
    "db_retries_failed_total", "Operations that still failed after retrying", ["operation_type"],
    namespace=NAMESPACE,
)
db_retry_duration_seconds = Histogram(
    "db_retry_duration_seconds",
    "Time spent in operations that needed a retry",
    ["operation_type"],
    namespace=NAMESPACE,
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# Voice commands and task matching
voice_commands_total = Counter(
    "voice_commands_total", "Voice commands processed, by interpreted intent", ["intent"],
    namespace=NAMESPACE,
)
task_match_results_total = Counter(
    "task_match_results_total",
    "Spoken task references resolved (matched) or not (no_match)",
    ["outcome"],
    namespace=NAMESPACE,
)
task_match_similarity = Histogram(
    "task_match_similarity",
    "Similarity score of accepted task matches",
    namespace=NAMESPACE,
    buckets=(0.5, 0.6, 0.7, 0.8, 0.9, 1.0),
)

# External services
openai_requests_total = Counter(
    "openai_requests_total",
    "Completion requests by operation (interpret, priority) and outcome",
    ["operation", "outcome"],
    namespace=NAMESPACE,
)
graph_requests_total = Counter(
    "graph_requests_total",
    "Microsoft Graph and token endpoint requests by operation and HTTP status",
    ["operation", "status"],
    namespace=NAMESPACE,
)


def setup_metrics(app: FastAPI, app_version: str) -> None:
    """Instrument app and expose GET /metrics. Safe to call twice."""
    if getattr(app.state, "_metrics_initialized", False):
        return

    Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=UNINSTRUMENTED_PATHS,
    ).instrument(app).expose(app, endpoint=METRICS_PATH)

    app_info.labels(version=app_version).set(1)
    app.state._metrics_initialized = True
    logger.info("Metrics initialized", version=app_version, endpoint=METRICS_PATH)
