"""Prometheus metrics for the Paralus operator."""

from prometheus_client import Counter, Gauge, Histogram, Info

# Reconciliation metrics
RECONCILE_TOTAL = Counter(
    "paralus_operator_reconcile_total",
    "Total number of reconciliations",
    ["resource", "operation", "status"],
)

RECONCILE_DURATION = Histogram(
    "paralus_operator_reconcile_duration_seconds",
    "Time spent in reconciliation",
    ["resource", "operation"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

RECONCILE_IN_PROGRESS = Gauge(
    "paralus_operator_reconcile_in_progress",
    "Number of reconciliations currently in progress",
    ["resource"],
)

DRIFT_DETECTED = Counter(
    "paralus_operator_drift_detected_total",
    "Number of times a managed resource was found missing in Paralus",
    ["resource"],
)

# Paralus API metrics
PARALUS_API_CALLS = Counter(
    "paralus_operator_api_calls_total",
    "Total number of Paralus API calls",
    ["method", "status"],
)

PARALUS_API_DURATION = Histogram(
    "paralus_operator_api_duration_seconds",
    "Time spent in Paralus API calls",
    ["method"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

PARALUS_API_RETRIES = Counter(
    "paralus_operator_api_retries_total",
    "Total number of Paralus API call retries",
    ["operation"],
)

# User query metrics
USER_QUERY_MATCHES = Histogram(
    "paralus_operator_user_query_matches",
    "Number of users returned by a users query after filtering",
    buckets=(0, 1, 2, 5, 10, 25, 50, 100),
)

# Operator info
OPERATOR_INFO = Info(
    "paralus_operator",
    "Information about the Paralus operator",
)

RESOURCES = [
    "ParalusCluster",
    "ParalusGroup",
    "ParalusProject",
    "ParalusUserQuery",
    "ParalusKubeconfig",
]


def set_operator_info(version: str, endpoint: str) -> None:
    """Set operator info labels."""
    OPERATOR_INFO.info({"version": version, "endpoint": endpoint})


def init_metrics() -> None:
    """Initialize all metrics with zero values.

    Prometheus metrics with labels don't appear until used.
    This ensures all metrics are visible immediately at startup.
    """
    operations = ["create", "update", "delete", "read", "import"]
    statuses = ["success", "error", "permanent_error"]

    for resource in RESOURCES:
        RECONCILE_IN_PROGRESS.labels(resource=resource).set(0)
        DRIFT_DETECTED.labels(resource=resource)
        for operation in operations:
            RECONCILE_DURATION.labels(resource=resource, operation=operation)
            for status in statuses:
                RECONCILE_TOTAL.labels(
                    resource=resource, operation=operation, status=status
                )

    for method in ["GET", "POST", "PUT", "DELETE"]:
        PARALUS_API_DURATION.labels(method=method)
        for status in ["success", "not_found", "error"]:
            PARALUS_API_CALLS.labels(method=method, status=status)
