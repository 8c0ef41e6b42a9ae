"""Prometheus metrics for the hyper-ops operator."""

from prometheus_client import Counter, Histogram, Gauge, Info

# Reconciliation metrics
RECONCILE_TOTAL = Counter(
    "hyper_ops_reconcile_total",
    "Total number of reconciliations",
    ["operation", "status"],
)

RECONCILE_DURATION = Histogram(
    "hyper_ops_reconcile_duration_seconds",
    "Time spent in reconciliation",
    ["operation"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

RECONCILE_IN_PROGRESS = Gauge(
    "hyper_ops_reconcile_in_progress",
    "Number of reconciliations currently in progress",
)

# Kubernetes write metrics
UPSERT_TOTAL = Counter(
    "hyper_ops_upsert_total",
    "Total number of create-or-update calls by kind and result",
    ["kind", "result"],
)

UPSERT_CONFLICTS = Counter(
    "hyper_ops_upsert_conflicts_total",
    "Total number of create-or-update writes rejected by a conflict",
    ["kind"],
)

# Bootstrap metrics
BOOTSTRAP_TOTAL = Counter(
    "hyper_ops_bootstrap_total",
    "Total number of cluster bootstraps",
    ["cluster_type", "status"],
)

# Operator info
OPERATOR_INFO = Info(
    "hyper_ops",
    "Information about the hyper-ops operator",
)


def set_operator_info(version: str, gitops_namespace: str) -> None:
    """Set operator info labels."""
    OPERATOR_INFO.info({"version": version, "gitops_namespace": gitops_namespace})


def init_metrics() -> None:
    """Initialize all metrics with zero values.

    Prometheus metrics with labels don't appear until used.
    This ensures all metrics are visible immediately at startup.
    """
    operations = ["event", "requeue"]
    statuses = ["success", "error"]

    RECONCILE_IN_PROGRESS.set(0)
    for operation in operations:
        RECONCILE_DURATION.labels(operation=operation)
        for status in statuses:
            RECONCILE_TOTAL.labels(operation=operation, status=status)

    for cluster_type in ["local", "hosted"]:
        for status in statuses + ["not_ready"]:
            BOOTSTRAP_TOTAL.labels(cluster_type=cluster_type, status=status)

    for kind in ["Secret", "ServiceAccount", "ClusterRoleBinding"]:
        UPSERT_CONFLICTS.labels(kind=kind)
        for result in ["created", "updated", "unchanged"]:
            UPSERT_TOTAL.labels(kind=kind, result=result)
