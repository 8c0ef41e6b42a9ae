"""Kopf handlers for HyperShift HostedCluster resources."""

import asyncio
import functools
import logging
import os
import sys
import time
from pathlib import Path
from typing import Any

# Add src directory to path for imports when run as script by Kopf
_src_dir = Path(__file__).parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import kopf
from prometheus_client import start_http_server

from constants import (
    HOSTED_CLUSTER_GROUP,
    HOSTED_CLUSTER_PLURAL,
    HOSTED_CLUSTER_VERSION,
)
from models import CredentialsNotReadyError, ReconcileAction, ReconcilerConfig
from reconciler import is_watched
from state import state, get_reconciler
from metrics import (
    RECONCILE_TOTAL,
    RECONCILE_DURATION,
    RECONCILE_IN_PROGRESS,
    set_operator_info,
    init_metrics,
)

logger = logging.getLogger(__name__)

# Operator version
OPERATOR_VERSION = "0.1.0"

RESYNC_INTERVAL = float(os.environ.get("RESYNC_INTERVAL_SECONDS", "600"))

# Requeue delays for failed reconciliations
NOT_READY_DELAY = 10
ERROR_DELAY = 60


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure operator settings on startup."""
    # Reduce logging noise
    settings.posting.level = logging.WARNING
    # Start Prometheus metrics server
    metrics_port = int(os.environ.get("METRICS_PORT", "9090"))
    try:
        start_http_server(metrics_port)
        logger.info("Prometheus metrics server started on port %d", metrics_port)
    except OSError as e:
        logger.warning("Failed to start metrics server on port %d: %s", metrics_port, e)

    init_metrics()
    set_operator_info(
        OPERATOR_VERSION, ReconcilerConfig.from_env().default_gitops_namespace
    )

    logger.info("hyper-ops operator started (version %s)", OPERATOR_VERSION)


@kopf.on.cleanup()
async def cleanup(**_: Any) -> None:
    """Clean up resources on operator shutdown."""
    logger.info("hyper-ops operator shutting down")
    state.close()


def run_reconcile(
    namespace: str, name: str, body: kopf.Body, operation: str
) -> float | None:
    """Reconcile a HostedCluster.

    Failures are logged and reported on the resource, never raised: Kopf
    does not retry event handlers, so the caller requeues instead.

    Returns:
        Seconds until the HostedCluster should be reconciled again, or None
        once it is gone
    """
    start_time = time.monotonic()
    RECONCILE_IN_PROGRESS.inc()

    try:
        result = get_reconciler().reconcile(namespace, name)

        RECONCILE_TOTAL.labels(operation=operation, status="success").inc()
        logger.info(
            f"Reconciled HostedCluster {namespace}/{name}: {result.action.value}"
        )
        if result.action in (ReconcileAction.NOT_FOUND, ReconcileAction.DELETED):
            return None
        return RESYNC_INTERVAL

    except CredentialsNotReadyError as e:
        logger.warning(
            f"Credentials not ready for HostedCluster {namespace}/{name}: {e}"
        )
        RECONCILE_TOTAL.labels(operation=operation, status="error").inc()
        return NOT_READY_DELAY
    except Exception as e:
        logger.error(f"Failed to reconcile HostedCluster {namespace}/{name}: {e}")
        RECONCILE_TOTAL.labels(operation=operation, status="error").inc()
        kopf.warn(body, reason="ReconcileFailed", message=str(e)[:200])
        return ERROR_DELAY
    finally:
        RECONCILE_DURATION.labels(operation=operation).observe(
            time.monotonic() - start_time
        )
        RECONCILE_IN_PROGRESS.dec()


# Low-level event handler: Kopf adds no finalizer and stores no state on
# the HostedCluster, which belongs to HyperShift.
@kopf.on.event(HOSTED_CLUSTER_GROUP, HOSTED_CLUSTER_VERSION, HOSTED_CLUSTER_PLURAL)
async def handle_hosted_cluster_event(
    type: str | None,
    namespace: str,
    name: str,
    body: kopf.Body,
    labels: kopf.Labels,
    **_: Any,
) -> None:
    """Reconcile a HostedCluster on every watch event, including the initial listing.

    Filtering happens here rather than with ``when=`` so that a HostedCluster
    losing the enabled label also loses its pending requeue.
    """
    key = (namespace, name)
    state.requeues.cancel(key)

    # Deletion is handled while the deletion timestamp is set; once the
    # object is gone there is nothing left to read.
    if type == "DELETED" or not is_watched(labels=labels):
        return

    logger.debug(f"{type or 'Listed'} HostedCluster {namespace}/{name}")
    delay = await asyncio.to_thread(run_reconcile, namespace, name, body, "event")
    if delay is not None:
        state.requeues.schedule(
            key,
            delay,
            functools.partial(
                asyncio.to_thread, run_reconcile, namespace, name, body, "requeue"
            ),
        )


def main() -> None:
    """Entry point for running the operator."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger.info("Starting hyper-ops operator...")
    # Watch a single namespace if WATCH_NAMESPACE is set, else the whole cluster
    watch_namespace = os.environ.get("WATCH_NAMESPACE", "")
    if watch_namespace:
        kopf.run(namespaces=[watch_namespace])
    else:
        kopf.run(clusterwide=True)


if __name__ == "__main__":
    main()
