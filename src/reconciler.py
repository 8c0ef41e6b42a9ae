"""Reconciliation of HostedClusters into Argo CD cluster secrets.

For every watched HostedCluster the reconciler:
- registers the local cluster with Argo CD (always)
- bootstraps the hosted cluster through its admin kubeconfig and registers
  it with Argo CD (unless the enabled label is "false")
- removes the hosted cluster's secret once the HostedCluster is deleted

The GitOps namespace is resolved from the HostedCluster's labels on every
call and passed down explicitly, so concurrent reconciliations of different
HostedClusters never see each other's namespace.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from kubernetes.client import ApiException, CustomObjectsApi

from cluster_client import ClusterClient
from constants import (
    DISABLED_VALUE,
    ENABLED_LABEL,
    HOSTED_CLUSTER_GROUP,
    HOSTED_CLUSTER_PLURAL,
    HOSTED_CLUSTER_VERSION,
    KUBECONFIG_SECRET_KEY,
)
from metrics import BOOTSTRAP_TOTAL
from models import (
    ClusterType,
    CredentialsNotReadyError,
    KubeconfigError,
    ManagedCluster,
    OperationResult,
    ReconcileAction,
    ReconcileResult,
    ReconcilerConfig,
)
from resources.bootstrap import bootstrap_cluster
from resources.cluster_secret import (
    delete_cluster_secret,
    ensure_cluster_secret,
    mirror_labels,
    resolve_gitops_namespace,
)
from utils import b64decode_bytes, is_not_found, kubeconfig_secret_name

logger = logging.getLogger(__name__)

ClientFactory = Callable[[bytes], ClusterClient]


def is_watched(labels: Mapping[str, str] | None = None, **_: Any) -> bool:
    """Event filter: only HostedClusters carrying the enabled label are handled.

    The label value is not checked here; "false" still reaches the
    reconciler so the local cluster stays registered.
    """
    return ENABLED_LABEL in (labels or {})


def is_enabled(labels: Mapping[str, str] | None) -> bool:
    """Whether the hosted cluster itself should be registered."""
    return (labels or {}).get(ENABLED_LABEL) != DISABLED_VALUE


class HostedClusterReconciler:
    """Drives bootstrap and secret projection for HostedClusters."""

    def __init__(
        self,
        local_client: ClusterClient,
        custom_api: CustomObjectsApi,
        config: ReconcilerConfig | None = None,
        client_factory: ClientFactory = ClusterClient.from_kubeconfig,
    ) -> None:
        """Initialize the reconciler.

        Args:
            local_client: Client for the cluster the operator runs in; also
                where HostedClusters and Argo CD secrets live
            custom_api: CustomObjectsApi used to read HostedClusters
            config: Reconciler settings (default: ReconcilerConfig())
            client_factory: Builds a hosted cluster client from kubeconfig bytes
        """
        self.local_client = local_client
        self.custom_api = custom_api
        self.config = config or ReconcilerConfig()
        self.client_factory = client_factory

    def get_hosted_cluster(self, namespace: str, name: str) -> dict[str, Any] | None:
        """Read a HostedCluster, returning None if it does not exist."""
        try:
            return self.custom_api.get_namespaced_custom_object(
                group=HOSTED_CLUSTER_GROUP,
                version=HOSTED_CLUSTER_VERSION,
                namespace=namespace,
                plural=HOSTED_CLUSTER_PLURAL,
                name=name,
            )
        except ApiException as e:
            if is_not_found(e):
                return None
            raise

    def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """Reconcile one HostedCluster.

        Errors other than not-found propagate; retrying is left to Kopf.
        """
        hosted_cluster = self.get_hosted_cluster(namespace, name)
        if hosted_cluster is None:
            logger.debug(f"HostedCluster {namespace}/{name} not found, nothing to do")
            return ReconcileResult(action=ReconcileAction.NOT_FOUND)

        meta = hosted_cluster.get("metadata", {})
        labels: dict[str, str] = meta.get("labels") or {}
        gitops_namespace = resolve_gitops_namespace(
            labels, self.config.default_gitops_namespace
        )

        if meta.get("deletionTimestamp"):
            logger.info(f"HostedCluster {namespace}/{name} is being deleted")
            delete_cluster_secret(self.local_client, name, gitops_namespace)
            return ReconcileResult(
                action=ReconcileAction.DELETED, namespace=gitops_namespace
            )

        result = ReconcileResult(
            action=ReconcileAction.LOCAL_ONLY, namespace=gitops_namespace
        )
        result.local_secret = self.register_local_cluster(gitops_namespace)

        if not is_enabled(labels):
            logger.info(
                f"HostedCluster {namespace}/{name} has {ENABLED_LABEL}=false, "
                "skipping hosted cluster registration"
            )
            return result

        result.hosted_secret = self.register_hosted_cluster(
            namespace, name, labels, gitops_namespace
        )
        result.action = ReconcileAction.PROVISIONED
        return result

    def register_local_cluster(self, gitops_namespace: str) -> OperationResult:
        """Bootstrap the operator's own cluster and project its secret."""
        cluster = self._bootstrap(
            self.local_client, self.config.local_cluster_name, ClusterType.LOCAL
        )
        return ensure_cluster_secret(
            self.local_client,
            cluster,
            mirror_labels({}, ClusterType.LOCAL),
            gitops_namespace,
        )

    def register_hosted_cluster(
        self,
        namespace: str,
        name: str,
        labels: Mapping[str, str],
        gitops_namespace: str,
    ) -> OperationResult:
        """Bootstrap a hosted cluster and project its secret."""
        client = self.hosted_cluster_client(namespace, name)
        cluster = self._bootstrap(client, name, ClusterType.HOSTED)
        return ensure_cluster_secret(
            self.local_client,
            cluster,
            mirror_labels(labels, ClusterType.HOSTED),
            gitops_namespace,
        )

    def hosted_cluster_client(self, namespace: str, name: str) -> ClusterClient:
        """Build a client from the HostedCluster's admin kubeconfig secret.

        Raises:
            KubeconfigError: If the secret or its kubeconfig key is missing
        """
        secret_name = kubeconfig_secret_name(name)
        try:
            secret = self.local_client.read_secret(secret_name, namespace)
        except ApiException as e:
            if is_not_found(e):
                raise KubeconfigError(
                    f"Kubeconfig secret {namespace}/{secret_name} not found"
                ) from e
            raise

        kubeconfig = b64decode_bytes((secret.data or {}).get(KUBECONFIG_SECRET_KEY))
        if not kubeconfig:
            raise KubeconfigError(
                f"Kubeconfig secret {namespace}/{secret_name} has no "
                f"{KUBECONFIG_SECRET_KEY!r} key"
            )
        return self.client_factory(kubeconfig)

    def _bootstrap(
        self, client: ClusterClient, name: str, cluster_type: ClusterType
    ) -> ManagedCluster:
        try:
            cluster = bootstrap_cluster(client, name, self.config.identity)
        except CredentialsNotReadyError:
            BOOTSTRAP_TOTAL.labels(
                cluster_type=cluster_type.value, status="not_ready"
            ).inc()
            raise
        except Exception:
            BOOTSTRAP_TOTAL.labels(cluster_type=cluster_type.value, status="error").inc()
            raise
        BOOTSTRAP_TOTAL.labels(cluster_type=cluster_type.value, status="success").inc()
        return cluster
