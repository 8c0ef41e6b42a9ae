"""Argo CD cluster secret management.

Argo CD discovers clusters from secrets labeled
``argocd.argoproj.io/secret-type: cluster`` in its own namespace. Each secret
carries three data fields: the display name, the API server URL and a JSON
connection config.
"""

import json
import logging
from collections.abc import Mapping

from kubernetes.client import ApiException, V1ObjectMeta, V1Secret

from cluster_client import ClusterClient
from constants import (
    ARGOCD_SECRET_TYPE_CLUSTER,
    ARGOCD_SECRET_TYPE_LABEL,
    CLUSTER_TYPE_LABEL,
    DEFAULT_GITOPS_NAMESPACE,
    GITOPS_NAMESPACE_LABEL,
    HYPER_OPS_LABEL,
)
from models import (
    ClusterConfig,
    ClusterType,
    ManagedCluster,
    OperationResult,
    TLSClientConfig,
)
from resources.upsert import create_or_update_with_retries
from utils import b64encode_str, is_not_found

logger = logging.getLogger(__name__)


def synthesize_secret_data(
    name: str, server: str, bearer_token: str, ca_data: str
) -> dict[str, str]:
    """Build the data fields of an Argo CD cluster secret.

    Example:
        synthesize_secret_data("foo", "https://api.foo:6443", "tok", "Y2E=")
        -> {"name": "foo", "server": "https://api.foo:6443",
            "config": '{"bearerToken":"tok","tlsClientConfig":{"caData":"Y2E="}}'}
    """
    config = ClusterConfig(
        bearer_token=bearer_token,
        tls_client_config=TLSClientConfig(ca_data=ca_data),
    )
    return {
        "name": name,
        "server": server,
        "config": json.dumps(config.to_dict(), separators=(",", ":")),
    }


def mirror_labels(
    labels: Mapping[str, str] | None, cluster_type: ClusterType
) -> dict[str, str]:
    """Compute the labels of a cluster secret from its source labels.

    Only hyper-ops labels are carried over. The type label and the Argo CD
    secret-type label are always set.
    """
    result = {
        key: value
        for key, value in (labels or {}).items()
        if key.startswith(f"{HYPER_OPS_LABEL}/")
    }
    result[CLUSTER_TYPE_LABEL] = cluster_type.value
    result[ARGOCD_SECRET_TYPE_LABEL] = ARGOCD_SECRET_TYPE_CLUSTER
    return result


def resolve_gitops_namespace(
    labels: Mapping[str, str] | None, default: str = DEFAULT_GITOPS_NAMESPACE
) -> str:
    """Namespace the cluster secrets of a HostedCluster belong in."""
    namespace = (labels or {}).get(GITOPS_NAMESPACE_LABEL)
    if not namespace:
        return default
    return namespace


def build_cluster_secret(
    cluster: ManagedCluster, labels: Mapping[str, str], namespace: str
) -> V1Secret:
    """Build the Argo CD cluster secret for a bootstrapped cluster."""
    data = synthesize_secret_data(
        cluster.name,
        cluster.server,
        cluster.config.bearer_token,
        cluster.config.tls_client_config.ca_data,
    )
    return V1Secret(
        metadata=V1ObjectMeta(
            name=cluster.name,
            namespace=namespace,
            labels=dict(labels),
        ),
        data={key: b64encode_str(value) for key, value in data.items()},
        type="Opaque",
    )


def ensure_cluster_secret(
    client: ClusterClient,
    cluster: ManagedCluster,
    labels: Mapping[str, str],
    namespace: str,
) -> OperationResult:
    """Create or update the Argo CD cluster secret for a cluster.

    Labels, data and type are overwritten, so drift on an existing secret
    is corrected. A secret already in the desired state is not written.
    """
    desired = build_cluster_secret(cluster, labels, namespace)

    def mutate(secret: V1Secret) -> None:
        secret.metadata.labels = dict(desired.metadata.labels)
        secret.data = dict(desired.data)
        secret.type = desired.type

    op = create_or_update_with_retries(client.secrets, desired, mutate)
    logger.info(f"Argo CD cluster secret {namespace}/{cluster.name}: {op.value}")
    return op


def delete_cluster_secret(client: ClusterClient, name: str, namespace: str) -> bool:
    """Delete an Argo CD cluster secret.

    Returns:
        True if a secret was deleted, False if it did not exist
    """
    try:
        client.delete_secret(name, namespace)
    except ApiException as e:
        if is_not_found(e):
            logger.debug(f"Argo CD cluster secret {namespace}/{name} already gone")
            return False
        raise
    logger.info(f"Deleted Argo CD cluster secret {namespace}/{name}")
    return True
