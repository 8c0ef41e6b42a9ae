"""Kubernetes client wrapper for local and hosted clusters."""

import logging
from typing import Any

import yaml
from kubernetes import config as k8s_config
from kubernetes.client import (
    ApiClient,
    CoreV1Api,
    RbacAuthorizationV1Api,
    V1ClusterRoleBinding,
    V1Secret,
    V1ServiceAccount,
)

from constants import LOCAL_CLUSTER_SERVER
from models import KubeconfigError
from resources.upsert import ObjectKind

logger = logging.getLogger(__name__)


def parse_kubeconfig(data: bytes | str) -> dict[str, Any]:
    """Parse a kubeconfig document.

    Raises:
        KubeconfigError: If the document is not a YAML mapping
    """
    try:
        document = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise KubeconfigError(f"Unparseable kubeconfig: {e}") from e
    if not isinstance(document, dict):
        raise KubeconfigError("Kubeconfig is not a mapping")
    return document


def server_from_kubeconfig(kubeconfig: dict[str, Any]) -> str:
    """Return the API server address of the first cluster entry."""
    try:
        server = kubeconfig["clusters"][0]["cluster"]["server"]
    except (KeyError, IndexError, TypeError) as e:
        raise KubeconfigError("Kubeconfig has no cluster server entry") from e
    if not server:
        raise KubeconfigError("Kubeconfig cluster server is empty")
    return server


class ClusterClient:
    """Typed access to the API server of one cluster.

    The bootstrapper and secret synthesizer only see this interface; whether
    it points at the operator's own cluster or at a hosted cluster depends on
    which constructor built it.
    """

    def __init__(
        self,
        server: str,
        core_api: CoreV1Api,
        rbac_api: RbacAuthorizationV1Api,
    ) -> None:
        """Initialize the client.

        Args:
            server: API server URL registered with Argo CD
            core_api: CoreV1Api bound to the cluster
            rbac_api: RbacAuthorizationV1Api bound to the cluster
        """
        self.server = server
        self.core_api = core_api
        self.rbac_api = rbac_api

    @classmethod
    def local(
        cls, api_client: ApiClient | None = None, server: str = LOCAL_CLUSTER_SERVER
    ) -> "ClusterClient":
        """Client for the cluster the operator runs in.

        The server is the fixed in-cluster address rather than whatever the
        operator's own configuration points at, since Argo CD runs in the
        same cluster.
        """
        return cls(server, CoreV1Api(api_client), RbacAuthorizationV1Api(api_client))

    @classmethod
    def from_kubeconfig(cls, data: bytes | str) -> "ClusterClient":
        """Client for a remote cluster described by a kubeconfig document."""
        kubeconfig = parse_kubeconfig(data)
        server = server_from_kubeconfig(kubeconfig)
        try:
            api_client = k8s_config.new_client_from_config_dict(
                kubeconfig, persist_config=False
            )
        except k8s_config.ConfigException as e:
            raise KubeconfigError(f"Invalid kubeconfig: {e}") from e
        logger.debug("Built client for cluster at %s", server)
        return cls(
            server, CoreV1Api(api_client), RbacAuthorizationV1Api(api_client)
        )

    @property
    def secrets(self) -> ObjectKind[V1Secret]:
        core = self.core_api
        return ObjectKind(
            kind="Secret",
            read=lambda name, namespace: core.read_namespaced_secret(name, namespace),
            create=lambda namespace, body: core.create_namespaced_secret(
                namespace, body
            ),
            replace=lambda name, namespace, body: core.replace_namespaced_secret(
                name, namespace, body
            ),
        )

    @property
    def service_accounts(self) -> ObjectKind[V1ServiceAccount]:
        core = self.core_api
        return ObjectKind(
            kind="ServiceAccount",
            read=lambda name, namespace: core.read_namespaced_service_account(
                name, namespace
            ),
            create=lambda namespace, body: core.create_namespaced_service_account(
                namespace, body
            ),
            replace=lambda name, namespace, body: (
                core.replace_namespaced_service_account(name, namespace, body)
            ),
        )

    @property
    def cluster_role_bindings(self) -> ObjectKind[V1ClusterRoleBinding]:
        rbac = self.rbac_api
        return ObjectKind(
            kind="ClusterRoleBinding",
            read=lambda name, _namespace: rbac.read_cluster_role_binding(name),
            create=lambda _namespace, body: rbac.create_cluster_role_binding(body),
            replace=lambda name, _namespace, body: rbac.replace_cluster_role_binding(
                name, body
            ),
        )

    def read_secret(self, name: str, namespace: str) -> V1Secret:
        """Read a secret; ApiException propagates, 404 included."""
        return self.core_api.read_namespaced_secret(name, namespace)

    def delete_secret(self, name: str, namespace: str) -> None:
        """Delete a secret; ApiException propagates, 404 included."""
        self.core_api.delete_namespaced_secret(name, namespace)

    def __repr__(self) -> str:
        return f"ClusterClient(server={self.server!r})"
