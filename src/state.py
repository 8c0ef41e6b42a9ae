"""Shared operator state - thread-safe singleton for Kubernetes clients."""

import threading
from dataclasses import dataclass, field

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config

from cluster_client import ClusterClient
from models import ReconcilerConfig
from reconciler import HostedClusterReconciler
from requeue import RequeueScheduler


@dataclass
class OperatorState:
    """Thread-safe operator state container.

    This class provides thread-safe access to shared operator resources:
    - Kubernetes API clients for the local cluster
    - The HostedCluster reconciler
    - Pending requeues of HostedClusters

    Hosted cluster clients are not cached; each reconciliation builds its
    own from the current admin kubeconfig.
    """

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _local_client: ClusterClient | None = field(default=None, repr=False)
    _k8s_custom_api: k8s_client.CustomObjectsApi | None = field(default=None, repr=False)
    _reconciler: HostedClusterReconciler | None = field(default=None, repr=False)
    _k8s_configured: bool = field(default=False, repr=False)
    requeues: RequeueScheduler = field(default_factory=RequeueScheduler, repr=False)

    def _ensure_k8s_config(self) -> None:
        """Ensure Kubernetes configuration is loaded (must hold lock)."""
        if not self._k8s_configured:
            try:
                k8s_config.load_incluster_config()
            except k8s_config.ConfigException:
                k8s_config.load_kube_config()
            self._k8s_configured = True

    def _get_local_client(self, server: str) -> ClusterClient:
        """Get or create the local cluster client (must hold lock)."""
        self._ensure_k8s_config()
        if self._local_client is None:
            self._local_client = ClusterClient.local(server=server)
        return self._local_client

    def _get_custom_api(self) -> k8s_client.CustomObjectsApi:
        """Get or create the CustomObjectsApi client (must hold lock)."""
        self._ensure_k8s_config()
        if self._k8s_custom_api is None:
            self._k8s_custom_api = k8s_client.CustomObjectsApi()
        return self._k8s_custom_api

    def get_reconciler(self) -> HostedClusterReconciler:
        """Get or create the HostedCluster reconciler (thread-safe)."""
        with self._lock:
            if self._reconciler is None:
                config = ReconcilerConfig.from_env()
                self._reconciler = HostedClusterReconciler(
                    self._get_local_client(config.local_cluster_server),
                    self._get_custom_api(),
                    config,
                )
            return self._reconciler

    def close(self) -> None:
        """Cancel pending requeues and drop cached clients."""
        self.requeues.cancel_all()
        with self._lock:
            self._reconciler = None
            self._local_client = None
            self._k8s_custom_api = None


# Global operator state singleton
state = OperatorState()


def get_reconciler() -> HostedClusterReconciler:
    """Get the shared HostedCluster reconciler."""
    return state.get_reconciler()
