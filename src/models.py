"""Domain models for the hyper-ops operator.

This module defines typed data structures for the credentials mirrored
into Argo CD and the configuration of the reconciler.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from constants import (
    DEFAULT_GITOPS_NAMESPACE,
    IDENTITY_CLUSTER_ROLE,
    IDENTITY_NAME,
    IDENTITY_NAMESPACE,
    LOCAL_CLUSTER_NAME,
    LOCAL_CLUSTER_SERVER,
)


# =============================================================================
# Enums for constrained values
# =============================================================================


class ClusterType(Enum):
    """Kind of cluster a projected secret points at."""

    LOCAL = "local"
    HOSTED = "hosted"


class ReconcileAction(Enum):
    """Outcome of a single reconciliation."""

    NOT_FOUND = "NotFound"
    DELETED = "Deleted"
    LOCAL_ONLY = "LocalOnly"
    PROVISIONED = "Provisioned"


class OperationResult(Enum):
    """Result of a create-or-update call."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


# =============================================================================
# Dataclasses for credentials and configuration
# =============================================================================


@dataclass(frozen=True)
class TLSClientConfig:
    """TLS settings Argo CD uses to reach a cluster."""

    ca_data: str

    def to_dict(self) -> dict[str, str]:
        return {"caData": self.ca_data}


@dataclass(frozen=True)
class ClusterConfig:
    """Argo CD cluster connection config."""

    bearer_token: str
    tls_client_config: TLSClientConfig

    def to_dict(self) -> dict[str, Any]:
        """Convert to the shape of the Argo CD ``config`` secret field."""
        return {
            "bearerToken": self.bearer_token,
            "tlsClientConfig": self.tls_client_config.to_dict(),
        }


@dataclass(frozen=True)
class ManagedCluster:
    """A bootstrapped cluster ready to be registered with Argo CD.

    Built fresh on every reconciliation and never persisted directly.
    """

    name: str
    server: str
    config: ClusterConfig


@dataclass(frozen=True)
class IdentityConfig:
    """Names of the identity objects provisioned on a target cluster."""

    name: str = IDENTITY_NAME
    namespace: str = IDENTITY_NAMESPACE
    cluster_role: str = IDENTITY_CLUSTER_ROLE

    @property
    def token_secret_name(self) -> str:
        return f"{self.name}-token"


@dataclass(frozen=True)
class ReconcilerConfig:
    """Settings for the hosted cluster reconciler."""

    default_gitops_namespace: str = DEFAULT_GITOPS_NAMESPACE
    local_cluster_name: str = LOCAL_CLUSTER_NAME
    local_cluster_server: str = LOCAL_CLUSTER_SERVER
    identity: IdentityConfig = field(default_factory=IdentityConfig)

    @classmethod
    def from_env(cls) -> "ReconcilerConfig":
        """Create from environment variables.

        DEFAULT_GITOPS_NAMESPACE: namespace used when a HostedCluster has no
            gitops-namespace label (default: openshift-gitops)
        """
        return cls(
            default_gitops_namespace=os.environ.get(
                "DEFAULT_GITOPS_NAMESPACE", DEFAULT_GITOPS_NAMESPACE
            ),
        )


@dataclass
class ReconcileResult:
    """What a reconciliation did."""

    action: ReconcileAction
    namespace: str | None = None
    local_secret: OperationResult | None = None
    hosted_secret: OperationResult | None = None


# =============================================================================
# Exceptions
# =============================================================================


class OperatorError(Exception):
    """Base exception for operator errors."""

    pass


class KubeconfigError(OperatorError):
    """A hosted cluster kubeconfig is missing or cannot be parsed."""

    pass


class CredentialsNotReadyError(OperatorError):
    """The service account token secret has not been populated yet."""

    pass


class ConflictRetryExhaustedError(OperatorError):
    """An update kept conflicting after all retries were used."""

    pass
