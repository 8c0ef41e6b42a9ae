"""Service account bootstrap for clusters registered with Argo CD."""

import logging

from kubernetes.client import (
    RbacV1Subject,
    V1ClusterRoleBinding,
    V1ObjectMeta,
    V1RoleRef,
    V1Secret,
    V1ServiceAccount,
)

from cluster_client import ClusterClient
from constants import (
    CA_CERT_KEY,
    SERVICE_ACCOUNT_NAME_ANNOTATION,
    SERVICE_ACCOUNT_TOKEN_TYPE,
    TOKEN_KEY,
)
from models import (
    ClusterConfig,
    CredentialsNotReadyError,
    IdentityConfig,
    ManagedCluster,
    TLSClientConfig,
)
from resources.upsert import create_or_update_with_retries, no_op
from utils import b64decode_bytes, b64encode_str

logger = logging.getLogger(__name__)


def ensure_service_account(client: ClusterClient, identity: IdentityConfig) -> None:
    """Ensure the operator's service account exists."""
    sa = V1ServiceAccount(
        metadata=V1ObjectMeta(name=identity.name, namespace=identity.namespace),
    )
    op = create_or_update_with_retries(client.service_accounts, sa, no_op)
    logger.debug(
        "Service account %s/%s: %s", identity.namespace, identity.name, op.value
    )


def ensure_cluster_role_binding(
    client: ClusterClient, identity: IdentityConfig
) -> None:
    """Ensure the service account is bound to the admin cluster role."""
    crb = V1ClusterRoleBinding(
        metadata=V1ObjectMeta(name=identity.name),
        subjects=[
            RbacV1Subject(
                kind="ServiceAccount",
                name=identity.name,
                namespace=identity.namespace,
            )
        ],
        role_ref=V1RoleRef(
            api_group="rbac.authorization.k8s.io",
            kind="ClusterRole",
            name=identity.cluster_role,
        ),
    )
    op = create_or_update_with_retries(client.cluster_role_bindings, crb, no_op)
    logger.debug("Cluster role binding %s: %s", identity.name, op.value)


def ensure_token_secret(client: ClusterClient, identity: IdentityConfig) -> None:
    """Ensure a long-lived token secret exists for the service account.

    The token controller fills in ``token`` and ``ca.crt`` after creation.
    """
    secret = V1Secret(
        metadata=V1ObjectMeta(
            name=identity.token_secret_name,
            namespace=identity.namespace,
            annotations={SERVICE_ACCOUNT_NAME_ANNOTATION: identity.name},
        ),
        type=SERVICE_ACCOUNT_TOKEN_TYPE,
    )
    op = create_or_update_with_retries(client.secrets, secret, no_op)
    logger.debug(
        "Token secret %s/%s: %s",
        identity.namespace,
        identity.token_secret_name,
        op.value,
    )


def read_credentials(
    client: ClusterClient, identity: IdentityConfig
) -> tuple[str, str]:
    """Read the bearer token and base64 CA certificate from the token secret.

    The secret is looked up by its derived name, not by anything returned
    on creation.

    Raises:
        CredentialsNotReadyError: If the token controller has not populated
            the secret yet
    """
    secret = client.read_secret(identity.token_secret_name, identity.namespace)
    data = secret.data or {}

    token = b64decode_bytes(data.get(TOKEN_KEY))
    if not token:
        raise CredentialsNotReadyError(
            f"token not found in {identity.namespace}/{identity.token_secret_name}"
        )
    ca_cert = b64decode_bytes(data.get(CA_CERT_KEY))
    if not ca_cert:
        raise CredentialsNotReadyError(
            f"ca.crt not found in {identity.namespace}/{identity.token_secret_name}"
        )

    return token.decode("utf-8"), b64encode_str(ca_cert)


def bootstrap_cluster(
    client: ClusterClient,
    name: str,
    identity: IdentityConfig | None = None,
) -> ManagedCluster:
    """Provision the operator identity on a cluster and extract its credentials.

    Every step is idempotent, so a bootstrap interrupted part way resumes
    on the next reconciliation. Objects are never removed.

    Args:
        client: Client bound to the target cluster
        name: Name the cluster is registered under in Argo CD
        identity: Identity object names (default: hyper-ops-admin in kube-system)

    Returns:
        The cluster with its Argo CD connection config
    """
    identity = identity or IdentityConfig()
    logger.info("Setting up cluster config for %s (server=%s)", name, client.server)

    ensure_service_account(client, identity)
    ensure_cluster_role_binding(client, identity)
    ensure_token_secret(client, identity)
    bearer_token, ca_data = read_credentials(client, identity)

    return ManagedCluster(
        name=name,
        server=client.server,
        config=ClusterConfig(
            bearer_token=bearer_token,
            tls_client_config=TLSClientConfig(ca_data=ca_data),
        ),
    )
