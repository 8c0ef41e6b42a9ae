"""Utility functions for the hyper-ops operator."""

import base64

from kubernetes.client import ApiException

from constants import KUBECONFIG_SECRET_SUFFIX


def is_not_found(error: Exception) -> bool:
    """Check if an exception is a Kubernetes 404."""
    return isinstance(error, ApiException) and error.status == 404


def is_conflict(error: Exception) -> bool:
    """Check if an exception is an optimistic-concurrency conflict (409)."""
    return isinstance(error, ApiException) and error.status == 409


def b64encode_str(value: str | bytes) -> str:
    """Encode a value the way the Kubernetes API expects secret data.

    Example: 'foo' -> 'Zm9v'
    """
    if isinstance(value, str):
        value = value.encode("utf-8")
    return base64.b64encode(value).decode("ascii")


def b64decode_bytes(value: str | None) -> bytes:
    """Decode secret data returned by the Kubernetes API.

    Missing values decode to an empty byte string.
    """
    if not value:
        return b""
    return base64.b64decode(value)


def kubeconfig_secret_name(cluster_name: str) -> str:
    """Name of the admin kubeconfig secret HyperShift publishes for a cluster.

    Example: 'foo' -> 'foo-admin-kubeconfig'
    """
    return f"{cluster_name}{KUBECONFIG_SECRET_SUFFIX}"
