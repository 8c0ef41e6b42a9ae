"""Tests for the cluster client factory."""

import pytest
import yaml
from kubernetes.client import CoreV1Api, RbacAuthorizationV1Api

from cluster_client import ClusterClient, parse_kubeconfig, server_from_kubeconfig
from models import KubeconfigError

KUBECONFIG = {
    "apiVersion": "v1",
    "kind": "Config",
    "clusters": [
        {
            "name": "cluster",
            "cluster": {
                "server": "https://api.foo.example.com:6443",
                "insecure-skip-tls-verify": True,
            },
        },
        {"name": "other", "cluster": {"server": "https://other:6443"}},
    ],
    "users": [{"name": "admin", "user": {"token": "admin-token"}}],
    "contexts": [{"name": "admin", "context": {"cluster": "cluster", "user": "admin"}}],
    "current-context": "admin",
}


class TestParseKubeconfig:
    """Tests for parse_kubeconfig."""

    def test_parses_bytes(self):
        data = yaml.safe_dump(KUBECONFIG).encode()

        assert parse_kubeconfig(data)["current-context"] == "admin"

    def test_invalid_yaml(self):
        with pytest.raises(KubeconfigError):
            parse_kubeconfig(b"clusters: [unclosed")

    def test_not_a_mapping(self):
        with pytest.raises(KubeconfigError):
            parse_kubeconfig(b"- just\n- a list\n")


class TestServerFromKubeconfig:
    """Tests for server_from_kubeconfig."""

    def test_first_cluster_wins(self):
        assert server_from_kubeconfig(KUBECONFIG) == "https://api.foo.example.com:6443"

    def test_no_clusters(self):
        with pytest.raises(KubeconfigError):
            server_from_kubeconfig({"clusters": []})

    def test_missing_clusters_key(self):
        with pytest.raises(KubeconfigError):
            server_from_kubeconfig({})

    def test_empty_server(self):
        with pytest.raises(KubeconfigError):
            server_from_kubeconfig({"clusters": [{"cluster": {"server": ""}}]})


class TestClusterClient:
    """Tests for ClusterClient constructors."""

    def test_from_kubeconfig(self):
        client = ClusterClient.from_kubeconfig(yaml.safe_dump(KUBECONFIG).encode())

        assert client.server == "https://api.foo.example.com:6443"
        assert isinstance(client.core_api, CoreV1Api)
        assert isinstance(client.rbac_api, RbacAuthorizationV1Api)
        assert client.core_api.api_client.configuration.host == (
            "https://api.foo.example.com:6443"
        )

    def test_from_malformed_kubeconfig(self):
        with pytest.raises(KubeconfigError):
            ClusterClient.from_kubeconfig(b"not: [valid")

    def test_local_uses_in_cluster_address(self):
        client = ClusterClient.local()

        assert client.server == "https://kubernetes.default.svc"

    def test_kinds(self):
        client = ClusterClient.local()

        assert client.secrets.kind == "Secret"
        assert client.service_accounts.kind == "ServiceAccount"
        assert client.cluster_role_bindings.kind == "ClusterRoleBinding"
