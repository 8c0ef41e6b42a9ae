"""In-memory stand-ins for the Kubernetes API used by the tests."""

import base64
import copy
import itertools

import pytest
from kubernetes.client import ApiException

from cluster_client import ClusterClient
from constants import (
    HOSTED_CLUSTER_GROUP,
    HOSTED_CLUSTER_PLURAL,
    HOSTED_CLUSTER_VERSION,
    SERVICE_ACCOUNT_TOKEN_TYPE,
)

_resource_versions = itertools.count(1)


def b64(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


class FakeStore:
    """Objects of one cluster keyed by (kind, namespace, name)."""

    def __init__(self, populate_tokens: bool = True) -> None:
        self.objects: dict[tuple[str, str | None, str], object] = {}
        self.populate_tokens = populate_tokens
        self.writes: list[tuple[str, str, str | None, str]] = []
        # Number of upcoming replace calls to reject with 409
        self.conflicts_to_inject = 0

    def read(self, kind: str, namespace: str | None, name: str) -> object:
        key = (kind, namespace, name)
        if key not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        return copy.deepcopy(self.objects[key])

    def create(self, kind: str, namespace: str | None, body: object) -> object:
        key = (kind, namespace, body.metadata.name)
        if key in self.objects:
            raise ApiException(status=409, reason="AlreadyExists")
        stored = copy.deepcopy(body)
        stored.metadata.namespace = namespace
        stored.metadata.resource_version = str(next(_resource_versions))
        if (
            kind == "Secret"
            and self.populate_tokens
            and stored.type == SERVICE_ACCOUNT_TOKEN_TYPE
        ):
            stored.data = {"token": b64("sa-token"), "ca.crt": b64("ca-cert")}
        self.objects[key] = stored
        self.writes.append(("create", kind, namespace, body.metadata.name))
        return copy.deepcopy(stored)

    def replace(self, kind: str, namespace: str | None, name: str, body: object) -> object:
        key = (kind, namespace, name)
        if key not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        if self.conflicts_to_inject:
            self.conflicts_to_inject -= 1
            # Someone else wrote the object in the meantime
            self.objects[key].metadata.resource_version = str(next(_resource_versions))
            raise ApiException(status=409, reason="Conflict")
        current = self.objects[key]
        if body.metadata.resource_version != current.metadata.resource_version:
            raise ApiException(status=409, reason="Conflict")
        stored = copy.deepcopy(body)
        stored.metadata.resource_version = str(next(_resource_versions))
        self.objects[key] = stored
        self.writes.append(("replace", kind, namespace, name))
        return copy.deepcopy(stored)

    def delete(self, kind: str, namespace: str | None, name: str) -> None:
        key = (kind, namespace, name)
        if key not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        del self.objects[key]
        self.writes.append(("delete", kind, namespace, name))

    def get(self, kind: str, namespace: str | None, name: str) -> object | None:
        return self.objects.get((kind, namespace, name))

    def put(self, kind: str, namespace: str | None, obj: object) -> None:
        """Seed an object without recording a write."""
        stored = copy.deepcopy(obj)
        stored.metadata.namespace = namespace
        stored.metadata.resource_version = str(next(_resource_versions))
        self.objects[(kind, namespace, obj.metadata.name)] = stored


class FakeCoreV1Api:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    def read_namespaced_secret(self, name, namespace):
        return self.store.read("Secret", namespace, name)

    def create_namespaced_secret(self, namespace, body):
        return self.store.create("Secret", namespace, body)

    def replace_namespaced_secret(self, name, namespace, body):
        return self.store.replace("Secret", namespace, name, body)

    def delete_namespaced_secret(self, name, namespace):
        self.store.delete("Secret", namespace, name)

    def read_namespaced_service_account(self, name, namespace):
        return self.store.read("ServiceAccount", namespace, name)

    def create_namespaced_service_account(self, namespace, body):
        return self.store.create("ServiceAccount", namespace, body)

    def replace_namespaced_service_account(self, name, namespace, body):
        return self.store.replace("ServiceAccount", namespace, name, body)


class FakeRbacApi:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    def read_cluster_role_binding(self, name):
        return self.store.read("ClusterRoleBinding", None, name)

    def create_cluster_role_binding(self, body):
        return self.store.create("ClusterRoleBinding", None, body)

    def replace_cluster_role_binding(self, name, body):
        return self.store.replace("ClusterRoleBinding", None, name, body)


class FakeCustomObjectsApi:
    """Serves HostedCluster bodies as plain dicts."""

    def __init__(self) -> None:
        self.hosted_clusters: dict[tuple[str, str], dict] = {}

    def add_hosted_cluster(
        self,
        namespace: str,
        name: str,
        labels: dict[str, str] | None = None,
        deletion_timestamp: str | None = None,
    ) -> dict:
        body = {
            "apiVersion": f"{HOSTED_CLUSTER_GROUP}/{HOSTED_CLUSTER_VERSION}",
            "kind": "HostedCluster",
            "metadata": {
                "name": name,
                "namespace": namespace,
                "labels": dict(labels or {}),
            },
        }
        if deletion_timestamp:
            body["metadata"]["deletionTimestamp"] = deletion_timestamp
        self.hosted_clusters[(namespace, name)] = body
        return body

    def get_namespaced_custom_object(self, group, version, namespace, plural, name):
        assert group == HOSTED_CLUSTER_GROUP
        assert version == HOSTED_CLUSTER_VERSION
        assert plural == HOSTED_CLUSTER_PLURAL
        if (namespace, name) not in self.hosted_clusters:
            raise ApiException(status=404, reason="Not Found")
        return copy.deepcopy(self.hosted_clusters[(namespace, name)])


def make_client(store: FakeStore, server: str) -> ClusterClient:
    return ClusterClient(server, FakeCoreV1Api(store), FakeRbacApi(store))


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    """Skip backoff sleeps in conflict retries."""
    monkeypatch.setattr("resources.upsert.time.sleep", lambda _: None)


@pytest.fixture
def local_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def hosted_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def local_client(local_store) -> ClusterClient:
    return make_client(local_store, "https://kubernetes.default.svc")


@pytest.fixture
def hosted_client(hosted_store) -> ClusterClient:
    return make_client(hosted_store, "https://api.foo.example.com:6443")


@pytest.fixture
def custom_api() -> FakeCustomObjectsApi:
    return FakeCustomObjectsApi()
