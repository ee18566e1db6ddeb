from types import SimpleNamespace

import pytest

from meshctl.install.base import InstallArgs
from meshctl.install.poller import PollPolicy


class FakeCluster:
    """Records apply/delete calls instead of talking to a cluster."""

    def __init__(self, ready=True, nodes=3, pods=None):
        self.applied = []
        self.deleted = []
        self.namespaces = []
        self.ready = ready
        self.nodes = nodes
        self.pods = pods or []
        self.fail_on = {}
        self.status_queries = 0

    def _record(self, kind, body):
        name = body["metadata"]["name"]
        if (kind, name) in self.fail_on:
            raise self.fail_on[(kind, name)]
        self.applied.append((kind, name))

    def ensure_namespace(self, namespace):
        self.namespaces.append(namespace)

    def apply_config_map(self, body, namespace):
        self._record("ConfigMap", body)

    def apply_service(self, body, namespace):
        self._record("Service", body)

    def apply_deployment(self, body, namespace):
        self._record("Deployment", body)

    def apply_stateful_set(self, body, namespace):
        self._record("StatefulSet", body)

    def apply_role(self, body, namespace):
        self._record("Role", body)

    def apply_role_binding(self, body, namespace):
        self._record("RoleBinding", body)

    def apply_cluster_role(self, body):
        self._record("ClusterRole", body)

    def apply_cluster_role_binding(self, body):
        self._record("ClusterRoleBinding", body)

    def delete_resource(self, category, kind, name, namespace):
        if (kind, name) in self.fail_on:
            raise self.fail_on[(kind, name)]
        self.deleted.append((category, kind, name))
        return True

    def _workload(self):
        self.status_queries += 1
        return SimpleNamespace(
            spec=SimpleNamespace(replicas=1),
            status=SimpleNamespace(ready_replicas=1 if self.ready else 0),
        )

    def get_deployment_status(self, namespace, name):
        return self._workload()

    def get_stateful_set_status(self, namespace, name):
        return self._workload()

    def list_pods(self, namespace, label_selector=""):
        return self.pods

    def list_nodes(self):
        ready = [SimpleNamespace(type="Ready", status="True")]
        return [
            SimpleNamespace(
                metadata=SimpleNamespace(name=f"node-{i}"),
                spec=SimpleNamespace(unschedulable=False),
                status=SimpleNamespace(conditions=ready),
            )
            for i in range(self.nodes)
        ]


def make_pod(name, phase="Running", ready=True, node="node-0"):
    return SimpleNamespace(
        metadata=SimpleNamespace(name=name),
        status=SimpleNamespace(phase=phase, container_statuses=[SimpleNamespace(ready=ready)]),
        spec=SimpleNamespace(node_name=node),
    )


@pytest.fixture
def cluster():
    return FakeCluster()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def install_args(sleeps):
    return InstallArgs(
        namespace="mesh-test",
        poll_policy=PollPolicy(interval=0.1, max_attempts=5, sleep=sleeps.append),
    )


@pytest.fixture
def cluster_factory():
    return FakeCluster


@pytest.fixture
def pod_factory():
    return make_pod
