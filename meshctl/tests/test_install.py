import threading
from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException

from meshctl.errors import (
    DeployError,
    NotFoundError,
    PollCancelled,
    ReadinessTimeout,
    TransientQueryError,
)
from meshctl.install import InstallArgs, InstallPhase, Installer, Stage, StageContext, StageState
from meshctl.install.base import batch_deploy_resources
from meshctl.install.kube import ClusterClient, deployment_ready
from meshctl.install.poller import PollPolicy, wait_until_ready
from meshctl.install.stages import (
    STAGE_NAMES,
    ControlPlaneStage,
    MeshControllerStage,
    OperatorStage,
    select_stages,
)


class Countdown:
    """Predicate that turns ready on the given call."""

    def __init__(self, ready_on=None, errors=()):
        self.calls = 0
        self.ready_on = ready_on
        self.errors = list(errors)

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.ready_on is not None and self.calls >= self.ready_on


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def sleep(self, seconds):
        self.now += seconds

    def __call__(self):
        return self.now


# Poller

def test_ready_on_fifth_query_stops_polling():
    sleeps = []
    predicate = Countdown(ready_on=5)

    attempts = wait_until_ready(predicate, PollPolicy(sleep=sleeps.append))

    assert attempts == 5
    assert predicate.calls == 5
    assert sleeps == [0.1] * 4


def test_never_ready_times_out_after_max_attempts():
    sleeps = []
    predicate = Countdown()

    with pytest.raises(ReadinessTimeout, match="600 attempts"):
        wait_until_ready(predicate, PollPolicy(sleep=sleeps.append), "operator")

    assert predicate.calls == 600
    assert len(sleeps) == 599


def test_transient_errors_count_as_not_ready():
    predicate = Countdown(ready_on=3, errors=[TransientQueryError("503"), TransientQueryError("timeout")])

    assert wait_until_ready(predicate, PollPolicy(sleep=lambda s: None)) == 3


def test_other_errors_end_polling():
    predicate = Countdown(ready_on=3, errors=[ApiException(status=403, reason="Forbidden")])

    with pytest.raises(ApiException):
        wait_until_ready(predicate, PollPolicy(sleep=lambda s: None))
    assert predicate.calls == 1


def test_cancel_stops_before_next_query():
    cancel = threading.Event()
    cancel.set()
    predicate = Countdown(ready_on=1)

    with pytest.raises(PollCancelled):
        wait_until_ready(predicate, PollPolicy(cancel=cancel, sleep=lambda s: None))
    assert predicate.calls == 0


def test_deadline_bounds_total_wait():
    clock = FakeClock()
    predicate = Countdown()
    policy = PollPolicy(interval=0.1, deadline=0.25, sleep=clock.sleep, clock=clock)

    with pytest.raises(ReadinessTimeout, match="within"):
        wait_until_ready(predicate, policy)
    assert predicate.calls == 4


# Batch deploy

def test_batch_stops_at_first_failure_and_reraises_it(cluster, install_args):
    boom = RuntimeError("resource 3 rejected")

    def make(i):
        def func(c, args):
            if i == 3:
                raise boom
            c.apply_config_map({"metadata": {"name": f"cm-{i}"}}, args.namespace)
        return func

    with pytest.raises(RuntimeError) as exc:
        batch_deploy_resources(cluster, install_args, [make(i) for i in range(1, 6)])

    assert exc.value is boom
    assert cluster.applied == [("ConfigMap", "cm-1"), ("ConfigMap", "cm-2")]


def test_empty_batch_is_a_no_op(cluster, install_args):
    batch_deploy_resources(cluster, install_args, [])
    assert cluster.applied == []


# Cluster client

def test_apply_patches_when_object_exists():
    cluster = ClusterClient(api_client=MagicMock())
    cluster.core = MagicMock()
    cluster.core.create_namespaced_config_map.side_effect = ApiException(status=409, reason="Conflict")
    body = {"metadata": {"name": "easemesh-cluster-cm"}}

    cluster.apply_config_map(body, "easemesh")

    cluster.core.patch_namespaced_config_map.assert_called_once_with("easemesh-cluster-cm", "easemesh", body)


def test_apply_propagates_other_api_errors():
    cluster = ClusterClient(api_client=MagicMock())
    cluster.apps = MagicMock()
    cluster.apps.create_namespaced_deployment.side_effect = ApiException(status=403, reason="Forbidden")

    with pytest.raises(ApiException):
        cluster.apply_deployment({"metadata": {"name": "easemesh-operator"}}, "easemesh")
    cluster.apps.patch_namespaced_deployment.assert_not_called()


def test_delete_missing_object_returns_false():
    cluster = ClusterClient(api_client=MagicMock())
    cluster.core = MagicMock()
    cluster.core.delete_namespaced_service.side_effect = ApiException(status=404, reason="Not Found")

    assert cluster.delete_resource("core", "services", "easemesh-ingress-service", "easemesh") is False
    with pytest.raises(ValueError):
        cluster.delete_resource("core", "secrets", "x", "easemesh")


def test_status_query_maps_server_errors_to_transient():
    cluster = ClusterClient(api_client=MagicMock())
    cluster.apps = MagicMock()
    cluster.apps.read_namespaced_deployment_status.side_effect = ApiException(status=503, reason="Unavailable")

    with pytest.raises(TransientQueryError):
        deployment_ready(cluster, "easemesh", "easemesh-operator")


def test_missing_deployment_is_not_ready():
    cluster = MagicMock()
    cluster.get_deployment_status.side_effect = ApiException(status=404, reason="Not Found")

    assert deployment_ready(cluster, "easemesh", "easemesh-operator") is False


# Stages

def test_operator_stage_applies_everything_then_waits(cluster, install_args):
    OperatorStage().deploy(StageContext(install_args, cluster))

    kinds = [kind for kind, _ in cluster.applied]
    assert kinds == [
        "ConfigMap", "Service", "Role",
        "ClusterRole", "ClusterRole", "ClusterRole",
        "RoleBinding",
        "ClusterRoleBinding", "ClusterRoleBinding", "ClusterRoleBinding",
        "Deployment",
    ]
    assert cluster.status_queries == 1


def test_operator_stage_stops_before_deployment_on_rbac_failure(cluster, install_args):
    cluster.fail_on[("Role", "mesh-operator-leader-election-role")] = ApiException(status=403, reason="Forbidden")

    with pytest.raises(ApiException):
        OperatorStage().deploy(StageContext(install_args, cluster))

    assert ("Deployment", "easemesh-operator") not in cluster.applied
    assert cluster.status_queries == 0


def test_operator_stage_times_out_when_never_ready(cluster_factory, install_args, sleeps):
    cluster = cluster_factory(ready=False)

    with pytest.raises(ReadinessTimeout):
        OperatorStage().deploy(StageContext(install_args, cluster))
    assert cluster.status_queries == 5
    assert len(sleeps) == 4


def test_clear_deletes_whole_manifest_despite_failures(cluster, install_args):
    stage = OperatorStage()
    cluster.fail_on[("services", "mesh-operator-controller-manager-metrics-service")] = RuntimeError("denied")

    stage.clear(StageContext(install_args, cluster))

    expected = [(i.category, i.kind, i.name) for i in stage.teardown_manifest(install_args)]
    assert len(expected) == 11
    assert cluster.deleted == [item for item in expected if item[1] != "services"]


def test_describe_phases(cluster_factory, pod_factory, install_args):
    cluster = cluster_factory(pods=[pod_factory("easemesh-operator-7d9f", node="worker-1")])
    context = StageContext(install_args, cluster)
    stage = OperatorStage()

    assert stage.describe(context, InstallPhase.BEGIN) == \
        "Begin to install mesh operator in the namespace: mesh-test"
    assert stage.describe(context, InstallPhase.ERROR, RuntimeError("boom")) == \
        "Failed to install mesh operator in the namespace: mesh-test: boom"

    end = stage.describe(context, InstallPhase.END)
    assert "Mesh operator deployed successfully, deployment: easemesh-operator" in end
    assert "easemesh-operator-7d9f" in end
    assert "worker-1" in end


def test_control_plane_pre_check_needs_enough_nodes(cluster_factory, install_args):
    context = StageContext(install_args, cluster_factory(nodes=2))
    with pytest.raises(DeployError):
        ControlPlaneStage().pre_check(context)

    ControlPlaneStage().pre_check(StageContext(install_args, cluster_factory(nodes=3)))


def test_control_plane_deploys_stateful_set(cluster, install_args):
    ControlPlaneStage().deploy(StageContext(install_args, cluster))

    assert cluster.applied[-1][0] == "StatefulSet"
    assert [kind for kind, _ in cluster.applied].count("Service") == 2


class FakeAdmin:
    def __init__(self, members=("member-0",)):
        self.members = list(members)
        self.objects = {}

    def list_members(self):
        return self.members

    def apply_object(self, spec):
        self.objects[spec["name"]] = spec

    def get_object(self, name):
        if name not in self.objects:
            raise NotFoundError(f"{name} not found", 404)
        return self.objects[name]

    def delete_object(self, name):
        self.objects.pop(name, None)


def test_mesh_controller_registers_object(cluster, install_args):
    admin = FakeAdmin()
    stage = MeshControllerStage(admin_factory=lambda url: admin)
    context = StageContext(install_args, cluster)

    stage.pre_check(context)
    stage.deploy(context)

    assert admin.objects["easemesh-controller"]["kind"] == "MeshController"
    assert cluster.applied == []

    stage.clear(context)
    assert admin.objects == {}


def test_mesh_controller_pre_check_requires_members(cluster, install_args):
    stage = MeshControllerStage(admin_factory=lambda url: FakeAdmin(members=()))

    with pytest.raises(DeployError, match="no members"):
        stage.pre_check(StageContext(install_args, cluster))


def test_select_stages_keeps_install_order():
    assert STAGE_NAMES == ["control-plane", "mesh-controller", "operator", "ingress"]
    assert [s.name for s in select_stages(["ingress", "control-plane"])] == ["control-plane", "ingress"]
    with pytest.raises(ValueError):
        select_stages(["sidecar"])


# Installer

class RecordingStage(Stage):
    def __init__(self, name, log, fail=False, ready=True):
        self.name = name
        self.title = name
        self.log = log
        self.fail = fail
        self.ready = ready

    def pre_check(self, context):
        self.log.append(("pre_check", self.name))

    def apply(self, context):
        self.log.append(("deploy", self.name))
        if self.fail:
            raise DeployError(f"{self.name} broke")

    def wait_ready(self, context):
        self.log.append(("poll", self.name))
        if not self.ready:
            raise ReadinessTimeout(f"{self.name} not ready after 5 attempts")
        return 1

    def clear(self, context):
        self.log.append(("clear", self.name))

    def describe(self, context, phase, error=None):
        return f"{phase.value} {self.name}"


def test_installer_runs_stages_in_order(cluster, install_args):
    log, echoed = [], []
    stages = [RecordingStage(n, log) for n in ("a", "b", "c")]

    Installer(cluster, install_args, stages, echo=echoed.append).install()

    assert cluster.namespaces == ["mesh-test"]
    assert log == [
        ("pre_check", "a"), ("deploy", "a"), ("poll", "a"),
        ("pre_check", "b"), ("deploy", "b"), ("poll", "b"),
        ("pre_check", "c"), ("deploy", "c"), ("poll", "c"),
    ]
    assert echoed == ["begin a", "end a", "begin b", "end b", "begin c", "end c"]


def test_installer_stops_on_failure_without_cleanup(cluster, install_args):
    log, echoed = [], []
    stages = [RecordingStage("a", log), RecordingStage("b", log, fail=True), RecordingStage("c", log)]

    installer = Installer(cluster, install_args, stages, echo=echoed.append)

    with pytest.raises(DeployError, match="b broke"):
        installer.install()

    assert ("deploy", "c") not in log
    assert ("poll", "b") not in log
    assert not any(call == "clear" for call, _ in log)
    assert echoed[-1] == "error b"
    assert installer.states == {
        "a": StageState.READY,
        "b": StageState.FAILED,
        "c": StageState.NOT_STARTED,
    }


def test_installer_reports_readiness_timeout(cluster, install_args):
    log, echoed = [], []
    installer = Installer(cluster, install_args, [RecordingStage("a", log, ready=False)], echo=echoed.append)

    with pytest.raises(ReadinessTimeout):
        installer.install()

    assert log == [("pre_check", "a"), ("deploy", "a"), ("poll", "a")]
    assert echoed == ["begin a", "error a"]
    assert installer.states["a"] == StageState.FAILED


def test_installer_cleans_up_in_reverse_when_asked(cluster, install_args):
    log = []
    install_args.clean_when_failed = True
    stages = [RecordingStage("a", log), RecordingStage("b", log, fail=True), RecordingStage("c", log)]

    installer = Installer(cluster, install_args, stages, echo=lambda msg: None)
    with pytest.raises(DeployError):
        installer.install()

    assert [name for call, name in log if call == "clear"] == ["c", "b", "a"]
    assert installer.states == {
        "a": StageState.NOT_STARTED,
        "b": StageState.FAILED,
        "c": StageState.NOT_STARTED,
    }


def test_install_args_derive_peer_urls():
    args = InstallArgs(namespace="mesh", control_plane_replicas=2, image_registry="registry.local/")

    assert args.control_plane_join_urls == [
        "http://easemesh-control-plane-0.easemesh-controlplane-hs.mesh:2379",
        "http://easemesh-control-plane-1.easemesh-controlplane-hs.mesh:2379",
    ]
    assert args.image("megaease/easegress:latest") == "registry.local/megaease/easegress:latest"


def test_stage_context_exposes_namespace(cluster):
    context = StageContext(InstallArgs(namespace="ns-1"), cluster)
    assert context.namespace == "ns-1"
