"""Shared building blocks of the mesh install stages."""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from ..config import Config
from .kube import ClusterClient, deployment_ready
from .poller import PollPolicy, wait_until_ready
from .teardown import TeardownItem, clear_resources

logger = logging.getLogger(__name__)

DEFAULT_MESH_CONTROL_PLANE_NAME = "easemesh-control-plane"
DEFAULT_MESH_CLIENT_PORT_NAME = "client-port"
DEFAULT_MESH_PEER_PORT_NAME = "peer-port"
DEFAULT_MESH_ADMIN_PORT_NAME = "admin-port"
DEFAULT_MESH_CONTROL_PLANE_PUBLIC_SERVICE_NAME = "easemesh-controlplane-public"
DEFAULT_MESH_CONTROL_PLANE_HEADLESS_SERVICE_NAME = "easemesh-controlplane-hs"
DEFAULT_MESH_CONTROL_PLANE_CONFIG = "easemesh-cluster-cm"
DEFAULT_MESH_CONTROL_PLANE_STORAGE_PATH = "/opt/easemesh"

DEFAULT_MESH_CONTROLLER_NAME = "easemesh-controller"

DEFAULT_MESH_OPERATOR_NAME = "easemesh-operator"
DEFAULT_MESH_OPERATOR_METRICS_SERVICE_NAME = "mesh-operator-controller-manager-metrics-service"

DEFAULT_MESH_INGRESS_CONFIG = "easemesh-ingress-config"
DEFAULT_MESH_INGRESS_SERVICE = "easemesh-ingress-service"
DEFAULT_MESH_INGRESS_CONTROLLER_NAME = "easemesh-ingress-easegress"

WRITER_CLUSTER_ROLE = "writer"
READER_CLUSTER_ROLE = "reader"


class InstallPhase(str, Enum):
    """Phases reported while a stage is installed."""
    BEGIN = 'begin'
    END = 'end'
    ERROR = 'error'


class StageState(str, Enum):
    """Where a stage is in its install lifecycle."""
    NOT_STARTED = 'not_started'
    PRE_CHECKING = 'pre_checking'
    DEPLOYING = 'deploying'
    POLLING = 'polling'
    READY = 'ready'
    FAILED = 'failed'
    CLEARING = 'clearing'


@dataclass
class InstallArgs:
    """Settings shared by all install stages."""
    namespace: str = Config.MESH_NAMESPACE
    image_registry: str = Config.IMAGE_REGISTRY
    operator_image: str = "megaease/easemesh-operator:latest"
    control_plane_image: str = "megaease/easegress:server-sidecar"
    ingress_image: str = "megaease/easegress:server-sidecar"
    cluster_name: str = "easemesh-control-plane"
    control_plane_replicas: int = 3
    control_plane_client_port: int = 2379
    control_plane_peer_port: int = 2380
    control_plane_admin_port: int = 2381
    control_plane_node_port: int = 30380
    control_plane_storage_path: str = DEFAULT_MESH_CONTROL_PLANE_STORAGE_PATH
    control_plane_url: str = Config.CONTROL_PLANE_ADMIN_URL
    ingress_replicas: int = 1
    ingress_port: int = 19527
    ingress_node_port: int = 30080
    heartbeat_interval: str = "5s"
    registry_type: str = "eureka"
    clean_when_failed: bool = False
    poll_policy: Optional[PollPolicy] = field(default=None, repr=False)

    def image(self, name: str) -> str:
        registry = self.image_registry.rstrip("/")
        return f"{registry}/{name}" if registry else name

    @property
    def control_plane_peers(self) -> List[str]:
        return [
            f"http://{DEFAULT_MESH_CONTROL_PLANE_NAME}-{i}."
            f"{DEFAULT_MESH_CONTROL_PLANE_HEADLESS_SERVICE_NAME}.{self.namespace}:{self.control_plane_peer_port}"
            for i in range(self.control_plane_replicas)
        ]

    @property
    def control_plane_join_urls(self) -> List[str]:
        return [
            f"http://{DEFAULT_MESH_CONTROL_PLANE_NAME}-{i}."
            f"{DEFAULT_MESH_CONTROL_PLANE_HEADLESS_SERVICE_NAME}.{self.namespace}:{self.control_plane_client_port}"
            for i in range(self.control_plane_replicas)
        ]


@dataclass(frozen=True)
class StageContext:
    """Everything a stage needs for one call."""
    args: InstallArgs
    client: ClusterClient

    @property
    def namespace(self) -> str:
        return self.args.namespace


# One idempotent "make resource X match its spec" step
InstallFunc = Callable[[ClusterClient, InstallArgs], None]


def batch_deploy_resources(cluster: ClusterClient, args: InstallArgs, funcs: Sequence[InstallFunc]) -> None:
    """Run install functions in order, stopping at the first failure.

    Objects applied before the failure stay in place; re-running the batch
    applies them again.
    """
    for index, func in enumerate(funcs, start=1):
        logger.debug(f"Applying resource {index}/{len(funcs)} ({getattr(func, '__name__', func)})")
        try:
            func(cluster, args)
        except Exception as e:
            logger.error(f"❌ Resource {index}/{len(funcs)} failed: {e}")
            raise


def labels_selector(labels: Dict[str, str]) -> str:
    return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))


def format_pod_status(cluster: ClusterClient, namespace: str, labels: Dict[str, str]) -> str:
    """Render the pods matching ``labels`` as a small table."""
    try:
        pods = cluster.list_pods(namespace, labels_selector(labels))
    except Exception as e:
        return f"Unable to list pods: {e}"
    if not pods:
        return "No pods found"

    rows = [("NAME", "READY", "STATUS", "NODE")]
    for pod in pods:
        statuses = (pod.status.container_statuses if pod.status else None) or []
        ready = sum(1 for s in statuses if s.ready)
        rows.append((
            pod.metadata.name,
            f"{ready}/{len(statuses)}",
            (pod.status.phase if pod.status else None) or "Unknown",
            (pod.spec.node_name if pod.spec else None) or "<none>",
        ))
    widths = [max(len(str(row[i])) for row in rows) for i in range(len(rows[0]))]
    return "\n".join(
        "  ".join(str(value).ljust(width) for value, width in zip(row, widths)).rstrip()
        for row in rows
    )


class Stage:
    """One phase of a mesh install.

    Subclasses list the install functions that make up the stage, the
    objects to delete on teardown and the workload whose readiness ends the
    deploy.
    """
    name = ""
    title = ""
    workload_kind = "deployment"

    def install_funcs(self, args: InstallArgs) -> List[InstallFunc]:
        return []

    def teardown_manifest(self, args: InstallArgs) -> List[TeardownItem]:
        return []

    def workload_name(self, args: InstallArgs) -> str:
        return ""

    def pod_labels(self, args: InstallArgs) -> Dict[str, str]:
        return {}

    def is_ready(self, context: StageContext) -> bool:
        return deployment_ready(context.client, context.namespace, self.workload_name(context.args))

    def pre_check(self, context: StageContext) -> None:
        """Raise DeployError if the stage cannot be installed."""
        return None

    def apply(self, context: StageContext) -> None:
        batch_deploy_resources(context.client, context.args, self.install_funcs(context.args))

    def deploy(self, context: StageContext) -> None:
        self.apply(context)
        self.wait_ready(context)

    def wait_ready(self, context: StageContext) -> int:
        description = f"{self.title} ({self.workload_kind} {self.workload_name(context.args)})"
        return wait_until_ready(lambda: self.is_ready(context), context.args.poll_policy, description)

    def clear(self, context: StageContext) -> None:
        clear_resources(context.client, self.teardown_manifest(context.args), context.namespace)

    def describe(self, context: StageContext, phase: InstallPhase, error: Optional[BaseException] = None) -> str:
        if phase == InstallPhase.BEGIN:
            return f"Begin to install {self.title} in the namespace: {context.namespace}"
        if phase == InstallPhase.END:
            status = format_pod_status(context.client, context.namespace, self.pod_labels(context.args))
            return (f"\n{self.title[:1].upper()}{self.title[1:]} deployed successfully, "
                    f"{self.workload_kind}: {self.workload_name(context.args)}\n{status}")
        if phase == InstallPhase.ERROR:
            reason = f": {error}" if error is not None else ""
            return f"Failed to install {self.title} in the namespace: {context.namespace}{reason}"
        return ""
