"""Control plane stage: a replicated StatefulSet behind headless and public services."""
import logging
from typing import Dict, List

import yaml

from ...errors import DeployError
from ..base import (
    DEFAULT_MESH_ADMIN_PORT_NAME,
    DEFAULT_MESH_CLIENT_PORT_NAME,
    DEFAULT_MESH_CONTROL_PLANE_CONFIG,
    DEFAULT_MESH_CONTROL_PLANE_HEADLESS_SERVICE_NAME,
    DEFAULT_MESH_CONTROL_PLANE_NAME,
    DEFAULT_MESH_CONTROL_PLANE_PUBLIC_SERVICE_NAME,
    DEFAULT_MESH_PEER_PORT_NAME,
    WRITER_CLUSTER_ROLE,
    InstallArgs,
    InstallFunc,
    Stage,
    StageContext,
)
from ..kube import CATEGORY_APPS, CATEGORY_CORE, ClusterClient, node_schedulable, stateful_set_ready
from ..teardown import TeardownItem

logger = logging.getLogger(__name__)


def control_plane_labels() -> Dict[str, str]:
    return {"mesh.megaease.com/system": "control-plane"}


def _ports(args: InstallArgs) -> List[Dict]:
    return [
        {"name": DEFAULT_MESH_CLIENT_PORT_NAME, "port": args.control_plane_client_port},
        {"name": DEFAULT_MESH_PEER_PORT_NAME, "port": args.control_plane_peer_port},
        {"name": DEFAULT_MESH_ADMIN_PORT_NAME, "port": args.control_plane_admin_port},
    ]


def config_map_spec(cluster: ClusterClient, args: InstallArgs) -> None:
    # Each member substitutes its own pod name for HOSTNAME at startup
    server_config = {
        "name": "${HOSTNAME}",
        "cluster-name": args.cluster_name,
        "cluster-role": WRITER_CLUSTER_ROLE,
        "api-addr": f"0.0.0.0:{args.control_plane_admin_port}",
        "data-dir": "/opt/eg-data/data",
        "wal-dir": "",
        "cpu-profile-file": "",
        "memory-profile-file": "",
        "log-dir": "/opt/eg-data/log",
        "member-dir": "/opt/eg-data/member",
        "debug": False,
        "cluster-listen-client-urls": [f"http://0.0.0.0:{args.control_plane_client_port}"],
        "cluster-listen-peer-urls": [f"http://0.0.0.0:{args.control_plane_peer_port}"],
        "cluster-initial-advertise-peer-urls": args.control_plane_peers,
        "cluster-join-urls": args.control_plane_peers,
    }
    body = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": DEFAULT_MESH_CONTROL_PLANE_CONFIG, "namespace": args.namespace},
        "data": {"eg-master.yaml": yaml.safe_dump(server_config, sort_keys=False)},
    }
    cluster.apply_config_map(body, args.namespace)


def headless_service_spec(cluster: ClusterClient, args: InstallArgs) -> None:
    body = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {
            "name": DEFAULT_MESH_CONTROL_PLANE_HEADLESS_SERVICE_NAME,
            "namespace": args.namespace,
        },
        "spec": {
            "clusterIP": "None",
            "publishNotReadyAddresses": True,
            "selector": control_plane_labels(),
            "ports": _ports(args),
        },
    }
    cluster.apply_service(body, args.namespace)


def public_service_spec(cluster: ClusterClient, args: InstallArgs) -> None:
    body = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {
            "name": DEFAULT_MESH_CONTROL_PLANE_PUBLIC_SERVICE_NAME,
            "namespace": args.namespace,
        },
        "spec": {
            "type": "NodePort",
            "selector": control_plane_labels(),
            "ports": [{
                "name": DEFAULT_MESH_ADMIN_PORT_NAME,
                "port": args.control_plane_admin_port,
                "targetPort": args.control_plane_admin_port,
                "nodePort": args.control_plane_node_port,
            }],
        },
    }
    cluster.apply_service(body, args.namespace)


def stateful_set_spec(cluster: ClusterClient, args: InstallArgs) -> None:
    body = {
        "apiVersion": "apps/v1",
        "kind": "StatefulSet",
        "metadata": {
            "name": DEFAULT_MESH_CONTROL_PLANE_NAME,
            "namespace": args.namespace,
            "labels": control_plane_labels(),
        },
        "spec": {
            "replicas": args.control_plane_replicas,
            "serviceName": DEFAULT_MESH_CONTROL_PLANE_HEADLESS_SERVICE_NAME,
            "podManagementPolicy": "Parallel",
            "selector": {"matchLabels": control_plane_labels()},
            "template": {
                "metadata": {"labels": control_plane_labels()},
                "spec": {
                    "affinity": {
                        "podAntiAffinity": {
                            "requiredDuringSchedulingIgnoredDuringExecution": [{
                                "labelSelector": {"matchLabels": control_plane_labels()},
                                "topologyKey": "kubernetes.io/hostname",
                            }],
                        },
                    },
                    "containers": [{
                        "name": "easegress",
                        "image": args.image(args.control_plane_image),
                        "command": ["/bin/sh"],
                        "args": [
                            "-c",
                            "sed \"s/\\${HOSTNAME}/$HOSTNAME/g\" /eg-config/eg-master.yaml > /opt/eg-master.yaml "
                            "&& /opt/easegress/bin/easegress-server -f /opt/eg-master.yaml",
                        ],
                        "ports": [
                            {"name": p["name"], "containerPort": p["port"]} for p in _ports(args)
                        ],
                        "volumeMounts": [
                            {"name": "eg-config", "mountPath": "/eg-config"},
                            {"name": "eg-data", "mountPath": "/opt/eg-data"},
                        ],
                    }],
                    "volumes": [
                        {"name": "eg-config", "configMap": {"name": DEFAULT_MESH_CONTROL_PLANE_CONFIG}},
                        {
                            "name": "eg-data",
                            "hostPath": {
                                "path": args.control_plane_storage_path,
                                "type": "DirectoryOrCreate",
                            },
                        },
                    ],
                },
            },
        },
    }
    cluster.apply_stateful_set(body, args.namespace)


class ControlPlaneStage(Stage):
    name = "control-plane"
    title = "mesh control plane"
    workload_kind = "statefulset"

    def install_funcs(self, args: InstallArgs) -> List[InstallFunc]:
        return [config_map_spec, headless_service_spec, public_service_spec, stateful_set_spec]

    def teardown_manifest(self, args: InstallArgs) -> List[TeardownItem]:
        return [
            TeardownItem(CATEGORY_APPS, "statefulsets", DEFAULT_MESH_CONTROL_PLANE_NAME),
            TeardownItem(CATEGORY_CORE, "services", DEFAULT_MESH_CONTROL_PLANE_PUBLIC_SERVICE_NAME),
            TeardownItem(CATEGORY_CORE, "services", DEFAULT_MESH_CONTROL_PLANE_HEADLESS_SERVICE_NAME),
            TeardownItem(CATEGORY_CORE, "configmaps", DEFAULT_MESH_CONTROL_PLANE_CONFIG),
        ]

    def workload_name(self, args: InstallArgs) -> str:
        return DEFAULT_MESH_CONTROL_PLANE_NAME

    def pod_labels(self, args: InstallArgs) -> Dict[str, str]:
        return control_plane_labels()

    def is_ready(self, context: StageContext) -> bool:
        return stateful_set_ready(context.client, context.namespace, DEFAULT_MESH_CONTROL_PLANE_NAME)

    def pre_check(self, context: StageContext) -> None:
        """Members are spread one per node, so enough schedulable nodes must exist."""
        replicas = context.args.control_plane_replicas
        if replicas < 1:
            raise DeployError("control plane replicas must be at least 1")

        schedulable = [n.metadata.name for n in context.client.list_nodes() if node_schedulable(n)]
        logger.info(f"🔍 Found {len(schedulable)} schedulable node(s) for {replicas} control plane member(s)")
        if len(schedulable) < replicas:
            raise DeployError(
                f"mesh control plane needs {replicas} schedulable nodes, "
                f"only {len(schedulable)} available: {schedulable}"
            )
