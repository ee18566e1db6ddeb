"""Mesh ingress controller stage."""
from typing import Dict, List

import yaml

from ..base import (
    DEFAULT_MESH_INGRESS_CONFIG,
    DEFAULT_MESH_INGRESS_CONTROLLER_NAME,
    DEFAULT_MESH_INGRESS_SERVICE,
    READER_CLUSTER_ROLE,
    InstallArgs,
    InstallFunc,
    Stage,
)
from ..kube import CATEGORY_APPS, CATEGORY_CORE, ClusterClient
from ..teardown import TeardownItem


def mesh_ingress_labels() -> Dict[str, str]:
    return {"app": DEFAULT_MESH_INGRESS_CONTROLLER_NAME}


def config_map_spec(cluster: ClusterClient, args: InstallArgs) -> None:
    ingress_config = {
        "name": "mesh-ingress-controller",
        "cluster-name": args.cluster_name,
        "cluster-role": READER_CLUSTER_ROLE,
        "cluster-join-urls": args.control_plane_join_urls,
        "api-addr": "0.0.0.0:2381",
        "labels": {"mesh-role": "ingress-controller"},
    }
    body = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": DEFAULT_MESH_INGRESS_CONFIG, "namespace": args.namespace},
        "data": {"eg-ingress.yaml": yaml.safe_dump(ingress_config, sort_keys=False)},
    }
    cluster.apply_config_map(body, args.namespace)


def service_spec(cluster: ClusterClient, args: InstallArgs) -> None:
    body = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": DEFAULT_MESH_INGRESS_SERVICE, "namespace": args.namespace},
        "spec": {
            "type": "NodePort",
            "selector": mesh_ingress_labels(),
            "ports": [{
                "name": "web",
                "protocol": "TCP",
                "port": args.ingress_port,
                "targetPort": args.ingress_port,
                "nodePort": args.ingress_node_port,
            }],
        },
    }
    cluster.apply_service(body, args.namespace)


def deployment_spec(cluster: ClusterClient, args: InstallArgs) -> None:
    body = {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {
            "name": DEFAULT_MESH_INGRESS_CONTROLLER_NAME,
            "namespace": args.namespace,
            "labels": mesh_ingress_labels(),
        },
        "spec": {
            "replicas": args.ingress_replicas,
            "selector": {"matchLabels": mesh_ingress_labels()},
            "template": {
                "metadata": {"labels": mesh_ingress_labels()},
                "spec": {
                    "containers": [{
                        "name": "easegress",
                        "image": args.image(args.ingress_image),
                        "command": ["/bin/sh"],
                        "args": ["-c", "/opt/easegress/bin/easegress-server -f /easegress-ingress/eg-ingress.yaml"],
                        "ports": [{"containerPort": args.ingress_port}],
                        "volumeMounts": [
                            {"name": "ingress-config", "mountPath": "/easegress-ingress"},
                        ],
                    }],
                    "volumes": [
                        {"name": "ingress-config", "configMap": {"name": DEFAULT_MESH_INGRESS_CONFIG}},
                    ],
                },
            },
        },
    }
    cluster.apply_deployment(body, args.namespace)


class IngressStage(Stage):
    name = "ingress"
    title = "mesh ingress controller"

    def install_funcs(self, args: InstallArgs) -> List[InstallFunc]:
        return [config_map_spec, service_spec, deployment_spec]

    def teardown_manifest(self, args: InstallArgs) -> List[TeardownItem]:
        return [
            TeardownItem(CATEGORY_APPS, "deployments", DEFAULT_MESH_INGRESS_CONTROLLER_NAME),
            TeardownItem(CATEGORY_CORE, "services", DEFAULT_MESH_INGRESS_SERVICE),
            TeardownItem(CATEGORY_CORE, "configmaps", DEFAULT_MESH_INGRESS_CONFIG),
        ]

    def workload_name(self, args: InstallArgs) -> str:
        return DEFAULT_MESH_INGRESS_CONTROLLER_NAME

    def pod_labels(self, args: InstallArgs) -> Dict[str, str]:
        return mesh_ingress_labels()
