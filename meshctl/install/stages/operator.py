"""Mesh operator stage: RBAC, configuration and the operator deployment."""
from typing import Dict, List

import yaml

from ..base import (
    DEFAULT_MESH_OPERATOR_METRICS_SERVICE_NAME,
    DEFAULT_MESH_OPERATOR_NAME,
    InstallArgs,
    InstallFunc,
    Stage,
)
from ..kube import CATEGORY_APPS, CATEGORY_CORE, CATEGORY_RBAC, ClusterClient
from ..teardown import TeardownItem

MESH_OPERATOR_CONFIG_MAP = "easemesh-operator-config"

MESH_OPERATOR_LEADER_ELECTION_ROLE = "mesh-operator-leader-election-role"
MESH_OPERATOR_LEADER_ELECTION_ROLE_BINDING = "mesh-operator-leader-election-rolebinding"

MESH_OPERATOR_MANAGER_CLUSTER_ROLE = "mesh-operator-manager-role"
MESH_OPERATOR_MANAGER_CLUSTER_ROLE_BINDING = "mesh-operator-manager-rolebinding"

MESH_OPERATOR_METRICS_READER_CLUSTER_ROLE = "mesh-operator-metrics-reader-role"
MESH_OPERATOR_METRICS_READER_CLUSTER_ROLE_BINDING = "mesh-operator-metrics-reader-rolebinding"

MESH_OPERATOR_PROXY_CLUSTER_ROLE = "mesh-operator-proxy-role"
MESH_OPERATOR_PROXY_CLUSTER_ROLE_BINDING = "mesh-operator-proxy-rolebinding"

ALL_VERBS = ["get", "list", "watch", "create", "update", "patch", "delete"]


def operator_labels() -> Dict[str, str]:
    return {"mesh.megaease.com/system": "operator"}


def _rule(api_groups: List[str], resources: List[str], verbs: List[str]) -> Dict:
    return {"apiGroups": api_groups, "resources": resources, "verbs": verbs}


def _binding_subject(args: InstallArgs) -> List[Dict]:
    return [{"kind": "ServiceAccount", "name": "default", "namespace": args.namespace}]


def config_map_spec(cluster: ClusterClient, args: InstallArgs) -> None:
    operator_config = {
        "image-registry-url": args.image_registry,
        "cluster-name": args.cluster_name,
        "cluster-join-urls": args.control_plane_join_urls,
        "metrics-bind-address": "127.0.0.1:8080",
        "leader-elect": False,
    }
    body = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": MESH_OPERATOR_CONFIG_MAP, "namespace": args.namespace},
        "data": {"operator-config.yaml": yaml.safe_dump(operator_config, sort_keys=False)},
    }
    cluster.apply_config_map(body, args.namespace)


def service_spec(cluster: ClusterClient, args: InstallArgs) -> None:
    body = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {
            "name": DEFAULT_MESH_OPERATOR_METRICS_SERVICE_NAME,
            "namespace": args.namespace,
            "labels": operator_labels(),
        },
        "spec": {
            "selector": operator_labels(),
            "ports": [{"name": "https", "port": 8443, "targetPort": "https"}],
        },
    }
    cluster.apply_service(body, args.namespace)


def role_spec(cluster: ClusterClient, args: InstallArgs) -> None:
    body = {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "Role",
        "metadata": {"name": MESH_OPERATOR_LEADER_ELECTION_ROLE, "namespace": args.namespace},
        "rules": [
            _rule([""], ["configmaps", "leases"], ALL_VERBS),
            _rule(["", "coordination.k8s.io"], ["events"], ["create", "patch"]),
        ],
    }
    cluster.apply_role(body, args.namespace)


def cluster_role_spec(cluster: ClusterClient, args: InstallArgs) -> None:
    cluster_roles = [
        {
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "kind": "ClusterRole",
            "metadata": {"name": MESH_OPERATOR_MANAGER_CLUSTER_ROLE},
            "rules": [
                _rule(["apps"], ["deployments"], ALL_VERBS),
                _rule([""], ["pods"], ["get", "list"]),
                _rule(["mesh.megaease.com"], ["meshdeployments"], ALL_VERBS),
                _rule(["mesh.megaease.com"], ["meshdeployments/finalizers"], ["update"]),
                _rule(["mesh.megaease.com"], ["meshdeployments/status"], ["get", "patch", "update"]),
            ],
        },
        {
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "kind": "ClusterRole",
            "metadata": {"name": MESH_OPERATOR_METRICS_READER_CLUSTER_ROLE},
            "rules": [{"nonResourceURLs": ["/metrics"], "verbs": ["get"]}],
        },
        {
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "kind": "ClusterRole",
            "metadata": {"name": MESH_OPERATOR_PROXY_CLUSTER_ROLE},
            "rules": [
                _rule(["authentication.k8s.io"], ["tokenreviews"], ["create"]),
                _rule(["authorization.k8s.io"], ["subjectaccessreviews"], ["create"]),
            ],
        },
    ]
    for body in cluster_roles:
        cluster.apply_cluster_role(body)


def role_binding_spec(cluster: ClusterClient, args: InstallArgs) -> None:
    body = {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "RoleBinding",
        "metadata": {"name": MESH_OPERATOR_LEADER_ELECTION_ROLE_BINDING, "namespace": args.namespace},
        "roleRef": {
            "apiGroup": "rbac.authorization.k8s.io",
            "kind": "Role",
            "name": MESH_OPERATOR_LEADER_ELECTION_ROLE,
        },
        "subjects": _binding_subject(args),
    }
    cluster.apply_role_binding(body, args.namespace)


def cluster_role_binding_spec(cluster: ClusterClient, args: InstallArgs) -> None:
    bindings = [
        (MESH_OPERATOR_MANAGER_CLUSTER_ROLE_BINDING, MESH_OPERATOR_MANAGER_CLUSTER_ROLE),
        (MESH_OPERATOR_PROXY_CLUSTER_ROLE_BINDING, MESH_OPERATOR_PROXY_CLUSTER_ROLE),
        (MESH_OPERATOR_METRICS_READER_CLUSTER_ROLE_BINDING, MESH_OPERATOR_METRICS_READER_CLUSTER_ROLE),
    ]
    for binding_name, role_name in bindings:
        cluster.apply_cluster_role_binding({
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "kind": "ClusterRoleBinding",
            "metadata": {"name": binding_name},
            "roleRef": {
                "apiGroup": "rbac.authorization.k8s.io",
                "kind": "ClusterRole",
                "name": role_name,
            },
            "subjects": _binding_subject(args),
        })


def deployment_spec(cluster: ClusterClient, args: InstallArgs) -> None:
    body = {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {
            "name": DEFAULT_MESH_OPERATOR_NAME,
            "namespace": args.namespace,
            "labels": operator_labels(),
        },
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": operator_labels()},
            "template": {
                "metadata": {"labels": operator_labels()},
                "spec": {
                    "containers": [
                        {
                            "name": "kube-rbac-proxy",
                            "image": args.image("kubesphere/kube-rbac-proxy:v0.8.0"),
                            "args": [
                                "--secure-listen-address=0.0.0.0:8443",
                                "--upstream=http://127.0.0.1:8080/",
                                "--logtostderr=true",
                                "--v=10",
                            ],
                            "ports": [{"name": "https", "containerPort": 8443}],
                        },
                        {
                            "name": "manager",
                            "image": args.image(args.operator_image),
                            "command": ["/manager"],
                            "args": ["--config=/opt/mesh-operator/operator-config.yaml"],
                            "volumeMounts": [
                                {"name": "operator-config", "mountPath": "/opt/mesh-operator"},
                            ],
                        },
                    ],
                    "volumes": [
                        {"name": "operator-config", "configMap": {"name": MESH_OPERATOR_CONFIG_MAP}},
                    ],
                },
            },
        },
    }
    cluster.apply_deployment(body, args.namespace)


class OperatorStage(Stage):
    name = "operator"
    title = "mesh operator"

    def install_funcs(self, args: InstallArgs) -> List[InstallFunc]:
        return [
            config_map_spec,
            service_spec,
            role_spec,
            cluster_role_spec,
            role_binding_spec,
            cluster_role_binding_spec,
            deployment_spec,
        ]

    def teardown_manifest(self, args: InstallArgs) -> List[TeardownItem]:
        return [
            TeardownItem(CATEGORY_APPS, "deployments", DEFAULT_MESH_OPERATOR_NAME),
            TeardownItem(CATEGORY_CORE, "services", DEFAULT_MESH_OPERATOR_METRICS_SERVICE_NAME),
            TeardownItem(CATEGORY_CORE, "configmaps", MESH_OPERATOR_CONFIG_MAP),
            TeardownItem(CATEGORY_RBAC, "rolebindings", MESH_OPERATOR_LEADER_ELECTION_ROLE_BINDING),
            TeardownItem(CATEGORY_RBAC, "roles", MESH_OPERATOR_LEADER_ELECTION_ROLE),
            TeardownItem(CATEGORY_RBAC, "clusterrolebindings", MESH_OPERATOR_MANAGER_CLUSTER_ROLE_BINDING),
            TeardownItem(CATEGORY_RBAC, "clusterroles", MESH_OPERATOR_MANAGER_CLUSTER_ROLE),
            TeardownItem(CATEGORY_RBAC, "clusterrolebindings", MESH_OPERATOR_METRICS_READER_CLUSTER_ROLE_BINDING),
            TeardownItem(CATEGORY_RBAC, "clusterroles", MESH_OPERATOR_METRICS_READER_CLUSTER_ROLE),
            TeardownItem(CATEGORY_RBAC, "clusterrolebindings", MESH_OPERATOR_PROXY_CLUSTER_ROLE_BINDING),
            TeardownItem(CATEGORY_RBAC, "clusterroles", MESH_OPERATOR_PROXY_CLUSTER_ROLE),
        ]

    def workload_name(self, args: InstallArgs) -> str:
        return DEFAULT_MESH_OPERATOR_NAME

    def pod_labels(self, args: InstallArgs) -> Dict[str, str]:
        return operator_labels()
