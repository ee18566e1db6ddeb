"""
Kubernetes primitives used by the install stages.

Apply calls create the object and fall back to a patch when it already
exists, so every apply can be repeated safely.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

import urllib3
from kubernetes import client
from kubernetes.client.rest import ApiException

from ..errors import TransientQueryError

logger = logging.getLogger(__name__)

CATEGORY_APPS = "apps"
CATEGORY_CORE = "core"
CATEGORY_RBAC = "rbac"


def _is_transient(e: ApiException) -> bool:
    return e.status == 429 or (e.status or 0) >= 500


class ClusterClient:
    """Apply, delete and query the cluster objects a mesh install needs."""

    def __init__(self, api_client: Optional[client.ApiClient] = None):
        self.api_client = api_client or client.ApiClient()
        self.core = client.CoreV1Api(self.api_client)
        self.apps = client.AppsV1Api(self.api_client)
        self.rbac = client.RbacAuthorizationV1Api(self.api_client)

        self._deleters: Dict[tuple, Callable[[str, str], Any]] = {
            (CATEGORY_APPS, "deployments"): lambda name, ns: self.apps.delete_namespaced_deployment(name, ns),
            (CATEGORY_APPS, "statefulsets"): lambda name, ns: self.apps.delete_namespaced_stateful_set(name, ns),
            (CATEGORY_CORE, "services"): lambda name, ns: self.core.delete_namespaced_service(name, ns),
            (CATEGORY_CORE, "configmaps"): lambda name, ns: self.core.delete_namespaced_config_map(name, ns),
            (CATEGORY_CORE, "persistentvolumeclaims"):
                lambda name, ns: self.core.delete_namespaced_persistent_volume_claim(name, ns),
            (CATEGORY_CORE, "namespaces"): lambda name, ns: self.core.delete_namespace(name),
            (CATEGORY_RBAC, "roles"): lambda name, ns: self.rbac.delete_namespaced_role(name, ns),
            (CATEGORY_RBAC, "rolebindings"): lambda name, ns: self.rbac.delete_namespaced_role_binding(name, ns),
            (CATEGORY_RBAC, "clusterroles"): lambda name, ns: self.rbac.delete_cluster_role(name),
            (CATEGORY_RBAC, "clusterrolebindings"): lambda name, ns: self.rbac.delete_cluster_role_binding(name),
        }

    def _apply(self, kind: str, body: Dict[str, Any], create: Callable[[], Any], patch: Callable[[], Any]) -> None:
        name = body["metadata"]["name"]
        try:
            create()
            logger.info(f"📄 Created {kind} {name}")
        except ApiException as e:
            if e.status != 409:
                raise
            logger.info(f"↪️ {kind} {name} exists. Patching...")
            patch()

    def ensure_namespace(self, namespace: str) -> None:
        body = {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": namespace}}
        try:
            self.core.create_namespace(body)
            logger.info(f"📦 Created namespace {namespace}")
        except ApiException as e:
            if e.status != 409:
                raise
            logger.debug(f"Namespace {namespace} already exists")

    def apply_config_map(self, body: Dict[str, Any], namespace: str) -> None:
        name = body["metadata"]["name"]
        self._apply("ConfigMap", body,
                    lambda: self.core.create_namespaced_config_map(namespace, body),
                    lambda: self.core.patch_namespaced_config_map(name, namespace, body))

    def apply_service(self, body: Dict[str, Any], namespace: str) -> None:
        name = body["metadata"]["name"]
        self._apply("Service", body,
                    lambda: self.core.create_namespaced_service(namespace, body),
                    lambda: self.core.patch_namespaced_service(name, namespace, body))

    def apply_deployment(self, body: Dict[str, Any], namespace: str) -> None:
        name = body["metadata"]["name"]
        self._apply("Deployment", body,
                    lambda: self.apps.create_namespaced_deployment(namespace, body),
                    lambda: self.apps.patch_namespaced_deployment(name, namespace, body))

    def apply_stateful_set(self, body: Dict[str, Any], namespace: str) -> None:
        name = body["metadata"]["name"]
        self._apply("StatefulSet", body,
                    lambda: self.apps.create_namespaced_stateful_set(namespace, body),
                    lambda: self.apps.patch_namespaced_stateful_set(name, namespace, body))

    def apply_role(self, body: Dict[str, Any], namespace: str) -> None:
        name = body["metadata"]["name"]
        self._apply("Role", body,
                    lambda: self.rbac.create_namespaced_role(namespace, body),
                    lambda: self.rbac.patch_namespaced_role(name, namespace, body))

    def apply_role_binding(self, body: Dict[str, Any], namespace: str) -> None:
        name = body["metadata"]["name"]
        self._apply("RoleBinding", body,
                    lambda: self.rbac.create_namespaced_role_binding(namespace, body),
                    lambda: self.rbac.patch_namespaced_role_binding(name, namespace, body))

    def apply_cluster_role(self, body: Dict[str, Any]) -> None:
        name = body["metadata"]["name"]
        self._apply("ClusterRole", body,
                    lambda: self.rbac.create_cluster_role(body),
                    lambda: self.rbac.patch_cluster_role(name, body))

    def apply_cluster_role_binding(self, body: Dict[str, Any]) -> None:
        name = body["metadata"]["name"]
        self._apply("ClusterRoleBinding", body,
                    lambda: self.rbac.create_cluster_role_binding(body),
                    lambda: self.rbac.patch_cluster_role_binding(name, body))

    def delete_resource(self, category: str, kind: str, name: str, namespace: str) -> bool:
        """Delete one object. Returns False when it was already gone."""
        deleter = self._deleters.get((category, kind.lower()))
        if deleter is None:
            raise ValueError(f"unsupported resource {category}/{kind}")
        try:
            deleter(name, namespace)
        except ApiException as e:
            if e.status == 404:
                return False
            raise
        return True

    def _query(self, func: Callable[[], Any]) -> Any:
        """Run a read call, mapping retryable failures to TransientQueryError."""
        try:
            return func()
        except ApiException as e:
            if _is_transient(e):
                raise TransientQueryError(f"cluster query failed ({e.status}): {e.reason}") from e
            raise
        except urllib3.exceptions.HTTPError as e:
            raise TransientQueryError(f"cluster query failed: {e}") from e

    def get_deployment_status(self, namespace: str, name: str):
        return self._query(lambda: self.apps.read_namespaced_deployment_status(name, namespace))

    def get_stateful_set_status(self, namespace: str, name: str):
        return self._query(lambda: self.apps.read_namespaced_stateful_set_status(name, namespace))

    def list_pods(self, namespace: str, label_selector: str = "") -> List[Any]:
        return self._query(
            lambda: self.core.list_namespaced_pod(namespace, label_selector=label_selector)
        ).items

    def list_nodes(self) -> List[Any]:
        return self._query(lambda: self.core.list_node()).items


def _desired_replicas(obj) -> int:
    replicas = obj.spec.replicas if obj.spec is not None else None
    return 1 if replicas is None else replicas


def deployment_ready(cluster: ClusterClient, namespace: str, name: str) -> bool:
    """Readiness predicate for a Deployment. A missing object is not ready yet."""
    try:
        deployment = cluster.get_deployment_status(namespace, name)
    except ApiException as e:
        if e.status == 404:
            return False
        raise
    status = deployment.status
    if status is None:
        return False
    return (status.ready_replicas or 0) >= _desired_replicas(deployment)


def stateful_set_ready(cluster: ClusterClient, namespace: str, name: str) -> bool:
    """Readiness predicate for a StatefulSet. A missing object is not ready yet."""
    try:
        stateful_set = cluster.get_stateful_set_status(namespace, name)
    except ApiException as e:
        if e.status == 404:
            return False
        raise
    status = stateful_set.status
    if status is None:
        return False
    return (status.ready_replicas or 0) >= _desired_replicas(stateful_set)


def node_schedulable(node) -> bool:
    if node.spec is not None and node.spec.unschedulable:
        return False
    conditions = (node.status.conditions if node.status is not None else None) or []
    return any(c.type == "Ready" and c.status == "True" for c in conditions)
