"""Mesh controller stage.

The mesh controller is not a cluster workload: it is an object registered
inside the control plane through its admin API.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from ...errors import DeployError, MeshClientError, NotFoundError
from ...meshclient.admin import ControlPlaneAdmin
from ..base import (
    DEFAULT_MESH_CONTROLLER_NAME,
    InstallArgs,
    InstallFunc,
    InstallPhase,
    Stage,
    StageContext,
)
from ..kube import ClusterClient

logger = logging.getLogger(__name__)


def mesh_controller_spec(args: InstallArgs) -> Dict[str, Any]:
    return {
        "kind": "MeshController",
        "name": DEFAULT_MESH_CONTROLLER_NAME,
        "heartbeatInterval": args.heartbeat_interval,
        "registryType": args.registry_type,
        "ingressPort": args.ingress_port,
    }


class MeshControllerStage(Stage):
    name = "mesh-controller"
    title = "mesh controller"
    workload_kind = "object"

    def __init__(self, admin_factory: Optional[Callable[[str], ControlPlaneAdmin]] = None):
        self.admin_factory = admin_factory or ControlPlaneAdmin

    def admin(self, args: InstallArgs) -> ControlPlaneAdmin:
        return self.admin_factory(args.control_plane_url)

    def install_funcs(self, args: InstallArgs) -> List[InstallFunc]:
        def register_mesh_controller(cluster: ClusterClient, args: InstallArgs) -> None:
            self.admin(args).apply_object(mesh_controller_spec(args))
            logger.info(f"📄 Registered {DEFAULT_MESH_CONTROLLER_NAME}")

        return [register_mesh_controller]

    def workload_name(self, args: InstallArgs) -> str:
        return DEFAULT_MESH_CONTROLLER_NAME

    def is_ready(self, context: StageContext) -> bool:
        try:
            self.admin(context.args).get_object(DEFAULT_MESH_CONTROLLER_NAME)
        except NotFoundError:
            return False
        return True

    def pre_check(self, context: StageContext) -> None:
        try:
            members = self.admin(context.args).list_members()
        except MeshClientError as e:
            raise DeployError(f"mesh control plane is not reachable at {context.args.control_plane_url}: {e}") from e
        if not members:
            raise DeployError("mesh control plane reports no members")

    def clear(self, context: StageContext) -> None:
        try:
            self.admin(context.args).delete_object(DEFAULT_MESH_CONTROLLER_NAME)
            logger.info(f"🗑️  Deleted {DEFAULT_MESH_CONTROLLER_NAME}")
        except MeshClientError as e:
            logger.warning(f"⚠️  Failed to delete {DEFAULT_MESH_CONTROLLER_NAME}: {e}")

    def describe(self, context: StageContext, phase: InstallPhase, error: Optional[BaseException] = None) -> str:
        if phase == InstallPhase.END:
            return (f"\nMesh controller registered successfully, object: {DEFAULT_MESH_CONTROLLER_NAME} "
                    f"(control plane: {context.args.control_plane_url})")
        return super().describe(context, phase, error)
