"""Mesh install and reset commands."""
import logging
from typing import List, Optional

import typer
from kubernetes.client.rest import ApiException

from ..config import Config
from ..errors import MeshctlError
from ..install import ClusterClient, InstallArgs, Installer
from ..install.stages import STAGE_NAMES, select_stages
from ..utils.kube import load_kubeconfig

logger = logging.getLogger(__name__)

app = typer.Typer(help="Install and remove the mesh components")


def _installer(kubeconfig: Optional[str], args: InstallArgs, stages: Optional[List[str]]) -> Installer:
    try:
        selected = select_stages(stages)
    except ValueError as e:
        raise typer.BadParameter(str(e))
    source = load_kubeconfig(kubeconfig)
    logger.debug(f"Using kubeconfig: {source}")
    return Installer(ClusterClient(), args, selected, echo=typer.echo)


@app.command("install")
def install_cmd(
    namespace: str = typer.Option(Config.MESH_NAMESPACE, "--namespace", "-n", help="Namespace to install the mesh into"),
    kubeconfig: Optional[str] = typer.Option(None, help="Path to the kubeconfig file"),
    stage: Optional[List[str]] = typer.Option(None, "--stage", "-s", help=f"Only install these stages: {', '.join(STAGE_NAMES)}"),
    image_registry: str = typer.Option(Config.IMAGE_REGISTRY, help="Registry to pull mesh images from"),
    control_plane_replicas: int = typer.Option(3, help="Number of control plane members"),
    control_plane_url: str = typer.Option(Config.CONTROL_PLANE_ADMIN_URL, help="Admin URL of the control plane"),
    storage_path: str = typer.Option("/opt/easemesh", help="Host path for control plane data"),
    ingress_replicas: int = typer.Option(1, help="Number of ingress controller replicas"),
    clean_when_failed: bool = typer.Option(False, help="Remove installed resources if a stage fails"),
):
    """Install the mesh stage by stage, waiting for each to become ready."""
    args = InstallArgs(
        namespace=namespace,
        image_registry=image_registry,
        control_plane_replicas=control_plane_replicas,
        control_plane_url=control_plane_url,
        control_plane_storage_path=storage_path,
        ingress_replicas=ingress_replicas,
        clean_when_failed=clean_when_failed,
    )
    installer = _installer(kubeconfig, args, stage)
    try:
        installer.install()
    except (MeshctlError, ApiException) as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=1)


@app.command("reset")
def reset_cmd(
    namespace: str = typer.Option(Config.MESH_NAMESPACE, "--namespace", "-n", help="Namespace the mesh is installed in"),
    kubeconfig: Optional[str] = typer.Option(None, help="Path to the kubeconfig file"),
    stage: Optional[List[str]] = typer.Option(None, "--stage", "-s", help=f"Only clear these stages: {', '.join(STAGE_NAMES)}"),
    control_plane_url: str = typer.Option(Config.CONTROL_PLANE_ADMIN_URL, help="Admin URL of the control plane"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
):
    """Remove the mesh components. Missing objects are skipped."""
    if not yes:
        confirm = typer.confirm(f"Are you sure you want to remove the mesh from namespace '{namespace}'?", default=False)
        if not confirm:
            typer.echo("❌ Reset cancelled.")
            raise typer.Exit()

    args = InstallArgs(namespace=namespace, control_plane_url=control_plane_url)
    _installer(kubeconfig, args, stage).reset()
    typer.echo(f"✅ Mesh resources removed from namespace {namespace}")
