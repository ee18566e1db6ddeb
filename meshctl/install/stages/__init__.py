"""Install stages in the order they are deployed."""
from typing import Iterable, List, Optional

from ..base import Stage
from .control_plane import ControlPlaneStage
from .ingress import IngressStage
from .mesh_controller import MeshControllerStage
from .operator import OperatorStage


def default_stages() -> List[Stage]:
    return [ControlPlaneStage(), MeshControllerStage(), OperatorStage(), IngressStage()]


STAGE_NAMES = [stage.name for stage in default_stages()]


def select_stages(names: Optional[Iterable[str]] = None) -> List[Stage]:
    """Pick stages by name, keeping install order. No names means all stages."""
    stages = default_stages()
    if not names:
        return stages
    wanted = set(names)
    unknown = wanted - set(STAGE_NAMES)
    if unknown:
        raise ValueError(f"unknown stage(s) {sorted(unknown)}, expected some of {STAGE_NAMES}")
    return [stage for stage in stages if stage.name in wanted]


__all__ = [
    'ControlPlaneStage', 'IngressStage', 'MeshControllerStage', 'OperatorStage',
    'STAGE_NAMES', 'default_stages', 'select_stages',
]
