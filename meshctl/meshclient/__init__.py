from .admin import ControlPlaneAdmin
from .client import (
    KIND_CANARY,
    KIND_INGRESS,
    KIND_LOAD_BALANCE,
    KIND_OBSERVABILITY_METRICS,
    KIND_OBSERVABILITY_OUTPUT_SERVER,
    KIND_OBSERVABILITY_TRACINGS,
    KIND_RESILIENCE,
    KIND_SERVICE,
    KIND_TENANT,
    MeshClient,
    ResourceAccessor,
)

__all__ = [
    'ControlPlaneAdmin', 'MeshClient', 'ResourceAccessor',
    'KIND_CANARY', 'KIND_INGRESS', 'KIND_LOAD_BALANCE',
    'KIND_OBSERVABILITY_METRICS', 'KIND_OBSERVABILITY_OUTPUT_SERVER',
    'KIND_OBSERVABILITY_TRACINGS', 'KIND_RESILIENCE', 'KIND_SERVICE',
    'KIND_TENANT',
]
