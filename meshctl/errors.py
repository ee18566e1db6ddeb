"""Exception types raised across meshctl."""
from typing import Iterable, List


class MeshctlError(Exception):
    """Base exception for meshctl errors."""
    pass


class BuilderError(MeshctlError):
    """Raised when resource inputs could not be resolved.

    Every problem found while resolving the inputs is kept in ``errors`` so
    they can be reported together.
    """

    def __init__(self, errors: Iterable[str]):
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors))


class DecodeError(MeshctlError):
    """Raised when a resource stream cannot be decoded."""
    pass


class VisitorError(MeshctlError):
    """Raised when a resource source cannot be read."""
    pass


class DeployError(MeshctlError):
    """Raised when a stage fails to deploy."""
    pass


class ReadinessTimeout(DeployError):
    """Raised when a workload does not become ready within the poll budget."""
    pass


class PollCancelled(DeployError):
    """Raised when a readiness poll is cancelled by the caller."""
    pass


class TransientQueryError(MeshctlError):
    """Raised for cluster queries that may succeed when retried."""
    pass


class MeshClientError(MeshctlError):
    """Raised for failed calls against the mesh control plane API."""

    def __init__(self, message: str, status_code: int = None):
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(MeshClientError):
    """Raised when a requested mesh resource does not exist."""
    pass


class ConflictError(MeshClientError):
    """Raised when creating a mesh resource that already exists."""
    pass


class RCFileError(MeshctlError):
    """Raised when the meshctl rc file cannot be read or written."""
    pass
