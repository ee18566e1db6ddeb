"""
Client for the mesh control plane REST API.

Every mesh resource kind is reached through an accessor exposing the same
operations: get, list, create, patch and delete. Tenants, services and
ingresses are top-level collections; load balance, canary, resilience and
the observability settings hang off a service.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..config import Config
from ..errors import ConflictError, MeshClientError, NotFoundError
from ..resource.document import ResourceDocument

logger = logging.getLogger(__name__)

MESH_API_PREFIX = "/apis/v1/mesh"

KIND_TENANT = "Tenant"
KIND_SERVICE = "Service"
KIND_LOAD_BALANCE = "LoadBalance"
KIND_CANARY = "Canary"
KIND_OBSERVABILITY_TRACINGS = "ObservabilityTracings"
KIND_OBSERVABILITY_METRICS = "ObservabilityMetrics"
KIND_OBSERVABILITY_OUTPUT_SERVER = "ObservabilityOutputServer"
KIND_RESILIENCE = "Resilience"
KIND_INGRESS = "Ingress"


def normalize_server(server: str) -> str:
    server = server.strip().rstrip("/")
    if not server.startswith(("http://", "https://")):
        server = f"http://{server}"
    return server


def raise_for_status(response: requests.Response, kind: str, name: str = "") -> None:
    """Map an unsuccessful response onto the meshctl exception types."""
    if response.ok:
        return
    what = f"{kind} {name}".strip()
    detail = response.text.strip()
    if response.status_code == 404:
        raise NotFoundError(f"{what} not found", response.status_code)
    if response.status_code == 409:
        raise ConflictError(f"{what} already exists", response.status_code)
    raise MeshClientError(
        f"request for {what} failed: {response.status_code} {detail}",
        response.status_code,
    )


class ResourceAccessor:
    """CRUD operations for a top-level mesh resource collection."""

    def __init__(self, client: "MeshClient", kind: str, collection: str):
        self.client = client
        self.kind = kind
        self.collection = collection

    def _collection_url(self) -> str:
        return f"{MESH_API_PREFIX}/{self.collection}"

    def _item_url(self, name: str) -> str:
        return f"{MESH_API_PREFIX}/{self.collection}/{name}"

    def to_payload(self, resource: ResourceDocument) -> Dict[str, Any]:
        payload = dict(resource.spec)
        payload["name"] = resource.name
        return payload

    def from_payload(self, payload: Dict[str, Any]) -> ResourceDocument:
        spec = dict(payload)
        name = spec.pop("name", "")
        return ResourceDocument(kind=self.kind, name=name, spec=spec)

    def get(self, name: str, timeout: Optional[float] = None) -> ResourceDocument:
        response = self.client.request("GET", self._item_url(name), timeout=timeout)
        raise_for_status(response, self.kind, name)
        return self.from_payload(response.json())

    def list(self, timeout: Optional[float] = None) -> List[ResourceDocument]:
        response = self.client.request("GET", self._collection_url(), timeout=timeout)
        raise_for_status(response, self.kind)
        return [self.from_payload(item) for item in response.json() or []]

    def create(self, resource: ResourceDocument, timeout: Optional[float] = None) -> None:
        response = self.client.request(
            "POST", self._collection_url(), json=self.to_payload(resource), timeout=timeout
        )
        raise_for_status(response, self.kind, resource.name)

    def patch(self, resource: ResourceDocument, timeout: Optional[float] = None) -> None:
        response = self.client.request(
            "PUT", self._item_url(resource.name), json=self.to_payload(resource), timeout=timeout
        )
        raise_for_status(response, self.kind, resource.name)

    def delete(self, name: str, timeout: Optional[float] = None) -> None:
        response = self.client.request("DELETE", self._item_url(name), timeout=timeout)
        raise_for_status(response, self.kind, name)


class ServiceSubresourceAccessor(ResourceAccessor):
    """CRUD operations for a setting that belongs to a mesh service.

    The resource name is the name of the owning service.
    """

    def __init__(self, client: "MeshClient", kind: str, subpath: str, field_path: Tuple[str, ...]):
        super().__init__(client, kind, "services")
        self.subpath = subpath
        self.field_path = field_path

    def _item_url(self, name: str) -> str:
        return f"{MESH_API_PREFIX}/services/{name}/{self.subpath}"

    def to_payload(self, resource: ResourceDocument) -> Dict[str, Any]:
        return dict(resource.spec)

    def create(self, resource: ResourceDocument, timeout: Optional[float] = None) -> None:
        response = self.client.request(
            "POST", self._item_url(resource.name), json=self.to_payload(resource), timeout=timeout
        )
        raise_for_status(response, self.kind, resource.name)

    def get(self, name: str, timeout: Optional[float] = None) -> ResourceDocument:
        response = self.client.request("GET", self._item_url(name), timeout=timeout)
        raise_for_status(response, self.kind, name)
        return ResourceDocument(kind=self.kind, name=name, spec=response.json() or {})

    def list(self, timeout: Optional[float] = None) -> List[ResourceDocument]:
        response = self.client.request("GET", self._collection_url(), timeout=timeout)
        raise_for_status(response, self.kind)

        resources = []
        for service in response.json() or []:
            value: Any = service
            for key in self.field_path:
                value = value.get(key) if isinstance(value, dict) else None
            if value:
                resources.append(ResourceDocument(kind=self.kind, name=service.get("name", ""), spec=value))
        return resources


class MeshClient:
    """Accessors for every mesh resource kind on one control plane server."""

    def __init__(self, server: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.server = normalize_server(server or Config.MESH_SERVER)
        self.timeout = timeout if timeout is not None else Config.API_TIMEOUT
        self.session = session or requests.Session()
        self._accessors = {
            KIND_TENANT: ResourceAccessor(self, KIND_TENANT, "tenants"),
            KIND_SERVICE: ResourceAccessor(self, KIND_SERVICE, "services"),
            KIND_INGRESS: ResourceAccessor(self, KIND_INGRESS, "ingresses"),
            KIND_LOAD_BALANCE: ServiceSubresourceAccessor(
                self, KIND_LOAD_BALANCE, "loadbalance", ("loadBalance",)),
            KIND_CANARY: ServiceSubresourceAccessor(
                self, KIND_CANARY, "canary", ("canary",)),
            KIND_RESILIENCE: ServiceSubresourceAccessor(
                self, KIND_RESILIENCE, "resilience", ("resilience",)),
            KIND_OBSERVABILITY_TRACINGS: ServiceSubresourceAccessor(
                self, KIND_OBSERVABILITY_TRACINGS, "tracings", ("observability", "tracings")),
            KIND_OBSERVABILITY_METRICS: ServiceSubresourceAccessor(
                self, KIND_OBSERVABILITY_METRICS, "metrics", ("observability", "metrics")),
            KIND_OBSERVABILITY_OUTPUT_SERVER: ServiceSubresourceAccessor(
                self, KIND_OBSERVABILITY_OUTPUT_SERVER, "outputserver", ("observability", "outputServer")),
        }

    def request(self, method: str, path: str, timeout: Optional[float] = None, **kwargs) -> requests.Response:
        url = f"{self.server}{path}"
        logger.debug(f"➡️  {method} {url}")
        try:
            return self.session.request(method, url, timeout=timeout or self.timeout, **kwargs)
        except requests.RequestException as e:
            raise MeshClientError(f"{method} {url} failed: {e}") from e

    @property
    def kinds(self) -> List[str]:
        return list(self._accessors)

    def for_kind(self, kind: str) -> ResourceAccessor:
        for known, accessor in self._accessors.items():
            if known.lower() == kind.lower():
                return accessor
        raise MeshClientError(f"unsupported resource kind {kind!r}, expected one of {self.kinds}")

    def tenant(self) -> ResourceAccessor:
        return self._accessors[KIND_TENANT]

    def service(self) -> ResourceAccessor:
        return self._accessors[KIND_SERVICE]

    def load_balance(self) -> ResourceAccessor:
        return self._accessors[KIND_LOAD_BALANCE]

    def canary(self) -> ResourceAccessor:
        return self._accessors[KIND_CANARY]

    def observability_tracings(self) -> ResourceAccessor:
        return self._accessors[KIND_OBSERVABILITY_TRACINGS]

    def observability_metrics(self) -> ResourceAccessor:
        return self._accessors[KIND_OBSERVABILITY_METRICS]

    def observability_output_server(self) -> ResourceAccessor:
        return self._accessors[KIND_OBSERVABILITY_OUTPUT_SERVER]

    def resilience(self) -> ResourceAccessor:
        return self._accessors[KIND_RESILIENCE]

    def ingress(self) -> ResourceAccessor:
        return self._accessors[KIND_INGRESS]
