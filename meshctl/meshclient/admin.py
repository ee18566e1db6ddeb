"""Access to the control plane's generic object and membership API."""
import logging
from typing import Any, Dict, List, Optional

import requests

from ..config import Config
from ..errors import ConflictError, MeshClientError, NotFoundError
from .client import normalize_server, raise_for_status

logger = logging.getLogger(__name__)

OBJECTS_URL = "/apis/v1/objects"
OBJECT_URL = "/apis/v1/objects/{name}"
MEMBER_LIST_URL = "/apis/v1/status/members"


class ControlPlaneAdmin:
    """Thin wrapper over the control plane admin endpoints."""

    def __init__(self, url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.url = normalize_server(url or Config.CONTROL_PLANE_ADMIN_URL)
        self.timeout = timeout if timeout is not None else Config.API_TIMEOUT
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.url}{path}"
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise MeshClientError(f"{method} {url} failed: {e}") from e

    def list_members(self) -> List[Dict[str, Any]]:
        response = self._request("GET", MEMBER_LIST_URL)
        raise_for_status(response, "members")
        return response.json() or []

    def get_object(self, name: str) -> Dict[str, Any]:
        response = self._request("GET", OBJECT_URL.format(name=name))
        raise_for_status(response, "object", name)
        return response.json()

    def apply_object(self, spec: Dict[str, Any]) -> None:
        """Create the object, updating it when it already exists."""
        name = spec["name"]
        response = self._request("POST", OBJECTS_URL, json=spec)
        try:
            raise_for_status(response, "object", name)
        except ConflictError:
            logger.info(f"↪️ Object {name} exists. Updating...")
            response = self._request("PUT", OBJECT_URL.format(name=name), json=spec)
            raise_for_status(response, "object", name)

    def delete_object(self, name: str) -> None:
        response = self._request("DELETE", OBJECT_URL.format(name=name))
        try:
            raise_for_status(response, "object", name)
        except NotFoundError:
            logger.debug(f"Object {name} already absent")
