import json

import pytest
import requests

from meshctl.errors import ConflictError, MeshClientError, NotFoundError
from meshctl.meshclient import ControlPlaneAdmin, MeshClient
from meshctl.resource import ResourceDocument

SERVER = "http://127.0.0.1:2381"


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self):
        return self.status_code < 400

    @property
    def text(self):
        return "" if self._payload is None else json.dumps(self._payload)

    def json(self):
        return self._payload


class FakeSession:
    """Answers requests from a (method, url) table and records them."""

    def __init__(self, routes=None, error=None):
        self.routes = routes or {}
        self.error = error
        self.requests = []

    def request(self, method, url, timeout=None, **kwargs):
        self.requests.append((method, url, kwargs.get("json")))
        if self.error is not None:
            raise self.error
        return self.routes.get((method, url), FakeResponse(200))


def test_server_is_normalized():
    assert MeshClient("127.0.0.1:2381/", session=FakeSession()).server == SERVER


def test_get_tenant():
    session = FakeSession({
        ("GET", f"{SERVER}/apis/v1/mesh/tenants/demo"): FakeResponse(200, {"name": "demo", "description": "d"}),
    })

    tenant = MeshClient(SERVER, session=session).tenant().get("demo")

    assert tenant == ResourceDocument(kind="Tenant", name="demo", spec={"description": "d"})


def test_missing_resource_raises_not_found():
    session = FakeSession({
        ("GET", f"{SERVER}/apis/v1/mesh/services/nope"): FakeResponse(404, {"error": "not found"}),
    })

    with pytest.raises(NotFoundError) as exc:
        MeshClient(SERVER, session=session).service().get("nope")
    assert exc.value.status_code == 404


def test_create_posts_spec_with_name_and_maps_conflict():
    session = FakeSession({
        ("POST", f"{SERVER}/apis/v1/mesh/services"): FakeResponse(409),
    })
    service = ResourceDocument(kind="Service", name="order-service", spec={"registerTenant": "demo"})

    with pytest.raises(ConflictError):
        MeshClient(SERVER, session=session).service().create(service)

    assert session.requests == [
        ("POST", f"{SERVER}/apis/v1/mesh/services", {"registerTenant": "demo", "name": "order-service"}),
    ]


def test_patch_puts_to_item_url():
    session = FakeSession()
    tenant = ResourceDocument(kind="Tenant", name="demo", spec={"description": "new"})

    MeshClient(SERVER, session=session).tenant().patch(tenant)

    assert session.requests[0][:2] == ("PUT", f"{SERVER}/apis/v1/mesh/tenants/demo")


def test_server_error_keeps_status_code():
    session = FakeSession({
        ("DELETE", f"{SERVER}/apis/v1/mesh/ingresses/web"): FakeResponse(500, {"error": "boom"}),
    })

    with pytest.raises(MeshClientError) as exc:
        MeshClient(SERVER, session=session).ingress().delete("web")
    assert exc.value.status_code == 500
    assert not isinstance(exc.value, NotFoundError)


def test_connection_failure_is_a_client_error():
    session = FakeSession(error=requests.ConnectionError("refused"))

    with pytest.raises(MeshClientError):
        MeshClient(SERVER, session=session).tenant().list()


def test_service_settings_are_listed_from_services():
    session = FakeSession({
        ("GET", f"{SERVER}/apis/v1/mesh/services"): FakeResponse(200, [
            {"name": "order", "loadBalance": {"policy": "roundRobin"},
             "observability": {"tracings": {"enabled": True}}},
            {"name": "payment"},
        ]),
    })
    client = MeshClient(SERVER, session=session)

    assert client.load_balance().list() == [
        ResourceDocument(kind="LoadBalance", name="order", spec={"policy": "roundRobin"}),
    ]
    assert client.observability_tracings().list() == [
        ResourceDocument(kind="ObservabilityTracings", name="order", spec={"enabled": True}),
    ]
    assert client.canary().list() == []


def test_service_setting_is_written_under_its_service():
    session = FakeSession()
    canary = ResourceDocument(kind="Canary", name="order", spec={"canaryRules": []})

    MeshClient(SERVER, session=session).for_kind("canary").create(canary)

    assert session.requests == [("POST", f"{SERVER}/apis/v1/mesh/services/order/canary", {"canaryRules": []})]


def test_for_kind_is_case_insensitive_and_rejects_unknown_kinds():
    client = MeshClient(SERVER, session=FakeSession())

    assert client.for_kind("observabilityoutputserver") is client.observability_output_server()
    assert client.for_kind("Resilience") is client.resilience()
    with pytest.raises(MeshClientError, match="unsupported resource kind"):
        client.for_kind("Sidecar")


def test_admin_apply_updates_existing_object():
    admin_url = "http://cp.local:2381"
    session = FakeSession({
        ("POST", f"{admin_url}/apis/v1/objects"): FakeResponse(409),
    })
    spec = {"kind": "MeshController", "name": "easemesh-controller"}

    ControlPlaneAdmin(admin_url, session=session).apply_object(spec)

    assert [r[:2] for r in session.requests] == [
        ("POST", f"{admin_url}/apis/v1/objects"),
        ("PUT", f"{admin_url}/apis/v1/objects/easemesh-controller"),
    ]


def test_admin_delete_ignores_missing_object():
    admin_url = "http://cp.local:2381"
    session = FakeSession({
        ("DELETE", f"{admin_url}/apis/v1/objects/easemesh-controller"): FakeResponse(404),
    })

    ControlPlaneAdmin(admin_url, session=session).delete_object("easemesh-controller")
