"""
Integration tests for the provisioning API.
"""

import pytest
from fastapi.testclient import TestClient

from localvol.api.main import app, configure
from localvol.models import BindingMode, LogicalVolume, VolumeType

GiB = 1 << 30
TOPOLOGY_KEY = "topology.local.csi.localvol.io/node"


@pytest.fixture
def client(agent_store, config):
    """Create test client bound to a converging store."""
    configure(store=agent_store, cfg=config)
    return TestClient(app)


@pytest.fixture
def thin_params(make_params):
    return make_params(bindings=[("vg-a", "pool-x"), ("vg-b", "pool-y")])


def _create_body(params, name="pvc-1", size="10Gi", **extra):
    body = {
        "name": name,
        "required_bytes": size,
        "parameters": params,
        "volume_capabilities": [{"access_mode": "SINGLE_NODE_WRITER"}],
    }
    body.update(extra)
    return body


class TestVolumes:
    """Tests for the volume endpoints."""

    @pytest.mark.integration
    def test_create_volume(self, client, agent_store, thin_params):
        """Test creating a volume returns its context and topology."""
        response = client.post("/v1/volumes", json=_create_body(thin_params))

        assert response.status_code == 201
        payload = response.json()
        assert payload["status"] == "ok"
        volume = payload["data"]["volume"]
        assert volume["volume_id"] == "pvc-1"
        assert volume["capacity_bytes"] == 10 * GiB
        assert volume["volume_context"]["vgname"] == "vg-b-data"
        assert volume["volume_context"]["thinPoolName"] == "pool-y"
        assert volume["accessible_topology"] == [{TOPOLOGY_KEY: "node-b"}]
        assert agent_store.get(LogicalVolume, "pvc-1").spec.size == 10 * GiB

    @pytest.mark.integration
    def test_create_wait_for_first_consumer(self, client, make_params):
        """Test the preferred topology segment selects the node."""
        params = make_params(
            volume_type=VolumeType.THICK,
            binding_mode=BindingMode.WAIT_FOR_FIRST_CONSUMER,
            bindings=[("vg-a", None), ("vg-c", None)],
        )
        body = _create_body(params, size="1Gi", accessibility_requirements={"preferred": [{TOPOLOGY_KEY: "node-c"}]})

        response = client.post("/v1/volumes", json=body)

        assert response.status_code == 201
        assert response.json()["data"]["volume"]["accessible_topology"] == [{TOPOLOGY_KEY: "node-c"}]

    @pytest.mark.integration
    def test_capacity_exceeded(self, client, agent_store, thin_params):
        """Test an oversized request maps to 507 RESOURCE_EXHAUSTED."""
        response = client.post("/v1/volumes", json=_create_body(thin_params, size="30Gi"))

        assert response.status_code == 507
        payload = response.json()
        assert payload["status"] == "error"
        assert payload["error"]["code"] == "RESOURCE_EXHAUSTED"
        assert "vg-b/pool-y" in payload["error"]["message"]
        assert agent_store.list(LogicalVolume) == []

    @pytest.mark.integration
    def test_repeated_create(self, client, thin_params):
        """Test a repeated request answers with the same volume, another size with 409."""
        first = client.post("/v1/volumes", json=_create_body(thin_params))
        second = client.post("/v1/volumes", json=_create_body(thin_params))

        assert second.status_code == 201
        assert second.json()["data"]["volume"] == first.json()["data"]["volume"]

        response = client.post("/v1/volumes", json=_create_body(thin_params, size="12Gi"))
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ALREADY_EXISTS"

    @pytest.mark.integration
    def test_unsupported_type(self, client, thin_params):
        """Test a foreign storage type maps to 400 INVALID_ARGUMENT."""
        thin_params["local.csi.localvol.io/type"] = "nfs"

        response = client.post("/v1/volumes", json=_create_body(thin_params))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_ARGUMENT"

    @pytest.mark.integration
    def test_malformed_size(self, client, thin_params):
        """Test an unparsable size is rejected by request validation."""
        response = client.post("/v1/volumes", json=_create_body(thin_params, size="lots"))

        assert response.status_code == 422

    @pytest.mark.integration
    def test_deadline_header(self, pending_store, config, thin_params):
        """Test X-Request-Timeout bounds the wait and the volume is removed."""
        configure(store=pending_store, cfg=config)
        client = TestClient(app)

        response = client.post("/v1/volumes", json=_create_body(thin_params), headers={"X-Request-Timeout": "0"})

        assert response.status_code == 504
        assert response.json()["error"]["code"] == "DEADLINE_EXCEEDED"
        assert pending_store.list(LogicalVolume) == []

    @pytest.mark.integration
    def test_expand_volume(self, client, thin_params):
        """Test expansion returns the new capacity."""
        client.post("/v1/volumes", json=_create_body(thin_params))

        response = client.post(
            "/v1/volumes/pvc-1/expand", json={"required_bytes": "12Gi", "volume_capability": {"block": True}}
        )

        assert response.status_code == 200
        expansion = response.json()["data"]["expansion"]
        assert expansion == {"capacity_bytes": 12 * GiB, "node_expansion_required": False}

    @pytest.mark.integration
    def test_expand_missing_volume(self, client):
        """Test expanding an unknown volume maps to 404."""
        response = client.post("/v1/volumes/pvc-missing/expand", json={"required_bytes": "1Gi"})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    @pytest.mark.integration
    def test_delete_volume(self, client, agent_store, thin_params):
        """Test delete is idempotent."""
        client.post("/v1/volumes", json=_create_body(thin_params))

        assert client.delete("/v1/volumes/pvc-1").status_code == 200
        assert client.delete("/v1/volumes/pvc-1").status_code == 200
        assert agent_store.list(LogicalVolume) == []

    @pytest.mark.integration
    def test_publish_unpublish(self, client):
        """Test publish returns the volume name context."""
        response = client.post("/v1/volumes/pvc-1/publish", json={"node_id": "node-a"})

        assert response.status_code == 200
        assert response.json()["data"]["publish_context"] == {"local.csi.localvol.io/volume-name": "pvc-1"}
        assert client.post("/v1/volumes/pvc-1/unpublish", json={"node_id": "node-a"}).json()["data"] == {}

    @pytest.mark.integration
    def test_unimplemented_endpoints(self, client):
        """Test the unimplemented calls answer with empty data."""
        assert client.get("/v1/volumes").json()["data"] == {}
        assert client.get("/v1/capacity").json()["data"] == {}
        assert client.post("/v1/snapshots").status_code == 201
        assert client.delete("/v1/snapshots/snap-1").json()["data"] == {}


class TestIdentity:
    """Tests for capabilities and identity endpoints."""

    @pytest.mark.integration
    def test_capabilities(self, client):
        response = client.get("/v1/capabilities")

        assert response.status_code == 200
        assert "EXPAND_VOLUME" in response.json()["data"]["capabilities"]

    @pytest.mark.integration
    def test_plugin_info(self, client):
        data = client.get("/v1/identity/plugin-info").json()["data"]

        assert data["name"] == "local.csi.localvol.io"
        assert data["vendor_version"] == "0.1.0"

    @pytest.mark.integration
    def test_plugin_capabilities(self, client):
        data = client.get("/v1/identity/plugin-capabilities").json()["data"]

        assert data["capabilities"] == ["CONTROLLER_SERVICE", "VOLUME_ACCESSIBILITY_CONSTRAINTS"]

    @pytest.mark.integration
    def test_probe(self, client):
        assert client.get("/v1/identity/probe").json()["data"] == {"ready": True}
