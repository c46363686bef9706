"""
Unit tests for the REST API client.
"""

from unittest.mock import MagicMock

import pytest
import requests

from localvol.client import LocalVolClient
from localvol.exceptions import APIConnectionError, APIError, APITimeout


def _response(status_code, payload):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = str(payload)
    return response


@pytest.fixture
def client():
    client = LocalVolClient("http://localvol.test:8080/")
    client.session = MagicMock()
    return client


@pytest.mark.unit
def test_create_volume_request(client):
    """Test create posts the volume and returns the envelope data."""
    client.session.request.return_value = _response(
        201, {"status": "ok", "data": {"volume": {"volume_id": "pvc-1", "capacity_bytes": 1024}}}
    )

    volume = client.create_volume(
        "pvc-1",
        "1Ki",
        {"local.csi.localvol.io/type": "lvm"},
        node="node-a",
        topology_key="topology.local.csi.localvol.io/node",
        deadline=30,
    )

    assert volume["volume_id"] == "pvc-1"
    kwargs = client.session.request.call_args.kwargs
    assert kwargs["method"] == "POST"
    assert kwargs["url"] == "http://localvol.test:8080/v1/volumes"
    assert kwargs["headers"] == {"X-Request-Timeout": "30"}
    assert kwargs["json"]["accessibility_requirements"] == {
        "preferred": [{"topology.local.csi.localvol.io/node": "node-a"}]
    }
    assert kwargs["json"]["volume_capabilities"] == [{"block": False}]


@pytest.mark.unit
def test_error_envelope(client):
    """Test error responses raise APIError with the server message and status."""
    client.session.request.return_value = _response(
        507,
        {"status": "error", "error": {"code": "RESOURCE_EXHAUSTED", "message": "Requested size 30Gi is greater"}},
    )

    with pytest.raises(APIError) as exc:
        client.expand_volume("pvc-1", "30Gi")

    assert exc.value.status_code == 507
    assert "Requested size 30Gi is greater" in str(exc.value)
    assert exc.value.response_data["error"]["code"] == "RESOURCE_EXHAUSTED"


@pytest.mark.unit
def test_timeout(client):
    """Test request timeouts raise APITimeout."""
    client.session.request.side_effect = requests.exceptions.Timeout("slow")

    with pytest.raises(APITimeout):
        client.probe()


@pytest.mark.unit
def test_connection_error(client):
    """Test connection failures raise APIConnectionError."""
    client.session.request.side_effect = requests.exceptions.ConnectionError("refused")

    with pytest.raises(APIConnectionError):
        client.delete_volume("pvc-1")


@pytest.mark.unit
def test_publish_and_probe(client):
    """Test publish context and probe results are unwrapped."""
    client.session.request.return_value = _response(
        200, {"status": "ok", "data": {"publish_context": {"local.csi.localvol.io/volume-name": "pvc-1"}}}
    )
    assert client.publish_volume("pvc-1", "node-a") == {"local.csi.localvol.io/volume-name": "pvc-1"}

    client.session.request.return_value = _response(200, {"status": "ok", "data": {"ready": True}})
    assert client.probe() is True
