"""
FastAPI main application.

Exposes the controller and identity services over HTTP/JSON. Successful
responses use the ``{"request_id", "status": "ok", "data"}`` envelope, errors
``{"request_id", "status": "error", "error": {"code", "message"}}``.
"""

import logging
import uuid
from typing import Any, Dict, Optional, Tuple

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

from localvol.api.models import SuccessResponse, VolumeExpand, VolumePublish, VolumeUnpublish
from localvol.cli.lib.config import LocalVolConfig, load_config
from localvol.csi.context import CallContext
from localvol.csi.controller import ControllerService
from localvol.csi.identity import IdentityService
from localvol.csi.messages import (
    ControllerExpandVolumeRequest,
    ControllerPublishVolumeRequest,
    ControllerUnpublishVolumeRequest,
    CreateVolumeRequest,
    DeleteVolumeRequest,
)
from localvol.exceptions import HTTP_STATUS, LocalVolException
from localvol.store import build_store
from localvol.store.base import ResourceStore

app = FastAPI(title="localvol API", description="LVM volume provisioning controller", version="0.1.0")
logger = logging.getLogger(__name__)


def configure(store: Optional[ResourceStore] = None, cfg: Optional[LocalVolConfig] = None) -> None:
    """Bind the services to a store; the configured backend is used by default."""
    cfg = cfg or load_config()
    store = store or build_store(cfg)
    app.state.controller = ControllerService(store, cfg)
    app.state.identity = IdentityService(store, cfg)


def _services() -> Tuple[ControllerService, IdentityService]:
    if getattr(app.state, "controller", None) is None:
        configure()
    return app.state.controller, app.state.identity


def _ok(data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"request_id": str(uuid.uuid4()), "status": "ok", "data": data or {}}


def _dump(message: Any) -> Dict[str, Any]:
    return message.model_dump(mode="json") if message is not None else {}


@app.exception_handler(LocalVolException)
async def localvol_exception_handler(request: Request, exc: LocalVolException) -> JSONResponse:
    """Map error kinds to HTTP status codes."""
    request_id = str(uuid.uuid4())
    logger.warning("Request failed (request_id=%s, path=%s): %s", request_id, request.url.path, exc.message)
    return JSONResponse(
        status_code=HTTP_STATUS[exc.code],
        content={
            "request_id": request_id,
            "status": "error",
            "error": {"code": exc.code.value, "message": exc.message},
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler."""
    request_id = str(uuid.uuid4())
    logger.exception("Unhandled error (request_id=%s, path=%s)", request_id, request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "request_id": request_id,
            "status": "error",
            "error": {"code": "INTERNAL", "message": "Internal server error"},
        },
    )


# Controller endpoints


@app.post("/v1/volumes", response_model=SuccessResponse, status_code=201)
def create_volume(
    volume: CreateVolumeRequest,
    x_request_timeout: Optional[float] = Header(None, description="Call deadline in seconds"),
) -> Dict[str, Any]:
    """
    Create a volume: select a volume group, create the logical volume and
    wait for the node agent to converge it.
    """
    controller, _ = _services()
    result = controller.create_volume(volume, CallContext(x_request_timeout))
    return _ok({"volume": _dump(result.volume)})


@app.get("/v1/volumes", response_model=SuccessResponse)
def list_volumes() -> Dict[str, Any]:
    """
    List volumes (not implemented, always empty).
    """
    controller, _ = _services()
    return _ok(_dump(controller.list_volumes()))


@app.get("/v1/volumes/{volume_id}", response_model=SuccessResponse)
def get_volume(volume_id: str) -> Dict[str, Any]:
    controller, _ = _services()
    return _ok(_dump(controller.controller_get_volume(volume_id)))


@app.patch("/v1/volumes/{volume_id}", response_model=SuccessResponse)
def modify_volume(volume_id: str) -> Dict[str, Any]:
    controller, _ = _services()
    return _ok(_dump(controller.controller_modify_volume(volume_id)))


@app.delete("/v1/volumes/{volume_id}", response_model=SuccessResponse)
def delete_volume(volume_id: str) -> Dict[str, Any]:
    """
    Delete a volume. Deleting a missing volume succeeds.
    """
    controller, _ = _services()
    controller.delete_volume(DeleteVolumeRequest(volume_id=volume_id))
    return _ok({"deleted": True})


@app.post("/v1/volumes/{volume_id}/expand", response_model=SuccessResponse)
def expand_volume(
    volume_id: str,
    expand: VolumeExpand,
    x_request_timeout: Optional[float] = Header(None, description="Call deadline in seconds"),
) -> Dict[str, Any]:
    """
    Expand a volume.

    Example:
    ```json
    {"required_bytes": "20Gi", "volume_capability": {"block": false}}
    ```
    """
    controller, _ = _services()
    request = ControllerExpandVolumeRequest(
        volume_id=volume_id, required_bytes=expand.required_bytes, volume_capability=expand.volume_capability
    )
    result = controller.controller_expand_volume(request, CallContext(x_request_timeout))
    return _ok({"expansion": _dump(result)})


@app.post("/v1/volumes/{volume_id}/publish", response_model=SuccessResponse)
def publish_volume(volume_id: str, publish: VolumePublish) -> Dict[str, Any]:
    controller, _ = _services()
    request = ControllerPublishVolumeRequest(
        volume_id=volume_id,
        node_id=publish.node_id,
        volume_capability=publish.volume_capability,
        readonly=publish.readonly,
    )
    return _ok(_dump(controller.controller_publish_volume(request)))


@app.post("/v1/volumes/{volume_id}/unpublish", response_model=SuccessResponse)
def unpublish_volume(volume_id: str, unpublish: VolumeUnpublish) -> Dict[str, Any]:
    controller, _ = _services()
    request = ControllerUnpublishVolumeRequest(volume_id=volume_id, node_id=unpublish.node_id)
    return _ok(controller.controller_unpublish_volume(request))


@app.post("/v1/volumes/{volume_id}/validate-capabilities", response_model=SuccessResponse)
def validate_volume_capabilities(volume_id: str) -> Dict[str, Any]:
    controller, _ = _services()
    return _ok(_dump(controller.validate_volume_capabilities(volume_id)))


@app.get("/v1/capacity", response_model=SuccessResponse)
def get_capacity() -> Dict[str, Any]:
    controller, _ = _services()
    return _ok(_dump(controller.get_capacity()))


@app.get("/v1/capabilities", response_model=SuccessResponse)
def get_capabilities() -> Dict[str, Any]:
    controller, _ = _services()
    return _ok(_dump(controller.controller_get_capabilities()))


# Snapshot endpoints (not implemented)


@app.post("/v1/snapshots", response_model=SuccessResponse, status_code=201)
def create_snapshot() -> Dict[str, Any]:
    controller, _ = _services()
    return _ok(_dump(controller.create_snapshot()))


@app.get("/v1/snapshots", response_model=SuccessResponse)
def list_snapshots() -> Dict[str, Any]:
    controller, _ = _services()
    return _ok(_dump(controller.list_snapshots()))


@app.delete("/v1/snapshots/{snapshot_id}", response_model=SuccessResponse)
def delete_snapshot(snapshot_id: str) -> Dict[str, Any]:
    controller, _ = _services()
    return _ok(_dump(controller.delete_snapshot(snapshot_id)))


# Identity endpoints


@app.get("/v1/identity/plugin-info", response_model=SuccessResponse)
def get_plugin_info() -> Dict[str, Any]:
    _, identity = _services()
    return _ok(_dump(identity.get_plugin_info()))


@app.get("/v1/identity/plugin-capabilities", response_model=SuccessResponse)
def get_plugin_capabilities() -> Dict[str, Any]:
    _, identity = _services()
    return _ok(_dump(identity.get_plugin_capabilities()))


@app.get("/v1/identity/probe", response_model=SuccessResponse)
def probe() -> Dict[str, Any]:
    _, identity = _services()
    return _ok(_dump(identity.probe()))
