"""
Request and response messages of the provisioning protocol.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from localvol.models import Size


class VolumeCapability(BaseModel):
    """How a volume will be accessed."""

    access_mode: str = Field("SINGLE_NODE_WRITER", description="Access mode")
    block: bool = Field(False, description="Raw block access instead of a mounted filesystem")
    fs_type: Optional[str] = Field(None, description="Filesystem type for mount access")


class TopologyRequirement(BaseModel):
    requisite: List[Dict[str, str]] = Field(default_factory=list)
    preferred: List[Dict[str, str]] = Field(default_factory=list)


class CreateVolumeRequest(BaseModel):
    """CreateVolume request."""

    name: str = Field("", description="Volume name, also used as the volume id")
    required_bytes: Size = Field(0, description="Requested capacity (bytes or quantity such as 10Gi)")
    parameters: Dict[str, str] = Field(default_factory=dict, description="Storage class parameters")
    volume_capabilities: Optional[List[VolumeCapability]] = Field(None, description="Requested capabilities")
    accessibility_requirements: Optional[TopologyRequirement] = None
    content_source: Optional[Dict[str, str]] = None


class Volume(BaseModel):
    volume_id: str
    capacity_bytes: int
    volume_context: Dict[str, str] = Field(default_factory=dict)
    accessible_topology: List[Dict[str, str]] = Field(default_factory=list)
    content_source: Optional[Dict[str, str]] = None


class CreateVolumeResponse(BaseModel):
    volume: Volume


class DeleteVolumeRequest(BaseModel):
    volume_id: str = ""


class ControllerExpandVolumeRequest(BaseModel):
    """ControllerExpandVolume request."""

    volume_id: str = ""
    required_bytes: Size = Field(0, description="New capacity (bytes or quantity such as 20Gi)")
    volume_capability: Optional[VolumeCapability] = None


class ControllerExpandVolumeResponse(BaseModel):
    capacity_bytes: int
    node_expansion_required: bool


class ControllerPublishVolumeRequest(BaseModel):
    volume_id: str = ""
    node_id: str = ""
    volume_capability: Optional[VolumeCapability] = None
    readonly: bool = False


class ControllerPublishVolumeResponse(BaseModel):
    publish_context: Dict[str, str] = Field(default_factory=dict)


class ControllerUnpublishVolumeRequest(BaseModel):
    volume_id: str = ""
    node_id: str = ""


class ControllerGetCapabilitiesResponse(BaseModel):
    capabilities: List[str]


class PluginInfo(BaseModel):
    name: str
    vendor_version: str
    manifest: Dict[str, str] = Field(default_factory=dict)


class PluginCapabilitiesResponse(BaseModel):
    capabilities: List[str]


class ProbeResponse(BaseModel):
    ready: bool
