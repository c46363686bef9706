"""
Pydantic models for API request bodies and response envelopes.

CreateVolume and the identity/controller responses reuse the protocol
messages from ``localvol.csi.messages``.
"""

from typing import Optional

from pydantic import BaseModel, Field

from localvol.csi.messages import VolumeCapability
from localvol.models import Size


class VolumeExpand(BaseModel):
    """Request model for expanding a volume."""

    required_bytes: Size = Field(..., description="New capacity (bytes or quantity such as 20Gi)")
    volume_capability: Optional[VolumeCapability] = None


class VolumePublish(BaseModel):
    """Request model for publishing a volume to a node."""

    node_id: str = Field("", description="Node the volume is published to")
    volume_capability: Optional[VolumeCapability] = None
    readonly: bool = False


class VolumeUnpublish(BaseModel):
    node_id: str = Field("", description="Node the volume is unpublished from")


class SuccessResponse(BaseModel):
    """Generic success response."""

    request_id: str
    status: str
    data: dict


class ErrorResponse(BaseModel):
    """Generic error response."""

    request_id: str
    status: str
    error: dict
