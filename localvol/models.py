"""
Pydantic models for the resources localvol reads and writes.

Field names are snake_case in Python and camelCase on the wire, so the same
models validate Kubernetes manifests, JSON state files and API payloads.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, ClassVar, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from localvol.quantity import parse_size

# Byte count accepting Kubernetes quantities ("10Gi") on input.
Size = Annotated[int, BeforeValidator(parse_size)]


class VolumeType(str, Enum):
    """Logical volume allocation type."""

    THICK = "Thick"
    THIN = "Thin"


class BindingMode(str, Enum):
    """Volume binding mode of a storage class."""

    IMMEDIATE = "Immediate"
    WAIT_FOR_FIRST_CONSUMER = "WaitForFirstConsumer"


class ReclaimPolicy(str, Enum):
    """Reclaim policy of a storage class."""

    DELETE = "Delete"
    RETAIN = "Retain"


class LogicalVolumePhase(str, Enum):
    """Phase written by the node agent."""

    PENDING = "Pending"
    READY = "Ready"
    FAILED = "Failed"


class StorageClassPhase(str, Enum):
    """Observable phase of a LocalStorageClass."""

    CREATED = "Created"
    FAILED = "Failed"


class WireModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=False)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ObjectMeta(WireModel):
    name: str
    namespace: str = ""
    uid: Optional[str] = None
    resource_version: Optional[str] = None
    creation_timestamp: Optional[datetime] = None
    deletion_timestamp: Optional[datetime] = None
    finalizers: List[str] = Field(default_factory=list)


class Resource(WireModel):
    """A named object kept in the resource store."""

    KIND: ClassVar[str] = ""

    metadata: ObjectMeta

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def is_deleting(self) -> bool:
        return self.metadata.deletion_timestamp is not None


# Volume groups (reported by node agents, read-only here)


class ThinPool(WireModel):
    name: str
    size: Size = 0
    free_size: Size = 0


class VolumeGroupSpec(WireModel):
    actual_vg_name_on_the_node: str = Field("", alias="actualVGNameOnTheNode")


class VolumeGroupStatus(WireModel):
    node_name: str = ""
    size: Size = 0
    free_size: Size = 0
    thin_pools: List[ThinPool] = Field(default_factory=list)


class VolumeGroup(Resource):
    KIND: ClassVar[str] = "LVMVolumeGroup"

    spec: VolumeGroupSpec = Field(default_factory=VolumeGroupSpec)
    status: VolumeGroupStatus = Field(default_factory=VolumeGroupStatus)

    @property
    def node_name(self) -> str:
        return self.status.node_name

    @property
    def vg_name(self) -> str:
        """Name of the volume group on the node itself."""
        return self.spec.actual_vg_name_on_the_node or self.metadata.name

    @property
    def free_size(self) -> int:
        return self.status.free_size

    def thin_pool(self, name: Optional[str]) -> Optional[ThinPool]:
        for pool in self.status.thin_pools:
            if pool.name == name:
                return pool
        return None


# Storage class bindings


class ThinBinding(WireModel):
    pool_name: str


class VolumeGroupBinding(WireModel):
    name: str
    thin: Optional[ThinBinding] = None

    @property
    def pool_name(self) -> Optional[str]:
        return self.thin.pool_name if self.thin else None


# Logical volume requests (created here, converged by the node agent)


class ThickSpec(WireModel):
    contiguous: bool = False


class LogicalVolumeSpec(WireModel):
    type: VolumeType
    size: Size
    lvm_volume_group_name: str
    actual_lv_name_on_the_node: str = Field("", alias="actualLVNameOnTheNode")
    thin: Optional[ThinBinding] = None
    thick: Optional[ThickSpec] = None


class LogicalVolumeStatus(WireModel):
    phase: LogicalVolumePhase = LogicalVolumePhase.PENDING
    actual_size: Size = 0
    reason: str = ""


class LogicalVolume(Resource):
    KIND: ClassVar[str] = "LVMLogicalVolume"

    spec: LogicalVolumeSpec
    status: Optional[LogicalVolumeStatus] = None

    @property
    def actual_size(self) -> int:
        return self.status.actual_size if self.status else 0


# LocalStorageClass (desired state) and the derived StorageClass


class LVMSpec(WireModel):
    type: VolumeType
    lvm_volume_groups: List[VolumeGroupBinding] = Field(default_factory=list)


class LocalStorageClassSpec(WireModel):
    reclaim_policy: ReclaimPolicy = ReclaimPolicy.DELETE
    volume_binding_mode: BindingMode = BindingMode.WAIT_FOR_FIRST_CONSUMER
    lvm: Optional[LVMSpec] = None


class LocalStorageClassStatus(WireModel):
    phase: str = ""
    reason: str = ""


class LocalStorageClass(Resource):
    KIND: ClassVar[str] = "LocalStorageClass"

    spec: LocalStorageClassSpec
    status: Optional[LocalStorageClassStatus] = None

    @property
    def bindings(self) -> List[VolumeGroupBinding]:
        return self.spec.lvm.lvm_volume_groups if self.spec.lvm else []


class StorageClass(Resource):
    KIND: ClassVar[str] = "StorageClass"

    provisioner: str
    parameters: Dict[str, str] = Field(default_factory=dict)
    reclaim_policy: Optional[str] = None
    volume_binding_mode: Optional[str] = None
    allow_volume_expansion: Optional[bool] = None


RESOURCE_KINDS = {cls.KIND: cls for cls in (VolumeGroup, LogicalVolume, LocalStorageClass, StorageClass)}
