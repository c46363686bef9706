"""
Controller service: create, expand and delete logical volumes.

Every call gets a trace id; log lines carry
``[<Operation>][traceID:<id>][volumeID:<name>]``.
"""

import logging
import uuid
from typing import Dict, Optional

from localvol.cli.lib.config import LocalVolConfig
from localvol.csi import capacity, placement
from localvol.csi.context import CallContext
from localvol.csi.lvclient import LogicalVolumeClient, build_spec
from localvol.csi.messages import (
    ControllerExpandVolumeRequest,
    ControllerExpandVolumeResponse,
    ControllerGetCapabilitiesResponse,
    ControllerPublishVolumeRequest,
    ControllerPublishVolumeResponse,
    ControllerUnpublishVolumeRequest,
    CreateVolumeRequest,
    CreateVolumeResponse,
    DeleteVolumeRequest,
    Volume,
)
from localvol.exceptions import (
    CapacityExceeded,
    InvalidArgument,
    LocalVolException,
    ResourceAlreadyExists,
    ResourceNotFound,
    attribute,
)
from localvol.models import BindingMode, LogicalVolume, VolumeGroup, VolumeType
from localvol.parameters import TYPE_KEY, TYPE_LVM, StorageClassParameters, param_key
from localvol.quantity import format_size, parse_size, sizes_equal_within_delta
from localvol.store.base import ResourceStore

LOG = logging.getLogger(__name__)

# Volume context keys
SUB_PATH_KEY = "subPath"
VG_NAME_KEY = "vgname"
THIN_POOL_NAME_KEY = "thinPoolName"

CONTROLLER_CAPABILITIES = (
    "CREATE_DELETE_VOLUME",
    "CLONE_VOLUME",
    "GET_CAPACITY",
    "EXPAND_VOLUME",
    "CREATE_DELETE_SNAPSHOT",
    "PUBLISH_UNPUBLISH_VOLUME",
)


def _prefix(operation: str, trace_id: str, volume_id: Optional[str] = None) -> str:
    if volume_id is None:
        return f"[{operation}][traceID:{trace_id}]"
    return f"[{operation}][traceID:{trace_id}][volumeID:{volume_id}]"


class ControllerService:
    """Provisioning controller RPCs over a resource store."""

    def __init__(self, store: ResourceStore, cfg: Optional[LocalVolConfig] = None):
        self.store = store
        self.cfg = cfg or LocalVolConfig()
        try:
            self.resize_delta = parse_size(self.cfg.resize_delta)
        except ValueError as e:
            raise InvalidArgument(details=f"resize delta: {e}")
        self.volumes = LogicalVolumeClient(
            store,
            poll_interval=self.cfg.poll_interval,
            poll_attempts=self.cfg.poll_attempts,
            conflict_retries=self.cfg.conflict_retries,
        )

    def create_volume(self, request: CreateVolumeRequest, ctx: Optional[CallContext] = None) -> CreateVolumeResponse:
        """
        Place, create and wait for a logical volume.

        Re-delivery of the same request is safe: an existing logical volume
        with the requested name is reused.

        Raises:
            InvalidArgument: Missing name, capabilities, size or bad parameters
            ResourceNotFound: No bound volume group could be read, or none on the preferred node
            CapacityExceeded: Requested size does not fit
            ResourceAlreadyExists: A logical volume with this name has another type or size
            ConvergenceTimeout, OperationCancelled, LogicalVolumeFailed: The volume did not converge
        """
        ctx = ctx or CallContext()
        trace_id = str(uuid.uuid4())
        prefix = _prefix("CreateVolume", trace_id)

        if request.parameters.get(param_key(TYPE_KEY, self.cfg.provisioner)) != TYPE_LVM:
            raise InvalidArgument(details="Unsupported Storage Class type")
        if not request.name:
            raise InvalidArgument(details="Volume Name cannot be empty")
        if not request.volume_capabilities:
            raise InvalidArgument(details="Volume Capability cannot be empty")
        if request.required_bytes <= 0:
            raise InvalidArgument(details="Required capacity must be greater than zero")

        volume_id = request.name
        prefix = _prefix("CreateVolume", trace_id, volume_id)

        try:
            params = StorageClassParameters.decode(request.parameters, self.cfg.provisioner)
        except LocalVolException as e:
            LOG.error("%s invalid storage class parameters: %s", prefix, e)
            raise attribute(e, "decode storage class parameters")
        LOG.info(
            "%s storage class BindingMode: %s, LvmType: %s, size: %s",
            prefix,
            params.binding_mode.value,
            params.volume_type.value,
            format_size(request.required_bytes),
        )

        selected = None
        volume = self._existing_volume(volume_id, prefix)
        if volume is None:
            selected = self._select_volume_group(request, params, prefix)
            pool_name = params.pool_for(selected.name) if params.volume_type == VolumeType.THIN else None
            spec = build_spec(
                volume_id, selected, params.volume_type, request.required_bytes, pool_name, params.thick_contiguous
            )
            try:
                volume = self.volumes.create(volume_id, spec, prefix)
            except LocalVolException as e:
                LOG.error("%s error creating LVMLogicalVolume: %s", prefix, e)
                raise attribute(e, "create LVMLogicalVolume")
        else:
            LOG.info(
                "%s LVMLogicalVolume already exists on LVMVolumeGroup %s. Skip selecting a volume group",
                prefix,
                volume.spec.lvm_volume_group_name,
            )

        # The stored request decides the placement, also when a concurrent call created it first.
        self._check_reusable(volume, params, request.required_bytes)
        if selected is None or selected.name != volume.spec.lvm_volume_group_name:
            selected = self._volume_group_of(volume, prefix)
        pool_name = volume.spec.thin.pool_name if volume.spec.thin else None
        LOG.info(
            "%s LVMLogicalVolume on LVMVolumeGroup %s, node %s, thin pool %s",
            prefix,
            selected.name,
            selected.node_name,
            pool_name,
        )

        try:
            attempts = self.volumes.wait_for_convergence(
                volume_id, "", request.required_bytes, self.resize_delta, ctx, prefix
            )
        except LocalVolException as e:
            LOG.error("%s error waiting for LVMLogicalVolume %s: %s. Deleting it", prefix, volume_id, e)
            try:
                self.volumes.delete(volume_id, prefix)
            except LocalVolException as delete_error:
                LOG.error("%s error deleting LVMLogicalVolume %s: %s", prefix, volume_id, delete_error)
            raise attribute(e, "wait for LVMLogicalVolume")
        LOG.info("%s LVMLogicalVolume converged, attempt counter = %d", prefix, attempts)

        volume_context = dict(request.parameters)
        volume_context[SUB_PATH_KEY] = volume_id
        volume_context[VG_NAME_KEY] = selected.vg_name
        volume_context[THIN_POOL_NAME_KEY] = pool_name or ""

        LOG.info("%s Volume created successfully. volume context: %s", prefix, volume_context)
        return CreateVolumeResponse(
            volume=Volume(
                volume_id=volume_id,
                capacity_bytes=request.required_bytes,
                volume_context=volume_context,
                accessible_topology=[{self.cfg.topology_key: selected.node_name}],
                content_source=request.content_source,
            )
        )

    def _existing_volume(self, volume_id: str, prefix: str) -> Optional[LogicalVolume]:
        try:
            return self.volumes.get(volume_id)
        except ResourceNotFound:
            return None
        except LocalVolException as e:
            LOG.error("%s unable to get LVMLogicalVolume: %s", prefix, e)
            raise attribute(e, "get LVMLogicalVolume")

    def _select_volume_group(
        self, request: CreateVolumeRequest, params: StorageClassParameters, prefix: str
    ) -> VolumeGroup:
        preferred_node = None
        if params.binding_mode == BindingMode.WAIT_FOR_FIRST_CONSUMER:
            preferred_node = self._preferred_node(request)
            LOG.info("%s preferred node from topology: %s", prefix, preferred_node)

        try:
            candidates = capacity.read_candidates(self.store, params, prefix)
        except LocalVolException as e:
            LOG.error("%s unable to read storage class volume groups: %s", prefix, e)
            raise attribute(e, "read LVMVolumeGroups")

        pools = {b.name: b.pool_name for b in params.volume_groups}
        try:
            selected = placement.select(
                candidates,
                params.binding_mode,
                preferred_node,
                params.volume_type,
                request.required_bytes,
                pools,
            )
        except LocalVolException as e:
            LOG.error("%s unable to select a volume group: %s", prefix, e)
            raise attribute(e, "select LVMVolumeGroup")
        LOG.info("%s selected LVMVolumeGroup %s on node %s", prefix, selected.name, selected.node_name)
        return selected

    def _check_reusable(self, volume: LogicalVolume, params: StorageClassParameters, required_bytes: int) -> None:
        """Raise ResourceAlreadyExists if the stored request differs from this one."""
        if volume.spec.type == params.volume_type and sizes_equal_within_delta(
            volume.spec.size, required_bytes, self.resize_delta
        ):
            return
        raise ResourceAlreadyExists(
            message=(
                f"LVMLogicalVolume {volume.name} already exists with type {volume.spec.type.value} "
                f"and size {format_size(volume.spec.size)}"
            )
        )

    def _volume_group_of(self, volume: LogicalVolume, prefix: str) -> VolumeGroup:
        try:
            return self.store.get(VolumeGroup, volume.spec.lvm_volume_group_name, volume.namespace)
        except LocalVolException as e:
            LOG.error("%s unable to get LVMVolumeGroup of LVMLogicalVolume: %s", prefix, e)
            raise attribute(e, "get LVMVolumeGroup")

    def _preferred_node(self, request: CreateVolumeRequest) -> Optional[str]:
        requirements = request.accessibility_requirements
        if requirements is None or not requirements.preferred:
            return None
        return requirements.preferred[0].get(self.cfg.topology_key)

    def delete_volume(self, request: DeleteVolumeRequest) -> None:
        """Delete a logical volume. Only an empty id fails the call."""
        trace_id = str(uuid.uuid4())
        if not request.volume_id:
            raise InvalidArgument(details="Volume ID cannot be empty")
        prefix = _prefix("DeleteVolume", trace_id, request.volume_id)

        try:
            self.volumes.delete(request.volume_id, prefix)
        except LocalVolException as e:
            LOG.error("%s error deleting LVMLogicalVolume: %s", prefix, e)
        LOG.info("%s Volume deleted successfully", prefix)

    def controller_expand_volume(
        self, request: ControllerExpandVolumeRequest, ctx: Optional[CallContext] = None
    ) -> ControllerExpandVolumeResponse:
        """
        Grow a logical volume and wait for the node agent to apply it.

        A request already satisfied within the resize delta, or smaller than
        the actual size, returns the actual size without changing anything.

        Raises:
            InvalidArgument: Empty volume id
            ResourceNotFound: Logical volume or its volume group is missing
            CapacityExceeded: Thick volume growth does not fit the volume group
        """
        ctx = ctx or CallContext()
        trace_id = str(uuid.uuid4())
        volume_id = request.volume_id
        if not volume_id:
            raise InvalidArgument(details="Volume id cannot be empty")
        prefix = _prefix("ControllerExpandVolume", trace_id, volume_id)

        node_expansion_required = not (request.volume_capability and request.volume_capability.block)
        LOG.info("%s NodeExpansionRequired: %s", prefix, node_expansion_required)

        try:
            volume = self.volumes.get(volume_id)
        except LocalVolException as e:
            LOG.error("%s error getting LVMLogicalVolume: %s", prefix, e)
            raise attribute(e, "get LVMLogicalVolume")

        requested = request.required_bytes
        actual = volume.actual_size
        if actual > requested + self.resize_delta or sizes_equal_within_delta(requested, actual, self.resize_delta):
            LOG.warning(
                "%s requested size %s is within %s of or below the actual size %s, no need to resize",
                prefix,
                format_size(requested),
                format_size(self.resize_delta),
                format_size(actual),
            )
            return ControllerExpandVolumeResponse(capacity_bytes=actual, node_expansion_required=node_expansion_required)

        try:
            volume_group = self.store.get(VolumeGroup, volume.spec.lvm_volume_group_name, volume.namespace)
        except LocalVolException as e:
            LOG.error("%s error getting LVMVolumeGroup: %s", prefix, e)
            raise attribute(e, "get LVMVolumeGroup")

        if volume.spec.type == VolumeType.THICK and volume_group.free_size < requested - actual:
            LOG.error(
                "%s requested size %s is greater than the free space %s of LVMVolumeGroup %s",
                prefix,
                format_size(requested),
                format_size(volume_group.free_size),
                volume_group.name,
            )
            raise CapacityExceeded(
                requested=format_size(requested),
                available=format_size(volume_group.free_size),
                target=volume_group.name,
            )

        LOG.info("%s resizing LVMLogicalVolume from %s to %s", prefix, format_size(actual), format_size(requested))
        try:
            self.volumes.expand(volume_id, requested, volume.namespace)
        except LocalVolException as e:
            LOG.error("%s error updating LVMLogicalVolume: %s", prefix, e)
            raise attribute(e, "update LVMLogicalVolume")

        try:
            attempts = self.volumes.wait_for_convergence(
                volume_id, volume.namespace, requested, self.resize_delta, ctx, prefix
            )
        except LocalVolException as e:
            LOG.error("%s error waiting for LVMLogicalVolume: %s", prefix, e)
            raise attribute(e, "wait for LVMLogicalVolume")
        LOG.info("%s Volume expanded successfully, attempt counter = %d", prefix, attempts)

        return ControllerExpandVolumeResponse(capacity_bytes=requested, node_expansion_required=node_expansion_required)

    def controller_publish_volume(self, request: ControllerPublishVolumeRequest) -> ControllerPublishVolumeResponse:
        LOG.info("method ControllerPublishVolume")
        return ControllerPublishVolumeResponse(publish_context={self.cfg.publish_info_volume_name: request.volume_id})

    def controller_unpublish_volume(self, request: ControllerUnpublishVolumeRequest) -> Dict[str, str]:
        LOG.info("method ControllerUnpublishVolume")
        return {}

    def controller_get_capabilities(self) -> ControllerGetCapabilitiesResponse:
        return ControllerGetCapabilitiesResponse(capabilities=list(CONTROLLER_CAPABILITIES))

    # Not implemented: these calls answer with an empty result.

    def controller_get_volume(self, volume_id: str) -> None:
        LOG.info("call method ControllerGetVolume")
        return None

    def controller_modify_volume(self, volume_id: str) -> None:
        LOG.info("call method ControllerModifyVolume")
        return None

    def validate_volume_capabilities(self, volume_id: str) -> None:
        LOG.info("call method ValidateVolumeCapabilities")
        return None

    def list_volumes(self) -> None:
        LOG.info("call method ListVolumes")
        return None

    def get_capacity(self) -> None:
        LOG.info("call method GetCapacity")
        return None

    def create_snapshot(self) -> None:
        LOG.info("call method CreateSnapshot")
        return None

    def delete_snapshot(self, snapshot_id: str) -> None:
        LOG.info("call method DeleteSnapshot")
        return None

    def list_snapshots(self) -> None:
        LOG.info("call method ListSnapshots")
        return None
