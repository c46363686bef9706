"""Logical volume lifecycle client.

Creates, reads, resizes and deletes LVMLogicalVolume requests, and waits for
the node agent to converge them.
"""

import logging
from typing import Optional

from localvol.csi.context import CallContext
from localvol.exceptions import ConvergenceTimeout, LogicalVolumeFailed, ResourceAlreadyExists, ResourceNotFound
from localvol.models import (
    LogicalVolume,
    LogicalVolumePhase,
    LogicalVolumeSpec,
    ObjectMeta,
    ThickSpec,
    ThinBinding,
    VolumeGroup,
    VolumeType,
)
from localvol.quantity import format_size, sizes_equal_within_delta
from localvol.store.base import ResourceStore
from localvol.store.retry import update_with_retry

LOG = logging.getLogger(__name__)


def build_spec(
    name: str,
    volume_group: VolumeGroup,
    volume_type: VolumeType,
    size: int,
    pool_name: Optional[str] = None,
    contiguous: bool = False,
) -> LogicalVolumeSpec:
    """Desired state of a logical volume named like its volume."""
    thin = ThinBinding(pool_name=pool_name) if volume_type == VolumeType.THIN else None
    thick = ThickSpec(contiguous=contiguous) if volume_type == VolumeType.THICK else None
    return LogicalVolumeSpec(
        type=volume_type,
        size=size,
        lvm_volume_group_name=volume_group.name,
        actual_lv_name_on_the_node=name,
        thin=thin,
        thick=thick,
    )


class LogicalVolumeClient:
    def __init__(
        self,
        store: ResourceStore,
        poll_interval: float = 1.0,
        poll_attempts: int = 60,
        conflict_retries: int = 5,
    ):
        self.store = store
        self.poll_interval = poll_interval
        self.poll_attempts = poll_attempts
        self.conflict_retries = conflict_retries

    def create(self, name: str, spec: LogicalVolumeSpec, log_prefix: str = "") -> LogicalVolume:
        """Submit a logical volume request; an existing one with that name is reused."""
        request = LogicalVolume(metadata=ObjectMeta(name=name), spec=spec)
        try:
            created = self.store.create(request)
            LOG.info("%s LVMLogicalVolume %s created", log_prefix, name)
            return created
        except ResourceAlreadyExists:
            LOG.info("%s LVMLogicalVolume %s already exists. Skip creating", log_prefix, name)
            return self.store.get(LogicalVolume, name)

    def get(self, name: str, namespace: str = "") -> LogicalVolume:
        return self.store.get(LogicalVolume, name, namespace)

    def expand(self, name: str, size: int, namespace: str = "") -> LogicalVolume:
        """Set a new desired size, retrying on concurrent writes."""

        def _resize(volume: LogicalVolume) -> None:
            volume.spec.size = size

        return update_with_retry(
            self.store, LogicalVolume, name, _resize, namespace=namespace, attempts=self.conflict_retries
        )

    def delete(self, name: str, log_prefix: str = "") -> None:
        """Delete a logical volume request; a missing one is already deleted."""
        try:
            self.store.delete(LogicalVolume, name)
            LOG.info("%s LVMLogicalVolume %s deleted", log_prefix, name)
        except ResourceNotFound:
            LOG.info("%s LVMLogicalVolume %s does not exist. Skip deleting", log_prefix, name)

    def wait_for_convergence(
        self,
        name: str,
        namespace: str,
        desired_size: int,
        delta: int,
        ctx: Optional[CallContext] = None,
        log_prefix: str = "",
    ) -> int:
        """
        Poll a logical volume until its actual size is within delta of the desired size.

        Returns:
            Number of attempts made

        Raises:
            ConvergenceTimeout: Attempt budget exhausted
            OperationCancelled: The call was cancelled or its deadline passed
            LogicalVolumeFailed: The node agent reported a failure
            ResourceNotFound: The request disappeared
        """
        ctx = ctx or CallContext()
        for attempt in range(1, self.poll_attempts + 1):
            ctx.check("wait for LVMLogicalVolume %s" % name)
            volume = self.get(name, namespace)
            status = volume.status
            if status is not None:
                if status.phase == LogicalVolumePhase.FAILED:
                    raise LogicalVolumeFailed(name=name, reason=status.reason or "unknown")
                if sizes_equal_within_delta(status.actual_size, desired_size, delta):
                    LOG.debug("%s LVMLogicalVolume %s converged after %d attempts", log_prefix, name, attempt)
                    return attempt
                LOG.debug(
                    "%s attempt %d: LVMLogicalVolume %s actual size %s, desired %s",
                    log_prefix,
                    attempt,
                    name,
                    format_size(status.actual_size),
                    format_size(desired_size),
                )
            else:
                LOG.debug("%s attempt %d: LVMLogicalVolume %s has no status yet", log_prefix, attempt, name)

            if attempt < self.poll_attempts and not ctx.wait(self.poll_interval):
                ctx.check("wait for LVMLogicalVolume %s" % name)
        raise ConvergenceTimeout(name=name, size=format_size(desired_size), attempts=self.poll_attempts)
