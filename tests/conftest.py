"""
Pytest configuration and fixtures.
"""

import shutil
import tempfile
from pathlib import Path
from typing import Optional, Sequence, Tuple

import pytest

from localvol.cli.lib.config import LocalVolConfig
from localvol.models import (
    BindingMode,
    LocalStorageClass,
    LocalStorageClassSpec,
    LogicalVolume,
    LogicalVolumePhase,
    LogicalVolumeStatus,
    LVMSpec,
    ObjectMeta,
    ThinBinding,
    ThinPool,
    VolumeGroup,
    VolumeGroupBinding,
    VolumeGroupSpec,
    VolumeGroupStatus,
    VolumeType,
)
from localvol.parameters import StorageClassParameters
from localvol.store.memory import MemoryStore

GiB = 1 << 30


class AgentStore(MemoryStore):
    """MemoryStore that converges logical volumes the way a node agent does.

    Every create or update of a logical volume immediately reports it Ready at
    its desired size, or Failed when ``fail_reason`` is set.
    """

    def __init__(self, fail_reason: Optional[str] = None):
        super().__init__()
        self.fail_reason = fail_reason

    def _converge(self, obj):
        if obj.KIND != LogicalVolume.KIND:
            return
        with self._lock:
            stored = self._objects.get(self._key(obj.KIND, obj.name, obj.namespace))
            if stored is None:
                return
            if self.fail_reason:
                stored.status = LogicalVolumeStatus(phase=LogicalVolumePhase.FAILED, reason=self.fail_reason)
            else:
                stored.status = LogicalVolumeStatus(phase=LogicalVolumePhase.READY, actual_size=stored.spec.size)

    def create(self, obj):
        stored = super().create(obj)
        self._converge(stored)
        return stored

    def update(self, obj):
        stored = super().update(obj)
        self._converge(stored)
        return stored


def volume_group(name: str, node: str, free: int, size: int = 0, pools: Sequence[Tuple[str, int]] = ()) -> VolumeGroup:
    return VolumeGroup(
        metadata=ObjectMeta(name=name),
        spec=VolumeGroupSpec(actual_vg_name_on_the_node=f"{name}-data"),
        status=VolumeGroupStatus(
            node_name=node,
            size=size or free,
            free_size=free,
            thin_pools=[ThinPool(name=pool, size=pool_free, free_size=pool_free) for pool, pool_free in pools],
        ),
    )


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path)


@pytest.fixture
def config():
    """Config with a fast, short polling budget."""
    return LocalVolConfig(
        poll_interval=0.0,
        poll_attempts=3,
        conflict_retries=3,
        requeue_interval=1,
        store_backend="memory",
    )


@pytest.fixture
def volume_groups():
    """Three volume groups on three nodes, each with one thin pool."""
    return [
        volume_group("vg-a", "node-a", free=5 * GiB, size=10 * GiB, pools=[("pool-x", 5 * GiB)]),
        volume_group("vg-b", "node-b", free=20 * GiB, size=40 * GiB, pools=[("pool-y", 20 * GiB)]),
        volume_group("vg-c", "node-c", free=8 * GiB, size=8 * GiB, pools=[("pool-z", 8 * GiB)]),
    ]


@pytest.fixture
def agent_store(volume_groups):
    """Store whose logical volumes converge at once."""
    store = AgentStore()
    for vg in volume_groups:
        store.create(vg)
    return store


@pytest.fixture
def pending_store(volume_groups):
    """Store whose logical volumes never converge."""
    store = MemoryStore()
    for vg in volume_groups:
        store.create(vg)
    return store


@pytest.fixture
def make_params():
    """Build an encoded storage class parameters map."""

    def _make(volume_type=VolumeType.THIN, binding_mode=BindingMode.IMMEDIATE, bindings=()):
        return StorageClassParameters(
            volume_type=volume_type,
            binding_mode=binding_mode,
            volume_groups=_bindings(bindings),
        ).encode()

    return _make


@pytest.fixture
def make_lsc():
    """Build a LocalStorageClass from (group, pool) pairs."""

    def _make(name="local-thin", volume_type=VolumeType.THIN, bindings=(), binding_mode=BindingMode.IMMEDIATE):
        return LocalStorageClass(
            metadata=ObjectMeta(name=name),
            spec=LocalStorageClassSpec(
                volume_binding_mode=binding_mode,
                lvm=LVMSpec(type=volume_type, lvm_volume_groups=_bindings(bindings)),
            ),
        )

    return _make


def _bindings(pairs):
    return [
        VolumeGroupBinding(name=name, thin=ThinBinding(pool_name=pool) if pool else None) for name, pool in pairs
    ]


@pytest.fixture
def failing_store(volume_groups):
    """Store whose logical volumes are reported Failed by the node agent."""
    store = AgentStore(fail_reason="not enough space in the thin pool")
    for vg in volume_groups:
        store.create(vg)
    return store


@pytest.fixture
def make_vg():
    """Build a volume group reported by a node."""
    return volume_group
