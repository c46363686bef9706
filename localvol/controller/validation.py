"""
LocalStorageClass validation against the live volume group inventory.

Every check runs, so one status message lists all problems found.
"""

from collections import OrderedDict
from typing import Dict, List, Sequence, Tuple

from localvol.models import LocalStorageClass, StorageClass, VolumeGroup, VolumeType


def find_unmanaged_duplicate(storage_classes: Sequence[StorageClass], lsc: LocalStorageClass, provisioner: str) -> str:
    for sc in storage_classes:
        if sc.name == lsc.name and sc.provisioner != provisioner:
            return sc.name
    return ""


def find_groups_on_same_node(volume_groups: Sequence[VolumeGroup], lsc: LocalStorageClass) -> List[str]:
    """Return one "|node: vg1,vg2," entry per node used by more than one binding."""
    used = {b.name for b in lsc.bindings}
    by_node: Dict[str, List[str]] = OrderedDict()
    for vg in volume_groups:
        if vg.name in used and vg.node_name:
            by_node.setdefault(vg.node_name, []).append(vg.name)

    entries = []
    for node, names in by_node.items():
        if len(names) > 1:
            entries.append(f"|{node}: " + "".join(f"{name}," for name in names))
    return entries


def find_nonexistent_groups(volume_groups: Sequence[VolumeGroup], lsc: LocalStorageClass) -> List[str]:
    existing = {vg.name for vg in volume_groups}
    return [b.name for b in lsc.bindings if b.name not in existing]


def find_nonexistent_thin_pools(volume_groups: Sequence[VolumeGroup], lsc: LocalStorageClass) -> List[str]:
    """Bindings without a pool, or whose pool is not in the group status."""
    groups = {vg.name: vg for vg in volume_groups}
    bad = []
    for binding in lsc.bindings:
        vg = groups.get(binding.name)
        if binding.pool_name is None or vg is None or vg.thin_pool(binding.pool_name) is None:
            bad.append(binding.name)
    return bad


def find_any_thin_pool(lsc: LocalStorageClass) -> List[str]:
    return [b.name for b in lsc.bindings if b.thin is not None]


def validate(
    lsc: LocalStorageClass,
    storage_classes: Sequence[StorageClass],
    volume_groups: Sequence[VolumeGroup],
    provisioner: str,
) -> Tuple[bool, str]:
    """
    Check a LocalStorageClass against StorageClasses and volume groups.

    Returns:
        (valid, reasons) where reasons holds one line per failed check
    """
    valid = True
    reasons = []

    unmanaged = find_unmanaged_duplicate(storage_classes, lsc, provisioner)
    if unmanaged:
        valid = False
        reasons.append(
            f"There already is a storage class with the same name: {unmanaged} "
            "but it is not managed by the LocalStorageClass controller"
        )

    if lsc.spec.lvm is None:
        valid = False
        reasons.append(f"Unable to identify a type of LocalStorageClass {lsc.name}")
        return valid, "\n".join(reasons)

    same_node = find_groups_on_same_node(volume_groups, lsc)
    if same_node:
        valid = False
        reasons.append(f"Some LVMVolumeGroups use the same node (|node: LVG names): {''.join(same_node)}")

    nonexistent = find_nonexistent_groups(volume_groups, lsc)
    if nonexistent:
        valid = False
        reasons.append(f"Some of selected LVMVolumeGroups are nonexistent, LVG names: {','.join(nonexistent)}")

    if lsc.spec.lvm.type == VolumeType.THIN:
        missing_pools = find_nonexistent_thin_pools(volume_groups, lsc)
        if missing_pools:
            valid = False
            reasons.append(f"Some LVMVolumeGroups use nonexistent thin pools, LVG names: {','.join(missing_pools)}")
    else:
        with_pools = find_any_thin_pool(lsc)
        if with_pools:
            valid = False
            reasons.append(
                f"Some LVMVolumeGroups use thin pools though device type is Thick, LVG names: {','.join(with_pools)}"
            )

    return valid, "\n".join(reasons)
