"""Placement selector."""

from typing import List, Mapping, Optional

from localvol.csi.capacity import free_capacity
from localvol.exceptions import CapacityExceeded, NoMatchingGroup
from localvol.models import BindingMode, VolumeGroup, VolumeType
from localvol.quantity import format_size


def select(
    candidates: List[VolumeGroup],
    binding_mode: BindingMode,
    preferred_node: Optional[str],
    volume_type: VolumeType,
    requested_size: int,
    pools: Optional[Mapping[str, Optional[str]]] = None,
) -> VolumeGroup:
    """
    Pick the volume group a new logical volume goes to.

    Immediate binding takes the candidate with the most free capacity (the
    first one wins a tie) and requires it to fit the requested size.
    WaitForFirstConsumer binding takes the candidate owned by the node the
    scheduler already chose.

    Args:
        candidates: Volume groups in storage class order
        binding_mode: Storage class binding mode
        preferred_node: Node from the topology hint (WaitForFirstConsumer)
        volume_type: Thick or Thin
        requested_size: Size in bytes
        pools: Volume group name to thin pool name (Thin)

    Returns:
        The selected volume group

    Raises:
        CapacityExceeded: Requested size is larger than the best free capacity
        NoMatchingGroup: No candidate is on the preferred node
    """
    pools = pools or {}

    if binding_mode == BindingMode.WAIT_FOR_FIRST_CONSUMER:
        for candidate in candidates:
            if preferred_node and candidate.node_name == preferred_node:
                return candidate
        raise NoMatchingGroup(candidates=",".join(c.name for c in candidates), node=preferred_node or "")

    best = None
    best_free = -1
    for candidate in candidates:
        free = free_capacity(candidate, volume_type, pools.get(candidate.name))
        if free > best_free:
            best, best_free = candidate, free

    if best is None:
        raise NoMatchingGroup(candidates="", node=preferred_node or "")

    if requested_size > best_free:
        target = best.name
        if volume_type == VolumeType.THIN:
            target = f"{best.name}/{pools.get(best.name)}"
        raise CapacityExceeded(
            requested=format_size(requested_size), available=format_size(best_free), target=target
        )
    return best
