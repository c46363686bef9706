"""Capacity model reader.

Turns storage class parameters into the list of volume groups a volume may be
placed on. Read only.
"""

import logging
from typing import List, Optional

from localvol.exceptions import LocalVolException, ResourceNotFound
from localvol.models import VolumeGroup, VolumeType
from localvol.parameters import StorageClassParameters
from localvol.store.base import ResourceStore

LOG = logging.getLogger(__name__)


def free_capacity(volume_group: VolumeGroup, volume_type: VolumeType, pool_name: Optional[str] = None) -> int:
    """Free bytes usable by a new volume: the group for Thick, the pool for Thin.

    A thin pool missing from the group status has no free capacity.
    """
    if volume_type == VolumeType.THIN:
        pool = volume_group.thin_pool(pool_name)
        return pool.free_size if pool else 0
    return volume_group.free_size


def read_candidates(store: ResourceStore, params: StorageClassParameters, log_prefix: str = "") -> List[VolumeGroup]:
    """
    Read every volume group bound by the parameters, keeping binding order.

    A group that cannot be read is logged and skipped so placement can go on
    with the rest.

    Raises:
        ResourceNotFound: If none of the bound volume groups could be read
    """
    candidates = []
    for binding in params.volume_groups:
        try:
            candidates.append(store.get(VolumeGroup, binding.name))
        except LocalVolException as e:
            LOG.warning("%s unable to read LVMVolumeGroup %s, skipping it: %s", log_prefix, binding.name, e)
    if not candidates:
        names = ",".join(b.name for b in params.volume_groups)
        raise ResourceNotFound(kind=VolumeGroup.KIND, name=names)
    return candidates
