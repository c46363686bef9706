"""Volume group binding diff between a StorageClass and its LocalStorageClass."""

from localvol.exceptions import InvalidParameters, ParametersDecodeError
from localvol.models import LocalStorageClass, StorageClass, VolumeType
from localvol.parameters import DEFAULT_PROVISIONER, VOLUME_GROUPS_KEY, decode_bindings, param_key


def has_binding_diff(sc: StorageClass, lsc: LocalStorageClass, provisioner: str = DEFAULT_PROVISIONER) -> bool:
    """
    Compare bindings position by position.

    Raises:
        ParametersDecodeError: The StorageClass bindings cannot be decoded, the
            LocalStorageClass has no LVM section, or a Thin binding has a pool
            on neither side
    """
    if lsc.spec.lvm is None:
        raise ParametersDecodeError(name=sc.name, details=f"LocalStorageClass {lsc.name} has no lvm section")
    try:
        current = decode_bindings(sc.parameters.get(param_key(VOLUME_GROUPS_KEY, provisioner)))
    except InvalidParameters as e:
        raise ParametersDecodeError(name=sc.name, details=e.message)

    desired = lsc.spec.lvm.lvm_volume_groups
    if len(current) != len(desired):
        return True

    for have, want in zip(current, desired):
        if have.name != want.name:
            return True
        if lsc.spec.lvm.type == VolumeType.THIN:
            if have.thin is None and want.thin is not None:
                return True
            if have.thin is None and want.thin is None:
                raise ParametersDecodeError(
                    name=sc.name,
                    details=(
                        f"LocalStorageClass type={lsc.spec.lvm.type.value}: the LVMVolumeGroup {have.name} "
                        "has no thin pool configured in either the StorageClass or the LocalStorageClass"
                    ),
                )
            if want.thin is None or have.pool_name != want.pool_name:
                return True
    return False
