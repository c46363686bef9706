"""
Typed storage class parameters.

A platform StorageClass carries its configuration as a flat string map. This
module is the only place that map is read or written: everything else works
with ``StorageClassParameters``.
"""

from typing import Dict, List, Mapping, Optional

import yaml
from pydantic import ValidationError

from localvol.exceptions import InvalidParameters
from localvol.models import BindingMode, VolumeGroupBinding, VolumeType, WireModel

DEFAULT_PROVISIONER = "local.csi.localvol.io"

TYPE_LVM = "lvm"

TYPE_KEY = "type"
LVM_TYPE_KEY = "lvm-type"
BINDING_MODE_KEY = "volume-binding-mode"
VOLUME_GROUPS_KEY = "lvm-volume-groups"
THICK_CONTIGUOUS_KEY = "lvm-thick-contiguous"

_KNOWN_KEYS = (TYPE_KEY, LVM_TYPE_KEY, BINDING_MODE_KEY, VOLUME_GROUPS_KEY, THICK_CONTIGUOUS_KEY)


def param_key(key: str, provisioner: str = DEFAULT_PROVISIONER) -> str:
    """Return the fully qualified parameter key ("<provisioner>/<key>")."""
    return f"{provisioner}/{key}"


def encode_bindings(bindings: List[VolumeGroupBinding]) -> str:
    """Serialize volume group bindings as a YAML list of {name, thin: {poolName}}."""
    return yaml.safe_dump([b.to_wire() for b in bindings], default_flow_style=False, sort_keys=False)


def decode_bindings(raw: Optional[str]) -> List[VolumeGroupBinding]:
    """
    Parse a YAML volume group list.

    Args:
        raw: YAML text as stored in the parameters map

    Returns:
        Bindings in their original order

    Raises:
        InvalidParameters: If the text is missing, not a list, or an item is malformed
    """
    if raw is None:
        raise InvalidParameters(details=f"missing {VOLUME_GROUPS_KEY}")
    try:
        items = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise InvalidParameters(details=f"{VOLUME_GROUPS_KEY} is not valid YAML: {e}")
    if items is None:
        return []
    if not isinstance(items, list):
        raise InvalidParameters(details=f"{VOLUME_GROUPS_KEY} must be a list, got {type(items).__name__}")
    try:
        return [VolumeGroupBinding.model_validate(item) for item in items]
    except ValidationError as e:
        raise InvalidParameters(details=f"malformed {VOLUME_GROUPS_KEY} entry: {e}")


class StorageClassParameters(WireModel):
    """Strongly typed view of a storage class parameters map."""

    volume_type: VolumeType
    binding_mode: BindingMode
    volume_groups: List[VolumeGroupBinding]
    # Only Thick volumes are allocated contiguously.
    thick_contiguous: bool = False

    def pool_for(self, volume_group: str) -> Optional[str]:
        for binding in self.volume_groups:
            if binding.name == volume_group:
                return binding.pool_name
        return None

    def encode(self, provisioner: str = DEFAULT_PROVISIONER) -> Dict[str, str]:
        params = {
            param_key(TYPE_KEY, provisioner): TYPE_LVM,
            param_key(LVM_TYPE_KEY, provisioner): self.volume_type.value,
            param_key(BINDING_MODE_KEY, provisioner): self.binding_mode.value,
            param_key(VOLUME_GROUPS_KEY, provisioner): encode_bindings(self.volume_groups),
        }
        if self.thick_contiguous:
            params[param_key(THICK_CONTIGUOUS_KEY, provisioner)] = "true"
        return params

    @classmethod
    def decode(cls, params: Mapping[str, str], provisioner: str = DEFAULT_PROVISIONER) -> "StorageClassParameters":
        """
        Build typed parameters from a raw map, rejecting anything ambiguous.

        Keys outside the provisioner prefix (for example the ones an external
        provisioner sidecar injects) are ignored.

        Raises:
            InvalidParameters: On unknown, missing or invalid keys
        """
        prefix = f"{provisioner}/"
        unknown = sorted(k for k in params if k.startswith(prefix) and k[len(prefix):] not in _KNOWN_KEYS)
        if unknown:
            raise InvalidParameters(details=f"unknown keys: {', '.join(unknown)}")

        sc_type = params.get(param_key(TYPE_KEY, provisioner))
        if sc_type != TYPE_LVM:
            raise InvalidParameters(details=f"unsupported storage class type {sc_type!r}")

        raw_type = params.get(param_key(LVM_TYPE_KEY, provisioner))
        try:
            volume_type = VolumeType(raw_type)
        except ValueError:
            raise InvalidParameters(details=f"unsupported {LVM_TYPE_KEY} {raw_type!r}")

        raw_mode = params.get(param_key(BINDING_MODE_KEY, provisioner))
        try:
            binding_mode = BindingMode(raw_mode)
        except ValueError:
            raise InvalidParameters(details=f"unsupported {BINDING_MODE_KEY} {raw_mode!r}")

        raw_groups = params.get(param_key(VOLUME_GROUPS_KEY, provisioner))
        if not raw_groups:
            raise InvalidParameters(details="no volume groups specified")
        volume_groups = decode_bindings(raw_groups)
        if not volume_groups:
            raise InvalidParameters(details="no volume groups specified")

        if volume_type == VolumeType.THIN:
            missing = [b.name for b in volume_groups if not b.pool_name]
            if missing:
                raise InvalidParameters(details=f"thin pool is not set for volume groups: {', '.join(missing)}")

        raw_contiguous = params.get(param_key(THICK_CONTIGUOUS_KEY, provisioner), "false")
        if raw_contiguous.lower() not in ("true", "false"):
            raise InvalidParameters(details=f"{THICK_CONTIGUOUS_KEY} must be true or false, got {raw_contiguous!r}")

        return cls(
            volume_type=volume_type,
            binding_mode=binding_mode,
            volume_groups=volume_groups,
            thick_contiguous=raw_contiguous.lower() == "true",
        )
