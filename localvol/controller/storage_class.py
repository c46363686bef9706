"""
Derived StorageClass construction and lifecycle.

A StorageClass is never patched: when its bindings change it is deleted and
created again.
"""

import logging
from typing import Optional, Sequence

from localvol.controller.finalizers import remove_finalizer
from localvol.exceptions import ForeignStorageClass, ResourceAlreadyExists, ResourceNotFound, ValidationFailed
from localvol.models import LocalStorageClass, ObjectMeta, StorageClass
from localvol.parameters import StorageClassParameters
from localvol.store.base import ResourceStore

LOG = logging.getLogger(__name__)

ALLOW_VOLUME_EXPANSION = True


def build_storage_class(lsc: LocalStorageClass, provisioner: str) -> StorageClass:
    """
    Generate the StorageClass for a LocalStorageClass.

    Raises:
        ValidationFailed: The LocalStorageClass has no LVM section
    """
    if lsc.spec.lvm is None:
        raise ValidationFailed(reasons=f"unable to identify the type of LocalStorageClass {lsc.name}")

    params = StorageClassParameters(
        volume_type=lsc.spec.lvm.type,
        binding_mode=lsc.spec.volume_binding_mode,
        volume_groups=lsc.spec.lvm.lvm_volume_groups,
    )
    return StorageClass(
        metadata=ObjectMeta(name=lsc.name, namespace=lsc.namespace),
        provisioner=provisioner,
        parameters=params.encode(provisioner),
        reclaim_policy=lsc.spec.reclaim_policy.value,
        volume_binding_mode=lsc.spec.volume_binding_mode.value,
        allow_volume_expansion=ALLOW_VOLUME_EXPANSION,
    )


def find_storage_class(storage_classes: Sequence[StorageClass], name: str) -> Optional[StorageClass]:
    for sc in storage_classes:
        if sc.name == name:
            return sc
    return None


def create_if_absent(store: ResourceStore, storage_classes: Sequence[StorageClass], sc: StorageClass) -> bool:
    """Create the StorageClass unless one with that name is listed. Returns True when created."""
    if find_storage_class(storage_classes, sc.name) is not None:
        return False
    try:
        store.create(sc)
    except ResourceAlreadyExists:
        LOG.info("storage class %s was created concurrently", sc.name)
        return False
    return True


def delete_storage_class(store: ResourceStore, sc: StorageClass, provisioner: str, attempts: int = 5) -> None:
    """
    Remove our finalizer from a StorageClass, then delete it.

    Raises:
        ForeignStorageClass: The StorageClass belongs to another provisioner
    """
    if sc.provisioner != provisioner:
        raise ForeignStorageClass(name=sc.name, provisioner=provisioner)
    try:
        remove_finalizer(store, StorageClass, sc.name, attempts=attempts)
        store.delete(StorageClass, sc.name)
    except ResourceNotFound:
        LOG.info("storage class %s is already gone", sc.name)


def recreate_storage_class(store: ResourceStore, sc: StorageClass, provisioner: str, attempts: int = 5) -> StorageClass:
    """Delete the current StorageClass named like ``sc`` and create ``sc``."""
    try:
        current = store.get(StorageClass, sc.name)
    except ResourceNotFound:
        current = None
    if current is not None:
        delete_storage_class(store, current, provisioner, attempts=attempts)
    return store.create(sc)
