"""Finalizer bookkeeping on LocalStorageClasses and their StorageClasses."""

import logging
from typing import Type

from localvol.store.base import R, ResourceStore
from localvol.store.retry import update_with_retry

LOG = logging.getLogger(__name__)

FINALIZER = "localstorageclass.storage.localvol.io"


def add_finalizer(store: ResourceStore, cls: Type[R], name: str, attempts: int = 5) -> bool:
    """Add the finalizer if missing. Returns True when it was added."""
    added = []

    def _add(obj: R) -> bool:
        if FINALIZER in obj.metadata.finalizers:
            return False
        obj.metadata.finalizers.append(FINALIZER)
        added.append(True)
        return True

    update_with_retry(store, cls, name, _add, attempts=attempts)
    LOG.debug("finalizer %s added to the %s %s: %s", FINALIZER, cls.KIND, name, bool(added))
    return bool(added)


def remove_finalizer(store: ResourceStore, cls: Type[R], name: str, attempts: int = 5) -> bool:
    """Remove the finalizer if present. Returns True when it was removed.

    Removing the last finalizer of an object marked for deletion deletes it.
    """
    removed = []

    def _remove(obj: R) -> bool:
        if FINALIZER not in obj.metadata.finalizers:
            return False
        obj.metadata.finalizers = [f for f in obj.metadata.finalizers if f != FINALIZER]
        removed.append(True)
        return True

    update_with_retry(store, cls, name, _remove, attempts=attempts)
    LOG.debug("finalizer %s removed from the %s %s: %s", FINALIZER, cls.KIND, name, bool(removed))
    return bool(removed)
