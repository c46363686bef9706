"""
LocalStorageClass reconciler.

Each pass re-reads the LocalStorageClass and every StorageClass, decides what
to do with the pure ``classify`` function and runs the create, update or
delete path. Failures are written to the LocalStorageClass status and handed
back to the loop as a requeue request.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from localvol.cli.lib.config import LocalVolConfig
from localvol.controller import storage_class as sc_ops
from localvol.controller.diff import has_binding_diff
from localvol.controller.finalizers import add_finalizer, remove_finalizer
from localvol.controller.validation import validate
from localvol.exceptions import ForeignStorageClass, LocalVolException, ResourceNotFound, ValidationFailed
from localvol.models import (
    LocalStorageClass,
    LocalStorageClassStatus,
    StorageClass,
    StorageClassPhase,
    VolumeGroup,
)
from localvol.store.base import ResourceStore
from localvol.store.retry import update_with_retry

LOG = logging.getLogger(__name__)


class ReconcileAction(str, Enum):
    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"
    NONE = "none"


@dataclass
class ReconcileResult:
    requeue: bool = False
    requeue_after: float = 0
    error: Optional[Exception] = None


def should_create(lsc: LocalStorageClass, storage_classes: Sequence[StorageClass]) -> bool:
    if lsc.is_deleting:
        return False
    for sc in storage_classes:
        if sc.name == lsc.name and lsc.status is not None:
            return False
    return True


def should_update(lsc: LocalStorageClass, storage_classes: Sequence[StorageClass], provisioner: str) -> bool:
    """
    Raises:
        ForeignStorageClass: The StorageClass belongs to another provisioner
        ResourceNotFound: There is no StorageClass for the LocalStorageClass
        ParametersDecodeError: The StorageClass bindings cannot be compared
    """
    if lsc.is_deleting:
        return False
    sc = sc_ops.find_storage_class(storage_classes, lsc.name)
    if sc is None:
        raise ResourceNotFound(kind=StorageClass.KIND, name=lsc.name)
    if sc.provisioner != provisioner:
        raise ForeignStorageClass(name=sc.name, provisioner=provisioner)
    if has_binding_diff(sc, lsc, provisioner):
        return True
    return lsc.status is not None and lsc.status.phase == StorageClassPhase.FAILED.value


def classify(lsc: LocalStorageClass, storage_classes: Sequence[StorageClass], provisioner: str) -> ReconcileAction:
    """Decide the reconcile action from the current state alone."""
    if lsc.is_deleting:
        return ReconcileAction.DELETE
    if should_create(lsc, storage_classes):
        return ReconcileAction.CREATE
    if should_update(lsc, storage_classes, provisioner):
        return ReconcileAction.UPDATE
    return ReconcileAction.NONE


def should_enqueue_update(old: LocalStorageClass, new: LocalStorageClass) -> bool:
    """Status-only updates are not reconciled."""
    return old.spec != new.spec or new.is_deleting


class LocalStorageClassReconciler:
    """Keeps one StorageClass per LocalStorageClass."""

    def __init__(self, store: ResourceStore, cfg: Optional[LocalVolConfig] = None):
        self.store = store
        self.cfg = cfg or LocalVolConfig()

    @property
    def provisioner(self) -> str:
        return self.cfg.provisioner

    def _requeue(self, error: Optional[Exception] = None) -> ReconcileResult:
        return ReconcileResult(requeue=True, requeue_after=self.cfg.requeue_interval, error=error)

    def reconcile(self, name: str) -> ReconcileResult:
        LOG.info("[LocalStorageClassReconciler] starts Reconcile for the LocalStorageClass %s", name)
        try:
            lsc = self.store.get(LocalStorageClass, name)
        except ResourceNotFound:
            LOG.info(
                "[LocalStorageClassReconciler] seems like the LocalStorageClass %s was deleted. "
                "Reconcile retrying will stop.",
                name,
            )
            return ReconcileResult()
        except LocalVolException as e:
            LOG.error("[LocalStorageClassReconciler] unable to get LocalStorageClass %s: %s", name, e)
            return self._requeue(e)

        try:
            storage_classes = self.store.list(StorageClass)
        except LocalVolException as e:
            LOG.error("[LocalStorageClassReconciler] unable to list Storage Classes: %s", e)
            return self._requeue(e)

        result = self.run_event_reconcile(lsc, storage_classes)
        if result.requeue:
            LOG.warning("[LocalStorageClassReconciler] Reconciler will requeue the request, name: %s", name)
        else:
            LOG.info("[LocalStorageClassReconciler] ends Reconcile for the LocalStorageClass %s", name)
        return result

    def run_event_reconcile(self, lsc: LocalStorageClass, storage_classes: List[StorageClass]) -> ReconcileResult:
        try:
            action = classify(lsc, storage_classes, self.provisioner)
        except LocalVolException as e:
            LOG.error("[run_event_reconcile] unable to identify reconcile func for the LocalStorageClass %s: %s", lsc.name, e)
            self._set_phase(lsc.name, StorageClassPhase.FAILED, e.message)
            return self._requeue(e)

        LOG.debug("[run_event_reconcile] reconcile operation for %s: %s", lsc.name, action.value)
        if action == ReconcileAction.CREATE:
            return self.reconcile_create(lsc, storage_classes)
        if action == ReconcileAction.UPDATE:
            return self.reconcile_update(lsc, storage_classes)
        if action == ReconcileAction.DELETE:
            return self.reconcile_delete(lsc, storage_classes)
        LOG.debug("[run_event_reconcile] the LocalStorageClass %s should not be reconciled", lsc.name)
        return ReconcileResult()

    def _set_phase(self, name: str, phase: StorageClassPhase, reason: str = "") -> Optional[Exception]:
        """Write status; a failed write is logged and returned."""

        def _mutate(lsc: LocalStorageClass) -> None:
            if lsc.status is None:
                lsc.status = LocalStorageClassStatus()
            lsc.status.phase = phase.value
            lsc.status.reason = reason

        try:
            update_with_retry(
                self.store, LocalStorageClass, name, _mutate, attempts=self.cfg.conflict_retries
            )
        except LocalVolException as e:
            LOG.error("unable to update the LocalStorageClass %s status: %s", name, e)
            return e
        return None

    def _fail(self, step: str, lsc: LocalStorageClass, error: Exception, reason: Optional[str] = None) -> ReconcileResult:
        LOG.error("[%s] LocalStorageClass %s: %s", step, lsc.name, error)
        self._set_phase(lsc.name, StorageClassPhase.FAILED, reason if reason is not None else str(error))
        return self._requeue(error)

    def _validate(self, lsc: LocalStorageClass, storage_classes: Sequence[StorageClass]) -> Optional[str]:
        """Return the failure message, or None when valid."""
        try:
            volume_groups = self.store.list(VolumeGroup)
        except LocalVolException as e:
            return f"Unable to validate selected LVMVolumeGroups, err: {e}"
        valid, message = validate(lsc, storage_classes, volume_groups, self.provisioner)
        return None if valid else message

    def reconcile_create(self, lsc: LocalStorageClass, storage_classes: List[StorageClass]) -> ReconcileResult:
        step = "reconcile_create"
        try:
            add_finalizer(self.store, LocalStorageClass, lsc.name, attempts=self.cfg.conflict_retries)
        except LocalVolException as e:
            LOG.error("[%s] unable to add a finalizer to the LocalStorageClass %s: %s", step, lsc.name, e)
            return self._requeue(e)

        message = self._validate(lsc, storage_classes)
        if message is not None:
            return self._fail(step, lsc, ValidationFailed(reasons=message), message)
        LOG.debug("[%s] successfully validated the LocalStorageClass %s", step, lsc.name)

        try:
            sc = sc_ops.build_storage_class(lsc, self.provisioner)
            created = sc_ops.create_if_absent(self.store, storage_classes, sc)
        except LocalVolException as e:
            return self._fail(step, lsc, e)

        if created:
            LOG.info("[%s] successfully created storage class %s", step, sc.name)
        else:
            LOG.info("[%s] a storage class %s already exists", step, sc.name)
            try:
                current = self.store.get(StorageClass, sc.name)
                if has_binding_diff(current, lsc, self.provisioner):
                    LOG.info(
                        "[%s] current Storage Class LVMVolumeGroups do not match LocalStorageClass ones. "
                        "The Storage Class %s will be recreated with new ones",
                        step,
                        sc.name,
                    )
                    sc_ops.recreate_storage_class(self.store, sc, self.provisioner, self.cfg.conflict_retries)
                    LOG.info("[%s] a Storage Class %s was successfully recreated", step, sc.name)
                else:
                    LOG.info("[%s] the Storage Class %s is up-to-date", step, sc.name)
            except LocalVolException as e:
                return self._fail(step, lsc, e)

        try:
            add_finalizer(self.store, StorageClass, sc.name, attempts=self.cfg.conflict_retries)
        except LocalVolException as e:
            LOG.error("[%s] unable to add a finalizer to the StorageClass %s: %s", step, sc.name, e)
            return self._requeue(e)

        error = self._set_phase(lsc.name, StorageClassPhase.CREATED)
        if error is not None:
            return self._requeue(error)
        return ReconcileResult()

    def reconcile_update(self, lsc: LocalStorageClass, storage_classes: List[StorageClass]) -> ReconcileResult:
        step = "reconcile_update"
        message = self._validate(lsc, storage_classes)
        if message is not None:
            return self._fail(step, lsc, ValidationFailed(reasons=message), message)

        current = sc_ops.find_storage_class(storage_classes, lsc.name)
        if current is None:
            error = ResourceNotFound(message=f"a storage class {lsc.name} does not exist")
            return self._fail(step, lsc, error)

        try:
            if has_binding_diff(current, lsc, self.provisioner):
                LOG.info(
                    "[%s] current Storage Class LVMVolumeGroups do not match LocalStorageClass ones. "
                    "The Storage Class %s will be recreated with new ones",
                    step,
                    lsc.name,
                )
                sc = sc_ops.build_storage_class(lsc, self.provisioner)
                sc_ops.recreate_storage_class(self.store, sc, self.provisioner, self.cfg.conflict_retries)
                add_finalizer(self.store, StorageClass, sc.name, attempts=self.cfg.conflict_retries)
                LOG.info("[%s] a Storage Class %s was successfully recreated", step, sc.name)
        except LocalVolException as e:
            return self._fail(step, lsc, e)

        error = self._set_phase(lsc.name, StorageClassPhase.CREATED)
        if error is not None:
            return self._requeue(error)
        return ReconcileResult()

    def reconcile_delete(self, lsc: LocalStorageClass, storage_classes: List[StorageClass]) -> ReconcileResult:
        step = "reconcile_delete"
        sc = sc_ops.find_storage_class(storage_classes, lsc.name)
        if sc is None:
            LOG.info("[%s] no storage class found for the LocalStorageClass %s", step, lsc.name)
        elif sc.provisioner != self.provisioner:
            LOG.info(
                "[%s] the storage class %s does not belong to %s provisioner. It will not be deleted",
                step,
                sc.name,
                self.provisioner,
            )
        else:
            try:
                sc_ops.delete_storage_class(self.store, sc, self.provisioner, self.cfg.conflict_retries)
            except LocalVolException as e:
                return self._fail(step, lsc, e, f"Unable to delete a storage class, err: {e}")
            LOG.info("[%s] successfully deleted a storage class %s", step, sc.name)

        try:
            removed = remove_finalizer(self.store, LocalStorageClass, lsc.name, attempts=self.cfg.conflict_retries)
        except ResourceNotFound:
            removed = False
        except LocalVolException as e:
            return self._fail(step, lsc, e, f"Unable to remove a finalizer, err: {e}")
        LOG.debug("[%s] the LocalStorageClass %s finalizer was removed: %s", step, lsc.name, removed)
        return ReconcileResult()
