"""
Level-triggered reconcile loop.

LocalStorageClasses are re-listed every resync interval. New objects are
queued as create events, changed ones go through ``should_enqueue_update``.
Requeue requests are scheduled after their delay. A thread pool runs the
reconciles, never two at once for the same name.
"""

import logging
import threading
import time
from concurrent import futures
from typing import Dict, Optional, Set

from localvol.cli.lib.config import LocalVolConfig
from localvol.controller.reconciler import LocalStorageClassReconciler, ReconcileResult, should_enqueue_update
from localvol.exceptions import LocalVolException
from localvol.models import LocalStorageClass
from localvol.store.base import ResourceStore

LOG = logging.getLogger(__name__)

TICK_SECONDS = 0.2


class ReconcileLoop:
    def __init__(
        self,
        store: ResourceStore,
        reconciler: Optional[LocalStorageClassReconciler] = None,
        cfg: Optional[LocalVolConfig] = None,
    ):
        self.store = store
        self.cfg = cfg or LocalVolConfig()
        self.reconciler = reconciler or LocalStorageClassReconciler(store, self.cfg)
        self.running = threading.Event()
        self._lock = threading.Lock()
        self._seen: Dict[str, LocalStorageClass] = {}
        self._pending: Dict[str, float] = {}
        self._inflight: Set[str] = set()
        self._last_resync: Optional[float] = None

    def enqueue(self, name: str, delay: float = 0) -> None:
        due = time.monotonic() + max(0.0, delay)
        with self._lock:
            current = self._pending.get(name)
            if current is None or due < current:
                self._pending[name] = due

    def pending(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._pending)

    def resync(self) -> None:
        """List LocalStorageClasses and queue the ones that need a reconcile."""
        self._last_resync = time.monotonic()
        try:
            items = self.store.list(LocalStorageClass)
        except LocalVolException as e:
            LOG.error("[resync] unable to list LocalStorageClasses: %s", e)
            return

        current = {lsc.name: lsc for lsc in items}
        for name, lsc in current.items():
            old = self._seen.get(name)
            if old is None:
                LOG.info("[CreateFunc] get event for LocalStorageClass %s. Add to the queue", name)
                self.enqueue(name)
            elif old.metadata.resource_version != lsc.metadata.resource_version:
                if should_enqueue_update(old, lsc):
                    LOG.info("[UpdateFunc] the LocalStorageClass %s will be reconciled. Add to the queue", name)
                    self.enqueue(name)
                else:
                    LOG.debug("[UpdateFunc] an update event for the LocalStorageClass %s has no spec updates", name)

        with self._lock:
            for name in set(self._seen) - set(current):
                LOG.debug("[resync] LocalStorageClass %s is gone", name)
            self._seen = current

    def _due(self) -> Set[str]:
        now = time.monotonic()
        with self._lock:
            ready = {name for name, due in self._pending.items() if due <= now and name not in self._inflight}
            for name in ready:
                del self._pending[name]
                self._inflight.add(name)
        return ready

    def _process(self, name: str) -> ReconcileResult:
        try:
            result = self.reconciler.reconcile(name)
        except Exception:
            LOG.exception("[ReconcileLoop] unexpected error reconciling LocalStorageClass %s", name)
            result = ReconcileResult(requeue=True, requeue_after=self.cfg.requeue_interval)
        finally:
            with self._lock:
                self._inflight.discard(name)
        if result.requeue:
            self.enqueue(name, result.requeue_after)
        return result

    def run_once(self) -> Dict[str, ReconcileResult]:
        """Resync and reconcile every due name in the calling thread."""
        self.resync()
        return {name: self._process(name) for name in sorted(self._due())}

    def dispatch(self, executor: futures.Executor) -> None:
        for name in sorted(self._due()):
            executor.submit(self._process, name)

    def run(self) -> None:
        """Run until ``stop`` is called. In-flight reconciles finish before returning."""
        self.running.set()
        LOG.info("Reconcile loop started (provisioner=%s, workers=%d)", self.cfg.provisioner, self.cfg.workers)
        with futures.ThreadPoolExecutor(max_workers=self.cfg.workers, thread_name_prefix="reconcile") as executor:
            while self.running.is_set():
                if self._last_resync is None or time.monotonic() - self._last_resync >= self.cfg.resync_interval:
                    self.resync()
                self.dispatch(executor)
                time.sleep(TICK_SECONDS)
        LOG.info("Reconcile loop stopped")

    def stop(self) -> None:
        self.running.clear()
