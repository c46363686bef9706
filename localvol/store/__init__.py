"""Resource store adapters."""

from localvol.cli.lib.config import LocalVolConfig
from localvol.store.base import ResourceStore
from localvol.store.file import FileStore
from localvol.store.memory import MemoryStore
from localvol.store.retry import update_with_retry

__all__ = ["ResourceStore", "MemoryStore", "FileStore", "build_store", "update_with_retry"]


def build_store(cfg: LocalVolConfig) -> ResourceStore:
    """Create the store selected by `[store] backend`."""
    if cfg.store_backend == "memory":
        return MemoryStore()
    if cfg.store_backend == "kubernetes":
        from localvol.store.kube import KubernetesStore, load_kube_config

        load_kube_config(cfg.kubeconfig)
        return KubernetesStore()
    return FileStore(cfg.state_dir)
