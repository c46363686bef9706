"""
Configuration loader for localvol.

Environment-specific values (provisioner name, topology key, polling budget,
store backend, state directory) are read from an INI file instead of being
hardcoded.
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from localvol.parameters import DEFAULT_PROVISIONER

DEFAULT_CONFIG_PATH = Path("/etc/localvol/localvol.conf")

STORE_BACKENDS = ("file", "memory", "kubernetes")


@dataclass(frozen=True)
class LocalVolConfig:
    # CSI controller
    provisioner: str = DEFAULT_PROVISIONER
    topology_key: str = "topology.local.csi.localvol.io/node"
    publish_info_volume_name: str = "local.csi.localvol.io/volume-name"
    plugin_version: str = "0.1.0"
    resize_delta: str = "2Mi"
    poll_interval: float = 1.0
    poll_attempts: int = 60
    # StorageClass reconciler
    requeue_interval: int = 10
    resync_interval: int = 5
    workers: int = 4
    conflict_retries: int = 5
    # Resource store
    store_backend: str = "file"
    state_dir: Optional[Path] = None
    kubeconfig: Optional[str] = None
    # API server
    api_host: str = "127.0.0.1"
    api_port: int = 8080
    log_level: str = "INFO"


def _config_path() -> Path:
    env = os.environ.get("LOCALVOL_CONFIG_PATH")
    if env:
        return Path(env)
    return DEFAULT_CONFIG_PATH


def _read_ini(path: Path) -> configparser.ConfigParser:
    parser = configparser.ConfigParser()
    if path.exists():
        parser.read(path, encoding="utf-8")
    return parser


def load_config() -> LocalVolConfig:
    """
    Load config from `LOCALVOL_CONFIG_PATH` or `/etc/localvol/localvol.conf`.

    Missing files are not an error; defaults are returned.
    """
    parser = _read_ini(_config_path())

    def _section(name: str) -> object:
        return parser[name] if parser.has_section(name) else {}

    def _get(section: object, key: str, default: str) -> str:
        if isinstance(section, dict):
            return str(section.get(key, default)).strip()
        return str(section.get(key, fallback=default)).strip()

    def _get_int(section: object, key: str, default: int) -> int:
        raw = _get(section, key, str(default))
        try:
            return int(raw)
        except Exception:
            return default

    def _get_float(section: object, key: str, default: float) -> float:
        raw = _get(section, key, str(default))
        try:
            return float(raw)
        except Exception:
            return default

    csi = _section("csi")
    controller = _section("controller")
    store = _section("store")
    api = _section("api")
    logging_section = _section("logging")

    backend = _get(store, "backend", "file").lower()
    if backend not in STORE_BACKENDS:
        backend = "file"

    state_dir_raw = _get(store, "state_dir", "")
    kubeconfig_raw = _get(store, "kubeconfig", "")

    return LocalVolConfig(
        provisioner=_get(csi, "provisioner", DEFAULT_PROVISIONER),
        topology_key=_get(csi, "topology_key", "topology.local.csi.localvol.io/node"),
        publish_info_volume_name=_get(csi, "publish_info_volume_name", "local.csi.localvol.io/volume-name"),
        plugin_version=_get(csi, "plugin_version", "0.1.0"),
        resize_delta=_get(csi, "resize_delta", "2Mi"),
        poll_interval=_get_float(csi, "poll_interval", 1.0),
        poll_attempts=_get_int(csi, "poll_attempts", 60),
        requeue_interval=_get_int(controller, "requeue_interval", 10),
        resync_interval=_get_int(controller, "resync_interval", 5),
        workers=max(1, _get_int(controller, "workers", 4)),
        conflict_retries=max(1, _get_int(controller, "conflict_retries", 5)),
        store_backend=backend,
        state_dir=Path(state_dir_raw) if state_dir_raw else None,
        kubeconfig=kubeconfig_raw or None,
        api_host=_get(api, "host", "127.0.0.1"),
        api_port=_get_int(api, "port", 8080),
        log_level=_get(logging_section, "level", "INFO").upper(),
    )
