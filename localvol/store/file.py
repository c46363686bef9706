"""
JSON file backed resource store.

Lets the API server, the reconcile loop and the CLI share state on one host
without a cluster. Every operation reloads the document under an exclusive
``flock`` so separate processes see each other's writes.
"""

from __future__ import annotations

import fcntl
import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from localvol.exceptions import StoreError
from localvol.models import RESOURCE_KINDS
from localvol.store.memory import MemoryStore


def get_state_dir(configured: Optional[Path] = None) -> Path:
    """
    Resolve the directory used for persistent state.

    Priority:
    1) `LOCALVOL_STATE_DIR` env var, if set
    2) the configured `[store] state_dir`
    3) `/var/lib/localvol` if writable
    4) `$XDG_STATE_HOME/localvol` or `~/.local/state/localvol` as fallback
    """
    env = os.environ.get("LOCALVOL_STATE_DIR")
    if env:
        return Path(env)

    if configured:
        return configured

    candidates: list[Path] = [Path("/var/lib/localvol")]
    xdg_state_home = os.environ.get("XDG_STATE_HOME")
    if xdg_state_home:
        candidates.append(Path(xdg_state_home) / "localvol")
    else:
        candidates.append(Path.home() / ".local" / "state" / "localvol")

    for candidate in candidates:
        try:
            candidate.mkdir(parents=True, exist_ok=True)
            probe = candidate / ".write_test"
            probe.write_text("ok", encoding="utf-8")
            probe.unlink(missing_ok=True)
            return candidate
        except OSError:
            continue

    return Path(".localvol-state")


def _load_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    with open(path, "r", encoding="utf-8") as file:
        return json.load(file)


def _atomic_write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as file:
            json.dump(data, file, indent=2, ensure_ascii=False, sort_keys=True)
            file.write("\n")
        os.replace(tmp_path, path)
    finally:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass


class FileStore(MemoryStore):
    """MemoryStore persisted to `<state_dir>/resources.json`."""

    def __init__(self, state_dir: Optional[Path] = None):
        super().__init__()
        self.state_dir = get_state_dir(state_dir)
        self.path = self.state_dir / "resources.json"
        self.lock_path = self.state_dir / ".resources.lock"

    @contextmanager
    def _file_lock(self) -> Iterator[None]:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        with open(self.lock_path, "a", encoding="utf-8") as lock_file:
            fcntl.flock(lock_file, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file, fcntl.LOCK_UN)

    def _load(self) -> None:
        try:
            data = _load_json(self.path, {"version": 0, "items": []})
            objects = {}
            for item in data.get("items", []):
                cls = RESOURCE_KINDS[item["kind"]]
                obj = cls.model_validate(item["object"])
                objects[self._key(cls.KIND, obj.name, obj.namespace)] = obj
        except (OSError, ValueError, KeyError) as e:
            raise StoreError(details=f"unable to read {self.path}: {e}")
        self._objects = objects
        self._version = int(data.get("version", 0))

    def _save(self) -> None:
        items = [
            {"kind": kind, "object": obj.to_wire()}
            for (kind, _, _), obj in sorted(self._objects.items(), key=lambda kv: kv[0])
        ]
        try:
            _atomic_write_json(self.path, {"version": self._version, "items": items})
        except OSError as e:
            raise StoreError(details=f"unable to write {self.path}: {e}")

    @contextmanager
    def _transaction(self, write: bool = False) -> Iterator[None]:
        with self._lock, self._file_lock():
            self._load()
            yield
            if write:
                self._save()

    def ping(self) -> bool:
        try:
            with self._transaction():
                return True
        except StoreError:
            return False
