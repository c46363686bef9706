"""In-process resource store."""

import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Tuple, Type

from localvol.exceptions import ResourceAlreadyExists, ResourceConflict, ResourceNotFound
from localvol.store.base import R, ResourceStore

Key = Tuple[str, str, str]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryStore(ResourceStore):
    """Thread-safe store keeping deep copies of every object.

    Resource versions come from a single store-wide counter, so every write
    produces a version no other object ever had.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._objects: Dict[Key, R] = {}
        self._version = 0

    @staticmethod
    def _key(kind: str, name: str, namespace: str = "") -> Key:
        return (kind, namespace or "", name)

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    @contextmanager
    def _transaction(self, write: bool = False) -> Iterator[None]:
        with self._lock:
            yield

    def get(self, cls: Type[R], name: str, namespace: str = "") -> R:
        with self._transaction():
            obj = self._objects.get(self._key(cls.KIND, name, namespace))
            if obj is None:
                raise ResourceNotFound(kind=cls.KIND, name=name)
            return obj.model_copy(deep=True)

    def list(self, cls: Type[R]) -> List[R]:
        with self._transaction():
            items = [obj for (kind, _, _), obj in self._objects.items() if kind == cls.KIND]
            return [obj.model_copy(deep=True) for obj in sorted(items, key=lambda o: (o.namespace, o.name))]

    def create(self, obj: R) -> R:
        with self._transaction(write=True):
            key = self._key(obj.KIND, obj.name, obj.namespace)
            if key in self._objects:
                raise ResourceAlreadyExists(kind=obj.KIND, name=obj.name)
            stored = obj.model_copy(deep=True)
            stored.metadata.uid = str(uuid.uuid4())
            stored.metadata.creation_timestamp = _utc_now()
            stored.metadata.deletion_timestamp = None
            stored.metadata.resource_version = self._next_version()
            self._objects[key] = stored
            return stored.model_copy(deep=True)

    def update(self, obj: R) -> R:
        with self._transaction(write=True):
            key = self._key(obj.KIND, obj.name, obj.namespace)
            current = self._objects.get(key)
            if current is None:
                raise ResourceNotFound(kind=obj.KIND, name=obj.name)
            if obj.metadata.resource_version != current.metadata.resource_version:
                raise ResourceConflict(
                    kind=obj.KIND,
                    name=obj.name,
                    details=(
                        f"resource version {obj.metadata.resource_version} is stale, "
                        f"current is {current.metadata.resource_version}"
                    ),
                )

            stored = obj.model_copy(deep=True)
            # Identity and the deletion mark are owned by the store.
            stored.metadata.uid = current.metadata.uid
            stored.metadata.creation_timestamp = current.metadata.creation_timestamp
            stored.metadata.deletion_timestamp = current.metadata.deletion_timestamp

            if stored.is_deleting and not stored.metadata.finalizers:
                del self._objects[key]
                return stored

            stored.metadata.resource_version = self._next_version()
            self._objects[key] = stored
            return stored.model_copy(deep=True)

    def delete(self, cls: Type[R], name: str, namespace: str = "") -> None:
        with self._transaction(write=True):
            key = self._key(cls.KIND, name, namespace)
            current = self._objects.get(key)
            if current is None:
                raise ResourceNotFound(kind=cls.KIND, name=name)
            if not current.metadata.finalizers:
                del self._objects[key]
                return
            if current.metadata.deletion_timestamp is None:
                current.metadata.deletion_timestamp = _utc_now()
                current.metadata.resource_version = self._next_version()
