"""Read-modify-write with retry on optimistic concurrency conflicts."""

import logging
import time
from typing import Callable, Optional, Type

from localvol.exceptions import ResourceConflict
from localvol.store.base import R, ResourceStore

LOG = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 5
DEFAULT_BACKOFF = 0.1


def update_with_retry(
    store: ResourceStore,
    cls: Type[R],
    name: str,
    mutate: Callable[[R], Optional[bool]],
    namespace: str = "",
    attempts: int = DEFAULT_ATTEMPTS,
    backoff: float = DEFAULT_BACKOFF,
) -> R:
    """Apply ``mutate`` to a fresh copy of an object and write it back.

    A conflicting write is retried from a new read, at most ``attempts``
    times, sleeping ``backoff * attempt`` seconds in between. When ``mutate``
    returns ``False`` the object is left untouched and the fresh copy is
    returned.

    Args:
        store: Resource store
        cls: Resource class
        name: Object name
        mutate: Callback editing the object in place
        namespace: Object namespace
        attempts: Maximum number of write attempts
        backoff: Base delay between attempts in seconds

    Returns:
        The object as stored after the update

    Raises:
        ResourceNotFound: The object disappeared
        ResourceConflict: Every attempt conflicted
    """
    last_error: Optional[ResourceConflict] = None
    for attempt in range(1, attempts + 1):
        obj = store.get(cls, name, namespace)
        if mutate(obj) is False:
            return obj
        try:
            return store.update(obj)
        except ResourceConflict as e:
            last_error = e
            LOG.warning("Conflict on attempt %d/%d updating %s %s: %s", attempt, attempts, cls.KIND, name, e)
            if attempt < attempts:
                time.sleep(backoff * attempt)
    raise last_error
