"""Resource store interface.

The store is the declarative source of truth shared with the node agents.
Adapters must implement optimistic concurrency through
``metadata.resource_version`` and finalizer-gated deletion.
"""

import abc
from typing import List, Type, TypeVar

from localvol.models import Resource

R = TypeVar("R", bound=Resource)


class ResourceStore(abc.ABC):
    """Get/list/create/update/delete over named resources."""

    @abc.abstractmethod
    def get(self, cls: Type[R], name: str, namespace: str = "") -> R:
        """Return one object.

        Raises:
            ResourceNotFound: Object does not exist
        """

    @abc.abstractmethod
    def list(self, cls: Type[R]) -> List[R]:
        """Return every object of a kind, sorted by name."""

    @abc.abstractmethod
    def create(self, obj: R) -> R:
        """Create an object and return the stored copy.

        Raises:
            ResourceAlreadyExists: An object with that name exists
        """

    @abc.abstractmethod
    def update(self, obj: R) -> R:
        """Replace an object and return the stored copy.

        An object being deleted is removed once its last finalizer is gone.

        Raises:
            ResourceNotFound: Object does not exist
            ResourceConflict: ``obj`` carries a stale resource version
        """

    @abc.abstractmethod
    def delete(self, cls: Type[R], name: str, namespace: str = "") -> None:
        """Delete an object, or only mark it for deletion while finalizers remain.

        Raises:
            ResourceNotFound: Object does not exist
        """

    def ping(self) -> bool:
        """Return True when the backend is reachable."""
        return True
