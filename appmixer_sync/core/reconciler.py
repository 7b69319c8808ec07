"""Host-agnostic capability interface implemented by every entity reconciler.

A host (a declarative-state engine, a CLI, a test) drives the lifecycle
through these five entry points and persists whatever record comes back.
Lifecycle calls for one entity must stay ordered: create before read, read
before update or delete.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Generic, Type, TypeVar

R = TypeVar("R")


class ResourceReconciler(ABC, Generic[R]):
    """Create/Read/Update/Delete/Import for one entity kind.

    Every operation returns the record to persist. An empty ``id`` means the
    entity is gone and the host should drop it from state.
    """

    kind: str = "resource"
    record_type: Type[R]
    not_found_error: Type[Exception] = LookupError

    @abstractmethod
    def create(self, desired: R) -> R:
        """Create the entity and return its state (id populated)."""

    @abstractmethod
    def read(self, state: R) -> R:
        """Refresh state from the remote service."""

    @abstractmethod
    def update(self, state: R, desired: R) -> R:
        """Apply the difference between ``state`` and ``desired``."""

    @abstractmethod
    def delete(self, state: R) -> R:
        """Delete the entity and return state with the id cleared."""

    def import_state(self, entity_id: str) -> R:
        """Adopt an existing remote entity by id.

        Raises:
            not_found_error: If the id does not resolve to a remote entity
        """
        record = self.read(self.record_type(id=entity_id))
        if not record.id:
            raise self.not_found_error(f"{self.kind} {entity_id} not found")
        return record
