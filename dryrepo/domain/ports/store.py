"""Store port interfaces used by the operation dispatcher.

The dispatcher never talks to a database directly. It drives a StorePort
for entity operations and a QueryHandlePort for query execution, so any
persistence technology can sit behind a declarative repository.

Usage:
    class InMemoryStore(StorePort):
        async def persist(self, entity: Any) -> None: ...
"""

from abc import ABC, abstractmethod
from typing import Any


class QueryHandlePort(ABC):
    """A resolved query that parameters and pagination are applied to."""

    @abstractmethod
    def bind_parameter(self, name: str, value: Any) -> None:
        """Bind ``value`` to the named parameter ``name``."""
        ...

    @abstractmethod
    def set_skip(self, skip: int) -> None:
        """Skip the first ``skip`` rows."""
        ...

    @abstractmethod
    def set_limit(self, limit: int) -> None:
        """Return at most ``limit`` rows."""
        ...

    @abstractmethod
    async def execute_for_list(self) -> list[Any]:
        """Execute a select and return every row."""
        ...

    @abstractmethod
    async def execute_for_single(self) -> Any:
        """Execute a select and return its only row.

        Raises:
            EntityNotFoundError: If the query matches no row
        """
        ...

    @abstractmethod
    async def execute_for_update_count(self) -> int:
        """Execute a mutation and return the number of affected rows."""
        ...


class StorePort(ABC):
    """Backing store for declarative repositories."""

    @abstractmethod
    async def persist(self, entity: Any) -> None:
        """Make a new entity persistent."""
        ...

    @abstractmethod
    async def merge(self, entity: Any) -> Any:
        """Merge an entity's state and return the store-managed instance."""
        ...

    @abstractmethod
    async def remove(self, entity: Any) -> None:
        """Remove a store-managed entity."""
        ...

    @abstractmethod
    async def find_by_key(self, entity_type: type, key: Any) -> Any | None:
        """Find an entity by primary key, or None when absent."""
        ...

    @abstractmethod
    def resolve_named_query(self, name: str, result_type: Any = None) -> QueryHandlePort:
        """Resolve a pre-registered query by name."""
        ...

    @abstractmethod
    def resolve_query_from_text(self, query_text: str, result_type: Any = None) -> QueryHandlePort:
        """Resolve a literal query string."""
        ...
