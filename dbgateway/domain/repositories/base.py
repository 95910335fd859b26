"""
Base Repository Interface.
Defines the standard contract for the generic persistence gateway.
"""

from typing import Any, Iterable, List, Optional, Protocol, TypeVar, Union

from sqlalchemy import Select
from sqlalchemy.orm import QueryableAttribute

from dbgateway.domain.schemas.navigation import IncludePath, Lookup

T = TypeVar("T")

IncludeSpec = Union[str, IncludePath, QueryableAttribute]


class BaseRepository(Protocol[T]):
    """Interface for generic CRUD operations."""

    def get_all(self, predicate: Any = None, *include_paths: IncludeSpec) -> Select:
        """Build an unexecuted query over the entity set."""
        ...

    async def get_by_id(self, entity_id: int, *include_paths: IncludeSpec) -> Optional[T]:
        """Get a single entity by ID."""
        ...

    async def list(
        self, predicate: Any = None, *include_paths: IncludeSpec, skip: int = 0, limit: Optional[int] = None
    ) -> List[T]:
        """List entities with optional filter and pagination."""
        ...

    async def lookup(self, entity_id: int, *include_paths: IncludeSpec) -> Lookup:
        """Look a row up by ID, distinguishing none, one and many matches."""
        ...

    async def create(self, entity: T) -> Optional[T]:
        """Create a new entity."""
        ...

    async def create_all(self, entities: Iterable[T]) -> List[T]:
        """Create a batch of entities in one commit."""
        ...

    async def update(self, entity: T) -> Optional[T]:
        """Update an existing entity."""
        ...

    async def update_all(self, entities: Iterable[T]) -> List[T]:
        """Update a batch of entities in one commit."""
        ...

    async def delete(self, entity: T) -> Optional[T]:
        """Delete (or mark deleted) an entity."""
        ...

    async def delete_all(self, entities: Iterable[T]) -> List[T]:
        """Delete (or mark deleted) a batch of entities in one commit."""
        ...

    async def upsert(self, entity: T) -> Optional[T]:
        """Create the entity if it has no stored row yet, otherwise update it."""
        ...

    async def upsert_all(self, entities: Iterable[T]) -> List[T]:
        """Upsert a batch of entities."""
        ...

    async def exists(self, predicate: Any = None) -> bool:
        """Check whether any entity matches the predicate."""
        ...
