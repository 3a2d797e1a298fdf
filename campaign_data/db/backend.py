"""
Storage backend interface.

A backend executes already-validated requests against one storage system.
Every method takes the tenant id explicitly and applies it itself; there is
no backend method that reads or writes without one.

Two implementations exist and are chosen once, at construction:
  - SqlAlchemyBackend (PostgreSQL through SQLAlchemy's asyncio extension)
  - InMemoryBackend (process-local dictionaries, for development and tests)
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from campaign_data.core.settings import AppSettings
from campaign_data.repositories.query import ScopedQuery
from campaign_data.schemas.common import QueryResult

Row = dict[str, Any]


@runtime_checkable
class StorageBackend(Protocol):
    """Operations a repository needs from storage. All rows are plain dicts."""

    async def select(self, query: ScopedQuery) -> QueryResult:
        """Run `query`; `count` is the number of matches before limit/offset."""
        ...

    async def get(self, entity: str, tenant_id: str, entity_id: str) -> Optional[Row]:
        ...

    async def insert(self, entity: str, tenant_id: str, values: Row) -> Row:
        """Insert a row owned by `tenant_id`; storage generates id and timestamps."""
        ...

    async def update(self, entity: str, tenant_id: str, entity_id: str, values: Row) -> Optional[Row]:
        """Update the row matching id AND tenant. None when nothing matched."""
        ...

    async def delete(self, entity: str, tenant_id: str, entity_id: str) -> bool:
        ...


# PUBLIC_INTERFACE
def create_backend(settings: AppSettings) -> StorageBackend:
    """
    Build the backend selected by settings.STORAGE_BACKEND.

    Parameters:
        settings: application settings
    Returns:
        A StorageBackend implementation.
    """
    if settings.STORAGE_BACKEND == "memory":
        from campaign_data.db.memory import InMemoryBackend

        return InMemoryBackend()

    from campaign_data.db.session import get_session_maker
    from campaign_data.db.sql_backend import SqlAlchemyBackend

    return SqlAlchemyBackend(get_session_maker())
