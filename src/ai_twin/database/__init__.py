"""Database package - PostgreSQL + pgvector integration."""

from ai_twin.database.base import StoreUnavailableError, VectorStoreGateway
from ai_twin.database.memory_store import InMemoryVectorStore
from ai_twin.database.repository import MemoryRepository
from ai_twin.database.schema import DatabaseSchema

__all__ = [
    "DatabaseSchema",
    "InMemoryVectorStore",
    "MemoryRepository",
    "StoreUnavailableError",
    "VectorStoreGateway",
]
