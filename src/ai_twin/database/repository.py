"""
Memory Repository

asyncpg implementation of the vector store gateway over a
PostgreSQL + pgvector `memories` table.
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import asyncpg

from ai_twin.database.base import StoreUnavailableError, VectorStoreGateway, require_embedding
from ai_twin.models.memory_item import Memory, MemorySubject, MemoryType, RetrievedMemory, Visibility

logger = logging.getLogger("ai_twin.database")

# Failures that mean the store is unreachable rather than the query being wrong
_CONNECTION_ERRORS = (
    OSError,
    asyncpg.InterfaceError,
    asyncpg.exceptions.ConnectionDoesNotExistError,
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.TooManyConnectionsError,
)


def _value(item) -> Optional[str]:
    """Enum members and plain strings both go to the database as text."""
    if item is None:
        return None
    return getattr(item, "value", item)


def _load_metadata(raw) -> dict:
    if raw is None:
        return {}
    if isinstance(raw, str):
        return json.loads(raw) if raw else {}
    return dict(raw)


class MemoryRepository(VectorStoreGateway):
    """
    Repository for memory records.
    
    Provides methods for:
    - Vector similarity search with visibility/type/subject filters
    - Inserting memories with their embeddings
    - Listing and counting a user's memories
    - Health checks
    """
    
    def __init__(self, connection_string: str = None, min_size: int = 2, max_size: int = 10):
        self.connection_string = connection_string or "postgresql://127.0.0.1/ai_twin"
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Optional[asyncpg.Pool] = None
    
    async def connect(self) -> None:
        """Initialize connection pool."""
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(
                self.connection_string,
                min_size=self.min_size,
                max_size=self.max_size,
            )
        except (*_CONNECTION_ERRORS, asyncpg.PostgresError) as e:
            raise StoreUnavailableError(f"Could not connect to memory store: {e}") from e
    
    async def disconnect(self) -> None:
        """Close connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
    
    @asynccontextmanager
    async def _connection(self):
        if self._pool is None:
            raise StoreUnavailableError("Memory store is not connected")
        try:
            async with self._pool.acquire() as conn:
                yield conn
        except _CONNECTION_ERRORS as e:
            raise StoreUnavailableError(f"Lost connection to memory store: {e}") from e
    
    async def similarity_search(
        self,
        vector: List[float],
        threshold: float,
        limit: int,
        visibility: Optional[Visibility] = None,
        type: Optional[MemoryType] = None,
        subject: Optional[MemorySubject] = None,
    ) -> List[RetrievedMemory]:
        """
        Search memories by cosine similarity.
        
        Uses pgvector's HNSW index; results are ordered closest first.
        """
        async with self._connection() as conn:
            rows = await conn.fetch(
                """
                SELECT id, content, type, tags, mood, created_at,
                       1 - (embedding <=> $1::vector) AS similarity
                FROM memories
                WHERE embedding IS NOT NULL
                    AND 1 - (embedding <=> $1::vector) >= $2
                    AND ($4::text IS NULL OR visibility = $4)
                    AND ($5::text IS NULL OR type = $5)
                    AND ($6::text IS NULL OR subject = $6)
                ORDER BY embedding <=> $1::vector
                LIMIT $3
                """,
                str(vector),
                threshold,
                limit,
                _value(visibility),
                _value(type),
                _value(subject),
            )
        
        return [
            RetrievedMemory(
                id=row["id"],
                content=row["content"],
                type=MemoryType(row["type"]),
                tags=list(row["tags"] or []),
                mood=row["mood"],
                created_at=row["created_at"],
                # Float error can push cosine similarity slightly past 1
                relevance_score=min(max(float(row["similarity"]), 0.0), 1.0),
            )
            for row in rows
        ]
    
    async def insert(self, memory: Memory) -> Memory:
        """Create a new memory with its embedding vector."""
        embedding = require_embedding(memory)
        
        async with self._connection() as conn:
            await conn.execute(
                """
                INSERT INTO memories
                (id, content, embedding, type, subject, user_id, tags, visibility, mood, metadata, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
                """,
                memory.id,
                memory.content,
                str(embedding),  # pgvector accepts string format
                _value(memory.type),
                _value(memory.subject),
                memory.user_id,
                memory.tags,
                _value(memory.visibility),
                memory.mood,
                json.dumps(memory.metadata or {}, default=str),
                memory.created_at,
                memory.updated_at,
            )
        
        logger.debug(f"Stored {_value(memory.type)} memory {memory.id}")
        return memory
    
    async def list_memories(
        self,
        user_id: Optional[str] = None,
        type: Optional[MemoryType] = None,
        limit: int = 50,
    ) -> List[Memory]:
        """
        List memories sorted by creation date (newest first).
        """
        async with self._connection() as conn:
            rows = await conn.fetch(
                """
                SELECT id, content, type, subject, user_id, tags, visibility, mood,
                       metadata, created_at, updated_at
                FROM memories
                WHERE ($1::text IS NULL OR user_id = $1)
                    AND ($2::text IS NULL OR type = $2)
                ORDER BY created_at DESC
                LIMIT $3
                """,
                user_id,
                _value(type),
                limit,
            )
        
        return [self._row_to_memory(row) for row in rows]
    
    async def count_memories(
        self,
        user_id: Optional[str] = None,
        type: Optional[MemoryType] = None,
    ) -> int:
        """Get the number of matching memories."""
        async with self._connection() as conn:
            return await conn.fetchval(
                """
                SELECT COUNT(*) FROM memories
                WHERE ($1::text IS NULL OR user_id = $1)
                    AND ($2::text IS NULL OR type = $2)
                """,
                user_id,
                _value(type),
            )
    
    async def health_check(self) -> bool:
        try:
            async with self._connection() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except (StoreUnavailableError, asyncpg.PostgresError) as e:
            logger.warning(f"Memory store health check failed: {e}")
            return False
    
    def _row_to_memory(self, row) -> Memory:
        return Memory(
            id=row["id"],
            content=row["content"],
            type=MemoryType(row["type"]),
            subject=MemorySubject(row["subject"]),
            user_id=row["user_id"],
            tags=list(row["tags"] or []),
            visibility=Visibility(row["visibility"]),
            mood=row["mood"],
            metadata=_load_metadata(row["metadata"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
