"""
Database Schema

Defines and creates the PostgreSQL schema with the pgvector extension.
The embedding column dimension follows the configured embedding model.
"""

import logging

import asyncpg

from ai_twin.database.base import StoreUnavailableError
from ai_twin.database.repository import _CONNECTION_ERRORS

logger = logging.getLogger("ai_twin.database.schema")

# Doubled braces are literal braces after str.format
SCHEMA_SQL = """
-- Enable vector extension
CREATE EXTENSION IF NOT EXISTS vector;

-- Memories: persona knowledge and what was learned about users
CREATE TABLE IF NOT EXISTS memories (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    content TEXT NOT NULL,
    embedding vector({dimension}),
    type VARCHAR(20) NOT NULL,                  -- fact, diary, preference, user_input, system
    subject VARCHAR(10) NOT NULL DEFAULT 'self',
    user_id TEXT,                               -- Set when subject = 'user'
    tags TEXT[] DEFAULT '{{}}',
    visibility VARCHAR(20) NOT NULL DEFAULT 'public',
    mood TEXT,
    metadata JSONB DEFAULT '{{}}',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CONSTRAINT chk_content_not_empty CHECK (length(trim(content)) > 0),
    CONSTRAINT chk_content_length CHECK (length(content) <= 2000),
    CONSTRAINT chk_type CHECK (type IN ('fact', 'diary', 'preference', 'user_input', 'system')),
    CONSTRAINT chk_subject CHECK (subject IN ('self', 'user')),
    CONSTRAINT chk_visibility CHECK (visibility IN ('public', 'close_friends', 'private')),
    CONSTRAINT chk_user_id_when_user_subject CHECK (
        (subject = 'user' AND user_id IS NOT NULL) OR subject = 'self'
    )
);

-- Indexes for performance
CREATE INDEX IF NOT EXISTS idx_memories_embedding
    ON memories USING hnsw (embedding vector_cosine_ops);
CREATE INDEX IF NOT EXISTS idx_memories_type ON memories(type);
CREATE INDEX IF NOT EXISTS idx_memories_subject ON memories(subject);
CREATE INDEX IF NOT EXISTS idx_memories_user_id ON memories(user_id);
CREATE INDEX IF NOT EXISTS idx_memories_visibility ON memories(visibility);
CREATE INDEX IF NOT EXISTS idx_memories_created_at ON memories(created_at DESC);
CREATE INDEX IF NOT EXISTS idx_memories_tags ON memories USING gin (tags);
CREATE INDEX IF NOT EXISTS idx_memories_metadata ON memories USING gin (metadata);

-- Keep updated_at current on every mutation
CREATE OR REPLACE FUNCTION update_updated_at_column()
RETURNS TRIGGER AS $$
BEGIN
    NEW.updated_at = NOW();
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS update_memories_updated_at ON memories;
CREATE TRIGGER update_memories_updated_at
    BEFORE UPDATE ON memories
    FOR EACH ROW
    EXECUTE FUNCTION update_updated_at_column();

-- Semantic search with optional filters
CREATE OR REPLACE FUNCTION search_memories(
    query_embedding vector({dimension}),
    match_threshold FLOAT DEFAULT 0.8,
    match_count INT DEFAULT 10,
    filter_visibility TEXT DEFAULT NULL,
    filter_type TEXT DEFAULT NULL,
    filter_subject TEXT DEFAULT NULL
)
RETURNS TABLE (
    id UUID,
    content TEXT,
    type VARCHAR,
    tags TEXT[],
    mood TEXT,
    created_at TIMESTAMPTZ,
    similarity FLOAT
)
LANGUAGE SQL STABLE
AS $$
    SELECT m.id, m.content, m.type, m.tags, m.mood, m.created_at,
           1 - (m.embedding <=> query_embedding) AS similarity
    FROM memories m
    WHERE m.embedding IS NOT NULL
        AND 1 - (m.embedding <=> query_embedding) >= match_threshold
        AND (filter_visibility IS NULL OR m.visibility = filter_visibility)
        AND (filter_type IS NULL OR m.type = filter_type)
        AND (filter_subject IS NULL OR m.subject = filter_subject)
    ORDER BY m.embedding <=> query_embedding
    LIMIT match_count;
$$;
"""


def build_schema_sql(dimension: int = 1536) -> str:
    """Render the schema for a given embedding dimension."""
    return SCHEMA_SQL.format(dimension=int(dimension))


class DatabaseSchema:
    """
    Manages PostgreSQL database schema creation.
    """
    
    def __init__(self, connection_string: str = None, dimension: int = 1536):
        """
        Initialize schema manager.
        
        Args:
            connection_string: PostgreSQL connection string.
                             Defaults to local 'ai_twin' database.
            dimension: Embedding vector dimension
        """
        self.connection_string = connection_string or "postgresql://localhost/ai_twin"
        self.dimension = dimension
        self._initialized = False
    
    async def initialize(self) -> None:
        """
        Create the table, indexes, trigger and search function if they don't exist.
        
        Raises:
            StoreUnavailableError: If the database cannot be reached or rejects the schema
        """
        if self._initialized:
            return
        
        try:
            conn = await asyncpg.connect(self.connection_string)
            try:
                await conn.execute(build_schema_sql(self.dimension))
            finally:
                await conn.close()
        except (*_CONNECTION_ERRORS, asyncpg.PostgresError) as e:
            logger.error(f"Schema initialization failed: {e}")
            raise StoreUnavailableError(f"Could not initialize memory store schema: {e}") from e
        
        self._initialized = True
