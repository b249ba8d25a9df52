"""
In-process memory store.

A dependency-free gateway computing cosine similarity in Python.
Useful for local runs without PostgreSQL and for tests.
"""

import math
from typing import Dict, List, Optional

from ai_twin.database.base import VectorStoreGateway, require_embedding
from ai_twin.models.memory_item import Memory, MemorySubject, MemoryType, RetrievedMemory, Visibility


def cosine_similarity(a: List[float], b: List[float]) -> float:
    """Cosine similarity of two vectors; 0.0 when either has zero length."""
    if len(a) != len(b):
        raise ValueError(f"Vector dimensions differ: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def _matches(expected, actual) -> bool:
    return expected is None or getattr(expected, "value", expected) == actual


class InMemoryVectorStore(VectorStoreGateway):
    """Keeps memories in a dict keyed by id."""
    
    def __init__(self, memories: Optional[List[Memory]] = None):
        self._memories: Dict[str, Memory] = {}
        for memory in memories or []:
            require_embedding(memory)
            self._memories[str(memory.id)] = memory
    
    async def similarity_search(
        self,
        vector: List[float],
        threshold: float,
        limit: int,
        visibility: Optional[Visibility] = None,
        type: Optional[MemoryType] = None,
        subject: Optional[MemorySubject] = None,
    ) -> List[RetrievedMemory]:
        scored = []
        for memory in self._memories.values():
            if not memory.embedding:
                continue
            if not (
                _matches(visibility, memory.visibility)
                and _matches(type, memory.type)
                and _matches(subject, memory.subject)
            ):
                continue
            similarity = min(max(cosine_similarity(vector, memory.embedding), 0.0), 1.0)
            if similarity >= threshold:
                scored.append((similarity, memory))
        
        scored.sort(key=lambda pair: pair[0], reverse=True)
        
        return [
            RetrievedMemory(
                id=memory.id,
                content=memory.content,
                type=memory.type,
                tags=memory.tags,
                mood=memory.mood,
                created_at=memory.created_at,
                relevance_score=similarity,
            )
            for similarity, memory in scored[:limit]
        ]
    
    async def insert(self, memory: Memory) -> Memory:
        require_embedding(memory)
        self._memories[str(memory.id)] = memory
        return memory
    
    async def list_memories(
        self,
        user_id: Optional[str] = None,
        type: Optional[MemoryType] = None,
        limit: int = 50,
    ) -> List[Memory]:
        matching = [
            m for m in self._memories.values()
            if (user_id is None or m.user_id == user_id) and _matches(type, m.type)
        ]
        matching.sort(key=lambda m: m.created_at, reverse=True)
        return matching[:limit]
    
    async def count_memories(
        self,
        user_id: Optional[str] = None,
        type: Optional[MemoryType] = None,
    ) -> int:
        return sum(
            1 for m in self._memories.values()
            if (user_id is None or m.user_id == user_id) and _matches(type, m.type)
        )
    
    async def health_check(self) -> bool:
        return True
    
    def __len__(self) -> int:
        return len(self._memories)
