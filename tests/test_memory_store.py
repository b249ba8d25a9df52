"""
Tests for the in-process vector store.
"""

import pytest

from ai_twin.database.memory_store import InMemoryVectorStore, cosine_similarity
from ai_twin.models.memory_item import Memory, MemorySubject, MemoryType, Visibility


def memory(content, vector, **kwargs):
    return Memory(content=content, embedding=vector, **kwargs)


class TestCosineSimilarity:
    
    def test_identical(self):
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)
    
    def test_orthogonal(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    
    def test_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0
    
    def test_dimension_mismatch(self):
        with pytest.raises(ValueError):
            cosine_similarity([1.0], [1.0, 0.0])


class TestInMemoryVectorStore:
    
    @pytest.mark.asyncio
    async def test_round_trip_exact_vector_comes_first(self):
        store = InMemoryVectorStore([
            memory("A distant memory", [0.0, 1.0, 0.2]),
            memory("Another one", [0.6, 0.6, 0.1]),
        ])
        stored = await store.insert(memory("The memory we look for", [0.3, 0.1, 0.9]))
        
        results = await store.similarity_search([0.3, 0.1, 0.9], threshold=0.0, limit=5)
        
        assert results[0].id == stored.id
        assert results[0].relevance_score == pytest.approx(1.0)
        scores = [r.relevance_score for r in results]
        assert scores == sorted(scores, reverse=True)
    
    @pytest.mark.asyncio
    async def test_threshold_and_limit(self):
        store = InMemoryVectorStore([
            memory("close", [1.0, 0.1]),
            memory("closer", [1.0, 0.0]),
            memory("far", [0.0, 1.0]),
        ])
        
        results = await store.similarity_search([1.0, 0.0], threshold=0.5, limit=1)
        
        assert [r.content for r in results] == ["closer"]
    
    @pytest.mark.asyncio
    async def test_filters(self):
        store = InMemoryVectorStore([
            memory("public self", [1.0, 0.0]),
            memory("private self", [1.0, 0.0], visibility=Visibility.PRIVATE),
            memory("user memory", [1.0, 0.0], subject=MemorySubject.USER, user_id="u1",
                   type=MemoryType.USER_INPUT),
        ])
        
        results = await store.similarity_search(
            [1.0, 0.0], threshold=0.0, limit=10,
            visibility=Visibility.PUBLIC, subject=MemorySubject.SELF,
        )
        
        assert [r.content for r in results] == ["public self"]
    
    @pytest.mark.asyncio
    async def test_insert_requires_embedding(self):
        store = InMemoryVectorStore()
        with pytest.raises(ValueError):
            await store.insert(Memory(content="no vector"))
    
    @pytest.mark.asyncio
    async def test_list_and_count_by_user(self):
        store = InMemoryVectorStore()
        for i in range(3):
            await store.insert(memory(f"message {i}", [1.0], subject=MemorySubject.USER,
                                      user_id="u1", type=MemoryType.USER_INPUT))
        await store.insert(memory("someone else", [1.0], subject=MemorySubject.USER,
                                  user_id="u2", type=MemoryType.USER_INPUT))
        
        listed = await store.list_memories(user_id="u1", type=MemoryType.USER_INPUT, limit=2)
        
        assert len(listed) == 2
        assert await store.count_memories(user_id="u1", type=MemoryType.USER_INPUT) == 3
        assert await store.health_check() is True
