"""
Vector Store Gateway

The narrow query surface the chat pipeline consumes from the
memory datastore. The datastore itself is an external dependency.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ai_twin.models.memory_item import Memory, MemorySubject, MemoryType, RetrievedMemory, Visibility


class StoreUnavailableError(Exception):
    """Raised when the memory datastore cannot be reached."""
    pass


class VectorStoreGateway(ABC):
    """
    Abstract base class for memory stores.
    
    Implementations must order similarity results by descending
    relevance and never return the raw embedding in search results.
    """
    
    @abstractmethod
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
        Find memories whose cosine similarity to `vector` is at least `threshold`.
        
        Raises:
            StoreUnavailableError: If the datastore cannot be reached
        """
        pass
    
    @abstractmethod
    async def insert(self, memory: Memory) -> Memory:
        """
        Persist a memory that already carries its embedding.
        
        Raises:
            ValueError: If the memory has no embedding
            StoreUnavailableError: If the datastore cannot be reached
        """
        pass
    
    @abstractmethod
    async def list_memories(
        self,
        user_id: Optional[str] = None,
        type: Optional[MemoryType] = None,
        limit: int = 50,
    ) -> List[Memory]:
        """List memories newest first, optionally scoped to a user and type."""
        pass
    
    @abstractmethod
    async def count_memories(
        self,
        user_id: Optional[str] = None,
        type: Optional[MemoryType] = None,
    ) -> int:
        """Count memories, optionally scoped to a user and type."""
        pass
    
    @abstractmethod
    async def health_check(self) -> bool:
        """Return True if the datastore answers queries."""
        pass
    
    async def connect(self) -> None:
        """Open any underlying connections."""
        pass
    
    async def disconnect(self) -> None:
        """Release any underlying connections."""
        pass


def require_embedding(memory: Memory) -> List[float]:
    if not memory.embedding:
        raise ValueError("Memory must carry an embedding before it is stored")
    return memory.embedding
