"""
Retrieve Pipeline

Category-aware memory retrieval and user-context loading.

Both operations degrade instead of failing: a broken embedding call
or an unreachable store means the turn continues with no personal
context.
"""

import logging
from typing import Dict, List, Optional

from ai_twin.database.base import VectorStoreGateway
from ai_twin.llm.embeddings import EmbeddingClient
from ai_twin.models.memory_item import (
    MemorySubject,
    MemoryType,
    RetrievedMemory,
    UserMemoryContext,
    Visibility,
    relationship_for,
)
from ai_twin.profiles import CategoryProfile, QuestionCategory

logger = logging.getLogger("ai_twin.pipelines.retrieve")


class RetrievePipeline:
    """
    Pipeline for retrieving the twin's own memories for a question.
    
    How many memories are fetched, and how similar they must be, is
    looked up in the category table.
    """
    
    def __init__(
        self,
        store: VectorStoreGateway,
        embeddings: EmbeddingClient,
        profiles: Dict[QuestionCategory, CategoryProfile],
        user_history_limit: int = 50,
    ):
        self.store = store
        self.embeddings = embeddings
        self.profiles = profiles
        self.user_history_limit = user_history_limit
    
    async def execute(self, message: str, category: QuestionCategory) -> List[RetrievedMemory]:
        """
        Retrieve public memories of the twin relevant to `message`.
        
        Returns:
            Memories ordered by descending relevance; empty for categories
            configured to use none, and on any failure
        """
        profile = self.profiles[QuestionCategory(category)]
        if profile.memory_count == 0:
            return []
        
        try:
            embedding = await self.embeddings.embed(message)
            memories = await self.store.similarity_search(
                embedding.vector,
                threshold=profile.similarity_threshold,
                limit=profile.memory_count,
                visibility=Visibility.PUBLIC,
                subject=MemorySubject.SELF,
            )
        except Exception as e:
            logger.error(f"Memory retrieval failed, continuing without memories: {e}")
            return []
        
        logger.info(
            f"Retrieved {len(memories)} memories for {QuestionCategory(category).value} question "
            f"(threshold {profile.similarity_threshold}, limit {profile.memory_count})"
        )
        return memories
    
    async def get_user_context(
        self,
        user_id: Optional[str],
        user_name: Optional[str] = None,
    ) -> Optional[UserMemoryContext]:
        """
        Summarize what the twin has learned about a user.
        
        Returns:
            None when the user has no prior messages (a stranger) or
            when the store cannot be read
        """
        if not user_id:
            return None
        
        try:
            memories = await self.store.list_memories(
                user_id=user_id,
                type=MemoryType.USER_INPUT,
                limit=self.user_history_limit,
            )
            if not memories:
                return None
            total = await self.store.count_memories(user_id=user_id, type=MemoryType.USER_INPUT)
        except Exception as e:
            logger.error(f"User context retrieval failed for {user_id}: {e}")
            return None
        
        preferences: List[str] = []
        for memory in memories:
            for tag in memory.tags:
                if tag not in preferences:
                    preferences.append(tag)
        
        total = max(total, len(memories))
        
        return UserMemoryContext(
            user_id=user_id,
            user_name=user_name,
            known_preferences=preferences,
            conversation_history_length=total,
            relationship_level=relationship_for(total),
            last_interaction=memories[0].created_at,
        )
