"""
Learn Pipeline

Write-back after a generated reply:
1. Store the user's message as a user_input memory
2. Derive coarse insight tags from the message
3. Score the reply's length against the category target
4. Store a conversation pattern memory for high-scoring replies

Steps are isolated from each other: one failing does not stop the
rest. An unreachable store is still reported to the caller once all
steps have run.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from ai_twin.database.base import StoreUnavailableError, VectorStoreGateway
from ai_twin.llm.base import GenerationResult
from ai_twin.llm.embeddings import EmbeddingClient
from ai_twin.models.chat import ChatRequest
from ai_twin.models.memory_item import (
    MAX_CONTENT_LENGTH,
    Memory,
    MemorySubject,
    MemoryType,
    UserMemoryContext,
    Visibility,
)
from ai_twin.profiles import CategoryProfile, QuestionCategory

logger = logging.getLogger("ai_twin.pipelines.learn")

# Insight tag -> keywords, per category
INSIGHT_RULES: Dict[QuestionCategory, List[Tuple[str, List[str]]]] = {
    QuestionCategory.PERSONAL: [
        ("music_interest", ["music", "song"]),
        ("technology_interest", ["tech", "programming"]),
    ],
    QuestionCategory.TECHNICAL: [
        ("javascript_interest", ["javascript", "js"]),
        ("python_interest", ["python"]),
        ("frontend_interest", ["react", "nextjs"]),
    ],
    QuestionCategory.DEEP: [
        ("ai_philosophy_interest", ["ai", "artificial intelligence"]),
        ("future_tech_interest", ["future", "technology"]),
    ],
    QuestionCategory.SPECIFIC: [
        ("current_events_interest", ["today", "recently"]),
    ],
}

BRIEF_MESSAGE_CHARS = 20


@dataclass
class LearningResult:
    """What write-back did for one turn."""
    memories_created: int = 0
    insights: List[str] = field(default_factory=list)
    quality_score: float = 0.0
    patterns_stored: int = 0


def length_score(word_count: int, profile: CategoryProfile) -> float:
    """Score how well a reply's length fits the category's target."""
    if word_count <= profile.target_words * 1.2:
        return 1.0
    if word_count <= profile.max_words:
        return 0.8
    if word_count <= profile.max_words * 1.5:
        return 0.6
    return 0.3


def extract_insights(message: str, category: QuestionCategory) -> List[str]:
    """Keyword-presence insight tags for a message."""
    category = QuestionCategory(category)
    
    if category == QuestionCategory.CASUAL:
        insights = []
        if len(message) < BRIEF_MESSAGE_CHARS:
            insights.append("prefers_brief_communication")
        if "?" in message:
            insights.append("asks_questions")
        return insights
    
    lower = message.lower()
    return [
        insight for insight, keywords in INSIGHT_RULES.get(category, [])
        if any(keyword in lower for keyword in keywords)
    ]


def extract_topic_tags(message: str, keywords: List[str]) -> List[str]:
    lower = message.lower()
    return [keyword for keyword in keywords if keyword in lower]


class LearnPipeline:
    """
    Pipeline that closes the loop after each generated reply.
    """
    
    def __init__(
        self,
        store: VectorStoreGateway,
        embeddings: EmbeddingClient,
        profiles: Dict[QuestionCategory, CategoryProfile],
        topic_keywords: Optional[List[str]] = None,
        min_message_length: int = 10,
        pattern_quality_threshold: float = 0.7,
    ):
        self.store = store
        self.embeddings = embeddings
        self.profiles = profiles
        self.topic_keywords = topic_keywords or [
            "music", "code", "project", "food", "work", "tech", "ai", "programming",
        ]
        self.min_message_length = min_message_length
        self.pattern_quality_threshold = pattern_quality_threshold
    
    async def execute(
        self,
        category: QuestionCategory,
        request: ChatRequest,
        generation: GenerationResult,
        user_context: Optional[UserMemoryContext] = None,
    ) -> LearningResult:
        """
        Run write-back for one turn.
        
        Raises:
            StoreUnavailableError: If the store could not be reached; raised
                only after every step has had its chance to run
        """
        category = QuestionCategory(category)
        profile = self.profiles[category]
        result = LearningResult()
        store_error: Optional[StoreUnavailableError] = None
        
        # 1. User message
        if request.user_id and len(request.message.strip()) > self.min_message_length:
            try:
                await self._store_user_message(request, category, user_context)
                result.memories_created += 1
            except StoreUnavailableError as e:
                store_error = e
                logger.error(f"Could not store user message, store unavailable: {e}")
            except Exception as e:
                logger.error(f"Could not store user message: {e}")
        
        # 2. Insights
        result.insights = extract_insights(request.message, category)
        
        # 3. Quality
        word_count = len(generation.response.split())
        result.quality_score = length_score(word_count, profile)
        
        # 4. Pattern
        if result.quality_score > self.pattern_quality_threshold:
            try:
                await self._store_pattern(request, generation, category, result.quality_score)
                result.patterns_stored += 1
            except StoreUnavailableError as e:
                store_error = store_error or e
                logger.error(f"Could not store conversation pattern, store unavailable: {e}")
            except Exception as e:
                logger.error(f"Could not store conversation pattern: {e}")
        
        logger.info(
            f"Learning: {result.memories_created} memories, {len(result.insights)} insights, "
            f"quality {result.quality_score}, {result.patterns_stored} patterns"
        )
        
        if store_error is not None:
            raise store_error
        return result
    
    async def _store_user_message(
        self,
        request: ChatRequest,
        category: QuestionCategory,
        user_context: Optional[UserMemoryContext],
    ) -> Memory:
        message = request.message.strip()
        content = message[:MAX_CONTENT_LENGTH]
        truncated = len(message) > MAX_CONTENT_LENGTH
        if truncated:
            logger.warning(
                f"User message of {len(message)} chars cut to {MAX_CONTENT_LENGTH} before storing"
            )
        embedding = await self.embeddings.embed(content)
        
        metadata = {
            "conversation_id": request.conversation_id,
            "user_name": request.user_name,
            "interaction_type": "chat_message",
            "question_type": category.value,
            "timestamp": datetime.now().isoformat(),
        }
        if user_context:
            metadata["relationship_level"] = getattr(
                user_context.relationship_level, "value", user_context.relationship_level
            )
        if truncated:
            metadata["truncated"] = True
            metadata["original_length"] = len(message)
        
        memory = Memory(
            content=content,
            embedding=embedding.vector,
            type=MemoryType.USER_INPUT,
            subject=MemorySubject.USER,
            user_id=request.user_id,
            tags=extract_topic_tags(content, self.topic_keywords),
            visibility=Visibility.PRIVATE,
            metadata=metadata,
        )
        return await self.store.insert(memory)
    
    async def _store_pattern(
        self,
        request: ChatRequest,
        generation: GenerationResult,
        category: QuestionCategory,
        quality_score: float,
    ) -> Memory:
        pattern_text = f"{category.value}: {request.message} -> {generation.response}"
        pattern_truncated = len(pattern_text) > self.embeddings.max_input_chars
        if pattern_truncated:
            logger.info(
                f"Pattern text of {len(pattern_text)} chars cut to {self.embeddings.max_input_chars} for embedding"
            )
        embedding = await self.embeddings.embed(pattern_text[:self.embeddings.max_input_chars])
        
        memory = Memory(
            content=f"Successful {category.value} response pattern",
            embedding=embedding.vector,
            type=MemoryType.SYSTEM,
            subject=MemorySubject.SELF,
            tags=["conversation_pattern", category.value],
            visibility=Visibility.PRIVATE,
            metadata={
                "question_type": category.value,
                "user_input": request.message,
                "twin_response": generation.response,
                "success_score": quality_score,
                "timestamp": datetime.now().isoformat(),
                "embedding_truncated": pattern_truncated,
            },
        )
        return await self.store.insert(memory)
