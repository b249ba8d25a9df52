"""
AI Twin - Orchestrator

Sequences the pipelines for one chat turn:

    classify (stock broad phrasings are personal outright)
    -> (personal? detect ambiguity) -> retrieve memories
    -> load user context -> (ambiguous? clarify and return)
    -> build prompt -> generate -> (degraded? return) -> learn -> return

All collaborators are injected so tests can substitute fakes;
`from_config` wires the production ones.
"""

import logging
import time
from typing import List, Optional

from ai_twin.config import TwinConfig, load_config
from ai_twin.database.base import VectorStoreGateway
from ai_twin.database.memory_store import InMemoryVectorStore
from ai_twin.database.repository import MemoryRepository
from ai_twin.database.schema import DatabaseSchema
from ai_twin.engine.base import TwinEngine
from ai_twin.llm.base import GenerationResult
from ai_twin.llm.embeddings import EmbeddingClient
from ai_twin.llm.fallbacks import FallbackResponder
from ai_twin.llm.generation import GenerationService
from ai_twin.models.chat import (
    ChatMeta,
    ChatRequest,
    ChatResponse,
    ChatResponseData,
    LearningInfo,
    MemoriesUsed,
    PersonalityInfo,
)
from ai_twin.models.memory_item import RetrievedMemory, UserMemoryContext, relationship_for
from ai_twin.pipelines.ambiguity import AmbiguityDetector, needs_clarification
from ai_twin.pipelines.classify import QuestionClassifier
from ai_twin.pipelines.learn import LearnPipeline
from ai_twin.pipelines.prompt_builder import PromptBuilder
from ai_twin.pipelines.retrieve import RetrievePipeline
from ai_twin.profiles import QuestionCategory

logger = logging.getLogger("ai_twin.engine")

CLARIFICATION_TONE = "clarification"
ERROR_TONE = "error_handling"


def detect_response_tone(response: str) -> str:
    """Coarse tone label for the response envelope."""
    if "!" in response and "?" in response:
        return "enthusiastic"
    if "?" in response:
        return "curious"
    if len(response) > 200:
        return "detailed"
    return "conversational"


def applied_context(memories: List[RetrievedMemory]) -> List[str]:
    return [f"{_value(m.type)}: {m.content[:50]}..." for m in memories]


def _value(item) -> str:
    return getattr(item, "value", item)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class TwinOrchestrator(TwinEngine):
    """
    Main implementation of the twin.
    
    Usage:
        twin = TwinOrchestrator.from_config()
        await twin.initialize()
        
        response = await twin.chat(ChatRequest(message="hey what's up"))
        
        await twin.close()
    """
    
    def __init__(
        self,
        config: TwinConfig,
        store: VectorStoreGateway,
        embeddings: EmbeddingClient,
        generation: GenerationService,
        schema: Optional[DatabaseSchema] = None,
    ):
        self.config = config
        self.store = store
        self.embeddings = embeddings
        self.generation = generation
        self.schema = schema
        
        profiles = config.categories
        self.classifier = QuestionClassifier(
            profiles,
            generation=generation,
            temperature=config.generation.classifier_temperature,
            max_tokens=config.generation.classifier_max_tokens,
        )
        self.ambiguity = AmbiguityDetector()
        self.retriever = RetrievePipeline(
            store,
            embeddings,
            profiles,
            user_history_limit=config.retrieval.user_history_limit,
        )
        self.prompts = PromptBuilder(profiles, config.persona)
        self.learner = LearnPipeline(
            store,
            embeddings,
            profiles,
            topic_keywords=config.learning.topic_keywords,
            min_message_length=config.learning.min_message_length,
            pattern_quality_threshold=config.learning.pattern_quality_threshold,
        )
        
        self._initialized = False
    
    @classmethod
    def from_config(
        cls,
        config: Optional[TwinConfig] = None,
        fallbacks: Optional[FallbackResponder] = None,
    ) -> "TwinOrchestrator":
        """Build the orchestrator with production clients."""
        config = config or load_config()
        
        schema = None
        if config.database.backend == "memory":
            store: VectorStoreGateway = InMemoryVectorStore()
        else:
            store = MemoryRepository(config.database.connection_string)
            schema = DatabaseSchema(config.database.connection_string, dimension=config.embedding.dimension)
        
        return cls(
            config=config,
            store=store,
            embeddings=EmbeddingClient.from_config(config.embedding),
            generation=GenerationService.from_config(config, fallbacks=fallbacks),
            schema=schema,
        )
    
    async def initialize(self) -> None:
        """Create the schema if needed and connect to the store."""
        if self._initialized:
            return
        if self.schema is not None:
            await self.schema.initialize()
        await self.store.connect()
        self._initialized = True
    
    async def close(self) -> None:
        await self.store.disconnect()
        self._initialized = False
    
    async def chat(self, request: ChatRequest, provider: Optional[str] = None) -> ChatResponse:
        start = time.perf_counter()
        message = request.message
        
        # 1. Classify; stock broad phrasings are personal without a model call
        if needs_clarification(message):
            category = QuestionCategory.PERSONAL
        else:
            category = await self.classifier.execute(message)
        logger.info(f"Question classified as {category.value}: {message[:50]}")
        
        # 2. Ambiguity (personal questions only)
        ambiguity = None
        if category == QuestionCategory.PERSONAL:
            ambiguity = self.ambiguity.detect(message)
        
        # 3. Memories
        search_start = time.perf_counter()
        memories = await self.retriever.execute(message, category)
        memory_search_ms = _elapsed_ms(search_start)
        
        # 4. User context
        user_context = await self.retriever.get_user_context(request.user_id, request.user_name)
        if user_context is None:
            user_context = self._context_from_hint(request)
        
        if ambiguity is not None and ambiguity.is_ambiguous:
            clarification = self.ambiguity.build_clarification(memories)
            logger.info(
                f"Ambiguous personal question (confidence {ambiguity.confidence}), "
                f"asking for clarification across {len(clarification.categories)} domains"
            )
            return self._envelope(
                request,
                response=clarification.compose(),
                memories=memories,
                tone=CLARIFICATION_TONE,
                tokens_used=0,
                start=start,
                memory_search_ms=memory_search_ms,
            )
        
        # 5. Prompt
        system_prompt = self.prompts.build_system_prompt(category, memories, user_context)
        context = self.prompts.build_context(category, memories, user_context, message)
        
        # 6. Generate
        result: GenerationResult = await self.generation.generate(
            system_prompt,
            context,
            message,
            self.config.category_profile(category),
            provider=provider,
        )
        
        if result.is_graceful_error:
            return self._envelope(
                request,
                response=result.response,
                memories=memories,
                tone=ERROR_TONE,
                tokens_used=result.tokens_used,
                start=start,
                memory_search_ms=memory_search_ms,
            )
        
        # 7. Learn
        learning = await self.learner.execute(category, request, result, user_context)
        
        return self._envelope(
            request,
            response=result.response,
            memories=memories,
            tone=detect_response_tone(result.response),
            tokens_used=result.tokens_used,
            start=start,
            memory_search_ms=memory_search_ms,
            learning=LearningInfo(
                new_memories_created=learning.memories_created,
                user_insights_gained=learning.insights,
            ),
            context_applied=applied_context(memories),
        )
    
    def _context_from_hint(self, request: ChatRequest) -> Optional[UserMemoryContext]:
        """Fall back to caller-supplied relationship hints for users with no stored history."""
        hint = request.context
        if not request.user_id or hint is None or not hint.previous_interactions:
            return None
        return UserMemoryContext(
            user_id=request.user_id,
            user_name=request.user_name,
            conversation_history_length=hint.previous_interactions,
            relationship_level=hint.relationship or relationship_for(hint.previous_interactions),
        )
    
    def _envelope(
        self,
        request: ChatRequest,
        response: str,
        memories: List[RetrievedMemory],
        tone: str,
        tokens_used: int,
        start: float,
        memory_search_ms: int,
        learning: Optional[LearningInfo] = None,
        context_applied: Optional[List[str]] = None,
    ) -> ChatResponse:
        types: List[str] = []
        for memory in memories:
            if _value(memory.type) not in types:
                types.append(_value(memory.type))
        
        return ChatResponse(
            data=ChatResponseData(
                response=response,
                conversation_id=request.conversation_id or "default",
                memories_used=MemoriesUsed(
                    count=len(memories),
                    types=types,
                    relevance_scores=[m.relevance_score for m in memories],
                ),
                personality=PersonalityInfo(tone=tone, context_applied=context_applied or []),
                learning=learning or LearningInfo(),
            ),
            meta=ChatMeta(
                processing_time_ms=_elapsed_ms(start),
                tokens_used=tokens_used,
                memory_search_time_ms=memory_search_ms,
            ),
        )
    
    async def health_check(self) -> dict:
        store_healthy = await self.store.health_check()
        return {
            "status": "healthy" if store_healthy else "degraded",
            "database": "connected" if store_healthy else "unavailable",
            "default_provider": self.generation.default_provider,
            "providers": sorted(self.generation.providers),
            "embedding_model": self.embeddings.model_id,
            "embedding_cache": self.embeddings.get_cache_stats(),
        }
