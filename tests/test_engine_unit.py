"""
Unit Tests for TwinOrchestrator (No External Dependencies)

Runs whole chat turns against the in-process store, a constant
embedding provider and a recording generation provider.
"""

import random
from typing import List

import pytest

from ai_twin.config import TwinConfig
from ai_twin.database.base import StoreUnavailableError
from ai_twin.database.memory_store import InMemoryVectorStore
from ai_twin.engine.twin_engine import TwinOrchestrator, detect_response_tone
from ai_twin.llm.base import EmbeddingProvider, GenerationProvider, ProviderReply
from ai_twin.llm.embeddings import EmbeddingClient
from ai_twin.llm.fallbacks import FallbackResponder
from ai_twin.llm.generation import GenerationService
from ai_twin.models.chat import ChatContextHint, ChatRequest
from ai_twin.models.memory_item import Memory, MemoryType
from ai_twin.pipelines.prompt_builder import MEMORY_CONTEXT_HEADER


class ConstantEmbeddingProvider(EmbeddingProvider):
    
    async def batch_embed(self, texts: List[str]) -> List[List[float]]:
        return [[1.0, 0.0, 0.0] for _ in texts]
    
    def get_embedding_dimension(self) -> int:
        return 3
    
    def get_model_name(self) -> str:
        return "constant"


class RecordingProvider(GenerationProvider):
    
    def __init__(self, text="Not much, just coding. What about you?", error=None):
        self.name = "mistral"
        self.text = text
        self.error = error
        self.chat_calls = []
        self.complete_calls = []
    
    async def chat(self, system_prompt, user_message, options):
        self.chat_calls.append((system_prompt, user_message, options))
        if self.error:
            raise self.error
        return ProviderReply(text=self.text, tokens_used=55, model="recording-1")
    
    async def complete(self, prompt, options):
        self.complete_calls.append((prompt, options))
        return ProviderReply(text="casual")


class FailingInsertStore(InMemoryVectorStore):
    
    async def insert(self, memory):
        raise StoreUnavailableError("connection refused")


def seeded_memories():
    return [
        Memory(content="Lofi hip hop music is my go-to background sound",
               embedding=[1.0, 0.0, 0.0], tags=["music"], mood="calm"),
        Memory(content="I spend evenings programming in Python and TypeScript",
               embedding=[1.0, 0.0, 0.0], type=MemoryType.PREFERENCE, tags=["code"]),
    ]


def build_twin(provider, store=None):
    config = TwinConfig()
    generation = GenerationService(
        providers={"mistral": provider},
        default_provider="mistral",
        config=config.generation,
        fallbacks=FallbackResponder(random.Random(7)),
    )
    return TwinOrchestrator(
        config=config,
        store=store if store is not None else InMemoryVectorStore(seeded_memories()),
        embeddings=EmbeddingClient(ConstantEmbeddingProvider()),
        generation=generation,
    )


class TestChatTurn:
    
    @pytest.mark.asyncio
    async def test_casual_turn_uses_no_memories(self):
        provider = RecordingProvider()
        twin = build_twin(provider)
        
        response = await twin.chat(ChatRequest(message="hey what's up", user_id="u1", conversation_id="c1"))
        
        assert response.success is True
        assert response.data.conversation_id == "c1"
        assert response.data.memories_used.count == 0
        assert response.data.personality.tone == "curious"
        assert response.meta.tokens_used == 55
        
        system_prompt, user_message, options = provider.chat_calls[0]
        assert user_message == "hey what's up"
        assert "RELEVANT PERSONAL CONTEXT: None available" in system_prompt
        assert MEMORY_CONTEXT_HEADER not in system_prompt
        assert system_prompt.endswith('respond casually and briefly to: "hey what\'s up"')
        assert options.temperature == 0.7
        assert options.max_tokens == 60
        
        # No model call was needed to classify
        assert provider.complete_calls == []
    
    @pytest.mark.asyncio
    async def test_technical_turn_uses_memories_and_learns(self):
        provider = RecordingProvider(text="I keep routes thin and push logic into services.")
        store = InMemoryVectorStore(seeded_memories())
        twin = build_twin(provider, store)
        
        response = await twin.chat(ChatRequest(message="How do you structure a Python API project?", user_id="u1"))
        
        data = response.data
        assert data.memories_used.count == 2
        assert sorted(data.memories_used.types) == ["fact", "preference"]
        assert data.memories_used.relevance_scores == [pytest.approx(1.0), pytest.approx(1.0)]
        assert len(data.personality.context_applied) == 2
        assert data.personality.tone == "conversational"
        assert data.conversation_id == "default"
        assert data.learning.new_memories_created == 1
        assert data.learning.user_insights_gained == ["python_interest"]
        
        system_prompt = provider.chat_calls[0][0]
        assert MEMORY_CONTEXT_HEADER in system_prompt
        assert "- Lofi hip hop music is my go-to background sound (calm)" in system_prompt
        
        # User message plus a conversation pattern
        assert len(store) == 4
    
    @pytest.mark.asyncio
    async def test_ambiguous_personal_question_asks_for_clarification(self):
        provider = RecordingProvider()
        twin = build_twin(provider)
        
        response = await twin.chat(ChatRequest(message="what do you like?", user_id="u1"))
        
        assert response.success is True
        assert response.data.personality.tone == "clarification"
        assert response.meta.tokens_used == 0
        assert response.data.learning.new_memories_created == 0
        
        text = response.data.response
        assert text.startswith("I like quite a few things! I'm into ")
        assert "hip hop music is my go-to" in text
        assert text.endswith("What context were you thinking about - music, or technology?")
        
        assert provider.chat_calls == []
    
    @pytest.mark.asyncio
    async def test_provider_overload_degrades_gracefully(self):
        provider = RecordingProvider(error=Exception("503 Service Unavailable"))
        store = InMemoryVectorStore(seeded_memories())
        twin = build_twin(provider, store)
        
        response = await twin.chat(ChatRequest(message="How do you structure a Python API project?", user_id="u1"))
        
        assert response.success is True
        assert response.data.personality.tone == "error_handling"
        assert response.data.response
        assert response.data.learning.new_memories_created == 0
        assert response.meta.tokens_used > 0
        assert len(store) == 2
    
    @pytest.mark.asyncio
    async def test_context_hint_used_for_unknown_user(self):
        provider = RecordingProvider()
        twin = build_twin(provider)
        request = ChatRequest(
            message="hey what's up",
            user_id="new-user",
            context=ChatContextHint(previous_interactions=7),
        )
        
        await twin.chat(request)
        
        system_prompt = provider.chat_calls[0][0]
        assert "- 7 previous interactions" in system_prompt
        assert "- Relationship: friend" in system_prompt
    
    @pytest.mark.asyncio
    async def test_store_unavailable_during_learning_propagates(self):
        twin = build_twin(RecordingProvider(), FailingInsertStore(seeded_memories()))
        
        with pytest.raises(StoreUnavailableError):
            await twin.chat(ChatRequest(message="How do you structure a Python API project?", user_id="u1"))
    
    @pytest.mark.asyncio
    async def test_unknown_provider_rejected(self):
        twin = build_twin(RecordingProvider())
        
        with pytest.raises(ValueError):
            await twin.chat(ChatRequest(message="hey what's up"), provider="nope")


class TestHealthAndWiring:
    
    @pytest.mark.asyncio
    async def test_health_check(self):
        twin = build_twin(RecordingProvider())
        
        status = await twin.health_check()
        
        assert status["status"] == "healthy"
        assert status["database"] == "connected"
        assert status["default_provider"] == "mistral"
        assert status["providers"] == ["mistral"]
        assert status["embedding_model"] == "constant"
    
    @pytest.mark.asyncio
    async def test_from_config_with_memory_backend(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "test-key")
        monkeypatch.setenv("MISTRAL_API_KEY", "test-key")
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        config = TwinConfig(database={"backend": "memory"})
        
        twin = TwinOrchestrator.from_config(config)
        await twin.initialize()
        
        assert isinstance(twin.store, InMemoryVectorStore)
        assert twin.schema is None
        assert sorted(twin.generation.providers) == ["mistral", "openai"]
        
        await twin.close()


class TestResponseTone:
    
    @pytest.mark.parametrize("text,tone", [
        ("Wow, really? Tell me more!", "enthusiastic"),
        ("What about you?", "curious"),
        ("x" * 201, "detailed"),
        ("Sounds good.", "conversational"),
    ])
    def test_tone(self, text, tone):
        assert detect_response_tone(text) == tone


class TestStockPhrasings:
    
    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", ["What are you into?", "what interests you", "Tell me what you like"])
    async def test_stock_broad_phrasing_skips_model_classification(self, message):
        provider = RecordingProvider()
        twin = build_twin(provider)
        
        response = await twin.chat(ChatRequest(message=message, user_id="u1"))
        
        assert response.data.personality.tone == "clarification"
        assert provider.complete_calls == []
        assert provider.chat_calls == []
