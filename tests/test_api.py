"""
Tests for the chat HTTP endpoints.

Uses FastAPI's TestClient with a pre-built twin installed, so no
database or API key is needed.
"""

import asyncio
import random
from typing import List

import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

from ai_twin.api import main
from ai_twin.api.main import app, get_twin, set_twin
from ai_twin.config import TwinConfig
from ai_twin.database.base import StoreUnavailableError
from ai_twin.database.memory_store import InMemoryVectorStore
from ai_twin.engine.twin_engine import TwinOrchestrator
from ai_twin.llm.base import EmbeddingProvider, GenerationProvider, ProviderReply
from ai_twin.llm.embeddings import EmbeddingClient
from ai_twin.llm.fallbacks import FallbackResponder
from ai_twin.llm.generation import GenerationService
from ai_twin.models.memory_item import Memory


class ConstantEmbeddingProvider(EmbeddingProvider):
    
    async def batch_embed(self, texts: List[str]) -> List[List[float]]:
        return [[0.0, 1.0] for _ in texts]
    
    def get_embedding_dimension(self) -> int:
        return 2
    
    def get_model_name(self) -> str:
        return "constant"


class StaticProvider(GenerationProvider):
    
    def __init__(self, text="Doing well, thanks! How about you?", error=None):
        self.name = "mistral"
        self.text = text
        self.error = error
    
    async def chat(self, system_prompt, user_message, options):
        if self.error:
            raise self.error
        return ProviderReply(text=self.text, tokens_used=12)
    
    async def complete(self, prompt, options):
        return ProviderReply(text="casual")


class UnreachableStore(InMemoryVectorStore):
    
    async def insert(self, memory):
        raise StoreUnavailableError("connection refused")
    
    async def health_check(self):
        return False


def install_twin(provider=None, store=None) -> TwinOrchestrator:
    config = TwinConfig()
    twin = TwinOrchestrator(
        config=config,
        store=store if store is not None else InMemoryVectorStore([
            Memory(content="I play bass in a weekend band", embedding=[0.0, 1.0], tags=["music"]),
        ]),
        embeddings=EmbeddingClient(ConstantEmbeddingProvider()),
        generation=GenerationService(
            providers={"mistral": provider or StaticProvider()},
            default_provider="mistral",
            config=config.generation,
            fallbacks=FallbackResponder(random.Random(3)),
        ),
    )
    set_twin(twin)
    return twin


@pytest.fixture
def client():
    yield TestClient(app)
    set_twin(None)


class TestChatEndpoint:
    
    def test_success_envelope(self, client):
        install_twin()
        
        response = client.post("/api/twin/chat", json={"message": "hey how are you", "conversation_id": "c9"})
        
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["conversation_id"] == "c9"
        assert body["data"]["response"] == "Doing well, thanks! How about you?"
        assert body["data"]["personality"]["tone"] == "enthusiastic"
        assert body["meta"]["tokens_used"] == 12
        assert set(body["meta"]) == {"processing_time_ms", "tokens_used", "memory_search_time_ms"}
    
    def test_anonymous_request_gets_generated_ids(self, client):
        twin = install_twin()
        
        response = client.post("/api/twin/chat", json={"message": "Do you enjoy playing music live?"})
        
        assert response.status_code == 200
        assert response.json()["data"]["conversation_id"].startswith("conv_")
        # The anonymous user's message was still learned
        assert len(twin.store) >= 2
    
    @pytest.mark.parametrize("payload,code", [
        ({}, "INVALID_INPUT"),
        ({"message": 42}, "INVALID_INPUT"),
        ({"message": "   "}, "EMPTY_MESSAGE"),
        ({"message": "x" * 4001}, "MESSAGE_TOO_LONG"),
        ([1, 2], "INVALID_INPUT"),
    ])
    def test_invalid_payloads(self, client, payload, code):
        install_twin()
        
        response = client.post("/api/twin/chat", json=payload)
        
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == code
    
    def test_non_json_body(self, client):
        install_twin()
        
        response = client.post(
            "/api/twin/chat",
            content=b"message=hi",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_INPUT"
    
    def test_unknown_provider(self, client):
        install_twin()
        
        response = client.post("/api/twin/chat?provider=claude", json={"message": "hey there"})
        
        assert response.status_code == 400
        assert response.json()["details"]["available_providers"] == ["mistral"]
    
    def test_store_unavailable_is_503(self, client):
        install_twin(store=UnreachableStore())
        
        response = client.post("/api/twin/chat", json={"message": "Tell me about the music you love"})
        
        assert response.status_code == 503
        assert response.json()["error"] == "SERVICE_UNAVAILABLE"
    
    def test_generation_failure_is_500(self, client):
        install_twin(provider=StaticProvider(error=ValueError("bad request payload")))
        
        response = client.post("/api/twin/chat", json={"message": "hey how are you"})
        
        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "PROCESSING_ERROR"
        assert body["details"]["error_type"] == "GenerationError"
    
    def test_overload_is_still_200(self, client):
        install_twin(provider=StaticProvider(error=RuntimeError("429 rate limit reached")))
        
        response = client.post("/api/twin/chat", json={"message": "hey how are you"})
        
        assert response.status_code == 200
        assert response.json()["data"]["personality"]["tone"] == "error_handling"


class TestHealthEndpoint:
    
    def test_healthy(self, client):
        install_twin()
        
        response = client.get("/api/twin/chat")
        
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["service"] == "AI Twin Chat"
        assert body["database"] == "connected"
        assert "timestamp" in body
    
    def test_degraded_store(self, client):
        install_twin(store=UnreachableStore())
        
        body = client.get("/api/twin/chat").json()
        
        assert body["status"] == "degraded"
        assert body["database"] == "unavailable"
    
    def test_root(self, client):
        assert client.get("/").json()["status"] == "ok"


class TestColdStart:
    """Requests that arrive before any twin has been built."""
    
    @pytest.fixture(autouse=True)
    def fresh_state(self, monkeypatch):
        monkeypatch.setattr(main, "_twin_lock", asyncio.Lock())
        set_twin(None)
        yield
        set_twin(None)
    
    def test_unreachable_database_is_503(self, client, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "test-key")
        monkeypatch.setenv("MISTRAL_API_KEY", "test-key")
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        config = TwinConfig(database={"url": "postgresql://u:p@127.0.0.1:1/none"})
        monkeypatch.setattr(main, "load_config", lambda: config)
        
        response = client.post("/api/twin/chat", json={"message": "hey what's up"})
        
        assert response.status_code == 503
        assert response.json()["error"] == "SERVICE_UNAVAILABLE"
        assert main.twin is None
    
    @pytest.mark.parametrize("payload,code", [
        ({"message": "   "}, "EMPTY_MESSAGE"),
        ({"message": "x" * 4001}, "MESSAGE_TOO_LONG"),
        ({}, "INVALID_INPUT"),
    ])
    def test_validation_runs_before_twin_is_built(self, client, monkeypatch, payload, code):
        from_config = MagicMock(side_effect=StoreUnavailableError("connection refused"))
        monkeypatch.setattr(main.TwinOrchestrator, "from_config", from_config)
        monkeypatch.setattr(main, "load_config", lambda: TwinConfig())
        
        response = client.post("/api/twin/chat", json=payload)
        
        assert response.status_code == 400
        assert response.json()["error"] == code
        from_config.assert_not_called()
    
    def test_valid_message_with_store_down_is_503(self, client, monkeypatch):
        from_config = MagicMock(side_effect=StoreUnavailableError("connection refused"))
        monkeypatch.setattr(main.TwinOrchestrator, "from_config", from_config)
        monkeypatch.setattr(main, "load_config", lambda: TwinConfig())
        
        response = client.post("/api/twin/chat", json={"message": "hey what's up"})
        
        assert response.status_code == 503
        from_config.assert_called_once()
    
    def test_message_limit_comes_from_config(self, client, monkeypatch):
        config = TwinConfig(limits={"max_message_length": 10})
        monkeypatch.setattr(main, "load_config", lambda: config)
        
        response = client.post("/api/twin/chat", json={"message": "this is longer than ten"})
        
        assert response.status_code == 400
        assert response.json()["details"]["max_length"] == 10
    
    @pytest.mark.asyncio
    async def test_concurrent_first_requests_build_one_twin(self, monkeypatch):
        built = []
        
        def build(config):
            instance = MagicMock()
            
            async def slow_initialize():
                await asyncio.sleep(0.01)
            
            instance.initialize = AsyncMock(side_effect=slow_initialize)
            built.append(instance)
            return instance
        
        monkeypatch.setattr(main.TwinOrchestrator, "from_config", MagicMock(side_effect=build))
        monkeypatch.setattr(main, "load_config", lambda: TwinConfig())
        
        twins = await asyncio.gather(get_twin(), get_twin(), get_twin())
        
        assert len(built) == 1
        assert twins[0] is twins[1] is twins[2] is built[0]
        built[0].initialize.assert_awaited_once()
