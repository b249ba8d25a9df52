"""
Unit Tests for Generation Providers and Service

Tests provider adapters and the generation service using mocks.
Does not require any API key.
"""

import math
import random

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from ai_twin.llm.base import (
    GenerationError,
    GenerationOptions,
    GenerationProvider,
    GracefulErrorResult,
    ProviderReply,
)
from ai_twin.llm.fallbacks import FallbackResponder
from ai_twin.llm.generation import GenerationService
from ai_twin.llm.openai_provider import OpenAIChatProvider, extract_message_text
from ai_twin.profiles import CATEGORY_PROFILES, QuestionCategory


class RecordingProvider(GenerationProvider):
    """Provider double that records calls and replays a fixed reply or error."""
    
    def __init__(self, text="Sure thing!", tokens=None, error=None):
        self.name = "recording"
        self.text = text
        self.tokens = tokens
        self.error = error
        self.chat_calls = []
        self.complete_calls = []
    
    async def chat(self, system_prompt, user_message, options):
        self.chat_calls.append((system_prompt, user_message, options))
        if self.error:
            raise self.error
        return ProviderReply(text=self.text, tokens_used=self.tokens, model="recording-1")
    
    async def complete(self, prompt, options):
        self.complete_calls.append((prompt, options))
        if self.error:
            raise self.error
        return ProviderReply(text=self.text, tokens_used=self.tokens, model="recording-1")


def chat_response(content, total_tokens=42):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    response.usage = MagicMock(total_tokens=total_tokens)
    return response


class TestOpenAIChatProvider:
    """Unit tests for the OpenAI-compatible chat adapter."""
    
    @pytest.fixture
    def provider(self):
        provider = OpenAIChatProvider(api_key="mock-key", base_url="https://api.mistral.ai/v1",
                                      model="mistral-small-latest", name="mistral")
        provider.client = AsyncMock()
        return provider
    
    @pytest.mark.asyncio
    async def test_chat_sends_system_and_user_messages(self, provider):
        provider.client.chat.completions.create = AsyncMock(return_value=chat_response("Hi!"))
        
        reply = await provider.chat("SYSTEM", "hello", GenerationOptions(temperature=0.7, max_tokens=60))
        
        assert reply.text == "Hi!"
        assert reply.tokens_used == 42
        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "mistral-small-latest"
        assert kwargs["messages"] == [
            {"role": "system", "content": "SYSTEM"},
            {"role": "user", "content": "hello"},
        ]
        assert kwargs["max_tokens"] == 60
        assert kwargs["temperature"] == 0.7
    
    @pytest.mark.asyncio
    async def test_complete_sends_single_user_message(self, provider):
        provider.client.chat.completions.create = AsyncMock(return_value=chat_response("casual"))
        
        reply = await provider.complete("Classify this", GenerationOptions(temperature=0.1, max_tokens=10))
        
        assert reply.text == "casual"
        messages = provider.client.chat.completions.create.call_args.kwargs["messages"]
        assert messages == [{"role": "user", "content": "Classify this"}]


class TestExtractMessageText:
    
    def test_string_content(self):
        assert extract_message_text(chat_response("plain")) == "plain"
    
    def test_chunked_content_is_joined(self):
        response = chat_response([{"type": "text", "text": "Hello "}, {"type": "text", "text": "there"}])
        assert extract_message_text(response) == "Hello there"
    
    def test_none_content(self):
        assert extract_message_text(chat_response(None)) == ""
    
    def test_missing_choices_is_malformed(self):
        response = MagicMock()
        response.choices = []
        with pytest.raises(GenerationError):
            extract_message_text(response)


class TestGenerationService:
    """Unit tests for GenerationService."""
    
    def make_service(self, provider, seed=1):
        return GenerationService(
            providers={"recording": provider},
            default_provider="recording",
            fallbacks=FallbackResponder(random.Random(seed)),
        )
    
    @pytest.mark.asyncio
    async def test_options_come_from_category_profile(self):
        provider = RecordingProvider()
        service = self.make_service(provider)
        
        await service.generate("SYS", "CTX", "hi", CATEGORY_PROFILES[QuestionCategory.PERSONAL])
        
        system, message, options = provider.chat_calls[0]
        assert system == "SYS\n\nCTX"
        assert message == "hi"
        assert options.temperature == 0.8
        assert options.top_p == 0.95
        assert options.top_k == 64
        assert options.max_tokens == 160
    
    @pytest.mark.asyncio
    async def test_token_cap_limits_long_categories(self):
        provider = RecordingProvider()
        service = self.make_service(provider)
        
        await service.generate("SYS", "CTX", "why?", CATEGORY_PROFILES[QuestionCategory.DEEP])
        
        assert provider.chat_calls[0][2].max_tokens == 600
        
        service.config.token_cap = 500
        await service.generate("SYS", "CTX", "why?", CATEGORY_PROFILES[QuestionCategory.DEEP])
        assert provider.chat_calls[1][2].max_tokens == 500
    
    @pytest.mark.asyncio
    async def test_reported_tokens_are_used(self):
        service = self.make_service(RecordingProvider(text="Hello", tokens=77))
        
        result = await service.generate("S", "C", "m", CATEGORY_PROFILES[QuestionCategory.CASUAL])
        
        assert result.tokens_used == 77
        assert result.provider == "recording"
        assert result.is_graceful_error is False
    
    @pytest.mark.asyncio
    async def test_tokens_approximated_when_not_reported(self):
        service = self.make_service(RecordingProvider(text="Hello there", tokens=None))
        
        result = await service.generate("SYSTEM", "CONTEXT", "msg", CATEGORY_PROFILES[QuestionCategory.CASUAL])
        
        total_chars = len("SYSTEM\n\nCONTEXT") + len("msg") + len("Hello there")
        assert result.tokens_used == math.ceil(total_chars / 4)
    
    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        Exception("503 Service Unavailable"),
        Exception("429 Too Many Requests"),
        Exception("The model is overloaded"),
        Exception("Rate limit reached"),
        Exception("You exceeded your current quota"),
        TimeoutError("read timed out"),
    ])
    async def test_transient_errors_degrade_gracefully(self, error):
        service = self.make_service(RecordingProvider(error=error))
        
        result = await service.generate("S", "C", "hello", CATEGORY_PROFILES[QuestionCategory.CASUAL])
        
        assert isinstance(result, GracefulErrorResult)
        assert result.is_graceful_error is True
        assert result.tokens_used == math.ceil(len(result.response) / 4)
    
    @pytest.mark.asyncio
    async def test_repeated_transient_errors_never_raise(self):
        service = self.make_service(RecordingProvider(error=Exception("503 Service Unavailable")))
        
        for _ in range(20):
            result = await service.generate("S", "C", "hello", CATEGORY_PROFILES[QuestionCategory.CASUAL])
            assert result.is_graceful_error
            assert result.tokens_used == math.ceil(len(result.response) / 4)
    
    @pytest.mark.asyncio
    async def test_hard_errors_propagate(self):
        service = self.make_service(RecordingProvider(error=KeyError("choices")))
        
        with pytest.raises(GenerationError):
            await service.generate("S", "C", "hello", CATEGORY_PROFILES[QuestionCategory.CASUAL])
    
    @pytest.mark.asyncio
    async def test_unknown_provider_tag(self):
        service = self.make_service(RecordingProvider())
        
        with pytest.raises(ValueError):
            await service.generate("S", "C", "hi", CATEGORY_PROFILES[QuestionCategory.CASUAL], provider="nope")
    
    @pytest.mark.asyncio
    async def test_provider_tag_selects_backend(self):
        default = RecordingProvider(text="default")
        other = RecordingProvider(text="other")
        service = GenerationService({"a": default, "b": other}, default_provider="a")
        
        result = await service.generate("S", "C", "hi", CATEGORY_PROFILES[QuestionCategory.CASUAL], provider="b")
        
        assert result.response == "other"
        assert result.provider == "b"
        assert not default.chat_calls
    
    @pytest.mark.asyncio
    async def test_complete_uses_given_sampling(self):
        provider = RecordingProvider(text="  technical \n")
        service = self.make_service(provider)
        
        answer = await service.complete("prompt", temperature=0.1, max_tokens=10)
        
        assert answer == "technical"
        options = provider.complete_calls[0][1]
        assert options.temperature == 0.1
        assert options.max_tokens == 10


class BlockedResult:
    """Gemini result whose candidate was blocked."""
    usage_metadata = None
    
    @property
    def text(self):
        raise ValueError("no parts")


class TestGeminiGenerationProvider:
    """Unit tests for the Gemini adapter with the SDK mocked out."""
    
    @pytest.fixture
    def genai(self):
        genai = MagicMock()
        result = MagicMock()
        result.text = "Mostly lofi while I work."
        result.usage_metadata = MagicMock(total_token_count=31)
        genai.GenerativeModel.return_value.generate_content_async = AsyncMock(return_value=result)
        with patch("ai_twin.llm.gemini_provider._import_genai", return_value=genai):
            yield genai
    
    @pytest.mark.asyncio
    async def test_chat_renders_transcript(self, genai):
        from ai_twin.llm.gemini_provider import GeminiGenerationProvider
        provider = GeminiGenerationProvider(api_key="mock-key", persona_name="Pragyan")
        options = GenerationOptions(temperature=0.8, top_p=0.95, top_k=64, max_tokens=160)
        
        reply = await provider.chat("SYSTEM\n\nCONTEXT", "what music?", options)
        
        assert reply.text == "Mostly lofi while I work."
        assert reply.tokens_used == 31
        
        model_args = genai.GenerativeModel.call_args
        assert model_args.args[0] == "gemini-1.5-flash"
        assert model_args.kwargs["generation_config"] == {
            "temperature": 0.8,
            "top_p": 0.95,
            "max_output_tokens": 160,
            "top_k": 64,
        }
        prompt = genai.GenerativeModel.return_value.generate_content_async.call_args.args[0]
        assert prompt == "SYSTEM\n\nCONTEXT\n\nUser: what music?\n\nPragyan:"
    
    @pytest.mark.asyncio
    async def test_blocked_candidate_is_generation_error(self, genai):
        from ai_twin.llm.gemini_provider import GeminiGenerationProvider
        genai.GenerativeModel.return_value.generate_content_async = AsyncMock(return_value=BlockedResult())
        provider = GeminiGenerationProvider(api_key="mock-key")
        
        with pytest.raises(GenerationError):
            await provider.complete("hello", GenerationOptions())
