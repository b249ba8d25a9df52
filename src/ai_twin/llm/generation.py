"""
Generation Service

Uniform call surface over the hosted text-generation backends.
Builds sampling options from the category table, dispatches to the
provider named by tag, normalizes token usage and converts known
transient failures into persona-voiced fallback replies.
"""

import logging
import math
import os
from typing import Dict, Optional

from ai_twin.config import GenerationConfig, TwinConfig
from ai_twin.llm.base import (
    GenerationError,
    GenerationOptions,
    GenerationProvider,
    GenerationResult,
    ProviderReply,
)
from ai_twin.llm.fallbacks import FallbackResponder, is_transient_error
from ai_twin.profiles import CategoryProfile

logger = logging.getLogger("ai_twin.llm.generation")


def build_generation_providers(config: TwinConfig) -> Dict[str, GenerationProvider]:
    """
    Construct every generation backend that has credentials available.
    
    The configured default provider is always constructed so that a
    misconfiguration surfaces at startup instead of on the first request.
    """
    gen = config.generation
    providers: Dict[str, GenerationProvider] = {}
    
    mistral_key = gen.mistral_api_key or os.getenv("MISTRAL_API_KEY")
    if mistral_key or gen.provider == "mistral":
        from ai_twin.llm.openai_provider import OpenAIChatProvider
        providers["mistral"] = OpenAIChatProvider(
            api_key=mistral_key,
            base_url=gen.mistral_base_url,
            model=gen.mistral_model,
            name="mistral",
        )
    
    openai_key = gen.openai_api_key or os.getenv("OPENAI_API_KEY")
    if openai_key or gen.provider == "openai":
        from ai_twin.llm.openai_provider import OpenAIChatProvider
        providers["openai"] = OpenAIChatProvider(
            api_key=openai_key,
            base_url=gen.openai_base_url,
            model=gen.openai_model,
            name="openai",
        )
    
    gemini_key = gen.gemini_api_key or os.getenv("GOOGLE_API_KEY")
    if gemini_key or gen.provider == "gemini":
        from ai_twin.llm.gemini_provider import GeminiGenerationProvider
        providers["gemini"] = GeminiGenerationProvider(
            api_key=gemini_key,
            model=gen.gemini_model,
            persona_name=config.persona.name,
        )
    
    return providers


def approximate_tokens(*texts: str) -> int:
    """Estimate token usage at four characters per token."""
    return math.ceil(sum(len(t) for t in texts) / 4)


class GenerationService:
    """
    Dispatches generation calls to interchangeable providers.
    
    Providers are injected as a tag -> provider mapping; the tag passed
    per call (or the default) selects the backend.
    """
    
    def __init__(
        self,
        providers: Dict[str, GenerationProvider],
        default_provider: str,
        config: Optional[GenerationConfig] = None,
        fallbacks: Optional[FallbackResponder] = None,
    ):
        self.providers = providers
        self.default_provider = default_provider
        self.config = config or GenerationConfig()
        self.fallbacks = fallbacks or FallbackResponder()
    
    @classmethod
    def from_config(cls, config: TwinConfig, fallbacks: Optional[FallbackResponder] = None) -> "GenerationService":
        return cls(
            providers=build_generation_providers(config),
            default_provider=config.generation.provider,
            config=config.generation,
            fallbacks=fallbacks,
        )
    
    def _resolve(self, provider: Optional[str]) -> tuple[str, GenerationProvider]:
        tag = provider or self.default_provider
        backend = self.providers.get(tag)
        if backend is None:
            raise ValueError(
                f"Unknown generation provider: {tag}. "
                f"Available providers: {', '.join(sorted(self.providers)) or 'none'}"
            )
        return tag, backend
    
    def build_options(self, profile: CategoryProfile) -> GenerationOptions:
        """Sampling options for a category: its temperature and a word-derived token cap."""
        return GenerationOptions(
            temperature=profile.temperature,
            top_p=self.config.top_p,
            top_k=self.config.top_k,
            max_tokens=min(profile.max_words * 2, self.config.token_cap),
        )
    
    async def generate(
        self,
        system_prompt: str,
        context: str,
        message: str,
        profile: CategoryProfile,
        provider: Optional[str] = None,
    ) -> GenerationResult:
        """
        Generate a persona reply.
        
        Args:
            system_prompt: Persona and constraint prompt
            context: Per-turn context string (memory instruction, framing)
            message: The user's message
            profile: Category profile supplying sampling parameters
            provider: Optional provider tag overriding the default
            
        Returns:
            GenerationResult, or GracefulErrorResult on a transient failure
            
        Raises:
            ValueError: If the provider tag is unknown
            GenerationError: On any non-transient failure
        """
        tag, backend = self._resolve(provider)
        options = self.build_options(profile)
        system = f"{system_prompt}\n\n{context}" if context else system_prompt
        
        try:
            reply: ProviderReply = await backend.chat(system, message, options)
        except Exception as e:
            if is_transient_error(e):
                logger.warning(f"Provider {tag} failed transiently, using fallback reply: {e}")
                return self.fallbacks.respond(e, message, provider=tag)
            logger.error(f"Provider {tag} generation failed: {e}")
            if isinstance(e, GenerationError):
                raise
            raise GenerationError(f"Failed to generate response: {e}") from e
        
        text = reply.text.strip()
        tokens = reply.tokens_used or approximate_tokens(system, message, text)
        
        logger.debug(f"Generated {len(text)} chars with {tag} ({tokens} tokens)")
        
        return GenerationResult(
            response=text,
            tokens_used=tokens,
            provider=tag,
            model=reply.model,
        )
    
    async def complete(
        self,
        prompt: str,
        temperature: float = 0.1,
        max_tokens: int = 10,
        provider: Optional[str] = None,
    ) -> str:
        """
        Plain single-prompt completion, used for short utility calls.
        
        Errors propagate; callers decide how to degrade.
        """
        _, backend = self._resolve(provider)
        options = GenerationOptions(
            temperature=temperature,
            top_p=self.config.top_p,
            max_tokens=max_tokens,
        )
        reply = await backend.complete(prompt, options)
        return reply.text.strip()
