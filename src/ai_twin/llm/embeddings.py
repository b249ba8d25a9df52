"""
Embedding Client

Turns text into a fixed-length vector through the configured
embedding provider. Input is validated up front: empty or oversized
text fails loudly instead of being silently truncated.
"""

import logging
import math
import os
from typing import List, Optional

from ai_twin.config import EmbeddingConfig
from ai_twin.llm.base import EmbeddingError, EmbeddingProvider, EmbeddingResult

logger = logging.getLogger("ai_twin.llm.embeddings")


def create_embedding_provider(config: EmbeddingConfig) -> EmbeddingProvider:
    """
    Factory method to create the appropriate embedding provider.
    
    Args:
        config: Embedding configuration ("openai" or "gemini")
        
    Returns:
        EmbeddingProvider instance
    """
    if config.provider == "openai":
        from ai_twin.llm.openai_provider import OpenAIEmbeddingProvider
        return OpenAIEmbeddingProvider(
            api_key=config.api_key or os.getenv("OPENAI_API_KEY"),
            model=config.model,
        )
    elif config.provider == "gemini":
        from ai_twin.llm.gemini_provider import GeminiEmbeddingProvider
        return GeminiEmbeddingProvider(
            api_key=config.api_key or os.getenv("GOOGLE_API_KEY"),
            model=config.model,
        )
    else:
        raise ValueError(
            f"Unknown embedding provider: {config.provider}. "
            f"Supported providers: openai, gemini"
        )


class EmbeddingClient:
    """
    Validating, caching front for an EmbeddingProvider.
    
    Used by both memory retrieval and write-back.
    """
    
    def __init__(
        self,
        provider: EmbeddingProvider,
        max_input_chars: int = 8000,
        enable_cache: bool = True,
        max_cache_size: int = 1000,
    ):
        self.provider = provider
        self.max_input_chars = max_input_chars
        
        # Embedding cache (LRU)
        self.enable_cache = enable_cache
        self.max_cache_size = max_cache_size
        self._cache: dict[str, List[float]] = {}
        self._cache_order: list[str] = []
        
        self._cache_hits = 0
        self._cache_misses = 0
    
    @classmethod
    def from_config(cls, config: EmbeddingConfig) -> "EmbeddingClient":
        return cls(
            provider=create_embedding_provider(config),
            max_input_chars=config.max_input_chars,
            enable_cache=config.cache_size > 0,
            max_cache_size=max(config.cache_size, 1),
        )
    
    @property
    def model_id(self) -> str:
        return self.provider.get_model_name()
    
    async def embed(self, text: str) -> EmbeddingResult:
        """
        Generate an embedding for one piece of text.
        
        Raises:
            EmbeddingError: On empty or oversized input, or provider failure
        """
        if text is None or not text.strip():
            raise EmbeddingError("Text cannot be empty")
        
        if len(text) > self.max_input_chars:
            raise EmbeddingError(
                f"Text is too long. Maximum length is {self.max_input_chars} characters."
            )
        
        text = text.strip()
        vector = self._lookup(text)
        
        if vector is None:
            self._cache_misses += 1
            vectors = await self.provider.batch_embed([text])
            if not vectors or not vectors[0]:
                raise EmbeddingError("Embedding provider returned no vector")
            vector = list(vectors[0])
            if self.enable_cache:
                self._add_to_cache(text, vector)
        
        return EmbeddingResult(
            vector=vector,
            model_id=self.model_id,
            approx_tokens=math.ceil(len(text) / 4),
        )
    
    def _lookup(self, key: str) -> Optional[List[float]]:
        if not self.enable_cache or key not in self._cache:
            return None
        self._cache_hits += 1
        self._touch_cache(key)
        return self._cache[key]
    
    def _touch_cache(self, key: str) -> None:
        """Update LRU order for cache hit."""
        if key in self._cache_order:
            self._cache_order.remove(key)
        self._cache_order.append(key)
    
    def _add_to_cache(self, key: str, value: List[float]) -> None:
        """Add to cache with LRU eviction."""
        if len(self._cache) >= self.max_cache_size and self._cache_order:
            oldest = self._cache_order.pop(0)
            del self._cache[oldest]
        
        self._cache[key] = value
        self._cache_order.append(key)
    
    def get_cache_stats(self) -> dict:
        """Get cache hit/miss statistics."""
        total = self._cache_hits + self._cache_misses
        hit_rate = (self._cache_hits / total * 100) if total > 0 else 0
        
        return {
            "hits": self._cache_hits,
            "misses": self._cache_misses,
            "total_requests": total,
            "hit_rate_percent": round(hit_rate, 2),
            "cache_size": len(self._cache),
            "max_cache_size": self.max_cache_size,
        }
    
    def clear_cache(self) -> None:
        """Clear the embedding cache."""
        self._cache.clear()
        self._cache_order.clear()
        self._cache_hits = 0
        self._cache_misses = 0
