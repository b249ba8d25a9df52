"""
Base classes for embedding and generation providers.

This module defines abstract interfaces that allow supporting
multiple hosted backends (OpenAI, Mistral, Gemini) through the
adapter pattern, plus the normalized result types they produce.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel, Field


class EmbeddingProvider(ABC):
    """
    Abstract base class for embedding providers.
    
    Implementations must provide batch embedding functionality
    for efficient API usage.
    """
    
    @abstractmethod
    async def batch_embed(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for multiple texts in a single API call.
        
        Args:
            texts: List of text strings to embed
            
        Returns:
            List of embedding vectors in the same order as input texts
            
        Raises:
            EmbeddingError: If the embedding API fails
        """
        pass
    
    @abstractmethod
    def get_embedding_dimension(self) -> int:
        """Get the dimension of embeddings produced by this provider."""
        pass
    
    @abstractmethod
    def get_model_name(self) -> str:
        """Get the name of the embedding model being used."""
        pass


class GenerationOptions(BaseModel):
    """Sampling parameters for one generation call."""
    temperature: float = 0.7
    top_p: float = 0.95
    top_k: Optional[int] = None
    max_tokens: int = 1000


class ProviderReply(BaseModel):
    """Raw normalized output of a single provider call."""
    text: str = ""
    tokens_used: Optional[int] = None
    model: str = ""


class GenerationProvider(ABC):
    """
    Abstract base class for hosted text-generation backends.
    
    Each backend has its own request/response shape; implementations
    translate to and from ProviderReply.
    """
    
    name: str = "base"
    
    @abstractmethod
    async def chat(
        self,
        system_prompt: str,
        user_message: str,
        options: GenerationOptions,
    ) -> ProviderReply:
        """
        Generate a reply to `user_message` under `system_prompt`.
        
        Raises:
            Exception: Provider/transport errors are propagated untouched
                so the caller can classify them.
        """
        pass
    
    @abstractmethod
    async def complete(self, prompt: str, options: GenerationOptions) -> ProviderReply:
        """Generate a plain completion for a single prompt."""
        pass


class EmbeddingResult(BaseModel):
    """Output of EmbeddingClient.embed()."""
    vector: List[float]
    model_id: str
    approx_tokens: int


class GenerationResult(BaseModel):
    """Normalized result of the generation stage."""
    response: str
    tokens_used: int = 0
    provider: str = ""
    model: str = ""
    is_graceful_error: bool = False


class GracefulErrorResult(GenerationResult):
    """In-character canned reply produced when a provider fails transiently."""
    is_graceful_error: bool = True
    error_kind: str = Field(default="generic", description="overload, quota, network, model or generic")


class EmbeddingError(Exception):
    """Exception raised when embedding generation fails."""
    pass


class GenerationError(Exception):
    """Exception raised when generation fails in a non-recoverable way."""
    pass
