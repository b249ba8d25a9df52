"""LLM providers, embedding client and generation service."""

from .base import (
    EmbeddingError,
    EmbeddingProvider,
    EmbeddingResult,
    GenerationError,
    GenerationOptions,
    GenerationProvider,
    GenerationResult,
    GracefulErrorResult,
    ProviderReply,
)
from .embeddings import EmbeddingClient, create_embedding_provider
from .fallbacks import FallbackResponder, classify_error, is_transient_error
from .generation import GenerationService, build_generation_providers

__all__ = [
    "EmbeddingClient",
    "EmbeddingError",
    "EmbeddingProvider",
    "EmbeddingResult",
    "FallbackResponder",
    "GenerationError",
    "GenerationOptions",
    "GenerationProvider",
    "GenerationResult",
    "GenerationService",
    "GracefulErrorResult",
    "ProviderReply",
    "build_generation_providers",
    "classify_error",
    "create_embedding_provider",
    "is_transient_error",
]
