"""
Google Gemini provider implementations.
"""

import asyncio
from typing import List, Optional

from .base import (
    EmbeddingError,
    EmbeddingProvider,
    GenerationError,
    GenerationOptions,
    GenerationProvider,
    ProviderReply,
)


def _import_genai(api_key: Optional[str]):
    try:
        import google.generativeai as genai
    except ImportError:
        raise ImportError(
            "google-generativeai package required for Gemini provider. "
            "Install with: pip install google-generativeai"
        )
    
    if api_key:
        genai.configure(api_key=api_key)
    return genai


class GeminiEmbeddingProvider(EmbeddingProvider):
    """
    Google Gemini embedding provider.
    
    Uses asyncio.gather for batch processing since Gemini API
    processes embeddings individually.
    """
    
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "models/text-embedding-004",
    ):
        """
        Initialize Gemini embedding provider.
        
        Args:
            api_key: Google AI API key (defaults to GOOGLE_API_KEY env var)
            model: Embedding model name
        """
        self.genai = _import_genai(api_key)
        self.model = model
        
        # text-embedding-004 produces 768-dimensional vectors
        self._dimension = 768
    
    async def batch_embed(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        
        try:
            return list(await asyncio.gather(*[self._embed_single(text) for text in texts]))
        except Exception as e:
            raise EmbeddingError(f"Gemini embedding failed: {e}") from e
    
    async def _embed_single(self, text: str) -> List[float]:
        """
        Embed a single text using Gemini API.
        
        Note: embed_content is synchronous, so we use
        asyncio.to_thread to avoid blocking.
        """
        def _sync_embed():
            result = self.genai.embed_content(
                model=self.model,
                content=text,
                task_type="retrieval_document",
            )
            return result["embedding"]
        
        return await asyncio.to_thread(_sync_embed)
    
    def get_embedding_dimension(self) -> int:
        return self._dimension
    
    def get_model_name(self) -> str:
        return self.model


class GeminiGenerationProvider(GenerationProvider):
    """
    Gemini text generation.
    
    Gemini takes a single prompt here, so the system prompt, context and
    user message are rendered into one transcript ending with the
    persona's turn.
    """
    
    name = "gemini"
    
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gemini-1.5-flash",
        persona_name: str = "Twin",
    ):
        self.genai = _import_genai(api_key)
        self.model = model
        self.persona_name = persona_name
    
    async def chat(
        self,
        system_prompt: str,
        user_message: str,
        options: GenerationOptions,
    ) -> ProviderReply:
        prompt = f"{system_prompt}\n\nUser: {user_message}\n\n{self.persona_name}:"
        return await self.complete(prompt, options)
    
    async def complete(self, prompt: str, options: GenerationOptions) -> ProviderReply:
        generation_config = {
            "temperature": options.temperature,
            "top_p": options.top_p,
            "max_output_tokens": options.max_tokens,
        }
        if options.top_k is not None:
            generation_config["top_k"] = options.top_k
        
        model = self.genai.GenerativeModel(self.model, generation_config=generation_config)
        result = await model.generate_content_async(prompt)
        
        try:
            text = result.text or ""
        except ValueError as e:
            # Raised when the candidate was blocked or carries no parts
            raise GenerationError(f"Gemini returned no text: {e}") from e
        
        usage = getattr(result, "usage_metadata", None)
        tokens = getattr(usage, "total_token_count", None) if usage else None
        return ProviderReply(text=text, tokens_used=tokens or None, model=self.model)
