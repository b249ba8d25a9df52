"""
OpenAI-compatible provider implementations.

The chat provider also serves Mistral, whose API accepts the same
request shape at its own base URL.
"""

from typing import Any, List, Optional

from openai import AsyncOpenAI

from .base import (
    EmbeddingError,
    EmbeddingProvider,
    GenerationError,
    GenerationOptions,
    GenerationProvider,
    ProviderReply,
)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    OpenAI embedding provider.
    
    Supports batch embedding natively through OpenAI's API.
    """
    
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: str = "text-embedding-3-small",
    ):
        """
        Initialize OpenAI embedding provider.
        
        Args:
            api_key: OpenAI API key (defaults to OPENAI_API_KEY env var)
            base_url: Optional base URL for OpenAI-compatible APIs
            model: Embedding model name
        """
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.model = model
        
        self._dimensions = {
            "text-embedding-ada-002": 1536,
            "text-embedding-3-small": 1536,
            "text-embedding-3-large": 3072,
        }
    
    async def batch_embed(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=texts,
                encoding_format="float",
            )
            return [item.embedding for item in response.data]
        except Exception as e:
            raise EmbeddingError(f"OpenAI embedding failed: {e}") from e
    
    def get_embedding_dimension(self) -> int:
        return self._dimensions.get(self.model, 1536)
    
    def get_model_name(self) -> str:
        return self.model


class OpenAIChatProvider(GenerationProvider):
    """
    Chat-completions backend for OpenAI and OpenAI-compatible APIs.
    
    The system prompt and the conversation context travel together in
    the system message; the user's own words are the user message.
    """
    
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: str = "gpt-4o-mini",
        name: str = "openai",
    ):
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.model = model
        self.name = name
    
    async def chat(
        self,
        system_prompt: str,
        user_message: str,
        options: GenerationOptions,
    ) -> ProviderReply:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
        ]
        return await self._create(messages, options)
    
    async def complete(self, prompt: str, options: GenerationOptions) -> ProviderReply:
        return await self._create([{"role": "user", "content": prompt}], options)
    
    async def _create(self, messages: List[dict], options: GenerationOptions) -> ProviderReply:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=options.temperature,
            top_p=options.top_p,
            max_tokens=options.max_tokens,
        )
        
        usage = getattr(response, "usage", None)
        return ProviderReply(
            text=extract_message_text(response),
            tokens_used=getattr(usage, "total_tokens", None) if usage else None,
            model=self.model,
        )


def extract_message_text(response: Any) -> str:
    """
    Pull the reply text out of a chat-completions response.
    
    Some compatible APIs return content as a list of chunks rather
    than a string; chunks are joined in order.

    Raises:
        GenerationError: If the response carries no choices
    """
    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError) as e:
        raise GenerationError(f"Malformed provider response: {e}") from e

    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for chunk in content:
            if isinstance(chunk, dict):
                parts.append(chunk.get("text") or chunk.get("content") or "")
            else:
                parts.append(getattr(chunk, "text", None) or getattr(chunk, "content", None) or "")
        return "".join(parts)
    return ""
