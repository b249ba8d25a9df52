"""
Twin Engine - Abstract Base Class

Defines the interface the API layer talks to.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ai_twin.models.chat import ChatRequest, ChatResponse


class TwinEngine(ABC):
    """
    Abstract Base Class for the twin.
    
    One call per user turn; every outcome (normal reply, clarification,
    degraded reply) comes back in the same envelope.
    """
    
    @abstractmethod
    async def chat(self, request: ChatRequest, provider: Optional[str] = None) -> ChatResponse:
        """
        Process one user message.
        
        Args:
            request: Validated chat request
            provider: Optional generation provider tag overriding the default
            
        Returns:
            ChatResponse envelope
            
        Raises:
            StoreUnavailableError: If write-back could not reach the store
            GenerationError: On a non-transient generation failure
        """
        pass
    
    @abstractmethod
    async def health_check(self) -> dict:
        """Report service and datastore health."""
        pass
