"""
Chat Request / Response Models

Defines the request accepted by the twin and the response envelope it
returns. Every pipeline branch (normal, clarification, degraded) fills
the same envelope so callers never special-case its shape.
"""

import time
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from ai_twin.models.memory_item import RelationshipLevel

MAX_MESSAGE_LENGTH = 4000


class ChatContextHint(BaseModel):
    """Optional relationship hints supplied by the caller."""
    relationship: Optional[RelationshipLevel] = None
    previous_interactions: Optional[int] = Field(default=None, ge=0)


class ChatRequest(BaseModel):
    """A single user turn."""
    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    conversation_id: Optional[str] = None
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    context: Optional[ChatContextHint] = None


class MemoriesUsed(BaseModel):
    count: int = 0
    types: List[str] = Field(default_factory=list)
    relevance_scores: List[float] = Field(default_factory=list)


class PersonalityInfo(BaseModel):
    tone: str
    context_applied: List[str] = Field(default_factory=list)


class LearningInfo(BaseModel):
    new_memories_created: int = 0
    user_insights_gained: List[str] = Field(default_factory=list)


class ChatResponseData(BaseModel):
    response: str
    conversation_id: str
    memories_used: MemoriesUsed = Field(default_factory=MemoriesUsed)
    personality: PersonalityInfo
    learning: LearningInfo = Field(default_factory=LearningInfo)


class ChatMeta(BaseModel):
    processing_time_ms: int = 0
    tokens_used: int = 0
    memory_search_time_ms: int = 0


class ChatResponse(BaseModel):
    """Successful chat envelope."""
    success: bool = True
    data: ChatResponseData
    meta: ChatMeta = Field(default_factory=ChatMeta)


class ChatError(BaseModel):
    """Failure envelope."""
    success: bool = False
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None


class ChatValidationError(ValueError):
    """Raised when a chat payload is rejected before the pipeline runs."""
    
    def __init__(self, code: str, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details
    
    def to_error(self) -> ChatError:
        return ChatError(error=self.code, message=self.message, details=self.details)


def _generate_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{uuid4().hex[:10]}"


def validate_chat_payload(payload: Any, max_length: int = MAX_MESSAGE_LENGTH) -> ChatRequest:
    """
    Validate a raw chat payload and fill in anonymous identifiers.
    
    Args:
        payload: Decoded JSON body
        max_length: Maximum accepted message length
        
    Returns:
        ChatRequest with user_id and conversation_id always set
        
    Raises:
        ChatValidationError: INVALID_INPUT, EMPTY_MESSAGE or MESSAGE_TOO_LONG
    """
    if not isinstance(payload, dict):
        raise ChatValidationError(
            "INVALID_INPUT",
            "Request body must be a JSON object",
            {"received_type": type(payload).__name__},
        )
    
    message = payload.get("message")
    if not isinstance(message, str) or not message:
        raise ChatValidationError(
            "INVALID_INPUT",
            "Message is required and must be a string",
            {"received_type": type(message).__name__},
        )
    
    if not message.strip():
        raise ChatValidationError("EMPTY_MESSAGE", "Message cannot be empty")
    
    if len(message) > max_length:
        raise ChatValidationError(
            "MESSAGE_TOO_LONG",
            f"Message must be {max_length} characters or less",
            {"message_length": len(message), "max_length": max_length},
        )
    
    data = dict(payload)
    data["user_id"] = data.get("user_id") or _generate_id("anon")
    data["conversation_id"] = data.get("conversation_id") or _generate_id("conv")
    
    try:
        return ChatRequest(**data)
    except ValueError as e:
        raise ChatValidationError("INVALID_INPUT", str(e)) from e
