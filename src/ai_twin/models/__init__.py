"""Data models package."""

from ai_twin.models.chat import ChatError, ChatRequest, ChatResponse, validate_chat_payload
from ai_twin.models.memory_item import (
    Memory,
    MemorySubject,
    MemoryType,
    RelationshipLevel,
    RetrievedMemory,
    UserMemoryContext,
    Visibility,
)

__all__ = [
    "ChatError",
    "ChatRequest",
    "ChatResponse",
    "Memory",
    "MemorySubject",
    "MemoryType",
    "RelationshipLevel",
    "RetrievedMemory",
    "UserMemoryContext",
    "Visibility",
    "validate_chat_payload",
]
