"""
Memory Data Models

Defines the persisted Memory record, the read-only RetrievedMemory
projection returned by similarity search, and the derived
UserMemoryContext used when talking to a returning user.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MAX_CONTENT_LENGTH = 2000
MAX_TAGS = 10
MAX_TAG_LENGTH = 30


class MemoryType(str, Enum):
    """Type of memory record."""
    FACT = "fact"
    DIARY = "diary"
    PREFERENCE = "preference"
    USER_INPUT = "user_input"
    SYSTEM = "system"


class MemorySubject(str, Enum):
    """Whose memory this is: the twin's own, or one learned about a user."""
    SELF = "self"
    USER = "user"


class Visibility(str, Enum):
    """Access level gating inclusion in retrieval."""
    PUBLIC = "public"
    CLOSE_FRIENDS = "close_friends"
    PRIVATE = "private"


class RelationshipLevel(str, Enum):
    """Coarse relationship tier derived from interaction count."""
    STRANGER = "stranger"
    ACQUAINTANCE = "acquaintance"
    FRIEND = "friend"
    CLOSE_FRIEND = "close_friend"


def normalize_tags(tags: Optional[List[str]]) -> List[str]:
    """Lowercase, trim and deduplicate tags, keeping first-seen order."""
    normalized: List[str] = []
    for tag in tags or []:
        tag = str(tag).strip().lower()[:MAX_TAG_LENGTH]
        if tag and tag not in normalized:
            normalized.append(tag)
    return normalized[:MAX_TAGS]


class Memory(BaseModel):
    """
    A unit of persisted knowledge.
    
    The embedding is produced once from the content at creation time
    and is never partially updated.
    """
    
    model_config = ConfigDict(use_enum_values=True)
    
    id: UUID = Field(default_factory=uuid4)
    content: str = Field(..., description="Free-text memory content")
    embedding: Optional[List[float]] = Field(
        default=None,
        description="Vector produced from content; omitted when read back"
    )
    type: MemoryType = Field(default=MemoryType.FACT)
    subject: MemorySubject = Field(default=MemorySubject.SELF)
    user_id: Optional[str] = Field(
        default=None,
        description="Conversation partner this memory is scoped to"
    )
    tags: List[str] = Field(default_factory=list)
    visibility: Visibility = Field(default=Visibility.PUBLIC)
    mood: Optional[str] = None
    metadata: dict = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    
    @field_validator("content")
    @classmethod
    def _check_content(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("content must not be empty")
        if len(value) > MAX_CONTENT_LENGTH:
            raise ValueError(f"content must be {MAX_CONTENT_LENGTH} characters or less")
        return value
    
    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, value):
        return normalize_tags(value)
    
    @model_validator(mode="after")
    def _check_subject(self) -> "Memory":
        if self.subject == MemorySubject.USER and not self.user_id:
            raise ValueError("user memories require a user_id")
        return self


class RetrievedMemory(BaseModel):
    """
    Read-only projection of a Memory returned by similarity search.
    
    The embedding is dropped to keep payloads small.
    """
    
    model_config = ConfigDict(use_enum_values=True, frozen=True)
    
    id: UUID
    content: str
    type: MemoryType
    tags: List[str] = Field(default_factory=list)
    mood: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    relevance_score: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Cosine similarity to the query, higher is closer"
    )


class UserMemoryContext(BaseModel):
    """What the twin knows about a conversation partner, derived from user_input memories."""
    
    model_config = ConfigDict(use_enum_values=True)
    
    user_id: str
    user_name: Optional[str] = None
    known_preferences: List[str] = Field(default_factory=list)
    conversation_history_length: int = 0
    relationship_level: RelationshipLevel = RelationshipLevel.STRANGER
    last_interaction: Optional[datetime] = None


def relationship_for(interaction_count: int) -> RelationshipLevel:
    """Map a prior-interaction count onto a relationship tier."""
    if interaction_count <= 0:
        return RelationshipLevel.STRANGER
    if interaction_count < 5:
        return RelationshipLevel.ACQUAINTANCE
    if interaction_count < 20:
        return RelationshipLevel.FRIEND
    return RelationshipLevel.CLOSE_FRIEND
