"""
AI Twin

A persona chat backend: classifies each question, retrieves the
persona's own memories, builds a prompt that forbids fabricating
beyond them, generates a reply through an interchangeable hosted
model, and learns from the exchange.
"""

from ai_twin.engine.twin_engine import TwinOrchestrator
from ai_twin.models.chat import ChatRequest, ChatResponse
from ai_twin.models.memory_item import Memory, RetrievedMemory
from ai_twin.profiles import QuestionCategory

__version__ = "0.1.0"
__all__ = ["ChatRequest", "ChatResponse", "Memory", "QuestionCategory", "RetrievedMemory", "TwinOrchestrator"]
