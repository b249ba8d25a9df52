"""
Category Profiles

The keyed configuration table driving every category-aware stage:
response length, tone, temperature, retrieval depth, and the
instruction text placed in prompts. Stages look values up here
instead of branching on the category.

Retrieval counts and thresholds were tuned by hand and are only
defaults; they can be overridden per category from the YAML config.
"""

from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, Field


class QuestionCategory(str, Enum):
    """Closed set of question categories, in keyword-priority order."""
    CASUAL = "casual"
    PERSONAL = "personal"
    TECHNICAL = "technical"
    DEEP = "deep"
    SPECIFIC = "specific"


class CategoryProfile(BaseModel):
    """Everything the pipeline needs to know about one question category."""
    
    # Response length / style
    target_words: int = Field(..., gt=0)
    max_words: int = Field(..., gt=0)
    style: str
    structure_pattern: str
    question_style: str
    
    # Generation
    temperature: float = Field(..., ge=0.0, le=2.0)
    
    # Retrieval
    memory_count: int = Field(..., ge=0)
    similarity_threshold: float = Field(..., ge=0.0, le=1.0)
    
    # Prompt text
    instructions: str
    memory_instruction: str
    response_guidance: str
    
    # Fast classification
    keywords: List[str] = Field(default_factory=list)


class ToneProfile(BaseModel):
    """Category-independent tone of the twin."""
    base_energy: str = "enthusiastic_but_controlled"
    formality_level: str = "casual_professional"
    humor_style: str = "occasional_dry_humor"
    authenticity: str = "genuine_and_direct"


CATEGORY_PROFILES: Dict[QuestionCategory, CategoryProfile] = {
    QuestionCategory.CASUAL: CategoryProfile(
        target_words=15,
        max_words=30,
        style="brief_and_natural",
        structure_pattern="direct_answer_then_reciprocal_question",
        question_style="what_about_you",
        temperature=0.7,
        memory_count=0,
        similarity_threshold=0.5,
        instructions="""CASUAL RESPONSE INSTRUCTIONS:
- Keep it brief and natural
- Only reference your loaded memories if directly relevant
- Don't over-explain
- Feel free to ask "What about you?" if it fits""",
        memory_instruction="If relevant, briefly mention your current focus.",
        response_guidance="respond casually and briefly to",
        keywords=[
            "what's up", "whats up", "how are you", "sup", "hey", "hello",
            "what are you doing", "what are you upto", "how's it going",
        ],
    ),
    QuestionCategory.PERSONAL: CategoryProfile(
        target_words=40,
        max_words=80,
        style="engaging_with_followup",
        structure_pattern="share_then_ask_then_relate",
        question_style="deeper_exploration",
        temperature=0.8,
        memory_count=3,
        similarity_threshold=0.3,
        instructions="""PERSONAL RESPONSE INSTRUCTIONS:
- Share ONLY from your explicitly loaded memories
- If no relevant memory exists, admit it honestly
- Ask a reciprocal question to learn about them
- Never assume the other person shares your background, location or experiences
- NEVER fabricate specific events, places or experiences""",
        memory_instruction="ONLY use the specific personal experiences listed in your memories - never invent new ones.",
        response_guidance=(
            "share from your memories if relevant, then ask a general follow-up question "
            "to learn about the user. Do not assume the user shares your background or context"
        ),
        keywords=[
            "like", "favorite", "prefer", "enjoy", "love", "hate",
            "tell me about", "what do you think", "your opinion",
        ],
    ),
    QuestionCategory.TECHNICAL: CategoryProfile(
        target_words=100,
        max_words=200,
        style="detailed_with_examples",
        structure_pattern="overview_then_details_then_example",
        question_style="specific_details",
        temperature=0.6,
        memory_count=5,
        similarity_threshold=0.2,
        instructions="""TECHNICAL RESPONSE INSTRUCTIONS:
- Provide technical insight grounded ONLY in your loaded memories
- Use examples only if they exist in your context
- If no specific example exists, discuss the concept in general terms
- Explain clearly while staying within your memory bounds""",
        memory_instruction="Draw ONLY from your loaded technical knowledge and documented project experiences.",
        response_guidance="provide technical insight about",
        keywords=[
            "code", "build", "tech", "program", "develop", "architecture",
            "how do you", "what framework", "database", "api",
        ],
    ),
    QuestionCategory.DEEP: CategoryProfile(
        target_words=150,
        max_words=300,
        style="thoughtful_and_comprehensive",
        structure_pattern="explore_then_synthesize_then_reflect",
        question_style="philosophical_inquiry",
        temperature=0.8,
        memory_count=8,
        similarity_threshold=0.15,
        instructions="""DEEP RESPONSE INSTRUCTIONS:
- Explore the topic thoughtfully using ONLY your loaded memories
- Share values and thoughts only if they exist in your context
- Ask meaningful follow-up questions
- NEVER fabricate philosophical experiences or events""",
        memory_instruction="Reference ONLY your documented values and verified experiences.",
        response_guidance="thoughtfully explore",
        keywords=[
            "philosophy", "believe", "values", "opinion on", "thoughts on",
            "what matters", "why do you", "meaning of",
        ],
    ),
    QuestionCategory.SPECIFIC: CategoryProfile(
        target_words=60,
        max_words=120,
        style="contextual_and_precise",
        structure_pattern="address_directly_then_contextualize",
        question_style="contextual_followup",
        temperature=0.5,
        memory_count=6,
        similarity_threshold=0.25,
        instructions="""SPECIFIC RESPONSE INSTRUCTIONS:
- Address the question using ONLY your loaded memories
- If no relevant memory exists, be honest about it
- Be precise and helpful without inventing details
- Redirect to learning about the user when appropriate""",
        memory_instruction="Use ONLY specific memories that are explicitly loaded - never fabricate events.",
        response_guidance="address specifically",
        keywords=[
            "yesterday", "today", "recently", "last week", "current",
            "right now", "these days", "lately",
        ],
    ),
}


def default_category_profiles() -> Dict[QuestionCategory, CategoryProfile]:
    """Return a deep copy of the built-in table."""
    return {category: profile.model_copy(deep=True) for category, profile in CATEGORY_PROFILES.items()}
