"""
Classify Pipeline

Maps a user message onto one of the five question categories.
Keyword lists are checked first in fixed priority order; only
messages matching none of them cost a model call.
"""

import logging
from typing import Dict, Optional

from ai_twin.profiles import CategoryProfile, QuestionCategory

logger = logging.getLogger("ai_twin.pipelines.classify")

CLASSIFICATION_PROMPT = """Classify this question into one category:
Question: "{message}"

Categories:
- casual: simple greetings, "what's up" type questions
- personal: asking about preferences, interests, personal info
- technical: coding, work, projects, how-to questions
- deep: philosophy, values, beliefs, complex topics
- specific: asking about recent events, specific memories

Answer with just the category name:"""


class QuestionClassifier:
    """
    Two-tier question classifier.
    
    Never raises: an unusable model answer or a failed call falls
    back to CASUAL.
    """
    
    def __init__(
        self,
        profiles: Dict[QuestionCategory, CategoryProfile],
        generation=None,
        temperature: float = 0.1,
        max_tokens: int = 10,
    ):
        """
        Args:
            profiles: Category table supplying the keyword lists
            generation: GenerationService used for the fallback call, or None
                to skip the model and default straight to CASUAL
            temperature: Sampling temperature of the fallback call
            max_tokens: Output cap of the fallback call
        """
        self.profiles = profiles
        self.generation = generation
        self.temperature = temperature
        self.max_tokens = max_tokens
    
    def classify_by_keywords(self, message: str) -> Optional[QuestionCategory]:
        """Return the first category whose keyword list matches, or None."""
        lower = message.lower()
        for category in QuestionCategory:
            profile = self.profiles.get(category)
            if profile and any(keyword in lower for keyword in profile.keywords):
                return category
        return None
    
    async def execute(self, message: str) -> QuestionCategory:
        category = self.classify_by_keywords(message)
        if category is not None:
            logger.debug(f"Keyword classification: {category.value}")
            return category
        
        return await self._classify_with_model(message)
    
    async def _classify_with_model(self, message: str) -> QuestionCategory:
        if self.generation is None:
            return QuestionCategory.CASUAL
        
        try:
            answer = await self.generation.complete(
                CLASSIFICATION_PROMPT.format(message=message),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            logger.warning(f"Model classification failed, defaulting to casual: {e}")
            return QuestionCategory.CASUAL
        
        label = answer.strip().strip(".!\"'").lower()
        try:
            category = QuestionCategory(label)
        except ValueError:
            logger.info(f"Model returned unknown category '{answer[:50]}', defaulting to casual")
            return QuestionCategory.CASUAL
        
        logger.debug(f"Model classification: {category.value}")
        return category
