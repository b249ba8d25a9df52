"""Pipelines package - the stages of one chat turn."""

from ai_twin.pipelines.ambiguity import AmbiguityDetector, AmbiguityResult, ClarificationResponse, needs_clarification
from ai_twin.pipelines.classify import QuestionClassifier
from ai_twin.pipelines.learn import LearningResult, LearnPipeline
from ai_twin.pipelines.prompt_builder import PromptBuilder
from ai_twin.pipelines.retrieve import RetrievePipeline

__all__ = [
    "AmbiguityDetector",
    "AmbiguityResult",
    "ClarificationResponse",
    "LearnPipeline",
    "LearningResult",
    "PromptBuilder",
    "QuestionClassifier",
    "RetrievePipeline",
    "needs_clarification",
]
