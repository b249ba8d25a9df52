"""Engine package - the twin orchestrator."""

from ai_twin.engine.base import TwinEngine
from ai_twin.engine.twin_engine import TwinOrchestrator, applied_context, detect_response_tone

__all__ = ["TwinEngine", "TwinOrchestrator", "applied_context", "detect_response_tone"]
