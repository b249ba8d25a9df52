"""
Graceful Degradation

Hosted free-tier models are overloaded or rate-limited often enough
that a broken conversation is worse than an honest, in-character
"I'm having trouble" reply. This module recognizes the known transient
failure signatures and picks a canned persona response for them.
"""

import math
import random
from typing import List, Optional

from ai_twin.llm.base import GracefulErrorResult

OVERLOAD = "overload"
QUOTA = "quota"
NETWORK = "network"
MODEL = "model"
GENERIC = "generic"

# Signatures treated as transient; anything else propagates as a hard failure.
TRANSIENT_SIGNATURES = (
    "503",
    "429",
    "service unavailable",
    "overloaded",
    "rate limit",
    "quota",
    "network",
    "timeout",
    "timed out",
    "connection",
)

TRANSIENT_STATUS_CODES = {429, 503}

_KIND_SIGNATURES = [
    (OVERLOAD, ("503", "service unavailable", "overloaded", "429", "rate limit")),
    (QUOTA, ("quota", "exceeded", "billing")),
    (NETWORK, ("network", "connection", "timeout", "timed out", "enotfound")),
    (MODEL, ("model", "invalid", "400")),
]

OVERLOAD_RESPONSES = [
    "My brain is stuck in a bit of a traffic jam right now. The AI servers are busier than a cafe during exam week! Give me a second and ask again?",
    "Looks like I'm lagging a little. The free AI servers are getting hammered harder than my keyboard on a deadline. Mind trying that again?",
    "Classic buffering moment on my end. Everyone seems to be asking their AI friends big questions today. Let me catch my breath...",
    "My neural networks are doing the digital version of 'umm...' right now. The servers are packed. Hit me again?",
    "Getting a 'service temporarily unavailable' from my own thoughts, which is a new one. Ready for round two?",
]

OVERLOAD_MUSIC_RESPONSES = [
    "My music memory is skipping like an old CD right now. The servers are overloaded, so ask me about my tunes again in a moment?",
]

OVERLOAD_TECH_RESPONSES = [
    "Ironically, I'm having a technical difficulty while you're asking about tech. The servers are running hotter than my laptop during a build. Try again?",
]

QUOTA_RESPONSES = [
    "Looks like I've hit my thinking quota for the day. Even AI brains have budgets, apparently. This is a little awkward...",
    "I seem to have used up my AI allowance by overthinking today. The irony is not lost on me. Give me a moment?",
    "My free-tier brain has run out of credits for now. Try me again a bit later?",
]

NETWORK_RESPONSES = [
    "My connection is having an identity crisis right now. Give me a second to find my way back?",
    "Connection timeout, which is tech speak for 'the internet is being moody'. Let me try reconnecting my thoughts...",
    "Looks like my thoughts got lost somewhere in cyberspace. Ask me again in a moment?",
]

MODEL_RESPONSES = [
    "Something's wonky with my AI configuration. I'm like a computer that forgot how to compute for a second...",
    "My language model just had a grammar crisis. Even I don't know what happened there. Try again?",
    "My settings seem scrambled at the moment. I promise I'm usually more articulate than an error code...",
]

GENERIC_RESPONSES = [
    "Well, this is embarrassing. My brain just walked into a glass door. Mind giving me another shot?",
    "I just had a genuine 'turn it off and on again' moment. Let's try that one more time?",
    "My thought process hit a 'file not found' error. A tech person's AI having tech problems, who'd have guessed?",
]

GENERIC_LONG_MESSAGE_RESPONSES = [
    "Your thoughtful question deserves a better answer than whatever hiccup just happened. Let me try again?",
]

GENERIC_QUESTION_RESPONSES = [
    "Your question is perfectly fair, my answer machinery is just having a moment. One more time?",
]


def _error_text(error: BaseException) -> str:
    return f"{type(error).__name__}: {error}".lower()


def is_transient_error(error: BaseException) -> bool:
    """Return True if the error matches a known transient provider failure."""
    status = getattr(error, "status_code", None)
    if status in TRANSIENT_STATUS_CODES:
        return True
    if isinstance(error, (TimeoutError, ConnectionError)):
        return True
    text = _error_text(error)
    return any(signature in text for signature in TRANSIENT_SIGNATURES)


def classify_error(error: BaseException) -> str:
    """Map an error onto one of the canned-response pools."""
    status = getattr(error, "status_code", None)
    if status in TRANSIENT_STATUS_CODES:
        return OVERLOAD
    if isinstance(error, (TimeoutError, ConnectionError)):
        return NETWORK
    text = _error_text(error)
    for kind, signatures in _KIND_SIGNATURES:
        if any(signature in text for signature in signatures):
            return kind
    return GENERIC


class FallbackResponder:
    """
    Picks persona-voiced canned replies for failed generations.
    
    Selection is uniform over the pool for the error kind; pass a seeded
    random.Random to make the choice deterministic.
    """
    
    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
    
    def candidates(self, kind: str, user_message: str) -> List[str]:
        """Build the pool of replies for an error kind, including context-aware extras."""
        lower = user_message.lower()
        
        if kind == OVERLOAD:
            pool = list(OVERLOAD_RESPONSES)
            if "music" in lower:
                pool += OVERLOAD_MUSIC_RESPONSES
            if "tech" in lower or "code" in lower:
                pool += OVERLOAD_TECH_RESPONSES
            return pool
        if kind == QUOTA:
            return list(QUOTA_RESPONSES)
        if kind == NETWORK:
            return list(NETWORK_RESPONSES)
        if kind == MODEL:
            return list(MODEL_RESPONSES)
        
        pool = list(GENERIC_RESPONSES)
        if len(user_message) > 50:
            pool += GENERIC_LONG_MESSAGE_RESPONSES
        if "?" in user_message:
            pool += GENERIC_QUESTION_RESPONSES
        return pool
    
    def respond(self, error: BaseException, user_message: str, provider: str = "") -> GracefulErrorResult:
        """Turn an error into an in-character reply."""
        kind = classify_error(error)
        response = self.rng.choice(self.candidates(kind, user_message))
        return GracefulErrorResult(
            response=response,
            tokens_used=math.ceil(len(response) / 4),
            provider=provider,
            error_kind=kind,
        )
