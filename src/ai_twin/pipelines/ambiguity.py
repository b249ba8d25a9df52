"""
Ambiguity Detection

Decides whether a personal question is too generic to answer well
("what do you like?") and, if so, builds a clarification reply from
the memories already retrieved instead of calling the model.

Detection is a cascade of three signals. Each one is only checked if
the previous one fired, so a message is ambiguous only when it both
looks generic and names no knowledge domain.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ai_twin.models.memory_item import RetrievedMemory

logger = logging.getLogger("ai_twin.pipelines.ambiguity")

AMBIGUITY_THRESHOLD = 0.5
KEYWORD_WEIGHT = 0.4
SCOPE_WEIGHT = 0.3
SPECIFICITY_WEIGHT = 0.3
MAX_EXAMPLES = 3

GENERIC_PATTERNS = [
    re.compile(r"what do you (like|enjoy|prefer|love|hate)"),
    re.compile(r"what are you (into|interested in)"),
    re.compile(r"tell me (what|about) you (like|enjoy)"),
    re.compile(r"what (interests|excites) you"),
    re.compile(r"what do you think about"),
    re.compile(r"what are your (thoughts|opinions)"),
]

VAGUE_OBJECTS = ["things", "stuff", "anything", "something", "everything"]

CONTEXT_CLUES = [
    "recently", "currently", "for work", "for fun", "when coding",
    "in your free time", "professionally", "personally", "these days",
]

SPECIFIC_MODIFIERS = [
    "favorite", "best", "most", "least", "preferred", "top",
    "specific", "particular", "exactly", "precisely",
]

# Exact phrasings that always warrant a clarification
COMMON_AMBIGUOUS_PATTERNS = [
    re.compile(r"^what do you like\??$", re.IGNORECASE),
    re.compile(r"^what are you into\??$", re.IGNORECASE),
    re.compile(r"^tell me what you like$", re.IGNORECASE),
    re.compile(r"^what interests you\??$", re.IGNORECASE),
    re.compile(r"^what do you enjoy\??$", re.IGNORECASE),
]


@dataclass(frozen=True)
class KnowledgeDomain:
    name: str
    keywords: List[str]
    tags: List[str]


# Order matters: it is the order domains are offered in clarifications
KNOWLEDGE_DOMAINS: List[KnowledgeDomain] = [
    KnowledgeDomain(
        "music",
        ["music", "song", "band", "artist", "genre", "album", "playlist", "sound", "track"],
        ["music", "songs", "audio"],
    ),
    KnowledgeDomain(
        "technology",
        ["technology", "programming", "code", "framework", "language", "software", "development", "tech", "coding"],
        ["technology", "programming", "code", "tech", "development"],
    ),
    KnowledgeDomain(
        "food",
        ["food", "eating", "cooking", "restaurant", "cuisine", "meal", "recipe", "taste"],
        ["food", "cooking", "cuisine", "meal"],
    ),
    KnowledgeDomain(
        "movies",
        ["movie", "film", "cinema", "series", "show", "tv", "entertainment", "actor"],
        ["movies", "films", "entertainment", "tv"],
    ),
    KnowledgeDomain(
        "activities",
        ["hobby", "activity", "sport", "exercise", "game", "fun", "leisure", "pastime"],
        ["hobby", "activity", "sport", "game"],
    ),
    KnowledgeDomain(
        "books",
        ["book", "reading", "novel", "author", "literature", "story", "write", "writing"],
        ["books", "reading", "literature", "writing"],
    ),
    KnowledgeDomain(
        "work",
        ["work", "job", "career", "project", "business", "professional", "office"],
        ["work", "job", "project", "career"],
    ),
    KnowledgeDomain(
        "travel",
        ["travel", "trip", "vacation", "place", "country", "city", "visit"],
        ["travel", "trip", "vacation", "place"],
    ),
]

# Keywords used to locate the interesting phrase inside a memory
EXAMPLE_KEYWORDS: Dict[str, List[str]] = {
    "music": ["music", "song", "band", "artist", "album", "genre"],
    "technology": ["programming", "code", "framework", "language", "development"],
}

SUGGESTED_DOMAINS = ["music", "technology", "activities", "food", "movies"]


@dataclass
class AmbiguityResult:
    """Outcome of ambiguity detection."""
    is_ambiguous: bool
    confidence: float
    reasons: List[str] = field(default_factory=list)
    suggested_domains: Optional[List[str]] = None


@dataclass
class ClarificationResponse:
    """Material for a clarification reply."""
    brief_examples: List[str]
    clarification_question: str
    categories: List[str]
    
    def compose(self) -> str:
        """Render the reply text."""
        examples = join_examples(self.brief_examples)
        if examples:
            return f"I like quite a few things! I'm into {examples}. {self.clarification_question}"
        return f"I like quite a few things! {self.clarification_question}"


def join_examples(examples: List[str]) -> str:
    if not examples:
        return ""
    if len(examples) == 1:
        return examples[0]
    if len(examples) == 2:
        return f"{examples[0]} and {examples[1]}"
    return f"{', '.join(examples[:-1])}, and {examples[-1]}"


def needs_clarification(message: str) -> bool:
    """Quick check for the handful of phrasings that are always too broad."""
    text = message.strip()
    return any(pattern.search(text) for pattern in COMMON_AMBIGUOUS_PATTERNS)


def mentioned_domains(message: str) -> List[str]:
    lower = message.lower()
    return [
        domain.name for domain in KNOWLEDGE_DOMAINS
        if any(keyword in lower for keyword in domain.keywords)
    ]


class AmbiguityDetector:
    """
    Flags personal questions that are too generic and builds clarifications.
    """
    
    def detect(self, message: str) -> AmbiguityResult:
        reasons: List[str] = []
        confidence = 0.0
        
        keyword_fired, keyword_reasons = self._keyword_signal(message)
        if keyword_fired:
            reasons += keyword_reasons
            confidence += KEYWORD_WEIGHT
            
            scope_fired, scope_reasons = self._scope_signal(message)
            if scope_fired:
                reasons += scope_reasons
                confidence += SCOPE_WEIGHT
                
                specificity_fired, specificity_reasons = self._specificity_signal(message)
                if specificity_fired:
                    reasons += specificity_reasons
                    confidence += SPECIFICITY_WEIGHT
        
        # Round away float accumulation error (0.4 + 0.3 + 0.3)
        confidence = min(round(confidence, 4), 1.0)
        is_ambiguous = confidence >= AMBIGUITY_THRESHOLD
        
        return AmbiguityResult(
            is_ambiguous=is_ambiguous,
            confidence=confidence,
            reasons=reasons,
            suggested_domains=list(SUGGESTED_DOMAINS) if is_ambiguous else None,
        )
    
    def _keyword_signal(self, message: str):
        lower = message.lower()
        reasons = []
        
        if any(pattern.search(lower) for pattern in GENERIC_PATTERNS):
            reasons.append("generic_question_pattern")
        if any(word in lower for word in VAGUE_OBJECTS):
            reasons.append("contains_vague_objects")
        
        return bool(reasons), reasons
    
    def _scope_signal(self, message: str):
        domains = mentioned_domains(message)
        if not domains:
            return True, ["no_specific_domain_mentioned"]
        if len(domains) > 2:
            return False, ["too_many_domains_mentioned"]
        return False, []
    
    def _specificity_signal(self, message: str):
        lower = message.lower()
        reasons = []
        score = 0.0
        
        word_count = len(message.split())
        if word_count <= 4:
            reasons.append("very_short_question")
            score -= 0.4
        elif word_count <= 6:
            reasons.append("short_question")
            score -= 0.2
        
        if any(clue in lower for clue in CONTEXT_CLUES):
            score += 0.3
        else:
            reasons.append("no_context_clues")
        
        if any(modifier in lower for modifier in SPECIFIC_MODIFIERS):
            score += 0.2
        
        return score < 0, reasons
    
    def build_clarification(self, memories: List[RetrievedMemory]) -> ClarificationResponse:
        """
        Build a clarification from the retrieved memories.
        
        Memories are grouped by knowledge domain; the most relevant
        memory of each populated domain becomes a short example.
        """
        grouped = categorize_memories(memories)
        available = [name for name, items in grouped.items() if items]
        
        examples = []
        for name in available[:MAX_EXAMPLES]:
            sample = max(grouped[name], key=lambda m: m.relevance_score)
            example = brief_example(name, sample.content)
            if example:
                examples.append(example)
        
        logger.info(f"Clarification built from {len(available)} domains")
        
        return ClarificationResponse(
            brief_examples=examples,
            clarification_question=clarification_question(available),
            categories=available,
        )


def categorize_memories(memories: List[RetrievedMemory]) -> Dict[str, List[RetrievedMemory]]:
    """Group memories by domain; a memory may fall into several domains."""
    grouped: Dict[str, List[RetrievedMemory]] = {domain.name: [] for domain in KNOWLEDGE_DOMAINS}
    
    for memory in memories:
        content = memory.content.lower()
        tags = [tag.lower() for tag in memory.tags]
        for domain in KNOWLEDGE_DOMAINS:
            if any(k in content for k in domain.keywords) or any(t in tags for t in domain.tags):
                grouped[domain.name].append(memory)
    
    return grouped


def _clip(text: str, limit: int) -> str:
    return text[:limit - 3] + "..." if len(text) > limit else text


def brief_example(domain: str, content: str) -> str:
    """Pull a short human-readable phrase out of a memory."""
    keywords = EXAMPLE_KEYWORDS.get(domain)
    
    if keywords is not None:
        words = content.split(" ")
        for i, word in enumerate(words):
            if any(keyword in word.lower() for keyword in keywords):
                return _clip(" ".join(words[max(0, i - 2):i + 4]), 40)
        return content[:40] + ("..." if len(content) > 40 else "")
    
    if domain == "activities":
        return content[:40] + ("..." if len(content) > 40 else "")
    
    return _clip(" ".join(content.split(" ")[:8]), 50)


def clarification_question(domains: List[str]) -> str:
    if not domains:
        return "Could you be more specific about what you're interested in?"
    
    if len(domains) == 1:
        return f"What context were you thinking about - {domains[0]}?"
    
    if len(domains) <= 3:
        listed = ", ".join(domains[:-1]) + f", or {domains[-1]}"
        return f"What context were you thinking about - {listed}?"
    
    return f"What context were you thinking about - {', '.join(domains[:3])}, or something else?"
