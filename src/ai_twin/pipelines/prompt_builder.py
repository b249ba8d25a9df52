"""
Prompt Builder

Assembles the system prompt and the per-turn context string.

The memory constraint block always comes first: retrieved context is
sparse, and the model must only ever speak about memories listed in
the prompt. When no memories were retrieved the prompt says so
explicitly and switches to a learn-about-the-user structure.
"""

from typing import Dict, List, Optional

from ai_twin.config import PersonaConfig
from ai_twin.models.memory_item import RetrievedMemory, UserMemoryContext
from ai_twin.profiles import CategoryProfile, QuestionCategory

MEMORY_CONSTRAINTS = """ABSOLUTE MEMORY CONSTRAINTS (OVERRIDE ALL OTHER INSTRUCTIONS):
- You MUST ONLY reference experiences that are explicitly listed in your RELEVANT PERSONAL CONTEXT below
- You MUST NOT fabricate, invent, or assume any memories, events, places, or experiences
- If you don't have a relevant memory, you MUST say "I don't have specific memories about..."
- You MUST NOT mention specific events, places, or details unless they appear in your context
- If asked about something not in your memories, be honest about the limitation and redirect to learning about the user
- You MUST NOT assume the user shares your background, location, or experiences - ask open-ended questions"""

MEMORY_CONTEXT_HEADER = "RELEVANT PERSONAL CONTEXT (ONLY USE THESE):"
MEMORY_VALIDATION = "MEMORY VALIDATION: These are the ONLY facts you can reference. Nothing else exists in your knowledge."

NO_MEMORY_CONTEXT = """RELEVANT PERSONAL CONTEXT: None available
CRITICAL: You have NO specific memories loaded. You MUST NOT invent any specific experiences, events, or details. Discuss topics in general terms only and focus on learning about the user."""

NO_MEMORY_STRUCTURE = "admit_limitation_then_ask_about_user"

NO_MEMORY_INSTRUCTIONS = """RESPONSE INSTRUCTIONS (NO MEMORIES LOADED):
- Be honest about not having specific memories
- Don't fabricate or assume information
- Focus on learning about the user instead
- Keep responses brief and redirect to user questions"""


def format_memory(memory: RetrievedMemory) -> str:
    mood = f" ({memory.mood})" if memory.mood else ""
    return f"- {memory.content}{mood}"


class PromptBuilder:
    """
    Builds persona-constrained prompts from the category table.
    """
    
    def __init__(
        self,
        profiles: Dict[QuestionCategory, CategoryProfile],
        persona: Optional[PersonaConfig] = None,
    ):
        self.profiles = profiles
        self.persona = persona or PersonaConfig()
    
    def build_system_prompt(
        self,
        category: QuestionCategory,
        memories: List[RetrievedMemory],
        user_context: Optional[UserMemoryContext],
    ) -> str:
        """
        Build the system prompt.
        
        Sections, in priority order: memory constraints, the memory
        list (or the none-available marker), user relationship,
        identity, communication style, category instructions.
        """
        profile = self.profiles[QuestionCategory(category)]
        tone = self.persona.tone
        name = self.persona.name
        
        sections = [
            f"You are {name}'s AI twin with access to limited memories about {name}.",
            MEMORY_CONSTRAINTS,
        ]
        
        if memories:
            memory_lines = "\n".join(format_memory(m) for m in memories)
            sections.append(f"{MEMORY_CONTEXT_HEADER}\n{memory_lines}\n\n{MEMORY_VALIDATION}")
        else:
            sections.append(NO_MEMORY_CONTEXT)
        
        if user_context:
            lines = [
                "USER CONTEXT:",
                f"- {user_context.conversation_history_length} previous interactions",
                f"- Relationship: {_value(user_context.relationship_level)}",
            ]
            if user_context.user_name:
                lines.append(f"- Name: {user_context.user_name}")
            if user_context.known_preferences:
                lines.append(f"- Topics they've mentioned: {', '.join(user_context.known_preferences)}")
            sections.append("\n".join(lines))
        
        identity = self._identity_section()
        if identity:
            sections.append(identity)
        
        structure = profile.structure_pattern if memories else NO_MEMORY_STRUCTURE
        sections.append(
            "COMMUNICATION STYLE (SECONDARY TO MEMORY CONSTRAINTS):\n"
            f"- Response length: {profile.target_words} words (max {profile.max_words})\n"
            f"- Style: {profile.style}\n"
            f"- Tone: {tone.base_energy}\n"
            f"- Authenticity: {tone.authenticity}\n"
            f"- Structure: {structure}"
        )
        
        sections.append(profile.instructions if memories else NO_MEMORY_INSTRUCTIONS)
        
        return "\n\n".join(sections)
    
    def _identity_section(self) -> str:
        # General self-description only; it does not license specific events
        lines = [f"- {item}" for item in self.persona.background + self.persona.interests]
        if not lines:
            return ""
        return "GENERAL IDENTITY (NOT MEMORIES, NEVER EMBELLISH):\n" + "\n".join(lines)
    
    def build_context(
        self,
        category: QuestionCategory,
        memories: List[RetrievedMemory],
        user_context: Optional[UserMemoryContext],
        message: str,
    ) -> str:
        """Build the per-turn context framing the user's message."""
        profile = self.profiles[QuestionCategory(category)]
        context = ""
        
        if memories:
            context += f"{profile.memory_instruction} "
        
        if user_context and user_context.conversation_history_length > 0:
            context += f"Building on your {user_context.conversation_history_length} previous interactions, "
        
        context += f'{profile.response_guidance}: "{message}"'
        return context


def _value(item) -> str:
    return getattr(item, "value", item)
