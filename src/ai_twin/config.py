"""
Configuration

Loads and manages twin configuration from twin_config.yaml,
overlaid with environment variables.
"""

import os
from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field

from ai_twin.profiles import CategoryProfile, QuestionCategory, ToneProfile, default_category_profiles

# Load .env file if it exists
try:
    from dotenv import load_dotenv
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)
except ImportError:
    pass  # python-dotenv not installed


class DatabaseConfig(BaseModel):
    """Database connection configuration.
    
    `backend: memory` keeps memories in-process, for local runs without PostgreSQL.
    """
    backend: Literal["postgres", "memory"] = "postgres"
    url: Optional[str] = None
    host: str = "localhost"
    port: int = 5432
    name: str = "ai_twin"
    user: Optional[str] = None
    password: Optional[str] = None
    
    @property
    def connection_string(self) -> str:
        """Generate PostgreSQL connection string."""
        if self.url:
            return self.url
        if self.user and self.password:
            return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"
        return f"postgresql://{self.host}:{self.port}/{self.name}"


class EmbeddingConfig(BaseModel):
    """Embedding model configuration."""
    provider: Literal["openai", "gemini"] = "openai"
    model: str = "text-embedding-3-small"
    dimension: int = 1536
    api_key: Optional[str] = None
    max_input_chars: int = 8000
    cache_size: int = 1000


class GenerationConfig(BaseModel):
    """Text generation configuration.
    
    `provider` is the default backend tag; a different tag may be passed
    per request. Mistral is reached through its OpenAI-compatible endpoint.
    """
    provider: Literal["mistral", "openai", "gemini"] = "mistral"
    
    mistral_model: str = "mistral-small-latest"
    mistral_base_url: str = "https://api.mistral.ai/v1"
    mistral_api_key: Optional[str] = None
    
    openai_model: str = "gpt-4o-mini"
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    
    gemini_model: str = "gemini-1.5-flash"
    gemini_api_key: Optional[str] = None
    
    top_p: float = 0.95
    top_k: int = 64
    token_cap: int = 1000
    
    # Classifier fallback call
    classifier_temperature: float = 0.1
    classifier_max_tokens: int = 10


class PersonaConfig(BaseModel):
    """Who the twin is. Treated as data, never as code."""
    name: str = "Pragyan"
    background: List[str] = Field(default_factory=lambda: [
        "Software engineer passionate about AI and building intelligent systems",
        "Currently building a personal AI twin project",
    ])
    interests: List[str] = Field(default_factory=lambda: [
        "Artificial intelligence and machine learning",
        "Music",
        "Software architecture and system design",
    ])
    values: List[str] = Field(default_factory=lambda: [
        "Continuous learning",
        "Authenticity and genuine connections",
    ])
    tone: ToneProfile = Field(default_factory=ToneProfile)


class RetrievalConfig(BaseModel):
    """Retrieval configuration not tied to a category."""
    user_history_limit: int = 50


class LearningConfig(BaseModel):
    """Write-back configuration."""
    min_message_length: int = 10
    pattern_quality_threshold: float = 0.7
    topic_keywords: List[str] = Field(default_factory=lambda: [
        "music", "code", "project", "food", "work", "tech", "ai", "programming",
    ])


class ChatLimits(BaseModel):
    """Input limits enforced before the pipeline runs."""
    max_message_length: int = 4000


class TwinConfig(BaseModel):
    """Main configuration model."""
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    persona: PersonaConfig = Field(default_factory=PersonaConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    learning: LearningConfig = Field(default_factory=LearningConfig)
    limits: ChatLimits = Field(default_factory=ChatLimits)
    categories: Dict[QuestionCategory, CategoryProfile] = Field(
        default_factory=default_category_profiles
    )
    
    def category_profile(self, category: QuestionCategory) -> CategoryProfile:
        """Get the profile for a category."""
        return self.categories[QuestionCategory(category)]


def _merge_categories(overrides: dict) -> Dict[QuestionCategory, CategoryProfile]:
    """Apply per-category YAML overrides on top of the built-in table."""
    profiles = default_category_profiles()
    for name, fields in (overrides or {}).items():
        category = QuestionCategory(name)
        merged = profiles[category].model_dump()
        merged.update(fields or {})
        profiles[category] = CategoryProfile(**merged)
    return profiles


def load_config(config_path: Optional[Path] = None) -> TwinConfig:
    """
    Load configuration from YAML file.
    
    Falls back to environment variables and defaults.
    """
    if config_path is None:
        config_path = Path.cwd() / "config" / "twin_config.yaml"
    
    config_data = {}
    
    if config_path.exists():
        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}
    
    # Override with environment variables
    generation = config_data.setdefault("generation", {})
    embedding = config_data.setdefault("embedding", {})
    
    if os.getenv("OPENAI_API_KEY"):
        generation["openai_api_key"] = os.getenv("OPENAI_API_KEY")
        if embedding.get("provider", "openai") == "openai":
            embedding["api_key"] = os.getenv("OPENAI_API_KEY")
    
    if os.getenv("GOOGLE_API_KEY"):
        generation["gemini_api_key"] = os.getenv("GOOGLE_API_KEY")
        if embedding.get("provider") == "gemini":
            embedding["api_key"] = os.getenv("GOOGLE_API_KEY")
    
    if os.getenv("MISTRAL_API_KEY"):
        generation["mistral_api_key"] = os.getenv("MISTRAL_API_KEY")
    
    if os.getenv("TWIN_PROVIDER"):
        generation["provider"] = os.getenv("TWIN_PROVIDER")
    
    if os.getenv("DATABASE_URL"):
        config_data.setdefault("database", {})["url"] = os.getenv("DATABASE_URL")
    
    if "categories" in config_data:
        config_data["categories"] = _merge_categories(config_data["categories"])
    
    return TwinConfig(**config_data)
