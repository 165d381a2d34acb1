"""Configuration management for the Spec Engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
    pass


DEFAULT_SOURCE_CREDIBILITY: dict[str, float] = {
    "transcript": 0.90,  # verbatim customer voice
    "code-host": 0.85,  # code and issues are high-signal
    "ticket": 0.80,  # structured ticket
    "document": 0.75,  # docs, often kept current
    "chat": 0.65,  # informal, quick context
    "other": 0.60,
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Environment
    SPEC_ENGINE_ENV: str = Field(default="dev", description="Environment: dev, test, staging, prod")
    LOG_LEVEL: str | None = Field(
        default=None, description="Log level override; defaults to DEBUG in dev, INFO elsewhere"
    )

    # Provider credentials (optional: embeddings fall back to a local vector without a key)
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key")

    # Reasoning collaborator
    REASONING_PROVIDER: str = Field(
        default="openai", description="Reasoning provider: openai or anthropic"
    )
    REASONING_MODEL: str = Field(default="gpt-4o-mini", description="OpenAI model for reasoning stages")
    ANTHROPIC_MODEL: str = Field(
        default="claude-haiku-4-5-20251001", description="Anthropic model for reasoning stages"
    )
    REASONING_TEMPERATURE: float = Field(default=0.2, description="Sampling temperature")
    REASONING_MAX_TOKENS: int = Field(default=4096, description="Max tokens per reasoning call")

    # Embedding configuration
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    EMBEDDING_DIM: int = Field(default=1536, description="Embedding vector dimension")

    # Chunking
    CHUNK_MIN_CHARS: int = Field(
        default=10, description="Chunks shorter than this (stripped) are dropped as trivial"
    )
    CHUNK_MIN_PARAGRAPH_CHARS: int = Field(
        default=100, description="Paragraph buffer flush size when merging short paragraphs"
    )
    SOURCE_CREDIBILITY: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_SOURCE_CREDIBILITY),
        description="Default credibility per source type (0-1)",
    )

    # Retrieval ranking
    RETRIEVAL_TOP_K: int = Field(default=10, description="Max ranked chunks returned")
    RETRIEVAL_MIN_SCORE: float = Field(default=0.05, description="Min final score kept")
    RETRIEVAL_HALF_LIFE_DAYS: float = Field(default=30.0, description="Temporal decay half-life")
    RETRIEVAL_UNKNOWN_AGE_SCORE: float = Field(
        default=0.8, description="Temporal score for chunks without a timestamp"
    )
    RETRIEVAL_CANDIDATE_POOL: int = Field(
        default=50, description="Candidates kept by vector similarity before re-ranking"
    )

    # Context harvesting
    HARVEST_TOP_K: int = Field(default=15, description="Chunks retrieved for harvesting")
    HARVEST_SUMMARY_FALLBACK_CHARS: int = Field(
        default=500, description="Raw response chars kept as summary when parsing fails"
    )

    # Simulation
    TESTABILITY_MIN_OVERLAP: int = Field(
        default=2, description="Shared keywords needed for a scenario to test an item"
    )
    SIMULATION_PASS_SCORE: float = Field(default=70.0, description="Coverage needed to pass")
    SIMULATION_MAX_WORKERS: int = Field(default=4, description="Validator thread pool size")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If environment variables cannot be parsed
    """
    return Settings()
