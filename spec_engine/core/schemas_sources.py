"""Pydantic schemas for raw sources, content chunks and harvested context."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SourceType(str, Enum):
    """Declared kind of a raw source; drives the chunking strategy."""

    CHAT = "chat"
    TICKET = "ticket"
    DOCUMENT = "document"
    TRANSCRIPT = "transcript"
    CODE_HOST = "code-host"
    OTHER = "other"


# Connector names accepted on input
SOURCE_TYPE_ALIASES: dict[str, SourceType] = {
    "slack": SourceType.CHAT,
    "jira": SourceType.TICKET,
    "notion": SourceType.DOCUMENT,
    "confluence": SourceType.DOCUMENT,
    "gong": SourceType.TRANSCRIPT,
    "github": SourceType.CODE_HOST,
    "manual": SourceType.OTHER,
}


def normalize_source_type(value: str | SourceType) -> SourceType:
    """
    Resolve a source type or connector alias.

    Raises:
        ValueError: If the value is neither a source type nor a known alias
    """
    if isinstance(value, SourceType):
        return value
    key = str(value).strip().lower()
    if key in SOURCE_TYPE_ALIASES:
        return SOURCE_TYPE_ALIASES[key]
    try:
        return SourceType(key)
    except ValueError:
        raise ValueError(f"Unknown source type: {value}") from None


class ChunkKind(str, Enum):
    """Structural kind of a chunk."""

    PARAGRAPH = "paragraph"
    TURN = "turn"
    CODE = "code"
    HEADER = "header"


class RawSource(BaseModel):
    """Raw text from one source, consumed by the chunker."""

    source_type: SourceType = Field(..., description="Declared source type (aliases accepted)")
    content: str = Field(..., description="Raw text content")
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Source metadata (timestamp, url, author, ...)"
    )
    credibility_override: float | None = Field(
        default=None, ge=0.0, le=1.0, description="Credibility to use instead of the type default"
    )

    @field_validator("source_type", mode="before")
    @classmethod
    def _normalize_source_type(cls, value: Any) -> SourceType:
        return normalize_source_type(value)


class ContentChunk(BaseModel):
    """A persisted, immutable unit of source text with its embedding."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Chunk ID")
    content: str = Field(..., description="Chunk text")
    chunk_kind: ChunkKind = Field(..., description="Structural kind")
    source_type: SourceType = Field(..., description="Source type of the originating source")
    source_timestamp: datetime | None = Field(
        default=None, description="When the originating source was written"
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="chunk_index, total_chunks, credibility plus inherited source metadata",
    )
    embedding: list[float] = Field(default_factory=list, description="Embedding vector")
    feature_id: str | None = Field(default=None, description="Feature this chunk is filed under")


class RankedChunk(BaseModel):
    """A chunk scored against one query. Never persisted."""

    chunk: ContentChunk
    vector_score: float = Field(..., ge=0.0, le=1.0)
    temporal_score: float = Field(..., ge=0.0, le=1.0)
    credibility: float = Field(..., ge=0.0, le=1.0)
    final_score: float = Field(..., ge=0.0, le=1.0)


class PrimarySource(BaseModel):
    """A source the harvester judged most relevant."""

    source_type: str = Field(..., description="Source type label")
    excerpt: str = Field(..., description="Short excerpt from the source")
    relevance: float = Field(default=0.5, ge=0.0, le=1.0, description="Relevance 0-1")


class HarvestedContext(BaseModel):
    """Condensed synthesis of the retrieved context for one generation run."""

    summary: str = Field(default="", description="Synthesis of the retrieved context")
    key_insights: list[str] = Field(default_factory=list, description="3-8 key insights")
    primary_sources: list[PrimarySource] = Field(
        default_factory=list, description="Up to 5 most relevant sources"
    )
    chunks: list[RankedChunk] = Field(default_factory=list, description="Retrieved chunks")
