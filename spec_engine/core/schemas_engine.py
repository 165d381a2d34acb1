"""Pydantic schemas for the engine service: features, ingest, generation and approval."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from spec_engine.core.schemas_sources import SourceType
from spec_engine.core.schemas_spec import (
    AdversaryReviewResult,
    AuditStep,
    ExecutableSpec,
    StructureValidation,
)
from spec_engine.core.simulation.types import SimulationResult, SpecQualityScores


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FeatureStatus(str, Enum):
    """Derived from a feature's spec versions."""

    NO_SPEC = "no_spec"
    DRAFT = "draft"
    APPROVED = "approved"


class Feature(BaseModel):
    id: str = Field(..., description="Feature id")
    name: str = Field(..., min_length=1, description="Unique feature name")
    description: str = Field(default="", description="Free-text feature description")
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class FeatureSummary(Feature):
    """Feature with status derived from its latest spec version."""

    status: FeatureStatus = FeatureStatus.NO_SPEC
    latest_spec_id: str | None = None
    latest_version: str | None = None
    chunk_count: int = 0


class IngestResult(BaseModel):
    chunk_count: int = Field(..., ge=1)
    chunk_ids: list[str]
    feature_id: str | None = None
    credibility: float = Field(..., ge=0.0, le=1.0)


class GenerationResult(BaseModel):
    """One completed generation run and the version it produced."""

    run_id: str
    spec: ExecutableSpec
    review: AdversaryReviewResult
    steps: list[AuditStep]
    approved: bool = Field(..., description="Mirrors review.approval_recommended")
    validation: StructureValidation
    simulation: SimulationResult
    quality: SpecQualityScores


class ApprovalResult(BaseModel):
    spec_id: str
    locked: bool = True
    hash: str
    approved_at: datetime


class AuditEntry(BaseModel):
    """Persisted audit record for an ingest or a generation stage."""

    id: str
    run_id: str
    feature_id: str | None = None
    agent_name: str
    action: str
    observation: str = ""
    status: str = "done"
    warnings: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utc_now)


# ============================================================================
# API request models
# ============================================================================


class CreateFeatureRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Feature name")
    description: str = Field(default="", description="Feature description")


class IngestContextRequest(BaseModel):
    source_type: SourceType | str = Field(..., description="Source type or connector alias")
    content: str = Field(..., description="Raw source text")
    metadata: dict[str, Any] = Field(default_factory=dict, description="timestamp, url, ...")
    credibility_override: float | None = Field(default=None, ge=0.0, le=1.0)
    feature_id: str | None = Field(default=None, description="Attach chunks to this feature")


class GenerateSpecRequest(BaseModel):
    feature_id: str = Field(..., description="Feature to generate a spec for")
    raw_context_override: str | None = Field(
        default=None, description="Use this text instead of stored chunks"
    )
