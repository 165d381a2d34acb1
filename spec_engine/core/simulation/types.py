"""Pydantic models for the spec simulator."""

from typing import Literal

from pydantic import BaseModel, Field

Priority = Literal["must", "should", "may"]

# Weight of each priority tier in the coverage score
PRIORITY_WEIGHTS: dict[str, float] = {
    "must": 2.0,
    "should": 1.0,
    "may": 0.5,
}

SEVERITY_PRIORITY: dict[str, Priority] = {
    "critical": "must",
    "warning": "should",
    "info": "may",
}

CHECKS_PER_ITEM = 3


# =============================================================================
# Coverage
# =============================================================================


class CoverageItem(BaseModel):
    """A requirement-equivalent item with its three coverage checks."""

    id: str
    text: str = ""
    priority: Priority = "should"
    has_acceptance_criteria: bool = False
    has_source_citation: bool = False
    has_test_scenario: bool = False


class PriorityBreakdown(BaseModel):
    """Coverage of one priority tier."""

    total: int = 0
    fully_covered: int = 0


class CoverageMissing(BaseModel):
    """Item ids failing each check."""

    no_acceptance_criteria: list[str] = Field(default_factory=list)
    no_source_citation: list[str] = Field(default_factory=list)
    no_test_scenario: list[str] = Field(default_factory=list)


class CoverageResult(BaseModel):
    """Weighted coverage score with per-check breakdown."""

    score: float = Field(..., ge=0, le=100, description="Weighted coverage 0-100")
    acceptance_criteria_coverage: float = Field(default=0, ge=0, le=100)
    source_citation_coverage: float = Field(default=0, ge=0, le=100)
    test_scenario_coverage: float = Field(default=0, ge=0, le=100)
    by_priority: dict[str, PriorityBreakdown] = Field(default_factory=dict)
    missing: CoverageMissing = Field(default_factory=CoverageMissing)


# =============================================================================
# Ambiguity / contradiction / testability
# =============================================================================


class SpecItem(BaseModel):
    """Free text with an id, as compared by the detectors."""

    id: str
    text: str


class AmbiguityHit(BaseModel):
    """A vague term found in free text."""

    term: str = Field(..., description="Vocabulary term matched")
    position: int = Field(..., ge=0, description="Character offset in the scanned text")
    suggestion: str = Field(..., description="Concrete rewrite suggestion")
    location: str = Field(default="", description="Field path, e.g. 'constraints[0].rule'")


class Contradiction(BaseModel):
    """A requirement and constraint that pull in opposite directions."""

    requirement_id: str
    constraint_id: str
    rule: str = Field(..., description="Name of the rule that fired")
    description: str
    severity: Literal["critical", "warning"]


class TestabilityResult(BaseModel):
    """Partition of items into testable and untestable ids."""

    testable: list[str] = Field(default_factory=list)
    untestable: list[str] = Field(default_factory=list)


class CompletenessResult(BaseModel):
    """Layer-level completeness check."""

    score: float = Field(..., ge=0, le=100)
    passed: bool
    issues: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


# =============================================================================
# Quality scores
# =============================================================================


class SpecQualityScores(BaseModel):
    """Per-version quality dimensions and their weighted overall score."""

    completeness_score: int = Field(..., ge=0, le=100, description="Required sections filled")
    grounding_score: int = Field(..., ge=0, le=100, description="% of pointers with source and snippet")
    testability_score: int = Field(..., ge=0, le=100, description="% of scenarios with Given/When/Then")
    adversarial_score: int = Field(..., ge=0, le=100, description="100 minus review finding penalties")
    overall_score: int = Field(..., ge=0, le=100, description="Weighted average of the four scores")
    gherkin_valid: bool = Field(default=True, description="Gherkin export parses cleanly")


# =============================================================================
# Simulation result
# =============================================================================


class SimulationResult(BaseModel):
    """Output of all validators against one spec version."""

    spec_id: str
    spec_hash: str
    coverage_score: float = Field(..., ge=0, le=100)
    coverage: CoverageResult
    ambiguities: list[AmbiguityHit] = Field(default_factory=list)
    contradictions: list[Contradiction] = Field(default_factory=list)
    testability: TestabilityResult = Field(default_factory=TestabilityResult)
    completeness: CompletenessResult
    missing_error_paths: list[str] = Field(
        default_factory=list, description="Action items with no failure handling"
    )
    passed: bool
