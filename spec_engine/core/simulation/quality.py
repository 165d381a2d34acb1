"""Quality scores kept with each stored spec version.

Four 0-100 dimensions and a weighted overall score:
- completeness: narrative fields plus pointer, constraint and scenario counts
- grounding: share of context pointers carrying a source and a snippet
- testability: share of scenarios with Given, When and Then steps
- adversarial: 100 minus penalties for review blockers and warnings
"""

from spec_engine.core.schemas_spec import AdversaryReviewResult, ExecutableSpec
from spec_engine.core.simulation.types import SpecQualityScores
from spec_engine.core.spec_export import export_gherkin, validate_gherkin

# Must sum to 1.0
QUALITY_WEIGHTS: dict[str, float] = {
    "completeness": 0.30,
    "grounding": 0.25,
    "testability": 0.25,
    "adversarial": 0.20,
}

BLOCKER_PENALTY = 20
WARNING_PENALTY = 5


def _filled(count: int, full_credit_at: int) -> float:
    return min(count / full_credit_at, 1.0)


def score_completeness(spec: ExecutableSpec) -> int:
    """Narrative fields 40 points; pointers (3), constraints (2), scenarios (3) 20 each."""
    layers = spec.layers
    earned = 0.0
    if layers.narrative.title.strip():
        earned += 14
    if layers.narrative.objective.strip():
        earned += 13
    if layers.narrative.rationale.strip():
        earned += 13
    earned += _filled(len(layers.context_pointers), 3) * 20
    earned += _filled(len(layers.constraints), 2) * 20
    earned += _filled(len(layers.verification), 3) * 20
    return round(min(earned, 100))


def score_grounding(spec: ExecutableSpec) -> int:
    pointers = spec.layers.context_pointers
    if not pointers:
        return 0
    cited = sum(1 for p in pointers if p.source.strip() and p.snippet.strip())
    return round(100 * cited / len(pointers))


def score_testability(spec: ExecutableSpec) -> int:
    scenarios = spec.layers.verification
    if not scenarios:
        return 0
    complete = sum(1 for s in scenarios if s.scenario.strip() and s.given and s.when and s.then)
    return round(100 * complete / len(scenarios))


def score_adversarial(review: AdversaryReviewResult) -> int:
    if review.approval_recommended and not review.findings:
        return 100
    blockers = sum(1 for f in review.findings if f.severity == "blocker")
    warnings = sum(1 for f in review.findings if f.severity == "warning")
    return max(0, 100 - blockers * BLOCKER_PENALTY - warnings * WARNING_PENALTY)


def evaluate_spec_quality(spec: ExecutableSpec, review: AdversaryReviewResult) -> SpecQualityScores:
    """
    Score one compiled version against its review.

    Args:
        spec: Compiled spec
        review: Adversary review of the same run

    Returns:
        SpecQualityScores
    """
    scores = {
        "completeness": score_completeness(spec),
        "grounding": score_grounding(spec),
        "testability": score_testability(spec),
        "adversarial": score_adversarial(review),
    }
    overall = round(sum(scores[name] * weight for name, weight in QUALITY_WEIGHTS.items()))

    return SpecQualityScores(
        completeness_score=scores["completeness"],
        grounding_score=scores["grounding"],
        testability_score=scores["testability"],
        adversarial_score=scores["adversarial"],
        overall_score=overall,
        gherkin_valid=validate_gherkin(export_gherkin(spec)).valid,
    )
