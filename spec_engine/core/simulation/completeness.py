"""Completeness check: are all four layers present and non-trivially populated?"""

from spec_engine.core.schemas_spec import ExecutableSpec
from spec_engine.core.simulation.types import CompletenessResult

COMPLETENESS_PASS_SCORE = 60

# (issue, suggestion, penalty)
_TITLE_MISSING = ("Narrative: title is missing or too short", "Add a descriptive title", 15)
_OBJECTIVE_VAGUE = (
    "Narrative: objective is missing or too vague",
    "Write a specific, measurable objective (1 sentence)",
    15,
)
_RATIONALE_MISSING = (
    "Narrative: rationale is missing",
    "Add a rationale explaining why this feature matters",
    10,
)
_NO_POINTERS = (
    "Context pointers: no sources linked",
    "Add at least 2 context pointers linking to source data",
    20,
)
_ONE_POINTER = (
    "Context pointers: only 1 source",
    "Add more context pointers to strengthen traceability",
    5,
)
_NO_CONSTRAINTS = (
    "Constraints: no constraints defined",
    "Add at least 1 critical constraint (what must NOT happen)",
    20,
)
_NO_CRITICAL = (
    "Constraints: no critical constraint",
    "Review for security, data integrity, or compliance constraints",
    10,
)
_NO_SCENARIOS = (
    "Verification: no test scenarios defined",
    "Add at least 2 scenarios (happy path + failure case)",
    20,
)
_ONE_SCENARIO = (
    "Verification: only 1 scenario, failure and edge cases uncovered",
    "Add a failure scenario (what happens when something goes wrong?)",
    10,
)


def check_completeness(spec: ExecutableSpec) -> CompletenessResult:
    """Start at 100 and deduct per missing or thin layer."""
    layers = spec.layers
    failed = []

    if len(layers.narrative.title.strip()) < 5:
        failed.append(_TITLE_MISSING)
    if len(layers.narrative.objective.strip()) < 20:
        failed.append(_OBJECTIVE_VAGUE)
    if len(layers.narrative.rationale.strip()) < 20:
        failed.append(_RATIONALE_MISSING)

    if not layers.context_pointers:
        failed.append(_NO_POINTERS)
    elif len(layers.context_pointers) < 2:
        failed.append(_ONE_POINTER)

    if not layers.constraints:
        failed.append(_NO_CONSTRAINTS)
    elif not any(c.severity == "critical" for c in layers.constraints):
        failed.append(_NO_CRITICAL)

    if not layers.verification:
        failed.append(_NO_SCENARIOS)
    elif len(layers.verification) < 2:
        failed.append(_ONE_SCENARIO)

    score = max(0, 100 - sum(penalty for _, _, penalty in failed))
    return CompletenessResult(
        score=score,
        passed=score >= COMPLETENESS_PASS_SCORE,
        issues=[issue for issue, _, _ in failed],
        suggestions=[suggestion for _, suggestion, _ in failed],
    )
