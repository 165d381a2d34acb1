"""Adversarial review chain: red-team the assembled spec layers."""

import json
from typing import Any

from pydantic import BaseModel, Field

from spec_engine.core.errors import MalformedResponseError
from spec_engine.core.llm import ReasoningClient, parse_llm_json
from spec_engine.core.logging import get_logger
from spec_engine.core.schemas_spec import (
    AdversaryFinding,
    AdversaryReviewResult,
    AuditStep,
    Constraint,
    ContextPointer,
    Narrative,
    StepStatus,
    VerificationScenario,
)

logger = get_logger(__name__)

AGENT_NAME = "AdversaryReview"
STAGE_NAME = "review"

UNPARSEABLE_REVIEW = "Review could not be parsed, manual review required"


SYSTEM_PROMPT = """You are AdversaryReview, a deeply skeptical senior engineer whose job is to FIND PROBLEMS in Executable Specifications before any code is written.

Your philosophy: "Every spec has a bug. Your job is to find it."

Look for:
1. AMBIGUITY: Requirements that could be interpreted multiple ways by different engineers
2. MISSING CONSTRAINTS: Critical rules that are implied but not stated
3. CONTRADICTIONS: Constraints that conflict with each other or with verification scenarios
4. SECURITY GAPS: Any operation that touches user data, permissions, or external systems without explicit auth checks
5. TESTABILITY: Verification scenarios that cannot be automated or measured

Severity:
- "blocker": Spec CANNOT ship without addressing this
- "warning": Should be addressed but won't cause a disaster
- "suggestion": Nice to have

approval_recommended = true only if there are ZERO blocker findings.

You MUST output ONLY valid JSON matching this exact schema:
{
  "approval_recommended": false,
  "findings": [
    {
      "severity": "blocker|warning|suggestion",
      "category": "ambiguity|missing_constraint|contradiction|security|testability",
      "description": "Specific description of the problem",
      "location": "narrative|context_pointers|constraints[0]|verification[1]",
      "suggestion": "Concrete action to fix this issue"
    }
  ],
  "overall_verdict": "2-3 sentence honest assessment of the spec quality"
}
"""


class ReviewOutput(BaseModel):
    """Parsed review response; approval is recomputed, never trusted."""

    approval_recommended: bool | None = None
    findings: list[AdversaryFinding] = Field(default_factory=list)
    overall_verdict: str = ""


def _build_user_message(layers: dict[str, Any]) -> str:
    return (
        "Red-team this Executable Specification and find every problem:\n\n"
        f"{json.dumps(layers, indent=2)}\n\n"
        "Think like a senior engineer who has to implement this, a security researcher "
        "looking for permission bypasses, and a QA lead writing the tests.\n\n"
        "Report all issues you find."
    )


def deterministic_findings(
    constraints: list[Constraint], verification: list[VerificationScenario]
) -> list[AdversaryFinding]:
    """Findings that hold regardless of the reasoner's opinion."""
    findings = []
    covered = {cid for s in verification for cid in s.covers}

    for index, constraint in enumerate(constraints):
        if constraint.severity == "critical" and constraint.id not in covered:
            findings.append(
                AdversaryFinding(
                    severity="blocker",
                    category="testability",
                    description=f"Critical constraint {constraint.id} has no covering scenario: {constraint.rule}",
                    location=f"constraints[{index}]",
                    suggestion=f"Add a scenario that exercises {constraint.id} and list it in covers",
                )
            )

    for index, scenario in enumerate(verification):
        if not scenario.when or not scenario.then:
            findings.append(
                AdversaryFinding(
                    severity="warning",
                    category="testability",
                    description=f"Scenario {scenario.id} is missing when or then steps",
                    location=f"verification[{index}]",
                    suggestion="Give every scenario at least one When and one Then step",
                )
            )

    return findings


def merge_findings(
    reasoner_findings: list[AdversaryFinding], checks: list[AdversaryFinding]
) -> list[AdversaryFinding]:
    seen = set()
    merged = []
    for finding in [*reasoner_findings, *checks]:
        key = (finding.severity, finding.location, finding.description)
        if key in seen:
            continue
        seen.add(key)
        merged.append(finding)
    return merged


def adversary_review(
    narrative: Narrative,
    context_pointers: list[ContextPointer],
    constraints: list[Constraint],
    verification: list[VerificationScenario],
    reasoner: ReasoningClient,
) -> tuple[AdversaryReviewResult, AuditStep]:
    """
    Red-team the assembled layers and decide whether approval is recommended.

    Returns:
        Tuple of (AdversaryReviewResult, AuditStep)

    Raises:
        ReasoningCallError: If the reasoning call fails
    """
    layers = {
        "narrative": narrative.model_dump(),
        "context_pointers": [p.model_dump() for p in context_pointers],
        "constraints": [c.model_dump() for c in constraints],
        "verification": [v.model_dump() for v in verification],
    }
    raw_output = reasoner.complete(SYSTEM_PROMPT, _build_user_message(layers))
    checks = deterministic_findings(constraints, verification)

    status = StepStatus.DONE
    warnings: list[str] = []
    try:
        parsed = parse_llm_json(raw_output, ReviewOutput)
        findings = merge_findings(parsed.findings, checks)
        verdict = parsed.overall_verdict
    except MalformedResponseError as e:
        logger.warning(f"Review response malformed, blocking approval: {e}")
        status = StepStatus.DEGRADED
        warnings.append(str(e))
        unparseable = AdversaryFinding(
            severity="blocker",
            category="ambiguity",
            description=UNPARSEABLE_REVIEW,
            location="spec",
            suggestion="Review the spec manually before approval",
        )
        findings = merge_findings([unparseable], checks)
        verdict = UNPARSEABLE_REVIEW

    blockers = sum(1 for f in findings if f.severity == "blocker")
    result = AdversaryReviewResult(
        approval_recommended=blockers == 0,
        findings=findings,
        overall_verdict=verdict,
    )
    step = AuditStep(
        stage_name=STAGE_NAME,
        agent_name=AGENT_NAME,
        status=status,
        observation=(
            f"{len(findings)} findings ({blockers} blockers); "
            f"approval {'recommended' if result.approval_recommended else 'refused'}"
        ),
        warnings=warnings,
    )
    return result, step
