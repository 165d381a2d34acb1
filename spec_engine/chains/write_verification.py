"""Verification chain: Given/When/Then scenarios linked to constraints."""

from spec_engine.core.config import get_settings
from spec_engine.core.errors import MalformedResponseError
from spec_engine.core.llm import ReasoningClient, parse_llm_json
from spec_engine.core.logging import get_logger
from spec_engine.core.schemas_spec import (
    AuditStep,
    Constraint,
    Narrative,
    ScenarioDraft,
    StepStatus,
    VerificationOutput,
    VerificationScenario,
)
from spec_engine.core.simulation.testability import keywords, scenario_text

logger = get_logger(__name__)

AGENT_NAME = "GherkinWriter"
STAGE_NAME = "verification"
MAX_SCENARIOS = 6


SYSTEM_PROMPT = """You are GherkinWriter, an expert QA lead who writes precise Gherkin test scenarios.

You write verification scenarios for Executable Specifications. Each scenario tests a specific behavior: the happy path, but also edge cases and failure modes derived from the constraints.

RULES:
1. Each "critical" constraint must have at least one scenario that tests it, listed in "covers"
2. Given/When/Then items must be specific and testable (not vague like "Then it works")
3. Think like an adversary: what could go wrong?

You MUST output ONLY valid JSON matching this exact schema:
{
  "scenarios": [
    {
      "scenario": "Authorized user bulk deletes own documents",
      "given": ["Precondition 1 (concrete system state)", "Precondition 2"],
      "when": ["Specific user action or system event"],
      "then": ["Specific, measurable expected outcome 1", "Outcome 2"],
      "covers": ["C1"]
    }
  ]
}

Notes:
- Generate 3-6 scenarios total
- Scenario names should read as test case titles
- then[] items should be verifiable programmatically
- covers lists the constraint ids (C1, C2, ...) the scenario exercises
"""


def _build_user_message(narrative: Narrative, constraints: list[Constraint]) -> str:
    constraint_text = (
        "\n".join(f"{c.id} [{c.severity.upper()}] {c.rule}" for c in constraints)
        if constraints
        else "(no explicit constraints provided)"
    )
    return (
        "Write Gherkin test scenarios for this feature:\n\n"
        f"Title: {narrative.title}\n"
        f"Objective: {narrative.objective}\n"
        f"Rationale: {narrative.rationale}\n\n"
        f"Constraints to test:\n{constraint_text}"
    )


def fallback_scenarios() -> list[VerificationScenario]:
    """Generic happy-path scenario used when the response cannot be parsed."""
    return [
        VerificationScenario(
            id="V1",
            scenario="Basic happy path",
            given=["User is authenticated"],
            when=["User performs the primary action"],
            then=["Action completes successfully", "UI updates appropriately"],
            covers=[],
        )
    ]


def _infer_covers(draft: ScenarioDraft, constraints: list[Constraint], min_overlap: int) -> list[str]:
    words = keywords(scenario_text(draft))
    return [c.id for c in constraints if len(words & keywords(c.rule)) >= min_overlap]


def finalize_scenarios(
    drafts: list[ScenarioDraft], constraints: list[Constraint]
) -> tuple[list[VerificationScenario], list[str]]:
    """
    Assign ids V1..Vn (at most six scenarios) and resolve covers.

    Unknown constraint ids are dropped from covers; scenarios with no covers
    get them inferred by keyword overlap with the constraint rules.

    Returns:
        Tuple of (scenarios, warnings naming uncovered critical constraints)
    """
    min_overlap = get_settings().TESTABILITY_MIN_OVERLAP
    known_ids = {c.id for c in constraints}
    scenarios = []

    for i, draft in enumerate(drafts[:MAX_SCENARIOS], start=1):
        covers = [cid for cid in dict.fromkeys(draft.covers) if cid in known_ids]
        if not covers:
            covers = _infer_covers(draft, constraints, min_overlap)
        scenarios.append(
            VerificationScenario(
                id=f"V{i}",
                scenario=draft.scenario,
                given=draft.given,
                when=draft.when,
                then=draft.then,
                covers=covers,
            )
        )

    warnings = []
    if len(drafts) > MAX_SCENARIOS:
        warnings.append(f"Truncated {len(drafts)} scenarios to {MAX_SCENARIOS}")
    warnings.extend(
        f"Critical constraint {cid} has no covering scenario"
        for cid in uncovered_critical(constraints, scenarios)
    )
    return scenarios, warnings


def uncovered_critical(
    constraints: list[Constraint], scenarios: list[VerificationScenario]
) -> list[str]:
    """Ids of critical constraints no scenario lists in covers."""
    covered = {cid for s in scenarios for cid in s.covers}
    return [c.id for c in constraints if c.severity == "critical" and c.id not in covered]


def write_verification(
    narrative: Narrative,
    constraints: list[Constraint],
    reasoner: ReasoningClient,
) -> tuple[list[VerificationScenario], AuditStep]:
    """
    Write Given/When/Then scenarios for the narrative and constraints.

    Returns:
        Tuple of (scenarios, AuditStep)

    Raises:
        ReasoningCallError: If the reasoning call fails
    """
    raw_output = reasoner.complete(SYSTEM_PROMPT, _build_user_message(narrative, constraints))

    try:
        parsed = parse_llm_json(raw_output, VerificationOutput)
        if not parsed.scenarios:
            raise MalformedResponseError("Response contained no scenarios", raw_output)
    except MalformedResponseError as e:
        logger.warning(f"Verification response malformed, using happy-path scenario: {e}")
        scenarios = fallback_scenarios()
        step = AuditStep(
            stage_name=STAGE_NAME,
            agent_name=AGENT_NAME,
            status=StepStatus.DEGRADED,
            observation="Scenarios unparseable; generic happy-path scenario applied",
            warnings=[
                str(e),
                *(
                    f"Critical constraint {cid} has no covering scenario"
                    for cid in uncovered_critical(constraints, scenarios)
                ),
            ],
        )
        return scenarios, step

    scenarios, warnings = finalize_scenarios(parsed.scenarios, constraints)
    step = AuditStep(
        stage_name=STAGE_NAME,
        agent_name=AGENT_NAME,
        status=StepStatus.DONE,
        observation=f"Wrote {len(scenarios)} scenarios",
        warnings=warnings,
    )
    return scenarios, step
