"""Constraint extraction chain: DO / DO NOT rules with severity and citations."""

from spec_engine.core.errors import MalformedResponseError
from spec_engine.core.grounding import (
    UNCITED_SOURCE,
    addresses_access_control,
    best_matching_chunk,
    cite_chunk,
    find_security_caveats,
)
from spec_engine.core.llm import ReasoningClient, parse_llm_json
from spec_engine.core.logging import get_logger
from spec_engine.core.schemas_sources import HarvestedContext
from spec_engine.core.schemas_spec import (
    AuditStep,
    Constraint,
    ConstraintDraft,
    ConstraintsOutput,
    Narrative,
    StepStatus,
)

logger = get_logger(__name__)

AGENT_NAME = "ConstraintExtractor"
STAGE_NAME = "constraints"

DEFAULT_CRITICAL_RULE = "DO validate all inputs and enforce proper authorization on every operation"
DEFAULT_CRITICAL_RATIONALE = "Default security constraint applied when extraction failed"
MISSING_CRITICAL_RATIONALE = "Default security constraint applied because no critical rule was extracted"


SYSTEM_PROMPT = """You are ConstraintExtractor, an expert in finding hidden requirements and constraints in product context.

Your specialty: finding what teams KNOW but never write down. The buried "DO NOT", the unspoken rule, the legacy constraint nobody mentioned.

Categories to look for:
- SECURITY: permission checks, auth boundaries, data access controls
- DATA INTEGRITY: what must never be deleted, modified, or bypassed
- PERFORMANCE: latency, throughput, or scale constraints
- COMPLIANCE: legal, SOC2, GDPR, audit requirements
- BACKWARDS COMPATIBILITY: existing APIs or contracts that cannot break

You MUST output ONLY valid JSON matching this exact schema:
{
  "constraints": [
    {
      "rule": "DO NOT bypass per-document permission checks in bulk operations",
      "severity": "critical|warning|info",
      "rationale": "Specific justification from the context",
      "source": "Quote or source label the rule is derived from"
    }
  ]
}

Severity levels:
- "critical": security, data loss, compliance. Must not ship without addressing.
- "warning": important but won't cause a disaster if temporarily ignored
- "info": nice-to-have, style guide, best practice

Rules:
- Extract 2-6 constraints
- At least 1 MUST be severity "critical"
- Rules must be specific (not vague like "ensure security")
- Each rule is a complete sentence starting with DO or DO NOT
"""


def _build_user_message(narrative: Narrative, harvested: HarvestedContext) -> str:
    lines = [
        "Extract constraints for this feature:",
        "",
        f"Title: {narrative.title}",
        f"Objective: {narrative.objective}",
        "",
        f"Context summary: {harvested.summary or '(none)'}",
    ]
    if harvested.key_insights:
        lines.append("Key insights:")
        lines.extend(f"- {insight}" for insight in harvested.key_insights)
    if harvested.chunks:
        lines.append("\nSource chunks:")
        for i, ranked in enumerate(harvested.chunks, start=1):
            lines.append(f"[{i}] ({ranked.chunk.source_type.value}) {ranked.chunk.content}")
    return "\n".join(lines)


def _assign_ids(drafts: list[ConstraintDraft]) -> list[Constraint]:
    return [
        Constraint(
            id=f"C{i}",
            rule=d.rule.strip(),
            severity=d.severity,
            rationale=d.rationale,
            source=d.source.strip(),
        )
        for i, d in enumerate(drafts, start=1)
    ]


def finalize_constraints(
    drafts: list[ConstraintDraft],
    harvested: HarvestedContext,
    generic_rationale: str = MISSING_CRITICAL_RATIONALE,
) -> tuple[list[Constraint], list[str]]:
    """
    Turn reasoner drafts into the final constraint layer.

    - missing citations are filled from the best-matching harvested chunk
    - explicit security caveats no critical rule addresses become critical rules
    - if still no critical rule, the generic critical rule is added

    Returns:
        Tuple of (constraints with ids C1..Cn, warnings)
    """
    chunks = [r.chunk for r in harvested.chunks]
    warnings: list[str] = []
    result = [d for d in drafts if d.rule.strip()]

    for i, draft in enumerate(result):
        if draft.source.strip():
            continue
        chunk = best_matching_chunk(draft.rule, chunks)
        if chunk is not None:
            result[i] = draft.model_copy(update={"source": cite_chunk(chunk)})
        else:
            result[i] = draft.model_copy(update={"source": UNCITED_SOURCE})
            warnings.append(f"No source chunk to cite for rule: {draft.rule[:80]}")

    caveats = find_security_caveats(chunks)
    addressed = any(d.severity == "critical" and addresses_access_control(d.rule) for d in result)
    if caveats and not addressed:
        caveat = caveats[0]
        result.append(
            ConstraintDraft(
                rule="DO NOT bypass permission checks: enforce authorization on every affected item",
                severity="critical",
                rationale=f'Source states: "{caveat.sentence}"',
                source=cite_chunk(caveat.chunk),
            )
        )
        warnings.append(f"Added critical rule for security caveat: {caveat.sentence[:80]}")

    if not any(d.severity == "critical" for d in result):
        result.append(
            ConstraintDraft(
                rule=DEFAULT_CRITICAL_RULE,
                severity="critical",
                rationale=generic_rationale,
                source=UNCITED_SOURCE,
            )
        )
        warnings.append("No critical rule extracted; generic critical rule added")

    return _assign_ids(result), warnings


def extract_constraints(
    narrative: Narrative,
    harvested: HarvestedContext,
    reasoner: ReasoningClient,
) -> tuple[list[Constraint], AuditStep]:
    """
    Extract DO / DO NOT constraints grounded in the harvested context.

    Returns:
        Tuple of (constraints, AuditStep)

    Raises:
        ReasoningCallError: If the reasoning call fails
    """
    raw_output = reasoner.complete(SYSTEM_PROMPT, _build_user_message(narrative, harvested))

    try:
        parsed = parse_llm_json(raw_output, ConstraintsOutput)
    except MalformedResponseError as e:
        logger.warning(f"Constraint response malformed, using generic critical rule: {e}")
        constraints, warnings = finalize_constraints([], harvested, DEFAULT_CRITICAL_RATIONALE)
        step = AuditStep(
            stage_name=STAGE_NAME,
            agent_name=AGENT_NAME,
            status=StepStatus.DEGRADED,
            observation=f"Constraints unparseable; {len(constraints)} default constraints applied",
            warnings=[str(e), *warnings],
        )
        return constraints, step

    constraints, warnings = finalize_constraints(parsed.constraints, harvested)
    critical = sum(1 for c in constraints if c.severity == "critical")
    step = AuditStep(
        stage_name=STAGE_NAME,
        agent_name=AGENT_NAME,
        status=StepStatus.DONE,
        observation=f"Extracted {len(constraints)} constraints ({critical} critical)",
        warnings=warnings,
    )
    return constraints, step
