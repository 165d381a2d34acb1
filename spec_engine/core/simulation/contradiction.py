"""Contradiction detector: opposing keyword pairs across requirements and constraints."""

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from spec_engine.core.schemas_spec import ExecutableSpec
from spec_engine.core.simulation.types import Contradiction, SpecItem

_LATENCY_PATTERN = re.compile(r"\b(\d+)\s*(?:ms|milliseconds?)\b", re.IGNORECASE)

# Encryption is considered incompatible with latency budgets under this
ENCRYPTION_MIN_LATENCY_MS = 50


def _tight_latency(text: str) -> bool:
    return any(int(m.group(1)) < ENCRYPTION_MIN_LATENCY_MS for m in _LATENCY_PATTERN.finditer(text))


@dataclass(frozen=True)
class ContradictionRule:
    """A requirement-side pattern that conflicts with a constraint-side pattern."""

    name: str
    requirement_pattern: re.Pattern
    constraint_pattern: re.Pattern | None
    severity: Literal["critical", "warning"]
    description: str
    constraint_check: Callable[[str], bool] | None = None

    def matches(self, requirement: str, constraint: str) -> bool:
        if not self.requirement_pattern.search(requirement):
            return False
        if self.constraint_check is not None:
            return self.constraint_check(constraint)
        return bool(self.constraint_pattern and self.constraint_pattern.search(constraint))


def _p(pattern: str) -> re.Pattern:
    return re.compile(pattern, re.IGNORECASE)


CONTRADICTION_RULES: list[ContradictionRule] = [
    ContradictionRule(
        name="realtime_vs_rate_limit",
        requirement_pattern=_p(r"\b(?:real[- ]?time|instant(?:ly|aneous)?)\b"),
        constraint_pattern=_p(r"\b(?:bandwidth|throttl\w*|rate[- ]limit\w*)"),
        severity="warning",
        description="demands real-time behavior but {constraint} may impose rate limits",
    ),
    ContradictionRule(
        name="offline_vs_network",
        requirement_pattern=_p(r"\boffline\b"),
        constraint_pattern=_p(r"\b(?:api|network|internet|online)\b"),
        severity="critical",
        description="requires offline capability but {constraint} requires network",
    ),
    ContradictionRule(
        name="encryption_vs_latency",
        requirement_pattern=_p(r"\bencrypt\w*"),
        constraint_pattern=None,
        constraint_check=_tight_latency,
        severity="warning",
        description=f"requires encryption but {{constraint}} demands <{ENCRYPTION_MIN_LATENCY_MS}ms latency",
    ),
    ContradictionRule(
        name="deletion_vs_retention",
        requirement_pattern=_p(r"\b(?:permanent(?:ly)?\s+delet\w*|hard[- ]delet\w*|purg\w*)"),
        constraint_pattern=_p(r"\b(?:retain\w*|retention|archiv\w*|audit\s+trail)"),
        severity="critical",
        description="permanently deletes data but {constraint} requires it to be retained",
    ),
    ContradictionRule(
        name="anonymous_vs_authorization",
        requirement_pattern=_p(
            r"\b(?:anonymous(?:ly)?|unauthenticated|without\s+(?:an?\s+)?(?:account|login|sign[- ]?in))\b"
        ),
        constraint_pattern=_p(r"\b(?:authori[sz]\w*|authenticat\w*|logged[- ]in)"),
        severity="critical",
        description="allows anonymous access but {constraint} requires authorization",
    ),
    ContradictionRule(
        name="unlimited_vs_quota",
        requirement_pattern=_p(r"\bunlimited\b"),
        constraint_pattern=_p(r"\b(?:quotas?|capped|max(?:imum)?\s+of|limited\s+to)\b"),
        severity="warning",
        description="promises unlimited usage but {constraint} imposes a quota",
    ),
]


def detect_contradictions(
    requirements: list[SpecItem],
    constraints: list[SpecItem],
    rules: list[ContradictionRule] | None = None,
) -> list[Contradiction]:
    """
    Pairwise-match every requirement against every constraint.

    Each hit references both ids; severity comes from the rule.
    """
    rules = CONTRADICTION_RULES if rules is None else rules
    found = []

    for requirement in requirements:
        for constraint in constraints:
            for rule in rules:
                if rule.matches(requirement.text, constraint.text):
                    found.append(
                        Contradiction(
                            requirement_id=requirement.id,
                            constraint_id=constraint.id,
                            rule=rule.name,
                            description=(
                                f"{requirement.id} "
                                + rule.description.format(constraint=constraint.id)
                            ),
                            severity=rule.severity,
                        )
                    )
    return found


def detect_spec_contradictions(spec: ExecutableSpec) -> list[Contradiction]:
    """Narrative (title + objective) against each constraint rule."""
    narrative = spec.layers.narrative
    requirements = [SpecItem(id="narrative", text=f"{narrative.title}. {narrative.objective}")]
    constraints = [SpecItem(id=c.id, text=c.rule) for c in spec.layers.constraints]
    return detect_contradictions(requirements, constraints)
