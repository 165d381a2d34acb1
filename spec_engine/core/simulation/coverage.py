"""Coverage scoring.

Each item gets three checks: acceptance criteria, source citation, test
scenario. Items are weighted by priority (must 2.0, should 1.0, may 0.5) and
the score is the weighted share of passed checks.

Also flags action items (create, delete, upload, ...) that never say what
happens when the action fails.
"""

import re

from spec_engine.core.grounding import UNCITED_SOURCE
from spec_engine.core.schemas_spec import ExecutableSpec
from spec_engine.core.simulation.testability import scenario_matches, scenario_text
from spec_engine.core.simulation.types import (
    CHECKS_PER_ITEM,
    PRIORITY_WEIGHTS,
    SEVERITY_PRIORITY,
    CoverageItem,
    CoverageMissing,
    CoverageResult,
    PriorityBreakdown,
    SpecItem,
)

ACTION_PATTERN = re.compile(
    r"\b(?:login|submit|create|update|delete|upload|download|send|pay|checkout)\b", re.IGNORECASE
)

ERROR_HANDLING_PATTERN = re.compile(
    r"\b(?:error|fail(?:s|ed|ure)?|invalid|reject(?:s|ed)?|timeout|exception|unauthori[sz]ed|forbidden)\b",
    re.IGNORECASE,
)


def _percent(count: int, total: int) -> float:
    return 100.0 * count / total if total else 0.0


def calculate_coverage(items: list[CoverageItem]) -> CoverageResult:
    """
    Score how completely items are specified.

    Empty input scores 0; every check passing scores 100; flipping any
    failing check to passing strictly raises the score.
    """
    if not items:
        return CoverageResult(score=0.0)

    achieved = 0.0
    possible = 0.0
    by_priority: dict[str, PriorityBreakdown] = {
        p: PriorityBreakdown() for p in PRIORITY_WEIGHTS
    }

    for item in items:
        weight = PRIORITY_WEIGHTS[item.priority]
        passed = sum(
            [item.has_acceptance_criteria, item.has_source_citation, item.has_test_scenario]
        )
        achieved += weight * passed
        possible += weight * CHECKS_PER_ITEM

        tier = by_priority[item.priority]
        tier.total += 1
        if passed == CHECKS_PER_ITEM:
            tier.fully_covered += 1

    n = len(items)
    missing = CoverageMissing(
        no_acceptance_criteria=[i.id for i in items if not i.has_acceptance_criteria],
        no_source_citation=[i.id for i in items if not i.has_source_citation],
        no_test_scenario=[i.id for i in items if not i.has_test_scenario],
    )

    return CoverageResult(
        score=min(100.0, 100.0 * achieved / possible),
        acceptance_criteria_coverage=_percent(n - len(missing.no_acceptance_criteria), n),
        source_citation_coverage=_percent(n - len(missing.no_source_citation), n),
        test_scenario_coverage=_percent(n - len(missing.no_test_scenario), n),
        by_priority=by_priority,
        missing=missing,
    )


def build_coverage_items(spec: ExecutableSpec) -> list[CoverageItem]:
    """Pair each constraint with the verification layer."""
    scenarios = spec.layers.verification
    items = []

    for constraint in spec.layers.constraints:
        matching = [s for s in scenarios if scenario_matches(constraint.id, constraint.rule, s)]
        source = constraint.source.strip()
        items.append(
            CoverageItem(
                id=constraint.id,
                text=constraint.rule,
                priority=SEVERITY_PRIORITY[constraint.severity],
                has_acceptance_criteria=any(s.given and s.when and s.then for s in matching),
                has_source_citation=bool(source) and source != UNCITED_SOURCE,
                has_test_scenario=bool(matching),
            )
        )

    return items


def detect_missing_error_paths(items: list[SpecItem]) -> list[str]:
    """Ids of items that describe an action but mention no failure handling."""
    return [
        item.id
        for item in items
        if ACTION_PATTERN.search(item.text) and not ERROR_HANDLING_PATTERN.search(item.text)
    ]


def detect_spec_missing_error_paths(spec: ExecutableSpec) -> list[str]:
    """
    Error-path check over the narrative and each constraint.

    A constraint is read together with the scenarios that exercise it; the
    narrative is read together with the whole verification layer.
    """
    narrative = spec.layers.narrative
    scenarios = spec.layers.verification
    items = [
        SpecItem(
            id="narrative",
            text=" ".join([narrative.title, narrative.objective, *map(scenario_text, scenarios)]),
        )
    ]
    for constraint in spec.layers.constraints:
        matching = [s for s in scenarios if scenario_matches(constraint.id, constraint.rule, s)]
        items.append(
            SpecItem(id=constraint.id, text=" ".join([constraint.rule, *map(scenario_text, matching)]))
        )
    return detect_missing_error_paths(items)
