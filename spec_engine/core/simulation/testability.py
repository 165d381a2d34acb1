"""Testability validator: does any scenario exercise each item?"""

import re

from spec_engine.core.config import get_settings
from spec_engine.core.schemas_spec import ExecutableSpec, ScenarioDraft, VerificationScenario
from spec_engine.core.simulation.types import SpecItem, TestabilityResult

_WORD_PATTERN = re.compile(r"[a-z0-9]+")

# Keywords are words longer than this
MIN_KEYWORD_LENGTH = 4

STOPWORDS = frozenset(
    {
        "about", "after", "again", "should", "would", "could", "their", "there",
        "these", "those", "which", "while", "where", "every", "other", "being",
        "shall", "given", "using", "within", "without",
    }
)


def keywords(text: str) -> set[str]:
    """Lowercased words longer than four characters, stopwords removed."""
    return {
        w
        for w in _WORD_PATTERN.findall((text or "").lower())
        if len(w) > MIN_KEYWORD_LENGTH and w not in STOPWORDS
    }


def scenario_text(scenario: VerificationScenario | ScenarioDraft) -> str:
    return " ".join([scenario.scenario, *scenario.given, *scenario.when, *scenario.then])


def scenario_matches(
    item_id: str, item_text: str, scenario: VerificationScenario, min_overlap: int | None = None
) -> bool:
    """True if the scenario lists the item in covers or shares enough keywords."""
    if item_id in scenario.covers:
        return True
    if min_overlap is None:
        min_overlap = get_settings().TESTABILITY_MIN_OVERLAP
    return len(keywords(item_text) & keywords(scenario_text(scenario))) >= min_overlap


def validate_testability(
    items: list[SpecItem],
    scenarios: list[VerificationScenario],
    min_overlap: int | None = None,
) -> TestabilityResult:
    """
    Partition items into testable / untestable ids.

    With no scenarios every item is untestable.
    """
    if min_overlap is None:
        min_overlap = get_settings().TESTABILITY_MIN_OVERLAP

    result = TestabilityResult()
    for item in items:
        if any(scenario_matches(item.id, item.text, s, min_overlap) for s in scenarios):
            result.testable.append(item.id)
        else:
            result.untestable.append(item.id)
    return result


def validate_spec_testability(spec: ExecutableSpec) -> TestabilityResult:
    """Testability of every constraint against the verification layer."""
    items = [SpecItem(id=c.id, text=c.rule) for c in spec.layers.constraints]
    return validate_testability(items, spec.layers.verification)
