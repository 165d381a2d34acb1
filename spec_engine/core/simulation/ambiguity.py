"""Ambiguity detector: vague terms in free text, with rewrite suggestions."""

import re

from spec_engine.core.schemas_spec import ExecutableSpec
from spec_engine.core.simulation.types import AmbiguityHit

VAGUE_TERMS: dict[str, str] = {
    "fast": 'Specify exact response time (e.g., "within 200ms at P99")',
    "slow": "Specify exact threshold",
    "quick": "Specify exact response time",
    "simple": "Define specific simplicity criteria or user task completion rate",
    "easy": 'Define measurable usability metric (e.g., "90% of users complete task in <60s")',
    "intuitive": 'Define specific UX metric (e.g., "SUS score > 80")',
    "good": "Specify measurable quality criteria",
    "better": "Specify measurable improvement over baseline",
    "nice": "Remove subjective qualifier; add objective criteria",
    "scalable": 'Specify exact scale targets (e.g., "handle 10,000 concurrent users")',
    "performant": "Specify measurable performance metrics",
    "efficient": "Specify measurable efficiency criteria",
    "secure": "Specify which security standards (e.g., OWASP Top 10, SOC2)",
    "modern": "Remove subjective term; describe concrete design criteria",
    "robust": "Define error rate and recovery criteria",
    "flexible": "Specify which dimensions of flexibility are required",
}


def _term_pattern(term: str) -> re.Pattern:
    return re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)


_DEFAULT_PATTERNS = {term: _term_pattern(term) for term in VAGUE_TERMS}


def detect_ambiguity(
    text: str, vocabulary: dict[str, str] | None = None, location: str = ""
) -> list[AmbiguityHit]:
    """
    Find vague terms in text, matched case-insensitively on whole words.

    Args:
        text: Text to scan
        vocabulary: term -> suggestion map (defaults to VAGUE_TERMS)
        location: Field path recorded on each hit

    Returns:
        Hits ordered by position
    """
    if not text:
        return []

    if vocabulary is None:
        patterns = _DEFAULT_PATTERNS
        vocabulary = VAGUE_TERMS
    else:
        patterns = {term: _term_pattern(term) for term in vocabulary}

    hits = [
        AmbiguityHit(
            term=term,
            position=match.start(),
            suggestion=vocabulary[term],
            location=location,
        )
        for term, pattern in patterns.items()
        for match in pattern.finditer(text)
    ]
    hits.sort(key=lambda h: h.position)
    return hits


def _spec_fields(spec: ExecutableSpec) -> list[tuple[str, str]]:
    layers = spec.layers
    fields = [
        ("narrative.title", layers.narrative.title),
        ("narrative.objective", layers.narrative.objective),
        ("narrative.rationale", layers.narrative.rationale),
    ]
    for i, constraint in enumerate(layers.constraints):
        fields.append((f"constraints[{i}].rule", constraint.rule))
    for i, scenario in enumerate(layers.verification):
        fields.append((f"verification[{i}].scenario", scenario.scenario))
        for step_name in ("given", "when", "then"):
            for j, text in enumerate(getattr(scenario, step_name)):
                fields.append((f"verification[{i}].{step_name}[{j}]", text))
    return fields


def detect_spec_ambiguities(spec: ExecutableSpec) -> list[AmbiguityHit]:
    """Scan every free-text field of the spec."""
    hits: list[AmbiguityHit] = []
    for location, text in _spec_fields(spec):
        hits.extend(detect_ambiguity(text, location=location))
    return hits
