"""Spec simulator.

Static validators run against a compiled spec before any code is written:
- Coverage: constraint citations, acceptance criteria and test scenarios,
  weighted by priority (must 2.0, should 1.0, may 0.5)
- Ambiguity: vague terms with rewrite suggestions
- Contradiction: opposing keyword pairs between narrative and constraints
- Testability: which constraints some scenario exercises
- Completeness: are all four layers populated
- Error paths: action items that never say what happens on failure

Quality scores (completeness, grounding, testability, adversarial, overall)
are computed per stored version by `evaluate_spec_quality`.

Usage:
    from spec_engine.core.simulation import simulate_spec

    result = simulate_spec(spec)
    print(f"Passed: {result.passed} ({result.coverage_score:.0f}%)")
"""

from spec_engine.core.simulation.ambiguity import (
    VAGUE_TERMS,
    detect_ambiguity,
    detect_spec_ambiguities,
)
from spec_engine.core.simulation.completeness import check_completeness
from spec_engine.core.simulation.contradiction import (
    CONTRADICTION_RULES,
    detect_contradictions,
    detect_spec_contradictions,
)
from spec_engine.core.simulation.coverage import (
    build_coverage_items,
    calculate_coverage,
    detect_missing_error_paths,
    detect_spec_missing_error_paths,
)
from spec_engine.core.simulation.quality import QUALITY_WEIGHTS, evaluate_spec_quality
from spec_engine.core.simulation.simulate import simulate_spec
from spec_engine.core.simulation.testability import validate_spec_testability, validate_testability
from spec_engine.core.simulation.types import (
    PRIORITY_WEIGHTS,
    AmbiguityHit,
    CompletenessResult,
    Contradiction,
    CoverageItem,
    CoverageResult,
    SimulationResult,
    SpecItem,
    SpecQualityScores,
    TestabilityResult,
)

__all__ = [
    "simulate_spec",
    "calculate_coverage",
    "build_coverage_items",
    "detect_ambiguity",
    "detect_spec_ambiguities",
    "detect_contradictions",
    "detect_spec_contradictions",
    "validate_testability",
    "validate_spec_testability",
    "check_completeness",
    "detect_missing_error_paths",
    "detect_spec_missing_error_paths",
    "evaluate_spec_quality",
    "SimulationResult",
    "CoverageItem",
    "CoverageResult",
    "AmbiguityHit",
    "Contradiction",
    "TestabilityResult",
    "CompletenessResult",
    "SpecItem",
    "SpecQualityScores",
    "VAGUE_TERMS",
    "CONTRADICTION_RULES",
    "PRIORITY_WEIGHTS",
    "QUALITY_WEIGHTS",
]
