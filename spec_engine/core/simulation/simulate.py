"""Run every validator against one immutable spec."""

import logging
from concurrent.futures import ThreadPoolExecutor

from spec_engine.core.config import get_settings
from spec_engine.core.logging import get_logger, log_with_context
from spec_engine.core.schemas_spec import ExecutableSpec
from spec_engine.core.simulation.ambiguity import detect_spec_ambiguities
from spec_engine.core.simulation.completeness import check_completeness
from spec_engine.core.simulation.contradiction import detect_spec_contradictions
from spec_engine.core.simulation.coverage import (
    build_coverage_items,
    calculate_coverage,
    detect_spec_missing_error_paths,
)
from spec_engine.core.simulation.testability import validate_spec_testability
from spec_engine.core.simulation.types import SimulationResult

logger = get_logger(__name__)


def _coverage(spec: ExecutableSpec):
    return calculate_coverage(build_coverage_items(spec))


def simulate_spec(spec: ExecutableSpec) -> SimulationResult:
    """
    Pre-implementation simulation of a compiled spec.

    The validators are pure and independent, so they run concurrently on a
    thread pool. The spec passes when coverage reaches SIMULATION_PASS_SCORE
    and no critical contradiction is found.

    Args:
        spec: Compiled spec

    Returns:
        SimulationResult
    """
    settings = get_settings()

    with ThreadPoolExecutor(max_workers=settings.SIMULATION_MAX_WORKERS) as executor:
        coverage_future = executor.submit(_coverage, spec)
        ambiguity_future = executor.submit(detect_spec_ambiguities, spec)
        contradiction_future = executor.submit(detect_spec_contradictions, spec)
        testability_future = executor.submit(validate_spec_testability, spec)
        completeness_future = executor.submit(check_completeness, spec)
        error_paths_future = executor.submit(detect_spec_missing_error_paths, spec)

        coverage = coverage_future.result()
        ambiguities = ambiguity_future.result()
        contradictions = contradiction_future.result()
        testability = testability_future.result()
        completeness = completeness_future.result()
        missing_error_paths = error_paths_future.result()

    has_critical = any(c.severity == "critical" for c in contradictions)
    passed = coverage.score >= settings.SIMULATION_PASS_SCORE and not has_critical

    log_with_context(
        logger,
        logging.INFO,
        f"Simulated {spec.id}",
        coverage=round(coverage.score, 1),
        ambiguities=len(ambiguities),
        contradictions=len(contradictions),
        passed=passed,
    )

    return SimulationResult(
        spec_id=spec.id,
        spec_hash=spec.hash,
        coverage_score=coverage.score,
        coverage=coverage,
        ambiguities=ambiguities,
        contradictions=contradictions,
        testability=testability,
        completeness=completeness,
        missing_error_paths=missing_error_paths,
        passed=passed,
    )
