"""LangGraph pipeline for spec generation.

Harvest -> Draft -> Constraints -> Verification -> Review -> Done.

Each node returns its stage output plus exactly one AuditStep; the `steps`
reducer appends them, so the trace is built by message passing.
"""

import operator
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any

from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, StateGraph
from pydantic import BaseModel, Field

from spec_engine.chains import (
    adversary_review as review_chain,
    draft_spec as draft_chain,
    extract_constraints as constraints_chain,
    harvest_context as harvest_chain,
    write_verification as verification_chain,
)
from spec_engine.core.embeddings import Embedder
from spec_engine.core.errors import GenerationFailedError
from spec_engine.core.llm import ReasoningClient
from spec_engine.core.logging import get_logger
from spec_engine.core.schemas_sources import ContentChunk, HarvestedContext
from spec_engine.core.schemas_spec import (
    AdversaryReviewResult,
    AuditStep,
    Constraint,
    ContextPointer,
    Narrative,
    StepStatus,
    VerificationScenario,
)

logger = get_logger(__name__)

MAX_STEPS = 10  # Five linear stages plus margin


class Stage(str, Enum):
    """Pipeline stages in execution order."""

    HARVEST = "harvest"
    DRAFT = "draft"
    CONSTRAINTS = "constraints"
    VERIFICATION = "verification"
    REVIEW = "review"
    DONE = "done"


_TRANSITIONS = {
    Stage.HARVEST: Stage.DRAFT,
    Stage.DRAFT: Stage.CONSTRAINTS,
    Stage.CONSTRAINTS: Stage.VERIFICATION,
    Stage.VERIFICATION: Stage.REVIEW,
    Stage.REVIEW: Stage.DONE,
}

# Node names must not collide with state keys
NODE_NAMES = {
    Stage.HARVEST: "harvest_context",
    Stage.DRAFT: "draft_spec",
    Stage.CONSTRAINTS: "extract_constraints",
    Stage.VERIFICATION: "write_verification",
    Stage.REVIEW: "adversary_review",
}

AGENT_NAMES = {
    Stage.HARVEST: harvest_chain.AGENT_NAME,
    Stage.DRAFT: draft_chain.AGENT_NAME,
    Stage.CONSTRAINTS: constraints_chain.AGENT_NAME,
    Stage.VERIFICATION: verification_chain.AGENT_NAME,
    Stage.REVIEW: review_chain.AGENT_NAME,
}


def next_stage(stage: Stage) -> Stage:
    """
    Pure transition function.

    Raises:
        ValueError: If called on DONE
    """
    if stage not in _TRANSITIONS:
        raise ValueError(f"No transition out of terminal stage {stage.value}")
    return _TRANSITIONS[stage]


# Observer receives (stage, status, step); status is "running" or the step status
ProgressObserver = Callable[[Stage, str, AuditStep | None], None]


# =========================
# State Definition
# =========================


@dataclass
class GenerateSpecState:
    """State for the spec generation graph."""

    feature_name: str
    query: str
    raw_context: str | None = None
    candidates: list[ContentChunk] = field(default_factory=list)

    harvested: HarvestedContext | None = None
    narrative: Narrative | None = None
    context_pointers: list[ContextPointer] = field(default_factory=list)
    constraints: list[Constraint] = field(default_factory=list)
    verification: list[VerificationScenario] = field(default_factory=list)
    review: AdversaryReviewResult | None = None

    stage: Stage = Stage.HARVEST
    steps: Annotated[list[AuditStep], operator.add] = field(default_factory=list)
    step_count: int = 0


class GenerationOutcome(BaseModel):
    """Everything a completed run produced."""

    run_id: str
    harvested: HarvestedContext
    narrative: Narrative
    context_pointers: list[ContextPointer] = Field(default_factory=list)
    constraints: list[Constraint] = Field(default_factory=list)
    verification: list[VerificationScenario] = Field(default_factory=list)
    review: AdversaryReviewResult
    steps: list[AuditStep] = Field(default_factory=list)


# =========================
# Node Functions
# =========================


def _check_max_steps(state: GenerateSpecState) -> None:
    if state.step_count >= MAX_STEPS:
        raise RuntimeError(f"Generation exceeded {MAX_STEPS} steps")


def _reasoner(config: RunnableConfig) -> ReasoningClient:
    return config["configurable"]["reasoner"]


def _advance(state: GenerateSpecState, stage: Stage, step: AuditStep, **outputs: Any) -> dict[str, Any]:
    return {
        **outputs,
        "stage": next_stage(stage),
        "steps": [step],
        "step_count": state.step_count + 1,
    }


def harvest_node(state: GenerateSpecState, config: RunnableConfig) -> dict[str, Any]:
    _check_max_steps(state)
    harvested, step = harvest_chain.harvest_context(
        state.query,
        state.candidates,
        _reasoner(config),
        embedder=config["configurable"].get("embedder"),
        raw_context=state.raw_context,
    )
    return _advance(state, Stage.HARVEST, step, harvested=harvested)


def draft_node(state: GenerateSpecState, config: RunnableConfig) -> dict[str, Any]:
    _check_max_steps(state)
    (narrative, pointers), step = draft_chain.draft_spec(
        state.feature_name, state.harvested, _reasoner(config), raw_context=state.raw_context
    )
    return _advance(state, Stage.DRAFT, step, narrative=narrative, context_pointers=pointers)


def constraints_node(state: GenerateSpecState, config: RunnableConfig) -> dict[str, Any]:
    _check_max_steps(state)
    constraints, step = constraints_chain.extract_constraints(
        state.narrative, state.harvested, _reasoner(config)
    )
    return _advance(state, Stage.CONSTRAINTS, step, constraints=constraints)


def verification_node(state: GenerateSpecState, config: RunnableConfig) -> dict[str, Any]:
    _check_max_steps(state)
    scenarios, step = verification_chain.write_verification(
        state.narrative, state.constraints, _reasoner(config)
    )
    return _advance(state, Stage.VERIFICATION, step, verification=scenarios)


def review_node(state: GenerateSpecState, config: RunnableConfig) -> dict[str, Any]:
    _check_max_steps(state)
    review, step = review_chain.adversary_review(
        state.narrative,
        state.context_pointers,
        state.constraints,
        state.verification,
        _reasoner(config),
    )
    return _advance(state, Stage.REVIEW, step, review=review)


_NODE_FUNCTIONS = {
    Stage.HARVEST: harvest_node,
    Stage.DRAFT: draft_node,
    Stage.CONSTRAINTS: constraints_node,
    Stage.VERIFICATION: verification_node,
    Stage.REVIEW: review_node,
}


def _build_graph() -> StateGraph:
    """Build the linear five-stage graph from the transition table."""
    graph = StateGraph(GenerateSpecState)

    for stage, node in _NODE_FUNCTIONS.items():
        graph.add_node(NODE_NAMES[stage], node)

    graph.set_entry_point(NODE_NAMES[Stage.HARVEST])
    for stage in _NODE_FUNCTIONS:
        target = next_stage(stage)
        graph.add_edge(NODE_NAMES[stage], END if target == Stage.DONE else NODE_NAMES[target])

    return graph


# Graph instance
generate_spec_graph = _build_graph().compile()


# =========================
# Orchestrator
# =========================


def _notify(
    observer: ProgressObserver | None,
    stage: Stage,
    status: str,
    step: AuditStep | None,
    run_id: str,
) -> None:
    """Forward a progress event; observer failures never affect the run."""
    if observer is None:
        return
    try:
        observer(stage, status, step)
    except Exception as e:
        logger.warning(
            f"Progress observer failed on {stage.value}/{status}: {e}",
            extra={"run_id": run_id},
        )


def run_generate_spec(
    feature_name: str,
    query: str,
    candidates: Sequence[ContentChunk],
    reasoner: ReasoningClient,
    embedder: Embedder | None = None,
    raw_context: str | None = None,
    observer: ProgressObserver | None = None,
    run_id: str | None = None,
) -> GenerationOutcome:
    """
    Run the generation pipeline end to end.

    Args:
        feature_name: Feature the spec is for
        query: Retrieval query
        candidates: Chunks to retrieve from
        reasoner: Reasoning client used by every stage
        embedder: Query embedder (defaults to embed_text)
        raw_context: Optional inline context
        observer: Optional progress observer
        run_id: Run tracking id (generated if omitted)

    Returns:
        GenerationOutcome with every layer, the review and the trace

    Raises:
        GenerationFailedError: If any stage raises; carries the partial trace
    """
    run_id = run_id or str(uuid.uuid4())
    initial_state = GenerateSpecState(
        feature_name=feature_name,
        query=query,
        raw_context=raw_context,
        candidates=list(candidates),
    )
    config: RunnableConfig = {
        "configurable": {"reasoner": reasoner, "embedder": embedder, "thread_id": run_id},
        "recursion_limit": MAX_STEPS,
    }

    logger.info(f"Starting spec generation for '{feature_name}'", extra={"run_id": run_id})

    results: dict[str, Any] = {}
    steps: list[AuditStep] = []
    current = Stage.HARVEST
    _notify(observer, current, "running", None, run_id)

    try:
        for update in generate_spec_graph.stream(initial_state, config, stream_mode="updates"):
            for values in update.values():
                if not values:
                    continue
                new_steps = values.get("steps", [])
                steps.extend(new_steps)
                results.update({k: v for k, v in values.items() if k != "steps"})

                for step in new_steps:
                    _notify(observer, current, step.status.value, step, run_id)

                current = values.get("stage", current)
                if current != Stage.DONE:
                    _notify(observer, current, "running", None, run_id)
    except Exception as e:
        error_step = AuditStep(
            stage_name=current.value,
            agent_name=AGENT_NAMES.get(current, "Orchestrator"),
            status=StepStatus.ERROR,
            observation=f"{type(e).__name__}: {e}",
        )
        steps.append(error_step)
        _notify(observer, current, StepStatus.ERROR.value, error_step, run_id)
        logger.error(
            f"Spec generation for '{feature_name}' failed at {current.value}: {e}",
            extra={"run_id": run_id},
        )
        raise GenerationFailedError(
            f"Generation failed at {current.value} stage: {e}",
            stage=current.value,
            steps=steps,
            cause=e,
        ) from e

    logger.info(
        f"Completed spec generation for '{feature_name}' in {len(steps)} steps",
        extra={"run_id": run_id},
    )

    return GenerationOutcome(
        run_id=run_id,
        harvested=results["harvested"],
        narrative=results["narrative"],
        context_pointers=results.get("context_pointers", []),
        constraints=results.get("constraints", []),
        verification=results.get("verification", []),
        review=results["review"],
        steps=steps,
    )
