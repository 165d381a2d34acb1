"""Engine service: ingest context, generate, simulate, approve and export specs.

Every external surface (HTTP API, tool dispatcher) goes through this module.
"""

import uuid
from datetime import datetime, timezone

from spec_engine.core.chunking import chunk_source, source_credibility
from spec_engine.core.embeddings import embed_texts
from spec_engine.core.errors import (
    ApprovalBlockedError,
    GenerationFailedError,
    NotFoundError,
    StructuralValidationError,
)
from spec_engine.core.llm import ReasoningClient, get_reasoning_client
from spec_engine.core.logging import get_logger
from spec_engine.core.schemas_engine import (
    ApprovalResult,
    Feature,
    FeatureStatus,
    FeatureSummary,
    GenerationResult,
    IngestResult,
)
from spec_engine.core.schemas_sources import ContentChunk, RawSource, SourceType
from spec_engine.core.schemas_spec import ExecutableSpec, StepStatus
from spec_engine.core.simulation import SimulationResult, evaluate_spec_quality, simulate_spec
from spec_engine.core.spec_compiler import compile_spec, mark_approved, validate_structure
from spec_engine.core.spec_export import ExportFormat, export_spec
from spec_engine.db import audit_log
from spec_engine.db import chunks as chunks_db
from spec_engine.db import features as features_db
from spec_engine.db import specs as specs_db
from spec_engine.db.specs import SpecRecord
from spec_engine.db.store import get_store
from spec_engine.graphs.generate_spec_graph import ProgressObserver, run_generate_spec

logger = get_logger(__name__)

CHUNKER_AGENT = "Chunker"
COMPILER_AGENT = "SpecCompiler"


# =============================================================================
# Features
# =============================================================================


def create_feature(name: str, description: str = "") -> Feature:
    """Register a feature; raises ValueError for a blank or duplicate name."""
    return features_db.create_feature(name, description)


def get_or_create_feature(name: str, description: str = "") -> Feature:
    """Existing feature by name (or by its spec id slug), else a new one."""
    feature = features_db.get_feature_by_name(name) or features_db.get_feature_by_slug(name)
    if feature is not None:
        return feature
    return features_db.create_feature(name, description)


def resolve_feature(name_or_id: str) -> Feature:
    """
    Resolve a feature by id or name.

    Raises:
        NotFoundError: If nothing matches
    """
    feature = features_db.find_feature(name_or_id)
    if feature is None:
        raise NotFoundError(f"Feature '{name_or_id}' not found")
    return feature


def feature_status(feature_id: str) -> FeatureStatus:
    """approved if any version is approved, draft if only drafts exist."""
    versions = specs_db.list_spec_versions(feature_id)
    if not versions:
        return FeatureStatus.NO_SPEC
    if any(record.spec.approved for record in versions):
        return FeatureStatus.APPROVED
    return FeatureStatus.DRAFT


def summarize_feature(feature: Feature) -> FeatureSummary:
    latest = specs_db.get_latest_spec(feature.id)
    return FeatureSummary(
        **feature.model_dump(),
        status=feature_status(feature.id),
        latest_spec_id=latest.spec.id if latest else None,
        latest_version=latest.spec.version if latest else None,
        chunk_count=chunks_db.count_chunks_for_feature(feature.id),
    )


def list_features(
    search: str | None = None,
    status: FeatureStatus | str | None = None,
) -> list[FeatureSummary]:
    """
    List features with derived status.

    Args:
        search: Optional filter on name and description
        status: Optional status filter (no_spec, draft, approved)

    Raises:
        ValueError: For an unknown status
    """
    wanted = FeatureStatus(status) if status else None
    summaries = [summarize_feature(f) for f in features_db.list_features(search)]
    if wanted is not None:
        summaries = [s for s in summaries if s.status == wanted]
    return summaries


# =============================================================================
# Ingest
# =============================================================================


def _embed_chunks(chunks: list[ContentChunk]) -> list[ContentChunk]:
    embeddings = embed_texts([chunk.content for chunk in chunks])
    return [
        chunk.model_copy(update={"embedding": embedding})
        for chunk, embedding in zip(chunks, embeddings)
    ]


def ingest(source: RawSource, feature_id: str | None = None) -> IngestResult:
    """
    Chunk, embed and store one raw source.

    Args:
        source: Raw source text with declared type
        feature_id: Optional feature to attach the chunks to

    Returns:
        IngestResult with stored chunk ids

    Raises:
        NotFoundError: If feature_id is unknown
        EmptyContentError: If the source has no usable content
    """
    if feature_id is not None and features_db.get_feature(feature_id) is None:
        raise NotFoundError(f"Feature {feature_id} not found")

    chunks = _embed_chunks(chunk_source(source, feature_id=feature_id))
    chunk_ids = chunks_db.insert_chunks(chunks)
    credibility = source_credibility(source)

    if feature_id is not None:
        features_db.touch_feature(feature_id)

    observation = f"Stored {len(chunk_ids)} {source.source_type.value} chunks (credibility {credibility:.2f})"
    audit_log.record_audit_entry(
        run_id=str(uuid.uuid4()),
        agent_name=CHUNKER_AGENT,
        action="ingest",
        observation=observation,
        feature_id=feature_id,
    )
    logger.info(observation, extra={"feature_id": feature_id})

    return IngestResult(
        chunk_count=len(chunk_ids),
        chunk_ids=chunk_ids,
        feature_id=feature_id,
        credibility=credibility,
    )


# =============================================================================
# Generate
# =============================================================================


def _override_chunks(raw_context: str) -> list[ContentChunk]:
    """Chunk inline context without persisting it."""
    return _embed_chunks(chunk_source(RawSource(source_type=SourceType.OTHER, content=raw_context)))


def generate(
    feature_id: str,
    raw_context_override: str | None = None,
    reasoner: ReasoningClient | None = None,
    observer: ProgressObserver | None = None,
) -> GenerationResult:
    """
    Run the generation pipeline and store the result as a new spec version.

    Args:
        feature_id: Feature to generate for
        raw_context_override: Inline context used instead of stored chunks
        reasoner: Reasoning client (defaults to the configured provider)
        observer: Optional progress observer

    Returns:
        GenerationResult for the new version

    Raises:
        NotFoundError: Unknown feature, or no stored context and no override
        GenerationFailedError: If a stage aborts; carries the partial trace
        StructuralValidationError: If the compiled spec fails structural
            validation; nothing is stored
        EmptyContentError: If the override yields no usable chunk
    """
    feature = features_db.get_feature(feature_id)
    if feature is None:
        raise NotFoundError(f"Feature {feature_id} not found")

    override = raw_context_override if raw_context_override and raw_context_override.strip() else None
    if override is not None:
        candidates = _override_chunks(override)
    else:
        candidates = chunks_db.list_chunks_for_feature(feature_id)
        if not candidates:
            raise NotFoundError(f"No context ingested for feature '{feature.name}'")

    run_id = str(uuid.uuid4())
    query = f"{feature.name}\n{feature.description}".strip()

    try:
        outcome = run_generate_spec(
            feature_name=feature.name,
            query=query,
            candidates=candidates,
            reasoner=reasoner or get_reasoning_client(),
            raw_context=override,
            observer=observer,
            run_id=run_id,
        )
    except GenerationFailedError as e:
        audit_log.record_steps(run_id, e.steps, feature_id=feature_id)
        raise

    # Version choice and insert share one lock scope so concurrent runs get distinct versions
    store = get_store()
    with store.lock:
        latest = specs_db.get_latest_spec(feature_id)
        spec = compile_spec(
            feature.name,
            (outcome.narrative, outcome.context_pointers),
            outcome.constraints,
            outcome.verification,
            previous_version=latest.spec.version if latest else None,
        )
        validation = validate_structure(spec)
        quality = evaluate_spec_quality(spec, outcome.review)
        if validation.valid:
            specs_db.insert_spec_version(
                SpecRecord(
                    spec=spec,
                    feature_id=feature_id,
                    run_id=run_id,
                    review=outcome.review,
                    validation=validation,
                    quality=quality,
                )
            )

    audit_log.record_steps(run_id, outcome.steps, feature_id=feature_id)
    audit_log.record_audit_entry(
        run_id=run_id,
        agent_name=COMPILER_AGENT,
        action="compile",
        observation=f"Compiled {spec.id} hash={spec.hash[:12]} valid={validation.valid}",
        feature_id=feature_id,
        status=(StepStatus.DONE if validation.valid else StepStatus.ERROR).value,
    )

    if not validation.valid:
        logger.warning(
            f"Compiled spec {spec.id} failed structural validation, not stored: "
            f"{'; '.join(validation.errors)}",
            extra={"run_id": run_id, "spec_id": spec.id},
        )
        raise StructuralValidationError(
            f"Compiled spec {spec.id} failed structural validation", errors=validation.errors
        )

    simulation = simulate_spec(spec)
    specs_db.save_simulation(spec.id, simulation)
    features_db.touch_feature(feature_id)

    logger.info(
        f"Generated {spec.id} for '{feature.name}' "
        f"(approval_recommended={outcome.review.approval_recommended})",
        extra={"run_id": run_id, "spec_id": spec.id, "feature_id": feature_id},
    )

    return GenerationResult(
        run_id=run_id,
        spec=spec,
        review=outcome.review,
        steps=outcome.steps,
        approved=outcome.review.approval_recommended,
        validation=validation,
        simulation=simulation,
        quality=quality,
    )


# =============================================================================
# Spec versions
# =============================================================================


def get_spec(spec_id: str) -> SpecRecord:
    """Raises NotFoundError for an unknown id."""
    return specs_db.require_spec_record(spec_id)


def latest_spec_for(feature_id: str) -> SpecRecord:
    """
    Raises:
        NotFoundError: If the feature has no spec yet
    """
    record = specs_db.get_latest_spec(feature_id)
    if record is None:
        raise NotFoundError(f"No spec generated for feature {feature_id}")
    return record


def simulate(spec: ExecutableSpec) -> SimulationResult:
    """Simulate any compiled spec, stored or not."""
    return simulate_spec(spec)


def simulate_by_id(spec_id: str) -> SimulationResult:
    """Simulate a stored version and keep the result with it."""
    record = specs_db.require_spec_record(spec_id)
    result = simulate_spec(record.spec)
    specs_db.save_simulation(spec_id, result)
    return result


def approve(spec_id: str) -> ApprovalResult:
    """
    Approve and lock a spec version. Approving twice is a no-op.

    Raises:
        NotFoundError: Unknown spec id
        ApprovalBlockedError: Review left blocker findings
        StructuralValidationError: Spec fails structural validation
    """
    record = specs_db.require_spec_record(spec_id)
    if record.spec.approved:
        return ApprovalResult(
            spec_id=spec_id,
            locked=True,
            hash=record.spec.hash,
            approved_at=record.approved_at,
        )

    blockers = record.review.blockers
    if blockers:
        raise ApprovalBlockedError(
            f"Spec {spec_id} has {len(blockers)} outstanding blocker(s)",
            blockers=[f"{f.location}: {f.description}" if f.location else f.description for f in blockers],
        )

    validation = validate_structure(record.spec)
    if not validation.valid:
        raise StructuralValidationError(
            f"Spec {spec_id} failed structural validation", errors=validation.errors
        )

    approved_at = datetime.now(timezone.utc)
    record = specs_db.mark_spec_approved(spec_id, mark_approved(record.spec), approved_at)
    audit_log.record_audit_entry(
        run_id=record.run_id,
        agent_name=COMPILER_AGENT,
        action="approve",
        observation=f"Locked {spec_id} hash={record.spec.hash[:12]}",
        feature_id=record.feature_id,
    )
    logger.info(f"Approved {spec_id}", extra={"spec_id": spec_id, "feature_id": record.feature_id})

    return ApprovalResult(
        spec_id=spec_id,
        locked=True,
        hash=record.spec.hash,
        approved_at=approved_at,
    )


def export(spec_id: str, export_format: ExportFormat | str = ExportFormat.JSON) -> str:
    """
    Render a stored version.

    Raises:
        NotFoundError: Unknown spec id
        ValueError: Unknown format
    """
    record = specs_db.require_spec_record(spec_id)
    return export_spec(record.spec, export_format)
