"""Tool implementations. Each takes the tool input dict and returns a JSON-ready dict."""

from typing import Any, Dict

from spec_engine.core.logging import get_logger
from spec_engine.core.schemas_sources import RawSource
from spec_engine.db import specs as specs_db
from spec_engine.services import spec_service

logger = get_logger(__name__)

CONSTRAINT_USAGE = "These are DO NOT rules. Violating any constraint is a spec failure."


def _require(params: Dict[str, Any], *names: str) -> list[str]:
    values = [str(params.get(name) or "").strip() for name in names]
    missing = [name for name, value in zip(names, values) if not value]
    if missing:
        raise ValueError(f"{', '.join(missing)} required")
    return values


def _fetch_spec(params: Dict[str, Any]) -> Dict[str, Any]:
    (feature_name,) = _require(params, "feature_name")
    summary = spec_service.summarize_feature(spec_service.resolve_feature(feature_name))

    result: Dict[str, Any] = {
        "feature_id": summary.id,
        "feature_name": summary.name,
        "description": summary.description,
        "status": summary.status.value,
        "chunk_count": summary.chunk_count,
        "spec": None,
    }
    record = specs_db.get_latest_spec(summary.id)
    if record is not None:
        result["spec"] = record.spec.model_dump(mode="json")
        result["review"] = record.review.model_dump(mode="json")
        if record.quality is not None:
            result["quality"] = record.quality.model_dump(mode="json")
    return result


def _ingest_context(params: Dict[str, Any]) -> Dict[str, Any]:
    source_type, content, feature_name = _require(params, "source_type", "content", "feature_name")
    feature = spec_service.get_or_create_feature(feature_name, description=f"Context from {source_type}")

    metadata: Dict[str, Any] = {}
    if params.get("source_url"):
        metadata["url"] = str(params["source_url"])
    source = RawSource(source_type=source_type, content=content, metadata=metadata)

    result = spec_service.ingest(source, feature_id=feature.id)
    return {
        "status": "success",
        "feature_id": feature.id,
        "feature_name": feature.name,
        "source_type": source.source_type.value,
        "chunk_count": result.chunk_count,
        "chunk_ids": result.chunk_ids,
        "message": "Context ingested. Run generate_spec to create a spec from this context.",
    }


def _generate_spec(params: Dict[str, Any]) -> Dict[str, Any]:
    (feature_name,) = _require(params, "feature_name")
    feature = spec_service.resolve_feature(feature_name)
    result = spec_service.generate(feature.id, raw_context_override=params.get("description") or None)

    return {
        "status": "success",
        "feature_id": feature.id,
        "feature_name": feature.name,
        "spec": result.spec.model_dump(mode="json"),
        "approval_recommended": result.approved,
        "blockers": [f.description for f in result.review.blockers],
        "coverage_score": result.simulation.coverage_score,
        "simulation_passed": result.simulation.passed,
        "quality_score": result.quality.overall_score,
        "message": "Spec generated. Use run_simulation to re-check it or fetch_spec to retrieve it.",
    }


def _list_features(params: Dict[str, Any]) -> Dict[str, Any]:
    summaries = spec_service.list_features(
        search=params.get("search") or None,
        status=params.get("status") or None,
    )
    return {
        "total": len(summaries),
        "features": [s.model_dump(mode="json") for s in summaries],
    }


def _get_constraints(params: Dict[str, Any]) -> Dict[str, Any]:
    (feature_name,) = _require(params, "feature_name")
    feature = spec_service.resolve_feature(feature_name)
    record = specs_db.get_latest_spec(feature.id, approved_only=True) or spec_service.latest_spec_for(feature.id)
    constraints = record.spec.layers.constraints

    return {
        "feature": feature.name,
        "spec_id": record.spec.id,
        "version": record.spec.version,
        "approved": record.spec.approved,
        "constraints": [c.model_dump(mode="json") for c in constraints],
        "constraint_count": len(constraints),
        "usage": CONSTRAINT_USAGE,
    }


def _run_simulation(params: Dict[str, Any]) -> Dict[str, Any]:
    (spec_id,) = _require(params, "spec_id")
    result = spec_service.simulate_by_id(spec_id)

    return {
        "spec_id": spec_id,
        "simulation": result.model_dump(mode="json"),
        "message": (
            "Simulation passed. Spec is ready for implementation."
            if result.passed
            else "Simulation did not pass. Review coverage.missing and contradictions."
        ),
    }
