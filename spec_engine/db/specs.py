"""Spec version storage operations."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from spec_engine.core.errors import NotFoundError, SpecLockedError, VersionConflictError
from spec_engine.core.logging import get_logger
from spec_engine.core.schemas_spec import (
    AdversaryReviewResult,
    ExecutableSpec,
    StructureValidation,
)
from spec_engine.core.simulation.types import SimulationResult, SpecQualityScores
from spec_engine.db.store import get_store

logger = get_logger(__name__)


class SpecRecord(BaseModel):
    """A stored spec version plus what was known about it at write time."""

    spec: ExecutableSpec
    feature_id: str
    run_id: str
    review: AdversaryReviewResult
    validation: StructureValidation
    simulation: SimulationResult | None = None
    quality: SpecQualityScores | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    approved_at: datetime | None = None


def _version_key(record: SpecRecord) -> tuple[int, ...]:
    return tuple(int(part) for part in record.spec.version.split("."))


def insert_spec_version(record: SpecRecord) -> SpecRecord:
    """
    Persist a new spec version. Stored versions are never replaced.

    Raises:
        SpecLockedError: If an approved version already holds this id
        VersionConflictError: If a draft version already holds this id
    """
    store = get_store()
    with store.lock:
        existing = store.specs.get(record.spec.id)
        if existing is not None and existing.spec.approved:
            raise SpecLockedError(f"Spec {record.spec.id} is approved and cannot be overwritten")
        if existing is not None:
            raise VersionConflictError(
                f"Spec {record.spec.id} already exists (feature {existing.feature_id}, run {existing.run_id})"
            )
        store.specs[record.spec.id] = record

    logger.info(
        f"Stored spec {record.spec.id} ({record.spec.hash[:12]})",
        extra={"spec_id": record.spec.id, "run_id": record.run_id, "feature_id": record.feature_id},
    )
    return record


def get_spec_record(spec_id: str) -> SpecRecord | None:
    store = get_store()
    with store.lock:
        return store.specs.get(spec_id)


def require_spec_record(spec_id: str) -> SpecRecord:
    """
    Raises:
        NotFoundError: If no version has this id
    """
    record = get_spec_record(spec_id)
    if record is None:
        raise NotFoundError(f"Spec {spec_id} not found")
    return record


def list_spec_versions(feature_id: str) -> list[SpecRecord]:
    """All versions of a feature's spec, oldest first."""
    store = get_store()
    with store.lock:
        records = [r for r in store.specs.values() if r.feature_id == feature_id]
    return sorted(records, key=_version_key)


def get_latest_spec(feature_id: str, approved_only: bool = False) -> SpecRecord | None:
    records = list_spec_versions(feature_id)
    if approved_only:
        records = [r for r in records if r.spec.approved]
    return records[-1] if records else None


def mark_spec_approved(spec_id: str, approved_spec: ExecutableSpec, approved_at: datetime) -> SpecRecord:
    """
    Replace a stored version with its approved copy.

    The hash must not change; approval only flips the flag.

    Raises:
        NotFoundError: If no version has this id
        ValueError: If approved_spec is not an approved copy of the stored spec
    """
    store = get_store()
    with store.lock:
        record = store.specs.get(spec_id)
        if record is None:
            raise NotFoundError(f"Spec {spec_id} not found")
        if approved_spec.hash != record.spec.hash or not approved_spec.approved:
            raise ValueError(f"Approved copy of {spec_id} does not match the stored version")
        record = record.model_copy(update={"spec": approved_spec, "approved_at": approved_at})
        store.specs[spec_id] = record
        return record


def save_simulation(spec_id: str, simulation: SimulationResult) -> SpecRecord:
    """
    Attach the latest simulation result to a version.

    Raises:
        NotFoundError: If no version has this id
    """
    store = get_store()
    with store.lock:
        record = store.specs.get(spec_id)
        if record is None:
            raise NotFoundError(f"Spec {spec_id} not found")
        record = record.model_copy(update={"simulation": simulation})
        store.specs[spec_id] = record
        return record
