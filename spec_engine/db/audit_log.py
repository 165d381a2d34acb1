"""Audit log operations."""

import uuid

from spec_engine.core.logging import get_logger
from spec_engine.core.schemas_engine import AuditEntry
from spec_engine.core.schemas_spec import AuditStep
from spec_engine.db.store import get_store

logger = get_logger(__name__)


def record_audit_entry(
    run_id: str,
    agent_name: str,
    action: str,
    observation: str = "",
    feature_id: str | None = None,
    status: str = "done",
    warnings: list[str] | None = None,
) -> AuditEntry:
    """
    Append one audit entry.

    Args:
        run_id: Run (or ingest) tracking id
        agent_name: Component that acted (e.g., "ContextHarvester", "Chunker")
        action: What it did (stage name or "ingest")
        observation: Human-readable outcome
        feature_id: Optional feature the entry belongs to
        status: done, degraded or error
        warnings: Optional warnings raised while acting

    Returns:
        Stored AuditEntry
    """
    entry = AuditEntry(
        id=str(uuid.uuid4()),
        run_id=run_id,
        feature_id=feature_id,
        agent_name=agent_name,
        action=action,
        observation=observation,
        status=status,
        warnings=list(warnings or []),
    )
    store = get_store()
    with store.lock:
        store.audit_log.append(entry)
    return entry


def record_steps(run_id: str, steps: list[AuditStep], feature_id: str | None = None) -> list[AuditEntry]:
    """One entry per stage of a generation run."""
    return [
        record_audit_entry(
            run_id=run_id,
            agent_name=step.agent_name,
            action=step.stage_name,
            observation=step.observation,
            feature_id=feature_id,
            status=step.status.value,
            warnings=step.warnings,
        )
        for step in steps
    ]


def list_audit_entries(run_id: str | None = None, feature_id: str | None = None) -> list[AuditEntry]:
    """Entries in write order, optionally filtered."""
    store = get_store()
    with store.lock:
        entries = list(store.audit_log)

    if run_id is not None:
        entries = [e for e in entries if e.run_id == run_id]
    if feature_id is not None:
        entries = [e for e in entries if e.feature_id == feature_id]
    return entries
