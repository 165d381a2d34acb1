"""End-to-end tests for the engine service with a scripted reasoner."""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from spec_engine.core.errors import (
    ApprovalBlockedError,
    EmptyContentError,
    GenerationFailedError,
    NotFoundError,
    ReasoningCallError,
    SpecLockedError,
    StructuralValidationError,
    VersionConflictError,
)
from spec_engine.core.schemas_engine import FeatureStatus
from spec_engine.core.schemas_sources import RawSource
from spec_engine.core.schemas_spec import StepStatus, StructureValidation
from spec_engine.db import audit_log
from spec_engine.db import specs as specs_db
from spec_engine.db.store import get_store
from spec_engine.services import spec_service
from tests.fakes.fake_reasoner import ScriptedReasoner
from tests.fixtures_specs import (
    CHAT_SNIPPET,
    CHAT_THREAD,
    FEATURE_DESCRIPTION,
    FEATURE_NAME,
    FULL_VERIFICATION_RESPONSE,
    TICKET_SNIPPET,
    TICKET_TEXT,
)


@pytest.fixture
def feature():
    """Bulk-archive feature with a chat thread and a ticket ingested."""
    feature = spec_service.create_feature(FEATURE_NAME, FEATURE_DESCRIPTION)
    spec_service.ingest(RawSource(source_type="slack", content=CHAT_THREAD), feature_id=feature.id)
    spec_service.ingest(RawSource(source_type="jira", content=TICKET_TEXT), feature_id=feature.id)
    return feature


@pytest.fixture
def full_reasoner():
    """Reasoner whose scenarios cover every constraint."""
    return ScriptedReasoner({"GherkinWriter": FULL_VERIFICATION_RESPONSE})


class TestFeatures:
    def test_create_and_resolve(self):
        created = spec_service.create_feature("  Bulk   archive ", "desc")

        assert created.name == "Bulk archive"
        assert spec_service.resolve_feature(created.id) == created
        assert spec_service.resolve_feature("bulk ARCHIVE") == created
        assert spec_service.resolve_feature("archive") == created

    def test_duplicate_name_rejected(self):
        spec_service.create_feature(FEATURE_NAME)

        with pytest.raises(ValueError):
            spec_service.create_feature(FEATURE_NAME.upper())

    def test_unknown_feature(self):
        with pytest.raises(NotFoundError):
            spec_service.resolve_feature("nothing like this")

    def test_slug_collision_rejected(self):
        spec_service.create_feature("Bulk archive")

        with pytest.raises(ValueError, match="collides"):
            spec_service.create_feature("Bulk-archive")
        with pytest.raises(ValueError, match="collides"):
            spec_service.create_feature("bulk_archive")

    def test_get_or_create_matches_by_slug(self):
        existing = spec_service.create_feature("Bulk archive")

        assert spec_service.get_or_create_feature("bulk_archive").id == existing.id

    def test_get_or_create_reuses(self):
        first = spec_service.get_or_create_feature(FEATURE_NAME)

        assert spec_service.get_or_create_feature(FEATURE_NAME.lower()).id == first.id

    def test_list_with_search_and_status(self, feature, reasoner):
        spec_service.create_feature("Dark mode", "Theme for the billing page")
        spec_service.generate(feature.id, reasoner=reasoner)

        names = [f.name for f in spec_service.list_features(search="billing")]
        drafts = spec_service.list_features(status="draft")

        assert names == ["Dark mode"]
        assert [f.name for f in drafts] == [FEATURE_NAME]
        assert drafts[0].chunk_count == 7
        assert drafts[0].latest_version == "1.0.0"

    def test_invalid_status_filter(self):
        with pytest.raises(ValueError):
            spec_service.list_features(status="shipped")


class TestIngest:
    def test_chunks_embedded_and_stored(self):
        feature = spec_service.create_feature(FEATURE_NAME)

        result = spec_service.ingest(RawSource(source_type="jira", content=TICKET_TEXT), feature.id)

        assert result.chunk_count == 4
        assert len(result.chunk_ids) == 4
        assert result.credibility == pytest.approx(0.80)
        summary = spec_service.summarize_feature(feature)
        assert summary.chunk_count == 4
        assert summary.status == FeatureStatus.NO_SPEC

    def test_unknown_feature_rejected(self):
        with pytest.raises(NotFoundError):
            spec_service.ingest(RawSource(source_type="chat", content=CHAT_THREAD), "missing")

    def test_empty_content_rejected(self):
        with pytest.raises(EmptyContentError):
            spec_service.ingest(RawSource(source_type="chat", content="   "))

    def test_ingest_is_audited(self):
        result = spec_service.ingest(RawSource(source_type="chat", content=CHAT_THREAD))

        entries = audit_log.list_audit_entries()
        assert [(e.agent_name, e.action) for e in entries] == [("Chunker", "ingest")]
        assert str(result.chunk_count) in entries[0].observation


class TestGenerate:
    def test_chat_and_ticket_produce_grounded_spec(self, feature, reasoner):
        result = spec_service.generate(feature.id, reasoner=reasoner)
        layers = result.spec.layers

        assert result.spec.id == "spec-bulk-archive-v1.0.0"
        assert [p.snippet for p in layers.context_pointers] == [CHAT_SNIPPET, TICKET_SNIPPET]
        critical = [c for c in layers.constraints if c.severity == "critical"]
        assert len(critical) == 1
        assert "permission" in critical[0].rule
        assert "skips the permission checks" in critical[0].source
        assert result.validation.valid is True
        assert result.approved is False
        assert result.review.blockers

    def test_full_coverage_recommends_approval(self, feature, full_reasoner):
        result = spec_service.generate(feature.id, reasoner=full_reasoner)

        assert result.approved is True
        assert result.simulation.coverage_score == pytest.approx(100.0)
        assert result.simulation.contradictions == []
        assert result.simulation.passed is True

    def test_versions_increment_per_run(self, feature, reasoner):
        versions = [spec_service.generate(feature.id, reasoner=reasoner).spec.version for _ in range(6)]

        assert versions == ["1.0.0", "1.0.1", "1.0.2", "1.0.3", "1.0.4", "1.0.5"]
        assert spec_service.latest_spec_for(feature.id).spec.version == "1.0.5"

    def test_no_context_raises(self, reasoner):
        feature = spec_service.create_feature(FEATURE_NAME)

        with pytest.raises(NotFoundError):
            spec_service.generate(feature.id, reasoner=reasoner)

    def test_unknown_feature_raises(self, reasoner):
        with pytest.raises(NotFoundError):
            spec_service.generate("missing", reasoner=reasoner)

    def test_override_replaces_stored_context(self, reasoner):
        feature = spec_service.create_feature(FEATURE_NAME, FEATURE_DESCRIPTION)

        result = spec_service.generate(
            feature.id, raw_context_override=f"{CHAT_THREAD}\n\n{TICKET_TEXT}", reasoner=reasoner
        )

        assert result.spec.version == "1.0.0"
        assert len(result.spec.layers.context_pointers) == 2
        assert spec_service.summarize_feature(feature).chunk_count == 0

    def test_concurrent_runs_get_distinct_versions(self, feature, reasoner):
        with ThreadPoolExecutor(max_workers=4) as executor:
            results = list(
                executor.map(lambda _: spec_service.generate(feature.id, reasoner=reasoner), range(4))
            )

        versions = sorted(r.spec.version for r in results)
        assert versions == ["1.0.0", "1.0.1", "1.0.2", "1.0.3"]
        assert len(specs_db.list_spec_versions(feature.id)) == 4

    def test_quality_kept_with_version(self, feature, full_reasoner):
        result = spec_service.generate(feature.id, reasoner=full_reasoner)

        stored = spec_service.get_spec(result.spec.id)
        assert stored.quality == result.quality
        assert stored.simulation == result.simulation
        assert result.quality.grounding_score == 100
        assert result.quality.gherkin_valid is True

    def test_structurally_invalid_spec_is_not_stored(self, feature, reasoner):
        invalid = StructureValidation(valid=False, errors=["Constraint C1 is missing a source citation"])

        with patch("spec_engine.services.spec_service.validate_structure", return_value=invalid):
            with pytest.raises(StructuralValidationError) as exc_info:
                spec_service.generate(feature.id, reasoner=reasoner)

        assert exc_info.value.errors == invalid.errors
        assert specs_db.list_spec_versions(feature.id) == []
        compile_entry = audit_log.list_audit_entries(feature_id=feature.id)[-1]
        assert (compile_entry.action, compile_entry.status) == ("compile", StepStatus.ERROR.value)

    def test_run_is_audited(self, feature, reasoner):
        result = spec_service.generate(feature.id, reasoner=reasoner)

        entries = audit_log.list_audit_entries(run_id=result.run_id)
        assert [e.agent_name for e in entries] == [
            "ContextHarvester",
            "SpecDraft",
            "ConstraintExtractor",
            "GherkinWriter",
            "AdversaryReview",
            "SpecCompiler",
        ]
        assert all(e.feature_id == feature.id for e in entries)

    def test_failed_run_keeps_trace_and_stores_nothing(self, feature):
        reasoner = ScriptedReasoner({"SpecDraft": ReasoningCallError("provider down")})

        with pytest.raises(GenerationFailedError) as exc_info:
            spec_service.generate(feature.id, reasoner=reasoner)

        assert exc_info.value.stage == "draft"
        statuses = [e.status for e in audit_log.list_audit_entries(feature_id=feature.id) if e.action != "ingest"]
        assert statuses == [StepStatus.DONE.value, StepStatus.ERROR.value]
        assert specs_db.list_spec_versions(feature.id) == []


class TestApprove:
    def test_blockers_refuse_approval(self, feature, reasoner):
        spec_id = spec_service.generate(feature.id, reasoner=reasoner).spec.id

        with pytest.raises(ApprovalBlockedError) as exc_info:
            spec_service.approve(spec_id)

        assert exc_info.value.blockers[0].startswith("constraints[1]: Critical constraint C2")
        assert spec_service.get_spec(spec_id).spec.approved is False

    def test_approve_locks_and_is_idempotent(self, feature, full_reasoner):
        spec = spec_service.generate(feature.id, reasoner=full_reasoner).spec

        first = spec_service.approve(spec.id)
        second = spec_service.approve(spec.id)

        assert first.locked is True
        assert first.hash == spec.hash
        assert second.hash == first.hash
        assert second.approved_at == first.approved_at
        assert spec_service.get_spec(spec.id).spec.approved is True
        assert spec_service.feature_status(feature.id) == FeatureStatus.APPROVED

    def test_regenerating_after_approval_creates_new_version(self, feature, full_reasoner):
        approved = spec_service.generate(feature.id, reasoner=full_reasoner).spec
        spec_service.approve(approved.id)

        regenerated = spec_service.generate(feature.id, reasoner=full_reasoner).spec

        assert regenerated.version == "1.0.1"
        assert regenerated.approved is False
        assert spec_service.get_spec(approved.id).spec.hash == approved.hash
        assert spec_service.feature_status(feature.id) == FeatureStatus.APPROVED

    def test_approved_version_cannot_be_overwritten(self, feature, full_reasoner):
        spec_id = spec_service.generate(feature.id, reasoner=full_reasoner).spec.id
        spec_service.approve(spec_id)
        record = spec_service.get_spec(spec_id)

        with pytest.raises(SpecLockedError):
            specs_db.insert_spec_version(record)

    def test_stored_draft_cannot_be_replaced(self, feature, reasoner):
        spec_id = spec_service.generate(feature.id, reasoner=reasoner).spec.id
        record = spec_service.get_spec(spec_id)

        with pytest.raises(VersionConflictError):
            specs_db.insert_spec_version(record.model_copy(update={"run_id": "other-run"}))

        assert spec_service.get_spec(spec_id).run_id == record.run_id

    def test_colliding_feature_cannot_take_spec_id(self, feature, reasoner):
        spec_id = spec_service.generate(feature.id, reasoner=reasoner).spec.id
        record = spec_service.get_spec(spec_id)

        with pytest.raises(VersionConflictError):
            specs_db.insert_spec_version(record.model_copy(update={"feature_id": "another-feature"}))

        assert [r.spec.id for r in specs_db.list_spec_versions(feature.id)] == [spec_id]

    def test_structural_failure_refuses_approval(self, feature, full_reasoner):
        spec_id = spec_service.generate(feature.id, reasoner=full_reasoner).spec.id
        record = spec_service.get_spec(spec_id)
        tampered = record.model_copy(update={"spec": record.spec.model_copy(update={"hash": "0" * 64})})
        get_store().specs[spec_id] = tampered

        with pytest.raises(StructuralValidationError) as exc_info:
            spec_service.approve(spec_id)

        assert any(e.startswith("Hash mismatch") for e in exc_info.value.errors)

    def test_unknown_spec(self):
        with pytest.raises(NotFoundError):
            spec_service.approve("spec-nope-v1.0.0")

    def test_approval_is_audited(self, feature, full_reasoner):
        spec_id = spec_service.generate(feature.id, reasoner=full_reasoner).spec.id

        spec_service.approve(spec_id)

        actions = [e.action for e in audit_log.list_audit_entries(feature_id=feature.id)]
        assert actions[-1] == "approve"


class TestSimulateAndExport:
    def test_simulate_by_id_stores_result(self, feature, full_reasoner):
        spec_id = spec_service.generate(feature.id, reasoner=full_reasoner).spec.id

        result = spec_service.simulate_by_id(spec_id)

        assert result.spec_id == spec_id
        assert spec_service.get_spec(spec_id).simulation == result

    def test_export_formats(self, feature, full_reasoner):
        spec_id = spec_service.generate(feature.id, reasoner=full_reasoner).spec.id

        assert spec_service.export(spec_id, "gherkin").startswith("Feature: Bulk archive projects")
        assert spec_service.export(spec_id, "markdown").startswith("# Bulk archive projects")
        assert f'"id": "{spec_id}"' in spec_service.export(spec_id)

    def test_export_unknown_spec(self):
        with pytest.raises(NotFoundError):
            spec_service.export("spec-nope-v1.0.0", "json")
