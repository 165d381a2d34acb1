"""Tests for the five reasoning-stage chains with a scripted reasoner."""

import json

import pytest

from spec_engine.chains.adversary_review import UNPARSEABLE_REVIEW, adversary_review
from spec_engine.chains.draft_spec import FALLBACK_OBJECTIVE, draft_spec
from spec_engine.chains.extract_constraints import (
    DEFAULT_CRITICAL_RULE,
    extract_constraints,
    finalize_constraints,
)
from spec_engine.chains.harvest_context import harvest_context
from spec_engine.chains.write_verification import finalize_scenarios, write_verification
from spec_engine.core.chunking import chunk_source
from spec_engine.core.embeddings import fallback_embedding
from spec_engine.core.errors import ReasoningCallError
from spec_engine.core.grounding import UNCITED_SOURCE
from spec_engine.core.schemas_sources import HarvestedContext, RankedChunk, RawSource
from spec_engine.core.schemas_spec import (
    Constraint,
    ConstraintDraft,
    Narrative,
    ScenarioDraft,
    StepStatus,
    VerificationScenario,
)
from tests.fakes.fake_reasoner import ScriptedReasoner
from tests.fixtures_specs import (
    CHAT_SNIPPET,
    CHAT_THREAD,
    FEATURE_DESCRIPTION,
    FEATURE_NAME,
    HAPPY_SCENARIO,
    PERMISSION_SCENARIO,
    TICKET_SNIPPET,
    TICKET_TEXT,
)

NARRATIVE = Narrative(
    title="Bulk archive projects",
    objective="Let workspace admins archive up to 100 projects in one action",
    rationale="Admins archive projects one at a time today",
)


def _fixture_chunks():
    chunks = chunk_source(RawSource(source_type="chat", content=CHAT_THREAD))
    chunks += chunk_source(RawSource(source_type="ticket", content=TICKET_TEXT))
    return [c.model_copy(update={"embedding": fallback_embedding(c.content)}) for c in chunks]


def _harvested(chunks=None):
    chunks = _fixture_chunks() if chunks is None else chunks
    return HarvestedContext(
        summary="Admins want bulk archive",
        chunks=[
            RankedChunk(
                chunk=c, vector_score=0.5, temporal_score=0.8, credibility=0.8, final_score=0.32
            )
            for c in chunks
        ],
    )


def _constraints():
    return [
        Constraint(
            id="C1",
            rule="DO NOT archive more than 100 projects in a single request",
            severity="warning",
            source="ticket",
        ),
        Constraint(
            id="C2",
            rule="DO NOT bypass permission checks: enforce authorization on every affected item",
            severity="critical",
            source="ticket (Comments)",
        ),
    ]


def _scenarios(*drafts):
    return [VerificationScenario(id=f"V{i}", **d) for i, d in enumerate(drafts, start=1)]


class TestHarvestContext:
    def test_ranks_and_synthesizes(self, reasoner):
        query = f"{FEATURE_NAME}\n{FEATURE_DESCRIPTION}"

        harvested, step = harvest_context(query, _fixture_chunks(), reasoner)

        assert step.status == StepStatus.DONE
        assert step.agent_name == "ContextHarvester"
        assert len(harvested.key_insights) == 3
        assert harvested.primary_sources[0].relevance == pytest.approx(0.9)
        assert harvested.chunks
        assert reasoner.agents_called() == ["ContextHarvester"]
        assert "Bulk archive projects" in reasoner.calls[0][1]

    def test_inline_context_in_prompt(self, reasoner):
        harvest_context("bulk archive", _fixture_chunks(), reasoner, raw_context="Inline note here")

        assert "Inline note here" in reasoner.calls[0][1]

    def test_malformed_keeps_raw_summary(self):
        raw = "The context says many things " * 40
        reasoner = ScriptedReasoner({"ContextHarvester": raw})

        harvested, step = harvest_context("bulk archive", _fixture_chunks(), reasoner)

        assert step.status == StepStatus.DEGRADED
        assert harvested.summary == raw[:500]
        assert harvested.key_insights == []
        assert harvested.primary_sources == []

    def test_no_candidates_still_calls_reasoner(self, reasoner):
        harvested, step = harvest_context("bulk archive", [], reasoner)

        assert harvested.chunks == []
        assert "(No relevant context found)" in reasoner.calls[0][1]

    def test_reasoning_failure_propagates(self):
        reasoner = ScriptedReasoner({"ContextHarvester": ReasoningCallError("down")})

        with pytest.raises(ReasoningCallError):
            harvest_context("bulk archive", _fixture_chunks(), reasoner)


class TestDraftSpec:
    def test_grounded_pointers_kept_and_ungrounded_dropped(self, reasoner):
        (narrative, pointers), step = draft_spec(FEATURE_NAME, _harvested(), reasoner)

        assert narrative.title == "Bulk archive projects"
        assert [p.snippet for p in pointers] == [CHAT_SNIPPET, TICKET_SNIPPET]
        assert all(p.chunk_id for p in pointers)
        assert step.status == StepStatus.DONE
        assert len(step.warnings) == 1
        assert "dark mode" in step.warnings[0]

    def test_inline_context_grounds_pointer(self):
        response = json.dumps(
            {
                "narrative": {"title": "Dark mode", "objective": "Ship dark mode"},
                "context_pointers": [
                    {"source": "inline", "snippet": "Customers demanded a dark mode for the billing page."}
                ],
            }
        )
        reasoner = ScriptedReasoner({"SpecDraft": response})
        raw = "Customers demanded a dark mode for the billing page. It is a top request."

        (_, pointers), _ = draft_spec("Dark mode", _harvested([]), reasoner, raw_context=raw)

        assert len(pointers) == 1
        assert pointers[0].chunk_id is None

    def test_blank_title_replaced_by_feature_name(self):
        response = json.dumps({"narrative": {"title": " ", "objective": "Do it"}})
        reasoner = ScriptedReasoner({"SpecDraft": response})

        (narrative, _), _ = draft_spec(FEATURE_NAME, _harvested(), reasoner)

        assert narrative.title == FEATURE_NAME

    def test_malformed_uses_placeholder(self):
        reasoner = ScriptedReasoner({"SpecDraft": "I could not write JSON today"})

        (narrative, pointers), step = draft_spec(FEATURE_NAME, _harvested(), reasoner)

        assert narrative.title == FEATURE_NAME
        assert narrative.objective == FALLBACK_OBJECTIVE
        assert pointers == []
        assert step.status == StepStatus.DEGRADED


class TestExtractConstraints:
    def test_caveat_becomes_cited_critical_rule(self, reasoner):
        constraints, step = extract_constraints(NARRATIVE, _harvested(), reasoner)

        assert [c.id for c in constraints] == ["C1", "C2"]
        assert constraints[0].severity == "warning"
        assert constraints[0].source not in ("", UNCITED_SOURCE)
        assert constraints[1].severity == "critical"
        assert "permission" in constraints[1].rule
        assert constraints[1].source.startswith("ticket (Comments)")
        assert "skips the permission checks" in constraints[1].rationale
        assert step.observation == "Extracted 2 constraints (1 critical)"

    def test_existing_access_rule_not_duplicated(self):
        drafts = [
            ConstraintDraft(
                rule="DO enforce permission checks on every archived project",
                severity="critical",
                source="ticket",
            )
        ]

        constraints, _ = finalize_constraints(drafts, _harvested())

        assert len(constraints) == 1

    def test_generic_critical_rule_when_none_extracted(self):
        drafts = [ConstraintDraft(rule="DO show a toast after archiving", severity="info")]

        constraints, warnings = finalize_constraints(drafts, _harvested([]))

        assert constraints[0].source == UNCITED_SOURCE
        assert constraints[1].rule == DEFAULT_CRITICAL_RULE
        assert constraints[1].severity == "critical"
        assert any("generic critical rule" in w for w in warnings)

    def test_blank_rules_dropped(self):
        drafts = [ConstraintDraft(rule="  ", severity="critical"), ConstraintDraft(rule="DO x", severity="critical")]

        constraints, _ = finalize_constraints(drafts, _harvested([]))

        assert [c.rule for c in constraints] == ["DO x"]

    def test_malformed_still_has_critical_rule(self):
        reasoner = ScriptedReasoner({"ConstraintExtractor": "{broken"})

        constraints, step = extract_constraints(NARRATIVE, _harvested(), reasoner)

        assert step.status == StepStatus.DEGRADED
        assert any(c.severity == "critical" for c in constraints)
        assert constraints[0].id == "C1"


class TestWriteVerification:
    def test_scenarios_get_ids_and_coverage_warning(self, reasoner):
        scenarios, step = write_verification(NARRATIVE, _constraints(), reasoner)

        assert [s.id for s in scenarios] == ["V1"]
        assert scenarios[0].covers == ["C1"]
        assert step.warnings == ["Critical constraint C2 has no covering scenario"]

    def test_unknown_covers_replaced_by_inferred(self):
        draft = ScenarioDraft(**{**HAPPY_SCENARIO, "covers": ["C9"]})

        scenarios, _ = finalize_scenarios([draft], _constraints())

        assert scenarios[0].covers == ["C1"]

    def test_truncated_to_six(self):
        drafts = [ScenarioDraft(scenario=f"Case {i}", when=["x"], then=["y"]) for i in range(8)]

        scenarios, warnings = finalize_scenarios(drafts, [])

        assert [s.id for s in scenarios][-1] == "V6"
        assert "Truncated 8 scenarios to 6" in warnings

    def test_malformed_uses_happy_path(self):
        reasoner = ScriptedReasoner({"GherkinWriter": "nope"})

        scenarios, step = write_verification(NARRATIVE, _constraints(), reasoner)

        assert [s.scenario for s in scenarios] == ["Basic happy path"]
        assert step.status == StepStatus.DEGRADED
        assert "Critical constraint C2 has no covering scenario" in step.warnings

    def test_empty_scenarios_treated_as_malformed(self):
        reasoner = ScriptedReasoner({"GherkinWriter": json.dumps({"scenarios": []})})

        scenarios, step = write_verification(NARRATIVE, _constraints(), reasoner)

        assert scenarios[0].id == "V1"
        assert step.status == StepStatus.DEGRADED


class TestAdversaryReview:
    def test_uncovered_critical_is_blocker(self, reasoner):
        review, step = adversary_review(
            NARRATIVE, [], _constraints(), _scenarios(HAPPY_SCENARIO), reasoner
        )

        assert review.approval_recommended is False
        assert len(review.blockers) == 1
        assert review.blockers[0].location == "constraints[1]"
        assert "C2" in review.blockers[0].description
        assert "1 blockers" in step.observation

    def test_full_coverage_recommends_approval(self, reasoner):
        review, _ = adversary_review(
            NARRATIVE, [], _constraints(), _scenarios(HAPPY_SCENARIO, PERMISSION_SCENARIO), reasoner
        )

        assert review.approval_recommended is True
        assert review.blockers == []
        assert review.findings[0].severity == "suggestion"

    def test_reasoner_approval_flag_is_recomputed(self):
        response = json.dumps({"approval_recommended": False, "findings": []})
        reasoner = ScriptedReasoner({"AdversaryReview": response})

        review, _ = adversary_review(
            NARRATIVE, [], _constraints(), _scenarios(HAPPY_SCENARIO, PERMISSION_SCENARIO), reasoner
        )

        assert review.approval_recommended is True

    def test_reasoner_blocker_refuses_approval(self):
        response = json.dumps(
            {
                "approval_recommended": True,
                "findings": [
                    {"severity": "blocker", "category": "security", "description": "No audit trail"}
                ],
            }
        )
        reasoner = ScriptedReasoner({"AdversaryReview": response})

        review, _ = adversary_review(
            NARRATIVE, [], _constraints(), _scenarios(HAPPY_SCENARIO, PERMISSION_SCENARIO), reasoner
        )

        assert review.approval_recommended is False

    def test_scenario_without_then_is_warning(self, reasoner):
        incomplete = {**HAPPY_SCENARIO, "then": []}

        review, _ = adversary_review(
            NARRATIVE, [], _constraints(), _scenarios(incomplete, PERMISSION_SCENARIO), reasoner
        )

        assert any(f.severity == "warning" and f.location == "verification[0]" for f in review.findings)

    def test_malformed_blocks_approval(self):
        reasoner = ScriptedReasoner({"AdversaryReview": "looks fine to me"})

        review, step = adversary_review(
            NARRATIVE, [], _constraints(), _scenarios(HAPPY_SCENARIO, PERMISSION_SCENARIO), reasoner
        )

        assert review.approval_recommended is False
        assert review.blockers[0].description == UNPARSEABLE_REVIEW
        assert step.status == StepStatus.DEGRADED
