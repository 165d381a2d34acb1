"""Tests for tool definitions and the tool dispatcher."""

from unittest.mock import patch

import pytest

from spec_engine.services import spec_service
from spec_engine.tools import execute_tool, get_tool_definitions
from tests.fakes.fake_reasoner import ScriptedReasoner
from tests.fixtures_specs import CHAT_THREAD, FEATURE_NAME, FULL_VERIFICATION_RESPONSE, TICKET_TEXT

TOOL_NAMES = [
    "fetch_spec",
    "ingest_context",
    "generate_spec",
    "list_features",
    "get_constraints",
    "run_simulation",
]


@pytest.fixture
def full_reasoner():
    reasoner = ScriptedReasoner({"GherkinWriter": FULL_VERIFICATION_RESPONSE})
    with patch("spec_engine.services.spec_service.get_reasoning_client", return_value=reasoner):
        yield reasoner


def _ingest_fixture_context():
    execute_tool(
        "ingest_context",
        {"source_type": "slack", "content": CHAT_THREAD, "feature_name": FEATURE_NAME},
    )
    execute_tool(
        "ingest_context",
        {"source_type": "ticket", "content": TICKET_TEXT, "feature_name": FEATURE_NAME},
    )


class TestToolDefinitions:
    def test_all_tools_defined(self):
        definitions = get_tool_definitions()

        assert [d["name"] for d in definitions] == TOOL_NAMES
        for definition in definitions:
            assert definition["description"]
            assert definition["input_schema"]["type"] == "object"

    def test_required_inputs(self):
        schemas = {d["name"]: d["input_schema"] for d in get_tool_definitions()}

        assert schemas["ingest_context"]["required"] == ["source_type", "content", "feature_name"]
        assert schemas["run_simulation"]["required"] == ["spec_id"]
        assert "slack" in schemas["ingest_context"]["properties"]["source_type"]["enum"]


class TestDispatcher:
    def test_unknown_tool(self):
        result = execute_tool("launch_rocket", {})

        assert result["code"] == "unknown_tool"

    def test_missing_input(self):
        result = execute_tool("fetch_spec", {})

        assert result == {"error": "feature_name required", "code": "invalid_input"}

    def test_unknown_feature(self):
        result = execute_tool("fetch_spec", {"feature_name": "nothing like this"})

        assert result["code"] == "not_found"

    def test_invalid_source_type(self):
        result = execute_tool(
            "ingest_context",
            {"source_type": "fax", "content": CHAT_THREAD, "feature_name": FEATURE_NAME},
        )

        assert result["code"] == "invalid_input"

    def test_empty_content(self):
        result = execute_tool(
            "ingest_context",
            {"source_type": "chat", "content": "ok", "feature_name": FEATURE_NAME},
        )

        assert result["code"] == "empty_content"

    def test_unexpected_error_is_internal(self):
        with patch("spec_engine.tools.handlers.spec_service.list_features", side_effect=RuntimeError("boom")):
            result = execute_tool("list_features", {})

        assert result == {"error": "boom", "code": "internal_error"}


class TestIngestContextTool:
    def test_creates_feature_and_stores_chunks(self):
        result = execute_tool(
            "ingest_context",
            {
                "source_type": "slack",
                "content": CHAT_THREAD,
                "feature_name": FEATURE_NAME,
                "source_url": "https://chat.example.com/t/1",
            },
        )

        assert result["status"] == "success"
        assert result["source_type"] == "chat"
        assert result["chunk_count"] == 3
        feature = spec_service.resolve_feature(FEATURE_NAME)
        assert feature.description == "Context from slack"
        assert result["feature_id"] == feature.id

    def test_reuses_existing_feature(self):
        _ingest_fixture_context()

        features = execute_tool("list_features", {})

        assert features["total"] == 1
        assert features["features"][0]["chunk_count"] == 7

    def test_slug_variant_reuses_existing_feature(self):
        _ingest_fixture_context()
        execute_tool(
            "ingest_context",
            {"source_type": "slack", "content": CHAT_THREAD, "feature_name": "bulk_archive"},
        )

        features = execute_tool("list_features", {})

        assert features["total"] == 1
        assert features["features"][0]["name"] == FEATURE_NAME


class TestGenerateAndFetchTools:
    def test_generate_then_fetch(self, full_reasoner):
        _ingest_fixture_context()

        generated = execute_tool("generate_spec", {"feature_name": FEATURE_NAME})
        fetched = execute_tool("fetch_spec", {"feature_name": "bulk"})

        assert generated["status"] == "success"
        assert generated["approval_recommended"] is True
        assert generated["blockers"] == []
        assert generated["simulation_passed"] is True
        assert fetched["status"] == "draft"
        assert fetched["spec"]["id"] == generated["spec"]["id"]
        assert fetched["review"]["approval_recommended"] is True
        assert fetched["quality"]["overall_score"] == generated["quality_score"]

    def test_generate_without_context(self, full_reasoner):
        spec_service.create_feature(FEATURE_NAME)

        result = execute_tool("generate_spec", {"feature_name": FEATURE_NAME})

        assert result["code"] == "not_found"

    def test_description_used_as_inline_context(self, full_reasoner):
        spec_service.create_feature(FEATURE_NAME)

        result = execute_tool(
            "generate_spec",
            {"feature_name": FEATURE_NAME, "description": f"{CHAT_THREAD}\n\n{TICKET_TEXT}"},
        )

        assert result["status"] == "success"
        assert result["spec"]["version"] == "1.0.0"

    def test_fetch_without_spec(self):
        _ingest_fixture_context()

        result = execute_tool("fetch_spec", {"feature_name": FEATURE_NAME})

        assert result["status"] == "no_spec"
        assert result["spec"] is None
        assert result["chunk_count"] == 7


class TestConstraintAndSimulationTools:
    def test_get_constraints_prefers_approved(self, full_reasoner):
        _ingest_fixture_context()
        first = execute_tool("generate_spec", {"feature_name": FEATURE_NAME})
        spec_service.approve(first["spec"]["id"])
        execute_tool("generate_spec", {"feature_name": FEATURE_NAME})

        result = execute_tool("get_constraints", {"feature_name": FEATURE_NAME})

        assert result["spec_id"] == first["spec"]["id"]
        assert result["approved"] is True
        assert result["constraint_count"] == 2
        assert [c["id"] for c in result["constraints"]] == ["C1", "C2"]

    def test_get_constraints_falls_back_to_latest_draft(self, full_reasoner):
        _ingest_fixture_context()
        execute_tool("generate_spec", {"feature_name": FEATURE_NAME})
        second = execute_tool("generate_spec", {"feature_name": FEATURE_NAME})

        result = execute_tool("get_constraints", {"feature_name": FEATURE_NAME})

        assert result["spec_id"] == second["spec"]["id"]
        assert result["approved"] is False

    def test_get_constraints_without_spec(self):
        _ingest_fixture_context()

        result = execute_tool("get_constraints", {"feature_name": FEATURE_NAME})

        assert result["code"] == "not_found"

    def test_run_simulation(self, full_reasoner):
        _ingest_fixture_context()
        spec_id = execute_tool("generate_spec", {"feature_name": FEATURE_NAME})["spec"]["id"]

        result = execute_tool("run_simulation", {"spec_id": spec_id})

        assert result["spec_id"] == spec_id
        assert result["simulation"]["passed"] is True
        assert result["message"].startswith("Simulation passed")

    def test_run_simulation_unknown_spec(self):
        result = execute_tool("run_simulation", {"spec_id": "spec-nope-v1.0.0"})

        assert result["code"] == "not_found"
