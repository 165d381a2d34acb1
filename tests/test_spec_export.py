"""Tests for spec export formats."""

import json

import pytest

from spec_engine.core.spec_compiler import mark_approved
from spec_engine.core.spec_export import (
    ExportFormat,
    export_gherkin,
    export_json,
    export_markdown,
    export_spec,
    validate_gherkin,
)
from tests.fixtures_specs import build_spec


class TestExportJson:
    def test_round_trips_envelope_and_layers(self):
        spec = build_spec()

        data = json.loads(export_json(spec))

        assert list(data) == ["id", "feature", "version", "hash", "approved", "layers"]
        assert data["hash"] == spec.hash
        assert [c["id"] for c in data["layers"]["constraints"]] == ["C1", "C2"]


class TestExportMarkdown:
    def test_sections_in_layer_order(self):
        text = export_markdown(build_spec())

        headings = [line for line in text.splitlines() if line.startswith("## ")]
        assert text.startswith("# Bulk archive projects\n")
        assert headings == [
            "## Objective",
            "## Rationale",
            "## Context",
            "## Constraints",
            "## Verification",
        ]

    def test_constraints_and_scenarios_rendered(self):
        text = export_markdown(build_spec())

        assert "- **C2** [CRITICAL] DO NOT bypass permission checks" in text
        assert "### V1: Archive selected projects (covers C1)" in text
        assert "Given Admin is on the projects list\nAnd Admin selected 3 projects" in text

    def test_status_line(self):
        spec = build_spec()

        assert "(Draft)" in export_markdown(spec)
        assert "(Approved)" in export_markdown(mark_approved(spec))


class TestExportGherkin:
    def test_feature_and_tagged_scenarios(self):
        text = export_gherkin(build_spec())
        lines = text.splitlines()

        assert lines[0] == "Feature: Bulk archive projects"
        assert "  @C2" in lines
        assert "  Scenario: Reject archive of a shared project without permission" in lines
        assert "    When Member bulk archives the shared project" in lines
        assert "    And No project is archived" in lines
        assert text.endswith("\n")

    def test_export_is_valid_gherkin(self):
        result = validate_gherkin(export_gherkin(build_spec()))

        assert result.valid is True
        assert result.scenario_count == 2


class TestExportSpec:
    @pytest.mark.parametrize("fmt", ["json", "markdown", "gherkin", ExportFormat.GHERKIN])
    def test_dispatch(self, fmt):
        assert export_spec(build_spec(), fmt)

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            export_spec(build_spec(), "pdf")


class TestValidateGherkin:
    def test_missing_feature_and_scenarios(self):
        result = validate_gherkin("Given nothing")

        assert result.valid is False
        assert "Missing 'Feature:' keyword" in result.errors
        assert "No 'Scenario:' blocks found" in result.errors

    def test_scenario_without_then(self):
        text = "Feature: X\n  Scenario: Y\n    Given a\n    When b\n"

        result = validate_gherkin(text)

        assert result.errors == ["Scenario 1 is missing a 'Then' step"]

    def test_dangling_and(self):
        text = "Feature: X\n  Scenario: Y\n    And a\n    When b\n    Then c\n"

        result = validate_gherkin(text)

        assert result.valid is False
        assert result.errors[0].startswith("Continuation step without a preceding step")
