"""Tool definitions for external agents (IDE assistants, chat agents)."""

from typing import Any

from spec_engine.core.schemas_engine import FeatureStatus
from spec_engine.core.schemas_sources import SOURCE_TYPE_ALIASES, SourceType


def _source_type_values() -> list[str]:
    return sorted({t.value for t in SourceType} | set(SOURCE_TYPE_ALIASES))


def get_tool_definitions() -> list[dict[str, Any]]:
    """Get tool definitions with JSON-schema inputs.

    6 tools:
    - fetch_spec: latest spec for a feature
    - ingest_context: chunk and store raw context (creates the feature if new)
    - generate_spec: run the generation pipeline
    - list_features: features with derived spec status
    - get_constraints: constraint layer only
    - run_simulation: static simulation of a stored spec
    """
    return [
        {
            "name": "fetch_spec",
            "description": "Retrieve the latest Executable Specification for a feature by name or id.",
            "input_schema": {
                "type": "object",
                "properties": {
                    "feature_name": {"type": "string", "description": "Feature name or id"},
                },
                "required": ["feature_name"],
            },
        },
        {
            "name": "ingest_context",
            "description": (
                "Ingest raw context (chat thread, ticket, meeting transcript, document) "
                "linked to a feature. Creates the feature if it does not exist."
            ),
            "input_schema": {
                "type": "object",
                "properties": {
                    "source_type": {
                        "type": "string",
                        "enum": _source_type_values(),
                        "description": "Source type or connector alias (slack, jira, gong, ...)",
                    },
                    "content": {"type": "string", "description": "Raw text content to ingest"},
                    "feature_name": {"type": "string", "description": "Feature this context belongs to"},
                    "source_url": {"type": "string", "description": "Optional link back to the source"},
                },
                "required": ["source_type", "content", "feature_name"],
            },
        },
        {
            "name": "generate_spec",
            "description": "Generate a new Executable Specification version from a feature's ingested context.",
            "input_schema": {
                "type": "object",
                "properties": {
                    "feature_name": {"type": "string", "description": "Feature to generate a spec for"},
                    "description": {
                        "type": "string",
                        "description": "Optional inline context used instead of stored context",
                    },
                },
                "required": ["feature_name"],
            },
        },
        {
            "name": "list_features",
            "description": "List features with their spec status and context counts.",
            "input_schema": {
                "type": "object",
                "properties": {
                    "search": {"type": "string", "description": "Filter on name and description"},
                    "status": {
                        "type": "string",
                        "enum": [s.value for s in FeatureStatus],
                        "description": "Filter on derived spec status",
                    },
                },
            },
        },
        {
            "name": "get_constraints",
            "description": (
                "Retrieve only the Constraint Layer (DO NOT rules) for a feature. "
                "Prefers the latest approved version."
            ),
            "input_schema": {
                "type": "object",
                "properties": {
                    "feature_name": {"type": "string", "description": "Feature name or id"},
                },
                "required": ["feature_name"],
            },
        },
        {
            "name": "run_simulation",
            "description": "Run pre-code simulation on a stored spec to catch problems before implementation.",
            "input_schema": {
                "type": "object",
                "properties": {
                    "spec_id": {"type": "string", "description": "Spec version id"},
                },
                "required": ["spec_id"],
            },
        },
    ]
