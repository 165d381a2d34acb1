"""Shared sample context and scripted reasoner responses for spec generation tests."""

import json

from spec_engine.core.schemas_spec import (
    Constraint,
    ContextPointer,
    Narrative,
    VerificationScenario,
)
from spec_engine.core.spec_compiler import compile_spec

FEATURE_NAME = "Bulk archive"
FEATURE_DESCRIPTION = "Archive many projects at once from the projects list"

CHAT_THREAD = """[10:02] @maria: Admins keep asking for a way to archive old projects in bulk.
[10:04] @dev-sam: We could add a bulk archive action to the projects list toolbar.
[10:05] @maria: Archiving a hundred projects one by one takes them most of the afternoon."""

TICKET_TEXT = """PROJ-142 Bulk archive projects

Description: Workspace admins need to archive many projects at once from the projects list.

Acceptance Criteria:
- Admin selects up to 100 projects and archives them in one action
- Archived projects disappear from the active projects list

Comments: Careful, the current archive endpoint skips the permission checks for shared projects."""

CHAT_SNIPPET = "Admins keep asking for a way to archive old projects in bulk."
TICKET_SNIPPET = "Workspace admins need to archive many projects at once from the projects list."

HARVEST_RESPONSE = json.dumps(
    {
        "summary": "Admins want to archive many projects at once; the archive endpoint has a permission gap.",
        "key_insights": [
            "Admins archive stale projects one by one today",
            "Bulk action belongs in the projects list toolbar",
            "Archive endpoint skips permission checks for shared projects",
        ],
        "primary_sources": [
            {"source_type": "ticket", "excerpt": TICKET_SNIPPET, "relevance": 0.9},
            {"source_type": "chat", "excerpt": CHAT_SNIPPET, "relevance": 0.8},
        ],
    }
)

DRAFT_RESPONSE = json.dumps(
    {
        "narrative": {
            "title": "Bulk archive projects",
            "objective": "Let workspace admins archive up to 100 projects in one action from the projects list",
            "rationale": "Admins spend most of an afternoon archiving stale projects one at a time",
        },
        "context_pointers": [
            {"source": "chat", "snippet": CHAT_SNIPPET},
            {"source": "ticket", "snippet": TICKET_SNIPPET},
            {"source": "chat", "snippet": "Customers demanded a dark mode for the billing page."},
        ],
    }
)

CONSTRAINTS_RESPONSE = json.dumps(
    {
        "constraints": [
            {
                "rule": "DO NOT archive more than 100 projects in a single request",
                "severity": "warning",
                "rationale": "Acceptance criteria cap the selection at 100 projects",
                "source": "",
            }
        ]
    }
)

HAPPY_SCENARIO = {
    "scenario": "Archive selected projects",
    "given": ["Admin is on the projects list", "Admin selected 3 projects"],
    "when": ["Admin clicks bulk archive"],
    "then": ["The 3 projects are archived", "They disappear from the active projects list"],
    "covers": ["C1"],
}

PERMISSION_SCENARIO = {
    "scenario": "Reject archive of a shared project without permission",
    "given": ["Member lacks permission on a shared project"],
    "when": ["Member bulk archives the shared project"],
    "then": ["The request is rejected with 403", "No project is archived"],
    "covers": ["C2"],
}

# Covers only the warning constraint: the caveat-derived critical rule stays uncovered
VERIFICATION_RESPONSE = json.dumps({"scenarios": [HAPPY_SCENARIO]})

FULL_VERIFICATION_RESPONSE = json.dumps({"scenarios": [HAPPY_SCENARIO, PERMISSION_SCENARIO]})

REVIEW_RESPONSE = json.dumps(
    {
        "approval_recommended": True,
        "findings": [
            {
                "severity": "suggestion",
                "category": "ambiguity",
                "description": "Say whether archived projects can be restored",
                "location": "narrative.objective",
                "suggestion": "Add a restore scenario",
            }
        ],
        "overall_verdict": "Ready once the restore question is answered",
    }
)

SCRIPTED_RESPONSES = {
    "ContextHarvester": HARVEST_RESPONSE,
    "SpecDraft": DRAFT_RESPONSE,
    "ConstraintExtractor": CONSTRAINTS_RESPONSE,
    "GherkinWriter": VERIFICATION_RESPONSE,
    "AdversaryReview": REVIEW_RESPONSE,
}


def build_spec(verification=None, constraints=None, previous_version=None):
    """Compile the bulk-archive spec from the scripted layers."""
    draft = json.loads(DRAFT_RESPONSE)
    narrative = Narrative(**draft["narrative"])
    pointers = [ContextPointer(**p) for p in draft["context_pointers"][:2]]
    if constraints is None:
        constraints = [
            Constraint(
                id="C1",
                rule="DO NOT archive more than 100 projects in a single request",
                severity="warning",
                rationale="Acceptance criteria cap the selection at 100 projects",
                source="ticket (Acceptance Criteria)",
            ),
            Constraint(
                id="C2",
                rule="DO NOT bypass permission checks: enforce authorization on every affected item",
                severity="critical",
                rationale="The archive endpoint skips permission checks for shared projects",
                source="ticket (Comments)",
            ),
        ]
    if verification is None:
        verification = [HAPPY_SCENARIO, PERMISSION_SCENARIO]
    scenarios = [
        VerificationScenario(id=f"V{i}", **s) for i, s in enumerate(verification, start=1)
    ]
    return compile_spec(FEATURE_NAME, (narrative, pointers), constraints, scenarios, previous_version)
