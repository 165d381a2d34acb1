"""Spec export renderings: json, markdown and gherkin."""

import json
from enum import Enum

from pydantic import BaseModel, Field

from spec_engine.core.schemas_spec import ExecutableSpec


class ExportFormat(str, Enum):
    JSON = "json"
    MARKDOWN = "markdown"
    GHERKIN = "gherkin"


def export_json(spec: ExecutableSpec) -> str:
    """Envelope then layers, in declaration order."""
    return json.dumps(spec.model_dump(mode="json"), indent=2, ensure_ascii=False)


def export_markdown(spec: ExecutableSpec) -> str:
    layers = spec.layers
    status = "Approved" if spec.approved else "Draft"
    lines = [
        f"# {layers.narrative.title}",
        "",
        f"**Spec:** `{spec.id}`  ",
        f"**Version:** {spec.version} ({status})  ",
        f"**Hash:** `{spec.hash}`",
        "",
        "## Objective",
        "",
        layers.narrative.objective,
        "",
        "## Rationale",
        "",
        layers.narrative.rationale or "_None given._",
        "",
        "## Context",
        "",
    ]

    if layers.context_pointers:
        for pointer in layers.context_pointers:
            source = f"[{pointer.source}]({pointer.link})" if pointer.link else pointer.source
            lines.append(f'- **{source}**: "{pointer.snippet}"')
    else:
        lines.append("_No context pointers._")

    lines.extend(["", "## Constraints", ""])
    for constraint in layers.constraints:
        lines.append(f"- **{constraint.id}** [{constraint.severity.upper()}] {constraint.rule}")
        if constraint.rationale:
            lines.append(f"  - Rationale: {constraint.rationale}")
        if constraint.source:
            lines.append(f"  - Source: {constraint.source}")

    lines.extend(["", "## Verification", ""])
    for scenario in layers.verification:
        covers = f" (covers {', '.join(scenario.covers)})" if scenario.covers else ""
        lines.append(f"### {scenario.id}: {scenario.scenario}{covers}")
        lines.append("")
        lines.extend(_gherkin_steps(scenario.given, scenario.when, scenario.then, indent=""))
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def _step_lines(keyword: str, steps: list[str], indent: str) -> list[str]:
    return [f"{indent}{keyword if i == 0 else 'And'} {step}" for i, step in enumerate(steps)]


def _gherkin_steps(given: list[str], when: list[str], then: list[str], indent: str) -> list[str]:
    return [
        *_step_lines("Given", given, indent),
        *_step_lines("When", when, indent),
        *_step_lines("Then", then, indent),
    ]


def export_gherkin(spec: ExecutableSpec) -> str:
    """One Feature block, one Scenario per verification item."""
    layers = spec.layers
    lines = [f"Feature: {layers.narrative.title}"]
    if layers.narrative.objective:
        lines.append(f"  {layers.narrative.objective}")

    for scenario in layers.verification:
        lines.append("")
        tags = " ".join(f"@{cid}" for cid in scenario.covers)
        if tags:
            lines.append(f"  {tags}")
        lines.append(f"  Scenario: {scenario.scenario}")
        lines.extend(_gherkin_steps(scenario.given, scenario.when, scenario.then, indent="    "))

    return "\n".join(lines) + "\n"


_EXPORTERS = {
    ExportFormat.JSON: export_json,
    ExportFormat.MARKDOWN: export_markdown,
    ExportFormat.GHERKIN: export_gherkin,
}


def export_spec(spec: ExecutableSpec, export_format: ExportFormat | str) -> str:
    """
    Render a spec in the requested format.

    Raises:
        ValueError: For an unknown format
    """
    return _EXPORTERS[ExportFormat(export_format)](spec)


class GherkinValidation(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    scenario_count: int = 0


def validate_gherkin(text: str) -> GherkinValidation:
    """Check a Gherkin document has a Feature and When/Then steps in every Scenario."""
    errors: list[str] = []
    has_feature = False
    scenarios: list[dict[str, bool]] = []
    last_keyword = None

    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        keyword = stripped.split(" ", 1)[0]
        if stripped.startswith("Feature:"):
            has_feature = True
        elif stripped.startswith(("Scenario:", "Scenario Outline:")):
            scenarios.append({"when": False, "then": False})
            last_keyword = None
        elif scenarios and keyword in ("Given", "When", "Then"):
            last_keyword = keyword
            if keyword != "Given":
                scenarios[-1][keyword.lower()] = True
        elif scenarios and keyword in ("And", "But") and last_keyword is None:
            errors.append(f"Continuation step without a preceding step: {stripped}")

    if not has_feature:
        errors.append("Missing 'Feature:' keyword")
    if not scenarios:
        errors.append("No 'Scenario:' blocks found")
    for index, scenario in enumerate(scenarios, start=1):
        if not scenario["when"]:
            errors.append(f"Scenario {index} is missing a 'When' step")
        if not scenario["then"]:
            errors.append(f"Scenario {index} is missing a 'Then' step")

    return GherkinValidation(valid=not errors, errors=errors, scenario_count=len(scenarios))
