"""Spec compiler: assemble layers, hash content, manage versions, validate structure."""

import hashlib
import json
import re
from typing import Any

from spec_engine.core.schemas_spec import (
    Constraint,
    ContextPointer,
    ExecutableSpec,
    Narrative,
    SpecLayers,
    StructureValidation,
    VerificationScenario,
)

INITIAL_VERSION = "1.0.0"

SEMVER_PATTERN = re.compile(r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)$")


def bump_version(version: str) -> str:
    """
    Patch bump: "1.0.4" -> "1.0.5".

    Raises:
        ValueError: If version is not MAJOR.MINOR.PATCH
    """
    match = SEMVER_PATTERN.match(version or "")
    if not match:
        raise ValueError(f"Invalid semantic version: {version!r}")
    major, minor, patch = (int(part) for part in match.groups())
    return f"{major}.{minor}.{patch + 1}"


def feature_slug(feature: str) -> str:
    """Lowercase, hyphen-separated slug for spec ids."""
    slug = re.sub(r"[^a-z0-9]+", "-", feature.lower()).strip("-")
    return slug or "feature"


def spec_id_for(feature: str, version: str) -> str:
    return f"spec-{feature_slug(feature)}-v{version}"


def canonical_json(payload: Any) -> bytes:
    """Sorted keys, compact separators, UTF-8."""
    return json.dumps(
        payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def compute_spec_hash(spec_id: str, feature: str, version: str, layers: SpecLayers) -> str:
    """sha256 hex of the canonical {id, feature, version, layers} document."""
    payload = {
        "id": spec_id,
        "feature": feature,
        "version": version,
        "layers": layers.model_dump(mode="json"),
    }
    return hashlib.sha256(canonical_json(payload)).hexdigest()


def compile_spec(
    feature: str,
    draft: tuple[Narrative, list[ContextPointer]],
    constraints: list[Constraint],
    verification: list[VerificationScenario],
    previous_version: str | None = None,
) -> ExecutableSpec:
    """
    Assemble an unapproved spec version.

    Args:
        feature: Feature name
        draft: (narrative, context_pointers) from the draft stage
        constraints: Constraint layer
        verification: Verification layer
        previous_version: Latest existing version, if any

    Returns:
        ExecutableSpec with deterministic id and content hash

    Raises:
        ValueError: If previous_version is not valid semver
    """
    narrative, context_pointers = draft
    version = bump_version(previous_version) if previous_version else INITIAL_VERSION
    spec_id = spec_id_for(feature, version)
    layers = SpecLayers(
        narrative=narrative,
        context_pointers=list(context_pointers),
        constraints=list(constraints),
        verification=list(verification),
    )
    return ExecutableSpec(
        id=spec_id,
        feature=feature,
        version=version,
        hash=compute_spec_hash(spec_id, feature, version, layers),
        approved=False,
        layers=layers,
    )


def validate_structure(spec: ExecutableSpec) -> StructureValidation:
    """
    Check structural invariants of a compiled spec. Never raises.

    - narrative present with a title
    - constraints and verification non-empty, ids unique
    - every constraint carries a source citation
    - every context pointer has a source and a snippet
    - the stored hash matches the recomputed hash
    """
    errors: list[str] = []
    layers = spec.layers

    if not SEMVER_PATTERN.match(spec.version or ""):
        errors.append(f"Invalid version: {spec.version!r}")

    if layers.narrative is None or not layers.narrative.title.strip():
        errors.append("Narrative is missing a title")

    if not layers.constraints:
        errors.append("Constraints layer must have at least one constraint")
    for constraint in layers.constraints:
        if not constraint.source.strip():
            errors.append(f"Constraint {constraint.id} is missing a source citation")
    constraint_ids = [c.id for c in layers.constraints]
    if len(set(constraint_ids)) != len(constraint_ids):
        errors.append("Constraint ids are not unique")

    if not layers.verification:
        errors.append("Verification layer must have at least one scenario")
    scenario_ids = [v.id for v in layers.verification]
    if len(set(scenario_ids)) != len(scenario_ids):
        errors.append("Scenario ids are not unique")

    for index, pointer in enumerate(layers.context_pointers):
        if not pointer.source.strip():
            errors.append(f"Context pointer {index} is missing a source")
        if not pointer.snippet.strip():
            errors.append(f"Context pointer {index} is missing a snippet")

    try:
        expected = compute_spec_hash(spec.id, spec.feature, spec.version, layers)
    except (TypeError, ValueError) as e:
        errors.append(f"Hash could not be computed: {e}")
    else:
        if spec.hash != expected:
            errors.append(
                f"Hash mismatch: stored={spec.hash[:8]}... expected={expected[:8]}..."
            )

    return StructureValidation(valid=not errors, errors=errors)


def mark_approved(spec: ExecutableSpec) -> ExecutableSpec:
    """Approved copy of a spec; the content hash does not cover the flag."""
    return spec.model_copy(update={"approved": True})
