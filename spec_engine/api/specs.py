"""API endpoints for spec generation, simulation, approval and export."""

import asyncio

from fastapi import APIRouter, HTTPException, Path, Query
from fastapi.responses import PlainTextResponse

from spec_engine.core.errors import (
    ApprovalBlockedError,
    EmptyContentError,
    GenerationFailedError,
    NotFoundError,
    SpecLockedError,
    StructuralValidationError,
    VersionConflictError,
)
from spec_engine.core.logging import get_logger
from spec_engine.core.schemas_engine import ApprovalResult, GenerateSpecRequest, GenerationResult
from spec_engine.core.schemas_spec import ExecutableSpec
from spec_engine.core.simulation import SimulationResult
from spec_engine.core.spec_export import ExportFormat
from spec_engine.db.specs import SpecRecord
from spec_engine.services import spec_service

logger = get_logger(__name__)

router = APIRouter()

EXPORT_MEDIA_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.MARKDOWN: "text/markdown",
    ExportFormat.GHERKIN: "text/plain",
}


@router.post("/specs/generate", response_model=GenerationResult, status_code=201)
async def generate_spec_api(request: GenerateSpecRequest) -> GenerationResult:
    """
    Run the generation pipeline for a feature and store a new version.

    Raises:
        HTTPException 400: Override context has no usable content
        HTTPException 404: Unknown feature, or no context and no override
        HTTPException 409: The new version id is already stored
        HTTPException 422: Compiled spec failed structural validation (not stored)
        HTTPException 502: A stage aborted; the body carries the partial trace
    """
    try:
        return await asyncio.to_thread(
            spec_service.generate, request.feature_id, request.raw_context_override
        )

    except EmptyContentError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    except GenerationFailedError as e:
        logger.error(f"Generation failed for feature {request.feature_id}: {e}")
        raise HTTPException(
            status_code=502,
            detail={
                "error": str(e),
                "code": e.code,
                "stage": e.stage,
                "steps": [step.model_dump(mode="json") for step in e.steps],
            },
        ) from e

    except StructuralValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"error": str(e), "code": e.code, "errors": e.errors},
        ) from e

    except (SpecLockedError, VersionConflictError) as e:
        raise HTTPException(status_code=409, detail={"error": str(e), "code": e.code}) from e


@router.get("/specs/{spec_id}", response_model=SpecRecord)
async def get_spec_api(spec_id: str = Path(..., description="Spec version id")) -> SpecRecord:
    """Get a stored version with its review, validation and last simulation."""
    try:
        return spec_service.get_spec(spec_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.post("/specs/simulate", response_model=SimulationResult)
async def simulate_spec_api(spec: ExecutableSpec) -> SimulationResult:
    """Simulate a spec document supplied in the body (not stored)."""
    return await asyncio.to_thread(spec_service.simulate, spec)


@router.post("/specs/{spec_id}/simulate", response_model=SimulationResult)
async def simulate_stored_spec_api(
    spec_id: str = Path(..., description="Spec version id"),
) -> SimulationResult:
    """Simulate a stored version and keep the result."""
    try:
        return await asyncio.to_thread(spec_service.simulate_by_id, spec_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.post("/specs/{spec_id}/approve", response_model=ApprovalResult)
async def approve_spec_api(
    spec_id: str = Path(..., description="Spec version id"),
) -> ApprovalResult:
    """
    Approve and lock a version. Approving an approved version returns it unchanged.

    Raises:
        HTTPException 404: Unknown spec
        HTTPException 409: Blocker findings outstanding
        HTTPException 422: Structural validation failed
    """
    try:
        return spec_service.approve(spec_id)

    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    except ApprovalBlockedError as e:
        raise HTTPException(
            status_code=409,
            detail={"error": str(e), "code": e.code, "blockers": e.blockers},
        ) from e

    except StructuralValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"error": str(e), "code": e.code, "errors": e.errors},
        ) from e


@router.get("/specs/{spec_id}/export", response_class=PlainTextResponse)
async def export_spec_api(
    spec_id: str = Path(..., description="Spec version id"),
    format: ExportFormat = Query(ExportFormat.JSON, description="json, markdown or gherkin"),
) -> PlainTextResponse:
    """Render a stored version."""
    try:
        content = spec_service.export(spec_id, format)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    return PlainTextResponse(content=content, media_type=EXPORT_MEDIA_TYPES[format])
