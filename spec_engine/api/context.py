"""API endpoints for context ingestion."""

import asyncio

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from spec_engine.core.errors import EmptyContentError, NotFoundError
from spec_engine.core.logging import get_logger
from spec_engine.core.schemas_engine import IngestContextRequest, IngestResult
from spec_engine.core.schemas_sources import RawSource
from spec_engine.services import spec_service

logger = get_logger(__name__)

router = APIRouter()


@router.post("/context/ingest", response_model=IngestResult, status_code=201)
async def ingest_context_api(request: IngestContextRequest) -> IngestResult:
    """
    Chunk, embed and store raw context.

    Args:
        request: IngestContextRequest with source type, content and optional feature

    Returns:
        IngestResult with stored chunk ids

    Raises:
        HTTPException 400: Unknown source type or no usable content
        HTTPException 404: Unknown feature
    """
    try:
        source = RawSource(
            source_type=request.source_type,
            content=request.content,
            metadata=request.metadata,
            credibility_override=request.credibility_override,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    try:
        return await asyncio.to_thread(spec_service.ingest, source, request.feature_id)

    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    except EmptyContentError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
