"""API endpoints for the feature registry."""

from fastapi import APIRouter, HTTPException, Path, Query
from pydantic import BaseModel

from spec_engine.core.errors import NotFoundError
from spec_engine.core.logging import get_logger
from spec_engine.core.schemas_engine import CreateFeatureRequest, FeatureSummary
from spec_engine.services import spec_service

logger = get_logger(__name__)

router = APIRouter()


class ListFeaturesResponse(BaseModel):
    """Response for listing features."""

    features: list[FeatureSummary]
    total: int


@router.post("/features", response_model=FeatureSummary, status_code=201)
async def create_feature_api(request: CreateFeatureRequest) -> FeatureSummary:
    """
    Register a feature.

    Raises:
        HTTPException 400: Blank or duplicate name
    """
    try:
        feature = spec_service.create_feature(request.name, request.description)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return spec_service.summarize_feature(feature)


@router.get("/features", response_model=ListFeaturesResponse)
async def list_features_api(
    search: str | None = Query(None, description="Filter on name and description"),
    status: str | None = Query(None, description="no_spec, draft or approved"),
) -> ListFeaturesResponse:
    """
    List features with derived spec status.

    Raises:
        HTTPException 400: Unknown status filter
    """
    try:
        features = spec_service.list_features(search=search, status=status)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return ListFeaturesResponse(features=features, total=len(features))


@router.get("/features/{feature_id}", response_model=FeatureSummary)
async def get_feature_api(
    feature_id: str = Path(..., description="Feature id or name"),
) -> FeatureSummary:
    """
    Get one feature with its derived status.

    Raises:
        HTTPException 404: Unknown feature
    """
    try:
        feature = spec_service.resolve_feature(feature_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    return spec_service.summarize_feature(feature)
