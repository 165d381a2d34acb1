"""API router for v1 endpoints."""

from fastapi import APIRouter

from spec_engine.api import context, features, specs

router = APIRouter()

router.include_router(features.router, tags=["features"])

router.include_router(context.router, tags=["context"])

router.include_router(specs.router, tags=["specs"])
