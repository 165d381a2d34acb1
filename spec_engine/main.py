"""FastAPI application entry point."""

from fastapi import FastAPI

from spec_engine.api import router as api_router

app = FastAPI(
    title="Spec Engine",
    description="LangGraph-based spec compilation and simulation service",
    version="0.1.0",
)

# Include v1 API router
app.include_router(api_router, prefix="/v1", tags=["v1"])
