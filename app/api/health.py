"""
Health check endpoint.
"""

from fastapi import APIRouter, Request
from pydantic import BaseModel
from datetime import datetime

from app.utils.config import get_settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str
    timestamp: datetime
    watcher_running: bool
    pipeline_running: bool
    pending_groups: int
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint.

    Verifies:
    - API is running
    - Downloads watcher and pipeline workers are alive
    """
    settings = get_settings()
    pipeline = getattr(request.app.state, "pipeline", None)
    watcher = getattr(request.app.state, "watcher", None)

    watcher_running = watcher is not None and watcher.running
    pipeline_running = pipeline is not None and pipeline.running

    return HealthResponse(
        status="healthy" if watcher_running and pipeline_running else "degraded",
        timestamp=datetime.now(),
        watcher_running=watcher_running,
        pipeline_running=pipeline_running,
        pending_groups=len(pipeline.registry) if pipeline is not None else 0,
        version=settings.api_version
    )
