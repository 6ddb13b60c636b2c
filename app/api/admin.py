"""
Admin endpoints for the intake pipeline.

Includes:
- Pending fragment groups
- Manual sweep trigger
- On-demand classification
- Recent analytics events
"""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from loguru import logger

from app.models.schemas import AnalyticsEvent, ClassificationResult, ClassifyRequest, GroupInfo, SweepReport
from domains.file_ingest.pipeline import IngestPipeline

router = APIRouter()


def get_pipeline(request: Request) -> IngestPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Pipeline not running")
    return pipeline


@router.get("/groups", response_model=List[GroupInfo])
async def list_groups(pipeline: IngestPipeline = Depends(get_pipeline)):
    """
    List fragment groups still waiting for parts.

    Returns:
        Groups, oldest first
    """
    return [
        GroupInfo(
            group_key=group.group_key,
            folder_name=group.folder_name,
            expected_part_count=group.expected_part_count,
            received_parts=group.part_numbers,
            first_seen_at=datetime.fromtimestamp(group.first_seen_at, tz=timezone.utc),
            last_updated_at=datetime.fromtimestamp(group.last_updated_at, tz=timezone.utc),
            complete=group.complete,
            origin_hint=group.origin_hint,
        )
        for group in pipeline.registry.snapshot()
    ]


@router.post("/sweep", response_model=SweepReport)
async def trigger_sweep(pipeline: IngestPipeline = Depends(get_pipeline)):
    """
    Run one completion sweep now.

    Complete groups are handed off; stale groups are abandoned.
    """
    logger.info("Manual sweep triggered")
    result = pipeline.sweeper.sweep_once()

    return SweepReport(
        completed=[group.group_key for group in result.completed],
        abandoned=[group.group_key for group in result.abandoned],
    )


@router.post("/classify", response_model=ClassificationResult)
async def classify_file(request: ClassifyRequest, pipeline: IngestPipeline = Depends(get_pipeline)):
    """
    Classify one file on demand and route the result.

    Args:
        request: File path and optional origin URL

    Returns:
        Classification result
    """
    path = Path(request.path).expanduser()
    if not path.is_file():
        raise HTTPException(status_code=404, detail=f"File not found: {request.path}")

    logger.info(f"Manual classification of {path}")
    result = await pipeline.orchestrator.classify_path(path, origin_url=request.origin_url)
    # Manifest routing writes to disk
    await asyncio.to_thread(pipeline.router.route, result)
    return result


@router.get("/events", response_model=List[AnalyticsEvent])
async def recent_events(
    limit: int = Query(50, ge=1, le=1000),
    pipeline: IngestPipeline = Depends(get_pipeline),
):
    """
    Recently emitted analytics events.

    Args:
        limit: Maximum number of events, newest last
    """
    return pipeline.emitter.recent(limit)
