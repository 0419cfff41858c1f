"""Shot generation API endpoints.

This module implements REST endpoints for driving a generation run:
- POST /api/source - Select a source image (starts a new project) and analyze it
- PUT /api/mode - Switch subject mode (discards the current batch)
- PUT /api/aspect-ratio - Choose the output shape
- POST /api/generate - Start generating the full catalog in the background
- GET /api/batch - Current batch with per-task progress
- POST /api/shots/{style}/edit - Regenerate one shot with a modification
- POST /api/shots/{style}/retry - Regenerate one shot with its original instruction
"""

import base64
import binascii
from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from supashots.api.dependencies import get_orchestrator, to_http_error
from supashots.models.batch import Batch, SubjectDescriptor
from supashots.models.shot import AspectRatio, Style, SubjectMode
from supashots.models.task import Task
from supashots.orchestrator.service import ShotOrchestrator
from supashots.services.exceptions import OrchestratorError
from supashots.services.image_generation.gemini_client import strip_data_url

logger = structlog.get_logger()
router = APIRouter(prefix="/api", tags=["shots"])


# Request/Response Models


class SourceImageRequest(BaseModel):
    """Request model for selecting a source image."""

    image: str = Field(
        ...,
        description="Source image as base64 or a data URL",
        min_length=1,
    )

    @field_validator("image")
    @classmethod
    def validate_image(cls, v: str) -> str:
        """Reject payloads that are not base64."""
        try:
            base64.b64decode(strip_data_url(v), validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("image must be base64 encoded")
        return v


class SourceImageResponse(BaseModel):
    subject: SubjectDescriptor
    warning: str | None = Field(
        default=None,
        description="Framing warning for badly framed human subjects",
    )


class ModeRequest(BaseModel):
    mode: SubjectMode


class AspectRatioRequest(BaseModel):
    aspect_ratio: AspectRatio


class EditRequest(BaseModel):
    instruction: str = Field(
        ...,
        description="Modification to apply to the shot",
        min_length=1,
        max_length=2000,
    )


class BatchDTO(BaseModel):
    """Data Transfer Object for the current batch (source image omitted)."""

    batch_id: str
    project_id: str
    subject: SubjectDescriptor
    subject_mode: SubjectMode
    aspect_ratio: AspectRatio
    created_at: datetime
    completed: int = Field(..., description="Tasks in a terminal state")
    total: int = Field(..., description="Tasks in the batch")
    settled: bool
    tasks: list[Task] = Field(..., description="Tasks in catalog order")

    @classmethod
    def from_batch(cls, batch: Batch) -> "BatchDTO":
        completed, total = batch.progress()
        return cls(
            batch_id=batch.batch_id,
            project_id=batch.project_id,
            subject=batch.subject,
            subject_mode=batch.subject_mode,
            aspect_ratio=batch.aspect_ratio,
            created_at=batch.created_at,
            completed=completed,
            total=total,
            settled=batch.is_settled,
            tasks=list(batch.tasks.values()),
        )


# API Endpoints


@router.post("/source", response_model=SourceImageResponse)
async def select_source_image(
    request: SourceImageRequest,
    orchestrator: ShotOrchestrator = Depends(get_orchestrator),
) -> SourceImageResponse:
    """Select a new source image and analyze its subject.

    Starts a new project: any running batch is superseded and its late
    results are discarded.
    """
    subject, warning = await orchestrator.select_source_image(request.image)
    return SourceImageResponse(subject=subject, warning=warning)


@router.put("/mode", status_code=status.HTTP_204_NO_CONTENT)
async def set_mode(
    request: ModeRequest,
    orchestrator: ShotOrchestrator = Depends(get_orchestrator),
) -> None:
    orchestrator.set_subject_mode(request.mode)


@router.put("/aspect-ratio", status_code=status.HTTP_204_NO_CONTENT)
async def set_aspect_ratio(
    request: AspectRatioRequest,
    orchestrator: ShotOrchestrator = Depends(get_orchestrator),
) -> None:
    orchestrator.set_aspect_ratio(request.aspect_ratio)


@router.post("/generate", response_model=BatchDTO, status_code=status.HTTP_202_ACCEPTED)
async def generate(
    orchestrator: ShotOrchestrator = Depends(get_orchestrator),
) -> BatchDTO:
    """Start generating every style of the active catalog.

    Returns immediately with the freshly created batch (all tasks pending);
    poll GET /api/batch for progress.
    """
    try:
        batch = orchestrator.launch_batch()
    except OrchestratorError as e:
        raise to_http_error(e)
    return BatchDTO.from_batch(batch)


@router.get("/batch", response_model=BatchDTO)
async def get_batch(
    orchestrator: ShotOrchestrator = Depends(get_orchestrator),
) -> BatchDTO:
    batch = orchestrator.batch
    if batch is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active batch")
    return BatchDTO.from_batch(batch)


@router.post("/shots/{style}/edit", response_model=Task)
async def edit_shot(
    style: Style,
    request: EditRequest,
    orchestrator: ShotOrchestrator = Depends(get_orchestrator),
) -> Task:
    """Regenerate one settled shot with a modification; saved on success."""
    try:
        return await orchestrator.edit_shot(style, request.instruction)
    except OrchestratorError as e:
        raise to_http_error(e)


@router.post("/shots/{style}/retry", response_model=Task)
async def retry_shot(
    style: Style,
    orchestrator: ShotOrchestrator = Depends(get_orchestrator),
) -> Task:
    """Regenerate one settled shot (typically a failed one) as originally specified."""
    try:
        return await orchestrator.retry_shot(style)
    except OrchestratorError as e:
        raise to_http_error(e)
