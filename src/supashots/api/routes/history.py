"""Project history API endpoints.

- GET /api/history - Stored projects, newest first
- POST /api/history/{project_id}/load - Resume a stored project
- DELETE /api/history/{project_id} - Remove a stored project
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from supashots.api.dependencies import get_orchestrator, to_http_error
from supashots.api.routes.shots import BatchDTO
from supashots.models.project import ProjectSnapshot
from supashots.orchestrator.service import ShotOrchestrator
from supashots.services.exceptions import OrchestratorError

router = APIRouter(prefix="/api/history", tags=["history"])


class ProjectSummary(BaseModel):
    """History list entry (images omitted)."""

    project_id: str
    timestamp: datetime
    subject_name: str
    subject_mode: str
    aspect_ratio: str
    shot_count: int = Field(..., description="Tasks stored in the snapshot")
    succeeded_count: int = Field(..., description="Tasks with a rendered image")

    @classmethod
    def from_snapshot(cls, snapshot: ProjectSnapshot) -> "ProjectSummary":
        return cls(
            project_id=snapshot.id,
            timestamp=snapshot.timestamp,
            subject_name=snapshot.subject.get("name", ""),
            subject_mode=snapshot.subject_mode,
            aspect_ratio=snapshot.aspect_ratio,
            shot_count=len(snapshot.tasks),
            succeeded_count=sum(
                1 for task in snapshot.tasks.values() if task.get("status") == "succeeded"
            ),
        )


@router.get("", response_model=list[ProjectSummary])
async def list_history(
    orchestrator: ShotOrchestrator = Depends(get_orchestrator),
) -> list[ProjectSummary]:
    snapshots = await orchestrator.history()
    return [ProjectSummary.from_snapshot(snapshot) for snapshot in snapshots]


@router.post("/{project_id}/load", response_model=BatchDTO)
async def load_project(
    project_id: str,
    orchestrator: ShotOrchestrator = Depends(get_orchestrator),
) -> BatchDTO:
    """Make a stored project the active one; later saves reuse its id."""
    try:
        batch = await orchestrator.load_project(project_id)
    except OrchestratorError as e:
        raise to_http_error(e)
    return BatchDTO.from_batch(batch)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: str,
    orchestrator: ShotOrchestrator = Depends(get_orchestrator),
) -> None:
    if not await orchestrator.delete_project(project_id):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Project store unavailable",
        )
