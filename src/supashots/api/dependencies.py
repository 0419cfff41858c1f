"""FastAPI dependencies for common operations."""

from fastapi import HTTPException, Request, status

from supashots.orchestrator.service import ShotOrchestrator
from supashots.services.exceptions import (
    NoSourceImageError,
    OrchestratorError,
    ProjectNotFoundError,
    TaskNotEditableError,
    UnknownStyleError,
)


def get_orchestrator(request: Request) -> ShotOrchestrator:
    """Get the shot orchestrator from app state.

    Args:
        request: FastAPI Request object (contains app.state)

    Returns:
        ShotOrchestrator created in the app lifespan (or injected by tests)
    """
    return request.app.state.orchestrator


def to_http_error(error: OrchestratorError) -> HTTPException:
    """Map a rejected orchestrator operation to an HTTP error.

    - UnknownStyleError, ProjectNotFoundError → 404
    - NoSourceImageError, TaskNotEditableError → 409
    """
    if isinstance(error, (UnknownStyleError, ProjectNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, (NoSourceImageError, TaskNotEditableError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
