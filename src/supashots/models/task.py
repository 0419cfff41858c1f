"""Task entity - one shot generation unit with lifecycle status tracking."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from supashots.models.shot import Style, SubjectMode


class TaskStatus(str, Enum):
    """Task lifecycle status."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TERMINAL_STATUSES = (TaskStatus.SUCCEEDED, TaskStatus.FAILED)


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid task state transition."""

    pass


class Task(BaseModel):
    """Task renders one style of a batch.

    ``attempt`` counts generation backend calls and never decreases. A
    rate-limit retry keeps the task running and bumps ``attempt``; it never
    goes back to pending.
    """

    id: str
    style: Style
    status: TaskStatus = TaskStatus.PENDING
    attempt: int = Field(default=0, ge=0)
    output: Optional[str] = None
    error: Optional[str] = None
    custom_instruction: Optional[str] = None
    completed_at: Optional[datetime] = None
    subject_mode: Optional[SubjectMode] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def mark_running(self) -> None:
        """Start a backend call: pending -> running, or running -> running on retry.

        Raises:
            InvalidStateTransition: If the task has already settled
        """
        if self.status not in (TaskStatus.PENDING, TaskStatus.RUNNING):
            raise InvalidStateTransition(
                f"Cannot mark running from {self.status.value}. "
                "Task must be pending or running; use reopen() for settled tasks."
            )
        self.status = TaskStatus.RUNNING
        self.attempt += 1

    def reopen(self) -> None:
        """Start a new attempt on a settled task (edit or manual retry).

        The previous output is kept until the new attempt settles.

        Raises:
            InvalidStateTransition: If the task has not settled yet
        """
        if not self.is_terminal:
            raise InvalidStateTransition(
                f"Cannot reopen from {self.status.value}. Task must be succeeded or failed."
            )
        self.status = TaskStatus.RUNNING
        self.attempt += 1
        self.error = None

    def mark_succeeded(self, output: str) -> None:
        """Transition from running to succeeded.

        Args:
            output: Data URL of the rendered image

        Raises:
            InvalidStateTransition: If current status is not running
            ValueError: If output is empty
        """
        if self.status != TaskStatus.RUNNING:
            raise InvalidStateTransition(
                f"Cannot mark succeeded from {self.status.value}. Task must be running."
            )
        if not output:
            raise ValueError("output is required")
        self.output = output
        self.error = None
        self.status = TaskStatus.SUCCEEDED
        self.completed_at = datetime.now(timezone.utc)

    def mark_failed(self, reason: str) -> None:
        """Transition from running to failed.

        Raises:
            InvalidStateTransition: If current status is not running
        """
        if self.status != TaskStatus.RUNNING:
            raise InvalidStateTransition(
                f"Cannot mark failed from {self.status.value}. Task must be running."
            )
        self.error = reason
        self.status = TaskStatus.FAILED
        self.completed_at = datetime.now(timezone.utc)
