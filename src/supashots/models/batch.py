"""Batch and subject descriptor value objects."""

from datetime import datetime, timezone
from typing import Iterable
from uuid import uuid4

from pydantic import BaseModel, Field

from supashots.models.shot import AspectRatio, FramingQuality, Style, SubjectMode
from supashots.models.task import Task


class SubjectDescriptor(BaseModel):
    """Analyzer output describing the source image's subject."""

    name: str = "Subject"
    description: str = "A detailed shot of the subject."
    category: str = "general"
    confidence: float = 0.0
    is_human: bool = False
    framing_quality: FramingQuality = FramingQuality.OK
    recommendations: list[str] = Field(default_factory=list)


class Batch(BaseModel):
    """Working set for one generation run.

    Batches are treated as immutable values: every change goes through
    ``with_task`` which returns a new batch sharing the untouched tasks.
    """

    batch_id: str = Field(default_factory=lambda: uuid4().hex)
    project_id: str
    source_image: str
    subject: SubjectDescriptor
    subject_mode: SubjectMode
    aspect_ratio: AspectRatio
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    tasks: dict[Style, Task] = Field(default_factory=dict)

    @classmethod
    def create(
        cls,
        project_id: str,
        source_image: str,
        subject: SubjectDescriptor,
        subject_mode: SubjectMode,
        aspect_ratio: AspectRatio,
        styles: Iterable[Style],
    ) -> "Batch":
        """Create a batch with one pending task per style."""
        created_at = datetime.now(timezone.utc)
        created_ms = int(created_at.timestamp() * 1000)
        tasks = {
            style: Task(id=f"{style.value}-{created_ms}", style=style, subject_mode=subject_mode)
            for style in styles
        }
        return cls(
            project_id=project_id,
            source_image=source_image,
            subject=subject,
            subject_mode=subject_mode,
            aspect_ratio=aspect_ratio,
            created_at=created_at,
            tasks=tasks,
        )

    def with_task(self, task: Task) -> "Batch":
        """Return a copy with the task for ``task.style`` replaced."""
        tasks = dict(self.tasks)
        tasks[task.style] = task
        return self.model_copy(update={"tasks": tasks})

    def progress(self) -> tuple[int, int]:
        """Return (settled task count, total task count)."""
        completed = sum(1 for task in self.tasks.values() if task.is_terminal)
        return completed, len(self.tasks)

    @property
    def is_settled(self) -> bool:
        return all(task.is_terminal for task in self.tasks.values())
