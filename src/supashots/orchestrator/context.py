"""Owned orchestrator state: project identity, inputs and the active batch."""

from dataclasses import dataclass, field
from typing import Optional

from supashots.models.batch import Batch, SubjectDescriptor
from supashots.models.shot import AspectRatio, SubjectMode


@dataclass
class OrchestratorContext:
    """Everything the orchestrator mutates, in one place.

    ``batch`` is replaced wholesale whenever a task transition is merged;
    the active ``batch.batch_id`` is what late task results are checked
    against.
    """

    project_id: Optional[str] = None
    source_image: Optional[str] = None
    subject: SubjectDescriptor = field(default_factory=SubjectDescriptor)
    subject_mode: SubjectMode = SubjectMode.PRODUCT
    aspect_ratio: AspectRatio = AspectRatio.PORTRAIT_3_4
    batch: Optional[Batch] = None

    def is_active(self, batch_id: str) -> bool:
        return self.batch is not None and self.batch.batch_id == batch_id

    def discard_batch(self) -> None:
        self.batch = None

    def clear(self, aspect_ratio: AspectRatio) -> None:
        """Forget the project entirely (new source image or reset)."""
        self.project_id = None
        self.source_image = None
        self.subject = SubjectDescriptor()
        self.subject_mode = SubjectMode.PRODUCT
        self.aspect_ratio = aspect_ratio
        self.batch = None
