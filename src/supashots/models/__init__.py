"""Domain models and SQLModel database entities.

All table models are imported here to ensure they're registered with SQLModel
metadata before ``create_tables`` runs.
"""

from supashots.models.batch import Batch, SubjectDescriptor
from supashots.models.project import ProjectSnapshot
from supashots.models.shot import AspectRatio, FramingQuality, Style, SubjectMode
from supashots.models.task import InvalidStateTransition, Task, TaskStatus

__all__ = [
    "AspectRatio",
    "Batch",
    "FramingQuality",
    "InvalidStateTransition",
    "ProjectSnapshot",
    "Style",
    "SubjectDescriptor",
    "SubjectMode",
    "Task",
    "TaskStatus",
]
