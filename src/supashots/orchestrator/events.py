"""Messages flowing through the orchestrator.

``TaskTransition`` travels from the scheduler and the edit coordinator to the
aggregator. ``OrchestratorEvent`` is what the surrounding application sees;
it always carries the full current batch (or snapshot), never a delta.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import structlog

from supashots.models.batch import Batch
from supashots.models.project import ProjectSnapshot
from supashots.models.shot import Style
from supashots.models.task import Task

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TaskTransition:
    """A task's new state, tagged with the batch it was launched under."""

    batch_id: str
    style: Style
    task: Task


class EventKind(str, Enum):
    TASK_UPDATED = "task_updated"
    BATCH_COMPLETED = "batch_completed"
    SNAPSHOT_PERSISTED = "snapshot_persisted"


@dataclass(frozen=True)
class OrchestratorEvent:
    kind: EventKind
    batch: Optional[Batch] = None
    snapshot: Optional[ProjectSnapshot] = None
    style: Optional[Style] = None


Listener = Callable[[OrchestratorEvent], None]


class EventBus:
    """Fan-out of orchestrator events to subscribed listeners."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: OrchestratorEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                # A broken listener must not break generation
                logger.error(
                    "events.listener_failed",
                    kind=event.kind.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )
