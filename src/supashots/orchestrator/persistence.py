"""Persistence coordinator: batches to project snapshots and back.

Store failures never reach the caller. Writes are logged and skipped, reads
degrade to "nothing stored", and the in-memory batch stays authoritative.
"""

from datetime import datetime, timezone
from typing import Optional, Protocol
from uuid import uuid4

import structlog

from supashots.models.batch import Batch, SubjectDescriptor
from supashots.models.project import ProjectSnapshot
from supashots.models.shot import AspectRatio, Style, SubjectMode
from supashots.models.task import Task, TaskStatus
from supashots.orchestrator.context import OrchestratorContext
from supashots.orchestrator.events import EventBus, EventKind, OrchestratorEvent
from supashots.services.catalog import styles_for
from supashots.services.exceptions import PersistenceError

logger = structlog.get_logger(__name__)

INTERRUPTED_REASON = "Interrupted before completion"


class SnapshotStore(Protocol):
    """Durable key-value store of project snapshots."""

    async def put(self, snapshot: ProjectSnapshot) -> None: ...

    async def get(self, project_id: str) -> Optional[ProjectSnapshot]: ...

    async def get_all_ordered_by_timestamp_desc(self) -> list[ProjectSnapshot]: ...

    async def delete(self, project_id: str) -> None: ...


def ensure_project_id(context: OrchestratorContext) -> str:
    """Assign the project id on first use; reuse it afterwards."""
    if context.project_id is None:
        context.project_id = uuid4().hex
        logger.info("project.created", project_id=context.project_id)
    return context.project_id


def snapshot_of(batch: Batch, timestamp: Optional[datetime] = None) -> ProjectSnapshot:
    """Build the durable record of a batch."""
    dumped = batch.model_dump(mode="json")
    return ProjectSnapshot(
        id=batch.project_id,
        timestamp=timestamp or datetime.now(timezone.utc),
        source_image=batch.source_image,
        subject_mode=batch.subject_mode.value,
        aspect_ratio=batch.aspect_ratio.value,
        subject=dumped["subject"],
        tasks=dumped["tasks"],
    )


def restore_batch(snapshot: ProjectSnapshot) -> Batch:
    """Rebuild a batch from a snapshot under a fresh batch identity.

    Tasks stored mid-flight (an edit persisted while other tasks were still
    running) have nothing left generating them, so they come back as failed
    and can be retried. Styles missing from the snapshot are filled the same
    way so the batch matches its catalog.
    """
    mode = SubjectMode(snapshot.subject_mode)
    stored = {Style(key): Task.model_validate(value) for key, value in snapshot.tasks.items()}
    now = datetime.now(timezone.utc)
    created_ms = int(now.timestamp() * 1000)

    tasks: dict[Style, Task] = {}
    for style in styles_for(mode):
        task = stored.get(style) or Task(
            id=f"{style.value}-{created_ms}", style=style, subject_mode=mode
        )
        if not task.is_terminal:
            task = task.model_copy(
                update={
                    "status": TaskStatus.FAILED,
                    "error": INTERRUPTED_REASON,
                    "completed_at": now,
                }
            )
        tasks[style] = task

    return Batch(
        project_id=snapshot.id,
        source_image=snapshot.source_image,
        subject=SubjectDescriptor.model_validate(snapshot.subject),
        subject_mode=mode,
        aspect_ratio=AspectRatio(snapshot.aspect_ratio),
        tasks=tasks,
    )


class PersistenceCoordinator:
    """Writes and reads project snapshots on behalf of the orchestrator."""

    def __init__(self, store: SnapshotStore, events: EventBus):
        self.store = store
        self.events = events

    async def save(self, batch: Batch) -> Optional[ProjectSnapshot]:
        """Overwrite the project's snapshot with ``batch``.

        Returns:
            The written snapshot, or None if the store failed
        """
        snapshot = snapshot_of(batch)
        try:
            await self.store.put(snapshot)
        except PersistenceError as e:
            logger.error(
                "snapshot.persist_failed",
                project_id=batch.project_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        completed, total = batch.progress()
        logger.info(
            "snapshot.persisted",
            project_id=batch.project_id,
            completed=completed,
            total=total,
        )
        self.events.emit(
            OrchestratorEvent(kind=EventKind.SNAPSHOT_PERSISTED, batch=batch, snapshot=snapshot)
        )
        return snapshot

    async def history(self) -> list[ProjectSnapshot]:
        """All stored snapshots, newest first."""
        try:
            return await self.store.get_all_ordered_by_timestamp_desc()
        except PersistenceError as e:
            logger.error(
                "snapshot.history_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return []

    async def find(self, project_id: str) -> Optional[ProjectSnapshot]:
        try:
            return await self.store.get(project_id)
        except PersistenceError as e:
            logger.error(
                "snapshot.load_failed",
                project_id=project_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def delete(self, project_id: str) -> bool:
        """Delete a project's snapshot.

        Returns:
            True if the store accepted the delete
        """
        try:
            await self.store.delete(project_id)
        except PersistenceError as e:
            logger.error(
                "snapshot.delete_failed",
                project_id=project_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        logger.info("snapshot.deleted", project_id=project_id)
        return True
