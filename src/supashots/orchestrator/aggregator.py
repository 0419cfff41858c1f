"""Batch state aggregator.

Task transitions arrive out of order from concurrently resolving tasks and
from edits. They are queued and applied by a single consumer loop, each one
merged by style key into a fresh copy of the active batch. Transitions from a
superseded batch are dropped; this is the only cancellation mechanism, so
in-flight backend calls are never aborted, only ignored.
"""

import asyncio
from typing import Optional

import structlog

from supashots.models.batch import Batch
from supashots.models.task import Task
from supashots.orchestrator.context import OrchestratorContext
from supashots.orchestrator.events import EventBus, EventKind, OrchestratorEvent, TaskTransition

logger = structlog.get_logger(__name__)


class BatchAggregator:
    """Single writer of ``context.batch`` for task transitions."""

    def __init__(self, context: OrchestratorContext, events: EventBus):
        self.context = context
        self.events = events
        self._queue: asyncio.Queue[TaskTransition] = asyncio.Queue()
        self._consumer: Optional[asyncio.Task] = None

    def publish(self, transition: TaskTransition) -> None:
        """Queue a transition for the consumer loop."""
        self._ensure_consumer()
        self._queue.put_nowait(transition)

    async def drain(self) -> None:
        """Wait until every published transition has been applied or dropped."""
        await self._queue.join()

    def snapshot(self) -> Optional[Batch]:
        return self.context.batch

    def is_current(self, batch_id: str) -> bool:
        return self.context.is_active(batch_id)

    def was_applied(self, batch_id: str, task: Task) -> bool:
        """True if ``task`` is the state the active batch holds for its style."""
        batch = self.context.batch
        if batch is None or not self.context.is_active(batch_id):
            return False
        return batch.tasks.get(task.style) == task

    def apply(self, transition: TaskTransition) -> bool:
        """Merge one transition into the active batch.

        Returns:
            True if merged, False if dropped as stale
        """
        batch = self.context.batch

        if batch is None or batch.batch_id != transition.batch_id:
            logger.info(
                "aggregator.stale_dropped",
                batch_id=transition.batch_id,
                style=transition.style.value,
                status=transition.task.status.value,
            )
            return False

        current = batch.tasks.get(transition.style)
        if current is None:
            logger.warning(
                "aggregator.unknown_style",
                batch_id=transition.batch_id,
                style=transition.style.value,
            )
            return False

        # attempt never decreases
        if transition.task.attempt < current.attempt:
            logger.info(
                "aggregator.outdated_attempt",
                style=transition.style.value,
                attempt=transition.task.attempt,
                current_attempt=current.attempt,
            )
            return False

        self.context.batch = batch.with_task(transition.task)
        self.events.emit(
            OrchestratorEvent(
                kind=EventKind.TASK_UPDATED,
                batch=self.context.batch,
                style=transition.style,
            )
        )
        return True

    async def aclose(self) -> None:
        """Stop the consumer loop."""
        if self._consumer is not None and not self._consumer.done():
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
        self._consumer = None

    def _ensure_consumer(self) -> None:
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while True:
            transition = await self._queue.get()
            try:
                self.apply(transition)
            except Exception as e:
                logger.error(
                    "aggregator.apply_failed",
                    style=transition.style.value,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
            finally:
                self._queue.task_done()
