"""Single-task regeneration outside the main batch flow."""

from typing import Optional

import structlog

from supashots.models.batch import Batch
from supashots.models.shot import Style
from supashots.models.task import Task
from supashots.orchestrator.aggregator import BatchAggregator
from supashots.orchestrator.events import TaskTransition
from supashots.services.exceptions import TaskNotEditableError, UnknownStyleError
from supashots.services.image_generation.gemini_client import (
    GenerationBackend,
    classify_error,
    to_data_url,
)

logger = structlog.get_logger(__name__)


class EditCoordinator:
    """Re-runs exactly one settled task with a given instruction.

    One backend call, no retry policy. The outcome lands on the targeted task
    only; sibling tasks are never read or written here.
    """

    def __init__(self, backend: GenerationBackend, aggregator: BatchAggregator):
        self.backend = backend
        self.aggregator = aggregator

    async def run(
        self,
        batch: Batch,
        style: Style,
        instruction: str,
        image: Optional[str] = None,
        custom_instruction: Optional[str] = None,
    ) -> Task:
        """Regenerate one task.

        Args:
            batch: Batch the task belongs to (its id tags the transitions)
            style: Target style
            instruction: Full prompt text, sent as-is
            image: Source image to condition on; None for a text-only call
            custom_instruction: User text recorded on the task on success

        Returns:
            The task in its new terminal state

        Raises:
            UnknownStyleError: Style is not part of the batch
            TaskNotEditableError: Task has not settled yet
        """
        current = batch.tasks.get(style)
        if current is None:
            raise UnknownStyleError(f"Style {style.value} is not part of the active batch")
        if not current.is_terminal:
            raise TaskNotEditableError(
                f"Task {current.id} is {current.status.value}; only settled tasks can be edited"
            )

        task = current.model_copy(deep=True)
        task.reopen()
        self._publish(batch.batch_id, task)

        logger.info(
            "task.edit.started",
            batch_id=batch.batch_id,
            style=style.value,
            attempt_number=task.attempt,
            with_source_image=image is not None,
        )

        try:
            image_bytes = await self.backend.generate(image, instruction, batch.aspect_ratio)

        except Exception as e:
            error = classify_error(e)
            task.mark_failed(f"Edit failed: {error}")
            self._publish(batch.batch_id, task)
            logger.error(
                "task.edit.failed",
                batch_id=batch.batch_id,
                style=style.value,
                error_type=type(error).__name__,
                error_message=str(error),
                attempt_number=task.attempt,
            )
            return task

        task.custom_instruction = custom_instruction
        task.mark_succeeded(to_data_url(image_bytes))
        self._publish(batch.batch_id, task)
        logger.info(
            "task.edit.succeeded",
            batch_id=batch.batch_id,
            style=style.value,
            attempt_number=task.attempt,
        )
        return task

    def _publish(self, batch_id: str, task: Task) -> None:
        self.aggregator.publish(
            TaskTransition(batch_id=batch_id, style=task.style, task=task.model_copy())
        )
