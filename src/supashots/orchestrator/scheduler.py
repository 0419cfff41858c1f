"""Task scheduler driving a batch's catalog through the generation backend.

Works through the batch's styles in catalog order, ``concurrency`` at a time,
with a fixed pause between rounds to stay under the backend's rate limits.

## Why retries live inside a task's resolution path

A rate-limited call is retried by the same coroutine that made it, after the
retry policy's backoff. The round only ends once every task in it has
settled, so retries of one task never spill into the next round and never
occupy a concurrency slot that was handed to another task.

Every transition (running, each retry, the final outcome) is published to
the aggregator as soon as it happens, so progress is visible per task rather
than per round.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

import structlog

from supashots.models.batch import Batch
from supashots.models.shot import AspectRatio, Style
from supashots.models.task import Task
from supashots.orchestrator.aggregator import BatchAggregator
from supashots.orchestrator.events import TaskTransition
from supashots.orchestrator.retry_policy import GiveUp, RetryPolicy
from supashots.services.catalog import build_prompt, get_shot_definition
from supashots.services.image_generation.gemini_client import (
    GenerationBackend,
    classify_error,
    to_data_url,
)

logger = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]

DEFAULT_CONCURRENCY = 1
DEFAULT_ROUND_PAUSE_SECONDS = 1.0


class TaskScheduler:
    """Bounded-concurrency queue of generation jobs over one batch."""

    def __init__(
        self,
        backend: GenerationBackend,
        aggregator: BatchAggregator,
        retry_policy: Optional[RetryPolicy] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        round_pause_seconds: float = DEFAULT_ROUND_PAUSE_SECONDS,
        sleep: Sleep = asyncio.sleep,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.backend = backend
        self.aggregator = aggregator
        self.retry_policy = retry_policy or RetryPolicy()
        self.concurrency = concurrency
        self.round_pause_seconds = round_pause_seconds
        self.sleep = sleep

    async def process_single_task(
        self,
        batch_id: str,
        task: Task,
        prompt: str,
        image: Optional[str],
        aspect_ratio: AspectRatio,
    ) -> Task:
        """Resolve one task to a terminal state, retrying rate limits inline.

        Args:
            batch_id: Identity of the batch the task was launched under
            task: Working copy of the task (mutated and returned)
            prompt: Full prompt text
            image: Source image (base64 / data URL)
            aspect_ratio: Requested output shape

        Returns:
            The settled task
        """
        start_time = time.time()

        while True:
            task.mark_running()
            self._publish(batch_id, task)

            logger.info(
                "task.generation.started",
                batch_id=batch_id,
                style=task.style.value,
                attempt_number=task.attempt,
            )

            try:
                image_bytes = await self.backend.generate(image, prompt, aspect_ratio)

            except Exception as e:
                error = classify_error(e)
                decision = self.retry_policy.decide(error, task.attempt)

                if isinstance(decision, GiveUp):
                    task.mark_failed(decision.reason)
                    self._publish(batch_id, task)
                    logger.error(
                        "task.generation.failed",
                        batch_id=batch_id,
                        style=task.style.value,
                        error_type=type(error).__name__,
                        error_message=decision.reason,
                        attempt_number=task.attempt,
                    )
                    return task

                logger.warning(
                    "task.generation.retry",
                    batch_id=batch_id,
                    style=task.style.value,
                    error_type=type(error).__name__,
                    error_message=str(error),
                    attempt_number=task.attempt,
                    retry_in_ms=decision.delay_ms,
                )
                await self.sleep(decision.delay_seconds)
                continue

            task.mark_succeeded(to_data_url(image_bytes))
            self._publish(batch_id, task)
            logger.info(
                "task.generation.succeeded",
                batch_id=batch_id,
                style=task.style.value,
                duration_seconds=time.time() - start_time,
                attempt_number=task.attempt,
            )
            return task

    async def run(self, batch: Batch) -> list[Task]:
        """Process every task of ``batch`` in catalog order.

        Stops launching new rounds once the batch is superseded; tasks already
        in flight finish and their results are dropped by the aggregator.

        Returns:
            Settled working copies of the tasks that were launched
        """
        queue: list[Style] = list(batch.tasks)
        settled: list[Task] = []
        round_number = 0

        while queue:
            if not self.aggregator.is_current(batch.batch_id):
                logger.info(
                    "batch.superseded",
                    batch_id=batch.batch_id,
                    remaining=len(queue),
                )
                break

            chunk, queue = queue[: self.concurrency], queue[self.concurrency :]
            round_number += 1

            coros = []
            for style in chunk:
                task = batch.tasks[style].model_copy(deep=True)
                prompt = build_prompt(
                    get_shot_definition(style), batch.subject, task.custom_instruction
                )
                coros.append(
                    self.process_single_task(
                        batch.batch_id, task, prompt, batch.source_image, batch.aspect_ratio
                    )
                )

            results = await asyncio.gather(*coros, return_exceptions=True)

            for style, result in zip(chunk, results):
                if isinstance(result, BaseException):
                    logger.error(
                        "task.generation.crashed",
                        batch_id=batch.batch_id,
                        style=style.value,
                        error=str(result),
                        error_type=type(result).__name__,
                    )
                else:
                    settled.append(result)

            logger.debug(
                "batch.round_completed",
                batch_id=batch.batch_id,
                round_number=round_number,
                remaining=len(queue),
            )

            if queue:
                await self.sleep(self.round_pause_seconds)

        return settled

    def _publish(self, batch_id: str, task: Task) -> None:
        self.aggregator.publish(
            TaskTransition(batch_id=batch_id, style=task.style, task=task.model_copy())
        )
