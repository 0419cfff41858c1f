"""Shot orchestrator: the operations the application calls.

Owns one ``OrchestratorContext`` and wires the scheduler, aggregator, edit
coordinator and persistence coordinator around it. All of it runs on a single
event loop; no locks are needed, only the batch identity check.
"""

import asyncio
from contextlib import contextmanager
from typing import Iterator, Optional, Protocol

import structlog
from google import genai

from supashots.core.config import Settings
from supashots.models.batch import Batch, SubjectDescriptor
from supashots.models.project import ProjectSnapshot
from supashots.models.shot import AspectRatio, Style, SubjectMode
from supashots.models.task import Task, TaskStatus
from supashots.orchestrator.aggregator import BatchAggregator
from supashots.orchestrator.context import OrchestratorContext
from supashots.orchestrator.editor import EditCoordinator
from supashots.orchestrator.events import (
    EventBus,
    EventKind,
    Listener,
    OrchestratorEvent,
)
from supashots.orchestrator.persistence import (
    PersistenceCoordinator,
    SnapshotStore,
    ensure_project_id,
    restore_batch,
)
from supashots.orchestrator.retry_policy import RetryPolicy
from supashots.orchestrator.scheduler import (
    DEFAULT_CONCURRENCY,
    DEFAULT_ROUND_PAUSE_SECONDS,
    Sleep,
    TaskScheduler,
)
from supashots.services.catalog import (
    build_edit_prompt,
    build_prompt,
    get_shot_definition,
    styles_for,
)
from supashots.services.exceptions import (
    NoSourceImageError,
    ProjectNotFoundError,
    UnknownStyleError,
)
from supashots.services.image_generation.analyzer import GeminiAnalyzer, framing_warning
from supashots.services.image_generation.gemini_client import GenerationBackend, GeminiImageBackend

logger = structlog.get_logger(__name__)


class Analyzer(Protocol):
    """Classifies a source image; degrades to a default descriptor instead of raising."""

    async def analyze(self, image: str) -> SubjectDescriptor: ...


class ShotOrchestrator:
    """Turns one source image into a persisted batch of styled shots."""

    def __init__(
        self,
        analyzer: Analyzer,
        backend: GenerationBackend,
        store: SnapshotStore,
        retry_policy: Optional[RetryPolicy] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        round_pause_seconds: float = DEFAULT_ROUND_PAUSE_SECONDS,
        default_aspect_ratio: AspectRatio = AspectRatio.PORTRAIT_3_4,
        sleep: Sleep = asyncio.sleep,
    ):
        self.analyzer = analyzer
        self.default_aspect_ratio = default_aspect_ratio
        self.context = OrchestratorContext(aspect_ratio=default_aspect_ratio)
        self.events = EventBus()
        self.aggregator = BatchAggregator(self.context, self.events)
        self.scheduler = TaskScheduler(
            backend,
            self.aggregator,
            retry_policy=retry_policy,
            concurrency=concurrency,
            round_pause_seconds=round_pause_seconds,
            sleep=sleep,
        )
        self.editor = EditCoordinator(backend, self.aggregator)
        self.persistence = PersistenceCoordinator(store, self.events)
        self._running: set[asyncio.Task] = set()
        self._edits_in_flight = 0
        self._edits_idle = asyncio.Event()
        self._edits_idle.set()

    @classmethod
    def from_settings(cls, settings: Settings, store: SnapshotStore) -> "ShotOrchestrator":
        """Build an orchestrator talking to Gemini with the configured models."""
        client = genai.Client(api_key=settings.gemini_api_key)
        return cls(
            analyzer=GeminiAnalyzer(client, model=settings.analysis_model),
            backend=GeminiImageBackend(client, model=settings.image_model),
            store=store,
            retry_policy=RetryPolicy(
                max_retries=settings.max_rate_limit_retries,
                base_delay_seconds=settings.retry_base_delay_seconds,
            ),
            concurrency=settings.generation_concurrency,
            round_pause_seconds=settings.round_pause_seconds,
            default_aspect_ratio=settings.default_aspect_ratio,
        )

    # State access

    @property
    def batch(self) -> Optional[Batch]:
        return self.aggregator.snapshot()

    def subscribe(self, listener: Listener):
        """Register a listener for task, batch and snapshot events."""
        return self.events.subscribe(listener)

    # Inputs

    async def select_source_image(self, image: str) -> tuple[SubjectDescriptor, Optional[str]]:
        """Start a new project from ``image`` and analyze it.

        Returns:
            The subject descriptor and a framing warning (None if framing is fine)
        """
        self.context.clear(self.default_aspect_ratio)
        self.context.source_image = image
        logger.info("project.source_selected")

        subject = await self.analyzer.analyze(image)

        # Another image may have been selected while analysis was running
        if self.context.source_image == image:
            self.context.subject = subject
        return subject, framing_warning(subject)

    def set_subject_mode(self, mode: SubjectMode) -> None:
        """Switch catalogs; the current batch is discarded."""
        if mode == self.context.subject_mode:
            return
        self.context.subject_mode = mode
        if self.context.batch is not None:
            logger.info(
                "batch.discarded", batch_id=self.context.batch.batch_id, reason="mode_switch"
            )
        self.context.discard_batch()

    def set_aspect_ratio(self, ratio: AspectRatio) -> None:
        """Applies to batches and edits started from now on."""
        self.context.aspect_ratio = ratio

    # Batch generation

    def start_batch(self) -> Batch:
        """Create and activate a new batch, superseding any previous one.

        Raises:
            NoSourceImageError: No source image selected
        """
        if not self.context.source_image:
            raise NoSourceImageError("Select a source image before generating")

        project_id = ensure_project_id(self.context)
        batch = Batch.create(
            project_id=project_id,
            source_image=self.context.source_image,
            subject=self.context.subject,
            subject_mode=self.context.subject_mode,
            aspect_ratio=self.context.aspect_ratio,
            styles=styles_for(self.context.subject_mode),
        )
        if self.context.batch is not None:
            logger.info(
                "batch.discarded", batch_id=self.context.batch.batch_id, reason="regenerate"
            )
        self.context.batch = batch
        logger.info(
            "batch.started",
            batch_id=batch.batch_id,
            project_id=project_id,
            subject_mode=batch.subject_mode.value,
            aspect_ratio=batch.aspect_ratio.value,
            task_count=len(batch.tasks),
        )
        return batch

    async def run_batch(self, batch: Batch) -> Optional[Batch]:
        """Drive ``batch`` to settlement and persist it once.

        Returns:
            The settled batch, or None if it was superseded before settling
        """
        await self.scheduler.run(batch)
        await self._wait_for_edits()

        settled = self.context.batch
        if settled is None or not self.aggregator.is_current(batch.batch_id):
            logger.info("batch.superseded", batch_id=batch.batch_id)
            return None

        completed, total = settled.progress()
        succeeded = sum(1 for t in settled.tasks.values() if t.status == TaskStatus.SUCCEEDED)
        logger.info(
            "batch.settled",
            batch_id=batch.batch_id,
            project_id=settled.project_id,
            completed=completed,
            total=total,
            succeeded=succeeded,
        )
        self.events.emit(OrchestratorEvent(kind=EventKind.BATCH_COMPLETED, batch=settled))
        await self.persistence.save(settled)
        return settled

    async def generate_all(self) -> Optional[Batch]:
        """Generate the full active catalog for the current source image."""
        return await self.run_batch(self.start_batch())

    def launch_batch(self) -> Batch:
        """Start a batch and run it in the background."""
        batch = self.start_batch()
        task = asyncio.create_task(self.run_batch(batch))
        self._running.add(task)
        task.add_done_callback(self._on_background_done)
        return batch

    # Single-task operations

    async def edit_shot(self, style: Style, edit_request: str) -> Task:
        """Regenerate one shot with a user modification and persist on success.

        Raises:
            NoSourceImageError: No active batch
            UnknownStyleError: Style not in the active batch
            TaskNotEditableError: Task has not settled
        """
        with self._edit_in_flight():
            batch = await self._settled_view(style)
            definition = get_shot_definition(style)
            instruction = build_edit_prompt(definition, batch.subject, edit_request)
            task = await self.editor.run(
                batch, style, instruction, image=None, custom_instruction=edit_request
            )
            return await self._persist_single(batch, task)

    async def retry_shot(self, style: Style) -> Task:
        """Re-run one shot with its original instruction and the source image.

        A shot that was edited before keeps its recorded instruction.
        """
        with self._edit_in_flight():
            batch = await self._settled_view(style)
            custom_instruction = batch.tasks[style].custom_instruction
            definition = get_shot_definition(style)
            instruction = build_prompt(definition, batch.subject, custom_instruction)
            task = await self.editor.run(
                batch,
                style,
                instruction,
                image=batch.source_image,
                custom_instruction=custom_instruction,
            )
            return await self._persist_single(batch, task)

    # History

    async def history(self) -> list[ProjectSnapshot]:
        return await self.persistence.history()

    async def load_project(self, project_id: str) -> Batch:
        """Resume a stored project under its original identity.

        Raises:
            ProjectNotFoundError: Nothing stored under ``project_id``
        """
        snapshot = await self.persistence.find(project_id)
        if snapshot is None:
            raise ProjectNotFoundError(f"Project {project_id} not found")

        batch = restore_batch(snapshot)
        self.context.project_id = snapshot.id
        self.context.source_image = batch.source_image
        self.context.subject = batch.subject
        self.context.subject_mode = batch.subject_mode
        self.context.aspect_ratio = batch.aspect_ratio
        self.context.batch = batch
        logger.info("project.loaded", project_id=snapshot.id, batch_id=batch.batch_id)
        return batch

    async def delete_project(self, project_id: str) -> bool:
        return await self.persistence.delete(project_id)

    def reset(self) -> None:
        """Forget the current project; in-flight results will be dropped."""
        self.context.clear(self.default_aspect_ratio)
        logger.info("project.reset")

    async def join(self) -> None:
        """Wait for every background batch started by ``launch_batch``."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)
        await self.aggregator.drain()

    async def aclose(self) -> None:
        """Cancel background batches and stop the aggregator loop."""
        for task in list(self._running):
            task.cancel()
        await asyncio.gather(*self._running, return_exceptions=True)
        await self.aggregator.aclose()

    # Internals

    async def _settled_view(self, style: Style) -> Batch:
        # Apply queued transitions first so the edit sees the latest task state
        await self.aggregator.drain()
        batch = self.context.batch
        if batch is None:
            raise NoSourceImageError("No active batch to edit")
        if style not in batch.tasks:
            raise UnknownStyleError(f"Style {style.value} is not part of the active batch")
        return batch

    @contextmanager
    def _edit_in_flight(self) -> Iterator[None]:
        self._edits_in_flight += 1
        self._edits_idle.clear()
        try:
            yield
        finally:
            self._edits_in_flight -= 1
            if self._edits_in_flight == 0:
                self._edits_idle.set()

    async def _wait_for_edits(self) -> None:
        # Edits of already settled tasks reopen them; the settlement write must
        # hold their outcome, not the running state
        while True:
            await self._edits_idle.wait()
            await self.aggregator.drain()
            if self._edits_idle.is_set():
                return

    async def _persist_single(self, batch: Batch, task: Task) -> Task:
        await self.aggregator.drain()
        if not self.aggregator.was_applied(batch.batch_id, task):
            logger.info("task.edit.discarded", batch_id=batch.batch_id, style=task.style.value)
            return task
        if task.status == TaskStatus.SUCCEEDED and self.context.batch is not None:
            await self.persistence.save(self.context.batch)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._running.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            logger.error(
                "batch.crashed",
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=exc,
            )
