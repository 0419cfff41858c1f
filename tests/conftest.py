"""pytest fixtures for SupaShots tests.

Provides:
- backend: Scripted generation backend (per-style outcomes, optional hold gates)
- analyzer: Analyzer returning a fixed descriptor
- store: In-memory snapshot store (can be switched to failing)
- sleep: Recording sleep (no real waiting)
- orchestrator: ShotOrchestrator wired to the fakes above
- postgres_container: Session-scoped testcontainer PostgreSQL instance (skipped without Docker)
- session: Function-scoped database session with table cleanup
- uow_factory: Function-scoped UnitOfWork factory
"""

import os

# Settings validation is skipped in test environments
os.environ.setdefault("APP_ENV", "test")

import asyncio  # noqa: E402
import base64  # noqa: E402
from dataclasses import dataclass  # noqa: E402
from typing import AsyncGenerator, Optional, Union  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import text  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from testcontainers.postgres import PostgresContainer  # noqa: E402

from supashots.core.database import create_tables, setup_db_session  # noqa: E402
from supashots.models.batch import SubjectDescriptor  # noqa: E402
from supashots.models.project import ProjectSnapshot  # noqa: E402
from supashots.models.shot import AspectRatio, Style  # noqa: E402
from supashots.orchestrator.service import ShotOrchestrator  # noqa: E402
from supashots.services.catalog import SUBJECT_PLACEHOLDER, get_shot_definition  # noqa: E402
from supashots.services.exceptions import PersistenceError  # noqa: E402

SOURCE_IMAGE_A = base64.b64encode(b"source-image-a").decode("ascii")
SOURCE_IMAGE_B = base64.b64encode(b"source-image-b").decode("ascii")
RENDERED_IMAGE = b"\xff\xd8\xffrendered"

Outcome = Union[bytes, Exception]


def style_of(prompt: str) -> Style:
    """Recover the style a prompt was built for from its template prefix."""
    for style in Style:
        prefix = get_shot_definition(style).prompt_template.split(SUBJECT_PLACEHOLDER)[0]
        if prompt.startswith(prefix):
            return style
    raise AssertionError(f"Prompt matches no style: {prompt[:60]!r}")


@dataclass
class BackendCall:
    style: Style
    image: Optional[str]
    prompt: str
    aspect_ratio: AspectRatio


class ScriptedBackend:
    """Generation backend returning scripted outcomes per style.

    Unscripted calls succeed with RENDERED_IMAGE. ``hold(style)`` blocks the
    next call for that style until the returned event is set.
    """

    def __init__(self) -> None:
        self.calls: list[BackendCall] = []
        self._scripts: dict[Style, list[Outcome]] = {}
        self._gates: dict[Style, asyncio.Event] = {}

    def script(self, style: Style, *outcomes: Outcome) -> None:
        self._scripts[style] = list(outcomes)

    def hold(self, style: Style) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[style] = gate
        return gate

    def calls_for(self, style: Style) -> list[BackendCall]:
        return [call for call in self.calls if call.style == style]

    async def generate(
        self, image: Optional[str], prompt: str, aspect_ratio: AspectRatio
    ) -> bytes:
        style = style_of(prompt)
        self.calls.append(BackendCall(style, image, prompt, aspect_ratio))

        gate = self._gates.pop(style, None)
        if gate is not None:
            await gate.wait()

        outcomes = self._scripts.get(style)
        outcome = outcomes.pop(0) if outcomes else RENDERED_IMAGE
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeAnalyzer:
    def __init__(self, subject: Optional[SubjectDescriptor] = None) -> None:
        self.subject = subject or SubjectDescriptor(
            name="Amber Bottle",
            description="A tall amber glass bottle with a matte black cap",
            category="beverage",
            confidence=0.9,
        )
        self.images: list[str] = []

    async def analyze(self, image: str) -> SubjectDescriptor:
        self.images.append(image)
        return self.subject


class InMemorySnapshotStore:
    """Snapshot store keeping the latest snapshot per project id."""

    def __init__(self) -> None:
        self.snapshots: dict[str, ProjectSnapshot] = {}
        self.put_count = 0
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise PersistenceError("store unavailable")

    async def put(self, snapshot: ProjectSnapshot) -> None:
        self._check()
        self.put_count += 1
        self.snapshots[snapshot.id] = snapshot

    async def get(self, project_id: str) -> Optional[ProjectSnapshot]:
        self._check()
        return self.snapshots.get(project_id)

    async def get_all_ordered_by_timestamp_desc(self) -> list[ProjectSnapshot]:
        self._check()
        return sorted(self.snapshots.values(), key=lambda s: s.timestamp, reverse=True)

    async def delete(self, project_id: str) -> None:
        self._check()
        self.snapshots.pop(project_id, None)


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays and only yields."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


async def wait_until(predicate, attempts: int = 1000) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.fixture
def backend() -> ScriptedBackend:
    return ScriptedBackend()


@pytest.fixture
def analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture
def store() -> InMemorySnapshotStore:
    return InMemorySnapshotStore()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest_asyncio.fixture
async def orchestrator(backend, analyzer, store, sleep) -> AsyncGenerator[ShotOrchestrator, None]:
    """Provide an orchestrator with concurrency 1 and a 1s (recorded) round pause."""
    orchestrator = ShotOrchestrator(
        analyzer=analyzer,
        backend=backend,
        store=store,
        concurrency=1,
        round_pause_seconds=1.0,
        sleep=sleep,
    )
    yield orchestrator
    await orchestrator.aclose()


@pytest.fixture(scope="session")
def postgres_container():
    """Provide session-scoped PostgreSQL container with tables created.

    Container starts once per test session and is reused across all tests.
    Tests depending on it are skipped when Docker is not reachable.
    """
    container = PostgresContainer(
        image="postgres:17",
        username="test",
        password="test",
        dbname="test_supashots",
    )
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"PostgreSQL container unavailable: {e}")

    try:
        db_url = container.get_connection_url(driver="psycopg")

        async def _create() -> None:
            engine = create_async_engine(db_url)
            await create_tables(engine)
            await engine.dispose()

        # Separate loop; pytest-asyncio loops are function scoped
        asyncio.run(_create())
        yield container
    finally:
        container.stop()


@pytest_asyncio.fixture(scope="function")
async def session(postgres_container) -> AsyncGenerator[AsyncSession, None]:
    """Provide function-scoped database session with table cleanup.

    Each test gets a fresh session with an empty projects table.
    """
    db_url = postgres_container.get_connection_url(driver="psycopg")
    session_factory = setup_db_session(db_url, pool_size=5)

    async with session_factory() as session:
        yield session

        # Rollback any uncommitted changes from the test
        await session.rollback()

        await session.execute(text("DELETE FROM projects"))
        await session.commit()

    await session_factory.kw["bind"].dispose()


@pytest_asyncio.fixture(scope="function")
async def uow_factory(session: AsyncSession):
    """Provide function-scoped UnitOfWork factory.

    Returns a callable that creates UoW instances bound to the test session's engine.
    """
    from sqlalchemy.ext.asyncio import async_sessionmaker

    from supashots.uow import create_uow_factory

    session_factory = async_sessionmaker(
        bind=session.bind,
        expire_on_commit=False,
    )

    return create_uow_factory(session_factory)
