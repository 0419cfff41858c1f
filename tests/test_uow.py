"""Unit of Work and SQL snapshot store tests.

Tests focus on transaction management:
- Successful commits persist changes
- Exceptions trigger rollback
- SqlSnapshotStore round-trips snapshots through one UoW per operation
"""

from datetime import datetime, timedelta, timezone

import pytest
from conftest import SOURCE_IMAGE_A
from sqlalchemy.exc import OperationalError

from supashots.models.batch import Batch, SubjectDescriptor
from supashots.models.project import ProjectSnapshot
from supashots.models.shot import AspectRatio, Style, SubjectMode
from supashots.models.task import TaskStatus
from supashots.orchestrator.persistence import restore_batch, snapshot_of
from supashots.services.catalog import PRODUCT_STYLES
from supashots.services.exceptions import PersistenceError
from supashots.uow import SqlSnapshotStore


def make_snapshot(project_id: str = "project-1", **overrides) -> ProjectSnapshot:
    values = {
        "id": project_id,
        "source_image": SOURCE_IMAGE_A,
        "subject_mode": "product",
        "aspect_ratio": "3:4",
        "subject": {"name": "Amber Bottle"},
        "tasks": {},
    }
    values.update(overrides)
    return ProjectSnapshot(**values)


@pytest.mark.asyncio
async def test_uow_commits_on_successful_exit(uow_factory):
    """Changes made within the context persist after the context exits."""
    async with await uow_factory() as uow:
        await uow.projects.upsert(make_snapshot())

    async with await uow_factory() as uow:
        found = await uow.projects.get_by_id("project-1")
        assert found is not None
        assert found.subject == {"name": "Amber Bottle"}


@pytest.mark.asyncio
async def test_uow_rollback_on_exception(uow_factory):
    """Exceptions roll the transaction back and still propagate."""
    with pytest.raises(ValueError, match="Simulated error"):
        async with await uow_factory() as uow:
            await uow.projects.upsert(make_snapshot())

            # Raise exception - should trigger rollback AND propagate
            raise ValueError("Simulated error")

    async with await uow_factory() as uow:
        assert await uow.projects.get_by_id("project-1") is None


@pytest.mark.asyncio
async def test_sql_snapshot_store_round_trips_batch(uow_factory):
    """A settled batch survives a store round trip and restores as the same project."""
    batch = Batch.create(
        project_id="project-rt",
        source_image=SOURCE_IMAGE_A,
        subject=SubjectDescriptor(name="Amber Bottle", confidence=0.9),
        subject_mode=SubjectMode.PRODUCT,
        aspect_ratio=AspectRatio.LANDSCAPE_16_9,
        styles=PRODUCT_STYLES,
    )
    hero = batch.tasks[Style.HERO].model_copy(deep=True)
    hero.mark_running()
    hero.mark_succeeded("data:image/jpeg;base64,AAAA")
    batch = batch.with_task(hero)

    store = SqlSnapshotStore(uow_factory)
    await store.put(snapshot_of(batch))
    loaded = await store.get("project-rt")

    assert loaded is not None
    restored = restore_batch(loaded)
    assert restored.project_id == "project-rt"
    assert restored.aspect_ratio == AspectRatio.LANDSCAPE_16_9
    assert restored.subject.name == "Amber Bottle"
    assert restored.tasks[Style.HERO].output == "data:image/jpeg;base64,AAAA"
    # Pending tasks had nothing left generating them
    assert restored.tasks[Style.MACRO].status == TaskStatus.FAILED


@pytest.mark.asyncio
async def test_sql_snapshot_store_lists_newest_first_and_deletes(uow_factory):
    now = datetime.now(timezone.utc)
    store = SqlSnapshotStore(uow_factory)
    await store.put(make_snapshot("older", timestamp=now - timedelta(minutes=5)))
    await store.put(make_snapshot("newer", timestamp=now))

    assert [s.id for s in await store.get_all_ordered_by_timestamp_desc()] == ["newer", "older"]

    await store.delete("older")
    await store.delete("never-stored")

    assert [s.id for s in await store.get_all_ordered_by_timestamp_desc()] == ["newer"]


@pytest.mark.asyncio
async def test_sql_snapshot_store_wraps_database_errors():
    """Database failures reach callers as PersistenceError, not driver exceptions."""

    async def unreachable_database():
        raise OperationalError("SELECT 1", None, Exception("connection refused"))

    store = SqlSnapshotStore(unreachable_database)

    with pytest.raises(PersistenceError, match="connection refused"):
        await store.put(make_snapshot())
    with pytest.raises(PersistenceError):
        await store.get("project-1")
    with pytest.raises(PersistenceError):
        await store.get_all_ordered_by_timestamp_desc()
    with pytest.raises(PersistenceError):
        await store.delete("project-1")
