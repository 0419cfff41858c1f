"""Unit of Work pattern for SupaShots.

Provides transaction management with automatic commit/rollback and access to all
repositories, plus the snapshot store the orchestrator persists through.
"""

from typing import Awaitable, Callable, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from supashots.models.project import ProjectSnapshot
from supashots.repositories.project import ProjectRepository
from supashots.services.exceptions import PersistenceError

logger = structlog.get_logger()


class UnitOfWork:
    """Unit of Work pattern implementation.

    Manages database transactions and provides access to all repositories.
    Use as async context manager for automatic commit/rollback.

    Example:
        async with await uow_factory() as uow:
            await uow.projects.upsert(snapshot)
            # Automatically commits on successful exit
            # Automatically rolls back on exception
    """

    def __init__(self, session: AsyncSession):
        """Initialize UnitOfWork with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session
        self.projects = ProjectRepository(session)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager with automatic commit/rollback.

        Returns:
            False: Always re-raise exceptions after rollback
        """
        try:
            if exc_type is None:
                await self.session.commit()
                logger.debug("transaction.committed")
            else:
                await self.session.rollback()
                logger.info("transaction.rolled_back", exc_type=exc_type.__name__)
        finally:
            await self.session.close()

        return False


UoWFactory = Callable[[], Awaitable[UnitOfWork]]


def create_uow_factory(session_factory: async_sessionmaker[AsyncSession]) -> UoWFactory:
    """Create a factory function that produces UnitOfWork instances.

    Args:
        session_factory: SQLAlchemy async session factory

    Returns:
        Callable that creates UnitOfWork instances from new sessions

    Example:
        session_factory = setup_db_session(db_url, pool_size=10)
        uow_factory = create_uow_factory(session_factory)

        async with await uow_factory() as uow:
            snapshots = await uow.projects.list_newest_first()
    """

    async def _create_uow():
        """Create a new UnitOfWork instance with a new session."""
        session = session_factory()
        return UnitOfWork(session)

    return _create_uow


class SqlSnapshotStore:
    """Snapshot store backed by the database, one transaction per operation.

    Database failures surface as PersistenceError.
    """

    def __init__(self, uow_factory: UoWFactory):
        self.uow_factory = uow_factory

    async def put(self, snapshot: ProjectSnapshot) -> None:
        try:
            async with await self.uow_factory() as uow:
                await uow.projects.upsert(snapshot)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to store project {snapshot.id}: {e}") from e

    async def get(self, project_id: str) -> Optional[ProjectSnapshot]:
        try:
            async with await self.uow_factory() as uow:
                return await uow.projects.get_by_id(project_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load project {project_id}: {e}") from e

    async def get_all_ordered_by_timestamp_desc(self) -> list[ProjectSnapshot]:
        try:
            async with await self.uow_factory() as uow:
                return await uow.projects.list_newest_first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list projects: {e}") from e

    async def delete(self, project_id: str) -> None:
        try:
            async with await self.uow_factory() as uow:
                await uow.projects.delete(project_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to delete project {project_id}: {e}") from e
