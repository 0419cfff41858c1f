"""ProjectSnapshot repository for SupaShots.

Provides data access methods for stored project snapshots.
"""

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from supashots.models.project import ProjectSnapshot


class ProjectRepository:
    """Repository for ProjectSnapshot entities.

    Writes are UPSERTs keyed by project id, so saving a project again
    replaces the previous snapshot in place.
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def upsert(self, snapshot: ProjectSnapshot) -> None:
        """Insert or overwrite the snapshot for ``snapshot.id``.

        Query explanation:
        - INSERT: Try to insert new row
        - ON CONFLICT (id): If the project already has a snapshot
        - DO UPDATE: Replace every column with the new values

        Args:
            snapshot: Snapshot to store
        """
        values = {
            "id": snapshot.id,
            "timestamp": snapshot.timestamp,
            "source_image": snapshot.source_image,
            "subject_mode": snapshot.subject_mode,
            "aspect_ratio": snapshot.aspect_ratio,
            "subject": snapshot.subject,
            "tasks": snapshot.tasks,
        }
        stmt = insert(ProjectSnapshot).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={key: value for key, value in values.items() if key != "id"},
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def get_by_id(self, project_id: str) -> ProjectSnapshot | None:
        """Retrieve a project's snapshot.

        Args:
            project_id: Project identifier

        Returns:
            ProjectSnapshot if found, None otherwise
        """
        result = await self.session.execute(
            select(ProjectSnapshot).where(ProjectSnapshot.id == project_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def list_newest_first(self) -> list[ProjectSnapshot]:
        """Retrieve all snapshots ordered by timestamp, newest first.

        Returns:
            List of snapshots (may be empty)
        """
        result = await self.session.execute(
            select(ProjectSnapshot).order_by(ProjectSnapshot.timestamp.desc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def delete(self, project_id: str) -> bool:
        """Delete a project's snapshot (idempotent).

        Args:
            project_id: Project identifier

        Returns:
            True if a snapshot was deleted, False if none existed
        """
        result = await self.session.execute(
            delete(ProjectSnapshot).where(ProjectSnapshot.id == project_id)  # type: ignore[arg-type]
        )
        await self.session.flush()
        return result.rowcount > 0  # type: ignore[attr-defined]
