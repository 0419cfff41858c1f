"""ProjectSnapshot entity - durable, overwrite-in-place record of a project's batch."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Text
from sqlmodel import Field, SQLModel


class ProjectSnapshot(SQLModel, table=True):
    """ProjectSnapshot stores the latest batch state of a project.

    Keyed by project id; ``timestamp`` is indexed for newest-first listing.
    """

    __tablename__ = "projects"  # type: ignore[assignment]

    id: str = Field(primary_key=True, max_length=64)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), index=True, nullable=False),
    )
    source_image: str = Field(sa_column=Column(Text, nullable=False))
    subject_mode: str = Field(max_length=20)
    aspect_ratio: str = Field(max_length=10)
    subject: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    tasks: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
