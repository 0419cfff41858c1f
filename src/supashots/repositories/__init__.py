"""Repository layer for SupaShots.

Provides data access abstractions for stored entities.
"""

from supashots.repositories.project import ProjectRepository

__all__ = [
    "ProjectRepository",
]
