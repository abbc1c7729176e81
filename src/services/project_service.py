"""Service for tracked projects."""

import logging
from typing import Optional

from sqlalchemy import select

from ..orm.project import Project, ProjectAdmin
from .database import DatabaseService

logger = logging.getLogger(__name__)


def normalize_handle(handle: str) -> str:
    """Canonical form of a project handle: no leading @, lowercase."""
    return handle.strip().lstrip("@").lower()


class ProjectService:
    """Service for looking up and creating projects."""

    def __init__(self, db: DatabaseService):
        self.db = db

    async def get_by_handle(self, handle: str) -> Optional[Project]:
        """Find a project by handle, regardless of the input's casing."""
        async with self.db.session() as session:
            result = await session.execute(
                select(Project).where(
                    Project.handle == normalize_handle(handle),
                    Project.is_deleted == False,  # noqa: E712
                )
            )
            return result.scalar_one_or_none()

    async def list_projects(self) -> list[Project]:
        """All live projects ordered by name."""
        async with self.db.session() as session:
            result = await session.execute(
                select(Project)
                .where(Project.is_deleted == False)  # noqa: E712
                .order_by(Project.name)
            )
            return list(result.scalars().all())

    async def list_handles(self) -> list[str]:
        """Handles of all live projects."""
        return [project.handle for project in await self.list_projects()]

    async def create_project(
        self,
        name: str,
        handle: str,
        owner_fid: int,
        bio: Optional[str] = None,
        voting_type: str = "score",
        token_address: Optional[str] = None,
        created_by_bot: bool = True,
    ) -> Project:
        """Create a project and grant its owner the admin role.

        Raises:
            DuplicateRecordError: If the handle is already taken.
        """
        async with self.db.session() as session:
            project = Project(
                name=name,
                handle=normalize_handle(handle),
                owner_fid=owner_fid,
                creator_fid=owner_fid,
                bio=bio,
                voting_type=voting_type,
                token_address=token_address,
                created_by_bot=created_by_bot,
                is_verified=False,
            )
            session.add(project)
            await session.flush()

            session.add(ProjectAdmin(project_id=project.id, fid=owner_fid, role="owner"))
            await session.commit()
            await session.refresh(project)

        logger.info("Created project @%s (owner=%s, voting=%s)", project.handle, owner_fid, voting_type)
        return project

    async def list_admins(self, project_id: str) -> list[ProjectAdmin]:
        """Admin rows for a project."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ProjectAdmin).where(ProjectAdmin.project_id == project_id)
            )
            return list(result.scalars().all())
