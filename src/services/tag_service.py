"""Service for feature tags."""

import logging
from typing import Iterable, Optional

from sqlalchemy import select

from ..orm.tag import Tag
from .database import DatabaseService, DuplicateRecordError

logger = logging.getLogger(__name__)

PREDEFINED_TAGS = [
    "bug",
    "feature",
    "enhancement",
    "marketing",
    "strategy",
    "design",
    "mobile",
    "web",
    "api",
    "documentation",
    "performance",
    "security",
]


class TagService:
    """Service for resolving and creating tags."""

    def __init__(self, db: DatabaseService):
        self.db = db

    async def get_by_name(self, name: str) -> Optional[Tag]:
        """Case-insensitive lookup by name."""
        async with self.db.session() as session:
            result = await session.execute(select(Tag).where(Tag.name == name.strip().lower()))
            return result.scalar_one_or_none()

    async def create_tag(self, name: str, tag_type: str = "custom") -> Tag:
        """Create a tag.

        Raises:
            DuplicateRecordError: If the name already exists.
        """
        async with self.db.session() as session:
            tag = Tag(name=name.strip().lower(), type=tag_type)
            session.add(tag)
            await session.commit()
            await session.refresh(tag)
            return tag

    async def get_or_create(self, name: str, tag_type: str = "custom") -> Tag:
        """Resolve a tag by name, creating it when novel."""
        existing = await self.get_by_name(name)
        if existing:
            return existing
        try:
            return await self.create_tag(name, tag_type)
        except DuplicateRecordError:
            # Lost a race with a concurrent run; the row exists now
            tag = await self.get_by_name(name)
            if tag is None:
                raise
            return tag

    async def seed_predefined(self, names: Iterable[str] = PREDEFINED_TAGS) -> int:
        """Insert the fixed vocabulary; returns how many rows were added."""
        added = 0
        for name in names:
            if await self.get_by_name(name) is None:
                await self.get_or_create(name, tag_type="predefined")
                added += 1
        if added:
            logger.info("Seeded %d predefined tag(s)", added)
        return added
