"""Service for the bot mention audit log."""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select

from ..orm.bot_mention import BotMention
from .database import DatabaseService

logger = logging.getLogger(__name__)


class MentionService:
    """Service for recording and checking processed mentions."""

    def __init__(self, db: DatabaseService):
        self.db = db

    async def is_processed(self, cast_hash: str) -> bool:
        """Check if a mention has already been processed."""
        async with self.db.session() as session:
            result = await session.execute(
                select(BotMention.id).where(
                    BotMention.cast_hash == cast_hash,
                    BotMention.is_deleted == False,  # noqa: E712
                )
            )
            return result.scalar_one_or_none() is not None

    async def log_mention(
        self,
        cast_hash: str,
        author_fid: int,
        parent_cast_hash: Optional[str] = None,
        parent_cast_author_fid: Optional[int] = None,
        parent_cast_text: Optional[str] = None,
        detected_projects: Optional[list[str]] = None,
        features_created: int = 0,
        features_merged: int = 0,
        error: Optional[str] = None,
    ) -> BotMention:
        """Write the single audit entry for a processed mention.

        Raises:
            DuplicateRecordError: If this cast was already logged.
        """
        async with self.db.session() as session:
            mention = BotMention(
                cast_hash=cast_hash,
                mention_author_fid=author_fid,
                mentioned_at=datetime.now(timezone.utc),
                parent_cast_hash=parent_cast_hash,
                parent_cast_author_fid=parent_cast_author_fid,
                parent_cast_text=parent_cast_text,
                detected_projects=detected_projects or None,
                features_created=features_created,
                features_merged=features_merged,
                error_message=error,
            )
            session.add(mention)
            await session.commit()
            await session.refresh(mention)

        logger.debug("Logged mention %s (error=%s)", cast_hash, error)
        return mention

    async def get_mention(self, cast_hash: str) -> Optional[BotMention]:
        """Fetch the audit entry for a cast, if any."""
        async with self.db.session() as session:
            result = await session.execute(
                select(BotMention).where(BotMention.cast_hash == cast_hash)
            )
            return result.scalar_one_or_none()
