"""Service for per-author daily rate limits."""

from datetime import datetime, timezone

from sqlalchemy import func, select

from ..orm.bot_mention import BotMention
from .database import DatabaseService


def start_of_utc_day(now: datetime | None = None) -> datetime:
    """Midnight (UTC) of the given moment's day."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


class RateLimitService:
    """Counts an author's mentions in the current UTC day."""

    def __init__(self, db: DatabaseService, max_per_day: int):
        self.db = db
        self.max_per_day = max_per_day

    async def mentions_today(self, author_fid: int) -> int:
        """Number of logged mentions from this author since midnight UTC."""
        async with self.db.session() as session:
            result = await session.execute(
                select(func.count(BotMention.id)).where(
                    BotMention.mention_author_fid == author_fid,
                    BotMention.mentioned_at >= start_of_utc_day(),
                    BotMention.is_deleted == False,  # noqa: E712
                )
            )
            return result.scalar_one()

    async def is_allowed(self, author_fid: int) -> bool:
        """Check if an author is within the daily limit."""
        return await self.mentions_today(author_fid) < self.max_per_day

    async def get_remaining(self, author_fid: int) -> int:
        """Get remaining mentions for an author today."""
        count = await self.mentions_today(author_fid)
        return max(0, self.max_per_day - count)
