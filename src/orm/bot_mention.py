"""BotMention model: one audit row per processed mention."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, BigInteger, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class BotMention(SqlalchemyBase):
    """Audit log of processed mentions; also the dedup and rate-limit source."""

    __tablename__ = "bot_mentions"
    __table_args__ = (
        Index("idx_bot_mentions_cast_hash", "cast_hash", unique=True),
        Index("idx_bot_mentions_author_mentioned_at", "mention_author_fid", "mentioned_at"),
    )

    cast_hash: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    mention_author_fid: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mentioned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    parent_cast_hash: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    parent_cast_author_fid: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    parent_cast_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    detected_projects: Mapped[Optional[list]] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )
    features_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    features_merged: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<BotMention(cast_hash={self.cast_hash}, author={self.mention_author_fid}, "
            f"created={self.features_created}, merged={self.features_merged}, "
            f"error={self.error_message!r})>"
        )
