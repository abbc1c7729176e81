"""Tag model and the feature/tag association table."""

from sqlalchemy import Column, ForeignKey, Index, String, Table
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, SqlalchemyBase

feature_tags = Table(
    "feature_tags",
    Base.metadata,
    Column("feature_id", String, ForeignKey("features.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", String, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Tag(SqlalchemyBase):
    """Category label attached to features."""

    __tablename__ = "tags"
    __table_args__ = (Index("idx_tags_name", "name", unique=True),)

    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    type: Mapped[str] = mapped_column(String, nullable=False, default="custom")  # predefined|custom

    def __repr__(self) -> str:
        """String representation."""
        return f"<Tag(name={self.name}, type={self.type})>"
