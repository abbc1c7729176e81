"""Feature and FeatureSource models."""

from typing import Optional

from sqlalchemy import JSON, BigInteger, Boolean, Float, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import SqlalchemyBase
from .tag import Tag, feature_tags


class Feature(SqlalchemyBase):
    """A roadmap entry (or sub-item option of one) belonging to a project."""

    __tablename__ = "features"
    __table_args__ = (
        Index("idx_features_project_id", "project_id"),
        Index("idx_features_parent_feature_id", "parent_feature_id"),
    )

    project_id: Mapped[str] = mapped_column(
        String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    submitter_fid: Mapped[int] = mapped_column(BigInteger, nullable=False)
    source_cast_hash: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    source_cast_author_fid: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    parent_feature_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("features.id", ondelete="CASCADE"), nullable=True
    )
    is_sub_item: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="open")
    total_weight: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    embedding: Mapped[Optional[list]] = mapped_column(JSON(none_as_null=True), nullable=True)

    tags: Mapped[list[Tag]] = relationship(secondary=feature_tags, lazy="selectin")
    sources: Mapped[list["FeatureSource"]] = relationship(
        back_populates="feature", lazy="selectin", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Feature(id={self.id}, project_id={self.project_id}, "
            f"title={self.title!r}, sub_item={self.is_sub_item})>"
        )


class FeatureSource(SqlalchemyBase):
    """A cast that contributed to (or reinforced) a feature."""

    __tablename__ = "feature_sources"
    __table_args__ = (Index("idx_feature_sources_feature_id", "feature_id"),)

    feature_id: Mapped[str] = mapped_column(
        String, ForeignKey("features.id", ondelete="CASCADE"), nullable=False
    )
    source_cast_hash: Mapped[str] = mapped_column(String, nullable=False)
    source_cast_author_fid: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    source_cast_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    feature: Mapped[Feature] = relationship(back_populates="sources")
