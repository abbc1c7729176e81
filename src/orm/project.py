"""Project and ProjectAdmin models."""

from typing import Optional

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class Project(SqlalchemyBase):
    """A tracked project whose roadmap collects features."""

    __tablename__ = "projects"
    __table_args__ = (Index("idx_projects_handle", "handle", unique=True),)

    name: Mapped[str] = mapped_column(String, nullable=False)
    # Always stored lowercase
    handle: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    voting_type: Mapped[str] = mapped_column(String, nullable=False, default="score")
    token_address: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    owner_fid: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    creator_fid: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    created_by_bot: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        """String representation."""
        return f"<Project(id={self.id}, handle={self.handle}, voting={self.voting_type})>"


class ProjectAdmin(SqlalchemyBase):
    """Administrative role of an account on a project."""

    __tablename__ = "project_admins"
    __table_args__ = (Index("idx_project_admins_project_fid", "project_id", "fid", unique=True),)

    project_id: Mapped[str] = mapped_column(
        String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    fid: Mapped[int] = mapped_column(BigInteger, nullable=False)
    role: Mapped[str] = mapped_column(String, nullable=False, default="owner")
