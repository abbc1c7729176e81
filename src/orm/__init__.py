"""ORM models for database persistence."""

from .base import Base, SqlalchemyBase
from .bot_mention import BotMention
from .feature import Feature, FeatureSource
from .project import Project, ProjectAdmin
from .tag import Tag, feature_tags

__all__ = [
    "Base",
    "SqlalchemyBase",
    "BotMention",
    "Feature",
    "FeatureSource",
    "Project",
    "ProjectAdmin",
    "Tag",
    "feature_tags",
]
