"""Service layer for business logic and database operations."""

from .database import DatabaseService, DuplicateRecordError, get_db_service, init_db_service
from .feature_service import FeatureService, SimilarFeature
from .mention_service import MentionService
from .project_service import ProjectService, normalize_handle
from .rate_limit_service import RateLimitService
from .tag_service import PREDEFINED_TAGS, TagService

__all__ = [
    "DatabaseService",
    "DuplicateRecordError",
    "FeatureService",
    "MentionService",
    "PREDEFINED_TAGS",
    "ProjectService",
    "RateLimitService",
    "SimilarFeature",
    "TagService",
    "get_db_service",
    "init_db_service",
    "normalize_handle",
]
