"""Service for roadmap features, their sources, and their embeddings."""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from sqlalchemy import select

from ..orm.feature import Feature, FeatureSource
from ..orm.tag import Tag
from .database import DatabaseService

logger = logging.getLogger(__name__)


@dataclass
class SimilarFeature:
    """A nearest-neighbour candidate for a new feature."""

    id: str
    title: str
    description: str
    similarity: float


def cosine_similarities(query: Sequence[float], matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of one query vector against each row of matrix."""
    q = np.asarray(query, dtype=np.float64)
    q_norm = np.linalg.norm(q)
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = row_norms * q_norm
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(denom > 0, matrix @ q / denom, 0.0)
    return sims


class FeatureService:
    """Service for creating, merging, and searching features."""

    def __init__(self, db: DatabaseService):
        self.db = db

    async def create_feature(
        self,
        project_id: str,
        title: str,
        description: str,
        submitter_fid: int,
        source_cast_hash: Optional[str] = None,
        source_cast_author_fid: Optional[int] = None,
        parent_feature_id: Optional[str] = None,
        is_sub_item: bool = False,
        tag_ids: Optional[list[str]] = None,
    ) -> Feature:
        """Insert a new open feature with zero weight."""
        async with self.db.session() as session:
            feature = Feature(
                project_id=project_id,
                title=title,
                description=description,
                submitter_fid=submitter_fid,
                source_cast_hash=source_cast_hash,
                source_cast_author_fid=source_cast_author_fid,
                parent_feature_id=parent_feature_id,
                is_sub_item=is_sub_item,
                status="open",
                total_weight=0,
            )
            if tag_ids:
                result = await session.execute(select(Tag).where(Tag.id.in_(tag_ids)))
                feature.tags = list(result.scalars().all())

            session.add(feature)
            await session.commit()
            await session.refresh(feature)

        logger.debug("Created feature %s (%r) in project %s", feature.id, title, project_id)
        return feature

    async def get_feature(self, feature_id: str) -> Optional[Feature]:
        """Fetch a feature with its tags and sources loaded."""
        async with self.db.session() as session:
            result = await session.execute(select(Feature).where(Feature.id == feature_id))
            return result.scalar_one_or_none()

    async def list_features(self, project_id: str) -> list[Feature]:
        """All live features of a project, oldest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(Feature)
                .where(
                    Feature.project_id == project_id,
                    Feature.is_deleted == False,  # noqa: E712
                )
                .order_by(Feature.created_at)
            )
            return list(result.scalars().all())

    async def add_source(
        self,
        feature_id: str,
        source_cast_hash: str,
        source_cast_author_fid: Optional[int] = None,
        source_cast_text: Optional[str] = None,
    ) -> FeatureSource:
        """Attach an originating cast to a feature."""
        async with self.db.session() as session:
            source = FeatureSource(
                feature_id=feature_id,
                source_cast_hash=source_cast_hash,
                source_cast_author_fid=source_cast_author_fid,
                source_cast_text=source_cast_text,
            )
            session.add(source)
            await session.commit()
            await session.refresh(source)
            return source

    async def update_description(self, feature_id: str, description: str) -> None:
        """Replace a feature's description."""
        async with self.db.session() as session:
            feature = await session.get(Feature, feature_id)
            if feature is None:
                raise LookupError(f"Feature not found: {feature_id}")
            feature.description = description
            await session.commit()

    async def store_embedding(self, feature_id: str, embedding: list[float]) -> None:
        """Persist the embedding vector used for similarity search."""
        async with self.db.session() as session:
            feature = await session.get(Feature, feature_id)
            if feature is None:
                raise LookupError(f"Feature not found: {feature_id}")
            feature.embedding = [float(x) for x in embedding]
            await session.commit()

    async def match_features(
        self,
        project_id: str,
        query_embedding: Sequence[float],
        threshold: float,
        limit: int = 5,
    ) -> list[SimilarFeature]:
        """Nearest neighbours by cosine similarity within one project.

        Args:
            project_id: Only features of this project are candidates.
            query_embedding: Vector to compare against stored embeddings.
            threshold: Minimum similarity for a candidate to be returned.
            limit: Maximum number of candidates.

        Returns:
            Candidates ordered by descending similarity.
        """
        async with self.db.session() as session:
            result = await session.execute(
                select(Feature.id, Feature.title, Feature.description, Feature.embedding).where(
                    Feature.project_id == project_id,
                    Feature.embedding.is_not(None),
                    Feature.is_deleted == False,  # noqa: E712
                )
            )
            rows = [row for row in result.all() if row.embedding]

        dim = len(query_embedding)
        rows = [row for row in rows if len(row.embedding) == dim]
        if not rows:
            return []

        matrix = np.asarray([row.embedding for row in rows], dtype=np.float64)
        sims = cosine_similarities(query_embedding, matrix)

        candidates = [
            SimilarFeature(
                id=row.id,
                title=row.title,
                description=row.description,
                similarity=float(sim),
            )
            for row, sim in zip(rows, sims)
            if sim >= threshold
        ]
        candidates.sort(key=lambda c: c.similarity, reverse=True)
        return candidates[:limit]
