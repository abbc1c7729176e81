"""Embedding-based similarity search over a project's features."""

import logging

from .llm_gateway import LLMGateway
from .services.feature_service import FeatureService, SimilarFeature

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 5


def embedding_text(title: str, description: str) -> str:
    """Text that represents a feature in embedding space."""
    return f"{title}. {description}".strip()


class SimilarityEngine:
    """Find near-duplicate features and keep embeddings up to date."""

    def __init__(self, gateway: LLMGateway, feature_service: FeatureService, threshold: float):
        self.gateway = gateway
        self.feature_service = feature_service
        self.threshold = threshold

    async def find_similar(self, project_id: str, title: str, description: str) -> list[SimilarFeature]:
        """Ranked candidates above the threshold; empty on any failure."""
        result = await self.gateway.embed(embedding_text(title, description))
        if not result.ok:
            logger.warning("Embedding failed for %r (%s), treating as no match",
                           title[:50], result.reason.value)
            return []

        try:
            candidates = await self.feature_service.match_features(
                project_id, result.value, threshold=self.threshold, limit=MAX_CANDIDATES
            )
        except Exception as e:
            logger.error("Similarity search failed: %s", e, exc_info=True)
            return []

        logger.info("Found %d similar feature(s) for %r", len(candidates), title[:50])
        return candidates

    async def store_embedding(self, feature_id: str, title: str, description: str) -> bool:
        """Compute and persist a feature's embedding. Returns False on failure."""
        result = await self.gateway.embed(embedding_text(title, description))
        if not result.ok:
            logger.warning("Could not embed feature %s (%s)", feature_id, result.reason.value)
            return False

        try:
            await self.feature_service.store_embedding(feature_id, result.value)
        except Exception as e:
            logger.error("Failed to store embedding for feature %s: %s", feature_id, e, exc_info=True)
            return False

        logger.debug("Stored embedding for feature %s", feature_id)
        return True
