"""Automatic tagging of features."""

import logging

from .llm_gateway import LLMGateway, sanitize_text
from .services.database import DuplicateRecordError
from .services.tag_service import PREDEFINED_TAGS, TagService

logger = logging.getLogger(__name__)

MAX_TAGS = 4

TAG_PROMPT = """Categorize this feature request with 2-4 relevant tags.

Predefined tags: {predefined}

You can also suggest new tags if needed (e.g., "notifications", "ux", "onboarding").

Feature:
Title: {title}
Description: {description}

Return JSON array of lowercase tag names only:"""


class Tagger:
    """Assign category tags to a feature. Best effort: failures yield no tags."""

    def __init__(self, gateway: LLMGateway, tag_service: TagService):
        self.gateway = gateway
        self.tag_service = tag_service

    async def tag(self, title: str, description: str) -> list[str]:
        """Return ids of up to four tags for the feature (possibly empty)."""
        prompt = TAG_PROMPT.format(
            predefined=", ".join(PREDEFINED_TAGS),
            title=sanitize_text(title),
            description=sanitize_text(description),
        )
        result = await self.gateway.complete_json(prompt, schema=list[str], temperature=0.3)
        if not result.ok:
            logger.warning("Tagging failed (%s): %s", result.reason.value, result.detail)
            return []

        tag_ids: list[str] = []
        for raw in result.value[:MAX_TAGS]:
            name = raw.strip().lower()
            if not name:
                continue
            try:
                tag = await self.tag_service.get_or_create(name)
            except DuplicateRecordError:
                logger.warning("Could not resolve tag %r", name)
                continue
            except Exception as e:
                logger.error("Tag lookup failed for %r: %s", name, e, exc_info=True)
                return tag_ids
            if tag.id not in tag_ids:
                tag_ids.append(tag.id)

        logger.debug("Tagged %r with %s", title, tag_ids)
        return tag_ids
