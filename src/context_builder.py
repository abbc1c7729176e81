"""Conversation context assembly for one mention.

The bot keeps no session table for the project-setup conversation. Which
project is being set up is recovered on every turn by finding the bot's own
earlier "NEW PROJECT ALERT!" reply in the thread and reading the handle it
named. This only works as long as that reply text keeps its marker.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from .neynar_client import NeynarError
from .ports import Cast, SocialPlatform
from .voice import NEW_PROJECT_MARKER

logger = logging.getLogger(__name__)

SEPARATOR = "\n\n---\n\n"

_MENTION_RE = re.compile(r"@([a-z0-9_-]+)", re.IGNORECASE)


@dataclass
class ConversationContext:
    """Text window and setup state derived for one mention.

    `text` is the labeled window shown to the model and includes the bot's own
    casts. `extraction_text` holds only what users wrote, without labels.
    """

    text: str
    is_reply_to_bot: bool
    pending_project_handle: Optional[str]
    current_text: str
    extraction_text: str = ""
    channel_id: Optional[str] = None
    parent: Optional[Cast] = None
    casts: list[Cast] = field(default_factory=list)


class ContextBuilder:
    """Reconstructs the conversation around a mention."""

    def __init__(self, social: SocialPlatform, bot_fid: Optional[int], bot_handle: str, max_depth: int = 5):
        self.social = social
        self.bot_fid = bot_fid
        self.bot_handle = bot_handle.lstrip("@").lower()
        self.max_depth = max_depth

    def is_bot(self, cast: Cast) -> bool:
        """True if the cast was written by this bot (fid first, handle second)."""
        if self.bot_fid is not None and cast.author_fid == self.bot_fid:
            return True
        return (cast.author_username or "").lower() == self.bot_handle

    def pending_handle(self, casts: list[Cast]) -> Optional[str]:
        """Project handle named by the most recent bot setup prompt, if any."""
        for cast in reversed(casts):
            if NEW_PROJECT_MARKER not in cast.text:
                continue
            for match in _MENTION_RE.finditer(cast.text):
                handle = match.group(1).lower()
                if handle not in (self.bot_handle, "unknown"):
                    return handle
        return None

    async def build(
        self, current_hash: str, parent_hash: str, parent: Optional[Cast] = None
    ) -> ConversationContext:
        """
        Assemble the text window for a mention.

        Args:
            current_hash: Hash of the mention cast.
            parent_hash: Hash of the cast it replies to.
            parent: The parent cast when the caller already fetched it.

        Returns:
            ConversationContext. When the parent is the bot's own cast, the text is
            the ancestor chain oldest first, then the parent, then the current
            message, each labeled. Otherwise it is current, parent, then replies.
        """
        current = await self._fetch(current_hash)
        current_text = current.text if current else ""
        current_channel = current.channel_id if current else None
        if parent is None:
            parent = await self._fetch(parent_hash)

        if parent is None:
            return ConversationContext(
                text=current_text,
                is_reply_to_bot=False,
                pending_project_handle=None,
                current_text=current_text,
                extraction_text=current_text,
                channel_id=current_channel,
            )

        channel = current_channel or parent.channel_id

        if self.is_bot(parent):
            ancestors = await self._ancestors(parent)
            chain = ancestors + [parent]
            parts = [f"[Earlier] @{c.author_username}: {c.text}" for c in ancestors]
            parts.append(f"[Bot's message] @{parent.author_username}: {parent.text}")
            parts.append(f"[Reply] {current_text}")
            handle = self.pending_handle(chain)
            logger.info("Reply to bot; %d ancestor(s), pending project: %s", len(ancestors), handle)
            return ConversationContext(
                text="\n\n".join(parts),
                is_reply_to_bot=True,
                pending_project_handle=handle,
                current_text=current_text,
                extraction_text=self._user_text(current_text, ancestors),
                channel_id=channel,
                parent=parent,
                casts=chain,
            )

        thread = await self._thread(parent_hash)
        casts = [parent]
        seen = {parent.hash, current_hash}
        for reply in thread:
            if reply.hash not in seen:
                seen.add(reply.hash)
                casts.append(reply)

        texts = [t for t in [current_text] + [c.text for c in casts] if t.strip()]
        logger.info("Context assembled from %d cast(s)", len(texts))
        return ConversationContext(
            text=SEPARATOR.join(texts),
            is_reply_to_bot=False,
            pending_project_handle=self.pending_handle(casts),
            current_text=current_text,
            extraction_text=self._user_text(current_text, casts),
            channel_id=channel,
            parent=parent,
            casts=casts,
        )

    def _user_text(self, current_text: str, casts: list[Cast]) -> str:
        """Current message plus every cast the bot did not write, unlabeled."""
        texts = [current_text] + [c.text for c in casts if not self.is_bot(c)]
        return SEPARATOR.join(t for t in texts if t.strip())

    async def _ancestors(self, cast: Cast) -> list[Cast]:
        """Casts above `cast`, oldest first, at most max_depth of them."""
        chain: list[Cast] = []
        next_hash = cast.parent_hash
        while next_hash and len(chain) < self.max_depth:
            ancestor = await self._fetch(next_hash)
            if ancestor is None:
                break
            chain.append(ancestor)
            next_hash = ancestor.parent_hash
        chain.reverse()
        return chain

    async def _fetch(self, cast_hash: str) -> Optional[Cast]:
        try:
            return await self.social.get_cast(cast_hash)
        except NeynarError as e:
            logger.warning("Could not fetch cast %s: %s", cast_hash, e)
            return None

    async def _thread(self, cast_hash: str) -> list[Cast]:
        try:
            return await self.social.get_thread(cast_hash)
        except NeynarError as e:
            logger.warning("Could not fetch thread for %s: %s", cast_hash, e)
            return []
