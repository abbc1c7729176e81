"""Contracts the processor depends on, independent of any concrete client."""

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass
class Cast:
    """A single Farcaster cast."""

    hash: str
    text: str
    author_fid: int
    author_username: str
    parent_hash: Optional[str] = None
    channel_id: Optional[str] = None

    def __str__(self) -> str:
        return f"@{self.author_username}: {self.text}"


@dataclass
class Account:
    """A Farcaster account."""

    fid: int
    username: str
    bio: Optional[str] = None


class SocialPlatform(Protocol):
    """Social network operations used while processing a mention."""

    async def get_cast(self, cast_hash: str) -> Optional[Cast]:
        """Fetch one cast; None when it does not exist."""
        ...

    async def get_thread(self, cast_hash: str) -> list[Cast]:
        """Replies under a cast, bounded depth."""
        ...

    async def post_reply(self, parent_hash: str, text: str) -> None:
        ...

    async def post_announcement(self, text: str, embed_cast_hash: Optional[str] = None,
                                embed_cast_fid: Optional[int] = None) -> None:
        ...

    async def get_trust_score(self, fid: int) -> float:
        ...

    async def get_account(self, fid: int) -> Optional[Account]:
        ...

    async def lookup_account_by_handle(self, handle: str) -> Optional[Account]:
        ...
