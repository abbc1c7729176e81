"""Second turn of the project-setup conversation.

After the bot asks for owner and token details, the user replies with free text
such as "Owner: @peth, Token: clanker" or "I'm the owner, token: 0x...". This
module parses that reply, resolves the owner to an account and creates the
project.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from .neynar_client import NeynarError
from .orm.project import Project
from .ports import SocialPlatform
from .services.project_service import ProjectService, normalize_handle

logger = logging.getLogger(__name__)

DEFAULT_TOKEN = "clanker"

TOKEN_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

_PROJECT_RE = re.compile(r"\bproject\s*(?::|\bis\b)\s*@([a-z0-9_-]+)", re.IGNORECASE)
_OWNER_RE = re.compile(
    r"\bowner\s*(?::|\bis\b)\s*(@?[a-z0-9_-]+)|\bowner\s+(@[a-z0-9_-]+|\d+)\b", re.IGNORECASE
)
_SELF_OWNER_RE = re.compile(
    r"\b(?:i['’]?m|i\s+am)\s+the\s+owner\b|\bme\s+as\s+(?:the\s+)?owner\b", re.IGNORECASE
)
_TOKEN_RE = re.compile(r"\btoken\s*(?::|\bis\b)\s*\$?([a-z0-9_]+)", re.IGNORECASE)
_TOKEN_LATER_RE = re.compile(r"\bwill\s+define\s+(?:the\s+)?token\s+later\b", re.IGNORECASE)

SELF_WORDS = frozenset({"me", "myself", "i"})


@dataclass
class SetupReply:
    """Fields found in a setup reply."""

    project: Optional[str] = None
    owner: Optional[str] = None
    owner_is_self: bool = False
    token: Optional[str] = None

    @property
    def has_owner_info(self) -> bool:
        return self.owner_is_self or bool(self.owner)


@dataclass
class ResolvedOwner:
    fid: int
    username: str


def parse_setup_reply(text: str) -> SetupReply:
    """
    Extract project handle, owner and token from a reply.

    Examples:
        >>> parse_setup_reply("Owner: @peth, Token: clanker")
        SetupReply(project=None, owner='peth', owner_is_self=False, token='clanker')
        >>> parse_setup_reply("I'm the owner, will define token later").owner_is_self
        True
    """
    reply = SetupReply()

    match = _PROJECT_RE.search(text)
    if match:
        reply.project = match.group(1).lower()

    if _SELF_OWNER_RE.search(text):
        reply.owner_is_self = True
    else:
        match = _OWNER_RE.search(text)
        if match:
            owner = (match.group(1) or match.group(2)).lstrip("@")
            if owner.lower() in SELF_WORDS:
                reply.owner_is_self = True
            else:
                reply.owner = owner

    match = _TOKEN_RE.search(text)
    if match:
        reply.token = match.group(1)
    elif _TOKEN_LATER_RE.search(text):
        reply.token = DEFAULT_TOKEN

    return reply


def voting_for(token: Optional[str]) -> tuple[str, Optional[str]]:
    """Map a token answer to (voting_type, token_address)."""
    if not token:
        return "score", None
    address = token if TOKEN_ADDRESS_RE.match(token) else None
    return "token", address


class ProjectSetup:
    """Resolve the owner named in a setup reply and create the project."""

    def __init__(
        self,
        social: SocialPlatform,
        project_service: ProjectService,
        bot_handle: str,
        bot_fid: Optional[int],
    ):
        self.social = social
        self.project_service = project_service
        self.bot_handle = bot_handle
        self.bot_fid = bot_fid

    async def resolve_owner(self, reply: SetupReply, author_fid: int) -> Optional[ResolvedOwner]:
        """Turn the owner answer into an account; None when it cannot be found."""
        try:
            if reply.owner_is_self:
                account = await self.social.get_account(author_fid)
                return ResolvedOwner(author_fid, account.username if account else str(author_fid))

            owner = reply.owner or ""
            if owner.isdigit():
                account = await self.social.get_account(int(owner))
                return ResolvedOwner(account.fid, account.username) if account else None

            if owner.lower() == self.bot_handle and self.bot_fid:
                logger.info("Owner is the bot itself, using bot fid %d", self.bot_fid)
                return ResolvedOwner(self.bot_fid, self.bot_handle)

            account = await self.social.lookup_account_by_handle(owner)
            return ResolvedOwner(account.fid, account.username) if account else None
        except NeynarError as e:
            logger.warning("Owner lookup failed for %r: %s", reply.owner, e)
            return None

    async def fetch_bio(self, handle: str) -> Optional[str]:
        """Bio of the project's own Farcaster profile, best effort."""
        try:
            account = await self.social.lookup_account_by_handle(handle)
        except NeynarError as e:
            logger.warning("Could not fetch bio for @%s: %s", handle, e)
            return None
        return account.bio if account else None

    async def create(self, handle: str, reply: SetupReply, owner: ResolvedOwner) -> Project:
        """Create the project described by a setup reply.

        Raises:
            DuplicateRecordError: If the handle is already taken.
        """
        handle = normalize_handle(handle)
        voting_type, token_address = voting_for(reply.token)
        bio = await self.fetch_bio(handle)

        project = await self.project_service.create_project(
            name=handle,
            handle=handle,
            owner_fid=owner.fid,
            bio=bio,
            voting_type=voting_type,
            token_address=token_address,
            created_by_bot=True,
        )
        logger.info(
            "Created project @%s (owner fid %d, voting %s)", handle, owner.fid, voting_type
        )
        return project
