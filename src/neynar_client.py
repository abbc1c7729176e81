"""Neynar REST client for Farcaster interactions."""

import logging
from typing import Any, Optional

import httpx

from .config import FarcasterConfig
from .ports import Account, Cast

logger = logging.getLogger(__name__)


class NeynarError(Exception):
    """A Neynar request failed (transport error or non-2xx status)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _parse_cast(data: dict[str, Any]) -> Cast:
    author = data.get("author") or {}
    channel = data.get("channel") or {}
    return Cast(
        hash=data["hash"],
        text=data.get("text") or "",
        author_fid=int(author.get("fid") or 0),
        author_username=author.get("username") or "",
        parent_hash=data.get("parent_hash") or None,
        channel_id=(channel.get("id") or "").lower() or None,
    )


def _parse_account(data: dict[str, Any]) -> Account:
    bio = ((data.get("profile") or {}).get("bio") or {}).get("text")
    return Account(fid=int(data["fid"]), username=data.get("username") or "", bio=bio or None)


class NeynarClient:
    """Async wrapper around the Neynar v2 Farcaster API."""

    def __init__(
        self,
        config: FarcasterConfig,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.client = httpx.AsyncClient(
            base_url=config.api_base_url.rstrip("/"),
            headers={
                "x-api-key": config.api_key.get_secret_value(),
                "accept": "application/json",
            },
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    async def close(self) -> None:
        await self.client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
        allow_404: bool = False,
    ) -> Optional[dict[str, Any]]:
        """Send one request and decode the JSON body.

        Returns:
            The decoded body, or None for a 404 when allow_404 is set.

        Raises:
            NeynarError: On transport failure or unexpected status.
        """
        try:
            response = await self.client.request(method, path, params=params, json=json)
        except httpx.HTTPError as e:
            logger.error("Neynar %s %s failed: %s", method, path, e)
            raise NeynarError(f"{method} {path}: {e}") from e

        if response.status_code == 404 and allow_404:
            return None

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("Neynar %s %s failed (HTTP %d): %s",
                         method, path, e.response.status_code, e.response.text[:200])
            raise NeynarError(f"{method} {path}: HTTP {e.response.status_code}",
                              status_code=e.response.status_code) from e

        return response.json()

    async def get_cast(self, cast_hash: str) -> Optional[Cast]:
        """Look up a cast by hash."""
        data = await self._request(
            "GET", "/cast", params={"identifier": cast_hash, "type": "hash"}, allow_404=True
        )
        if not data or not data.get("cast"):
            return None
        return _parse_cast(data["cast"])

    async def get_thread(self, cast_hash: str) -> list[Cast]:
        """Direct replies under a cast (conversation reply depth 2)."""
        data = await self._request(
            "GET",
            "/cast/conversation",
            params={"identifier": cast_hash, "type": "hash", "reply_depth": 2},
            allow_404=True,
        )
        if not data:
            return []

        conversation = data.get("conversation") or {}
        # The replies live on the root cast in current responses
        root = conversation.get("cast") or {}
        replies = (
            root.get("direct_replies")
            or conversation.get("direct_replies")
            or conversation.get("replies")
            or []
        )
        return [_parse_cast(reply) for reply in replies if reply.get("hash")]

    async def post_reply(self, parent_hash: str, text: str) -> None:
        """Publish a reply to a cast."""
        await self._request(
            "POST",
            "/cast",
            json={
                "signer_uuid": self.config.signer_uuid.get_secret_value(),
                "text": text,
                "parent": parent_hash,
            },
        )
        logger.info("Posted reply to %s: %s", parent_hash, text[:50].replace("\n", " "))

    async def post_announcement(
        self,
        text: str,
        embed_cast_hash: Optional[str] = None,
        embed_cast_fid: Optional[int] = None,
    ) -> None:
        """Publish a standalone cast, optionally quoting another cast."""
        body: dict[str, Any] = {
            "signer_uuid": self.config.signer_uuid.get_secret_value(),
            "text": text,
        }
        if embed_cast_hash:
            body["embeds"] = [{"cast_id": {"fid": embed_cast_fid or 0, "hash": embed_cast_hash}}]
        await self._request("POST", "/cast", json=body)
        logger.info("Posted announcement: %s", text[:50].replace("\n", " "))

    async def _bulk_user(self, fid: int) -> Optional[dict[str, Any]]:
        data = await self._request("GET", "/user/bulk", params={"fids": str(fid)})
        users = (data or {}).get("users") or []
        return users[0] if users else None

    async def get_trust_score(self, fid: int) -> float:
        """Neynar user score in [0, 1]; 0 when unknown."""
        user = await self._bulk_user(fid)
        if not user:
            return 0.0
        score = (user.get("experimental") or {}).get("neynar_user_score")
        if score is None:
            score = user.get("score")
        return float(score or 0.0)

    async def get_account(self, fid: int) -> Optional[Account]:
        user = await self._bulk_user(fid)
        return _parse_account(user) if user else None

    async def lookup_account_by_handle(self, handle: str) -> Optional[Account]:
        """Resolve a username to an account; None when no such user."""
        data = await self._request(
            "GET", "/user/by_username", params={"username": handle.lstrip("@")}, allow_404=True
        )
        if not data or not data.get("user"):
            return None
        return _parse_account(data["user"])
