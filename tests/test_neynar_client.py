"""Tests for NeynarClient against a mocked transport."""

import json

import httpx
import pytest

from fakes import make_config
from src.neynar_client import NeynarClient, NeynarError

CAST = {"hash": "0x1", "text": "I wish there was dark mode", "author": {"fid": 10, "username": "alice"}}


class Recorder:
    """httpx mock handler that serves canned responses and keeps requests."""

    def __init__(self, routes):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.routes.get((request.method, request.url.path), (404, {"message": "not found"}))
        return httpx.Response(status, json=body)


def make_client(routes):
    recorder = Recorder(routes)
    config = make_config().farcaster
    return NeynarClient(config, transport=httpx.MockTransport(recorder)), recorder


class TestCasts:
    async def test_get_cast(self):
        client, recorder = make_client({("GET", "/v2/farcaster/cast"): (200, {"cast": {**CAST, "parent_hash": "0x0"}})})

        cast = await client.get_cast("0x1")

        assert (cast.hash, cast.text, cast.author_fid, cast.author_username, cast.parent_hash) == (
            "0x1", "I wish there was dark mode", 10, "alice", "0x0"
        )
        request = recorder.requests[0]
        assert request.url.params["identifier"] == "0x1"
        assert request.url.params["type"] == "hash"
        assert request.headers["x-api-key"] == "neynar-key"
        await client.close()

    async def test_cast_channel(self):
        client, _ = make_client(
            {("GET", "/v2/farcaster/cast"): (200, {"cast": {**CAST, "channel": {"id": "Base", "name": "Base"}}})}
        )

        cast = await client.get_cast("0x1")

        assert cast.channel_id == "base"

    async def test_cast_without_channel(self):
        client, _ = make_client({("GET", "/v2/farcaster/cast"): (200, {"cast": {**CAST, "channel": None}})})

        assert (await client.get_cast("0x1")).channel_id is None

    async def test_missing_cast(self):
        client, _ = make_client({})

        assert await client.get_cast("0xdead") is None

    async def test_server_error(self):
        client, _ = make_client({("GET", "/v2/farcaster/cast"): (500, {"message": "boom"})})

        with pytest.raises(NeynarError) as excinfo:
            await client.get_cast("0x1")
        assert excinfo.value.status_code == 500

    async def test_transport_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = NeynarClient(make_config().farcaster, transport=httpx.MockTransport(refuse))

        with pytest.raises(NeynarError):
            await client.get_cast("0x1")

    async def test_get_thread(self):
        replies = [
            {"hash": "0x2", "text": "yes please", "author": {"fid": 11, "username": "bob"}, "parent_hash": "0x1"},
            {"hash": "0x3", "text": "+1", "author": {"fid": 12, "username": "carol"}, "parent_hash": "0x1"},
        ]
        client, recorder = make_client(
            {("GET", "/v2/farcaster/cast/conversation"): (200, {"conversation": {"cast": {**CAST, "direct_replies": replies}}})}
        )

        thread = await client.get_thread("0x1")

        assert [c.hash for c in thread] == ["0x2", "0x3"]
        assert recorder.requests[0].url.params["reply_depth"] == "2"


class TestPublishing:
    async def test_post_reply(self):
        client, recorder = make_client({("POST", "/v2/farcaster/cast"): (200, {"success": True})})

        await client.post_reply("0xabc", "BOOM!")

        body = json.loads(recorder.requests[0].content)
        assert body == {"signer_uuid": "signer-uuid", "text": "BOOM!", "parent": "0xabc"}

    async def test_post_announcement_embeds_cast(self):
        client, recorder = make_client({("POST", "/v2/farcaster/cast"): (200, {"success": True})})

        await client.post_announcement("NEW FEATURE ALERT!", embed_cast_hash="0x1", embed_cast_fid=10)

        body = json.loads(recorder.requests[0].content)
        assert body["embeds"] == [{"cast_id": {"fid": 10, "hash": "0x1"}}]
        assert "parent" not in body

    async def test_post_failure(self):
        client, _ = make_client({("POST", "/v2/farcaster/cast"): (403, {"message": "signer not approved"})})

        with pytest.raises(NeynarError):
            await client.post_reply("0xabc", "hi")


class TestUsers:
    async def test_trust_score(self):
        user = {"fid": 10, "username": "alice", "experimental": {"neynar_user_score": 0.82}}
        client, recorder = make_client({("GET", "/v2/farcaster/user/bulk"): (200, {"users": [user]})})

        assert await client.get_trust_score(10) == 0.82
        assert recorder.requests[0].url.params["fids"] == "10"

    async def test_trust_score_fallback_field(self):
        user = {"fid": 10, "username": "alice", "score": 0.4}
        client, _ = make_client({("GET", "/v2/farcaster/user/bulk"): (200, {"users": [user]})})

        assert await client.get_trust_score(10) == 0.4

    async def test_trust_score_unknown_user(self):
        client, _ = make_client({("GET", "/v2/farcaster/user/bulk"): (200, {"users": []})})

        assert await client.get_trust_score(10) == 0.0

    async def test_get_account(self):
        user = {"fid": 10, "username": "alice", "profile": {"bio": {"text": "building things"}}}
        client, _ = make_client({("GET", "/v2/farcaster/user/bulk"): (200, {"users": [user]})})

        account = await client.get_account(10)

        assert (account.fid, account.username, account.bio) == (10, "alice", "building things")

    async def test_lookup_by_handle(self):
        user = {"fid": 42, "username": "peth"}
        client, recorder = make_client({("GET", "/v2/farcaster/user/by_username"): (200, {"user": user})})

        account = await client.lookup_account_by_handle("@peth")

        assert account.fid == 42
        assert account.bio is None
        assert recorder.requests[0].url.params["username"] == "peth"

    async def test_lookup_unknown_handle(self):
        client, _ = make_client({})

        assert await client.lookup_account_by_handle("nobody") is None
