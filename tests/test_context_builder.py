"""Tests for ContextBuilder."""

from fakes import BOT_FID, BOT_HANDLE, FakeSocial
from src import voice
from src.context_builder import SEPARATOR, ContextBuilder
from src.neynar_client import NeynarError


class FlakySocial(FakeSocial):
    async def get_thread(self, cast_hash):
        raise NeynarError("GET /cast/conversation: HTTP 503", status_code=503)


class TestContextBuilder:
    """Test context assembly for plain threads and replies to the bot."""

    def setup_method(self):
        """Set up test fixtures."""
        self.social = FakeSocial()
        self.builder = ContextBuilder(self.social, BOT_FID, BOT_HANDLE, max_depth=5)

    async def test_plain_thread(self):
        self.social.add_cast("p1", "I wish there was dark mode", 10, "alice")
        self.social.add_cast("r1", "yes please, and fix the login bug", 11, "bob", parent_hash="p1")
        self.social.add_cast("m1", "@roadmapr for @base", 12, "carol", parent_hash="p1")

        ctx = await self.builder.build("m1", "p1")

        assert not ctx.is_reply_to_bot
        assert ctx.current_text == "@roadmapr for @base"
        assert ctx.text == SEPARATOR.join(
            ["@roadmapr for @base", "I wish there was dark mode", "yes please, and fix the login bug"]
        )
        assert [c.hash for c in ctx.casts] == ["p1", "r1"]
        assert ctx.pending_project_handle is None

    async def test_reply_to_bot_recovers_pending_project(self):
        self.social.add_cast("p0", "we need a widget tracker", 10, "alice")
        self.social.add_cast("b1", voice.new_project_detected(["widget"]), BOT_FID, BOT_HANDLE, parent_hash="p0")
        self.social.add_cast("m2", "@roadmapr I'm the owner", 10, "alice", parent_hash="b1")

        ctx = await self.builder.build("m2", "b1")

        assert ctx.is_reply_to_bot
        assert ctx.pending_project_handle == "widget"
        assert ctx.text.startswith("[Earlier] @alice: we need a widget tracker")
        assert "[Bot's message] @roadmapr: " in ctx.text
        assert ctx.text.endswith("[Reply] @roadmapr I'm the owner")
        assert [c.hash for c in ctx.casts] == ["p0", "b1"]

    async def test_extraction_text_leaves_out_bot_and_labels(self):
        self.social.add_cast("p0", "we need a widget tracker", 10, "alice")
        self.social.add_cast("b1", voice.no_feature_extracted(BOT_HANDLE), BOT_FID, BOT_HANDLE, parent_hash="p0")
        self.social.add_cast("m2", "@roadmapr for @base: add search", 10, "alice", parent_hash="b1")

        ctx = await self.builder.build("m2", "b1")

        assert ctx.extraction_text == SEPARATOR.join(["@roadmapr for @base: add search", "we need a widget tracker"])
        assert "Fix login bug" in ctx.text

    async def test_bot_replies_in_thread_not_extracted(self):
        self.social.add_cast("p1", "I wish there was dark mode", 10, "alice")
        self.social.add_cast("b1", voice.no_feature_extracted(BOT_HANDLE), BOT_FID, BOT_HANDLE, parent_hash="p1")
        self.social.add_cast("m1", "@roadmapr for @base", 12, "carol", parent_hash="p1")

        ctx = await self.builder.build("m1", "p1")

        assert ctx.extraction_text == SEPARATOR.join(["@roadmapr for @base", "I wish there was dark mode"])
        assert [c.hash for c in ctx.casts] == ["p1", "b1"]

    async def test_channel_from_mention_or_parent(self):
        self.social.add_cast("p1", "I wish there was dark mode", 10, "alice", channel_id="base")
        self.social.add_cast("m1", "@roadmapr track this", 12, "carol", parent_hash="p1")
        self.social.add_cast("m2", "@roadmapr track this", 12, "carol", parent_hash="p1", channel_id="zora")

        assert (await self.builder.build("m1", "p1")).channel_id == "base"
        assert (await self.builder.build("m2", "p1")).channel_id == "zora"

    async def test_bot_recognized_by_handle(self):
        builder = ContextBuilder(self.social, None, BOT_HANDLE)
        self.social.add_cast("b1", "🆕 NEW PROJECT ALERT! @gizmo!", 12345, "RoadmapR")
        self.social.add_cast("m1", "Owner: @peth", 10, "alice", parent_hash="b1")

        ctx = await builder.build("m1", "b1")

        assert ctx.is_reply_to_bot
        assert ctx.pending_project_handle == "gizmo"

    async def test_ancestors_bounded_by_depth(self):
        builder = ContextBuilder(self.social, BOT_FID, BOT_HANDLE, max_depth=3)
        parent = None
        for i in range(8):
            self.social.add_cast(f"a{i}", f"message {i}", 10, "alice", parent_hash=parent)
            parent = f"a{i}"
        self.social.add_cast("b1", "noted!", BOT_FID, BOT_HANDLE, parent_hash=parent)
        self.social.add_cast("m1", "thanks", 10, "alice", parent_hash="b1")

        ctx = await builder.build("m1", "b1")

        assert [c.hash for c in ctx.casts] == ["a5", "a6", "a7", "b1"]

    def test_pending_handle_skips_bot_and_placeholder(self):
        cast = self.social.add_cast("b1", "NEW PROJECT ALERT! @unknown @roadmapr @Gizmo", BOT_FID, BOT_HANDLE)

        assert self.builder.pending_handle([cast]) == "gizmo"

    def test_pending_handle_requires_marker(self):
        cast = self.social.add_cast("b1", "Added @base to the board", BOT_FID, BOT_HANDLE)

        assert self.builder.pending_handle([cast]) is None

    async def test_missing_parent(self):
        self.social.add_cast("m1", "@roadmapr add dark mode to @base", 10, "alice", parent_hash="gone")

        ctx = await self.builder.build("m1", "gone")

        assert ctx.text == "@roadmapr add dark mode to @base"
        assert ctx.parent is None

    async def test_thread_failure_keeps_parent(self):
        social = FlakySocial()
        builder = ContextBuilder(social, BOT_FID, BOT_HANDLE)
        social.add_cast("p1", "I wish there was dark mode", 10, "alice")
        social.add_cast("m1", "@roadmapr for @base", 12, "carol", parent_hash="p1")

        ctx = await builder.build("m1", "p1")

        assert ctx.text == SEPARATOR.join(["@roadmapr for @base", "I wish there was dark mode"])
