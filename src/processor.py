"""Mention processor: turns one webhook mention into exactly one outcome.

Processing is a fixed sequence of named stages. Each stage either returns None
to let the next stage run, or an Outcome that ends the run. Whatever the
outcome, the run finishes the same way: one audit entry (unless the outcome
says not to log), at most one reply, and an optional announcement.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from . import voice
from .config import Config
from .context_builder import ContextBuilder, ConversationContext
from .extractor import FeatureExtractor
from .intent import IntentClassifier
from .llm_gateway import LLMGateway
from .neynar_client import NeynarError
from .orm.project import Project
from .patterns import DetectedIntent, ExtractedFeature, IntentKind, PatternMatcher
from .ports import Cast, SocialPlatform
from .project_setup import ProjectSetup, parse_setup_reply
from .services import (
    DatabaseService,
    DuplicateRecordError,
    FeatureService,
    MentionService,
    ProjectService,
    RateLimitService,
    SimilarFeature,
    TagService,
)
from .similarity import SimilarityEngine
from .tagger import Tagger

logger = logging.getLogger(__name__)

MERGE_APPEND_RATIO = 0.5


class OutcomeKind(str, Enum):
    """Terminal states of one processing run."""

    IGNORED_SELF = "ignored_self"
    DUPLICATE = "duplicate"
    RATE_LIMITED = "rate_limited"
    LOW_TRUST = "low_trust"
    NO_PARENT = "no_parent"
    PARENT_NOT_FOUND = "parent_not_found"
    SETUP_PROJECT_UNKNOWN = "setup_project_unknown"
    OWNER_NOT_FOUND = "owner_not_found"
    PROJECT_EXISTS = "project_exists"
    PROJECT_CREATED = "project_created"
    AWAITING_SETUP = "awaiting_setup"
    NO_PROJECT = "no_project"
    PROJECT_NOT_FOUND = "project_not_found"
    AMBIGUOUS_PROJECT = "ambiguous_project"
    NO_FEATURES = "no_features"
    FEATURES_PROCESSED = "features_processed"
    ERROR = "error"


@dataclass
class MentionEvent:
    """One inbound mention."""

    cast_hash: str
    author_fid: int
    parent_hash: Optional[str] = None

    @classmethod
    def from_webhook(cls, payload: dict[str, Any]) -> Optional["MentionEvent"]:
        """Normalize a webhook body; None when cast hash or author is missing.

        Accepts the fields nested under "data" or at the top level, with
        "cast_hash" as an alias for "hash".
        """
        data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        cast_hash = data.get("hash") or data.get("cast_hash")
        author = data.get("author") or {}
        author_fid = author.get("fid") if isinstance(author, dict) else None
        if author_fid is None:
            author_fid = data.get("author_fid")

        if not cast_hash or not author_fid:
            return None
        return cls(
            cast_hash=str(cast_hash),
            author_fid=int(author_fid),
            parent_hash=data.get("parent_hash") or None,
        )


@dataclass
class FeatureResult:
    id: str
    title: str
    project: str
    sub_items: int = 0


@dataclass
class Outcome:
    """How a run ended and what to tell the user."""

    kind: OutcomeKind
    reply: Optional[str] = None
    error: Optional[str] = None
    log: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"outcome": self.kind.value, "error": self.error}


@dataclass
class Run:
    """Working data for one event, filled in stage by stage."""

    event: MentionEvent
    parent: Optional[Cast] = None
    context: Optional[ConversationContext] = None
    intent: Optional[DetectedIntent] = None
    detected_projects: list[str] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    features: list[ExtractedFeature] = field(default_factory=list)
    created: list[FeatureResult] = field(default_factory=list)
    merged: list[FeatureResult] = field(default_factory=list)


Stage = Callable[[Run], Awaitable[Optional[Outcome]]]


class Processor:
    """Sequences the pipeline for each mention."""

    def __init__(
        self,
        config: Config,
        social: SocialPlatform,
        gateway: LLMGateway,
        db: DatabaseService,
    ) -> None:
        self.config = config
        self.social = social
        self.gateway = gateway
        self.bot_fid = config.farcaster.bot_fid
        self.bot_handle = config.farcaster.bot_handle
        bot = config.bot

        # Persistence
        self.mention_service = MentionService(db)
        self.rate_limit_service = RateLimitService(db, bot.rate_limit_per_day)
        self.project_service = ProjectService(db)
        self.feature_service = FeatureService(db)
        self.tag_service = TagService(db)

        # Pipeline components
        self.matcher = PatternMatcher(self.bot_handle)
        self.context_builder = ContextBuilder(social, self.bot_fid, self.bot_handle, bot.max_thread_depth)
        self.intent_classifier = IntentClassifier(gateway, self.bot_handle, self.matcher)
        self.extractor = FeatureExtractor(gateway, self.matcher)
        self.tagger = Tagger(gateway, self.tag_service)
        self.similarity = SimilarityEngine(gateway, self.feature_service, bot.similarity_threshold)
        self.project_setup = ProjectSetup(social, self.project_service, self.bot_handle, self.bot_fid)

        self.stages: list[tuple[str, Stage]] = [
            ("self_mention", self._check_self_mention),
            ("dedup", self._check_processed),
            ("rate_limit", self._check_rate_limit),
            ("trust_score", self._check_trust_score),
            ("require_parent", self._require_parent),
            ("load_parent", self._load_parent),
            ("build_context", self._build_context),
            ("setup_reply", self._handle_setup_reply),
            ("classify_intent", self._classify_intent),
            ("create_project_intent", self._handle_create_intent),
            ("require_target", self._require_target),
            ("resolve_projects", self._resolve_projects),
            ("extract_features", self._extract_features),
            ("apply_features", self._apply_features),
        ]

    async def process(self, event: MentionEvent) -> Outcome:
        """
        Run the pipeline for one mention.

        Args:
            event: The mention to process.

        Returns:
            The terminal Outcome. Never raises for pipeline failures.
        """
        logger.info(
            "Processing mention cast=%s author=%d parent=%s",
            event.cast_hash, event.author_fid, event.parent_hash,
        )
        run = Run(event=event)
        outcome: Optional[Outcome] = None

        for name, stage in self.stages:
            try:
                outcome = await stage(run)
            except Exception as e:
                logger.error("Stage %s failed for %s: %s", name, event.cast_hash, e, exc_info=True)
                outcome = Outcome(OutcomeKind.ERROR, reply=voice.generic_error(), error=f"{name}: {e}")
            if outcome is not None:
                logger.info("Mention %s ended at %s: %s", event.cast_hash, name, outcome.kind.value)
                break

        if outcome is None:
            outcome = Outcome(OutcomeKind.ERROR, reply=voice.generic_error(), error="Pipeline produced no outcome")

        await self._finish(run, outcome)
        return outcome

    # Stages

    async def _check_self_mention(self, run: Run) -> Optional[Outcome]:
        if self.bot_fid is not None and run.event.author_fid == self.bot_fid:
            return Outcome(OutcomeKind.IGNORED_SELF, log=False)
        return None

    async def _check_processed(self, run: Run) -> Optional[Outcome]:
        if await self.mention_service.is_processed(run.event.cast_hash):
            return Outcome(OutcomeKind.DUPLICATE, log=False)
        return None

    async def _check_rate_limit(self, run: Run) -> Optional[Outcome]:
        if not await self.rate_limit_service.is_allowed(run.event.author_fid):
            logger.info("Rate limited: fid %d", run.event.author_fid)
            return Outcome(
                OutcomeKind.RATE_LIMITED,
                reply=voice.rate_limited(self.rate_limit_service.max_per_day),
                error="Rate limited",
            )
        return None

    async def _check_trust_score(self, run: Run) -> Optional[Outcome]:
        try:
            score = await self.social.get_trust_score(run.event.author_fid)
        except NeynarError as e:
            logger.warning("Trust score lookup failed for fid %d: %s", run.event.author_fid, e)
            score = 0.0

        logger.debug("Trust score for fid %d: %.2f", run.event.author_fid, score)
        if score < self.config.bot.min_trust_score:
            return Outcome(
                OutcomeKind.LOW_TRUST,
                reply=voice.low_trust_score(),
                error=f"Low trust score: {score}",
            )
        return None

    async def _require_parent(self, run: Run) -> Optional[Outcome]:
        if not run.event.parent_hash:
            return Outcome(OutcomeKind.NO_PARENT, reply=voice.no_parent_cast(self.bot_handle), error="No parent cast")
        return None

    async def _load_parent(self, run: Run) -> Optional[Outcome]:
        try:
            run.parent = await self.social.get_cast(run.event.parent_hash)
        except NeynarError as e:
            logger.warning("Could not load parent cast %s: %s", run.event.parent_hash, e)
            run.parent = None

        if run.parent is None:
            return Outcome(
                OutcomeKind.PARENT_NOT_FOUND,
                reply=voice.parent_cast_not_found(),
                error="Parent cast not found",
            )
        logger.debug("Parent cast %s by @%s", run.parent.hash, run.parent.author_username)
        return None

    async def _build_context(self, run: Run) -> Optional[Outcome]:
        run.context = await self.context_builder.build(
            run.event.cast_hash, run.event.parent_hash, parent=run.parent
        )
        return None

    async def _handle_setup_reply(self, run: Run) -> Optional[Outcome]:
        ctx = run.context
        reply = parse_setup_reply(ctx.current_text)
        if not reply.has_owner_info:
            return None

        handle = reply.project or ctx.pending_project_handle
        if not handle:
            if ctx.is_reply_to_bot:
                return Outcome(
                    OutcomeKind.SETUP_PROJECT_UNKNOWN,
                    reply=voice.could_not_determine_project(self.bot_handle),
                    error="Could not determine project for setup",
                )
            return None

        run.detected_projects = [handle]
        logger.info("Setup reply for @%s (owner=%s, self=%s, token=%s)",
                    handle, reply.owner, reply.owner_is_self, reply.token)

        if await self.project_service.get_by_handle(handle):
            return Outcome(OutcomeKind.PROJECT_EXISTS, reply=voice.project_exists(handle),
                           error="Project already exists")

        owner = await self.project_setup.resolve_owner(reply, run.event.author_fid)
        if owner is None:
            owner_text = reply.owner or "me"
            return Outcome(OutcomeKind.OWNER_NOT_FOUND, reply=voice.owner_not_found(owner_text),
                           error=f"Owner not found: {owner_text}")

        try:
            project = await self.project_setup.create(handle, reply, owner)
        except DuplicateRecordError:
            return Outcome(OutcomeKind.PROJECT_EXISTS, reply=voice.project_exists(handle),
                           error="Project already exists")

        return Outcome(
            OutcomeKind.PROJECT_CREATED,
            reply=voice.project_created(
                project.name, project.handle, project.voting_type, owner.username, self.bot_handle
            ),
        )

    async def _classify_intent(self, run: Run) -> Optional[Outcome]:
        known = await self.project_service.list_handles()
        run.intent = await self.intent_classifier.classify(run.context.current_text, known)
        run.detected_projects = list(run.intent.target_projects)
        return None

    async def _handle_create_intent(self, run: Run) -> Optional[Outcome]:
        intent = run.intent
        if intent.kind != IntentKind.CREATE_PROJECT or not intent.new_project_name:
            return None

        name = intent.new_project_name
        run.detected_projects = [name]
        if await self.project_service.get_by_handle(name):
            return Outcome(OutcomeKind.PROJECT_EXISTS, reply=voice.project_exists(name),
                           error="Project already exists")
        return Outcome(
            OutcomeKind.AWAITING_SETUP,
            reply=voice.new_project_detected([name]),
            error="Awaiting project setup",
        )

    async def _require_target(self, run: Run) -> Optional[Outcome]:
        if run.intent.target_projects:
            return None

        known = set(await self.project_service.list_handles())
        channel = run.context.channel_id
        if channel and channel in known:
            logger.info("No project named, using channel /%s", channel)
            run.intent.target_projects = [channel]
            run.detected_projects = [channel]
            return None

        candidates = [h for h in self.matcher.mentions(run.context.current_text) if h not in known]
        if candidates:
            run.detected_projects = candidates
            return Outcome(
                OutcomeKind.AWAITING_SETUP,
                reply=voice.new_project_detected(candidates),
                error="Awaiting project setup",
            )
        return Outcome(
            OutcomeKind.NO_PROJECT,
            reply=voice.no_project_detected(self.bot_handle),
            error="No projects detected",
        )

    async def _resolve_projects(self, run: Run) -> Optional[Outcome]:
        handles = run.intent.target_projects
        for handle in handles:
            project = await self.project_service.get_by_handle(handle)
            if project and project.id not in {p.id for p in run.projects}:
                run.projects.append(project)

        if not run.projects:
            return Outcome(
                OutcomeKind.PROJECT_NOT_FOUND,
                reply=voice.project_not_found(handles),
                error="Projects not found in database",
            )
        if len(run.projects) > 1:
            return Outcome(
                OutcomeKind.AMBIGUOUS_PROJECT,
                reply=voice.multiple_projects([(p.handle, p.name) for p in run.projects]),
                error="Multiple projects detected",
            )
        return None

    async def _extract_features(self, run: Run) -> Optional[Outcome]:
        run.features = await self.extractor.extract(run.context.text, fallback_text=run.context.extraction_text)
        if not run.features:
            return Outcome(
                OutcomeKind.NO_FEATURES,
                reply=voice.no_feature_extracted(self.bot_handle),
                error="No features extracted",
            )
        return None

    async def _apply_features(self, run: Run) -> Optional[Outcome]:
        limit = self.config.bot.max_features_per_cast
        if len(run.features) > limit:
            logger.info("Extracted %d features, processing the first %d", len(run.features), limit)

        for feature in run.features[:limit]:
            for project in run.projects:
                await self._apply_feature(run, feature, project)

        logger.info("Created: %d, merged: %d", len(run.created), len(run.merged))
        return Outcome(OutcomeKind.FEATURES_PROCESSED, reply=self._results_reply(run))

    # Feature handling

    async def _apply_feature(self, run: Run, feature: ExtractedFeature, project: Project) -> None:
        logger.info("Processing feature %r for project @%s", feature.title, project.handle)
        tag_ids = await self.tagger.tag(feature.title, feature.description)
        similar = await self.similarity.find_similar(project.id, feature.title, feature.description)

        if similar and similar[0].similarity > self.config.bot.merge_threshold:
            await self._merge_feature(run, feature, project, similar[0])
        else:
            await self._create_feature(run, feature, project, tag_ids)

    async def _merge_feature(
        self, run: Run, feature: ExtractedFeature, project: Project, existing: SimilarFeature
    ) -> None:
        parent = run.parent
        logger.info("Merging into feature %s (similarity %.2f)", existing.id, existing.similarity)

        await self.feature_service.add_source(
            existing.id,
            source_cast_hash=parent.hash,
            source_cast_author_fid=parent.author_fid,
            source_cast_text=parent.text,
        )
        if len(feature.description) >= len(existing.description) * MERGE_APPEND_RATIO:
            updated = f"{existing.description}\n\n---\n\nAdditional feedback:\n{feature.description}"
            await self.feature_service.update_description(existing.id, updated)

        run.merged.append(FeatureResult(existing.id, existing.title, project.name))

    async def _create_feature(self, run: Run, feature: ExtractedFeature, project: Project, tag_ids: list[str]) -> None:
        parent = run.parent
        created = await self.feature_service.create_feature(
            project_id=project.id,
            title=feature.title,
            description=feature.description,
            submitter_fid=parent.author_fid,
            source_cast_hash=parent.hash,
            source_cast_author_fid=parent.author_fid,
            tag_ids=tag_ids,
        )
        await self.similarity.store_embedding(created.id, feature.title, feature.description)
        await self.feature_service.add_source(
            created.id,
            source_cast_hash=parent.hash,
            source_cast_author_fid=parent.author_fid,
            source_cast_text=parent.text,
        )

        for sub in feature.sub_items:
            sub_feature = await self.feature_service.create_feature(
                project_id=project.id,
                title=sub.title,
                description=sub.description,
                submitter_fid=parent.author_fid,
                parent_feature_id=created.id,
                is_sub_item=True,
            )
            await self.similarity.store_embedding(sub_feature.id, sub.title, sub.description)

        run.created.append(FeatureResult(created.id, feature.title, project.name, len(feature.sub_items)))

    def _results_reply(self, run: Run) -> str:
        created, merged = run.created, run.merged
        if created and not merged:
            if len(created) == 1:
                return voice.feature_created(created[0].title, created[0].project)
            return voice.features_created([(f.title, f.sub_items) for f in created])
        if merged and not created:
            return voice.feature_merged(merged[0].title, merged[0].project)
        return voice.mixed_results(
            created[0].title if created else None,
            merged[0].title if merged else None,
            self.config.bot.site_url,
        )

    # Finish

    async def _finish(self, run: Run, outcome: Outcome) -> None:
        """Write the audit entry, send the reply, announce new features."""
        event = run.event
        if not outcome.log:
            return

        parent = run.parent
        try:
            await self.mention_service.log_mention(
                cast_hash=event.cast_hash,
                author_fid=event.author_fid,
                parent_cast_hash=event.parent_hash,
                parent_cast_author_fid=parent.author_fid if parent else None,
                parent_cast_text=parent.text if parent else None,
                detected_projects=run.detected_projects,
                features_created=len(run.created),
                features_merged=len(run.merged),
                error=outcome.error,
            )
        except DuplicateRecordError:
            # Another delivery of the same cast finished first and replied
            logger.warning("Mention %s was already logged, not replying again", event.cast_hash)
            return
        except Exception as e:
            logger.error("Failed to log mention %s: %s", event.cast_hash, e, exc_info=True)

        if outcome.reply:
            try:
                await self.social.post_reply(event.cast_hash, outcome.reply)
            except Exception as e:
                logger.error("Failed to reply to %s: %s", event.cast_hash, e)

        if outcome.kind == OutcomeKind.FEATURES_PROCESSED and run.created and parent is not None:
            await self._announce(run.created[0], parent)

    async def _announce(self, feature: FeatureResult, parent: Cast) -> None:
        username = parent.author_username
        try:
            account = await self.social.get_account(parent.author_fid)
            if account and account.username:
                username = account.username
        except NeynarError as e:
            logger.debug("Could not refresh username for fid %d: %s", parent.author_fid, e)

        text = voice.announcement(feature.title, username, feature.id, self.config.bot.site_url)
        try:
            await self.social.post_announcement(text, embed_cast_hash=parent.hash, embed_cast_fid=parent.author_fid)
        except Exception as e:
            logger.error("Failed to post announcement for feature %s: %s", feature.id, e)
