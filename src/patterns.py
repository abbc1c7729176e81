"""Deterministic pattern matcher for intent detection and feature extraction.

Both capabilities are driven by declarative rule tables (INTENT_RULES and
EXTRACTION_RULES) so that the full set of recognized phrasings can be listed
and tested directly. No network calls are made here; the matcher is the fast
path for intent detection and the last-resort fallback for both capabilities.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

MAX_TITLE_LENGTH = 100
MIN_SENTENCE_LENGTH = 10

_HANDLE = r"([a-z0-9_-]+)"
_MENTION_RE = re.compile(rf"@{_HANDLE}", re.IGNORECASE)

# Captured project names that are really part of the phrase
NAME_STOPWORDS = frozenset(
    {"a", "an", "the", "my", "our", "this", "that", "new", "project", "board"}
)

_NON_HANDLE_RE = re.compile(r"[^a-z0-9_-]")


def clean_handle(value: str) -> str:
    """Lowercase and drop every character that cannot appear in a handle."""
    return _NON_HANDLE_RE.sub("", value.strip().lstrip("@").lower())


def project_name(value: Optional[str], bot_handle: str) -> Optional[str]:
    """
    Turn a captured or suggested project name into a usable handle.

    Examples:
        >>> project_name("Cool App!", "roadmapr")
        'coolapp'
        >>> project_name("the", "roadmapr") is None
        True
    """
    name = clean_handle(value or "")
    if not name or name in NAME_STOPWORDS or name == bot_handle:
        return None
    return name


class IntentKind(str, Enum):
    """What the user wants the bot to do."""

    CREATE_PROJECT = "create_project"
    ADD_FEATURE = "add_feature"
    UNKNOWN = "unknown"


@dataclass
class DetectedIntent:
    """Result of intent classification."""

    kind: IntentKind
    target_projects: list[str] = field(default_factory=list)
    new_project_name: Optional[str] = None
    confidence: float = 0.2
    reasoning: Optional[str] = None


class SubItem(BaseModel):
    """One implementation variant of a feature."""

    title: str
    description: str = ""

    @field_validator("title")
    @classmethod
    def clip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be empty")
        return value[:MAX_TITLE_LENGTH]

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, value) -> str:
        return (value or "").strip()


class ExtractedFeature(SubItem):
    """A discrete, actionable feature or bug pulled out of conversation text."""

    sub_items: list[SubItem] = Field(default_factory=list, alias="subItems")

    model_config = {"populate_by_name": True}

    @field_validator("sub_items", mode="before")
    @classmethod
    def coerce_sub_items(cls, value):
        return value if isinstance(value, list) else []


@dataclass(frozen=True)
class IntentRule:
    """One row of the intent table.

    capture:
        "name"    -- group 1 is a new project name
        "handle"  -- group 1 is a project handle; every match is tried until one
                     names a known or @-mentioned project
        "handles" -- every match naming a known project is collected
        "bare"    -- like "handles", for known handles written without "@"
        None      -- the match itself is the signal
    """

    name: str
    pattern: re.Pattern
    kind: IntentKind
    confidence: float
    capture: Optional[str] = None


@dataclass(frozen=True)
class ExtractionRule:
    """One row of the extraction table; groups are formatted into `title`."""

    name: str
    pattern: re.Pattern
    title: str


def _rx(pattern: str) -> re.Pattern:
    return re.compile(pattern, re.IGNORECASE)


_CREATE_VERB = r"\b(?:create|new|make|add|set\s?up|start)\s+"

INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule(
        "create_named_project",
        _rx(_CREATE_VERB + r"(?:a\s+)?(?:new\s+)?project\s+(?:(?:called|named)\s+)?[\"']?@?" + _HANDLE + r"[\"']?"),
        IntentKind.CREATE_PROJECT,
        0.75,
        capture="name",
    ),
    IntentRule(
        "add_to_handle",
        _rx(r"\b(?:add|implement|build)\s+.+?\s+(?:to|for|on)\s+@" + _HANDLE),
        IntentKind.ADD_FEATURE,
        0.75,
        capture="handle",
    ),
    IntentRule(
        "for_handle_add",
        _rx(r"\bfor\s+@" + _HANDLE + r",?\s+(?:add|create|implement|build)\b"),
        IntentKind.ADD_FEATURE,
        0.75,
        capture="handle",
    ),
    IntentRule(
        "handle_should",
        _rx(r"@" + _HANDLE + r"\s+(?:should|needs|requires)\b"),
        IntentKind.ADD_FEATURE,
        0.75,
        capture="handle",
    ),
    IntentRule(
        "feature_for_handle",
        _rx(r"\bfeature\s+(?:request\s+)?(?:for\s+)?@" + _HANDLE),
        IntentKind.ADD_FEATURE,
        0.75,
        capture="handle",
    ),
    IntentRule(
        "known_project_mentioned",
        _MENTION_RE,
        IntentKind.ADD_FEATURE,
        0.50,
        capture="handles",
    ),
    IntentRule(
        "create_unnamed_project",
        _rx(_CREATE_VERB + r"(?:a\s+)?(?:new\s+)?project\b"),
        IntentKind.CREATE_PROJECT,
        0.40,
    ),
    IntentRule(
        "known_project_named",
        _rx(r"(?<![@\w-])([a-z0-9_-]{3,})(?![\w-])"),
        IntentKind.ADD_FEATURE,
        0.35,
        capture="bare",
    ),
)

UNKNOWN_CONFIDENCE = 0.20

_ARTICLE = r"(?:(?:a|an|the|some)\s+)?"

EXTRACTION_RULES: tuple[ExtractionRule, ...] = (
    ExtractionRule(
        "add_feature",
        _rx(r"\b(?:add|create|implement|build)\s+" + _ARTICLE + r"(.+?)\s+feature\b"),
        "Add {0}",
    ),
    ExtractionRule(
        "fix_bug",
        _rx(r"\bfix\s+" + _ARTICLE + r"(.+?)\s+(bug|issue)\b"),
        "Fix {0} {1}",
    ),
    ExtractionRule(
        "does_not_work",
        _rx(r"^(?:.*?\b(?:the|my|our)\s+)?(.+?)\s+(?:doesn['’]?t|does\s+not|isn['’]?t|is\s+not|won['’]?t)\s+work"),
        "Fix {0}",
    ),
    ExtractionRule(
        "improve",
        _rx(r"\bimprove\s+" + _ARTICLE + r"(.+)"),
        "Improve {0}",
    ),
    ExtractionRule(
        "i_need",
        _rx(
            r"\bi\s+(?:really\s+)?(?:need|want|would\s+like|wish(?:\s+there\s+(?:was|were|is))?)\s+"
            r"(?:to\s+(?:have|see)\s+)?" + _ARTICLE + r"(.+)"
        ),
        "Add {0}",
    ),
    ExtractionRule(
        "support_for",
        _rx(r"\bsupport\s+for\s+(.+)"),
        "Add support for {0}",
    ),
    ExtractionRule(
        "ability_to",
        _rx(r"\bability\s+to\s+(.+)"),
        "Add ability to {0}",
    ),
)

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+|\n+")
_SKIP_PREFIX_RE = _rx(r"^(?:hi|hello|hey|thanks|thank\s+you|lol|ok|okay|yes|no|gm|cool|nice|great)\b")
_ACTION_KEYWORD_RE = _rx(r"\b(?:add|fix|create|make|implement|need|want|should|could)\b")
_TRAILING_CONNECTOR_RE = _rx(r"\s+(?:to|for|on|in|at|with|please)$")
_CONNECTOR_MENTION_RE = _rx(r"\b(?:to|for|on|about|regarding)\s+@[a-z0-9_-]+")
_LEADING_PLEASE_RE = _rx(r"^please\s+")
# Bullets, emoji, check marks and stray punctuation at either end
_EDGE_SYMBOLS_RE = re.compile(r"^[^\w]+|[^\w%)]+$")


def _trim_symbols(text: str) -> str:
    return _EDGE_SYMBOLS_RE.sub("", text)


def _clean_fragment(text: str) -> str:
    """Drop @mentions, quotes and edge symbols, collapse whitespace."""
    text = _CONNECTOR_MENTION_RE.sub("", text)
    text = _MENTION_RE.sub("", text)
    text = re.sub(r"[\"“”]", "", text)
    text = _trim_symbols(re.sub(r"\s+", " ", text))
    text = _LEADING_PLEASE_RE.sub("", text)
    # "... to @project" leaves a dangling connector
    while True:
        trimmed = _TRAILING_CONNECTOR_RE.sub("", text)
        if trimmed == text:
            return text
        text = trimmed


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:] if text else text


class PatternMatcher:
    """Classify intent and extract features with the rule tables above."""

    def __init__(self, bot_handle: str):
        """Initialize the matcher.

        Args:
            bot_handle: The bot's own handle; it is never treated as a project.
        """
        self.bot_handle = bot_handle.lstrip("@").lower()
        self.bot_mention_pattern = re.compile(
            rf"@{re.escape(self.bot_handle)}(?![a-z0-9_-])\s*", re.IGNORECASE
        )

    def strip_bot_mention(self, text: str) -> str:
        """Remove every @bot-handle occurrence from text."""
        return self.bot_mention_pattern.sub("", text)

    def mentions(self, text: str) -> list[str]:
        """Return @-mentioned handles, lowercased, deduplicated, bot excluded."""
        seen: list[str] = []
        for match in _MENTION_RE.finditer(text):
            handle = match.group(1).lower()
            if handle != self.bot_handle and handle not in seen:
                seen.append(handle)
        return seen

    def classify(self, text: str, known_handles: list[str]) -> DetectedIntent:
        """
        Classify a message by walking INTENT_RULES in order.

        Args:
            text: The message text.
            known_handles: Handles of projects that already exist.

        Returns:
            DetectedIntent from the first rule that fires, else unknown at 0.20.

        Examples:
            >>> matcher = PatternMatcher("roadmapr")
            >>> intent = matcher.classify("add dark mode to @base", ["base"])
            >>> intent.kind == IntentKind.ADD_FEATURE, intent.target_projects
            (True, ['base'])
        """
        cleaned = self.strip_bot_mention(text or "")
        known = {h.lower() for h in known_handles}
        mentioned = set(self.mentions(cleaned))

        for rule in INTENT_RULES:
            result = self._apply_rule(rule, cleaned, known, mentioned)
            if result is not None:
                return result

        return DetectedIntent(
            kind=IntentKind.UNKNOWN,
            confidence=UNKNOWN_CONFIDENCE,
            reasoning="No clear pattern matched",
        )

    def _apply_rule(
        self, rule: IntentRule, text: str, known: set[str], mentioned: set[str]
    ) -> Optional[DetectedIntent]:
        if rule.capture == "name":
            match = rule.pattern.search(text)
            if not match:
                return None
            name = project_name(match.group(1), self.bot_handle)
            if name is None:
                return None
            return DetectedIntent(
                kind=rule.kind,
                new_project_name=name,
                confidence=rule.confidence,
                reasoning=f"Pattern matched: {rule.name}",
            )

        if rule.capture == "handle":
            for match in rule.pattern.finditer(text):
                handle = match.group(1).lower()
                if handle != self.bot_handle and (handle in known or handle in mentioned):
                    return DetectedIntent(
                        kind=rule.kind,
                        target_projects=[handle],
                        confidence=rule.confidence,
                        reasoning=f"Pattern matched: {rule.name}",
                    )
            return None

        if rule.capture in ("handles", "bare"):
            handles = []
            for match in rule.pattern.finditer(text):
                handle = match.group(1).lower()
                if handle in known and handle != self.bot_handle and handle not in handles:
                    handles.append(handle)
            if not handles:
                return None
            return DetectedIntent(
                kind=rule.kind,
                target_projects=handles,
                confidence=rule.confidence,
                reasoning=(
                    "Project mentions detected, assuming add feature intent"
                    if rule.capture == "handles"
                    else f"Project named without @: {', '.join(handles)}"
                ),
            )

        if rule.pattern.search(text):
            return DetectedIntent(
                kind=rule.kind,
                confidence=rule.confidence,
                reasoning=f"Pattern matched: {rule.name}",
            )
        return None

    def extract_features(self, text: str) -> list[ExtractedFeature]:
        """
        Pull feature requests out of free text sentence by sentence.

        Each sentence is matched against EXTRACTION_RULES in order. Sentences that
        match no rule but still contain an action keyword become a feature titled
        with the cleaned sentence. The description is the sentence with bullets,
        emoji and edge punctuation trimmed.
        """
        features: list[ExtractedFeature] = []
        seen_titles: set[str] = set()

        for raw in _SENTENCE_SPLIT_RE.split(text or ""):
            sentence = _trim_symbols(raw.strip())
            if len(sentence) < MIN_SENTENCE_LENGTH or _SKIP_PREFIX_RE.match(sentence):
                continue

            title = self._title_for(sentence)
            if not title:
                continue

            key = title.lower()
            if key in seen_titles:
                continue
            seen_titles.add(key)
            features.append(ExtractedFeature(title=title, description=sentence))

        return features

    def _title_for(self, sentence: str) -> Optional[str]:
        for rule in EXTRACTION_RULES:
            match = rule.pattern.search(sentence)
            if not match:
                continue
            groups = [_clean_fragment(g or "") for g in match.groups()]
            if not groups[0]:
                continue
            return rule.title.format(*groups)[:MAX_TITLE_LENGTH]

        if _ACTION_KEYWORD_RE.search(sentence):
            title = _capitalize(_clean_fragment(sentence))
            if title:
                return title[:MAX_TITLE_LENGTH]
        return None
