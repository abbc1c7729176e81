"""Tests for PatternMatcher."""

import pytest

from src.patterns import (
    EXTRACTION_RULES,
    INTENT_RULES,
    MAX_TITLE_LENGTH,
    IntentKind,
    PatternMatcher,
)


class TestRuleTables:
    """Sanity checks over the declarative tables."""

    def test_intent_rule_names_are_unique(self):
        names = [rule.name for rule in INTENT_RULES]
        assert len(names) == len(set(names))

    def test_intent_confidences(self):
        confidences = {rule.name: rule.confidence for rule in INTENT_RULES}
        assert confidences["create_named_project"] == 0.75
        assert confidences["add_to_handle"] == 0.75
        assert confidences["known_project_mentioned"] == 0.50
        assert confidences["create_unnamed_project"] == 0.40
        assert confidences["known_project_named"] == 0.35

    def test_extraction_titles_start_with_action_verb(self):
        for rule in EXTRACTION_RULES:
            assert rule.title.split()[0] in {"Add", "Fix", "Improve"}


class TestIntentPatterns:
    """Test intent classification by pattern."""

    def setup_method(self):
        """Set up test fixtures."""
        self.matcher = PatternMatcher("roadmapr")

    def test_add_feature_to_known_project(self):
        """Scenario: 'add dark mode to @base' targets base with high confidence."""
        intent = self.matcher.classify("add dark mode to @base", ["base"])

        assert intent.kind == IntentKind.ADD_FEATURE
        assert intent.target_projects == ["base"]
        assert intent.confidence >= 0.7

    def test_create_named_project(self):
        """Scenario: a named project request yields the lowercased name."""
        intent = self.matcher.classify("create a new project called Castoors", [])

        assert intent.kind == IntentKind.CREATE_PROJECT
        assert intent.new_project_name == "castoors"
        assert intent.confidence == 0.75

    @pytest.mark.parametrize(
        "text,name",
        [
            ("new project named 'Widget'", "widget"),
            ("please set up a project called @gizmo", "gizmo"),
            ("start project moonshot", "moonshot"),
            ("make a project called hyper_drive!", "hyper_drive"),
        ],
    )
    def test_create_project_phrasings(self, text, name):
        intent = self.matcher.classify(text, [])

        assert intent.kind == IntentKind.CREATE_PROJECT
        assert intent.new_project_name == name

    def test_stopword_capture_is_rejected(self):
        """'project board' is not a project name; falls back to the unnamed rule."""
        intent = self.matcher.classify("create project board", [])

        assert intent.kind == IntentKind.CREATE_PROJECT
        assert intent.new_project_name is None
        assert intent.confidence == 0.40

    def test_unnamed_create_project(self):
        intent = self.matcher.classify("let's start a new project", [])

        assert intent.kind == IntentKind.CREATE_PROJECT
        assert intent.new_project_name is None
        assert intent.confidence == 0.40

    def test_for_handle_add(self):
        intent = self.matcher.classify("for @farcaster, add account abstraction", ["farcaster"])

        assert intent.kind == IntentKind.ADD_FEATURE
        assert intent.target_projects == ["farcaster"]
        assert intent.confidence == 0.75

    def test_handle_should(self):
        intent = self.matcher.classify("@roadmapr @base should support passkeys", ["base"])

        assert intent.target_projects == ["base"]
        assert intent.confidence == 0.75

    def test_feature_request_for_handle(self):
        intent = self.matcher.classify("feature request for @zora: bulk mint", [])

        assert intent.kind == IntentKind.ADD_FEATURE
        assert intent.target_projects == ["zora"]

    def test_known_mentions_only(self):
        """Bare mentions of known projects give add_feature at 0.50."""
        intent = self.matcher.classify("@roadmapr @Base @zora @stranger", ["base", "zora"])

        assert intent.kind == IntentKind.ADD_FEATURE
        assert intent.target_projects == ["base", "zora"]
        assert intent.confidence == 0.50

    def test_unknown_mentions_are_unknown(self):
        intent = self.matcher.classify("@roadmapr @newthing", ["base"])

        assert intent.kind == IntentKind.UNKNOWN
        assert intent.confidence == 0.20
        assert intent.target_projects == []

    def test_bot_handle_is_never_a_target(self):
        intent = self.matcher.classify("add dark mode to @roadmapr", ["roadmapr"])

        assert intent.kind == IntentKind.UNKNOWN

    def test_case_insensitive(self):
        intent = self.matcher.classify("ADD Dark Mode TO @Base", ["base"])

        assert intent.target_projects == ["base"]

    def test_empty_text(self):
        intent = self.matcher.classify("", [])

        assert intent.kind == IntentKind.UNKNOWN

    def test_known_project_without_at(self):
        intent = self.matcher.classify("this should go on the Base roadmap", ["base", "zora"])

        assert intent.kind == IntentKind.ADD_FEATURE
        assert intent.target_projects == ["base"]
        assert intent.confidence == 0.35

    def test_bare_name_needs_whole_word(self):
        assert self.matcher.classify("the baseline numbers look off", ["base"]).kind == IntentKind.UNKNOWN
        assert self.matcher.classify("op needs a fix", ["op"]).kind == IntentKind.UNKNOWN

    def test_at_mention_wins_over_bare_name(self):
        intent = self.matcher.classify("@zora is nicer than base", ["base", "zora"])

        assert intent.target_projects == ["zora"]
        assert intent.confidence == 0.50

    def test_mentions_excludes_bot_and_dedupes(self):
        assert self.matcher.mentions("@roadmapr @Base @base @zora") == ["base", "zora"]

    def test_strip_bot_mention_keeps_longer_handles(self):
        text = "@roadmapr hi @roadmapr-dev"
        assert self.matcher.strip_bot_mention(text) == "hi @roadmapr-dev"


class TestExtractionPatterns:
    """Test the deterministic feature extractor."""

    def setup_method(self):
        """Set up test fixtures."""
        self.matcher = PatternMatcher("roadmapr")

    def test_wish_and_bug(self):
        """Scenario: one 'Add' item for dark mode, one 'Fix' item for the login bug."""
        features = self.matcher.extract_features("I wish there was dark mode. Also fix the login bug.")
        titles = [f.title for f in features]

        assert len(features) >= 2
        assert titles[0].startswith("Add") and "dark mode" in titles[0]
        assert titles[1].startswith("Fix") and "login bug" in titles[1]

    def test_description_is_original_sentence(self):
        features = self.matcher.extract_features("I wish there was dark mode.")

        assert features[0].description == "I wish there was dark mode"
        assert features[0].sub_items == []

    @pytest.mark.parametrize(
        "sentence,title",
        [
            ("Please add a search feature", "Add search"),
            ("The upload button doesn't work on mobile", "Fix upload button"),
            ("We should improve the onboarding flow", "Improve onboarding flow"),
            ("It would be great to get support for passkeys", "Add support for passkeys"),
            ("Users are asking for the ability to export data", "Add ability to export data"),
            ("I need offline mode", "Add offline mode"),
        ],
    )
    def test_templates(self, sentence, title):
        features = self.matcher.extract_features(sentence)

        assert [f.title for f in features] == [title]

    def test_action_keyword_without_template(self):
        features = self.matcher.extract_features("Could you make the buttons bigger")

        assert [f.title for f in features] == ["Could you make the buttons bigger"]

    def test_mentions_removed_from_generic_title(self):
        features = self.matcher.extract_features("add dark mode to @base")

        assert [f.title for f in features] == ["Add dark mode"]

    def test_connector_before_mention_removed(self):
        features = self.matcher.extract_features("for @base: please add search to homepage")

        assert [f.title for f in features] == ["Add search to homepage"]

    def test_bullets_and_marks_trimmed(self):
        features = self.matcher.extract_features("• Add search to homepage ✅\n❌ Fix it - fix what?!")

        assert [f.title for f in features] == ["Add search to homepage", "Fix it - fix what"]
        assert features[0].description == "Add search to homepage"

    def test_greetings_and_short_sentences_skipped(self):
        text = "gm everyone, we need this. Thanks, you should ship it! lol. ok"
        assert self.matcher.extract_features(text) == []

    def test_non_actionable_text(self):
        assert self.matcher.extract_features("This app is really nice overall") == []

    def test_duplicate_titles_removed(self):
        features = self.matcher.extract_features("Add a dark mode feature. ADD A DARK MODE FEATURE!\nI need dark mode")

        assert [f.title for f in features] == ["Add dark mode"]

    def test_title_length_capped(self):
        sentence = "I need " + "very " * 40 + "long things"
        features = self.matcher.extract_features(sentence)

        assert len(features[0].title) == MAX_TITLE_LENGTH
