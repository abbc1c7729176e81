"""Tests for configuration loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from src.config import BotConfig, FarcasterConfig, load_config

EXAMPLE_CONFIG = Path(__file__).resolve().parent.parent / "config.example.yaml"

ENV = {
    "NEYNAR_API_KEY": "neynar-key",
    "NEYNAR_BOT_SIGNER_UUID": "signer",
    "WEBHOOK_SECRET": "shh",
    "GLM_API_KEY": "glm-key",
    "ANTHROPIC_API_KEY": "anthropic-key",
}


class TestLoadConfig:
    """Test YAML loading with environment expansion."""

    def test_example_config(self, monkeypatch):
        for name, value in ENV.items():
            monkeypatch.setenv(name, value)

        config = load_config(EXAMPLE_CONFIG)

        assert config.farcaster.api_key.get_secret_value() == "neynar-key"
        assert config.farcaster.webhook_secret.get_secret_value() == "shh"
        assert [p.model for p in config.llm.providers] == ["glm-4.7", "glm-4.5-air", "claude-sonnet-4-20250514"]
        assert config.llm.providers[2].provider == "anthropic"
        assert config.bot.environment == "production"

    def test_missing_environment_variable(self, monkeypatch):
        for name, value in ENV.items():
            monkeypatch.setenv(name, value)
        monkeypatch.delenv("GLM_API_KEY")

        with pytest.raises(ValueError, match="GLM_API_KEY"):
            load_config(EXAMPLE_CONFIG)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "config.yaml")

    def test_minimal_config_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "farcaster:\n"
            "  api_key: k\n"
            "  signer_uuid: s\n"
            "  bot_handle: '@RoadMapR'\n"
            "llm:\n"
            "  providers:\n"
            "    - model: glm-4.7\n"
            "      api_key: k\n"
            "  embeddings:\n"
            "    api_key: k\n"
        )

        config = load_config(path)

        assert config.farcaster.bot_handle == "roadmapr"
        assert config.farcaster.bot_fid is None
        assert config.llm.timeout_seconds == 30.0
        assert config.bot == BotConfig()


class TestBotConfig:
    def test_defaults(self):
        bot = BotConfig()

        assert bot.rate_limit_per_day == 20
        assert bot.min_trust_score == 0.1
        assert bot.max_features_per_cast == 5
        assert bot.similarity_threshold == 0.85
        assert bot.merge_threshold == 0.85
        assert bot.max_thread_depth == 5
        assert bot.environment == "development"

    def test_rejects_out_of_range(self):
        with pytest.raises(ValidationError):
            BotConfig(min_trust_score=1.5)
        with pytest.raises(ValidationError):
            BotConfig(environment="staging")

    def test_farcaster_requires_credentials(self):
        with pytest.raises(ValidationError):
            FarcasterConfig(api_key="k")
