"""Configuration management for the roadmap bot."""

import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator


class FarcasterConfig(BaseModel):
    """Farcaster/Neynar connection settings."""

    api_key: SecretStr = Field(..., description="Neynar API key")
    signer_uuid: SecretStr = Field(..., description="Signer UUID used to publish casts")
    bot_fid: Optional[int] = Field(default=None, ge=1, description="Bot's own FID")
    bot_handle: str = Field(default="roadmapr", description="Bot's Farcaster username")
    api_base_url: str = "https://api.neynar.com/v2/farcaster"
    webhook_secret: Optional[SecretStr] = Field(
        default=None, description="Shared secret for webhook signature validation"
    )

    @field_validator("bot_handle")
    @classmethod
    def normalize_handle(cls, value: str) -> str:
        return value.strip().lstrip("@").lower()


class LLMProviderConfig(BaseModel):
    """One chat-completion backend, tried in list order."""

    provider: Literal["openai", "anthropic"] = "openai"
    model: str
    api_key: SecretStr = Field(..., description="API key for this provider")
    # Any OpenAI-compatible endpoint (e.g. GLM) is reached through base_url
    base_url: Optional[str] = None
    max_tokens: int = Field(default=1024, ge=1, le=8192)
    temperature: float = Field(default=0.3, ge=0.0, le=1.0)


class EmbeddingsConfig(BaseModel):
    """Embeddings endpoint settings."""

    model: str = "embedding-3"
    api_key: SecretStr = Field(..., description="API key for the embeddings endpoint")
    base_url: Optional[str] = None
    dimensions: int = Field(default=1024, ge=1)


class LLMConfig(BaseModel):
    """LLM gateway settings."""

    providers: list[LLMProviderConfig] = Field(..., min_length=1)
    embeddings: EmbeddingsConfig
    timeout_seconds: float = Field(default=30.0, gt=0)


class BotConfig(BaseModel):
    """Bot behavior settings."""

    rate_limit_per_day: int = Field(default=20, ge=1)
    min_trust_score: float = Field(default=0.1, ge=0.0, le=1.0)
    max_features_per_cast: int = Field(default=5, ge=1)
    similarity_threshold: float = Field(
        default=0.85, ge=0.0, le=1.0, description="Minimum similarity for search candidates"
    )
    merge_threshold: float = Field(
        default=0.85, ge=0.0, le=1.0, description="Similarity above which features merge"
    )
    max_thread_depth: int = Field(default=5, ge=1, le=50)
    request_timeout_seconds: float = Field(default=15.0, gt=0)
    environment: Literal["development", "production"] = "development"
    site_url: str = "https://roadmapr.xyz"

    # Database settings
    database_path: str = Field(
        default="~/.roadmap-bot/bot.db", description="Path to SQLite database file"
    )


class Config(BaseModel):
    """Root configuration model."""

    farcaster: FarcasterConfig
    llm: LLMConfig
    bot: BotConfig = BotConfig()


def load_config(config_path: str | Path = "config.yaml") -> Config:
    """Load and validate configuration from YAML file.

    Supports ${VAR_NAME} syntax for environment variable expansion.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValidationError: If config is invalid.
        ValueError: If referenced environment variable is not set.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}\n"
            "Copy config.example.yaml to config.yaml and fill in your values."
        )

    with path.open() as f:
        raw_config = yaml.safe_load(f) or {}

    return Config(**expand_env_vars(raw_config))


def expand_env_vars(obj):
    """Replace "${VAR}" strings anywhere in a parsed YAML tree."""
    if isinstance(obj, dict):
        return {k: expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [expand_env_vars(item) for item in obj]
    elif isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
        env_var = obj[2:-1]
        value = os.getenv(env_var)
        if value is None:
            raise ValueError(f"Environment variable '{env_var}' is not set")
        return value
    return obj
