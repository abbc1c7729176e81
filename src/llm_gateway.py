"""LLM gateway: ordered chat providers, embeddings, and strict JSON decoding.

Every LLM-backed component talks to the models through this module. Calls never
raise for provider trouble; they return an LLMResult that is either ok with a
value or a failure with a reason. Callers funnel every failure reason to the
same fallback path.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage
from pydantic import TypeAdapter, ValidationError

from .config import EmbeddingsConfig, LLMConfig, LLMProviderConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)\s*```", re.DOTALL)


class FailureReason(str, Enum):
    """Why an LLM call produced no usable value."""

    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    EMPTY_RESPONSE = "empty_response"
    INVALID_JSON = "invalid_json"
    WRONG_SHAPE = "wrong_shape"
    MISSING_FIELD = "missing_field"


@dataclass(frozen=True)
class LLMResult(Generic[T]):
    """Either ok=True with a value, or ok=False with a reason."""

    ok: bool
    value: Optional[T] = None
    reason: Optional[FailureReason] = None
    detail: str = ""

    @classmethod
    def success(cls, value: T) -> "LLMResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, reason: FailureReason, detail: str = "") -> "LLMResult[T]":
        return cls(ok=False, reason=reason, detail=detail)


def strip_code_fence(text: str) -> str:
    """Return the payload inside a markdown code fence, or the trimmed text."""
    text = text.strip()
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    # Unterminated fence (truncated responses)
    if text.startswith("```"):
        text = text[3:]
        if text[:4].lower() == "json":
            text = text[4:]
    return text.strip()


def decode_json(text: str, schema: Any = None) -> LLMResult[Any]:
    """Decode a model response into JSON, optionally validated against a schema.

    Args:
        text: Raw model output, possibly wrapped in a markdown fence.
        schema: Optional type understood by pydantic's TypeAdapter
            (e.g. ``list[MyModel]``, ``dict``).

    Returns:
        LLMResult holding the decoded (and validated) value.
    """
    payload = strip_code_fence(text or "")
    if not payload:
        return LLMResult.failure(FailureReason.EMPTY_RESPONSE, "empty response")

    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as e:
        return LLMResult.failure(FailureReason.INVALID_JSON, str(e))

    if schema is None:
        return LLMResult.success(parsed)

    try:
        value = TypeAdapter(schema).validate_python(parsed)
    except ValidationError as e:
        missing = any(err.get("type") == "missing" for err in e.errors())
        reason = FailureReason.MISSING_FIELD if missing else FailureReason.WRONG_SHAPE
        return LLMResult.failure(reason, f"{e.error_count()} validation error(s)")

    return LLMResult.success(value)


def sanitize_text(text: str) -> str:
    """Basic sanitization of untrusted text before it goes into a prompt."""
    # Remove null bytes and other control characters (except newlines and tabs)
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)

    # Zero-width characters are a common way to smuggle lookalike instructions
    for char in ("​", "‌", "‍", "﻿"):
        text = text.replace(char, "")

    return text.strip()


def _content_text(content: Any) -> str:
    """Flatten a chat message's content (string or content blocks) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return str(content or "")


class LLMGateway:
    """Chat completions with model failover, plus text embeddings."""

    def __init__(
        self,
        config: LLMConfig,
        chat_models: Optional[list[tuple[str, BaseChatModel]]] = None,
        embeddings: Optional[Embeddings] = None,
    ) -> None:
        """Build the gateway.

        Args:
            config: LLM configuration (providers in preference order).
            chat_models: Pre-built (name, model) pairs; built from config if omitted.
            embeddings: Pre-built embeddings client; built from config if omitted.
        """
        self.config = config
        self.timeout = config.timeout_seconds
        if chat_models is None:
            chat_models = [(p.model, self._create_llm(p)) for p in config.providers]
        self.chat_models = chat_models
        self.embeddings = embeddings or self._create_embeddings(config.embeddings)

    def _create_llm(self, provider: LLMProviderConfig) -> BaseChatModel:
        """Create the appropriate chat model for one provider entry."""
        if provider.provider == "anthropic":
            from langchain_anthropic import ChatAnthropic

            return ChatAnthropic(
                model=provider.model,
                api_key=provider.api_key.get_secret_value(),
                max_tokens=provider.max_tokens,
                temperature=provider.temperature,
                max_retries=0,
            )
        elif provider.provider == "openai":
            from langchain_openai import ChatOpenAI

            return ChatOpenAI(
                model=provider.model,
                api_key=provider.api_key.get_secret_value(),
                base_url=provider.base_url,
                max_tokens=provider.max_tokens,
                temperature=provider.temperature,
                max_retries=0,
            )
        else:
            raise ValueError(f"Unsupported LLM provider: {provider.provider}")

    def _create_embeddings(self, config: EmbeddingsConfig) -> Embeddings:
        from langchain_openai import OpenAIEmbeddings

        return OpenAIEmbeddings(
            model=config.model,
            api_key=config.api_key.get_secret_value(),
            base_url=config.base_url,
            dimensions=config.dimensions,
            # Non-OpenAI endpoints expect raw strings, not tiktoken ids
            check_embedding_ctx_length=False,
            max_retries=0,
        )

    async def _invoke(self, name: str, model: BaseChatModel, prompt: str, **kwargs) -> LLMResult[str]:
        """Run one model once, bounded by the gateway timeout."""
        try:
            response = await asyncio.wait_for(
                model.ainvoke([HumanMessage(content=prompt)], **kwargs),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Model %s timed out after %.0fs", name, self.timeout)
            return LLMResult.failure(FailureReason.TIMEOUT, f"{name} timed out")
        except Exception as e:
            logger.warning("Model %s failed: %s", name, e)
            return LLMResult.failure(FailureReason.UNAVAILABLE, f"{name}: {e}")

        text = _content_text(response.content)
        if not text.strip():
            return LLMResult.failure(FailureReason.EMPTY_RESPONSE, f"{name} returned nothing")
        return LLMResult.success(text)

    async def complete(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResult[str]:
        """Return the first non-empty completion across the configured models."""
        return await self.complete_json(prompt, schema=None, temperature=temperature,
                                        max_tokens=max_tokens, raw=True)

    async def complete_json(
        self,
        prompt: str,
        schema: Any = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        raw: bool = False,
    ) -> LLMResult[Any]:
        """Ask each model in turn until one returns a decodable JSON payload.

        A model that answers with malformed or wrongly shaped JSON counts as a
        failed tier, the same as a network error, and the next model is tried.

        Args:
            prompt: Full prompt text.
            schema: Optional pydantic-compatible type for the decoded payload.
            temperature: Sampling temperature override.
            max_tokens: Output token cap override.
            raw: Return the response text without JSON decoding.

        Returns:
            The first success, or the last failure when every model failed.
        """
        kwargs: dict[str, Any] = {}
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        last: LLMResult[Any] = LLMResult.failure(FailureReason.UNAVAILABLE, "no models configured")
        for name, model in self.chat_models:
            result = await self._invoke(name, model, prompt, **kwargs)
            if result.ok and not raw:
                result = decode_json(result.value, schema)
                if not result.ok:
                    logger.warning("Model %s gave unusable output (%s): %s",
                                   name, result.reason.value, result.detail)
            if result.ok:
                logger.debug("Model %s answered", name)
                return result
            last = result

        logger.warning("All %d model(s) failed; last reason: %s",
                       len(self.chat_models), last.reason.value if last.reason else "unknown")
        return last

    async def embed(self, text: str) -> LLMResult[list[float]]:
        """Embed text into a fixed-length vector."""
        text = text.strip()
        if not text:
            return LLMResult.failure(FailureReason.EMPTY_RESPONSE, "nothing to embed")
        try:
            vector = await asyncio.wait_for(self.embeddings.aembed_query(text), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Embedding request timed out after %.0fs", self.timeout)
            return LLMResult.failure(FailureReason.TIMEOUT, "embedding timed out")
        except Exception as e:
            logger.warning("Embedding request failed: %s", e)
            return LLMResult.failure(FailureReason.UNAVAILABLE, str(e))

        if not vector:
            return LLMResult.failure(FailureReason.EMPTY_RESPONSE, "empty embedding")
        return LLMResult.success([float(x) for x in vector])
