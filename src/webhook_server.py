"""FastAPI webhook server for Neynar mention events."""

import hashlib
import hmac
import json
import logging
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import Config
from .processor import MentionEvent, Processor

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Neynar-Signature"


class TriggerRequest(BaseModel):
    """Synthetic mention for manual testing."""

    cast_hash: str
    parent_hash: Optional[str] = None
    author_fid: int = 1


def verify_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Verify a webhook signature using HMAC SHA-256.

    Args:
        payload: Raw request body bytes
        signature: Signature header value (hex digest, "sha256=" prefix optional)
        secret: Webhook secret

    Returns:
        True if signature is valid, False otherwise
    """
    if not signature:
        logger.warning("Missing webhook signature")
        return False

    received_signature = signature.removeprefix("sha256=").strip().lower()

    expected_signature = hmac.new(
        secret.encode("utf-8"),
        payload,
        hashlib.sha256
    ).hexdigest()

    # Timing-safe comparison
    is_valid = hmac.compare_digest(expected_signature, received_signature)

    if not is_valid:
        logger.warning(
            "Signature verification failed. Expected: %s..., Received: %s...",
            expected_signature[:16], received_signature[:16],
        )

    return is_valid


def create_webhook_app(config: Config, processor: Processor) -> FastAPI:
    """Create and configure the FastAPI webhook application.

    Args:
        config: Application configuration
        processor: Processor that handles each mention

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Roadmap Bot Webhooks",
        description="Farcaster mention receiver that turns feedback into roadmap features",
        version="1.0.0"
    )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "roadmap-bot"
        }

    @app.post("/webhook/mention")
    async def mention_webhook(
        request: Request,
        background_tasks: BackgroundTasks
    ) -> JSONResponse:
        """Handle an incoming mention webhook.

        The signature is checked only in production. Processing happens in the
        background so the delivery is acknowledged right away.
        """
        body = await request.body()

        if config.bot.environment == "production":
            if not config.farcaster.webhook_secret:
                logger.error("Webhook secret not configured")
                raise HTTPException(status_code=500, detail="Webhook secret not configured")

            signature = request.headers.get(SIGNATURE_HEADER, "")
            secret = config.farcaster.webhook_secret.get_secret_value()
            if not verify_signature(body, signature, secret):
                raise HTTPException(status_code=401, detail="Invalid signature")

        try:
            payload = json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error("Failed to parse webhook payload: %s", e)
            raise HTTPException(status_code=400, detail="Invalid JSON payload")

        event = MentionEvent.from_webhook(payload) if isinstance(payload, dict) else None
        if event is None:
            logger.error("Webhook payload missing cast hash or author fid")
            return JSONResponse({"status": "ignored"}, status_code=200)

        background_tasks.add_task(processor.process, event)
        logger.info("Accepted mention %s from fid %d", event.cast_hash, event.author_fid)

        return JSONResponse(
            {"status": "accepted", "cast_hash": event.cast_hash},
            status_code=200
        )

    @app.post("/trigger")
    async def trigger(request: TriggerRequest) -> dict:
        """Process a synthetic mention synchronously (no signature check)."""
        event = MentionEvent(
            cast_hash=request.cast_hash,
            author_fid=request.author_fid,
            parent_hash=request.parent_hash,
        )
        logger.info("Manual trigger for %s", event.cast_hash)
        outcome = await processor.process(event)
        return {"status": "processed", **outcome.to_dict()}

    return app
