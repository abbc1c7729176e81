"""Tests for the webhook server."""

import hashlib
import hmac
import json

from fastapi.testclient import TestClient

from fakes import make_config
from src.processor import Outcome, OutcomeKind
from src.webhook_server import SIGNATURE_HEADER, create_webhook_app, verify_signature

PAYLOAD = {"type": "cast.created", "data": {"hash": "0xabc", "author": {"fid": 7}, "parent_hash": "0xdef"}}


class StubProcessor:
    """Records events instead of processing them."""

    def __init__(self):
        self.events = []

    async def process(self, event):
        self.events.append(event)
        return Outcome(OutcomeKind.NO_PARENT, error="No parent cast")


def sign(body: bytes, secret: str = "shh") -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class TestVerifySignature:
    def test_valid(self):
        assert verify_signature(b"{}", sign(b"{}"), "shh")

    def test_prefixed(self):
        assert verify_signature(b"{}", "sha256=" + sign(b"{}"), "shh")

    def test_invalid(self):
        assert not verify_signature(b"{}", sign(b"{}", "other"), "shh")

    def test_missing(self):
        assert not verify_signature(b"{}", "", "shh")


class TestWebhookServer:
    """Test the HTTP endpoints."""

    def setup_method(self):
        """Set up test fixtures."""
        self.processor = StubProcessor()
        self.client = TestClient(create_webhook_app(make_config(), self.processor))
        self.prod_processor = StubProcessor()
        self.prod_client = TestClient(
            create_webhook_app(make_config(environment="production"), self.prod_processor)
        )

    def test_health(self):
        response = self.client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "roadmap-bot"}

    def test_development_accepts_unsigned(self):
        response = self.client.post("/webhook/mention", json=PAYLOAD)

        assert response.status_code == 200
        assert response.json() == {"status": "accepted", "cast_hash": "0xabc"}
        assert len(self.processor.events) == 1
        event = self.processor.events[0]
        assert (event.cast_hash, event.author_fid, event.parent_hash) == ("0xabc", 7, "0xdef")

    def test_production_requires_signature(self):
        response = self.prod_client.post("/webhook/mention", json=PAYLOAD)

        assert response.status_code == 401
        assert self.prod_processor.events == []

    def test_production_rejects_bad_signature(self):
        body = json.dumps(PAYLOAD).encode()
        response = self.prod_client.post(
            "/webhook/mention", content=body, headers={SIGNATURE_HEADER: sign(body, "wrong")}
        )

        assert response.status_code == 401

    def test_production_accepts_signed(self):
        body = json.dumps(PAYLOAD).encode()
        response = self.prod_client.post("/webhook/mention", content=body, headers={SIGNATURE_HEADER: sign(body)})

        assert response.status_code == 200
        assert response.json()["status"] == "accepted"
        assert len(self.prod_processor.events) == 1

    def test_production_without_secret(self):
        config = make_config(environment="production")
        config.farcaster = config.farcaster.model_copy(update={"webhook_secret": None})
        client = TestClient(create_webhook_app(config, StubProcessor()))

        response = client.post("/webhook/mention", json=PAYLOAD)

        assert response.status_code == 500

    def test_invalid_json(self):
        response = self.client.post("/webhook/mention", content=b"{not json")

        assert response.status_code == 400

    def test_missing_fields_ignored(self):
        response = self.client.post("/webhook/mention", json={"data": {"text": "hello"}})

        assert response.status_code == 200
        assert response.json() == {"status": "ignored"}
        assert self.processor.events == []

    def test_manual_trigger(self):
        response = self.client.post("/trigger", json={"cast_hash": "0x123", "author_fid": 9})

        assert response.status_code == 200
        assert response.json() == {"status": "processed", "outcome": "no_parent", "error": "No parent cast"}
        event = self.processor.events[0]
        assert (event.cast_hash, event.author_fid, event.parent_hash) == ("0x123", 9, None)
