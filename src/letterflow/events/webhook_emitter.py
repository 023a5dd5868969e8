"""Webhook event emission with HMAC-SHA256 signing."""

import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone

import httpx

from letterflow.events.webhook_config import WebhookRegistry, WebhookSubscription
from letterflow.models.webhook import WebhookEnvelope
from letterflow.services.id_generator import generate_id

logger = logging.getLogger(__name__)

SOURCE_SYSTEM = "letterflow-api"


def sign_payload(body: bytes, secret: str) -> str:
    """Compute HMAC-SHA256 signature over the raw JSON body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def build_envelope(event_type: str, payload: dict) -> WebhookEnvelope:
    """Build an unsigned envelope; the signature is added per subscriber."""
    return WebhookEnvelope(
        event_type=event_type,
        event_id=generate_id("evt_"),
        occurred_at=datetime.now(timezone.utc),
        source_system=SOURCE_SYSTEM,
        letter_id=payload.get("letter_id"),
        payload=payload,
    )


async def emit_event(registry: WebhookRegistry, event_type: str, payload: dict) -> list[dict]:
    """Deliver an event to all matching subscribers and return per-URL results."""
    subscribers = registry.get_subscribers(event_type)
    if not subscribers:
        return []

    envelope = build_envelope(event_type, payload)
    return [await _deliver(envelope, sub) for sub in subscribers]


async def _deliver(envelope: WebhookEnvelope, sub: WebhookSubscription, max_retries: int = 3) -> dict:
    body_dict = envelope.model_dump(mode="json")
    body_bytes = json.dumps(body_dict, separators=(",", ":")).encode("utf-8")
    signature = sign_payload(body_bytes, sub.secret)

    headers = {
        "Content-Type": "application/json",
        "X-Letterflow-Signature": signature,
        "X-Letterflow-Event": envelope.event_type,
    }

    for attempt in range(max_retries):
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                resp = await client.post(sub.url, content=body_bytes, headers=headers)
            if resp.status_code < 300:
                return {"url": sub.url, "status": resp.status_code, "error": None}
            if resp.status_code >= 500 and attempt < max_retries - 1:
                continue
            return {"url": sub.url, "status": resp.status_code, "error": f"HTTP {resp.status_code}"}
        except httpx.HTTPError as exc:
            if attempt < max_retries - 1:
                continue
            logger.warning("Webhook delivery failed to %s: %s", sub.url, exc)
            return {"url": sub.url, "status": None, "error": str(exc)}

    return {"url": sub.url, "status": None, "error": "max retries exceeded"}
