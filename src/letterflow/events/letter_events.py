"""Letter workflow events: titles, bodies and webhook fan-out per notification kind."""

import logging

from letterflow.events.webhook_config import WebhookRegistry
from letterflow.events.webhook_emitter import emit_event
from letterflow.models.enums import NotificationKind

logger = logging.getLogger(__name__)

EVENT_TITLES = {
    NotificationKind.REVIEW_REQUEST: "Letter awaiting your review",
    NotificationKind.APPROVAL_REQUEST: "Letter awaiting your approval",
    NotificationKind.REVIEW_APPROVED: "Letter review approved",
    NotificationKind.REVIEW_REJECTED: "Letter rejected in review",
    NotificationKind.REASSIGNED: "Letter review reassigned to you",
    NotificationKind.FINAL_APPROVED: "Letter approved",
    NotificationKind.FINAL_REJECTED: "Letter rejected by approver",
    NotificationKind.RESUBMITTED: "Rejected letter resubmitted",
}


def event_type_for(kind: str) -> str:
    """Webhook event type for a notification kind, e.g. ``letter.final_approved``."""
    return "letter." + kind.removeprefix("letter_")


def build_title(kind: str) -> str:
    return EVENT_TITLES.get(kind, kind)


def build_body(kind: str, payload: dict) -> str:
    """Build human-readable notification body."""
    name = payload.get("letter_name") or payload.get("letter_id", "unknown")

    if kind == NotificationKind.REVIEW_REQUEST:
        return f'Letter "{name}" is waiting for your review'
    elif kind == NotificationKind.APPROVAL_REQUEST:
        return f'Letter "{name}" is waiting for your final approval'
    elif kind == NotificationKind.REVIEW_APPROVED:
        return f'A reviewer approved letter "{name}"'
    elif kind in (NotificationKind.REVIEW_REJECTED, NotificationKind.FINAL_REJECTED):
        reason = payload.get("reason") or "no reason given"
        return f'Letter "{name}" was rejected: {reason}'
    elif kind == NotificationKind.REASSIGNED:
        return f'Letter "{name}" was reassigned to you'
    elif kind == NotificationKind.FINAL_APPROVED:
        return f'Letter "{name}" has been approved'
    elif kind == NotificationKind.RESUBMITTED:
        return f'Letter "{name}" was resubmitted and needs your attention'
    return f'Update on letter "{name}"'


def build_link(client_url: str, payload: dict) -> str | None:
    letter_id = payload.get("letter_id")
    if not letter_id:
        return None
    return f"{client_url.rstrip('/')}/letters/{letter_id}"


async def emit_letter_event(registry: WebhookRegistry, kind: str, recipient_id: str, payload: dict) -> list[dict]:
    """Fan a letter notification out to webhook subscribers."""
    event_type = event_type_for(kind)
    results = await emit_event(registry, event_type, {**payload, "recipient_id": recipient_id})
    failed = [r for r in results if r["error"]]
    if failed:
        logger.warning("%d of %d webhook deliveries failed for %s", len(failed), len(results), event_type)
    return results
