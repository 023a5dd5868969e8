"""Notification dispatcher writing notification rows and emitting webhooks."""

import asyncio
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from letterflow.collaborators.base import NotificationDispatcher
from letterflow.db.models.notification import NotificationRow
from letterflow.events.letter_events import build_body, build_link, build_title, emit_letter_event
from letterflow.events.webhook_config import WebhookRegistry
from letterflow.services.id_generator import generate_id

logger = logging.getLogger(__name__)


class DatabaseNotificationDispatcher(NotificationDispatcher):
    """Persists each notification in its own session, never the caller's.

    Webhook delivery runs as a background task so a slow subscriber does not
    hold up the request that triggered it.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client_url: str,
        registry: WebhookRegistry | None = None,
    ):
        self.session_factory = session_factory
        self.client_url = client_url
        self.registry = registry or WebhookRegistry()
        self._pending: set[asyncio.Task] = set()

    async def notify(self, user_id: str, kind: str, payload: dict[str, Any]) -> None:
        async with self.session_factory() as session:
            session.add(
                NotificationRow(
                    notification_id=generate_id("notif_"),
                    recipient_id=user_id,
                    letter_id=payload.get("letter_id"),
                    kind=kind,
                    title=build_title(kind),
                    body=build_body(kind, payload),
                    read=False,
                    link=build_link(self.client_url, payload),
                    extra_data=payload,
                )
            )
            await session.commit()
        logger.info("Notified %s (%s) for letter %s", user_id, kind, payload.get("letter_id"))

        if self.registry.list_all():
            task = asyncio.create_task(emit_letter_event(self.registry, kind, user_id, payload))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for in-flight webhook deliveries (used at shutdown)."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
