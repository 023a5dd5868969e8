"""Webhook subscription management for letter workflow events."""

from dataclasses import dataclass, field


@dataclass
class WebhookSubscription:
    """A registered webhook endpoint; an empty ``event_types`` list means every event."""

    url: str
    secret: str
    event_types: list[str] = field(default_factory=list)
    active: bool = True

    def accepts(self, event_type: str) -> bool:
        return self.active and (not self.event_types or event_type in self.event_types)


class WebhookRegistry:
    """In-memory registry for webhook subscriptions."""

    def __init__(self) -> None:
        self._subscriptions: list[WebhookSubscription] = []

    def register(self, subscription: WebhookSubscription) -> None:
        self.unregister(subscription.url)
        self._subscriptions.append(subscription)

    def unregister(self, url: str) -> None:
        self._subscriptions = [s for s in self._subscriptions if s.url != url]

    def get_subscribers(self, event_type: str) -> list[WebhookSubscription]:
        return [s for s in self._subscriptions if s.accepts(event_type)]

    def list_all(self) -> list[WebhookSubscription]:
        return list(self._subscriptions)
