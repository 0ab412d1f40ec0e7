"""
Notification Emitter — decides what to notify, never delivers it.

Subscribers (push, in-app, webhooks) live in the host. A failing subscriber
is logged and skipped; it never breaks the lifecycle operation that emitted.
"""

from typing import Awaitable, Callable

import structlog

from decisioncore.decisions.schemas import NotificationEvent

logger = structlog.get_logger(__name__)

Subscriber = Callable[[NotificationEvent], Awaitable[None]]


class NotificationEmitter:

    def __init__(self):
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    async def emit(self, event: NotificationEvent) -> int:
        """Deliver to every subscriber. Returns how many succeeded."""
        delivered = 0
        for subscriber in list(self._subscribers):
            try:
                await subscriber(event)
                delivered += 1
            except Exception as e:
                logger.error(
                    "notification_subscriber_failed",
                    tenant_id=event.tenant_id,
                    card_id=event.card_id,
                    kind=event.kind.value,
                    error=str(e),
                )
        logger.debug(
            "notification_emitted",
            tenant_id=event.tenant_id,
            card_id=event.card_id,
            kind=event.kind.value,
            delivered=delivered,
        )
        return delivered


class RecordingSubscriber:
    """Keeps every event it receives. Handy for hosts that poll."""

    def __init__(self):
        self.events: list[NotificationEvent] = []

    async def __call__(self, event: NotificationEvent) -> None:
        self.events.append(event)
