"""Outbound notifications for watch lifecycle events.

The core never renders messages itself. It publishes :class:`WatchEvent`
objects to whatever handlers the delivery layer has subscribed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from threading import Lock

from ratwatch.db.time import utcnow
from ratwatch.models import Watch
from ratwatch.schemas.events import WatchEvent, WatchEventType

logger = logging.getLogger(__name__)

WatchEventHandler = Callable[[WatchEvent], None]


def build_event(
    event_type: WatchEventType,
    watch: Watch,
    occurred_at: datetime | None = None,
) -> WatchEvent:
    """Return a notification snapshot of ``watch``."""
    return WatchEvent(
        event_type=event_type,
        watch_id=watch.id,
        group_id=watch.group_id,
        channel_id=watch.channel_id,
        accused_user_id=watch.accused_user_id,
        initiator_user_id=watch.initiator_user_id,
        deadline=watch.deadline,
        custom_message=watch.custom_message,
        state=watch.state,
        guilty_votes=watch.guilty_votes or 0,
        not_guilty_votes=watch.not_guilty_votes or 0,
        voting_closes_at=watch.voting_closes_at,
        occurred_at=occurred_at or utcnow(),
    )


class WatchNotifier:
    """Fan-out of lifecycle events to subscribed handlers."""

    def __init__(self) -> None:
        self._handlers: list[WatchEventHandler] = []
        self._lock = Lock()

    def subscribe(self, handler: WatchEventHandler) -> None:
        """Register a handler that receives every published event."""
        with self._lock:
            self._handlers.append(handler)

    def unsubscribe(self, handler: WatchEventHandler) -> None:
        """Remove a previously registered handler."""
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    def publish(self, event: WatchEvent) -> None:
        """Deliver ``event`` to every handler.

        Delivery failures belong to the delivery layer; they are logged and
        never undo the committed state change that produced the event.
        """
        logger.info(
            "Publishing %s for watch %s (state=%s)",
            event.event_type,
            event.watch_id,
            event.state,
        )
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Watch event handler failed for %s on watch %s",
                    event.event_type,
                    event.watch_id,
                )


_notifier: WatchNotifier | None = None


def get_notifier() -> WatchNotifier:
    """Return the process-wide notifier."""
    global _notifier
    if _notifier is None:
        _notifier = WatchNotifier()
    return _notifier
