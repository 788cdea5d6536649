"""
BroadcastChannel — fan-out of events to a session's subscribers.

Delivery is at most once per publish: a subscriber that raises is logged and
skipped, never retried. Publishes for the same session are serialized by a
per-session lock, so subscribers observe events in publish order and never
see two publishes interleaved. Different sessions publish independently.
"""

from __future__ import annotations

import asyncio
from typing import Dict, List

from domain.models import BroadcastEvent
from ports.event_subscriber import EventSubscriberPort
from shared_utils.constants import LogScope
from shared_utils.logging_utils import ContextualLogger


logger = ContextualLogger(scope=LogScope.BROADCAST)


class BroadcastChannel:
    """Relay without session state of its own; holds subscriber references only."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[EventSubscriberPort]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def subscribe(self, session_id: str, subscriber: EventSubscriberPort) -> None:
        subscribers = self._subscribers.setdefault(session_id, [])
        if subscriber not in subscribers:
            subscribers.append(subscriber)
        logger.debug("subscriber_added", session_id=session_id, count=len(subscribers))

    def unsubscribe(self, session_id: str, subscriber: EventSubscriberPort) -> None:
        subscribers = self._subscribers.get(session_id)
        if not subscribers or subscriber not in subscribers:
            return
        subscribers.remove(subscriber)
        if not subscribers:
            self.drop(session_id)

    def subscriber_count(self, session_id: str) -> int:
        return len(self._subscribers.get(session_id, ()))

    def drop(self, session_id: str) -> None:
        """Forget every subscriber of *session_id*."""
        self._subscribers.pop(session_id, None)
        self._locks.pop(session_id, None)

    async def publish(self, session_id: str, event: BroadcastEvent) -> int:
        """Deliver *event* to each current subscriber once.

        Returns:
            Number of subscribers that accepted the event.
        """
        if not self._subscribers.get(session_id):
            return 0

        lock = self._locks.setdefault(session_id, asyncio.Lock())
        delivered = 0
        async with lock:
            # Snapshot: subscribers joining mid-publish start with the next event
            for subscriber in list(self._subscribers.get(session_id, ())):
                try:
                    await subscriber(event)
                    delivered += 1
                except Exception as exc:
                    logger.warning(
                        "event_delivery_failed",
                        session_id=session_id,
                        event_kind=event.kind.value,
                        error=str(exc),
                    )
        return delivered
