"""
Port interface for participant connections that receive broadcast events.

Implementations: WebSocketSubscriber (adapters/). Any presentation layer can
subscribe an object satisfying this protocol to observe a session.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from domain.models import BroadcastEvent


@runtime_checkable
class EventSubscriberPort(Protocol):
    """Receives events published for one session."""

    async def __call__(self, event: BroadcastEvent) -> None:
        """Deliver a single event.

        Raises:
            Exception: Delivery failures are logged by the channel and the
                event is not retried.
        """
        ...
