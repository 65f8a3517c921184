"""
Live Poll Publisher
===================

In-process fan-out of poll events (vote counts, presenter state changes) to
subscribers, typically one per open ``/ws/polls/{poll_id}`` WebSocket.

Architecture:
- Subscribers register per poll id
- ``publish`` notifies every subscriber of that poll concurrently
- One failing or slow subscriber never affects the others

Events only reach subscribers connected to this process. Cross-process
delivery is left to Supabase realtime.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

SUBSCRIBER_TIMEOUT_SECONDS = 5.0


class PollEvent:
    """
    One change to a poll.

    Attributes:
        poll_id: Poll the event belongs to
        event_type: "vote" or "state"
        data: Event body (vote counts or presenter state)
        timestamp: UTC time the event was created
    """

    def __init__(self, poll_id: str, event_type: str, data: Dict[str, Any]):
        self.poll_id = poll_id
        self.event_type = event_type
        self.data = data
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "poll_id": self.poll_id,
            "type": self.event_type,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }

    def __repr__(self):
        return f"PollEvent(poll={self.poll_id}, type={self.event_type})"


class PollListener(Protocol):
    """
    Anything that wants poll events.

    Example:
        class Printer(PollListener):
            async def on_event(self, event: PollEvent):
                print(event.to_dict())
    """

    async def on_event(self, event: PollEvent):
        ...


class QueueListener:
    """Buffers events for a WebSocket writer loop."""

    def __init__(self, maxsize: int = 100):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    async def on_event(self, event: PollEvent):
        if self.queue.full():
            # Slow client: drop the oldest event rather than block the publisher
            self.queue.get_nowait()
        self.queue.put_nowait(event)

    async def next_event(self, timeout: Optional[float] = None) -> PollEvent:
        return await asyncio.wait_for(self.queue.get(), timeout=timeout)


class LivePublisher:
    """
    Per-poll publish/subscribe hub.

    Usage:
        listener = QueueListener()
        live_publisher.add_subscriber(poll_id, listener)
        try:
            event = await listener.next_event()
        finally:
            live_publisher.remove_subscriber(poll_id, listener)
    """

    def __init__(self):
        self.__subscribers: Dict[str, List[PollListener]] = {}

    def add_subscriber(self, poll_id: str, subscriber: PollListener):
        self.__subscribers.setdefault(poll_id, []).append(subscriber)
        logger.debug(
            f"✅ Added live subscriber {type(subscriber).__name__} to poll {poll_id} "
            f"(total: {len(self.__subscribers[poll_id])})"
        )

    def remove_subscriber(self, poll_id: str, subscriber: PollListener):
        subscribers = self.__subscribers.get(poll_id, [])
        if subscriber in subscribers:
            subscribers.remove(subscriber)
        if not subscribers:
            self.__subscribers.pop(poll_id, None)

    def subscriber_count(self, poll_id: str) -> int:
        return len(self.__subscribers.get(poll_id, []))

    async def publish(self, event: PollEvent) -> int:
        """
        Notify every subscriber of ``event.poll_id``.

        Returns:
            int: Subscribers that processed the event without error
        """
        subscribers = list(self.__subscribers.get(event.poll_id, []))
        if not subscribers:
            return 0

        results = await asyncio.gather(
            *[self._notify_subscriber(subscriber, event) for subscriber in subscribers],
            return_exceptions=True,
        )

        delivered = 0
        for subscriber, result in zip(subscribers, results):
            if isinstance(result, Exception):
                logger.warning(f"❌ Live subscriber {type(subscriber).__name__} failed: {result!r}")
            else:
                delivered += 1
        return delivered

    async def _notify_subscriber(self, subscriber: PollListener, event: PollEvent):
        await asyncio.wait_for(subscriber.on_event(event), timeout=SUBSCRIBER_TIMEOUT_SECONDS)


live_publisher = LivePublisher()
