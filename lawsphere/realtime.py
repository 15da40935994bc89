"""
Real-time forum notifications

Routers publish events after a successful write. Delivery is best effort:
a failed publish is logged and never reaches the caller. Deployments with
REALTIME_ENABLED=false get the NoopNotifier.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from fastapi import Request

logger = logging.getLogger(__name__)

NEW_TOPIC = "new-topic"
TOPIC_VOTE_UPDATE = "topic-vote-update"
NEW_REPLY = "new-reply"
REPLY_VOTE_UPDATE = "reply-vote-update"

# Queued for a subscriber that was dropped; its socket should be closed
CLOSED = None


def topic_room(topic_id) -> str:
    return f"topic-{topic_id}"


class Notifier:
    """Interface handed to the calling layer of the engines"""

    async def publish(self, event: str, data: Any, room: Optional[str] = None) -> None:
        try:
            await self._publish(event, data, room)
        except Exception as e:
            logger.error(f"❌ Realtime publish error ({event}): {e}")

    async def _publish(self, event: str, data: Any, room: Optional[str]) -> None:
        raise NotImplementedError


class NoopNotifier(Notifier):
    """Used where real-time delivery is switched off"""

    async def _publish(self, event: str, data: Any, room: Optional[str]) -> None:
        logger.debug(f"Realtime disabled, dropped {event}")


class BroadcastNotifier(Notifier):
    """In-process fan-out to websocket subscribers, optionally scoped to a room"""

    def __init__(self, queue_size: int = 1000) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[asyncio.Queue, set[str]] = {}
        self._lock = asyncio.Lock()

    async def register(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        async with self._lock:
            self._subscribers[q] = set()
        return q

    async def unregister(self, q: asyncio.Queue) -> None:
        async with self._lock:
            self._subscribers.pop(q, None)

    async def join(self, q: asyncio.Queue, room: str) -> None:
        async with self._lock:
            if q in self._subscribers:
                self._subscribers[q].add(room)

    async def leave(self, q: asyncio.Queue, room: str) -> None:
        async with self._lock:
            if q in self._subscribers:
                self._subscribers[q].discard(room)

    @staticmethod
    def _close(q: asyncio.Queue) -> None:
        """Replace whatever is pending with the CLOSED marker"""
        while not q.empty():
            q.get_nowait()
        q.put_nowait(CLOSED)

    async def _publish(self, event: str, data: Any, room: Optional[str]) -> None:
        message = {"event": event, "data": data}
        async with self._lock:
            dead = []
            delivered = 0
            for q, rooms in self._subscribers.items():
                if room is not None and room not in rooms:
                    continue
                try:
                    q.put_nowait(message)
                    delivered += 1
                except asyncio.QueueFull:
                    # Slow consumer, drop it
                    dead.append(q)
            for q in dead:
                self._subscribers.pop(q, None)
                self._close(q)
            if dead:
                logger.warning(f"⚠️ Dropped {len(dead)} slow realtime subscriber(s)")

        target = f"room {room}" if room else "all clients"
        logger.debug(f"Emitted {event} to {target} ({delivered} subscribers)")


def get_notifier(request: Request) -> Notifier:
    """Dependency returning the notifier configured on the app"""
    notifier = getattr(request.app.state, "notifier", None)
    return notifier if notifier is not None else NoopNotifier()
