"""Subscriber Registry — the set of live real-time connections and their channel filters.

Invariants:
    - add/remove/snapshot happen under one asyncio.Lock; broadcast sends to a
      snapshot, so it never sees a half-added subscriber
    - A subscriber with no channels receives everything; otherwise only events whose
      type is in its channels (or "all")
    - Every send is bounded by send_timeout_seconds; a failed or timed-out send drops
      that subscriber, closes its connection, and never affects the others
    - Delivery is at-most-once: no acknowledgement, no replay

Design Decisions:
    - Explicitly owned component (one instance on app.state), not module-level state
    - Handles are opaque strings so callers never hold on to registry internals
"""

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from couponhub.core.pipeline_types import ChangeEvent
from couponhub.core.repository_protocols import Connection

logger = logging.getLogger(__name__)

ALL_CHANNELS = "all"
# 1013 Try Again Later: the client should reconnect
DROPPED_CLOSE_CODE = 1013


@dataclass
class _Subscription:
    handle: str
    connection: Connection
    channels: set[str] = field(default_factory=set)
    connected_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    def wants(self, event_type: str) -> bool:
        if not self.channels:
            return True
        return event_type in self.channels or ALL_CHANNELS in self.channels


class SubscriberRegistry:
    """NotificationChannel over in-process connections."""

    def __init__(self, send_timeout_seconds: float = 1.0):
        self._send_timeout = send_timeout_seconds
        self._lock = asyncio.Lock()
        self._subscribers: dict[str, _Subscription] = {}
        self.total_connections = 0
        self.messages_sent = 0
        self.dropped = 0

    async def subscribe(
        self, connection: Connection, channels: list[str] | None = None,
    ) -> str:
        handle = f"client_{uuid.uuid4().hex[:12]}"
        async with self._lock:
            self._subscribers[handle] = _Subscription(
                handle, connection, set(channels or ()),
            )
            self.total_connections += 1
            active = len(self._subscribers)
        logger.info(f"Subscriber {handle} connected ({active} active)")
        return handle

    async def add_channels(self, handle: str, channels: list[str]) -> bool:
        """Widen a subscriber's filter. False if the handle is gone."""
        async with self._lock:
            sub = self._subscribers.get(handle)
            if sub is None:
                return False
            sub.channels.update(channels)
            return True

    async def unsubscribe(self, handle: str) -> bool:
        async with self._lock:
            removed = self._subscribers.pop(handle, None) is not None
            active = len(self._subscribers)
        if removed:
            logger.info(f"Subscriber {handle} disconnected ({active} active)")
        return removed

    async def broadcast(self, event: ChangeEvent) -> int:
        """Send one event to every interested subscriber. Returns deliveries."""
        async with self._lock:
            targets = [
                s for s in self._subscribers.values() if s.wants(event.type)
            ]
        if not targets:
            return 0

        message = json.dumps(event.to_wire(), default=str)
        outcomes = await asyncio.gather(
            *(self._send(sub, message) for sub in targets),
        )
        dead = [sub for sub, ok in zip(targets, outcomes) if not ok]
        for sub in dead:
            await self.unsubscribe(sub.handle)
        if dead:
            await asyncio.gather(*(self._close(sub) for sub in dead))
        self.dropped += len(dead)

        delivered = len(targets) - len(dead)
        self.messages_sent += delivered
        logger.debug(
            f"Broadcast {event.type} v{event.version} to {delivered} subscriber(s)",
        )
        return delivered

    async def _send(self, sub: _Subscription, message: str) -> bool:
        try:
            await asyncio.wait_for(
                sub.connection.send_text(message), timeout=self._send_timeout,
            )
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Send to {sub.handle} timed out; dropping subscriber")
            return False
        except Exception as e:
            logger.warning(
                f"Send to {sub.handle} failed ({type(e).__name__}); dropping subscriber",
            )
            return False

    async def _close(self, sub: _Subscription) -> None:
        """Close a dropped connection so the client reconnects."""
        try:
            await asyncio.wait_for(
                sub.connection.close(code=DROPPED_CLOSE_CODE),
                timeout=self._send_timeout,
            )
        except Exception as e:
            logger.debug(f"Close of dropped {sub.handle} failed ({type(e).__name__})")

    @property
    def active(self) -> int:
        return len(self._subscribers)

    def stats(self) -> dict:
        return {
            "activeConnections": self.active,
            "totalConnections": self.total_connections,
            "messagesSent": self.messages_sent,
            "droppedConnections": self.dropped,
        }
