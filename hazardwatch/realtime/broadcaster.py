"""Realtime fan-out of dashboard snapshots and events to WebSocket subscribers.

Every registry mutation happens on the event loop between awaits, so the
subscriber map needs no lock. Sends are best-effort: a connection whose send
fails is treated as closed and dropped from the registry.

Control messages accepted from a connection::

    {"type": "authenticate", "userId": "..."}
    {"type": "subscribe", "channel": "dashboard"}
    {"type": "unsubscribe", "channel": "dashboard"}
    {"type": "heartbeat"}
"""
from __future__ import annotations

import asyncio
import itertools
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from pydantic_core import to_jsonable_python

from hazardwatch.common.config import settings
from hazardwatch.common.logger import setup_logger
from hazardwatch.common.metrics import (
    errors_total,
    realtime_messages_total,
    snapshot_cycles_total,
    websocket_connections,
)
from hazardwatch.common.utils import now_ms
from hazardwatch.storage.base import Storage

logger = setup_logger(__name__)

DASHBOARD_CHANNEL = "dashboard"
ACTIVITY_CHANNEL = "activity"


@dataclass
class Subscriber:
    """Registry entry for one open connection."""
    connection: Any
    is_authenticated: bool = False
    user_id: Optional[str] = None
    channels: Set[str] = field(default_factory=set)


class RealtimeBroadcaster:
    """Owns the connection registry and the periodic push schedule."""

    def __init__(
        self,
        storage: Storage,
        stats_interval: Optional[float] = None,
        heartbeat_interval: Optional[float] = None,
        activity_limit: Optional[int] = None,
    ):
        self.storage = storage
        self.stats_interval = stats_interval or settings.STATS_PUSH_INTERVAL_SEC
        self.heartbeat_interval = heartbeat_interval or settings.HEARTBEAT_INTERVAL_SEC
        self.activity_limit = activity_limit or settings.ACTIVITY_SNAPSHOT_LIMIT

        self._subscribers: Dict[int, Subscriber] = {}
        self._ids = itertools.count(1)
        self._tasks: List[asyncio.Task] = []
        self._snapshot_in_flight = False

    # Connection lifecycle

    async def connect(self, connection: Any) -> int:
        """Register a new, unauthenticated connection and greet it."""
        connection_id = next(self._ids)
        self._subscribers[connection_id] = Subscriber(connection=connection)
        websocket_connections.set(len(self._subscribers))
        logger.info(f"Realtime client connected (id={connection_id})")

        await self._send(connection_id, {"type": "connected", "timestamp": now_ms()})
        return connection_id

    def disconnect(self, connection_id: int) -> None:
        if self._subscribers.pop(connection_id, None) is not None:
            websocket_connections.set(len(self._subscribers))
            logger.info(f"Realtime client disconnected (id={connection_id})")

    def get_connected_count(self) -> int:
        return len(self._subscribers)

    def is_connected(self, connection_id: int) -> bool:
        return connection_id in self._subscribers

    # Inbound control messages

    async def handle_message(self, connection_id: int, raw: str) -> None:
        """Apply one control message from a connection and reply to it."""
        subscriber = self._subscribers.get(connection_id)
        if subscriber is None:
            return

        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            await self._send_error(connection_id, "Invalid message format")
            return

        if not isinstance(message, dict) or not isinstance(message.get("type"), str):
            await self._send_error(connection_id, "Invalid message format")
            return

        message_type = message["type"]

        if message_type == "authenticate":
            # Any client-supplied identifier is accepted
            user_id = message.get("userId", message.get("user_id"))
            subscriber.is_authenticated = True
            subscriber.user_id = str(user_id) if user_id is not None else None
            await self._send(connection_id, {"type": "authenticated", "success": True})

        elif message_type in ("subscribe", "unsubscribe"):
            channel = message.get("channel")
            if not isinstance(channel, str) or not channel:
                await self._send_error(connection_id, "Missing channel")
                return
            if not subscriber.is_authenticated:
                logger.debug(f"Ignoring {message_type} from unauthenticated client {connection_id}")
                return

            if message_type == "subscribe":
                subscriber.channels.add(channel)
                await self._send(connection_id, {"type": "subscribed", "channel": channel})
            else:
                subscriber.channels.discard(channel)
                await self._send(connection_id, {"type": "unsubscribed", "channel": channel})

        elif message_type == "heartbeat":
            await self._send(connection_id, {"type": "heartbeat", "timestamp": now_ms()})

        else:
            logger.debug(f"Unknown message type from client {connection_id}: {message_type}")
            await self._send_error(connection_id, f"Unknown message type: {message_type}")

    # Outbound delivery

    async def broadcast(self, message: Dict[str, Any], channel: Optional[str] = None) -> int:
        """Send to authenticated subscribers of ``channel`` (all if None).

        Returns the number of connections the message reached.
        """
        targets = [
            connection_id
            for connection_id, subscriber in list(self._subscribers.items())
            if subscriber.is_authenticated and (channel is None or channel in subscriber.channels)
        ]
        return await self._fan_out(targets, message)

    async def broadcast_to_user(self, user_id: str, message: Dict[str, Any]) -> int:
        """Send to every authenticated connection of one user."""
        targets = [
            connection_id
            for connection_id, subscriber in list(self._subscribers.items())
            if subscriber.is_authenticated and subscriber.user_id == user_id
        ]
        return await self._fan_out(targets, message)

    async def _fan_out(self, connection_ids: List[int], message: Dict[str, Any]) -> int:
        if not connection_ids:
            return 0
        data = json.dumps(message, default=to_jsonable_python)
        results = await asyncio.gather(*(
            self._send_raw(connection_id, data, message.get("type", "unknown"))
            for connection_id in connection_ids
        ))
        return sum(results)

    async def _send(self, connection_id: int, message: Dict[str, Any]) -> bool:
        data = json.dumps(message, default=to_jsonable_python)
        return await self._send_raw(connection_id, data, message.get("type", "unknown"))

    async def _send_error(self, connection_id: int, text: str) -> bool:
        return await self._send(connection_id, {"type": "error", "message": text})

    async def _send_raw(self, connection_id: int, data: str, message_type: str) -> bool:
        subscriber = self._subscribers.get(connection_id)
        if subscriber is None:
            return False
        try:
            await subscriber.connection.send_text(data)
            realtime_messages_total.labels(message_type=message_type, status="sent").inc()
            return True
        except Exception as e:
            # A failed send means the connection is gone
            logger.warning(f"Send to client {connection_id} failed, dropping it: {e}")
            realtime_messages_total.labels(message_type=message_type, status="failed").inc()
            self.disconnect(connection_id)
            return False

    # Scheduled pushes

    async def push_snapshot(self) -> bool:
        """Fetch stats and recent activity, then push them to their channels.

        Returns False when the cycle was skipped.
        """
        if self._snapshot_in_flight:
            logger.debug("Previous snapshot still in flight, skipping cycle")
            snapshot_cycles_total.labels(status="skipped").inc()
            return False

        self._snapshot_in_flight = True
        try:
            stats, activity = await asyncio.gather(
                self.storage.get_system_stats(),
                self.storage.get_recent_activity(self.activity_limit),
            )
        except Exception as e:
            logger.error(f"Error fetching realtime snapshot: {e}")
            snapshot_cycles_total.labels(status="error").inc()
            errors_total.labels(component="broadcaster", error_type="snapshot_fetch").inc()
            return False
        finally:
            self._snapshot_in_flight = False

        await self.broadcast({"type": "stats_update", "data": stats}, DASHBOARD_CHANNEL)
        await self.broadcast({"type": "activity_update", "data": activity}, ACTIVITY_CHANNEL)
        snapshot_cycles_total.labels(status="success").inc()
        return True

    async def send_heartbeat(self) -> int:
        return await self.broadcast({"type": "heartbeat", "timestamp": now_ms()})

    async def _run_periodic(self, name: str, interval: float, func: Callable[[], Awaitable[Any]]):
        logger.info(f"[{name}] started, every {interval}s")
        try:
            while True:
                await asyncio.sleep(interval)
                try:
                    await func()
                except Exception as e:
                    logger.error(f"[{name}] cycle failed: {e}")
                    errors_total.labels(component="broadcaster", error_type=f"{name}_error").inc()
        except asyncio.CancelledError:
            logger.info(f"[{name}] cancelled")
            raise

    def start(self) -> None:
        """Start the snapshot and heartbeat tasks on the running loop."""
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._run_periodic("snapshot", self.stats_interval, self.push_snapshot)),
            asyncio.create_task(self._run_periodic("heartbeat", self.heartbeat_interval, self.send_heartbeat)),
        ]

    async def stop(self) -> None:
        """Cancel the periodic tasks and wait for them to finish."""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Realtime broadcaster stopped")

    @property
    def running(self) -> bool:
        return bool(self._tasks)
