"""Shared fakes for the test suite."""
import asyncio
import json
import time
from typing import Any, Dict, List, Optional

import pytest

from hazardwatch.common.models import SystemStats
from hazardwatch.storage.base import StorageError
from hazardwatch.storage.memory import MemoryStorage


class RecordingConnection:
    """Stands in for a WebSocket: records every frame, optionally fails."""

    def __init__(self):
        self.frames: List[str] = []
        self.fail = False

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise ConnectionError("connection closed")
        self.frames.append(data)

    @property
    def messages(self) -> List[Dict[str, Any]]:
        return [json.loads(frame) for frame in self.frames]

    def types(self) -> List[str]:
        return [m["type"] for m in self.messages]


class FailingStatsStorage(MemoryStorage):
    """Memory storage whose stats query always fails."""

    def __init__(self):
        super().__init__()
        self.stats_calls = 0

    async def get_system_stats(self) -> SystemStats:
        self.stats_calls += 1
        raise StorageError("stats backend unavailable")


class SlowStatsStorage(MemoryStorage):
    """Memory storage whose stats query blocks until released."""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()

    async def get_system_stats(self) -> SystemStats:
        await self.release.wait()
        return await super().get_system_stats()


class FakeRedis:
    """In-process replacement for RedisClient's queue and dedupe calls."""

    def __init__(self, items: Optional[List[Any]] = None):
        self.items = list(items or [])
        self.seen = set()

    def check_duplicate(self, key: str, ttl: int = None) -> bool:
        if key in self.seen:
            return True
        self.seen.add(key)
        return False

    def release_duplicate(self, key: str) -> None:
        self.seen.discard(key)

    def pop_from_queue(self, queue_name: str, timeout: int = 0):
        if self.items:
            return self.items.pop(0)
        time.sleep(0.01)
        return None

    def queue_length(self, queue_name: str) -> int:
        return len(self.items)

    def health_check(self) -> bool:
        return True


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def fake_redis():
    return FakeRedis()


class FlakyPostStorage(MemoryStorage):
    """Memory storage whose first social post write fails."""

    def __init__(self):
        super().__init__()
        self.post_failures = 1

    async def create_social_media_post(self, post):
        if self.post_failures:
            self.post_failures -= 1
            raise StorageError("write rejected")
        return await super().create_social_media_post(post)


class FailingNotifications:
    """Notification service stand-in whose alerts always fail."""

    def __init__(self):
        self.calls = 0

    async def send_social_media_alert(self, **kwargs):
        self.calls += 1
        raise StorageError("notifications index unavailable")
