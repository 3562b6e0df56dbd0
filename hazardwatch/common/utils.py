"""Small shared helpers."""
from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone


def now_utc() -> datetime:
    """Current UTC datetime with timezone information."""
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """Current UTC time as integer milliseconds since the epoch."""
    return int(time.time() * 1000)


def start_of_day(dt: datetime) -> datetime:
    """Midnight (UTC) of the day containing ``dt``."""
    return dt.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def generate_id() -> str:
    return uuid.uuid4().hex
