"""Redis client wrapper for the ingest queue and post deduplication."""
import json
import redis
from typing import Optional, Any
from hazardwatch.common.config import settings
from hazardwatch.common.logger import setup_logger
from hazardwatch.common.metrics import errors_total

logger = setup_logger(__name__)


class RedisClient:
    """Redis client wrapper."""

    def __init__(self):
        """Initialize Redis client."""
        self.client = redis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            decode_responses=True
        )
        try:
            self.client.ping()
            logger.info(f"Connected to Redis at {settings.REDIS_HOST}:{settings.REDIS_PORT}")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise

    def pop_from_queue(self, queue_name: str, timeout: int = 0) -> Optional[Any]:
        """Pop item from queue, blocking up to ``timeout`` seconds."""
        try:
            result = self.client.blpop(queue_name, timeout=timeout)
            if result:
                return json.loads(result[1])
            return None
        except json.JSONDecodeError as e:
            logger.warning(f"Dropping undecodable queue item from {queue_name}: {e}")
            errors_total.labels(component="redis", error_type="decode").inc()
            return None
        except Exception as e:
            logger.error(f"Failed to pop from queue: {e}")
            errors_total.labels(component="redis", error_type="pop").inc()
            return None

    def queue_length(self, queue_name: str) -> int:
        """Get queue length."""
        try:
            return self.client.llen(queue_name)
        except Exception as e:
            logger.error(f"Failed to get queue length: {e}")
            return 0

    def check_duplicate(self, key: str, ttl: int = None) -> bool:
        """Return True if ``key`` was seen within the TTL, marking it seen otherwise."""
        if ttl is None:
            ttl = settings.DEDUPE_TTL_SEC
        try:
            # SET NX is atomic, so two workers cannot both claim the same post
            created = self.client.set(f"seen:{key}", "1", ex=ttl, nx=True)
            return not created
        except Exception as e:
            logger.error(f"Failed to check duplicate: {e}")
            errors_total.labels(component="redis", error_type="dedupe").inc()
            return False

    def release_duplicate(self, key: str) -> None:
        """Forget a key claimed by check_duplicate."""
        try:
            self.client.delete(f"seen:{key}")
        except Exception as e:
            logger.error(f"Failed to release duplicate key: {e}")
            errors_total.labels(component="redis", error_type="dedupe_release").inc()

    def health_check(self) -> bool:
        try:
            return bool(self.client.ping())
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            return False
