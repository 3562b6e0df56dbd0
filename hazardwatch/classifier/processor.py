"""Social post processor: validates, deduplicates, classifies and stores posts."""
import asyncio
import time
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from hazardwatch.classifier.text_classifier import HazardClassifier
from hazardwatch.common.config import settings
from hazardwatch.common.logger import setup_logger
from hazardwatch.common.metrics import errors_total, posts_ingested_total
from hazardwatch.common.models import PostAssessment, RawSocialPost, SocialMediaPost
from hazardwatch.common.redis_client import RedisClient
from hazardwatch.storage.base import Storage

logger = setup_logger(__name__)

REQUIRED_FIELDS = ("platform", "post_id", "content")


class SocialPostProcessor:
    """Turns raw platform posts into stored, classified SocialMediaPost records."""

    def __init__(
        self,
        storage: Storage,
        redis: Optional[RedisClient] = None,
        notifications=None,
        classifier: Optional[HazardClassifier] = None,
    ):
        self.storage = storage
        self.redis = redis
        self.notifications = notifications
        self.classifier = classifier or HazardClassifier()
        logger.info("Initialized social post processor")

    def dedupe_key(self, platform: str, post_id: str) -> str:
        return f"dedupe:social:{platform}:{post_id}"

    def process_post(self, raw_post: Dict[str, Any]) -> Optional[SocialMediaPost]:
        """Classify a single raw post; None if it is invalid or a duplicate."""
        result = self._process(raw_post)
        return result[0] if result else None

    def _process(self, raw_post: Dict[str, Any]) -> Optional[Tuple[SocialMediaPost, PostAssessment]]:
        start_time = time.time()

        if not isinstance(raw_post, dict) or any(not raw_post.get(f) for f in REQUIRED_FIELDS):
            logger.warning("Missing required fields in raw post")
            posts_ingested_total.labels(status="invalid").inc()
            return None

        try:
            raw = RawSocialPost.model_validate(raw_post)
        except ValidationError as e:
            logger.warning(f"Invalid raw post {raw_post.get('post_id')}: {e.error_count()} errors")
            posts_ingested_total.labels(status="invalid").inc()
            return None

        if self.redis is not None:
            if self.redis.check_duplicate(self.dedupe_key(raw.platform, raw.post_id), settings.DEDUPE_TTL_SEC):
                logger.debug(f"Skipping duplicate post: {raw.platform}/{raw.post_id}")
                posts_ingested_total.labels(status="duplicate").inc()
                return None

        assessment = self.classifier.classify(raw.content)
        coordinates = self.classifier.extract_coordinates(raw.content, assessment.location)

        post = SocialMediaPost(
            platform=raw.platform,
            post_id=raw.post_id,
            username=raw.username,
            content=raw.content,
            sentiment=assessment.sentiment,
            hazard_type=assessment.hazard_type,
            severity=assessment.severity,
            confidence=assessment.confidence,
            location=assessment.location,
            latitude=coordinates.latitude if coordinates else None,
            longitude=coordinates.longitude if coordinates else None,
            is_relevant=assessment.is_relevant,
            matched_keywords=list(assessment.matched_keywords),
            engagement=raw.engagement,
            engagement_score=self.classifier.calculate_engagement_score(raw.engagement),
            original_post_date=raw.original_post_date,
        )

        logger.debug(
            f"Processed post {raw.platform}/{raw.post_id} in {time.time() - start_time:.3f}s "
            f"(relevant={assessment.is_relevant}, confidence={assessment.confidence})"
        )
        return post, assessment

    async def ingest(self, raw_post: Dict[str, Any]) -> Optional[SocialMediaPost]:
        """Process and persist a raw post, alerting on posts that need attention."""
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, self._process, raw_post)
        if result is None:
            return None
        post, assessment = result

        try:
            saved = await self.storage.create_social_media_post(post)
        except Exception as e:
            logger.error(f"Error storing post {post.platform}/{post.post_id}: {e}")
            posts_ingested_total.labels(status="error").inc()
            errors_total.labels(component="processor", error_type="store_error").inc()
            if self.redis is not None:
                # A retried post must not count as a duplicate
                await loop.run_in_executor(
                    None, self.redis.release_duplicate, self.dedupe_key(post.platform, post.post_id)
                )
            raise

        posts_ingested_total.labels(status="stored").inc()

        if (
            self.notifications is not None
            and assessment.is_relevant
            and self.classifier.requires_immediate_attention(assessment)
        ):
            try:
                await self.notifications.send_social_media_alert(
                    platform=saved.platform,
                    keywords=list(assessment.matched_keywords),
                    post_count=1,
                    severity=assessment.severity,
                    location=assessment.location,
                )
            except Exception as e:
                logger.error(f"Error raising alert for post {saved.platform}/{saved.post_id}: {e}")
                errors_total.labels(component="processor", error_type="alert_error").inc()

        return saved

    async def process_queue(self, queue_name: Optional[str] = None, timeout: int = 5):
        """Ingest raw posts from a Redis list until cancelled."""
        if self.redis is None:
            raise RuntimeError("Queue processing requires a Redis client")

        queue_name = queue_name or settings.INGEST_QUEUE
        loop = asyncio.get_running_loop()
        logger.info(f"Starting to process queue: {queue_name}")

        while True:
            try:
                raw_post = await loop.run_in_executor(None, self.redis.pop_from_queue, queue_name, timeout)
                if not raw_post:
                    continue

                post = await self.ingest(raw_post)
                if post:
                    logger.debug(f"Stored post: {post.platform}/{post.post_id}")

            except asyncio.CancelledError:
                logger.info("Stopping queue processor")
                raise
            except Exception as e:
                logger.error(f"Error in process queue: {e}")
                errors_total.labels(component="processor", error_type="queue_error").inc()
                await asyncio.sleep(1)
