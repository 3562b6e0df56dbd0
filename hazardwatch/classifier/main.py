"""Main entry point for the social post ingestion worker."""
import argparse
import asyncio
import json

from hazardwatch.classifier.processor import SocialPostProcessor
from hazardwatch.classifier.text_classifier import HazardClassifier
from hazardwatch.common.config import settings
from hazardwatch.common.logger import setup_logger
from hazardwatch.common.redis_client import RedisClient
from hazardwatch.notifications.service import NotificationService
from hazardwatch.storage import create_storage

logger = setup_logger(__name__)


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description="Ocean hazard social post classifier")
    parser.add_argument("--queue", default=settings.INGEST_QUEUE)
    parser.add_argument("--text", help="Classify a single text and print the assessment")

    args = parser.parse_args()

    if args.text is not None:
        assessment = HazardClassifier().classify(args.text)
        print(json.dumps(assessment.model_dump(mode="json"), indent=2))
        return

    storage = create_storage()
    processor = SocialPostProcessor(
        storage,
        redis=RedisClient(),
        notifications=NotificationService(storage),
    )
    try:
        asyncio.run(processor.process_queue(args.queue))
    except KeyboardInterrupt:
        logger.info("Stopping classifier worker")


if __name__ == "__main__":
    main()
