"""Setup Elasticsearch: install the index templates for every entity."""
import json
import sys
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from hazardwatch.common.config import settings
from hazardwatch.common.es_client import ESClient
from hazardwatch.common.logger import setup_logger

logger = setup_logger(__name__)

TEMPLATES = {
    "incidents": "es_incidents_template.json",
    "reports": "es_reports_template.json",
    "social-posts": "es_social_posts_template.json",
    "notifications": "es_notifications_template.json",
}


def main():
    """Setup Elasticsearch index templates."""
    es = ESClient()

    # Check health
    if not es.health_check():
        logger.error("Elasticsearch is not healthy")
        sys.exit(1)

    config_dir = Path(__file__).parent.parent / "config"

    failed = 0
    for entity, filename in TEMPLATES.items():
        with open(config_dir / filename, "r") as f:
            template = json.load(f)
        # Patterns in the files assume the default prefix
        template["index_patterns"] = [f"{es.index_name(entity)}*"]
        if not es.create_index_template(f"{settings.ES_INDEX_PREFIX}-{entity}-template", template):
            failed += 1

    if failed:
        logger.error(f"Elasticsearch setup finished with {failed} failed templates")
        sys.exit(1)

    logger.info("Elasticsearch setup completed")


if __name__ == "__main__":
    main()
