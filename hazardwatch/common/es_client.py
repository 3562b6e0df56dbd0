"""Elasticsearch client wrapper."""
from typing import List, Dict, Any, Optional
from elasticsearch import Elasticsearch, NotFoundError as ESNotFoundError
from hazardwatch.common.config import settings
from hazardwatch.common.logger import setup_logger
from hazardwatch.common.metrics import errors_total
from hazardwatch.storage.base import NotFoundError, StorageError

logger = setup_logger(__name__)


class ESClient:
    """Elasticsearch client wrapper."""

    def __init__(self, client: Optional[Elasticsearch] = None):
        """Initialize ES client."""
        if client is None:
            scheme = "https" if settings.ES_USE_SSL else "http"
            es_config = {
                "hosts": [f"{scheme}://{settings.ES_HOST}:{settings.ES_PORT}"],
                "verify_certs": False,
            }

            if settings.ES_USERNAME and settings.ES_PASSWORD:
                es_config["basic_auth"] = (settings.ES_USERNAME, settings.ES_PASSWORD)

            client = Elasticsearch(**es_config)
            logger.info(f"Connected to Elasticsearch at {settings.ES_HOST}:{settings.ES_PORT}")

        self.client = client

    def index_name(self, entity: str) -> str:
        return f"{settings.ES_INDEX_PREFIX}-{entity}"

    def create_index_template(self, template_name: str, template_body: Dict[str, Any]) -> bool:
        """Create or update an index template."""
        try:
            self.client.indices.put_index_template(name=template_name, **template_body)
            logger.info(f"Created index template: {template_name}")
            return True
        except Exception as e:
            logger.error(f"Failed to create index template: {e}")
            errors_total.labels(component="es_client", error_type="template_creation").inc()
            return False

    def index_document(self, index: str, doc_id: str, doc: Dict[str, Any]) -> None:
        """Write a document, refreshing so it is visible to the next search."""
        try:
            self.client.index(index=index, id=doc_id, document=doc, refresh="wait_for")
        except Exception as e:
            logger.error(f"Failed to index document {doc_id} into {index}: {e}")
            errors_total.labels(component="es_client", error_type="index").inc()
            raise StorageError(f"Failed to index document {doc_id}") from e

    def get_document(self, index: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a document by id, None when it does not exist."""
        try:
            response = self.client.get(index=index, id=doc_id)
            return response["_source"]
        except ESNotFoundError:
            return None
        except Exception as e:
            logger.error(f"Failed to get document {doc_id} from {index}: {e}")
            errors_total.labels(component="es_client", error_type="get").inc()
            raise StorageError(f"Failed to get document {doc_id}") from e

    def update_document(self, index: str, doc_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Partially update a document and return its new source."""
        try:
            response = self.client.update(
                index=index,
                id=doc_id,
                doc=fields,
                refresh="wait_for",
                source=True,
            )
            return response["get"]["_source"]
        except ESNotFoundError as e:
            raise NotFoundError(f"Document {doc_id} not found in {index}") from e
        except Exception as e:
            logger.error(f"Failed to update document {doc_id} in {index}: {e}")
            errors_total.labels(component="es_client", error_type="update").inc()
            raise StorageError(f"Failed to update document {doc_id}") from e

    def search(
        self,
        query: Dict[str, Any],
        index_pattern: str,
        size: int = 100,
        from_: int = 0,
        sort: Optional[List[Dict[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """Search documents and return their sources."""
        try:
            response = self.client.search(
                index=index_pattern,
                query=query,
                size=size,
                from_=from_,
                sort=sort,
                ignore_unavailable=True,
            )
            return [hit["_source"] for hit in response["hits"]["hits"]]
        except Exception as e:
            logger.error(f"Search failed: {e}")
            errors_total.labels(component="es_client", error_type="search").inc()
            raise StorageError("Search failed") from e

    def count(self, query: Dict[str, Any], index_pattern: str) -> int:
        """Count documents matching a query."""
        try:
            response = self.client.count(index=index_pattern, query=query, ignore_unavailable=True)
            return int(response["count"])
        except Exception as e:
            logger.error(f"Count failed: {e}")
            errors_total.labels(component="es_client", error_type="count").inc()
            raise StorageError("Count failed") from e

    def health_check(self) -> bool:
        """Check ES cluster health."""
        try:
            health = self.client.cluster.health()
            return health["status"] in ["green", "yellow"]
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False
