"""Storage backends behind a common async interface."""
from typing import Optional

from hazardwatch.storage.base import NotFoundError, Storage, StorageError


def create_storage(backend: Optional[str] = None) -> Storage:
    """Build the storage backend named by ``backend`` or STORAGE_BACKEND."""
    from hazardwatch.common.config import settings

    backend = (backend or settings.STORAGE_BACKEND).lower()
    if backend == "memory":
        from hazardwatch.storage.memory import MemoryStorage
        return MemoryStorage()
    if backend == "elasticsearch":
        from hazardwatch.storage.es_storage import ElasticsearchStorage
        return ElasticsearchStorage()
    raise ValueError(f"Unknown storage backend: {backend}")


__all__ = ["Storage", "StorageError", "NotFoundError", "create_storage"]
