"""Storage backend factory: local (dev disk) or S3. S3 backend is loaded only when STORAGE_BACKEND=s3."""
from functools import lru_cache

from choir_portal.core.config import get_settings
from choir_portal.services.storage.base import ListResult, ObjectStore, StorageObject
from choir_portal.services.storage.local import LocalObjectStore

__all__ = ["ListResult", "ObjectStore", "StorageObject", "LocalObjectStore", "get_object_store"]


@lru_cache
def get_object_store() -> ObjectStore:
    """Return the process-wide store built from settings. Avoids importing boto3 when backend is local."""
    settings = get_settings()
    if settings.storage_backend == "s3":
        from choir_portal.services.storage.s3 import S3ObjectStore
        return S3ObjectStore.from_settings(settings)
    return LocalObjectStore.from_settings(settings)
