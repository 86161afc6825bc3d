"""Object store gateway interface: paginated prefix listing, presigned put/get, copy, delete, existence probe.

Implementations: local (dev disk) or S3. Every method is a coroutine and raises only the
tagged errors from ``choir_portal.core.errors`` (NotFound, AccessDenied, Transient, Internal).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class StorageObject:
    """One physical entry in the store. The key is its only identity."""

    key: str
    size: int
    last_modified: datetime


@dataclass
class ListResult:
    common_prefixes: list[str] = field(default_factory=list)
    objects: list[StorageObject] = field(default_factory=list)


class ObjectStore(ABC):
    """Flat key/value object store. Folders exist only as key prefixes."""

    @abstractmethod
    async def list_one_prefix(self, prefix: str, delimiter: str | None = "/") -> ListResult:
        """List everything under prefix, following continuation tokens until exhausted.

        With a delimiter, keys that continue past the next delimiter are grouped into
        common_prefixes instead of being returned as objects.
        """
        ...

    @abstractmethod
    async def presign_put(self, key: str, content_type: str, ttl_seconds: int) -> str:
        """Return a URL that allows uploading an object to key (PUT)."""
        ...

    @abstractmethod
    async def presign_get(self, key: str, ttl_seconds: int) -> str:
        """Return a URL that allows downloading the object at key."""
        ...

    @abstractmethod
    async def copy(self, from_key: str, to_key: str) -> None:
        """Server-side copy. Raise NotFound if from_key is absent."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete key. Deleting a missing key is not an error."""
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Metadata-only probe. Missing => False; any other failure is raised."""
        ...
