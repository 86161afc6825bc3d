"""Admin mutations on the flat store: rename (copy, then delete) and delete."""
import logging

from choir_portal.core.errors import (
    AccessDenied,
    BadRequest,
    Conflict,
    Internal,
    NotFound,
    Transient,
)
from choir_portal.core.metrics import record_mutation
from choir_portal.services.grants import require_admin
from choir_portal.services.keys import renamed_key, validate_object_key
from choir_portal.services.storage.base import ObjectStore

logger = logging.getLogger(__name__)

_STORE_FAILURES = (AccessDenied, Transient, Internal)


class MutationService:
    def __init__(self, store: ObjectStore) -> None:
        self._store = store

    async def rename(self, from_key: str, new_name: str, role: str) -> str:
        """Give from_key a new leaf name in the same folder; returns the new key.

        The existence check and the copy are not atomic: a concurrent upload or rename to
        the same destination between the two can be overwritten. The source is deleted only
        after the copy succeeded, so a failure part way leaves both keys in place.
        """
        require_admin(role)
        validate_object_key(from_key)
        if not new_name or not str(new_name).strip():
            raise BadRequest("Missing new name")
        to_key = renamed_key(from_key, new_name)
        if to_key == from_key:
            return to_key

        try:
            if await self._store.exists(to_key):
                record_mutation("rename", "conflict")
                raise Conflict("A file with this name already exists in this folder.")
            await self._store.copy(from_key, to_key)
        except NotFound:
            record_mutation("rename", "failure")
            raise
        except _STORE_FAILURES as e:
            record_mutation("rename", "failure")
            logger.exception("Rename %s -> %s failed before copy completed", from_key, to_key)
            raise Internal(f"Rename failed: {e.message}") from e

        try:
            await self._store.delete(from_key)
        except (NotFound, *_STORE_FAILURES) as e:
            record_mutation("rename", "failure")
            logger.exception("Rename %s -> %s copied but source was not removed", from_key, to_key)
            raise Internal(
                f"Copied to {to_key} but could not remove {from_key}; both files now exist"
            ) from e

        record_mutation("rename", "success")
        logger.info("Renamed %s -> %s", from_key, to_key)
        return to_key

    async def remove(self, key: str, role: str) -> None:
        require_admin(role)
        validate_object_key(key)
        try:
            await self._store.delete(key)
        except (NotFound, *_STORE_FAILURES) as e:
            record_mutation("delete", "failure")
            logger.exception("Delete %s failed", key)
            raise Internal(f"Delete failed: {e.message}") from e
        record_mutation("delete", "success")
        logger.info("Deleted %s", key)
