"""Access grants: short-lived presigned URLs for reading and uploading library files.

Grants are stateless: issuing one only computes a signature, nothing is written to the
store until the client uses the URL. Read grants need any authenticated role, write
grants need admin. Upload keys are always derived here from a known category and the
key codec, never taken from the caller.
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from choir_portal.core.errors import BadRequest, Unauthorized
from choir_portal.core.metrics import record_grant
from choir_portal.core.security import ROLES
from choir_portal.services.keys import (
    CATEGORY_SEGMENT,
    Category,
    build_key,
    classify,
    sanitize_segment,
    segment_category,
    validate_object_key,
)
from choir_portal.services.storage.base import ObjectStore

logger = logging.getLogger(__name__)

MAX_READ_TTL_SECONDS = 3600
MAX_WRITE_TTL_SECONDS = 300


@dataclass(frozen=True)
class AccessGrant:
    url: str
    operation: str  # read | write
    expires_in_seconds: int
    expires_at: datetime
    key: str


def _parse_types(csv: str) -> frozenset[str]:
    return frozenset(s.strip().lower() for s in csv.split(",") if s.strip())


def bounded_ttl(requested: int | None, cap: int) -> int:
    """Caller-chosen TTL, capped. None means the cap itself."""
    if requested is None:
        return cap
    if requested <= 0:
        raise BadRequest("ttl_seconds must be positive")
    return min(int(requested), cap)


def require_reader(role: str) -> None:
    if role not in ROLES:
        raise Unauthorized(anonymous=True)


def require_admin(role: str) -> None:
    if role not in ROLES:
        raise Unauthorized(anonymous=True)
    if role != "admin":
        raise Unauthorized("Admin role required")


class GrantService:
    def __init__(
        self,
        store: ObjectStore,
        read_ttl_seconds: int = MAX_READ_TTL_SECONDS,
        write_ttl_seconds: int = MAX_WRITE_TTL_SECONDS,
        audio_content_types: str = "audio/mpeg",
        document_content_types: str = "application/pdf",
        clock=time.time,
    ) -> None:
        self._store = store
        self._read_cap = min(read_ttl_seconds, MAX_READ_TTL_SECONDS)
        self._write_cap = min(write_ttl_seconds, MAX_WRITE_TTL_SECONDS)
        self._content_types = {
            Category.AUDIO: _parse_types(audio_content_types),
            Category.DOCUMENT: _parse_types(document_content_types),
        }
        self._clock = clock

    @classmethod
    def from_settings(cls, store: ObjectStore, settings) -> "GrantService":
        return cls(
            store,
            read_ttl_seconds=settings.read_url_ttl_seconds,
            write_ttl_seconds=settings.upload_url_ttl_seconds,
            audio_content_types=settings.audio_content_types,
            document_content_types=settings.document_content_types,
        )

    def _grant(self, url: str, operation: str, ttl: int, key: str) -> AccessGrant:
        record_grant(operation)
        return AccessGrant(
            url=url,
            operation=operation,
            expires_in_seconds=ttl,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=ttl),
            key=key,
        )

    async def grant_read(self, key: str, role: str, ttl_seconds: int | None = None) -> AccessGrant:
        require_reader(role)
        return await self.issue_read(key, ttl_seconds)

    async def issue_read(self, key: str, ttl_seconds: int | None = None) -> AccessGrant:
        """Read grant without a role check, for callers that authorised the key themselves."""
        validate_object_key(key)
        if classify(key) is Category.UNKNOWN:
            raise BadRequest("Not a library file")
        ttl = bounded_ttl(ttl_seconds, self._read_cap)
        url = await self._store.presign_get(key, ttl)
        logger.info("Issued read grant for %s (%ss)", key, ttl)
        return self._grant(url, "read", ttl, key)

    def upload_folder(self, category: Category, folder_parts) -> list[str]:
        """Validated folder segments for an upload, ending in the category's folder."""
        segments: list[str] = []
        for raw in folder_parts or []:
            if not isinstance(raw, str):
                raise BadRequest("Folder parts must be strings")
            if raw.strip() in (".", ".."):
                raise BadRequest("Invalid folder path")
            segment = sanitize_segment(raw)
            if segment:
                segments.append(segment)
        if segments:
            trailing = segment_category(segments[-1])
            if trailing is category:
                return segments
            if trailing is not Category.UNKNOWN:
                raise BadRequest(f"Folder {segments[-1]!r} holds {trailing.value} files, not {category.value}")
        return [*segments, CATEGORY_SEGMENT[category]]

    async def grant_write(
        self,
        category: str,
        folder_parts,
        role: str,
        filename: str | None,
        content_type: str,
        ttl_seconds: int | None = None,
    ) -> AccessGrant:
        require_admin(role)
        try:
            cat = Category(category)
        except ValueError:
            raise BadRequest(f"Invalid category: {category}")
        if cat is Category.UNKNOWN:
            raise BadRequest(f"Invalid category: {category}")
        content_type = (content_type or "").strip().lower()
        if content_type not in self._content_types[cat]:
            raise BadRequest(f"Content type not allowed for {cat.value}: {content_type or 'missing'}")
        segments = self.upload_folder(cat, folder_parts)
        key = build_key(segments, int(self._clock() * 1000), filename)
        if classify(key) is not cat:
            raise BadRequest(f"File extension does not match category {cat.value}")
        ttl = bounded_ttl(ttl_seconds, self._write_cap)
        url = await self._store.presign_put(key, content_type, ttl)
        logger.info("Issued write grant for %s (%ss)", key, ttl)
        return self._grant(url, "write", ttl, key)
