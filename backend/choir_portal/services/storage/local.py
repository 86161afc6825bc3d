"""Local (dev disk) storage: keys are files under a root directory; presigned URLs point at /api/blobs."""
from __future__ import annotations

import asyncio
import logging
import os
import shutil
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import quote

from choir_portal.core.errors import AccessDenied, Internal, LibraryError, NotFound
from choir_portal.core.security import create_blob_token
from choir_portal.services.storage.base import ListResult, ObjectStore, StorageObject

logger = logging.getLogger(__name__)


def _translate(exc: OSError, op: str, key: str) -> LibraryError:
    """Map a filesystem failure onto the gateway's tagged errors."""
    if isinstance(exc, FileNotFoundError):
        return NotFound(f"Object not found: {key}")
    if isinstance(exc, PermissionError):
        return AccessDenied(f"Storage refused {op} on {key}")
    return Internal(f"Storage error during {op}")


class LocalObjectStore(ObjectStore):
    """Dev disk storage with S3-like listing semantics (empty directories are never reported)."""

    def __init__(self, root: str | Path, base_url: str) -> None:
        self._root = Path(root).resolve()
        self._base_url = base_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings) -> "LocalObjectStore":
        return cls(settings.dev_assets_dir, settings.local_blob_base_url)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        """Map key to a path under root. Keys that would escape the root are refused."""
        if not key or key.startswith("/") or "\\" in key or "\x00" in key:
            raise AccessDenied(f"Key outside store: {key!r}")
        path = (self._root / key).resolve()
        if path != self._root and self._root not in path.parents:
            raise AccessDenied(f"Key outside store: {key!r}")
        return path

    def _key_for(self, path: Path) -> str:
        return path.relative_to(self._root).as_posix()

    async def _run(self, op: str, key: str, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except OSError as e:
            logger.warning("Local storage %s on %r failed: %s", op, key, e)
            raise _translate(e, op, key) from e

    async def list_one_prefix(self, prefix: str, delimiter: str | None = "/") -> ListResult:
        return await self._run("list", prefix, self._list, prefix, delimiter)

    def _list(self, prefix: str, delimiter: str | None) -> ListResult:
        # Walk only the deepest directory the prefix fully names
        base_dir = prefix.rsplit("/", 1)[0] if "/" in prefix else ""
        start = self.path_for(base_dir) if base_dir else self._root
        result = ListResult()
        if not start.is_dir():
            return result
        seen_prefixes: set[str] = set()
        for dirpath, dirnames, filenames in os.walk(start):
            dirnames.sort()
            for name in sorted(filenames):
                path = Path(dirpath) / name
                key = self._key_for(path)
                if not key.startswith(prefix):
                    continue
                rest = key[len(prefix):]
                if delimiter and delimiter in rest:
                    common = prefix + rest.split(delimiter, 1)[0] + delimiter
                    if common not in seen_prefixes:
                        seen_prefixes.add(common)
                        result.common_prefixes.append(common)
                    continue
                stat = path.stat()
                result.objects.append(
                    StorageObject(
                        key=key,
                        size=stat.st_size,
                        last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                    )
                )
        result.common_prefixes.sort()
        result.objects.sort(key=lambda o: o.key)
        return result

    def _blob_url(self, method: str, key: str, ttl_seconds: int) -> str:
        token = create_blob_token(method, key, ttl_seconds)
        return f"{self._base_url}/api/blobs/{quote(key)}?token={quote(token)}"

    async def presign_put(self, key: str, content_type: str, ttl_seconds: int) -> str:
        self.path_for(key)
        return self._blob_url("PUT", key, ttl_seconds)

    async def presign_get(self, key: str, ttl_seconds: int) -> str:
        self.path_for(key)
        return self._blob_url("GET", key, ttl_seconds)

    async def copy(self, from_key: str, to_key: str) -> None:
        src = self.path_for(from_key)
        dst = self.path_for(to_key)
        await self._run("copy", from_key, self._copy_file, src, dst, from_key)

    async def delete(self, key: str) -> None:
        path = self.path_for(key)
        await self._run("delete", key, self._unlink, path)

    async def exists(self, key: str) -> bool:
        path = self.path_for(key)
        return await self._run("head", key, path.is_file)

    async def write(self, key: str, data: bytes) -> None:
        """Store bytes at key (target of a signed PUT URL)."""
        path = self.path_for(key)
        await self._run("write", key, self._write_file, path, data)

    # -- internal helpers --

    @staticmethod
    def _copy_file(src: Path, dst: Path, from_key: str) -> None:
        if not src.is_file():
            raise NotFound(f"Object not found: {from_key}")
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dst)

    @staticmethod
    def _write_file(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def _unlink(self, path: Path) -> None:
        if path.is_dir():
            return
        try:
            path.unlink(missing_ok=True)
        except (IsADirectoryError, NotADirectoryError):
            # A folder, or a path through a file: no object has this key
            return
        # Prune directories left empty so the folder disappears, as it would in S3
        parent = path.parent
        while parent != self._root and self._root in parent.parents:
            try:
                parent.rmdir()
            except OSError:
                break
            parent = parent.parent
