"""Folder view over the flat store: merge prefix queries, surface sub-folders, classify files."""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime

from choir_portal.services.keys import Category, classify, display_name, leaf_name, normalize_prefix
from choir_portal.services.storage.base import ObjectStore, StorageObject

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileEntry:
    key: str
    name: str
    display_name: str
    size: int
    last_modified: datetime
    category: Category


@dataclass
class FolderView:
    prefix: str
    folders: list[str] = field(default_factory=list)
    files: list[FileEntry] = field(default_factory=list)


def merge_objects(*batches: list[StorageObject]) -> list[StorageObject]:
    """Union of objects de-duplicated by key; the first occurrence wins."""
    merged: dict[str, StorageObject] = {}
    for batch in batches:
        for obj in batch:
            merged.setdefault(obj.key, obj)
    return list(merged.values())


def _file_entry(obj: StorageObject) -> FileEntry | None:
    category = classify(obj.key)
    if category is Category.UNKNOWN:
        return None
    return FileEntry(
        key=obj.key,
        name=leaf_name(obj.key),
        display_name=display_name(obj.key),
        size=obj.size,
        last_modified=obj.last_modified,
        category=category,
    )


def _newest_first(files: list[FileEntry]) -> list[FileEntry]:
    files = sorted(files, key=lambda f: f.key)
    files.sort(key=lambda f: f.last_modified, reverse=True)
    return files


class ListingService:
    """Reconstructs one folder level from prefix queries. Holds no state between calls."""

    def __init__(self, store: ObjectStore, deep_scan: bool = False) -> None:
        self._store = store
        self._deep_scan = deep_scan

    async def list_folder(self, path: str | None) -> FolderView:
        prefix = normalize_prefix(path)
        queries = [self._store.list_one_prefix(prefix, delimiter="/")]
        if self._deep_scan:
            # Undelimited query: every key below prefix, for stores whose common prefixes are unreliable
            queries.append(self._store.list_one_prefix(prefix, delimiter=None))
        outcomes = await asyncio.gather(*queries, return_exceptions=True)
        # Both queries have finished here; surface the first failure
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        results = outcomes

        folders: set[str] = set()
        for result in results:
            for p in result.common_prefixes:
                if p.startswith(prefix) and p != prefix:
                    folders.add(p if p.endswith("/") else p + "/")

        files: list[FileEntry] = []
        for obj in merge_objects(*(r.objects for r in results)):
            if not obj.key.startswith(prefix):
                continue
            rest = obj.key[len(prefix):]
            if not rest:
                # Zero-byte marker object for the folder itself
                continue
            if "/" in rest:
                # Orphan sub-path: its first segment is a folder even if no common prefix said so
                folders.add(prefix + rest.split("/", 1)[0] + "/")
                continue
            entry = _file_entry(obj)
            if entry is not None:
                files.append(entry)

        view = FolderView(prefix=prefix, folders=sorted(folders), files=_newest_first(files))
        logger.debug("Folder %r: %d folders, %d files", prefix, len(view.folders), len(view.files))
        return view

    async def list_files_below(self, path: str | None) -> list[FileEntry]:
        """Every library file at any depth under path, newest first. One undelimited query."""
        prefix = normalize_prefix(path)
        result = await self._store.list_one_prefix(prefix, delimiter=None)
        files = []
        for obj in result.objects:
            if not obj.key.startswith(prefix) or obj.key == prefix:
                continue
            entry = _file_entry(obj)
            if entry is not None:
                files.append(entry)
        return _newest_first(files)
