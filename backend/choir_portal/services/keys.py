"""Key codec: map (folder parts, upload time, filename) to object keys and back, and classify keys.

Keys look like ``lessons/2025/Lesson 01/podcasts/1700000000000-intro.mp3``. The millisecond
timestamp prefix on the leaf keeps concurrent uploads of the same filename apart without a
round trip to the store; it is stripped again for display.
"""
import re
import unicodedata
from dataclasses import dataclass
from enum import Enum

from choir_portal.core.errors import BadRequest


class Category(str, Enum):
    AUDIO = "audio"
    DOCUMENT = "document"
    UNKNOWN = "unknown"


AUDIO_EXTENSIONS = (".mp3", ".m4a", ".aac")
DOCUMENT_EXTENSIONS = (".pdf",)

# Folder names used by older uploads to mark what a folder holds
AUDIO_SEGMENTS = frozenset({"podcasts", "podcast", "audio"})
DOCUMENT_SEGMENTS = frozenset({"pdfs", "pdf", "documents", "docs"})

# Folder a new upload of each category lands in
CATEGORY_SEGMENT = {
    Category.AUDIO: "podcasts",
    Category.DOCUMENT: "pdfs",
}

PLACEHOLDER_NAME = "untitled"
MAX_NAME_LENGTH = 200

# Path separators, control characters and the characters Windows refuses in filenames
_ILLEGAL_CHARS = re.compile(r'[/\\<>:"|?*\x00-\x1f\x7f]')
_WHITESPACE = re.compile(r"\s+")
_TIMESTAMP_LEAF = re.compile(r"^(\d{10,})-(.+)$")


@dataclass(frozen=True)
class KeyParts:
    folder_parts: tuple[str, ...]
    timestamp_ms: int | None
    filename: str


def _clean(raw: str | None) -> str:
    text = unicodedata.normalize("NFC", str(raw or ""))
    text = _WHITESPACE.sub(" ", text)
    text = _ILLEGAL_CHARS.sub("", text)
    text = _WHITESPACE.sub(" ", text).strip()
    return text[:MAX_NAME_LENGTH].rstrip()


def sanitize_filename(raw: str | None) -> str:
    """Safe leaf name. Never raises: unusable input becomes a placeholder name."""
    name = _clean(raw)
    if name in ("", ".", ".."):
        return PLACEHOLDER_NAME
    return name


def sanitize_segment(raw: str | None) -> str | None:
    """Safe folder segment, or None when nothing usable is left."""
    segment = _clean(raw)
    if segment in ("", ".", ".."):
        return None
    return segment


def build_key(folder_parts, timestamp_ms: int, raw_filename: str | None) -> str:
    """Join sanitized folder segments and a ``<timestamp_ms>-<name>`` leaf. Empty segments are dropped."""
    segments = [s for s in (sanitize_segment(p) for p in folder_parts) if s]
    leaf = f"{int(timestamp_ms)}-{sanitize_filename(raw_filename)}"
    return "/".join([*segments, leaf])


def decode_key(key: str) -> KeyParts:
    """Inverse of build_key. Keys without a timestamp leaf decode with timestamp_ms=None."""
    *folders, leaf = key.split("/")
    m = _TIMESTAMP_LEAF.match(leaf)
    if m:
        return KeyParts(tuple(folders), int(m.group(1)), m.group(2))
    return KeyParts(tuple(folders), None, leaf)


def leaf_name(key: str) -> str:
    return key.rstrip("/").split("/")[-1]


def display_name(key: str) -> str:
    """Last path segment without the upload timestamp. The stored key is untouched."""
    return decode_key(key.rstrip("/")).filename


def renamed_key(from_key: str, new_name: str | None) -> str:
    """Same folder as from_key, sanitized new leaf, no timestamp prefix."""
    folder = from_key.rsplit("/", 1)[0] if "/" in from_key else ""
    name = sanitize_filename(new_name)
    return f"{folder}/{name}" if folder else name


def segment_category(segment: str) -> Category:
    s = segment.lower()
    if s in AUDIO_SEGMENTS:
        return Category.AUDIO
    if s in DOCUMENT_SEGMENTS:
        return Category.DOCUMENT
    return Category.UNKNOWN


def classify(key: str) -> Category:
    """Extension first; otherwise the nearest folder segment that names a category."""
    if not key or key.endswith("/"):
        return Category.UNKNOWN
    lowered = key.lower()
    if lowered.endswith(AUDIO_EXTENSIONS):
        return Category.AUDIO
    if lowered.endswith(DOCUMENT_EXTENSIONS):
        return Category.DOCUMENT
    for segment in reversed(key.split("/")[:-1]):
        category = segment_category(segment)
        if category is not Category.UNKNOWN:
            return category
    return Category.UNKNOWN


def normalize_prefix(path: str | None) -> str:
    """Logical folder path -> list prefix ending in '/'. Empty path is the root prefix ''."""
    segments = [s for s in str(path or "").split("/") if s]
    if any(s in (".", "..") or "\x00" in s for s in segments):
        raise BadRequest("Invalid folder path")
    return "/".join(segments) + "/" if segments else ""


def validate_object_key(key: str | None) -> str:
    """Reject keys that cannot name a file: empty, folder-like, traversal segments."""
    if not key or not isinstance(key, str):
        raise BadRequest("Missing key")
    if key.endswith("/") or key.startswith("/"):
        raise BadRequest("Key must name a file")
    if any(s in ("", ".", "..") for s in key.split("/")):
        raise BadRequest("Invalid key")
    if "\x00" in key:
        raise BadRequest("Invalid key")
    return key
