"""
Python client for the choir library API: login by access code, list folders, upload through
signed URLs, rename, delete. Uploads retry the PUT with exponential backoff.
"""
import mimetypes
import time
from pathlib import Path

import httpx

AUDIO_SUFFIXES = (".mp3", ".m4a", ".aac")
DOCUMENT_SUFFIXES = (".pdf",)

# mimetypes has no entry for .m4a on some platforms
_CONTENT_TYPES = {".mp3": "audio/mpeg", ".m4a": "audio/mp4", ".aac": "audio/aac", ".pdf": "application/pdf"}


class LibraryClient:
    """Client for the portal's file library. Admin code required for uploads and mutations."""

    def __init__(self, base_url: str, code: str):
        self.base_url = base_url.rstrip("/")
        self.code = code
        self._csrf_token: str | None = None
        self._session: httpx.Client | None = None

    def _get_session(self) -> httpx.Client:
        if self._session is None:
            self._session = httpx.Client(
                base_url=self.base_url,
                timeout=60.0,
                follow_redirects=True,
            )
        return self._session

    def login(self) -> dict:
        """Login and store cookies + CSRF token. Returns { role, csrfToken }."""
        session = self._get_session()
        r = session.post("/api/auth/login", json={"code": self.code})
        r.raise_for_status()
        for name, value in r.cookies.items():
            session.cookies.set(name, value)
        data = r.json()
        self._csrf_token = data.get("csrfToken")
        return data

    def _headers(self) -> dict:
        h = {"Content-Type": "application/json"}
        if self._csrf_token:
            h["X-CSRF-Token"] = self._csrf_token
        return h

    def list_folder(self, path: str = "") -> dict:
        """Returns { prefix, folders, items, error }."""
        r = self._get_session().get("/api/files/list", params={"prefix": path})
        r.raise_for_status()
        return r.json()

    def read_url(self, key: str, ttl_seconds: int | None = None) -> str:
        body: dict = {"key": key}
        if ttl_seconds is not None:
            body["ttlSeconds"] = ttl_seconds
        r = self._get_session().post("/api/files/presign", json=body, headers=self._headers())
        r.raise_for_status()
        return r.json()["url"]

    def upload(
        self,
        local_file_paths: list[str | Path],
        category: str | None = None,
        folder_parts: list[str] | None = None,
    ) -> dict[str, str]:
        """
        Upload each file into folder_parts. Returns mapping filename -> stored key.
        category: "audio" | "document" applied to all if set; else guessed from extension.
        """
        path_list = [Path(p) for p in local_file_paths]
        for p in path_list:
            if not p.is_file():
                raise FileNotFoundError(p)
        return {p.name: self.upload_file(p, category, folder_parts) for p in path_list}

    def upload_file(self, path: Path, category: str | None = None, folder_parts: list[str] | None = None) -> str:
        """Request an upload grant for one file and PUT it. Returns the stored key."""
        content_type = _guess_content_type(path)
        category = category or guess_category(path)
        if category is None:
            raise ValueError(f"Cannot tell whether {path.name} is audio or a document")
        r = self._get_session().post(
            "/api/files/upload-url",
            json={
                "category": category,
                "folderParts": list(folder_parts or []),
                "filename": path.name,
                "mimeType": content_type,
            },
            headers=self._headers(),
        )
        r.raise_for_status()
        grant = r.json()
        self._put_file_with_retry(grant["url"], path, content_type=content_type)
        return grant["key"]

    def _put_file_with_retry(
        self,
        upload_url: str,
        path: Path,
        content_type: str,
        max_retries: int = 5,
    ) -> None:
        body = path.read_bytes()
        for attempt in range(max_retries):
            try:
                # Signed URLs are absolute; a fresh request keeps session cookies off the object store
                r = httpx.put(upload_url, content=body, headers={"Content-Type": content_type}, timeout=300.0)
                r.raise_for_status()
                return
            except httpx.HTTPStatusError as e:
                # A 4xx means the grant itself is bad (expired, wrong type); retrying cannot help
                if e.response.status_code < 500 or attempt == max_retries - 1:
                    raise
            except httpx.TransportError:
                if attempt == max_retries - 1:
                    raise
            backoff = (2**attempt) + (time.time() % 1)  # exponential backoff + jitter
            time.sleep(backoff)

    def rename(self, key: str, new_name: str) -> str:
        """Returns the new key."""
        r = self._get_session().post(
            "/api/files/rename",
            json={"fromKey": key, "newName": new_name},
            headers=self._headers(),
        )
        r.raise_for_status()
        return r.json()["toKey"]

    def delete(self, key: str) -> None:
        r = self._get_session().post("/api/files/delete", json={"key": key}, headers=self._headers())
        r.raise_for_status()

    def close(self) -> None:
        if self._session:
            self._session.close()
            self._session = None

    def __enter__(self) -> "LibraryClient":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def guess_category(path: Path) -> str | None:
    suffix = path.suffix.lower()
    if suffix in AUDIO_SUFFIXES:
        return "audio"
    if suffix in DOCUMENT_SUFFIXES:
        return "document"
    return None


def _guess_content_type(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix in _CONTENT_TYPES:
        return _CONTENT_TYPES[suffix]
    content_type, _ = mimetypes.guess_type(str(path))
    return content_type or "application/octet-stream"
