"""Blob transfer for the local backend: the targets of its signed GET/PUT URLs."""
import mimetypes

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import FileResponse

from choir_portal.core.security import verify_blob_token
from choir_portal.services.storage import LocalObjectStore, ObjectStore, get_object_store

router = APIRouter(prefix="/blobs", tags=["blobs"])


def _local_store(store: ObjectStore = Depends(get_object_store)) -> LocalObjectStore:
    if not isinstance(store, LocalObjectStore):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    return store


@router.get("/{key:path}")
async def download_blob(key: str, token: str, store: LocalObjectStore = Depends(_local_store)):
    if not verify_blob_token(token, "GET", key):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired token")
    path = store.path_for(key)
    if not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    media_type, _ = mimetypes.guess_type(path.name)
    return FileResponse(
        path,
        media_type=media_type or "application/octet-stream",
        headers={"Cache-Control": "private, no-store"},
    )


@router.put("/{key:path}", status_code=204)
async def upload_blob(key: str, token: str, request: Request, store: LocalObjectStore = Depends(_local_store)):
    if not verify_blob_token(token, "PUT", key):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired token")
    await store.write(key, await request.body())
    return None
