"""Library files: folder listing, read/upload grants, rename, delete."""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from choir_portal.core.deps import (
    get_current_role,
    get_grant_service,
    get_listing_service,
    get_mutation_service,
    require_authenticated,
    require_csrf,
)
from choir_portal.core.errors import LibraryError
from choir_portal.services.grants import GrantService
from choir_portal.services.listing import FileEntry, ListingService
from choir_portal.services.mutations import MutationService
from choir_portal.api.schemas import (
    DeleteRequest,
    FileEntryOut,
    FolderListing,
    GrantResponse,
    OkResponse,
    ReadGrantRequest,
    RenameRequest,
    RenameResponse,
    WriteGrantRequest,
    WriteGrantResponse,
)

router = APIRouter(prefix="/files", tags=["files"])
logger = logging.getLogger(__name__)


def file_entry_out(entry: FileEntry) -> FileEntryOut:
    return FileEntryOut(
        key=entry.key,
        name=entry.name,
        display_name=entry.display_name,
        size=entry.size,
        last_modified=entry.last_modified,
        category=entry.category.value,
    )


@router.get("/list", response_model=FolderListing)
async def list_folder(
    prefix: str = "",
    _: str = Depends(require_authenticated),
    listing: ListingService = Depends(get_listing_service),
):
    try:
        view = await listing.list_folder(prefix)
    except LibraryError as e:
        # A broken folder must not break navigation: empty view plus the error
        logger.warning("Listing %r failed: %s", prefix, e.message)
        body = FolderListing(prefix=prefix, folders=[], items=[], error=e.message)
        return JSONResponse(status_code=e.status_code, content=body.model_dump(mode="json", by_alias=True))
    return FolderListing(
        prefix=view.prefix,
        folders=view.folders,
        items=[file_entry_out(f) for f in view.files],
    )


@router.post("/presign", response_model=GrantResponse, dependencies=[Depends(require_csrf)])
async def grant_read(
    body: ReadGrantRequest,
    role: str = Depends(get_current_role),
    grants: GrantService = Depends(get_grant_service),
):
    grant = await grants.grant_read(body.key, role, ttl_seconds=body.ttl_seconds)
    return GrantResponse(url=grant.url, expires_at=grant.expires_at, expires_in_seconds=grant.expires_in_seconds)


@router.post("/upload-url", response_model=WriteGrantResponse, dependencies=[Depends(require_csrf)])
async def grant_write(
    body: WriteGrantRequest,
    role: str = Depends(get_current_role),
    grants: GrantService = Depends(get_grant_service),
):
    grant = await grants.grant_write(
        body.category,
        body.folder_parts,
        role,
        body.filename,
        body.mime_type,
        ttl_seconds=body.ttl_seconds,
    )
    return WriteGrantResponse(
        url=grant.url,
        key=grant.key,
        expires_at=grant.expires_at,
        expires_in_seconds=grant.expires_in_seconds,
    )


@router.post("/rename", response_model=RenameResponse, dependencies=[Depends(require_csrf)])
async def rename_file(
    body: RenameRequest,
    role: str = Depends(get_current_role),
    mutations: MutationService = Depends(get_mutation_service),
):
    to_key = await mutations.rename(body.from_key, body.new_name, role)
    return RenameResponse(to_key=to_key)


@router.post("/delete", response_model=OkResponse, dependencies=[Depends(require_csrf)])
async def delete_file(
    body: DeleteRequest,
    role: str = Depends(get_current_role),
    mutations: MutationService = Depends(get_mutation_service),
):
    await mutations.remove(body.key, role)
    return OkResponse()
