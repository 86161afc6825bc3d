"""Public archive of recorded services: no login, audio only, read-only."""
from datetime import datetime

from fastapi import APIRouter, Depends

from choir_portal.core.deps import get_public_archive_service
from choir_portal.services.public_archive import PublicArchiveService
from choir_portal.api.files import file_entry_out
from choir_portal.api.schemas import ArchiveListing, GrantResponse, PublicPresignRequest

router = APIRouter(prefix="/public", tags=["public"])


@router.get("/archive", response_model=ArchiveListing)
async def browse_archive(
    year: str | None = None,
    date: str | None = None,
    archive: PublicArchiveService = Depends(get_public_archive_service),
):
    year = year or str(datetime.now().year)
    view = await archive.browse(year, date or None)
    return ArchiveListing(
        year=view.year,
        date=view.date,
        dates=view.dates,
        items=[file_entry_out(f) for f in view.items],
    )


@router.post("/presign", response_model=GrantResponse)
async def presign_archive_audio(
    body: PublicPresignRequest,
    archive: PublicArchiveService = Depends(get_public_archive_service),
):
    grant = await archive.grant_read(body.key)
    return GrantResponse(url=grant.url, expires_at=grant.expires_at, expires_in_seconds=grant.expires_in_seconds)
