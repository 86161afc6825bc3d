"""Anonymous archive of recorded services: <prefix><year>/<YYYY-MM-DD>/podcasts/<file>."""
import re
from dataclasses import dataclass, field

from choir_portal.core.errors import BadRequest
from choir_portal.services.grants import AccessGrant, GrantService
from choir_portal.services.keys import AUDIO_EXTENSIONS, Category, validate_object_key
from choir_portal.services.listing import FileEntry, ListingService

_YEAR = re.compile(r"^\d{4}$")
_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class ArchiveView:
    year: str
    date: str
    dates: list[str] = field(default_factory=list)
    items: list[FileEntry] = field(default_factory=list)


class PublicArchiveService:
    def __init__(self, listing: ListingService, grants: GrantService, prefix: str) -> None:
        self._listing = listing
        self._grants = grants
        self._prefix = prefix if prefix.endswith("/") else prefix + "/"

    async def list_dates(self, year: str) -> list[str]:
        """Date folders of a year, newest first."""
        if not _YEAR.match(year or ""):
            raise BadRequest("Invalid year")
        year_prefix = f"{self._prefix}{year}/"
        view = await self._listing.list_folder(year_prefix)
        dates = [f[len(year_prefix):].rstrip("/") for f in view.folders]
        return sorted((d for d in dates if _DATE.match(d)), reverse=True)

    async def browse(self, year: str, date: str | None = None) -> ArchiveView:
        dates = await self.list_dates(year)
        if date:
            if not _DATE.match(date):
                raise BadRequest("Invalid date")
            selected = date
        else:
            selected = dates[0] if dates else ""
        if not selected:
            return ArchiveView(year=year, date="", dates=dates)
        # Recordings may sit in sub-folders of podcasts/ (one per part of the service)
        files = await self._listing.list_files_below(f"{self._prefix}{year}/{selected}/podcasts/")
        items = [f for f in files if f.category is Category.AUDIO]
        return ArchiveView(year=year, date=selected, dates=dates, items=items)

    async def grant_read(self, key: str) -> AccessGrant:
        """Read grant for archive audio only; the archive is public so no role is required."""
        validate_object_key(key)
        if not key.startswith(self._prefix) or not key.lower().endswith(AUDIO_EXTENSIONS):
            raise BadRequest("Invalid key")
        return await self._grants.issue_read(key)
