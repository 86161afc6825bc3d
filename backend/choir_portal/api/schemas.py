"""Pydantic request/response schemas for the library API."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _config_forbid(**kwargs):
    return ConfigDict(extra="forbid", **kwargs)


# Responses go out in camelCase (toKey, lastModified), like the requests come in
def _config_out():
    return _config_forbid(alias_generator=to_camel, populate_by_name=True, serialize_by_alias=True)


# ----- Auth -----
class LoginRequest(BaseModel):
    model_config = _config_forbid()
    code: str


class SessionInfo(BaseModel):
    model_config = _config_out()
    role: str


class LoginResponse(BaseModel):
    model_config = _config_out()
    role: str
    csrf_token: str


# ----- Listing -----
class FileEntryOut(BaseModel):
    model_config = _config_out()
    key: str
    name: str
    display_name: str
    size: int
    last_modified: datetime
    category: str


class FolderListing(BaseModel):
    model_config = _config_out()
    prefix: str
    folders: list[str]
    items: list[FileEntryOut]
    error: str | None = None


# ----- Grants -----
class ReadGrantRequest(BaseModel):
    model_config = _config_forbid(populate_by_name=True)
    key: str
    ttl_seconds: int | None = Field(default=None, alias="ttlSeconds")


class WriteGrantRequest(BaseModel):
    model_config = _config_forbid(populate_by_name=True)
    category: str  # audio | document
    folder_parts: list[str] = Field(default_factory=list, alias="folderParts")
    filename: str
    mime_type: str = Field(alias="mimeType")
    ttl_seconds: int | None = Field(default=None, alias="ttlSeconds")


class GrantResponse(BaseModel):
    model_config = _config_out()
    url: str
    expires_at: datetime
    expires_in_seconds: int


class WriteGrantResponse(GrantResponse):
    key: str


# ----- Mutations -----
class RenameRequest(BaseModel):
    model_config = _config_forbid(populate_by_name=True)
    from_key: str = Field(alias="fromKey")
    new_name: str = Field(alias="newName")


class RenameResponse(BaseModel):
    model_config = _config_out()
    ok: bool = True
    to_key: str


class DeleteRequest(BaseModel):
    model_config = _config_forbid()
    key: str


class OkResponse(BaseModel):
    model_config = _config_out()
    ok: bool = True


# ----- Public archive -----
class ArchiveListing(BaseModel):
    model_config = _config_out()
    year: str
    date: str
    dates: list[str]
    items: list[FileEntryOut]


class PublicPresignRequest(BaseModel):
    model_config = _config_forbid()
    key: str


class ErrorResponse(BaseModel):
    model_config = _config_out()
    error: str
