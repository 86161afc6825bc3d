"""S3 storage backend (AWS, R2, MinIO). Imported only when STORAGE_BACKEND=s3."""
from __future__ import annotations

import asyncio
import logging

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
    NoCredentialsError,
    PartialCredentialsError,
)

from choir_portal.core.errors import AccessDenied, Internal, LibraryError, NotFound, Transient
from choir_portal.services.storage.base import ListResult, ObjectStore, StorageObject

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})
_ACCESS_DENIED_CODES = frozenset({
    "403", "AccessDenied", "AllAccessDisabled", "InvalidAccessKeyId",
    "SignatureDoesNotMatch", "ExpiredToken", "InvalidToken",
})
_TRANSIENT_CODES = frozenset({
    "500", "502", "503", "504", "InternalError", "ServiceUnavailable",
    "SlowDown", "RequestTimeout", "RequestTimeTooSkewed", "Throttling",
})


def _translate(exc: Exception, op: str, key: str) -> LibraryError:
    """Map a botocore failure onto the gateway's tagged errors."""
    if isinstance(exc, ClientError):
        err = exc.response.get("Error", {}) if isinstance(exc.response, dict) else {}
        code = str(err.get("Code", ""))
        if code in _NOT_FOUND_CODES:
            return NotFound(f"Object not found: {key}")
        if code in _ACCESS_DENIED_CODES:
            return AccessDenied(f"Storage refused {op} on {key}")
        if code in _TRANSIENT_CODES:
            return Transient(f"Storage unavailable during {op}")
        return Internal(f"Storage error during {op}: {code or 'unknown'}")
    if isinstance(exc, (NoCredentialsError, PartialCredentialsError)):
        return AccessDenied("Storage credentials missing")
    if isinstance(exc, (BotoConnectionError, HTTPClientError)):
        return Transient(f"Storage unreachable during {op}")
    return Internal(f"Storage error during {op}")


class S3ObjectStore(ObjectStore):
    """S3 backend: boto3 calls run in a worker thread so each one is an await point."""

    def __init__(
        self,
        bucket: str,
        region: str = "auto",
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        force_path_style: bool = False,
        page_size: int = 1000,
        client=None,
    ) -> None:
        if not bucket:
            raise ValueError("S3 storage requires s3_bucket to be set")
        self._bucket = bucket
        self._page_size = page_size
        if client is None:
            s3_config = {"addressing_style": "path"} if force_path_style else {}
            client = boto3.client(
                "s3",
                region_name=region,
                endpoint_url=endpoint_url or None,
                aws_access_key_id=access_key_id or None,
                aws_secret_access_key=secret_access_key or None,
                config=Config(signature_version="s3v4", s3=s3_config),
            )
        self._client = client

    @classmethod
    def from_settings(cls, settings) -> "S3ObjectStore":
        return cls(
            bucket=settings.s3_bucket or "",
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            force_path_style=settings.s3_force_path_style,
            page_size=settings.s3_list_page_size,
        )

    async def _call(self, op: str, key: str, fn, **kwargs):
        try:
            return await asyncio.to_thread(fn, **kwargs)
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, op, key) from e

    async def list_one_prefix(self, prefix: str, delimiter: str | None = "/") -> ListResult:
        result = ListResult()
        seen_prefixes: set[str] = set()
        token: str | None = None
        pages = 0
        while True:
            params = {"Bucket": self._bucket, "MaxKeys": self._page_size}
            if prefix:
                params["Prefix"] = prefix
            if delimiter:
                params["Delimiter"] = delimiter
            if token:
                params["ContinuationToken"] = token
            resp = await self._call("list", prefix, self._client.list_objects_v2, **params)
            pages += 1
            for cp in resp.get("CommonPrefixes") or []:
                p = cp.get("Prefix")
                if p and p not in seen_prefixes:
                    seen_prefixes.add(p)
                    result.common_prefixes.append(p)
            for obj in resp.get("Contents") or []:
                if not obj.get("Key"):
                    continue
                result.objects.append(
                    StorageObject(
                        key=obj["Key"],
                        size=obj.get("Size") or 0,
                        last_modified=obj["LastModified"],
                    )
                )
            token = resp.get("NextContinuationToken") if resp.get("IsTruncated") else None
            if not token:
                break
        logger.debug("Listed %r in %d page(s): %d objects", prefix, pages, len(result.objects))
        return result

    async def presign_put(self, key: str, content_type: str, ttl_seconds: int) -> str:
        return await self._call(
            "presign_put",
            key,
            self._client.generate_presigned_url,
            ClientMethod="put_object",
            Params={"Bucket": self._bucket, "Key": key, "ContentType": content_type},
            ExpiresIn=ttl_seconds,
        )

    async def presign_get(self, key: str, ttl_seconds: int) -> str:
        return await self._call(
            "presign_get",
            key,
            self._client.generate_presigned_url,
            ClientMethod="get_object",
            Params={"Bucket": self._bucket, "Key": key},
            ExpiresIn=ttl_seconds,
        )

    async def copy(self, from_key: str, to_key: str) -> None:
        await self._call(
            "copy",
            from_key,
            self._client.copy_object,
            Bucket=self._bucket,
            Key=to_key,
            CopySource={"Bucket": self._bucket, "Key": from_key},
        )

    async def delete(self, key: str) -> None:
        try:
            await self._call("delete", key, self._client.delete_object, Bucket=self._bucket, Key=key)
        except NotFound:
            # Some S3-compatible stores answer 404 instead of S3's silent 204
            return

    async def exists(self, key: str) -> bool:
        try:
            await self._call("head", key, self._client.head_object, Bucket=self._bucket, Key=key)
        except NotFound:
            return False
        return True
