"""Storage backends: local behaviour on disk and S3 path with mocks (no real AWS)."""
from datetime import datetime, timezone
from unittest.mock import MagicMock
from urllib.parse import parse_qs, unquote, urlparse

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, NoCredentialsError

from choir_portal.core.config import get_settings
from choir_portal.core.errors import AccessDenied, Internal, NotFound, Transient
from choir_portal.core.security import verify_blob_token
from choir_portal.services.storage import LocalObjectStore, get_object_store
from choir_portal.services.storage.s3 import S3ObjectStore

from conftest import put_object

WHEN = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _client_error(code: str, op: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, op)


def _s3(client: MagicMock, **kwargs) -> S3ObjectStore:
    return S3ObjectStore(bucket="test-bucket", client=client, **kwargs)


# ----- Local backend -----


def test_get_object_store_returns_local_by_default(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    get_settings.cache_clear()
    get_object_store.cache_clear()
    try:
        assert isinstance(get_object_store(), LocalObjectStore)
    finally:
        get_settings.cache_clear()
        get_object_store.cache_clear()


@pytest.mark.asyncio
async def test_local_list_groups_by_delimiter(store):
    put_object(store, "lessons/a.pdf")
    put_object(store, "lessons/2025/b.mp3")
    put_object(store, "lessons/2025/deep/c.mp3")
    put_object(store, "other/d.pdf")

    result = await store.list_one_prefix("lessons/")
    assert result.common_prefixes == ["lessons/2025/"]
    assert [o.key for o in result.objects] == ["lessons/a.pdf"]

    flat = await store.list_one_prefix("lessons/", delimiter=None)
    assert [o.key for o in flat.objects] == [
        "lessons/2025/b.mp3",
        "lessons/2025/deep/c.mp3",
        "lessons/a.pdf",
    ]


@pytest.mark.asyncio
async def test_local_list_reports_size_and_mtime(store):
    put_object(store, "pdfs/a.pdf", b"x" * 42, mtime=1700000000)
    obj = (await store.list_one_prefix("pdfs/")).objects[0]
    assert obj.size == 42
    assert obj.last_modified == datetime.fromtimestamp(1700000000, tz=timezone.utc)


@pytest.mark.asyncio
async def test_local_list_ignores_empty_directories(store):
    (store.root / "empty" / "nested").mkdir(parents=True)
    result = await store.list_one_prefix("")
    assert result.common_prefixes == []
    assert result.objects == []


@pytest.mark.asyncio
async def test_local_list_missing_prefix_is_empty(store):
    result = await store.list_one_prefix("nothing/here/")
    assert result.common_prefixes == [] and result.objects == []


@pytest.mark.asyncio
async def test_local_copy_missing_source_raises_not_found(store):
    with pytest.raises(NotFound):
        await store.copy("pdfs/missing.pdf", "pdfs/copy.pdf")


@pytest.mark.asyncio
async def test_local_copy_then_exists(store):
    put_object(store, "pdfs/a.pdf", b"abc")
    await store.copy("pdfs/a.pdf", "pdfs/b/c.pdf")
    assert await store.exists("pdfs/a.pdf")
    assert await store.exists("pdfs/b/c.pdf")
    assert store.path_for("pdfs/b/c.pdf").read_bytes() == b"abc"


@pytest.mark.asyncio
async def test_local_delete_is_idempotent_and_prunes_folders(store):
    put_object(store, "a/b/c.pdf")
    await store.delete("a/b/c.pdf")
    await store.delete("a/b/c.pdf")
    assert not await store.exists("a/b/c.pdf")
    assert not (store.root / "a").exists()
    assert store.root.exists()


@pytest.mark.asyncio
async def test_local_delete_of_folder_key_is_a_no_op(store):
    put_object(store, "lessons/2025/podcasts/1700000000000-a.mp3")
    await store.delete("lessons")
    await store.delete("lessons/2025/podcasts/1700000000000-a.mp3/x.mp3")
    assert await store.exists("lessons/2025/podcasts/1700000000000-a.mp3")


@pytest.mark.asyncio
async def test_local_write_onto_folder_raises_tagged_error(store):
    put_object(store, "lessons/a.mp3")
    with pytest.raises(Internal):
        await store.write("lessons", b"x")


@pytest.mark.asyncio
async def test_local_permission_error_is_access_denied(store, monkeypatch):
    put_object(store, "pdfs/a.pdf")

    def refuse(src, dst):
        raise PermissionError(13, "Permission denied", str(dst))

    monkeypatch.setattr("choir_portal.services.storage.local.shutil.copyfile", refuse)
    with pytest.raises(AccessDenied):
        await store.copy("pdfs/a.pdf", "pdfs/b.pdf")


@pytest.mark.asyncio
async def test_local_refuses_keys_outside_root(store):
    with pytest.raises(AccessDenied):
        await store.exists("../outside.pdf")
    with pytest.raises(AccessDenied):
        await store.presign_get("/etc/passwd", 60)


@pytest.mark.asyncio
async def test_local_presigned_urls_carry_bound_tokens(store):
    key = "lessons/Μάθημα 1/podcasts/1700000000000-a.mp3"
    get_url = await store.presign_get(key, 300)
    put_url = await store.presign_put(key, "audio/mpeg", 300)

    for url, method in ((get_url, "GET"), (put_url, "PUT")):
        parsed = urlparse(url)
        assert url.startswith("http://test/api/blobs/")
        assert unquote(parsed.path) == f"/api/blobs/{key}"
        token = parse_qs(parsed.query)["token"][0]
        assert verify_blob_token(token, method, key)
        assert not verify_blob_token(token, method, key + "x")


# ----- S3 backend (mocked client) -----


def test_s3_storage_requires_bucket():
    with pytest.raises(ValueError, match="s3_bucket"):
        S3ObjectStore(bucket="", client=MagicMock())


@pytest.mark.asyncio
async def test_s3_list_follows_continuation_tokens():
    client = MagicMock()
    client.list_objects_v2.side_effect = [
        {
            "IsTruncated": True,
            "NextContinuationToken": "t1",
            "CommonPrefixes": [{"Prefix": "lessons/2024/"}],
            "Contents": [{"Key": "lessons/a.pdf", "Size": 1, "LastModified": WHEN}],
        },
        {
            "IsTruncated": True,
            "NextContinuationToken": "t2",
            "CommonPrefixes": [{"Prefix": "lessons/2024/"}, {"Prefix": "lessons/2025/"}],
            "Contents": [{"Key": "lessons/b.pdf", "Size": 2, "LastModified": WHEN}],
        },
        {
            "IsTruncated": False,
            "Contents": [{"Key": "lessons/c.mp3", "Size": 3, "LastModified": WHEN}],
        },
    ]
    store = _s3(client, page_size=1)

    result = await store.list_one_prefix("lessons/")

    assert [o.key for o in result.objects] == ["lessons/a.pdf", "lessons/b.pdf", "lessons/c.mp3"]
    assert result.common_prefixes == ["lessons/2024/", "lessons/2025/"]
    calls = client.list_objects_v2.call_args_list
    assert len(calls) == 3
    assert "ContinuationToken" not in calls[0].kwargs
    assert calls[1].kwargs["ContinuationToken"] == "t1"
    assert calls[2].kwargs["ContinuationToken"] == "t2"
    assert calls[0].kwargs["Delimiter"] == "/"
    assert calls[0].kwargs["MaxKeys"] == 1


@pytest.mark.asyncio
async def test_s3_list_root_without_delimiter_omits_params():
    client = MagicMock()
    client.list_objects_v2.return_value = {"IsTruncated": False}
    await _s3(client).list_one_prefix("", delimiter=None)
    kwargs = client.list_objects_v2.call_args.kwargs
    assert "Prefix" not in kwargs and "Delimiter" not in kwargs


@pytest.mark.asyncio
async def test_s3_presigned_put_get_mocked():
    client = MagicMock()

    def _presigned(ClientMethod, Params, ExpiresIn):
        return f"https://mock-s3/{ClientMethod}?key={Params['Key']}&ttl={ExpiresIn}"

    client.generate_presigned_url.side_effect = _presigned
    store = _s3(client)

    put_url = await store.presign_put("pdfs/1-a.pdf", "application/pdf", 300)
    assert put_url == "https://mock-s3/put_object?key=pdfs/1-a.pdf&ttl=300"
    assert client.generate_presigned_url.call_args.kwargs["Params"]["ContentType"] == "application/pdf"
    get_url = await store.presign_get("pdfs/1-a.pdf", 60)
    assert get_url == "https://mock-s3/get_object?key=pdfs/1-a.pdf&ttl=60"


@pytest.mark.asyncio
async def test_s3_exists_treats_404_as_false():
    client = MagicMock()
    client.head_object.side_effect = _client_error("404")
    assert await _s3(client).exists("missing/key.pdf") is False


@pytest.mark.asyncio
async def test_s3_exists_reraises_other_errors_tagged():
    client = MagicMock()
    client.head_object.side_effect = _client_error("403")
    with pytest.raises(AccessDenied):
        await _s3(client).exists("pdfs/a.pdf")

    client.head_object.side_effect = EndpointConnectionError(endpoint_url="https://s3")
    with pytest.raises(Transient):
        await _s3(client).exists("pdfs/a.pdf")


@pytest.mark.asyncio
async def test_s3_copy_missing_source_raises_not_found():
    client = MagicMock()
    client.copy_object.side_effect = _client_error("NoSuchKey", "CopyObject")
    with pytest.raises(NotFound):
        await _s3(client).copy("pdfs/a.pdf", "pdfs/b.pdf")


@pytest.mark.asyncio
async def test_s3_copy_uses_structured_copy_source():
    client = MagicMock()
    await _s3(client).copy("Ακολουθίες/a b.mp3", "Ακολουθίες/c.mp3")
    kwargs = client.copy_object.call_args.kwargs
    assert kwargs["CopySource"] == {"Bucket": "test-bucket", "Key": "Ακολουθίες/a b.mp3"}
    assert kwargs["Key"] == "Ακολουθίες/c.mp3"


@pytest.mark.asyncio
async def test_s3_delete_ignores_not_found():
    client = MagicMock()
    client.delete_object.side_effect = _client_error("NoSuchKey", "DeleteObject")
    await _s3(client).delete("pdfs/gone.pdf")


@pytest.mark.asyncio
async def test_s3_errors_are_tagged():
    client = MagicMock()
    store = _s3(client)

    client.delete_object.side_effect = _client_error("SlowDown", "DeleteObject")
    with pytest.raises(Transient):
        await store.delete("pdfs/a.pdf")

    client.delete_object.side_effect = _client_error("InvalidBucketName", "DeleteObject")
    with pytest.raises(Internal):
        await store.delete("pdfs/a.pdf")

    client.generate_presigned_url.side_effect = NoCredentialsError()
    with pytest.raises(AccessDenied):
        await store.presign_get("pdfs/a.pdf", 60)
