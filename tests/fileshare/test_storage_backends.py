"""存储后端测试：本地文件系统与 S3（botocore Stubber）。"""

import io

import boto3
import pytest
from botocore.response import StreamingBody
from botocore.stub import Stubber

from app.packages.fileshare.core.config import get_settings
from app.packages.fileshare.core.exceptions import BlobNotFoundError, StorageError
from app.packages.fileshare.services.storage_backends import (
    LocalBlobStore,
    S3BlobStore,
    _iter_stream,
    build_blob_store,
)


# ----------------------------
# LOCAL
# ----------------------------
def test_local_round_trip_and_delete(tmp_path):
    store = LocalBlobStore(tmp_path)
    store.put("uploads/a.png", b"abc")

    assert b"".join(store.get("uploads/a.png")) == b"abc"
    assert store.locate("uploads/a.png") == str((tmp_path / "uploads" / "a.png").resolve())

    store.delete("uploads/a.png")
    with pytest.raises(BlobNotFoundError):
        store.get("uploads/a.png")
    with pytest.raises(BlobNotFoundError):
        store.delete("uploads/a.png")


def test_stream_reads_in_chunks_and_closes(tmp_path):
    (tmp_path / "big.bin").write_bytes(b"x" * 10)

    handle = open(tmp_path / "big.bin", "rb")
    assert list(_iter_stream(handle, 4)) == [b"xxxx", b"xxxx", b"xx"]
    assert handle.closed


@pytest.mark.parametrize("key", ["../escape.txt", "uploads/../../escape.txt", "", "   "])
def test_local_rejects_keys_outside_root(tmp_path, key):
    store = LocalBlobStore(tmp_path / "root")
    with pytest.raises(StorageError) as exc_info:
        store.put(key, b"data")
    assert exc_info.value.status_code == 400


def test_build_blob_store_from_settings(tmp_path):
    settings = get_settings().model_copy(update={"storage_type": "local", "storage_local_root": str(tmp_path)})
    assert isinstance(build_blob_store(settings), LocalBlobStore)

    with pytest.raises(StorageError):
        build_blob_store(settings.model_copy(update={"storage_type": "S3", "storage_s3_bucket": None}))
    with pytest.raises(StorageError):
        build_blob_store(settings.model_copy(update={"storage_type": "FTP"}))


# ----------------------------
# S3
# ----------------------------
@pytest.fixture()
def s3_client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


def _s3_store(client) -> S3BlobStore:
    return S3BlobStore(
        bucket="share-bucket",
        region="us-east-1",
        access_key_id="testing",
        secret_access_key="testing",
        prefix="/tenant/",
        client=client,
    )


def test_s3_put_and_get(s3_client):
    store = _s3_store(s3_client)
    with Stubber(s3_client) as stubber:
        stubber.add_response(
            "put_object",
            {},
            {"Bucket": "share-bucket", "Key": "tenant/uploads/a.png", "Body": b"data", "ContentType": "image/png"},
        )
        stubber.add_response(
            "get_object",
            {"Body": StreamingBody(io.BytesIO(b"data"), 4)},
            {"Bucket": "share-bucket", "Key": "tenant/uploads/a.png"},
        )

        store.put("uploads/a.png", b"data", content_type="image/png")
        assert b"".join(store.get("uploads/a.png")) == b"data"
        stubber.assert_no_pending_responses()


def test_s3_missing_object_maps_to_blob_not_found(s3_client):
    store = _s3_store(s3_client)
    with Stubber(s3_client) as stubber:
        stubber.add_client_error("get_object", service_error_code="NoSuchKey", http_status_code=404)
        stubber.add_client_error("head_object", service_error_code="404", http_status_code=404)

        with pytest.raises(BlobNotFoundError):
            store.get("uploads/missing.png")
        with pytest.raises(BlobNotFoundError):
            store.delete("uploads/missing.png")


def test_s3_delete_existing_object(s3_client):
    store = _s3_store(s3_client)
    params = {"Bucket": "share-bucket", "Key": "tenant/uploads/a.png"}
    with Stubber(s3_client) as stubber:
        stubber.add_response("head_object", {}, params)
        stubber.add_response("delete_object", {}, params)

        store.delete("uploads/a.png")
        stubber.assert_no_pending_responses()


def test_s3_failures_map_to_storage_error(s3_client):
    store = _s3_store(s3_client)
    with Stubber(s3_client) as stubber:
        stubber.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
        stubber.add_client_error("head_object", service_error_code="403", http_status_code=403)

        with pytest.raises(StorageError) as exc_info:
            store.put("uploads/a.png", b"data")
        assert exc_info.value.status_code == 503
        with pytest.raises(StorageError) as exc_info:
            store.delete("uploads/a.png")
        assert not isinstance(exc_info.value, BlobNotFoundError)
