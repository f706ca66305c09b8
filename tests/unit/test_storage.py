"""Unit tests for the storage adapters."""

import asyncio
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from og_pipeline.core.config import StorageConfig
from og_pipeline.core.exceptions import (
    ConfigurationError,
    UnsupportedStorageError,
    UploadError,
)
from og_pipeline.core.storage import (
    LocalStorageAdapter,
    S3StorageAdapter,
    StorageAdapterFactory,
)


class FakeAsyncS3Client:
    """Async context manager standing in for an aioboto3 S3 client."""

    def __init__(self, error=None):
        self.calls = []
        self.error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def put_object(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return {"ETag": '"etag"'}


def _session(client):
    session = MagicMock()
    session.client.return_value = client
    return session


class TestS3PublicUrl:
    def _url(self, key="og/a.png", **config):
        adapter = S3StorageAdapter(StorageConfig(bucket="photos", **config), session=MagicMock())
        return asyncio.run(adapter.generate_public_url(key=key))

    def test_custom_domain_first(self):
        url = self._url(customDomain="cdn.example.com/", endpoint="https://oss.example.com")
        assert url == "https://cdn.example.com/og/a.png"

    def test_custom_domain_with_scheme(self):
        assert self._url(customDomain="http://cdn.example.com") == "http://cdn.example.com/og/a.png"

    def test_endpoint_path_style(self):
        url = self._url(endpoint="https://minio.local:9000/")
        assert url == "https://minio.local:9000/photos/og/a.png"

    def test_aws_default(self):
        assert self._url(region="eu-west-1") == "https://photos.s3.eu-west-1.amazonaws.com/og/a.png"

    def test_aws_default_region(self):
        assert self._url() == "https://photos.s3.us-east-1.amazonaws.com/og/a.png"

    def test_key_is_quoted(self):
        assert self._url(key="og/my photo.png", region="us-east-1").endswith("/og/my%20photo.png")


class TestS3Upload:
    def test_put_object(self):
        client = FakeAsyncS3Client()
        adapter = S3StorageAdapter(
            StorageConfig(bucket="photos", endpoint="https://oss.example.com"),
            session=_session(client),
        )

        asyncio.run(adapter.upload(key="og/a.png", data=b"png", content_type="image/png"))

        assert client.calls == [
            {"Bucket": "photos", "Key": "og/a.png", "Body": b"png", "ContentType": "image/png"}
        ]

    def test_client_error_becomes_upload_error(self):
        error = ClientError({"Error": {"Code": "AccessDenied", "Message": "no"}}, "PutObject")
        adapter = S3StorageAdapter(
            StorageConfig(bucket="photos"), session=_session(FakeAsyncS3Client(error))
        )

        with pytest.raises(UploadError) as excinfo:
            asyncio.run(adapter.upload(key="og/a.png", data=b"png", content_type="image/png"))

        assert excinfo.value.key == "og/a.png"
        assert "AccessDenied" in str(excinfo.value)

    def test_bucket_is_required(self):
        with pytest.raises(ConfigurationError):
            S3StorageAdapter(StorageConfig(provider="s3"), session=MagicMock())


class TestLocalStorage:
    def test_upload_writes_file_and_url(self, tmp_path):
        adapter = LocalStorageAdapter(
            StorageConfig(provider="local", basePath=str(tmp_path), baseUrl="/static/")
        )

        asyncio.run(adapter.upload(key="og/a.png", data=b"png", content_type="image/png"))

        assert (tmp_path / "og" / "a.png").read_bytes() == b"png"
        assert asyncio.run(adapter.generate_public_url(key="og/a.png")) == "/static/og/a.png"

    def test_key_cannot_escape_base_path(self, tmp_path):
        adapter = LocalStorageAdapter(StorageConfig(provider="local", basePath=str(tmp_path)))
        with pytest.raises(UploadError):
            asyncio.run(adapter.upload(key="../../etc/passwd", data=b"x", content_type="text/plain"))

    def test_base_path_is_required(self):
        with pytest.raises(ConfigurationError):
            LocalStorageAdapter(StorageConfig(provider="local"))


class TestStorageAdapterFactory:
    def test_local(self, tmp_path):
        storage = StorageAdapterFactory.create_storage(
            StorageConfig(provider="local", basePath=str(tmp_path))
        )
        assert isinstance(storage, LocalStorageAdapter)

    @pytest.mark.parametrize("provider", ["s3", "oss", "cos"])
    def test_s3_compatible(self, provider):
        storage = StorageAdapterFactory.create_storage(
            StorageConfig(provider=provider, bucket="b"), session=MagicMock()
        )
        assert isinstance(storage, S3StorageAdapter)

    def test_eagle_rejected(self):
        with pytest.raises(UnsupportedStorageError):
            StorageAdapterFactory.create_storage(StorageConfig(provider="eagle"))
