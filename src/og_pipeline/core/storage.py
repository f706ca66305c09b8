"""Storage port implementations: S3-compatible object stores and the local filesystem."""

import asyncio
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote

import aioboto3
from botocore.config import Config as BotoConfig

from .config import PREFIXED_PROVIDERS, UNSUPPORTED_PROVIDERS, StorageConfig
from .error_handling import with_error_handling
from .exceptions import ConfigurationError, UnsupportedStorageError, UploadError, UrlResolutionError
from .logging_config import get_logger
from .protocols import StoragePort

DEFAULT_REGION = "us-east-1"


def _with_scheme(domain: str) -> str:
    domain = domain.rstrip("/")
    if domain.startswith(("http://", "https://")):
        return domain
    return f"https://{domain}"


def _quote_key(key: str) -> str:
    return quote(key.lstrip("/"), safe="/")


class S3StorageAdapter:
    """Publishes objects to an S3-compatible bucket (S3, OSS, COS, MinIO...)."""

    def __init__(self, config: StorageConfig, session: Optional[Any] = None):
        if not config.bucket:
            raise ConfigurationError(f"Storage provider '{config.provider}' requires a bucket")
        self._config = config
        self._session = session or aioboto3.Session(
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
        )
        self._logger = get_logger("og-pipeline.storage")

    def _client(self):
        # Custom endpoints are addressed path-style, bucket after the host
        addressing_style = "path" if self._config.endpoint else "auto"
        return self._session.client(  # type: ignore[reportUnknownMemberType]
            "s3",
            endpoint_url=self._config.endpoint,
            region_name=self._config.region,
            config=BotoConfig(s3={"addressing_style": addressing_style}),
        )

    @with_error_handling(UploadError)
    async def upload(self, key: str, data: bytes, content_type: str) -> None:
        self._logger.debug(f"Uploading s3://{self._config.bucket}/{key} ({len(data)} bytes)")
        async with self._client() as client:
            await client.put_object(
                Bucket=self._config.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )

    @with_error_handling(UrlResolutionError)
    async def generate_public_url(self, key: str) -> str:
        path = _quote_key(key)
        if self._config.custom_domain:
            return f"{_with_scheme(self._config.custom_domain)}/{path}"
        if self._config.endpoint:
            return f"{self._config.endpoint.rstrip('/')}/{self._config.bucket}/{path}"
        region = self._config.region or DEFAULT_REGION
        return f"https://{self._config.bucket}.s3.{region}.amazonaws.com/{path}"


class LocalStorageAdapter:
    """Writes objects below a directory that is served under ``base_url``."""

    def __init__(self, config: StorageConfig):
        if not config.base_path:
            raise ConfigurationError("Local storage requires a base path")
        self._base_path = Path(config.base_path)
        self._base_url = (config.base_url or "").rstrip("/")
        self._logger = get_logger("og-pipeline.storage")

    def _path_for(self, key: str) -> Path:
        root = self._base_path.resolve()
        path = (root / key.lstrip("/")).resolve()
        if not path.is_relative_to(root):
            raise ValueError(f"Key escapes the storage root: {key}")
        return path

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    @with_error_handling(UploadError)
    async def upload(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path_for(key)
        self._logger.debug(f"Writing {path} ({len(data)} bytes, {content_type})")
        await asyncio.to_thread(self._write, path, data)

    @with_error_handling(UrlResolutionError)
    async def generate_public_url(self, key: str) -> str:
        return f"{self._base_url}/{_quote_key(key)}"


class StorageAdapterFactory:
    """Factory for creating storage adapters from a ``StorageConfig``."""

    @staticmethod
    def create_storage(config: StorageConfig, session: Optional[Any] = None) -> StoragePort:
        if config.provider in UNSUPPORTED_PROVIDERS:
            raise UnsupportedStorageError(config.provider)
        if config.provider == "local":
            return LocalStorageAdapter(config)
        if config.provider in PREFIXED_PROVIDERS:
            return S3StorageAdapter(config, session=session)
        raise UnsupportedStorageError(config.provider)
