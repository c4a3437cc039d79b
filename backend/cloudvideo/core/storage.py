"""Object storage supporting multiple backends.

Supports: S3 (and S3-compatible storage) and the local filesystem for
development. Every operation is addressed by bucket and key; the
``ObjectStore`` keeps one backend per bucket.
"""

import os
import shutil
import stat
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from pathlib import Path
from typing import BinaryIO, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from cloudvideo.core.config import Settings, settings as default_settings

# S3 error codes meaning "no such object" for head_object
_MISSING_OBJECT_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


class StorageError(Exception):
    """Raised when the storage service fails a request."""

    pass


@dataclass
class StorageResult:
    """Result of a storage write."""
    key: str
    file_size: int = 0
    etag: Optional[str] = None


@dataclass
class StorageConfig:
    """Storage configuration for one bucket."""
    backend: str  # s3, aws, minio, local
    bucket: str = ""
    region: str = ""
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    endpoint_url: Optional[str] = None
    local_path: str = "./storage"


class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    @abstractmethod
    def upload_fileobj(
        self,
        fileobj: BinaryIO,
        key: str,
        content_type: str = "application/octet-stream",
    ) -> StorageResult:
        """Upload a file object to storage."""
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if a file exists in storage."""
        pass

    @abstractmethod
    def set_public(self, key: str) -> None:
        """Make an object publicly readable."""
        pass


class LocalStorage(StorageBackend):
    """Local filesystem storage backend.

    The bucket is a directory below ``local_path``. Public objects are made
    world readable.
    """

    def __init__(self, config: StorageConfig):
        self.base_path = Path(config.local_path) / config.bucket
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, key: str) -> Path:
        return self.base_path / key

    def upload_fileobj(
        self,
        fileobj: BinaryIO,
        key: str,
        content_type: str = "application/octet-stream",
    ) -> StorageResult:
        """Upload a file object to local storage."""
        dest_path = self._get_full_path(key)
        try:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            with open(dest_path, "wb") as f:
                shutil.copyfileobj(fileobj, f)
        except OSError as e:
            raise StorageError(f"Could not write {key}: {e}") from e

        return StorageResult(key=key, file_size=dest_path.stat().st_size)

    def exists(self, key: str) -> bool:
        return self._get_full_path(key).is_file()

    def set_public(self, key: str) -> None:
        path = self._get_full_path(key)
        try:
            mode = path.stat().st_mode
            path.chmod(mode | stat.S_IRGRP | stat.S_IROTH)
        except OSError as e:
            raise StorageError(f"Could not publish {key}: {e}") from e


class S3Storage(StorageBackend):
    """S3/MinIO compatible storage backend."""

    def __init__(self, config: StorageConfig):
        self.config = config
        self._client = None

    def _get_client(self):
        """Get or create S3 client."""
        if self._client is None:
            client_kwargs = {
                "service_name": "s3",
                "region_name": self.config.region or None,
                "aws_access_key_id": self.config.access_key or None,
                "aws_secret_access_key": self.config.secret_key or None,
                "config": BotoConfig(signature_version="s3v4"),
            }

            # For MinIO or other S3-compatible storage
            if self.config.endpoint_url:
                client_kwargs["endpoint_url"] = self.config.endpoint_url
                client_kwargs["config"] = BotoConfig(
                    signature_version="s3v4",
                    s3={"addressing_style": "path"},
                )

            self._client = boto3.client(**client_kwargs)

        return self._client

    def upload_fileobj(
        self,
        fileobj: BinaryIO,
        key: str,
        content_type: str = "application/octet-stream",
    ) -> StorageResult:
        """Stream a file object to S3 (multipart for large files)."""
        client = self._get_client()
        try:
            client.upload_fileobj(
                fileobj,
                self.config.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
            response = client.head_object(Bucket=self.config.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(
                f"Upload of {key} to bucket {self.config.bucket} failed: {e}"
            ) from e

        return StorageResult(
            key=key,
            file_size=response.get("ContentLength", 0),
            etag=response.get("ETag", "").strip('"'),
        )

    def exists(self, key: str) -> bool:
        """Check if an object exists. Errors other than "not found" propagate."""
        client = self._get_client()
        try:
            client.head_object(Bucket=self.config.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING_OBJECT_CODES:
                return False
            raise StorageError(
                f"Existence check of {key} in bucket {self.config.bucket} failed: {e}"
            ) from e
        except BotoCoreError as e:
            raise StorageError(
                f"Existence check of {key} in bucket {self.config.bucket} failed: {e}"
            ) from e
        return True

    def set_public(self, key: str) -> None:
        client = self._get_client()
        try:
            client.put_object_acl(
                Bucket=self.config.bucket,
                Key=key,
                ACL="public-read",
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(
                f"Could not make {key} in bucket {self.config.bucket} public: {e}"
            ) from e


def create_backend(config: StorageConfig) -> StorageBackend:
    """Create appropriate storage backend."""
    backend_type = config.backend.lower()

    if backend_type == "local":
        return LocalStorage(config)
    elif backend_type in ("s3", "minio", "aws"):
        return S3Storage(config)
    else:
        raise ValueError(f"Unsupported storage backend: {backend_type}")


class ObjectStore:
    """Bucket-addressed object storage.

    Backends are created lazily, one per bucket, from the application
    settings (or an explicit ``base_config`` whose bucket is replaced).
    """

    def __init__(
        self,
        base_config: Optional[StorageConfig] = None,
        app_settings: Optional[Settings] = None,
    ):
        if base_config is None:
            app_settings = app_settings or default_settings
            base_config = StorageConfig(
                backend=app_settings.STORAGE_BACKEND,
                region=app_settings.AWS_REGION,
                access_key=app_settings.AWS_VIDEO_KEY,
                secret_key=app_settings.AWS_VIDEO_SECRET,
                endpoint_url=app_settings.STORAGE_ENDPOINT_URL,
                local_path=app_settings.LOCAL_STORAGE_PATH,
            )

        self.base_config = base_config
        self._backends: dict[str, StorageBackend] = {}

    def backend(self, bucket: str) -> StorageBackend:
        """Get the backend serving ``bucket``."""
        if bucket not in self._backends:
            config = replace(self.base_config, bucket=bucket)
            self._backends[bucket] = create_backend(config)
        return self._backends[bucket]

    def exists(self, bucket: str, key: str) -> bool:
        return self.backend(bucket).exists(key)

    def put_stream(
        self,
        bucket: str,
        key: str,
        stream: BinaryIO,
        content_type: str = "application/octet-stream",
    ) -> StorageResult:
        return self.backend(bucket).upload_fileobj(stream, key, content_type)

    def set_public(self, bucket: str, key: str) -> None:
        self.backend(bucket).set_public(key)


_CONTENT_TYPES = {
    ".mp4": "video/mp4",
    ".m4v": "video/mp4",
    ".mov": "video/quicktime",
    ".webm": "video/webm",
    ".mkv": "video/x-matroska",
    ".avi": "video/x-msvideo",
}


def content_type_for(file_path: str) -> str:
    """Content type for a video source, by file extension."""
    _, ext = os.path.splitext(file_path)
    return _CONTENT_TYPES.get(ext.lower(), "application/octet-stream")
