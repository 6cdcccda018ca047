"""Blob storage backends for uploaded audio files.

`BlobStorage` is the interface the upload pipeline talks to. Two
implementations are provided: `LocalBlobStorage` keeps files in a
directory served by the application itself, and `S3BlobStorage` talks to
any S3-compatible service (AWS S3, Cloudflare R2, MinIO, ...) via boto3.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import quote, unquote

import boto3
from botocore.exceptions import ClientError

from .config import Settings

logger = logging.getLogger("radio_catalog.storage")

AUDIO_PREFIX = "audio/"
MEDIA_MOUNT = "/media"


class BlobNotFound(LookupError):
    """Raised when a requested blob does not exist in the store."""


class BlobStorage(ABC):
    """Interface for the audio blob store."""

    @abstractmethod
    def upload(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Store `data` under `key` and return its public URL."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the blob at `key`. Missing blobs are not an error."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Return True if a blob is stored at `key`."""

    @abstractmethod
    def read(self, key: str) -> bytes:
        """Return the blob contents or raise `BlobNotFound`."""

    @abstractmethod
    def url_for(self, key: str) -> str:
        """Return the public URL for `key`, percent-encoding the key."""

    def key_for_url(self, url: str) -> Optional[str]:
        """Map a public URL produced by this store back to its key.

        Returns None for URLs that do not belong to the store. The key part
        of the URL is percent-decoded.
        """
        prefix = self.url_for("")
        if url and url.startswith(prefix) and len(url) > len(prefix):
            return unquote(url[len(prefix):])
        return None


class LocalBlobStorage(BlobStorage):
    """Store blobs as files below `root`.

    URLs point at the application's `/media` static mount, so `base_url`
    should be the externally visible origin of the API.
    """

    def __init__(self, root: Path, base_url: str):
        self.root = Path(root).resolve()
        self.base_url = base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise ValueError(f"invalid blob key: {key}")
        return path

    def upload(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info("stored blob %s (%d bytes)", key, len(data))
        return self.url_for(key)

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()
            logger.info("deleted blob %s", key)

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def read(self, key: str) -> bytes:
        path = self._path(key)
        if not path.is_file():
            raise BlobNotFound(key)
        return path.read_bytes()

    def url_for(self, key: str) -> str:
        return f"{self.base_url}{MEDIA_MOUNT}/{quote(key)}"


class S3BlobStorage(BlobStorage):
    """S3-compatible blob store backed by a boto3 client."""

    def __init__(self, bucket: str, client=None, endpoint_url: str = "", public_base_url: str = ""):
        self.bucket = bucket
        self.endpoint_url = endpoint_url.rstrip("/")
        self.public_base_url = public_base_url.rstrip("/")
        self.client = client

    @classmethod
    def from_settings(cls, cfg: Settings) -> "S3BlobStorage":
        client = boto3.client(
            "s3",
            endpoint_url=cfg.S3_ENDPOINT_URL or None,
            aws_access_key_id=cfg.S3_ACCESS_KEY_ID or None,
            aws_secret_access_key=cfg.S3_SECRET_ACCESS_KEY or None,
            region_name=cfg.S3_REGION or None,
        )
        return cls(
            bucket=cfg.S3_BUCKET,
            client=client,
            endpoint_url=cfg.S3_ENDPOINT_URL,
            public_base_url=cfg.S3_PUBLIC_BASE_URL,
        )

    def upload(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        extra = {"ContentType": content_type} if content_type else {}
        self.client.put_object(Bucket=self.bucket, Key=key, Body=data, **extra)
        logger.info("uploaded blob s3://%s/%s (%d bytes)", self.bucket, key, len(data))
        return self.url_for(key)

    def delete(self, key: str) -> None:
        # S3 DeleteObject succeeds for missing keys
        self.client.delete_object(Bucket=self.bucket, Key=key)
        logger.info("deleted blob s3://%s/%s", self.bucket, key)

    def exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                return False
            raise

    def read(self, key: str) -> bytes:
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                raise BlobNotFound(key) from e
            raise
        return obj["Body"].read()

    def url_for(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{quote(key)}"
        if self.endpoint_url:
            return f"{self.endpoint_url}/{self.bucket}/{quote(key)}"
        return f"https://{self.bucket}.s3.amazonaws.com/{quote(key)}"


def create_storage(cfg: Settings) -> BlobStorage:
    """Build the blob store selected by `cfg.STORAGE_BACKEND`."""
    if cfg.STORAGE_BACKEND == "local":
        return LocalBlobStorage(cfg.STORAGE_DIR, cfg.PUBLIC_BASE_URL)
    if cfg.STORAGE_BACKEND == "s3":
        return S3BlobStorage.from_settings(cfg)
    raise ValueError(f"Unknown storage backend: {cfg.STORAGE_BACKEND}")


def audio_key(file_name: str) -> str:
    return AUDIO_PREFIX + file_name
