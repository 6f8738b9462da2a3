"""
Marketplace Backend — Storage Gateway
======================================

What:  Uploads and deletes binary objects (images) by key.
Why:   The write orchestrator only needs two operations from the object store;
       hiding them behind an interface lets tests inject delays and failures
       and lets development run without S3.
How:   StorageGateway is the abstract contract. S3StorageGateway wraps a boto3
       client (blocking, so every call runs in a worker thread);
       LocalStorageGateway writes files under a root directory with aiofiles.

Contract:
    upload(key, content, content_type) -> key
        Stores the object. Raises StorageError on failure.
    delete(keys) -> None
        Removes every listed object. Missing objects are not an error.
        Raises StorageError if the store rejects the request.
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Sequence

import aiofiles
import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from marketplace.config import Settings
from marketplace.exceptions import StorageError

logger = logging.getLogger(__name__)


class StorageGateway(ABC):
    """Abstract object store used for provider, service and staff images."""

    @abstractmethod
    async def upload(self, key: str, content: bytes, content_type: str) -> str:
        ...

    @abstractmethod
    async def delete(self, keys: Sequence[str]) -> None:
        ...

    async def close(self) -> None:
        """Release client resources. Most gateways hold none."""


# ══════════════════════════════════════════════════════════════════════════
# S3
# ══════════════════════════════════════════════════════════════════════════


class S3StorageGateway(StorageGateway):
    """
    Object store backed by S3 or an S3-compatible endpoint.

    boto3 clients are thread-safe, so one client is shared by every upload
    and each blocking call is pushed to a thread with asyncio.to_thread.
    """

    # delete_objects accepts at most 1000 keys per request
    DELETE_BATCH = 1000

    def __init__(self, bucket: str, client: Any):
        self.bucket = bucket
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3StorageGateway":
        client = boto3.client(
            "s3",
            region_name=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            config=Config(signature_version="s3v4"),
        )
        return cls(bucket=settings.s3_bucket, client=client)

    async def upload(self, key: str, content: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("S3 upload failed for %s: %s", key, e)
            raise StorageError(context={"bucket": self.bucket, "key": key, "error": str(e)}) from e

        logger.info("Stored object %s (%d bytes)", key, len(content))
        return key

    async def delete(self, keys: Sequence[str]) -> None:
        keys = [k for k in keys if k]
        for start in range(0, len(keys), self.DELETE_BATCH):
            batch = keys[start:start + self.DELETE_BATCH]
            try:
                response = await asyncio.to_thread(
                    self.client.delete_objects,
                    Bucket=self.bucket,
                    Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
                )
            except (BotoCoreError, ClientError) as e:
                logger.error("S3 delete failed for %d objects: %s", len(batch), e)
                raise StorageError(
                    message="failed to delete stored files",
                    context={"bucket": self.bucket, "keys": batch, "error": str(e)},
                ) from e

            errors = response.get("Errors") or []
            if errors:
                raise StorageError(
                    message="failed to delete stored files",
                    context={"bucket": self.bucket, "errors": errors},
                )
        if keys:
            logger.info("Deleted %d objects from %s", len(keys), self.bucket)


# ══════════════════════════════════════════════════════════════════════════
# Local filesystem
# ══════════════════════════════════════════════════════════════════════════


class LocalStorageGateway(StorageGateway):
    """
    Stores objects as files under storage_root, using the key as relative path.

    Directory Structure:
        storage/
        └── services/
            └── 2024/01/15/
                ├── a1b2c3d4....jpg
                └── e5f6g7h8....png
    """

    def __init__(self, storage_root: str):
        self.storage_root = Path(storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("LocalStorageGateway initialized with storage_root=%s", self.storage_root)

    def _path_for(self, key: str) -> Path:
        path = (self.storage_root / key).resolve()
        # Keys are generated server-side, but never write outside the root
        if self.storage_root not in path.parents:
            raise StorageError(message="invalid storage key", context={"key": key})
        return path

    async def upload(self, key: str, content: bytes, content_type: str) -> str:
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", path, e)
            raise StorageError(context={"path": str(path), "os_error": str(e)}) from e

        logger.info("File stored: %s (%d bytes)", key, len(content))
        return key

    async def delete(self, keys: Sequence[str]) -> None:
        for key in keys:
            path = self._path_for(key)
            try:
                os.remove(path)
            except FileNotFoundError:
                logger.debug("Delete: file already gone: %s", key)
            except OSError as e:
                raise StorageError(
                    message="failed to delete stored files",
                    context={"path": str(path), "os_error": str(e)},
                ) from e


def build_storage(settings: Settings, client: Optional[Any] = None) -> StorageGateway:
    """Select the gateway named by STORAGE_BACKEND."""
    if settings.storage_backend == "s3":
        if client is not None:
            return S3StorageGateway(bucket=settings.s3_bucket, client=client)
        return S3StorageGateway.from_settings(settings)
    return LocalStorageGateway(settings.storage_root)
