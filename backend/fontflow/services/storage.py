"""
FontFlow Backend — Object Storage
===================================

What:  Durable storage for font binaries behind one small async interface.
How:   ObjectStore is the abstract contract; two backends implement it:
         - S3ObjectStore:    boto3, presigned GET URLs (production)
         - LocalObjectStore: files under STORAGE_ROOT written with aiofiles,
                             HMAC-signed URLs served by routes/files.py (dev, tests)
Who:   FontService writes and deletes objects; routes ask for signed URLs.
When:  One instance is built in create_app() and stored on app.state.

Keys are opaque strings such as `fonts/<user_id>/<ts>-<rand>-<name>.ttf`.
The store never interprets them beyond mapping them to a bucket key or a path.

Error policy:
    Every backend failure is raised as ObjectStorageError (→ 500, generic
    message). A missing object on read is NotFoundError. Deleting a missing
    object is not an error.
"""

import hashlib
import hmac
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import aiofiles
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from fontflow.config import Settings
from fontflow.exceptions import NotFoundError, ObjectStorageError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Suffix → content type, for backends that do not persist the content type
_SUFFIX_CONTENT_TYPES = {
    ".ttf": "font/ttf",
    ".otf": "font/otf",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
}


def content_type_for_key(key: str) -> str:
    return _SUFFIX_CONTENT_TYPES.get(Path(key).suffix.lower(), DEFAULT_CONTENT_TYPE)


class ObjectStore(ABC):
    """
    Abstract key → bytes store.

    Contract:
        - put() overwrites an existing object with the same key
        - get() raises NotFoundError for a missing key
        - delete() of a missing key succeeds silently
        - signed_url() never touches the network; it only signs
    """

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> None:
        ...

    @abstractmethod
    async def get(self, key: str) -> bytes:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def signed_url(self, key: str, expires_in: int) -> str:
        """Time-limited GET URL for `key`, valid for `expires_in` seconds."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """True when the backend is reachable and writable."""
        ...


# ── S3 Backend ────────────────────────────────────────────────────────────
class S3ObjectStore(ObjectStore):
    """
    Amazon S3 (or any S3-compatible service) backend.

    boto3 is synchronous; every network call runs in Starlette's threadpool
    so the event loop is never blocked. Credentials come from the standard
    AWS chain (env vars, shared config, instance role).
    """

    def __init__(self, bucket: str, region: Optional[str] = None, client=None):
        if not bucket:
            raise ValueError("S3ObjectStore requires a bucket name")
        self.bucket = bucket
        self.client = client or boto3.client("s3", region_name=region)
        logger.info("S3ObjectStore initialized for bucket=%s region=%s", bucket, region)

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        try:
            await run_in_threadpool(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("S3 put failed for %s: %s", key, e)
            raise ObjectStorageError(context={"op": "put", "key": key, "error": str(e)}) from e
        logger.info("Stored s3://%s/%s (%d bytes)", self.bucket, key, len(data))

    async def get(self, key: str) -> bytes:
        try:
            response = await run_in_threadpool(
                self.client.get_object, Bucket=self.bucket, Key=key
            )
            data = await run_in_threadpool(response["Body"].read)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in ("NoSuchKey", "404"):
                raise NotFoundError(resource="file", resource_id=key) from e
            logger.error("S3 get failed for %s: %s", key, e)
            raise ObjectStorageError(context={"op": "get", "key": key, "error": str(e)}) from e
        except BotoCoreError as e:
            logger.error("S3 get failed for %s: %s", key, e)
            raise ObjectStorageError(context={"op": "get", "key": key, "error": str(e)}) from e
        return data

    async def delete(self, key: str) -> None:
        # S3 DeleteObject is idempotent: a missing key returns 204
        try:
            await run_in_threadpool(self.client.delete_object, Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error("S3 delete failed for %s: %s", key, e)
            raise ObjectStorageError(context={"op": "delete", "key": key, "error": str(e)}) from e
        logger.info("Deleted s3://%s/%s", self.bucket, key)

    def signed_url(self, key: str, expires_in: int) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Failed to presign URL for %s: %s", key, e)
            raise ObjectStorageError(context={"op": "sign", "key": key, "error": str(e)}) from e

    async def health_check(self) -> bool:
        try:
            await run_in_threadpool(self.client.head_bucket, Bucket=self.bucket)
            return True
        except (BotoCoreError, ClientError) as e:
            logger.warning("S3 health check failed for bucket %s: %s", self.bucket, e)
            return False


# ── Local Filesystem Backend ──────────────────────────────────────────────
class LocalObjectStore(ObjectStore):
    """
    Stores objects as files under a root directory.

    Directory Structure (mirrors the key):
        storage/
        └── fonts/
            └── <user_id>/
                ├── 1718000000000-1a2b3c4d-Inter.ttf
                └── 1718000000000-1a2b3c4d-Inter.woff2

    Signed URLs point at GET /api/files/{key} and carry an expiry timestamp
    plus an HMAC-SHA256 over "key:expires" with URL_SIGNING_SECRET.
    """

    def __init__(self, root: str, base_url: str, signing_secret: str):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")
        self._secret = signing_secret.encode("utf-8")
        logger.info("LocalObjectStore initialized with root=%s", self.root)

    def resolve_path(self, key: str) -> Path:
        """
        Map a key to its absolute path under the root.

        Raises:
            NotFoundError: The key escapes the root (`..`, absolute paths).
        """
        path = (self.root / key).resolve()
        if path == self.root or self.root not in path.parents:
            logger.warning("Rejected storage key outside root: %r", key)
            raise NotFoundError(resource="file", resource_id=key)
        return path

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        path = self.resolve_path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", path, e)
            raise ObjectStorageError(context={"op": "put", "key": key, "os_error": str(e)}) from e
        logger.info("File stored: %s (%d bytes)", key, len(data))

    async def get(self, key: str) -> bytes:
        path = self.resolve_path(key)
        if not path.is_file():
            raise NotFoundError(resource="file", resource_id=key)
        try:
            async with aiofiles.open(path, "rb") as f:
                data = await f.read()
        except OSError as e:
            logger.error("Failed to read file at %s: %s", path, e)
            raise ObjectStorageError(context={"op": "get", "key": key, "os_error": str(e)}) from e
        return data

    async def delete(self, key: str) -> None:
        path = self.resolve_path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("Failed to delete file at %s: %s", path, e)
            raise ObjectStorageError(context={"op": "delete", "key": key, "os_error": str(e)}) from e
        logger.info("Deleted file: %s", key)

    def _signature(self, key: str, expires: int) -> str:
        message = f"{key}:{expires}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def signed_url(self, key: str, expires_in: int) -> str:
        expires = int(time.time()) + expires_in
        signature = self._signature(key, expires)
        return f"{self.base_url}/api/files/{key}?expires={expires}&signature={signature}"

    def verify_signature(self, key: str, expires: int, signature: str) -> bool:
        """True when `signature` matches `key`/`expires` and the link has not expired."""
        if expires < int(time.time()):
            return False
        return hmac.compare_digest(self._signature(key, expires), signature)

    async def health_check(self) -> bool:
        probe = self.root / ".health"
        try:
            async with aiofiles.open(probe, "wb") as f:
                await f.write(b"ok")
            probe.unlink(missing_ok=True)
            return True
        except OSError as e:
            logger.warning("Storage root %s is not writable: %s", self.root, e)
            return False


def build_object_store(config: Settings) -> ObjectStore:
    """Instantiate the backend selected by STORAGE_BACKEND."""
    if config.storage_backend == "s3":
        return S3ObjectStore(bucket=config.s3_bucket_name, region=config.aws_region)
    return LocalObjectStore(
        root=config.storage_root,
        base_url=config.public_base_url,
        signing_secret=config.url_signing_secret,
    )
