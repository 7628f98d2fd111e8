from __future__ import annotations
import asyncio
import io
from typing import Protocol
from minio import Minio
from minio.error import S3Error
import structlog
from storysquad.config import Settings, settings as default_settings
from storysquad.errors import NotFoundError

log = structlog.get_logger()

_MISSING_CODES = {"NoSuchKey", "NoSuchBucket", "PreconditionFailed"}


class BlobStore(Protocol):
    async def get(self, label: str, etag: str) -> bytes: ...
    async def put(self, label: str, data: bytes, content_type: str) -> str: ...
    async def remove(self, label: str) -> None: ...


def _parse_endpoint(ep: str) -> tuple[str, bool]:
    # Return (host:port, secure)
    secure = ep.startswith("https://")
    host = ep.replace("http://", "").replace("https://", "")
    return host, secure


class MinioBlobStore:
    """
    Submission artifacts in an S3-compatible bucket. The minio client is
    blocking, so every call is pushed to a worker thread.
    """

    def __init__(self, cfg: Settings | None = None, client: Minio | None = None):
        cfg = cfg or default_settings
        self.bucket = cfg.s3_bucket_uploads
        if client is None:
            host, secure = _parse_endpoint(cfg.s3_endpoint)
            client = Minio(host, access_key=cfg.s3_access_key, secret_key=cfg.s3_secret_key, secure=secure)
        self._client = client
        self._bucket_ready = False

    def _ensure_bucket(self) -> None:
        if self._bucket_ready:
            return
        try:
            if not self._client.bucket_exists(self.bucket):
                self._client.make_bucket(self.bucket)
        except S3Error as e:
            # Creation can race with another worker; only that case is fine
            if e.code not in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                raise
        self._bucket_ready = True

    def _get_sync(self, label: str, etag: str) -> bytes:
        try:
            response = self._client.get_object(self.bucket, label, request_headers={"If-Match": etag})
        except S3Error as e:
            if e.code in _MISSING_CODES:
                log.warning("blob_not_found", label=label, code=e.code)
                raise NotFoundError(f"Artifact not found: {label}")
            raise
        try:
            return response.read()
        finally:
            response.close()
            response.release_conn()

    def _put_sync(self, label: str, data: bytes, content_type: str) -> str:
        self._ensure_bucket()
        result = self._client.put_object(
            self.bucket, label, io.BytesIO(data), length=len(data), content_type=content_type
        )
        return result.etag

    async def get(self, label: str, etag: str) -> bytes:
        return await asyncio.to_thread(self._get_sync, label, etag)

    async def put(self, label: str, data: bytes, content_type: str) -> str:
        etag = await asyncio.to_thread(self._put_sync, label, data, content_type)
        log.info("blob_stored", label=label, size=len(data))
        return etag

    async def remove(self, label: str) -> None:
        await asyncio.to_thread(self._client.remove_object, self.bucket, label)
        log.info("blob_removed", label=label)
