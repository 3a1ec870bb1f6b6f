"""S3-compatible object storage used for every stored variant.

Buffers above ``multipart_threshold_bytes`` go through a multipart upload
whose parts are sent by a small fixed thread pool; anything smaller is a
single ``PutObject``. A :class:`LocationDescriptor` is returned only once the
object is confirmed, and a failed multipart upload is always aborted so no
orphaned parts stay behind.
"""

from __future__ import annotations

import logging
import re
import secrets
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

import boto3
from botocore.client import Config

from ..config import StorageConfig
from ..ingest.ingest_errors import StorageUploadError
from ..media.media_models import LocationDescriptor

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


class S3Client(Protocol):
    """Subset of the boto3 S3 client used by :class:`ObjectStorage`."""

    def put_object(self, **kwargs: Any) -> dict[str, Any]: ...

    def create_multipart_upload(self, **kwargs: Any) -> dict[str, Any]: ...

    def upload_part(self, **kwargs: Any) -> dict[str, Any]: ...

    def complete_multipart_upload(self, **kwargs: Any) -> dict[str, Any]: ...

    def abort_multipart_upload(self, **kwargs: Any) -> dict[str, Any]: ...


def build_s3_client(config: StorageConfig) -> S3Client:
    """Create a boto3 client; retries stay with the caller, not botocore."""
    boto_config = Config(
        connect_timeout=config.connect_timeout_seconds,
        read_timeout=config.read_timeout_seconds,
        retries={"max_attempts": 0, "mode": "standard"},
        signature_version="s3v4",
        max_pool_connections=max(10, config.max_workers * 4),
    )
    return boto3.client(
        "s3",
        endpoint_url=config.endpoint_url,
        region_name=config.region,
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.secret_access_key,
        config=boto_config,
    )


def _clean_metadata(metadata: Mapping[str, Any] | None) -> dict[str, str]:
    # S3 user metadata must be str -> str
    return {str(k): str(v) for k, v in (metadata or {}).items() if v is not None}


@dataclass(slots=True)
class ObjectStorage:
    """Choose between single and multipart writes and perform the transfer."""

    config: StorageConfig
    client: S3Client
    log: logging.Logger = field(default_factory=lambda: logger)

    def public_url(self, key: str) -> str:
        if self.config.public_base_url:
            return f"{self.config.public_base_url.rstrip('/')}/{key}"
        return f"https://{self.config.bucket}.s3.{self.config.region}.amazonaws.com/{key}"

    def build_key(self, folder: str, field_name: str, extension: str) -> str:
        """``<prefix>/<folder>/<epoch-ms>-<field>-<8 hex>.<ext>``, unique per call."""
        field_part = _UNSAFE_KEY_CHARS.sub("-", field_name).strip("-") or "file"
        ext = _UNSAFE_KEY_CHARS.sub("", extension.lstrip(".")).lower() or "bin"
        stamp = int(time.time() * 1000)
        return f"{self.config.key_prefix}/{folder}/{stamp}-{field_part}-{secrets.token_hex(4)}.{ext}"

    def uses_multipart(self, size: int) -> bool:
        return size > self.config.multipart_threshold_bytes

    def transfer(
        self,
        data: bytes,
        key: str,
        content_type: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> LocationDescriptor:
        """Upload ``data`` under ``key`` and return its confirmed location."""
        strategy = "multipart" if self.uses_multipart(len(data)) else "single"
        try:
            if strategy == "multipart":
                descriptor = self._multipart(data, key, content_type, metadata)
            else:
                descriptor = self._single(data, key, content_type, metadata)
        except StorageUploadError:
            raise
        except Exception as exc:
            self.log.error(
                "storage.upload.failed",
                extra={"key": key, "strategy": strategy, "size_bytes": len(data), "error": str(exc)},
            )
            raise StorageUploadError(
                "Failed to upload file to cloud storage",
                details={"key": key, "strategy": strategy},
            ) from exc

        self.log.info(
            "storage.upload.completed",
            extra={"key": key, "strategy": strategy, "size_bytes": len(data)},
        )
        return descriptor

    def _base_params(
        self, key: str, content_type: str, metadata: Mapping[str, Any] | None
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "Bucket": self.config.bucket,
            "Key": key,
            "ContentType": content_type,
            "Metadata": _clean_metadata(metadata),
        }
        if self.config.object_acl:
            params["ACL"] = self.config.object_acl
        return params

    def _single(
        self,
        data: bytes,
        key: str,
        content_type: str,
        metadata: Mapping[str, Any] | None,
    ) -> LocationDescriptor:
        response = self.client.put_object(Body=data, **self._base_params(key, content_type, metadata))
        return LocationDescriptor(
            key=key,
            url=self.public_url(key),
            bucket=self.config.bucket,
            etag=response.get("ETag"),
            version_id=response.get("VersionId"),
        )

    def _multipart(
        self,
        data: bytes,
        key: str,
        content_type: str,
        metadata: Mapping[str, Any] | None,
    ) -> LocationDescriptor:
        bucket = self.config.bucket
        part_size = self.config.part_size_bytes
        created = self.client.create_multipart_upload(**self._base_params(key, content_type, metadata))
        upload_id = created["UploadId"]
        view = memoryview(data)

        def send_part(part_number: int) -> dict[str, Any]:
            start = (part_number - 1) * part_size
            chunk = bytes(view[start : start + part_size])
            response = self.client.upload_part(
                Bucket=bucket,
                Key=key,
                PartNumber=part_number,
                UploadId=upload_id,
                Body=chunk,
            )
            return {"PartNumber": part_number, "ETag": response["ETag"]}

        part_count = max(1, -(-len(data) // part_size))
        try:
            with ThreadPoolExecutor(
                max_workers=self.config.max_workers, thread_name_prefix="s3-part"
            ) as pool:
                futures = [pool.submit(send_part, number) for number in range(1, part_count + 1)]
                _, not_done = wait(futures, return_when=FIRST_EXCEPTION)
                for future in not_done:
                    future.cancel()
                parts = [future.result() for future in futures]
            parts.sort(key=lambda part: part["PartNumber"])
            response = self.client.complete_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
        except BaseException:
            self._abort(key, upload_id)
            raise

        self.log.info(
            "storage.multipart.completed",
            extra={"key": key, "parts": part_count, "size_bytes": len(data)},
        )
        return LocationDescriptor(
            key=key,
            url=self.public_url(key),
            bucket=bucket,
            etag=response.get("ETag"),
            version_id=response.get("VersionId"),
        )

    def _abort(self, key: str, upload_id: str) -> None:
        try:
            self.client.abort_multipart_upload(
                Bucket=self.config.bucket, Key=key, UploadId=upload_id
            )
        except Exception as exc:
            self.log.error(
                "storage.multipart.abort_failed",
                extra={"key": key, "upload_id": upload_id, "error": str(exc)},
            )
            return
        self.log.warning(
            "storage.multipart.aborted", extra={"key": key, "upload_id": upload_id}
        )
