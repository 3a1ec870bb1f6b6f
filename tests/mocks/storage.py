"""In-memory stand-in for the boto3 S3 client used in tests."""

from __future__ import annotations

import hashlib
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

from botocore.exceptions import ClientError


def _client_error(operation: str, message: str) -> ClientError:
    return ClientError({"Error": {"Code": "InternalError", "Message": message}}, operation)


@dataclass(slots=True)
class StoredObject:
    key: str
    body: bytes
    content_type: str
    metadata: dict[str, str]
    acl: str | None = None


@dataclass(slots=True)
class MultipartState:
    key: str
    content_type: str
    metadata: dict[str, str]
    parts: dict[int, bytes] = field(default_factory=dict)


class InMemoryS3Client:
    """Thread-safe fake covering put_object and the multipart calls.

    ``fail_on`` makes every write whose key contains one of the substrings
    fail, ``fail_parts`` makes those part numbers fail and ``delay_on`` makes
    matching writes sleep before answering. ``peak_in_flight`` is the highest
    number of object and part writes that were running at the same time.
    """

    def __init__(
        self,
        *,
        fail_on: tuple[str, ...] = (),
        fail_parts: tuple[int, ...] = (),
        delay_on: tuple[str, ...] = (),
        delay_seconds: float = 0.0,
    ) -> None:
        self.fail_on = fail_on
        self.fail_parts = fail_parts
        self.delay_on = delay_on
        self.delay_seconds = delay_seconds
        self.objects: dict[str, StoredObject] = {}
        self.calls: list[tuple[str, str]] = []
        self.active_uploads: dict[str, MultipartState] = {}
        self.completed_uploads: list[str] = []
        self.aborted_uploads: list[str] = []
        self.uploaded_parts: list[tuple[str, int, int]] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self._lock = threading.Lock()

    def _record(self, operation: str, key: str) -> None:
        with self._lock:
            self.calls.append((operation, key))

    @contextmanager
    def _writing(self) -> Iterator[None]:
        with self._lock:
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            yield
        finally:
            with self._lock:
                self.in_flight -= 1

    def _check(self, operation: str, key: str) -> None:
        if any(marker in key for marker in self.delay_on):
            time.sleep(self.delay_seconds)
        if any(marker in key for marker in self.fail_on):
            raise _client_error(operation, f"simulated failure for {key}")

    @staticmethod
    def _etag(body: bytes) -> str:
        return f'"{hashlib.md5(body).hexdigest()}"'

    def put_object(
        self,
        *,
        Bucket: str,
        Key: str,
        Body: bytes,
        ContentType: str,
        Metadata: dict[str, str] | None = None,
        ACL: str | None = None,
        **_: Any,
    ) -> dict[str, Any]:
        self._record("put_object", Key)
        with self._writing():
            self._check("PutObject", Key)
        with self._lock:
            self.objects[Key] = StoredObject(Key, bytes(Body), ContentType, dict(Metadata or {}), ACL)
        return {"ETag": self._etag(Body), "VersionId": uuid.uuid4().hex}

    def create_multipart_upload(
        self,
        *,
        Bucket: str,
        Key: str,
        ContentType: str,
        Metadata: dict[str, str] | None = None,
        ACL: str | None = None,
        **_: Any,
    ) -> dict[str, Any]:
        self._record("create_multipart_upload", Key)
        upload_id = uuid.uuid4().hex
        with self._lock:
            self.active_uploads[upload_id] = MultipartState(Key, ContentType, dict(Metadata or {}))
        return {"UploadId": upload_id, "Bucket": Bucket, "Key": Key}

    def upload_part(
        self,
        *,
        Bucket: str,
        Key: str,
        PartNumber: int,
        UploadId: str,
        Body: bytes,
        **_: Any,
    ) -> dict[str, Any]:
        self._record("upload_part", Key)
        with self._writing():
            self._check("UploadPart", Key)
        if PartNumber in self.fail_parts:
            raise _client_error("UploadPart", f"simulated failure for part {PartNumber}")
        with self._lock:
            state = self.active_uploads[UploadId]
            state.parts[PartNumber] = bytes(Body)
            self.uploaded_parts.append((Key, PartNumber, len(Body)))
        return {"ETag": self._etag(Body)}

    def complete_multipart_upload(
        self,
        *,
        Bucket: str,
        Key: str,
        UploadId: str,
        MultipartUpload: dict[str, Any],
        **_: Any,
    ) -> dict[str, Any]:
        self._record("complete_multipart_upload", Key)
        numbers = [part["PartNumber"] for part in MultipartUpload["Parts"]]
        if numbers != sorted(numbers):
            raise _client_error("CompleteMultipartUpload", "parts out of order")
        with self._lock:
            state = self.active_uploads.pop(UploadId)
            body = b"".join(state.parts[number] for number in numbers)
            self.objects[Key] = StoredObject(Key, body, state.content_type, state.metadata)
            self.completed_uploads.append(Key)
        return {"ETag": f'"{hashlib.md5(body).hexdigest()}-{len(numbers)}"', "VersionId": uuid.uuid4().hex}

    def abort_multipart_upload(self, *, Bucket: str, Key: str, UploadId: str, **_: Any) -> dict[str, Any]:
        self._record("abort_multipart_upload", Key)
        with self._lock:
            self.active_uploads.pop(UploadId, None)
            self.aborted_uploads.append(UploadId)
        return {}

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self.objects)
