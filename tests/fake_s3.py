"""In-memory fake of the boto3 S3 client for pipeline tests."""

import io
import threading
from types import SimpleNamespace
from typing import Any, Optional

from botocore.exceptions import ClientError


def client_error(
    code: str, status: int, operation: str = "Operation", message: str = ""
) -> ClientError:
    """Build a botocore ClientError the way the S3 client raises it."""
    return ClientError(
        {
            "Error": {"Code": code, "Message": message or code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class FakeBody:
    """Stand-in for botocore's StreamingBody."""

    def __init__(self, data: bytes):
        self._stream = io.BytesIO(data)
        self.closed = False

    def read(self, amt: Optional[int] = None) -> bytes:
        return self._stream.read(amt)

    def iter_chunks(self, chunk_size: int = 1024):
        while True:
            chunk = self._stream.read(chunk_size)
            if not chunk:
                return
            yield chunk

    def close(self) -> None:
        self.closed = True


class FakePaginator:
    def __init__(self, fake: "FakeS3Client", page_size: int):
        self._fake = fake
        self._page_size = page_size

    def paginate(self, Bucket: str, Prefix: str = ""):
        keys = sorted(k for k in self._fake.objects if k.startswith(Prefix))
        for start in range(0, max(len(keys), 1), self._page_size):
            page_keys = keys[start:start + self._page_size]
            page: dict[str, Any] = {"KeyCount": len(page_keys)}
            if page_keys:
                page["Contents"] = [
                    {
                        "Key": key,
                        "Size": len(self._fake.objects[key]["Body"]),
                        "ETag": self._fake.objects[key]["ETag"],
                    }
                    for key in page_keys
                ]
            yield page


class FakeS3Client:
    """Thread-safe in-memory S3 bucket.

    Records every call as ``(operation, params)`` in ``calls``. Failures
    can be injected per operation with ``fail_on``.
    """

    def __init__(self, bucket: str = "test-bucket", page_size: int = 1000):
        self.bucket = bucket
        self.meta = SimpleNamespace(endpoint_url="https://fake.example.com")
        self.page_size = page_size
        self.objects: dict[str, dict[str, Any]] = {}
        self.uploads: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, dict]] = []
        self.failures: dict[str, list[Exception]] = {}
        self.part_hook = None
        self._counter = 0
        self._lock = threading.Lock()

    # -- test helpers -----------------------------------------------------

    def fail_on(self, operation: str, *errors: Exception) -> None:
        """Make the next calls of ``operation`` raise ``errors`` in turn."""
        self.failures.setdefault(operation, []).extend(errors)

    def operations(self) -> list[str]:
        with self._lock:
            return [name for name, _ in self.calls]

    def calls_to(self, operation: str) -> list[dict]:
        with self._lock:
            return [params for name, params in self.calls if name == operation]

    def _record(self, operation: str, params: dict) -> None:
        with self._lock:
            self.calls.append((operation, params))
            pending = self.failures.get(operation)
            error = pending.pop(0) if pending else None
        if error is not None:
            raise error

    def _next_id(self, prefix: str) -> str:
        with self._lock:
            self._counter += 1
            return f"{prefix}-{self._counter}"

    # -- single-object operations ----------------------------------------

    def put_object(self, Bucket: str, Key: str, Body, **kwargs) -> dict:
        self._record("put_object", {"Bucket": Bucket, "Key": Key, **kwargs})
        data = Body if isinstance(Body, bytes) else Body.read()
        etag = f'"{self._next_id("etag")}"'
        version = self._next_id("v")
        with self._lock:
            self.objects[Key] = {"Body": data, "ETag": etag, "VersionId": version, **kwargs}
        return {"ETag": etag, "VersionId": version}

    def _get(self, operation: str, Bucket: str, Key: str, VersionId=None) -> dict:
        params = {"Bucket": Bucket, "Key": Key}
        if VersionId:
            params["VersionId"] = VersionId
        self._record(operation, params)
        with self._lock:
            obj = self.objects.get(Key)
        if obj is None:
            if operation == "head_object":
                raise client_error("404", 404, "HeadObject", "Not Found")
            raise client_error("NoSuchKey", 404, "GetObject")
        return obj

    def head_object(self, Bucket: str, Key: str, VersionId=None) -> dict:
        obj = self._get("head_object", Bucket, Key, VersionId)
        return {
            "ContentLength": len(obj["Body"]),
            "ETag": obj["ETag"],
            "ContentType": obj.get("ContentType"),
            "VersionId": obj["VersionId"],
        }

    def get_object(self, Bucket: str, Key: str, VersionId=None) -> dict:
        obj = self._get("get_object", Bucket, Key, VersionId)
        return {"Body": FakeBody(obj["Body"]), "ContentLength": len(obj["Body"])}

    def delete_object(self, Bucket: str, Key: str, VersionId=None) -> dict:
        params = {"Bucket": Bucket, "Key": Key}
        if VersionId:
            params["VersionId"] = VersionId
        self._record("delete_object", params)
        with self._lock:
            self.objects.pop(Key, None)
        return {"ResponseMetadata": {"HTTPStatusCode": 204}}

    def get_paginator(self, operation: str) -> FakePaginator:
        assert operation == "list_objects_v2"
        self._record("list_objects_v2", {})
        return FakePaginator(self, self.page_size)

    # -- multipart operations --------------------------------------------

    def create_multipart_upload(self, Bucket: str, Key: str, **kwargs) -> dict:
        self._record("create_multipart_upload", {"Bucket": Bucket, "Key": Key, **kwargs})
        upload_id = self._next_id("upload")
        with self._lock:
            self.uploads[upload_id] = {"Key": Key, "Parts": {}, "Params": kwargs, "State": "open"}
        return {"UploadId": upload_id, "Bucket": Bucket, "Key": Key}

    def upload_part(
        self, Bucket: str, Key: str, UploadId: str, PartNumber: int, Body: bytes
    ) -> dict:
        self._record(
            "upload_part",
            {"Bucket": Bucket, "Key": Key, "UploadId": UploadId, "PartNumber": PartNumber, "Size": len(Body)},
        )
        if self.part_hook is not None:
            self.part_hook(PartNumber)
        etag = f'"part-{PartNumber}"'
        with self._lock:
            upload = self.uploads.get(UploadId)
            if upload is None or upload["State"] != "open":
                raise client_error("NoSuchUpload", 404, "UploadPart")
            upload["Parts"][PartNumber] = (etag, bytes(Body))
        return {"ETag": etag}

    def complete_multipart_upload(
        self, Bucket: str, Key: str, UploadId: str, MultipartUpload: dict
    ) -> dict:
        self._record(
            "complete_multipart_upload",
            {"Bucket": Bucket, "Key": Key, "UploadId": UploadId, "MultipartUpload": MultipartUpload},
        )
        with self._lock:
            upload = self.uploads[UploadId]
            data = b"".join(
                upload["Parts"][part["PartNumber"]][1]
                for part in MultipartUpload["Parts"]
            )
            upload["State"] = "completed"
            version = f"v-{UploadId}"
            self.objects[Key] = {
                "Body": data,
                "ETag": '"multipart-etag"',
                "VersionId": version,
                **upload["Params"],
            }
        return {
            "Location": f"https://fake.example.com/{Bucket}/{Key}",
            "Bucket": Bucket,
            "Key": Key,
            "ETag": '"multipart-etag"',
            "VersionId": version,
        }

    def abort_multipart_upload(self, Bucket: str, Key: str, UploadId: str) -> dict:
        self._record("abort_multipart_upload", {"Bucket": Bucket, "Key": Key, "UploadId": UploadId})
        with self._lock:
            self.uploads[UploadId]["State"] = "aborted"
        return {}
