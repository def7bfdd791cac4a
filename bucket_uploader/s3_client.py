"""Object store client for S3-compatible buckets.

Creates boto3 S3 clients from a StoreConfig and wraps them in
ObjectStoreClient, which addresses a single bucket and translates every
botocore failure into NotFoundError or RemoteError.

The signature version is set to 's3v4', which Cloudflare R2 and most
S3-compatible stores require.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, BinaryIO, Iterator, Optional, Sequence, Union

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from bucket_uploader.errors import NotFoundError, RemoteError
from bucket_uploader.models import AccessPolicy, ObjectInfo, StoreConfig
from bucket_uploader.retry import is_retryable_error

logger = logging.getLogger(__name__)

# Error codes that mean the addressed object (not the bucket) is absent.
# HEAD responses carry no body, so botocore reports the bare status.
NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound", "NoSuchVersion"}

DOWNLOAD_CHUNK_SIZE = 1024 * 1024


def build_s3_client(config: StoreConfig):
    """Build a boto3 S3 client for the given store configuration.

    Args:
        config: Store configuration containing endpoint, credentials,
               region, and addressing style.

    Returns:
        A boto3 S3 client configured for the store.
    """
    boto_config = Config(
        signature_version="s3v4",
        s3={"addressing_style": config.addressing_style},
    )

    return boto3.client(
        "s3",
        endpoint_url=config.endpoint_url,
        aws_access_key_id=config.aws_access_key_id,
        aws_secret_access_key=config.aws_secret_access_key,
        region_name=config.region_name,
        config=boto_config,
    )


def translate_error(
    error: Exception, operation: str, key: Optional[str] = None
) -> RemoteError:
    """Map a botocore exception onto the package's error taxonomy.

    Args:
        error: The botocore exception.
        operation: Name of the failed store operation.
        key: Object key the call addressed.

    Returns:
        NotFoundError if the object is absent, otherwise RemoteError.
    """
    target = f"'{key}'" if key is not None else "bucket"

    if isinstance(error, ClientError):
        details = error.response.get("Error", {})
        code = details.get("Code")
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")

        if code in NOT_FOUND_CODES or (status == 404 and not code):
            return NotFoundError(
                f"{operation}: object {target} not found", operation, key
            )

        message = details.get("Message") or str(error)
        return RemoteError(
            f"{operation} failed for {target}: {code} ({status}): {message}",
            operation=operation,
            key=key,
            status_code=status,
            error_code=code,
            retryable=is_retryable_error(error),
        )

    return RemoteError(
        f"{operation} failed for {target}: {error}",
        operation=operation,
        key=key,
        retryable=is_retryable_error(error),
    )


class ObjectStoreClient:
    """Typed wrapper around one bucket of an S3-compatible store.

    Holds no state between calls apart from the boto3 client and the
    configuration it was built with.
    """

    def __init__(self, s3_client: Any, config: StoreConfig):
        """Initialize the store client.

        Args:
            s3_client: boto3 S3 client
            config: Store configuration (bucket name, endpoint)
        """
        self.s3_client = s3_client
        self.config = config

    @classmethod
    def from_config(cls, config: StoreConfig) -> "ObjectStoreClient":
        """Build a boto3 client for the configuration and wrap it."""
        return cls(build_s3_client(config), config)

    @property
    def bucket(self) -> Optional[str]:
        return self.config.bucket_name

    @contextmanager
    def _store_call(self, operation: str, key: Optional[str] = None) -> Iterator[None]:
        try:
            yield
        except (BotoCoreError, ClientError) as e:
            raise translate_error(e, operation, key) from e

    def _object_params(self, key: str, version_id: Optional[str] = None) -> dict:
        params: dict[str, Any] = {"Bucket": self.bucket, "Key": key}
        if version_id:
            params["VersionId"] = version_id
        return params

    def put_object(
        self,
        key: str,
        body: Union[bytes, BinaryIO],
        content_type: Optional[str] = None,
        access_policy: Union[AccessPolicy, str] = AccessPolicy.PRIVATE,
    ) -> dict:
        """Write a whole object in one request.

        Returns:
            The store's response (ETag, VersionId when versioning is on).
        """
        params = self._object_params(key)
        params["Body"] = body
        params["ACL"] = AccessPolicy(access_policy).value
        if content_type:
            params["ContentType"] = content_type

        with self._store_call("put_object", key):
            response = self.s3_client.put_object(**params)
        logger.debug("Put object %s", key)
        return response

    def get_object(self, key: str, version_id: Optional[str] = None) -> Any:
        """Open an object for reading.

        Returns:
            A streaming body; the caller reads and closes it.

        Raises:
            NotFoundError: If the object does not exist.
            RemoteError: On any other store failure.
        """
        with self._store_call("get_object", key):
            response = self.s3_client.get_object(**self._object_params(key, version_id))
        return response["Body"]

    def head_object(self, key: str, version_id: Optional[str] = None) -> ObjectInfo:
        """Fetch object metadata without the content.

        Raises:
            NotFoundError: If the object does not exist.
            RemoteError: On any other store failure.
        """
        with self._store_call("head_object", key):
            response = self.s3_client.head_object(**self._object_params(key, version_id))

        return ObjectInfo(
            key=key,
            size=int(response.get("ContentLength") or 0),
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
            last_modified=response.get("LastModified"),
            version_id=response.get("VersionId"),
        )

    def list_objects(self, prefix: Optional[str] = None) -> list[ObjectInfo]:
        """List the objects in the bucket, in the order the store returns them.

        Args:
            prefix: Only list keys starting with this prefix.
        """
        params: dict[str, Any] = {"Bucket": self.bucket}
        if prefix:
            params["Prefix"] = prefix

        objects: list[ObjectInfo] = []
        with self._store_call("list_objects"):
            paginator = self.s3_client.get_paginator("list_objects_v2")
            for page in paginator.paginate(**params):
                for item in page.get("Contents", []):
                    objects.append(
                        ObjectInfo(
                            key=item["Key"],
                            size=int(item.get("Size") or 0),
                            etag=item.get("ETag"),
                            last_modified=item.get("LastModified"),
                        )
                    )
        return objects

    def list_keys(self, prefix: Optional[str] = None) -> list[str]:
        """List object keys in the bucket."""
        return [obj.key for obj in self.list_objects(prefix)]

    def delete_object(self, key: str, version_id: Optional[str] = None) -> dict:
        """Delete an object, or one version of it when version_id is given.

        Deleting a specific version removes it without creating a
        delete marker.
        """
        with self._store_call("delete_object", key):
            response = self.s3_client.delete_object(**self._object_params(key, version_id))
        logger.debug("Deleted object %s (version %s)", key, version_id or "current")
        return response

    def download(
        self,
        key: str,
        destination: Union[str, Path],
        version_id: Optional[str] = None,
    ) -> int:
        """Stream an object into a local file.

        If the transfer fails partway the partial file is removed.

        Returns:
            Number of bytes written.
        """
        body = self.get_object(key, version_id)
        path = Path(destination)
        written = 0
        opened = False
        try:
            with self._store_call("get_object", key):
                with open(path, "wb") as f:
                    opened = True
                    for chunk in body.iter_chunks(DOWNLOAD_CHUNK_SIZE):
                        f.write(chunk)
                        written += len(chunk)
        except BaseException:
            if opened:
                path.unlink(missing_ok=True)
            raise
        finally:
            body.close()

        logger.debug("Downloaded %s (%d bytes) to %s", key, written, destination)
        return written

    def public_url(self, key: str) -> str:
        """Build the unsigned access URL of an object.

        Only meaningful when the object was written with a public policy.
        """
        endpoint = self.config.endpoint_url or self.s3_client.meta.endpoint_url
        return f"{endpoint.rstrip('/')}/{self.bucket}/{key}"

    def create_multipart_upload(
        self,
        key: str,
        content_type: Optional[str] = None,
        access_policy: Union[AccessPolicy, str] = AccessPolicy.PRIVATE,
    ) -> str:
        """Start a multipart session.

        Returns:
            The upload ID of the new session.
        """
        params = self._object_params(key)
        params["ACL"] = AccessPolicy(access_policy).value
        if content_type:
            params["ContentType"] = content_type

        with self._store_call("create_multipart_upload", key):
            response = self.s3_client.create_multipart_upload(**params)

        upload_id = response.get("UploadId")
        if not upload_id:
            raise RemoteError(
                f"create_multipart_upload for '{key}' returned no UploadId",
                operation="create_multipart_upload",
                key=key,
            )
        return upload_id

    def upload_part(
        self, key: str, upload_id: str, part_number: int, body: bytes
    ) -> str:
        """Upload one part of a multipart session.

        Returns:
            The ETag the store assigned to the part.
        """
        with self._store_call("upload_part", key):
            response = self.s3_client.upload_part(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
                PartNumber=part_number,
                Body=body,
            )
        return response["ETag"]

    def complete_multipart_upload(
        self, key: str, upload_id: str, parts: Sequence[dict]
    ) -> dict:
        """Assemble the uploaded parts into the final object."""
        with self._store_call("complete_multipart_upload", key):
            return self.s3_client.complete_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": list(parts)},
            )

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        """Discard a multipart session and the parts stored for it."""
        with self._store_call("abort_multipart_upload", key):
            self.s3_client.abort_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
            )
