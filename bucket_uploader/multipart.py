"""Multipart upload session lifecycle.

Handles one S3 multipart session:
- Initiate upload
- Track acknowledged parts (from several worker threads)
- Complete with an ordered manifest, or abort
"""

import logging
import threading
from typing import Optional, Union

from bucket_uploader.errors import RemoteError
from bucket_uploader.models import AccessPolicy
from bucket_uploader.s3_client import ObjectStoreClient

logger = logging.getLogger(__name__)


class MultipartUpload:
    """Manages the lifecycle of a multipart upload.

    Parts may be recorded in any order; the manifest handed to the store
    is always sorted by part number.

    Can be used as a context manager: the session is initiated on entry
    and aborted if the block raises.
    """

    def __init__(
        self,
        store: ObjectStoreClient,
        key: str,
        content_type: Optional[str] = None,
        access_policy: Union[AccessPolicy, str] = AccessPolicy.PRIVATE,
    ):
        """Initialize the multipart upload manager.

        Args:
            store: Object store client
            key: Key of the object being assembled
            content_type: Content type of the final object
            access_policy: Canned ACL of the final object
        """
        self.store = store
        self.key = key
        self.content_type = content_type
        self.access_policy = access_policy
        self.upload_id: Optional[str] = None
        self.completed = False
        self.aborted = False
        self._parts: dict[int, str] = {}
        self._lock = threading.Lock()

    def initiate(self) -> str:
        """Initiate a new multipart upload.

        Returns:
            The upload ID for the new multipart upload.
        """
        self.upload_id = self.store.create_multipart_upload(
            self.key,
            content_type=self.content_type,
            access_policy=self.access_policy,
        )
        logger.debug("Initiated multipart upload %s for %s", self.upload_id, self.key)
        return self.upload_id

    def _require_upload_id(self) -> str:
        if self.upload_id is None:
            raise RuntimeError("Upload not initiated")
        return self.upload_id

    def upload_part(self, part_number: int, payload: bytes) -> str:
        """Send one part to the store and record its ETag.

        Returns:
            The ETag of the part.
        """
        upload_id = self._require_upload_id()
        etag = self.store.upload_part(self.key, upload_id, part_number, payload)
        self.add_part(part_number, etag)
        return etag

    def add_part(self, part_number: int, etag: str) -> None:
        """Record a successfully uploaded part.

        Args:
            part_number: The 1-indexed part number.
            etag: The ETag returned by the store.
        """
        with self._lock:
            self._parts[part_number] = etag

    def get_uploaded_parts(self) -> list[dict]:
        """Get the manifest of uploaded parts, ordered by part number."""
        with self._lock:
            return [
                {"PartNumber": number, "ETag": self._parts[number]}
                for number in sorted(self._parts)
            ]

    def complete(self) -> dict:
        """Complete the multipart upload.

        Returns:
            The store's response (Location, ETag, VersionId).

        Raises:
            RuntimeError: If upload was not initiated.
            RemoteError: If the store rejects the manifest.
        """
        upload_id = self._require_upload_id()
        response = self.store.complete_multipart_upload(
            self.key, upload_id, self.get_uploaded_parts()
        )
        self.completed = True
        logger.debug("Completed multipart upload %s for %s", upload_id, self.key)
        return response

    def abort(self) -> bool:
        """Abort the multipart upload.

        Cleans up any uploaded parts on the store's side. Best effort:
        a failed abort is logged and the session may leak remotely.
        Safe to call if the upload was not initiated or already aborted.

        Returns:
            True if the store acknowledged the abort.
        """
        if self.upload_id is None or self.completed or self.aborted:
            return False

        try:
            self.store.abort_multipart_upload(self.key, self.upload_id)
        except RemoteError as e:
            logger.error(
                "Could not abort multipart upload %s for %s: %s",
                self.upload_id,
                self.key,
                e,
            )
            return False

        self.aborted = True
        logger.info("Aborted multipart upload %s for %s", self.upload_id, self.key)
        return True

    def __enter__(self) -> "MultipartUpload":
        """Enter context manager - initiates upload."""
        self.initiate()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        """Exit context manager - aborts on exception."""
        if exc_type is not None:
            self.abort()
        return False  # Don't suppress exceptions
