"""Data models for bucket transfers."""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from bucket_uploader.cancellation import CancellationToken
    from bucket_uploader.reporters.base import ProgressObserver

logger = logging.getLogger(__name__)

MIB = 1024 * 1024

# Smallest part the S3 multipart protocol accepts (except for the last one)
MIN_PART_SIZE = 5 * MIB

DEFAULT_PART_SIZE = 5 * MIB
DEFAULT_CONCURRENCY = 5
DEFAULT_PART_ATTEMPTS = 3


class AccessPolicy(str, Enum):
    """Canned ACL applied to an object at write time."""

    PRIVATE = "private"
    PUBLIC_READ = "public-read"


class TransferState(Enum):
    """Lifecycle state of a transfer."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABORTED = "aborted"


class PartStatus(Enum):
    """Upload status of a single part."""

    PENDING = "pending"
    UPLOADED = "uploaded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StoreConfig:
    """Connection and tuning settings for one bucket.

    Credentials and names may be None; the store rejects the first
    remote call in that case.
    """

    endpoint_url: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    bucket_name: Optional[str] = None
    region_name: str = "auto"
    addressing_style: str = "path"
    part_size: int = DEFAULT_PART_SIZE
    concurrency: int = DEFAULT_CONCURRENCY
    part_attempts: int = DEFAULT_PART_ATTEMPTS


@dataclass
class ObjectInfo:
    """Metadata of a stored object."""

    key: str
    size: int = 0
    etag: Optional[str] = None
    content_type: Optional[str] = None
    last_modified: Optional[datetime] = None
    version_id: Optional[str] = None


@dataclass
class ProgressEvent:
    """Emitted each time a part (or the single put) is acknowledged.

    bytes_total stays None until the source stream has ended.
    """

    key: str
    part_number: int
    bytes_transferred: int
    bytes_total: Optional[int] = None


@dataclass
class PartUploadTask:
    """One chunk of the stream uploaded as a multipart part."""

    part_number: int
    payload: bytes
    status: PartStatus = PartStatus.PENDING
    etag: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.payload)


@dataclass
class UploadResult:
    """Outcome of a successful upload."""

    key: str
    location: str
    version_id: Optional[str] = None
    etag: Optional[str] = None
    part_count: int = 1
    size: int = 0


@dataclass
class TransferOutcome:
    """Outcome of a local-file transfer run."""

    local_path: str
    upload: UploadResult
    local_deleted: bool = False
    local_delete_error: Optional[str] = None


@dataclass
class TransferHandle:
    """State of one in-flight upload.

    Counters are shared between part workers and must only be changed
    through the methods below.
    """

    key: str
    token: "CancellationToken"
    state: TransferState = TransferState.PENDING
    bytes_read: int = 0
    bytes_transferred: int = 0
    bytes_total: Optional[int] = None
    error: Optional[BaseException] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def settled(self) -> bool:
        return self.state != TransferState.PENDING

    @property
    def failed(self) -> bool:
        return self.error is not None

    def record_read(self, size: int) -> None:
        with self._lock:
            self.bytes_read += size

    def finish_reading(self) -> None:
        """Mark the source stream as exhausted; the total becomes known."""
        with self._lock:
            self.bytes_total = self.bytes_read

    def record_transferred(
        self,
        part_number: int,
        size: int,
        observer: Optional["ProgressObserver"] = None,
    ) -> ProgressEvent:
        """Add an acknowledged part to the totals and notify the observer.

        The observer runs under the lock so events are delivered with
        non-decreasing byte counts even when parts finish concurrently.
        An observer error is logged; the part stays acknowledged.
        """
        with self._lock:
            self.bytes_transferred += size
            event = ProgressEvent(
                key=self.key,
                part_number=part_number,
                bytes_transferred=self.bytes_transferred,
                bytes_total=self.bytes_total,
            )
            if observer is not None:
                try:
                    observer.on_progress(event)
                except Exception:
                    logger.exception(
                        "Progress observer failed on part %d of %s", part_number, self.key
                    )
        return event

    def record_failure(self, error: BaseException) -> None:
        """Keep the first part failure; later ones are consequences."""
        with self._lock:
            if self.error is None:
                self.error = error

    def settle(self, state: TransferState) -> None:
        if self.settled:
            raise RuntimeError(f"Transfer of '{self.key}' already settled")
        self.state = state
