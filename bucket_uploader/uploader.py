"""Streaming uploads of byte streams of unknown length.

The source stream is sliced into parts as it is read. Streams that fit
in a single part are written with one put; longer ones go through a
multipart session whose parts are uploaded on a bounded thread pool.

Reading pauses while ``concurrency`` parts are in flight. Before the
protocol is chosen only the first part and one peeked byte are held, so
buffered payload never exceeds ``concurrency * part_size`` plus one byte.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import BinaryIO, Optional, Sequence, Union

from bucket_uploader.cancellation import CancellationToken
from bucket_uploader.errors import AbortedError, UploadError
from bucket_uploader.models import (
    AccessPolicy,
    PartStatus,
    PartUploadTask,
    TransferHandle,
    TransferState,
    UploadResult,
)
from bucket_uploader.multipart import MultipartUpload
from bucket_uploader.reporters.base import ProgressObserver
from bucket_uploader.retry import DEFAULT_RETRY_DELAYS, retry_with_backoff
from bucket_uploader.s3_client import ObjectStoreClient

logger = logging.getLogger(__name__)

# Parts are read in blocks of at most this size so that cancellation is
# noticed in the middle of a large part
READ_BLOCK_SIZE = 1024 * 1024

# How often a reader waiting for a free slot checks the token
SLOT_POLL_INTERVAL = 0.1


class StreamingUploader:
    """Uploads byte streams to one bucket.

    Defaults for part size, concurrency and part attempts come from the
    store's configuration and can be overridden per instance or per call.
    """

    def __init__(
        self,
        store: ObjectStoreClient,
        part_size: Optional[int] = None,
        concurrency: Optional[int] = None,
        part_attempts: Optional[int] = None,
        retry_delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
    ):
        self.store = store
        self.part_size = part_size or store.config.part_size
        self.concurrency = concurrency or store.config.concurrency
        self.part_attempts = part_attempts or store.config.part_attempts
        self.retry_delays = retry_delays

    def upload(
        self,
        stream: BinaryIO,
        key: str,
        *,
        concurrency: Optional[int] = None,
        part_size: Optional[int] = None,
        access_policy: Union[AccessPolicy, str] = AccessPolicy.PRIVATE,
        content_type: Optional[str] = None,
        cancellation_token: Optional[CancellationToken] = None,
        observer: Optional[ProgressObserver] = None,
    ) -> UploadResult:
        """Upload everything readable from ``stream`` as object ``key``.

        Args:
            stream: Binary file-like object; read until it returns b"".
            key: Object key to write.
            concurrency: Maximum number of parts in flight.
            part_size: Size of each part in bytes (the last may be smaller).
            access_policy: Canned ACL of the object.
            content_type: Content type of the object.
            cancellation_token: Token the caller fires to stop the upload.
            observer: Receives a ProgressEvent per acknowledged part.
                Exceptions it raises are logged and do not affect the upload.

        Returns:
            UploadResult describing the committed object.

        Raises:
            AbortedError: If the token fired before the object was committed.
            UploadError: If reading the stream or any store call failed.
        """
        part_size = part_size or self.part_size
        concurrency = concurrency or self.concurrency
        if part_size < 1 or concurrency < 1:
            raise ValueError("part_size and concurrency must be positive")

        handle = TransferHandle(key=key, token=cancellation_token or CancellationToken())

        try:
            first = self._read_part(stream, handle, part_size)
            lookahead = b""
            if len(first) == part_size:
                lookahead = self._peek(stream, handle)

            if not lookahead:
                handle.finish_reading()
                result = self._put_single(
                    handle, first, content_type, access_policy, observer
                )
            else:
                result = self._upload_multipart(
                    handle,
                    stream,
                    first,
                    lookahead,
                    part_size,
                    concurrency,
                    content_type,
                    access_policy,
                    observer,
                )
        except AbortedError:
            handle.settle(TransferState.ABORTED)
            logger.warning("Upload of %s aborted after %d bytes", key, handle.bytes_transferred)
            raise
        except UploadError:
            handle.settle(TransferState.FAILED)
            raise
        except Exception as e:
            handle.settle(TransferState.FAILED)
            raise UploadError(f"Upload of '{key}' failed: {e}", key, cause=e) from e

        handle.settle(TransferState.SUCCEEDED)
        logger.info("Uploaded %s (%d bytes, %d part(s))", key, result.size, result.part_count)
        return result

    def _peek(self, stream: BinaryIO, handle: TransferHandle) -> bytes:
        """Read one byte to learn whether a second part follows.

        The byte is not counted as read until it is prepended to a part.
        """
        if handle.token.cancelled:
            raise AbortedError(handle.key)
        return stream.read(1)

    def _read_part(
        self,
        stream: BinaryIO,
        handle: TransferHandle,
        part_size: int,
        prefix: bytes = b"",
    ) -> bytes:
        """Read up to ``part_size`` bytes, checking the token between blocks.

        ``prefix`` holds bytes already taken from the stream for this part.
        """
        buffer = bytearray(prefix)
        while len(buffer) < part_size:
            if handle.token.cancelled:
                raise AbortedError(handle.key)
            block = stream.read(min(READ_BLOCK_SIZE, part_size - len(buffer)))
            if not block:
                break
            buffer += block

        handle.record_read(len(buffer))
        return bytes(buffer)

    def _put_single(
        self,
        handle: TransferHandle,
        payload: bytes,
        content_type: Optional[str],
        access_policy: Union[AccessPolicy, str],
        observer: Optional[ProgressObserver],
    ) -> UploadResult:
        if handle.token.cancelled:
            raise AbortedError(handle.key)

        logger.debug("Uploading %s with a single put (%d bytes)", handle.key, len(payload))
        response = self.store.put_object(
            handle.key,
            payload,
            content_type=content_type,
            access_policy=access_policy,
        )
        handle.record_transferred(1, len(payload), observer)

        return UploadResult(
            key=handle.key,
            location=self.store.public_url(handle.key),
            version_id=response.get("VersionId"),
            etag=response.get("ETag"),
            part_count=1,
            size=len(payload),
        )

    def _upload_multipart(
        self,
        handle: TransferHandle,
        stream: BinaryIO,
        first: bytes,
        lookahead: bytes,
        part_size: int,
        concurrency: int,
        content_type: Optional[str],
        access_policy: Union[AccessPolicy, str],
        observer: Optional[ProgressObserver],
    ) -> UploadResult:
        # The session aborts itself if anything below raises
        with MultipartUpload(
            self.store, handle.key, content_type=content_type, access_policy=access_policy
        ) as session:
            logger.info(
                "Uploading %s in parts of %d bytes, %d in flight (upload %s)",
                handle.key,
                part_size,
                concurrency,
                session.upload_id,
            )
            part_count = self._dispatch_parts(
                session, handle, stream, first, lookahead, part_size, concurrency, observer
            )

            if handle.token.cancelled:
                raise AbortedError(handle.key)
            if handle.error is not None:
                raise UploadError(
                    f"Upload of '{handle.key}' failed: {handle.error}",
                    handle.key,
                    cause=handle.error,
                ) from handle.error

            response = session.complete()

        return UploadResult(
            key=handle.key,
            location=response.get("Location") or self.store.public_url(handle.key),
            version_id=response.get("VersionId"),
            etag=response.get("ETag"),
            part_count=part_count,
            size=handle.bytes_transferred,
        )

    def _dispatch_parts(
        self,
        session: MultipartUpload,
        handle: TransferHandle,
        stream: BinaryIO,
        first: bytes,
        lookahead: bytes,
        part_size: int,
        concurrency: int,
        observer: Optional[ProgressObserver],
    ) -> int:
        """Read parts and hand them to the pool until the stream ends.

        Returns once every submitted part has settled.

        Returns:
            Number of parts submitted.
        """
        slots = threading.Semaphore(concurrency)
        # The first part is already in memory; the peeked byte opens the second
        ready: Optional[bytes] = first
        carry = lookahead
        part_number = 0

        # Leaving the pool block waits for in-flight parts, also on error
        with ThreadPoolExecutor(
            max_workers=concurrency, thread_name_prefix="upload-part"
        ) as pool:
            while True:
                self._acquire_slot(slots, handle)
                if handle.failed:
                    slots.release()
                    break

                try:
                    if ready is not None:
                        chunk, ready = ready, None
                    else:
                        chunk = self._read_part(stream, handle, part_size, prefix=carry)
                        carry = b""
                except BaseException:
                    slots.release()
                    raise

                if not chunk:
                    slots.release()
                    handle.finish_reading()
                    break

                last = len(chunk) < part_size
                if last:
                    handle.finish_reading()

                part_number += 1
                pool.submit(
                    self._upload_part,
                    session,
                    handle,
                    PartUploadTask(part_number=part_number, payload=chunk),
                    slots,
                    observer,
                )
                if last:
                    break

        return part_number

    def _acquire_slot(self, slots: threading.Semaphore, handle: TransferHandle) -> None:
        """Wait for a free upload slot, giving up if the token fires."""
        while not slots.acquire(timeout=SLOT_POLL_INTERVAL):
            if handle.token.cancelled:
                raise AbortedError(handle.key)

        if handle.token.cancelled:
            slots.release()
            raise AbortedError(handle.key)

    def _upload_part(
        self,
        session: MultipartUpload,
        handle: TransferHandle,
        task: PartUploadTask,
        slots: threading.Semaphore,
        observer: Optional[ProgressObserver],
    ) -> PartUploadTask:
        try:
            if handle.token.cancelled or handle.failed:
                task.status = PartStatus.SKIPPED
                return task

            task.etag = retry_with_backoff(
                session.upload_part,
                max_attempts=self.part_attempts,
                delays=self.retry_delays,
                args=(task.part_number, task.payload),
                cancellation_token=handle.token,
            )
            task.status = PartStatus.UPLOADED
            logger.debug("Part %d of %s uploaded (%d bytes)", task.part_number, handle.key, task.size)
            handle.record_transferred(task.part_number, task.size, observer)
        except Exception as e:
            if task.status == PartStatus.PENDING:
                task.status = PartStatus.FAILED
            logger.error("Part %d of %s failed: %s", task.part_number, handle.key, e)
            handle.record_failure(e)
        finally:
            task.payload = b""
            slots.release()
        return task
