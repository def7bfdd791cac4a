"""Local-file transfer orchestration.

Coordinates one run of the command-line tool:
- Local path validation
- Streaming the file to the bucket
- Optional removal of the local file once the upload is committed
- Reporter callbacks
"""

import logging
import mimetypes
import os
from pathlib import Path
from typing import Optional, Union

from bucket_uploader.cancellation import CancellationToken
from bucket_uploader.errors import AbortedError, LocalFileError, UploadError
from bucket_uploader.models import AccessPolicy, TransferOutcome
from bucket_uploader.reporters.base import Reporter
from bucket_uploader.uploader import StreamingUploader

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def guess_content_type(filename: str) -> str:
    """Guess a content type from a file name."""
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or DEFAULT_CONTENT_TYPE


def validate_local_file(local_path: Union[str, Path]) -> Path:
    """Check that a local path is an existing, readable regular file.

    Returns:
        The absolute path.

    Raises:
        LocalFileError: If the path is missing, not a file, or unreadable.
    """
    path = Path(local_path).resolve()

    if not path.exists():
        raise LocalFileError(f'File "{path.name}" does not exist', str(path))
    if not path.is_file():
        raise LocalFileError(f'"{path}" is not a regular file', str(path))
    if not os.access(path, os.R_OK):
        raise LocalFileError(f'File "{path.name}" is not readable', str(path))

    return path


class TransferOrchestrator:
    """Uploads a local file and optionally removes it afterwards."""

    def __init__(
        self,
        uploader: StreamingUploader,
        reporter: Optional[Reporter] = None,
        access_policy: AccessPolicy = AccessPolicy.PRIVATE,
    ):
        """Initialize the orchestrator.

        Args:
            uploader: Uploader bound to the target bucket
            reporter: Optional reporter for progress callbacks
            access_policy: Canned ACL of uploaded objects
        """
        self.uploader = uploader
        self.reporter = reporter
        self.access_policy = access_policy

    def run(
        self,
        local_path: Union[str, Path],
        delete_after_upload: bool = False,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> TransferOutcome:
        """Upload a local file under its base name.

        Args:
            local_path: File to upload.
            delete_after_upload: Remove the local file once committed.
            cancellation_token: Token that aborts the upload when fired.

        Returns:
            TransferOutcome with the upload result and local cleanup status.

        Raises:
            LocalFileError: If the file cannot be read; nothing is uploaded.
            UploadError: If the upload failed.
            AbortedError: If the upload was cancelled.
        """
        path = validate_local_file(local_path)
        key = path.name

        logger.info("Uploading %s as %s", path, key)
        if self.reporter:
            self.reporter.on_transfer_start(str(path), key, path.stat().st_size)

        try:
            with open(path, "rb") as stream:
                result = self.uploader.upload(
                    stream,
                    key,
                    access_policy=self.access_policy,
                    content_type=guess_content_type(key),
                    cancellation_token=cancellation_token,
                    observer=self.reporter,
                )
        except OSError as e:
            raise LocalFileError(f'Could not open "{path.name}": {e}', str(path)) from e
        except (UploadError, AbortedError) as e:
            if self.reporter:
                self.reporter.on_transfer_failed(key, e)
            raise

        if self.reporter:
            self.reporter.on_upload_complete(result)

        outcome = TransferOutcome(local_path=str(path), upload=result)
        if delete_after_upload:
            self._delete_local(path, outcome)

        if self.reporter:
            self.reporter.on_transfer_complete(outcome)
        return outcome

    def _delete_local(self, path: Path, outcome: TransferOutcome) -> None:
        """Remove the local file; a failure leaves the upload committed."""
        try:
            path.unlink()
        except OSError as e:
            logger.error("Uploaded %s but could not delete it: %s", path, e)
            outcome.local_delete_error = str(e)
        else:
            logger.info("Deleted local file %s", path)
            outcome.local_deleted = True

        if self.reporter:
            self.reporter.on_local_delete(str(path), outcome.local_delete_error)
