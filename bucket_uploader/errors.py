"""Exception hierarchy for bucket transfers.

Local validation failures stop a run before any network I/O. Remote
failures are translated from botocore into NotFoundError or RemoteError
by the object store client; the uploader wraps multipart failures in
UploadError after a best-effort abort of the remote session.
"""

from typing import Optional


class BucketUploaderError(Exception):
    """Base class for all errors raised by this package."""

    pass


class LocalFileError(BucketUploaderError):
    """Raised when the local path is missing, not a file, or unreadable."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


class RemoteError(BucketUploaderError):
    """Raised when a call to the object store fails.

    Attributes:
        operation: Name of the store operation (e.g. "upload_part").
        key: Object key the call addressed, if any.
        status_code: HTTP status returned by the store, if any.
        error_code: Store error code (e.g. "AccessDenied"), if any.
        retryable: True if the failure is transient.
    """

    def __init__(
        self,
        message: str,
        operation: str,
        key: Optional[str] = None,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.operation = operation
        self.key = key
        self.status_code = status_code
        self.error_code = error_code
        self.retryable = retryable


class NotFoundError(RemoteError):
    """Raised when the addressed object does not exist."""

    def __init__(self, message: str, operation: str, key: Optional[str] = None):
        super().__init__(
            message,
            operation=operation,
            key=key,
            status_code=404,
            error_code="NotFound",
        )


class UploadError(BucketUploaderError):
    """Raised when an upload fails terminally."""

    def __init__(self, message: str, key: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.key = key
        self.cause = cause


class AbortedError(BucketUploaderError):
    """Raised when an upload is cancelled through its token."""

    def __init__(self, key: str):
        super().__init__(f"Upload of '{key}' was aborted")
        self.key = key
