"""Base observer and reporter interfaces."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from bucket_uploader.models import ProgressEvent, TransferOutcome, UploadResult


class ProgressObserver(ABC):
    """Receives progress events from an upload.

    Called from part worker threads, one event at a time.
    """

    @abstractmethod
    def on_progress(self, event: "ProgressEvent") -> None:
        """Called each time a part is acknowledged by the store."""
        pass


class Reporter(ProgressObserver):
    """Observer of a whole local-file transfer run."""

    @abstractmethod
    def on_transfer_start(self, local_path: str, key: str, size: Optional[int]) -> None:
        """Called before the upload of a local file begins."""
        pass

    @abstractmethod
    def on_upload_complete(self, result: "UploadResult") -> None:
        """Called when the remote object has been committed."""
        pass

    @abstractmethod
    def on_local_delete(self, local_path: str, error: Optional[str]) -> None:
        """Called after deleting the local file was attempted."""
        pass

    @abstractmethod
    def on_transfer_failed(self, key: str, error: Exception) -> None:
        """Called when the upload failed or was aborted."""
        pass

    @abstractmethod
    def on_transfer_complete(self, outcome: "TransferOutcome") -> None:
        """Called when the run finished successfully."""
        pass
