"""Tests for data models."""

import pytest

from bucket_uploader.cancellation import CancellationToken
from bucket_uploader.models import (
    DEFAULT_CONCURRENCY,
    DEFAULT_PART_SIZE,
    AccessPolicy,
    PartStatus,
    PartUploadTask,
    StoreConfig,
    TransferHandle,
    TransferState,
)


class TestStoreConfig:
    """Tests for StoreConfig dataclass."""

    def test_defaults(self):
        """Connection settings are optional; tuning has defaults."""
        config = StoreConfig()

        assert config.endpoint_url is None
        assert config.bucket_name is None
        assert config.region_name == "auto"
        assert config.addressing_style == "path"
        assert config.part_size == DEFAULT_PART_SIZE == 5 * 1024 * 1024
        assert config.concurrency == DEFAULT_CONCURRENCY == 5


class TestAccessPolicy:
    """Tests for AccessPolicy enum."""

    def test_values_are_canned_acls(self):
        assert AccessPolicy.PRIVATE.value == "private"
        assert AccessPolicy("public-read") is AccessPolicy.PUBLIC_READ


class TestPartUploadTask:
    """Tests for PartUploadTask dataclass."""

    def test_new_task_is_pending(self):
        task = PartUploadTask(part_number=1, payload=b"abc")

        assert task.status == PartStatus.PENDING
        assert task.size == 3
        assert task.etag is None


class RecordingObserver:
    def __init__(self):
        self.events = []

    def on_progress(self, event):
        self.events.append(event)


class TestTransferHandle:
    """Tests for TransferHandle bookkeeping."""

    @pytest.fixture
    def handle(self) -> TransferHandle:
        return TransferHandle(key="file.bin", token=CancellationToken())

    def test_starts_pending_with_unknown_total(self, handle):
        assert handle.state == TransferState.PENDING
        assert handle.bytes_total is None
        assert handle.settled is False

    def test_total_known_after_stream_end(self, handle):
        handle.record_read(10)
        handle.record_read(5)
        assert handle.bytes_total is None

        handle.finish_reading()

        assert handle.bytes_total == 15

    def test_record_transferred_notifies_observer(self, handle):
        observer = RecordingObserver()

        handle.record_transferred(2, 100, observer)
        handle.record_transferred(1, 50, observer)

        assert [e.bytes_transferred for e in observer.events] == [100, 150]
        assert [e.part_number for e in observer.events] == [2, 1]
        assert all(e.bytes_total is None for e in observer.events)

    def test_observer_error_is_contained(self, handle, caplog):
        class BrokenObserver:
            def on_progress(self, event):
                raise BrokenPipeError("stdout closed")

        event = handle.record_transferred(1, 100, BrokenObserver())

        assert event.bytes_transferred == 100
        assert handle.bytes_transferred == 100
        assert handle.failed is False
        assert "Progress observer failed" in caplog.text


    def test_first_failure_is_kept(self, handle):
        first = RuntimeError("first")

        handle.record_failure(first)
        handle.record_failure(RuntimeError("second"))

        assert handle.error is first
        assert handle.failed is True

    def test_settle_is_terminal(self, handle):
        handle.settle(TransferState.SUCCEEDED)

        assert handle.settled is True
        with pytest.raises(RuntimeError, match="already settled"):
            handle.settle(TransferState.ABORTED)
