"""Command-line interface for the bucket uploader.

Provides argument parsing and the main entry point for uploading a
local file from the command line.
"""

import argparse
import logging
import signal
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

from rich.console import Console
from rich.logging import RichHandler

from bucket_uploader.cancellation import CancellationToken
from bucket_uploader.config import ConfigError, load_config
from bucket_uploader.errors import AbortedError, LocalFileError, UploadError
from bucket_uploader.models import AccessPolicy
from bucket_uploader.orchestrator import TransferOrchestrator, validate_local_file
from bucket_uploader.reporters import ConsoleReporter
from bucket_uploader.s3_client import ObjectStoreClient
from bucket_uploader.uploader import StreamingUploader

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="bucket-uploader",
        description="Upload a file to an S3-compatible bucket (e.g. Cloudflare R2)",
    )

    parser.add_argument(
        "path",
        help="Path of the local file to upload",
    )

    parser.add_argument(
        "-d", "--delete-after-upload",
        action="store_true",
        help="Delete the file after successful upload",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress per-part progress output",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--acl",
        choices=[policy.value for policy in AccessPolicy],
        default=AccessPolicy.PRIVATE.value,
        help="Access policy of the uploaded object (default: private)",
    )

    parser.add_argument(
        "--env-file",
        metavar="PATH",
        default=".env",
        help="dotenv file with S3_* settings (default: .env)",
    )

    return parser.parse_args(argv)


def configure_logging(verbose: bool = False) -> None:
    """Send log records to stderr through Rich."""
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    # botocore is very chatty at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


@contextmanager
def cancel_on_interrupt(token: CancellationToken) -> Iterator[None]:
    """Turn Ctrl-C into a cancellation request while the block runs."""

    def handle_sigint(signum, frame):
        if not token.cancel("interrupted"):
            logger.warning("Already cancelling, waiting for in-flight parts")

    previous = signal.signal(signal.SIGINT, handle_sigint)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code: 0 on completion (upload errors are reported, not
        raised), 1 if the local file is missing, 2 for configuration errors
    """
    args = parse_args(argv)
    configure_logging(args.verbose)

    # Fail fast on a bad path before touching configuration or the network
    try:
        validate_local_file(args.path)
    except LocalFileError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        config = load_config(args.env_file)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    access_policy = AccessPolicy(args.acl)
    reporter = ConsoleReporter(quiet=args.quiet, access_policy=access_policy)
    uploader = StreamingUploader(ObjectStoreClient.from_config(config))
    orchestrator = TransferOrchestrator(
        uploader, reporter=reporter, access_policy=access_policy
    )

    token = CancellationToken()
    token.on_cancel(lambda: logger.warning("Cancelling upload of %s", args.path))

    with cancel_on_interrupt(token):
        try:
            orchestrator.run(
                args.path,
                delete_after_upload=args.delete_after_upload,
                cancellation_token=token,
            )
        except LocalFileError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except (UploadError, AbortedError) as e:
            logger.error("Error during upload: %s", e)

    return 0


if __name__ == "__main__":
    sys.exit(main())
