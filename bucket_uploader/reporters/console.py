"""Console reporter using Rich library for formatted CLI output.

Prints the transfer start, per-part progress lines, and the final
result of a run. Progress lines are dropped in quiet mode; failures are
always shown.
"""

from typing import Optional

from rich.console import Console
from rich.markup import escape

from bucket_uploader.models import AccessPolicy, ProgressEvent, TransferOutcome, UploadResult
from bucket_uploader.reporters.base import Reporter


def format_bytes(size: Optional[int]) -> str:
    """Render a byte count for humans (e.g. '12.0 MiB')."""
    if size is None:
        return "?"

    if size < 1024:
        return f"{size} B"

    value = size / 1024
    for unit in ("KiB", "MiB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GiB"


class ConsoleReporter(Reporter):
    """Rich-based console reporter for CLI output.

    Args:
        quiet: If True, suppress per-part progress output
        console: Console to print to (defaults to a new one)
        access_policy: Policy the object is written with; the public URL
            is only printed for public objects
    """

    def __init__(
        self,
        quiet: bool = False,
        console: Optional[Console] = None,
        access_policy: AccessPolicy = AccessPolicy.PRIVATE,
    ):
        # Use legacy_windows=True for ASCII-safe output on Windows consoles
        self.console = console or Console(legacy_windows=True)
        self.quiet = quiet
        self.access_policy = access_policy
        self._size_hint: Optional[int] = None

    def on_transfer_start(self, local_path: str, key: str, size: Optional[int]) -> None:
        self._size_hint = size
        self.console.print(
            f"[bold cyan]Uploading[/bold cyan] {escape(key)} ({format_bytes(size)})"
        )

    def on_progress(self, event: ProgressEvent) -> None:
        if self.quiet:
            return

        # The stream length is unknown until its end; the file size is a hint
        total = event.bytes_total if event.bytes_total is not None else self._size_hint
        self.console.print(
            f"  Uploaded {format_bytes(event.bytes_transferred)} of "
            f"{format_bytes(total)} [dim](part {event.part_number})[/dim]"
        )

    def on_upload_complete(self, result: UploadResult) -> None:
        version = f", version {escape(result.version_id)}" if result.version_id else ""
        self.console.print(
            f"[green][OK][/green] Uploaded {escape(result.key)} "
            f"in {result.part_count} part(s){version}"
        )
        if self.access_policy == AccessPolicy.PUBLIC_READ:
            self.console.print(f"     [dim]{escape(result.location)}[/dim]")

    def on_local_delete(self, local_path: str, error: Optional[str]) -> None:
        if error is None:
            self.console.print(f"[green][OK][/green] Deleted local file {escape(local_path)}")
        else:
            self.console.print(
                f"[yellow][WARN][/yellow] Could not delete local file "
                f"{escape(local_path)}: {escape(error)}"
            )

    def on_transfer_failed(self, key: str, error: Exception) -> None:
        self.console.print(f"[red][FAIL][/red] {escape(key)}: {escape(str(error))}")

    def on_transfer_complete(self, outcome: TransferOutcome) -> None:
        if self.quiet:
            return
        self.console.print(
            f"[bold green]Done[/bold green]: {format_bytes(outcome.upload.size)} "
            f"transferred"
        )
