"""CLI interface for PyMirror."""

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import nullcontext
from pathlib import Path
from typing import Any, Callable, Optional, Union

import click

from .api import CloudClient
from .config import config
from .exceptions import CloudAPIError, CloudConfigError, SyncInProgressError
from .output import OutputFormatter
from .sync import (
    LocalDestination,
    RemoteDestination,
    SyncEngine,
    SyncOptions,
    SyncResult,
    calculate_folder_size,
)
from .utils import format_size

logger = logging.getLogger(__name__)


def require_access_token(ctx: Any, out: OutputFormatter) -> str:
    """Return the token from --token or the config, or exit with a hint."""
    access_token = ctx.obj.get("access_token") or config.access_token
    if not access_token:
        out.error("Access token not configured.")
        out.info("Run 'pymirror init' to configure your access token")
        ctx.exit(1)
    return access_token


def open_client(ctx: Any, out: OutputFormatter) -> CloudClient:
    """Create an API client from the configured token, or exit."""
    access_token = require_access_token(ctx, out)
    try:
        return CloudClient(access_token=access_token)
    except CloudConfigError as e:
        out.error(str(e))
        ctx.exit(1)


@click.group()
@click.option(
    "--token",
    "-t",
    "access_token",
    envvar="PYMIRROR_ACCESS_TOKEN",
    help="Google Drive OAuth access token",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pymirror")
@click.pass_context
def main(
    ctx: Any,
    access_token: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """PyMirror - Mirror folders to another drive or back them up to the cloud."""
    ctx.ensure_object(dict)
    ctx.obj["access_token"] = access_token
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pymirror").setLevel(logging.DEBUG)
    else:
        # Keep debug/info messages out of the terminal
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--token",
    "-t",
    "access_token",
    prompt="Enter your Google Drive access token",
    help="Google Drive OAuth access token",
)
@click.pass_context
def init(ctx: Any, access_token: str) -> None:
    """Initialize PyMirror configuration.

    Stores your access token in ~/.config/pymirror/config.json for future use.
    """
    out: OutputFormatter = ctx.obj["out"]

    out.info("Validating access token...")
    try:
        with CloudClient(access_token=access_token) as client:
            user_info = client.get_logged_user()
        if not user_info or not user_info.get("user"):
            raise CloudAPIError("Invalid access token")
        out.success("✓ Access token is valid")
    except CloudAPIError as e:
        out.error(f"Access token validation failed: {e}")
        if not click.confirm("Save access token anyway?", default=False):
            out.warning("Configuration cancelled.")
            ctx.exit(1)

    try:
        config.save_access_token(access_token)
    except OSError as e:
        out.error(f"Could not save configuration: {e}")
        ctx.exit(1)

    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "✓ Configuration saved successfully"),
            ("Config file", str(config.config_file)),
        ],
    )


def _print_result(
    out: OutputFormatter, result: SyncResult, label: str = "Sync"
) -> None:
    """Print a run result as JSON or as a human-readable summary."""
    if out.json_output:
        out.output_json(result.to_dict())
        return

    failed = len(result.errors)
    summary = (
        f"{result.files_created} created, {result.files_updated} updated, "
        f"{result.files_deleted} deleted, {failed} failed"
    )
    if result.canceled:
        out.warning(f"{label} canceled: {summary}")
    elif result.success:
        out.success(f"✓ {label} complete: {summary}")
    else:
        out.warning(f"{label} finished with errors: {summary}")

    out.print_summary(
        f"{label} Summary",
        [
            ("Unchanged", str(result.files_skipped)),
            ("Processed", format_size(result.bytes_transferred)),
            ("Duration", f"{result.duration:.1f}s"),
        ],
    )
    for error in result.errors:
        label_or_run = error.file or f"({label.lower()})"
        out.error(f"{label_or_run}: {error.message} [{error.code}]")


def _run_in_worker(
    out: OutputFormatter,
    engine: SyncEngine,
    run: Callable[[], SyncResult],
    show_progress: bool,
) -> SyncResult:
    """Run ``run`` on a worker thread; Ctrl+C cancels after the current file."""
    from .cli_progress import SyncProgressDisplay

    display = SyncProgressDisplay(engine) if show_progress else nullcontext()
    with ThreadPoolExecutor(max_workers=1) as executor:
        # Subscribed before the run starts, so no snapshot is missed
        with display:
            future = executor.submit(run)
            try:
                return future.result()
            except KeyboardInterrupt:
                out.warning("\nCanceling after the current file...")
                engine.cancel()
                return future.result()


@main.command()
@click.argument(
    "source", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.argument(
    "destination",
    required=False,
    type=click.Path(file_okay=False, path_type=Path),
)
@click.option(
    "--remote", "-r", is_flag=True, help="Back up to the cloud instead of a folder"
)
@click.option(
    "--name",
    "-n",
    default=None,
    help="Destination sub-folder name (default: source folder name)",
)
@click.option(
    "--keep-orphans",
    is_flag=True,
    help="Keep destination files that no longer exist in the source",
)
@click.option(
    "--ignore",
    "-i",
    multiple=True,
    help="gitignore-style pattern to ignore (can be given several times)",
)
@click.option(
    "--exclude-dot-files",
    is_flag=True,
    help="Skip files and folders whose name starts with a dot",
)
@click.option(
    "--no-progress",
    is_flag=True,
    help="Disable progress bars",
)
@click.pass_context
def sync(
    ctx: Any,
    source: Path,
    destination: Optional[Path],
    remote: bool,
    name: Optional[str],
    keep_orphans: bool,
    ignore: tuple[str, ...],
    exclude_dot_files: bool,
    no_progress: bool,
) -> None:
    """Mirror SOURCE into DESTINATION, or back it up with --remote.

    SOURCE: Local directory to mirror

    DESTINATION: Local directory receiving DESTINATION/NAME (not used with --remote)

    Local mirrors make DESTINATION/NAME identical to SOURCE, deleting files
    that no longer exist in SOURCE unless --keep-orphans is given. Remote
    backups upload new and changed files into <backup folder>/NAME and never
    delete anything.

    Examples:
        pymirror sync ~/Documents /mnt/usb          # Mirror to /mnt/usb/Documents
        pymirror sync ~/Photos /mnt/nas -n photos   # Mirror to /mnt/nas/photos
        pymirror sync ~/Documents --remote          # Back up to the cloud
    """
    out: OutputFormatter = ctx.obj["out"]
    source = source.resolve()
    folder_name = name or source.name

    target: Union[LocalDestination, RemoteDestination]
    client: Optional[CloudClient] = None
    if remote:
        if destination is not None:
            out.error("DESTINATION cannot be used together with --remote")
            ctx.exit(1)
        client = open_client(ctx, out)
        target = RemoteDestination(source_name=folder_name)
        out.info(f"Backing up {source} to {config.backup_folder}/{folder_name}")
    else:
        if destination is None:
            out.error("DESTINATION is required for local mirrors (or use --remote)")
            ctx.exit(1)
            return
        target = LocalDestination(destination, source_name=folder_name)
        out.info(f"Mirroring {source} to {target.mirror_root}")

    options = SyncOptions(
        delete_orphans=not keep_orphans,
        ignore_patterns=tuple(ignore),
        exclude_dot_files=exclude_dot_files,
    )
    engine = SyncEngine(client)
    show_progress = not (no_progress or out.quiet or out.json_output)

    try:
        result = _run_in_worker(
            out,
            engine,
            lambda: engine.sync(source, target, options),
            show_progress,
        )
    except SyncInProgressError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    finally:
        if client is not None:
            client.close()

    _print_result(out, result)
    if not result.success or result.canceled:
        ctx.exit(1)


@main.command()
@click.option(
    "--backup-folder",
    "-b",
    default=None,
    help="Top-level backup folder (default: configured backup folder)",
)
@click.pass_context
def backups(ctx: Any, backup_folder: Optional[str]) -> None:
    """List the folders backed up with 'sync --remote'."""
    out: OutputFormatter = ctx.obj["out"]
    folder = backup_folder or config.backup_folder

    client = open_client(ctx, out)
    try:
        found = SyncEngine(client).list_backups(folder)
    except CloudAPIError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    finally:
        client.close()

    if out.json_output:
        out.output_json([b.to_dict() for b in found])
        return

    if not found:
        out.warning(f"No backups found in {folder}")
        return

    out.output_table(
        [
            {"name": b.name, "modified": b.modified_time or "", "id": b.id}
            for b in found
        ],
        ["name", "modified", "id"],
        {"name": "Name", "modified": "Modified", "id": "ID"},
    )


@main.command()
@click.argument("name")
@click.argument("destination", type=click.Path(file_okay=False, path_type=Path))
@click.option(
    "--backup-folder",
    "-b",
    default=None,
    help="Top-level backup folder (default: configured backup folder)",
)
@click.option(
    "--ignore",
    "-i",
    multiple=True,
    help="gitignore-style pattern to leave out (can be given several times)",
)
@click.option(
    "--no-progress",
    is_flag=True,
    help="Disable progress bars",
)
@click.pass_context
def restore(
    ctx: Any,
    name: str,
    destination: Path,
    backup_folder: Optional[str],
    ignore: tuple[str, ...],
    no_progress: bool,
) -> None:
    """Download the backup NAME into DESTINATION.

    NAME: Backup to restore (see 'pymirror backups')

    DESTINATION: Local directory the files are written into

    Files that already match the backup are skipped. Local files missing
    from the backup are left alone.

    Examples:
        pymirror restore Documents ~/restored/Documents
    """
    out: OutputFormatter = ctx.obj["out"]
    client = open_client(ctx, out)
    folder = backup_folder or config.backup_folder
    out.info(f"Restoring {folder}/{name} to {destination}")

    engine = SyncEngine(client)
    options = SyncOptions(ignore_patterns=tuple(ignore))
    show_progress = not (no_progress or out.quiet or out.json_output)

    try:
        result = _run_in_worker(
            out,
            engine,
            lambda: engine.restore(name, destination, folder, options),
            show_progress,
        )
    except SyncInProgressError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    finally:
        client.close()

    _print_result(out, result, label="Restore")
    if not result.success or result.canceled:
        ctx.exit(1)


@main.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.pass_context
def du(ctx: Any, path: Path) -> None:
    """Show the total size of the files below a local folder.

    PATH: Local directory to measure
    """
    out: OutputFormatter = ctx.obj["out"]
    size = calculate_folder_size(path)

    if out.json_output:
        out.output_json(
            {"path": str(path), "size": size, "size_human": format_size(size)}
        )
        return

    # Always print the number, even in quiet mode
    click.echo(f"{format_size(size)}\t{path}")


if __name__ == "__main__":
    main()
