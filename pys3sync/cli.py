"""CLI interface for pys3sync."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .cli_progress import run_sync_with_progress
from .config import config
from .exceptions import S3SyncConfigError, S3SyncError
from .models import IdentityScope, UserRole
from .output import OutputFormatter
from .storage import S3Storage
from .sync import (
    RESOLVERS,
    ActionExecutor,
    CancellationToken,
    ConflictResolver,
    DirectoryScanner,
    SnapshotStateManager,
    SyncActionRequest,
    SyncActionType,
    SyncEngine,
    get_resolver,
)
from .utils import format_iso_timestamp

logger = logging.getLogger(__name__)

ROLE_CHOICES = [role.value for role in UserRole]
CONFLICT_CHOICES = [*RESOLVERS, "ask"]

# Prompt answer -> action, for the interactive conflict resolver
PROMPT_ACTIONS = {
    "s": SyncActionType.SKIP,
    "u": SyncActionType.UPLOAD,
    "d": SyncActionType.DOWNLOAD,
    "k": SyncActionType.KEEP_BOTH,
}


def make_prompt_resolver(out: OutputFormatter) -> ConflictResolver:
    """Build a resolver that asks the user about each conflict.

    Args:
        out: Output formatter used to describe the conflict

    Returns:
        Conflict resolver backed by ``click.prompt``
    """

    def resolve(request: SyncActionRequest) -> SyncActionType:
        out.warning(f"Conflict: {request.path} ({request.reason})")
        choices = ["s"]
        if request.local is not None:
            out.print(
                f"  local:  {out.format_size(request.local.size)}, "
                f"modified {format_iso_timestamp(request.local.last_modified)}"
            )
            choices.append("u")
        else:
            out.print("  local:  deleted")
        if request.remote is not None:
            out.print(
                f"  remote: {out.format_size(request.remote.size)}, "
                f"modified {format_iso_timestamp(request.remote.last_modified)}"
            )
            choices.extend(["d", "k"])
        else:
            out.print("  remote: deleted")

        answer = click.prompt(
            "[s]kip, [u]pload local, [d]ownload remote, [k]eep both",
            type=click.Choice(choices),
            default="s",
            show_choices=False,
        )
        return PROMPT_ACTIONS[answer]

    return resolve


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pys3sync")
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """pys3sync - Two-way sync between a local folder and an S3 bucket."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pys3sync").setLevel(logging.DEBUG)
    else:
        # Set default logging level to WARNING to suppress debug/info messages
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option("--bucket", prompt="S3 bucket name", help="Bucket to sync with")
@click.option(
    "--region", prompt="AWS region (empty for default)", default="", help="AWS region"
)
@click.option(
    "--endpoint-url",
    prompt="Endpoint URL (empty for AWS)",
    default="",
    help="Endpoint of an S3-compatible service",
)
@click.option(
    "--role",
    prompt="Role",
    type=click.Choice(ROLE_CHOICES, case_sensitive=False),
    default=UserRole.USER.value,
    help="Role used to filter listings and tag uploads",
)
@click.pass_context
def init(
    ctx: Any, bucket: str, region: str, endpoint_url: str, role: str
) -> None:
    """Initialize pys3sync configuration.

    Stores the bucket settings in ~/.config/pys3sync/config.json.
    Credentials are taken from the usual AWS sources.
    """
    out: OutputFormatter = ctx.obj["out"]

    if not bucket.strip():
        out.error("Bucket name cannot be empty")
        ctx.exit(1)

    try:
        config.save(
            bucket=bucket.strip(),
            region=region.strip() or None,
            endpoint_url=endpoint_url.strip() or None,
            role=UserRole.parse(role).value,
        )
    except (OSError, S3SyncConfigError) as e:
        out.error(f"Cannot save configuration: {e}")
        ctx.exit(1)

    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "✓ Configuration saved successfully"),
            ("Config file", str(config.get_config_path())),
            ("Bucket", bucket.strip()),
        ],
    )


def _print_stats(out: OutputFormatter, stats: dict, dry_run: bool) -> None:
    if out.json_output:
        out.output_json(stats)
        return

    title = "Sync Plan (dry run)" if dry_run else "Sync Complete"
    items = [
        ("Uploaded", str(stats["uploads"])),
        ("Downloaded", str(stats["downloads"])),
        ("Deleted locally", str(stats["deletes_local"])),
        ("Deleted remotely", str(stats["deletes_remote"])),
        ("Kept both", str(stats["keep_both"])),
        ("Unchanged/skipped", str(stats["skips"])),
        ("Conflicts", str(stats["conflicts"])),
    ]
    if not dry_run:
        items.append(("Failed", str(stats["failed"])))
    out.print_summary(title, items)

    if stats["cancelled"]:
        out.warning(
            f"Sync cancelled after {stats['processed']} of {stats['total']} actions"
        )


@main.command()
@click.argument(
    "local_path", type=click.Path(file_okay=False, path_type=Path)
)
@click.option(
    "--remote-prefix",
    "-r",
    help="Remote prefix to sync with (default: local folder name)",
)
@click.option(
    "--role",
    type=click.Choice(ROLE_CHOICES, case_sensitive=False),
    default=None,
    help="Role used to filter listings and tag uploads (default: configured role)",
)
@click.option(
    "--dry-run", is_flag=True, help="Show what would be synced without syncing"
)
@click.option(
    "--conflict",
    type=click.Choice(CONFLICT_CHOICES),
    default=None,
    help="Conflict policy (default: skip, or newest with --interval)",
)
@click.option(
    "--max-bytes-per-second",
    type=int,
    default=None,
    help="Bandwidth limit per transfer in bytes/s (0 = unlimited)",
)
@click.option(
    "--exclude",
    "-e",
    multiple=True,
    help="Glob pattern to exclude (can be repeated)",
)
@click.option(
    "--include",
    "-i",
    multiple=True,
    help="Glob pattern a file must match to be synced (can be repeated)",
)
@click.option(
    "--exclude-dot-files", is_flag=True, help="Exclude files and folders starting with ."
)
@click.option(
    "--trash", is_flag=True, help="Move locally deleted files to the system trash"
)
@click.option("--no-progress", is_flag=True, help="Disable progress bars")
@click.option(
    "--interval",
    type=click.IntRange(min=1),
    default=None,
    help="Repeat the sync every SECONDS until interrupted",
)
@click.pass_context
def sync(
    ctx: Any,
    local_path: Path,
    remote_prefix: Optional[str],
    role: Optional[str],
    dry_run: bool,
    conflict: Optional[str],
    max_bytes_per_second: Optional[int],
    exclude: tuple[str, ...],
    include: tuple[str, ...],
    exclude_dot_files: bool,
    trash: bool,
    no_progress: bool,
    interval: Optional[int],
) -> None:
    """Sync a local directory with a prefix in the configured bucket.

    Changes made on either side since the last sync are carried to the
    other side. Files changed on both sides are conflicts, handled
    according to --conflict.

    Examples:
        pys3sync sync ./docs                       # Sync with prefix "docs"
        pys3sync sync ./docs -r team/docs          # Explicit remote prefix
        pys3sync sync ./docs --dry-run             # Preview changes
        pys3sync sync ./docs --conflict keep-both  # Keep both versions
        pys3sync sync ./docs --interval 300        # Sync every 5 minutes
        pys3sync sync ./docs -i "*.pdf"            # Only sync PDF files
    """
    out: OutputFormatter = ctx.obj["out"]

    if not local_path.exists():
        out.error(f"Path does not exist: {local_path}")
        ctx.exit(1)

    if not config.is_configured():
        out.error("Bucket not configured.")
        out.info("Run 'pys3sync init' or set PYS3SYNC_BUCKET")
        ctx.exit(1)

    if max_bytes_per_second is not None and max_bytes_per_second < 0:
        out.error("--max-bytes-per-second cannot be negative")
        ctx.exit(1)

    if remote_prefix is None:
        remote_prefix = local_path.resolve().name
    remote_prefix = remote_prefix.strip("/")

    if conflict is None:
        conflict = "newest" if interval else "skip"
    if conflict == "ask":
        resolver = make_prompt_resolver(out)
        # A live progress bar would hide the prompts
        no_progress = True
    else:
        resolver = get_resolver(conflict)

    cancel_token = CancellationToken()

    try:
        scope = IdentityScope.for_role(
            UserRole.parse(role) if role else config.role
        )
        overrides: dict[str, Any] = {}
        if max_bytes_per_second is not None:
            overrides["max_bytes_per_second"] = max_bytes_per_second
        storage = S3Storage.from_config(config, **overrides)
        store = SnapshotStateManager(config.state_dir).open_store(
            local_path, remote_prefix
        )
        engine = SyncEngine(
            storage,
            store,
            executor=ActionExecutor(storage, store, use_trash=trash),
            scanner=DirectoryScanner(
                ignore_patterns=list(exclude),
                exclude_dot_files=exclude_dot_files,
                include_patterns=list(include),
            ),
        )

        if not out.quiet:
            out.info(f"Bucket: {storage.bucket}")
            out.info(f"Local path: {local_path}")
            out.info(f"Remote prefix: {remote_prefix or '/'}")
            out.info(f"Role: {', '.join(r.value for r in scope.tag_roles)}")
            if dry_run:
                out.info("Dry run: No changes will be made")
            out.print("")

        sync_kwargs: dict[str, Any] = {
            "local_path": local_path,
            "remote_prefix": remote_prefix,
            "scope": scope,
            "conflict_resolver": resolver,
            "cancel_token": cancel_token,
            "dry_run": dry_run,
        }

        while True:
            if no_progress or out.quiet or out.json_output:
                stats = engine.sync(**sync_kwargs)
            else:
                stats = run_sync_with_progress(engine, **sync_kwargs)
            _print_stats(out, stats, dry_run)

            if stats["conflicts"] > 0 and conflict == "skip" and not out.quiet:
                out.warning(
                    f"{stats['conflicts']} conflict(s) were skipped. "
                    "Use --conflict to resolve them."
                )

            if interval is None or dry_run:
                break
            out.info(f"Next sync in {interval}s (Ctrl+C to stop)")
            cancel_token.wait(interval)

        if stats["failed"] > 0:
            ctx.exit(1)

    except KeyboardInterrupt:
        cancel_token.cancel()
        out.warning("Sync cancelled by user")
        ctx.exit(130)
    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)
    except ValueError as e:
        out.error(f"Error: {e}")
        ctx.exit(1)


@main.command("reset-state")
@click.argument(
    "local_path", type=click.Path(file_okay=False, path_type=Path)
)
@click.option(
    "--remote-prefix",
    "-r",
    help="Remote prefix of the sync pair (default: local folder name)",
)
@click.pass_context
def reset_state(ctx: Any, local_path: Path, remote_prefix: Optional[str]) -> None:
    """Forget the last-synced state of a sync pair.

    The next sync treats every file as new: files present on only one
    side are copied, files present on both sides become conflicts.
    """
    out: OutputFormatter = ctx.obj["out"]

    if remote_prefix is None:
        remote_prefix = local_path.resolve().name
    remote_prefix = remote_prefix.strip("/")

    try:
        cleared = SnapshotStateManager(config.state_dir).clear_state(
            local_path, remote_prefix
        )
    except (OSError, S3SyncError) as e:
        out.error(f"Cannot reset state: {e}")
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json({"cleared": cleared})
    elif cleared:
        out.success(f"Sync state cleared for {local_path} <-> {remote_prefix or '/'}")
    else:
        out.info("No sync state found")


if __name__ == "__main__":
    main()
