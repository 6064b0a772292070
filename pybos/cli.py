"""CLI interface for pybos."""

import logging
from typing import Any, Optional

import click

from .api import BosClient
from .config import config
from .exceptions import BosConfigError, BosError, SyncAbortedError, SyncConfigError, get_suggestion
from .output import OutputFormatter
from .sync import (
    SideType,
    SyncArgs,
    SyncEngine,
    SyncFilter,
    SyncType,
    new_sync_filter,
)
from .utils import is_bos_path

logger = logging.getLogger(__name__)


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pybos")
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """pybos - Sync local directories with Baidu Object Storage."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pybos").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command(name="config")
@click.option("--access-key-id", "-a", prompt="Access key ID", help="BCE access key ID")
@click.option(
    "--secret-access-key",
    "-s",
    prompt="Secret access key",
    hide_input=True,
    help="BCE secret access key",
)
@click.option(
    "--endpoint",
    "-e",
    default=None,
    help="BOS endpoint (default: bj.bcebos.com)",
)
@click.pass_context
def configure(
    ctx: Any,
    access_key_id: str,
    secret_access_key: str,
    endpoint: Optional[str],
) -> None:
    """Store credentials in ~/.config/pybos/config."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        config.save_credentials(access_key_id, secret_access_key, endpoint)
    except OSError as e:
        out.error(f"Could not write configuration: {e}")
        ctx.exit(1)

    out.success(f"Configuration saved to {config.get_config_path()}")


def _exit_with_config_error(ctx: Any, out: OutputFormatter, error: BosError) -> None:
    out.error(str(error))
    suggestion = get_suggestion(error.code)
    if suggestion:
        out.info(f"Suggestion: {suggestion}")
    ctx.exit(1)


def _confirm_delete(src: str, dst: str, with_filters: bool) -> bool:
    if with_filters:
        return click.confirm(
            "NOTICE: when filters and --delete are used together, items on the "
            "destination that are filtered out on the source are deleted, even "
            "though they may exist on the source. Do you really want to REMOVE "
            "the filtered items?",
            default=False,
        )
    return click.confirm(
        f"Do you really want to REMOVE items that do not exist on {src} but exist on {dst}?",
        default=False,
    )


@main.command()
@click.argument("src")
@click.argument("dst")
@click.option(
    "--exclude",
    multiple=True,
    help="Skip source items matching this glob (repeatable)",
)
@click.option(
    "--include",
    multiple=True,
    help="Only sync source items matching this glob (repeatable)",
)
@click.option(
    "--exclude-time",
    multiple=True,
    help="Skip source items modified in 'START,END' (repeatable)",
)
@click.option(
    "--include-time",
    multiple=True,
    help="Only sync source items modified in 'START,END' (repeatable)",
)
@click.option(
    "--exclude-delete",
    multiple=True,
    help="Never delete destination items matching this glob (repeatable)",
)
@click.option(
    "--delete",
    is_flag=True,
    help="Delete destination items that do not exist on the source",
)
@click.option("--dry-run", is_flag=True, help="Show what would be done without doing it")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for delete confirmation")
@click.option(
    "--sync-type",
    type=click.Choice([t.value for t in SyncType]),
    default=SyncType.TIME_SIZE.value,
    show_default=True,
    help="How to compare items present on both sides",
)
@click.option(
    "--concurrency",
    "-j",
    type=int,
    default=0,
    help="Operations in flight (0 uses the configured default)",
)
@click.option(
    "--follow-symlinks",
    is_flag=True,
    help="Sync symlinked local files using their target's content",
)
@click.option(
    "--storage-class",
    default="",
    help="Storage class of uploaded or copied objects",
)
@click.pass_context
def sync(
    ctx: Any,
    src: str,
    dst: str,
    exclude: tuple[str, ...],
    include: tuple[str, ...],
    exclude_time: tuple[str, ...],
    include_time: tuple[str, ...],
    exclude_delete: tuple[str, ...],
    delete: bool,
    dry_run: bool,
    yes: bool,
    sync_type: str,
    concurrency: int,
    follow_symlinks: bool,
    storage_class: str,
) -> None:
    """Sync SRC to DST.

    One of SRC and DST is a local directory, the other a BOS path
    (bos:/bucket/prefix); both may be BOS paths.

    Examples:
        pybos sync ./photos bos:/my-bucket/photos
        pybos sync bos:/my-bucket/photos ./photos --delete
        pybos sync bos:/a/data bos:/b/data --sync-type time-size-crc32
        pybos sync ./site bos:/www --exclude '*.tmp' --dry-run
    """
    out: OutputFormatter = ctx.obj["out"]
    has_filters = bool(exclude or include or exclude_time or include_time)

    sync_filter: Optional[SyncFilter] = None
    delete_filter: Optional[SyncFilter] = None
    try:
        if has_filters:
            sync_filter = new_sync_filter(
                list(exclude),
                list(include),
                list(exclude_time),
                list(include_time),
                is_local=not is_bos_path(src),
            )
        args = SyncArgs.parse(src, dst, concurrency)
        if delete and exclude_delete:
            delete_filter = new_sync_filter(
                list(exclude_delete), is_local=args.dst_type == SideType.LOCAL
            )
    except SyncConfigError as e:
        _exit_with_config_error(ctx, out, e)
        return

    if delete and not yes and not dry_run:
        if not _confirm_delete(src, dst, has_filters):
            out.warning("Operation cancelled.")
            ctx.exit(1)

    try:
        src_client = BosClient() if args.src_type == SideType.BOS else None
        dst_client = BosClient() if args.dst_type == SideType.BOS else None
    except BosConfigError as e:
        _exit_with_config_error(ctx, out, e)
        return

    engine = SyncEngine(src_client, dst_client, out, storage_class=storage_class)
    try:
        stats = engine.sync(
            args,
            sync_type=SyncType.from_string(sync_type),
            filter=sync_filter,
            delete_filter=delete_filter,
            delete=delete,
            dry_run=dry_run,
            follow_symlinks=follow_symlinks,
        )
    except SyncAbortedError as e:
        succeeded = _succeeded(e.stats)
        out.info(
            f"Sync interrupted: {args.src_path} to {args.dst_path}, "
            f"[{succeeded}] success, [{e.stats.get('failed', 0)}] failure"
        )
        if out.json_output:
            out.output_json({"error": str(e), **e.stats})
        ctx.exit(1)
        return
    finally:
        for client in (src_client, dst_client):
            if client is not None:
                client.close()

    if out.json_output:
        out.output_json(stats)
    elif not dry_run:
        out.info(
            f"Sync done: {args.src_path} to {args.dst_path}, "
            f"[{_succeeded(stats)}] success, [{stats['failed']}] failure"
        )

    if stats["failed"] > 0:
        ctx.exit(1)


def _succeeded(stats: dict) -> int:
    return sum(
        stats.get(key, 0)
        for key in ("uploads", "downloads", "copies", "deletes_local", "deletes_remote")
    )


if __name__ == "__main__":
    main()
