"""Core sync engine for executing sync operations."""

import logging
import os
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from rich.progress import Progress, SpinnerColumn, TextColumn

from ..api import BosClient
from ..exceptions import SyncAbortedError
from ..output import OutputFormatter
from ..utils import BOS_PATH_SEPARATOR, abs_local_path, format_size
from .args import BOS_TO_BOS, BOS_TO_LOCAL, LOCAL_TO_BOS, SyncArgs
from .comparator import Comparator, SyncOperation
from .filter import SyncFilter
from .modes import SideType, SyncType
from .operations import SyncOperations
from .scanner import LocalFileLister, RemoteObjectLister, _Lister
from .strategies import SyncActionType, build_sync_strategies

logger = logging.getLogger(__name__)


class TaskKind(str, Enum):
    """Concrete operation derived from a sync action and direction."""

    UPLOAD = "Upload"
    DOWNLOAD = "Download"
    COPY = "Copy"
    REMOVE = "Remove"
    """Delete a remote object"""

    DELETE = "Delete"
    """Delete a local file"""

    ERROR = "Error"
    """Destination is a directory where a file is expected"""


STAT_KEYS = {
    TaskKind.UPLOAD: "uploads",
    TaskKind.DOWNLOAD: "downloads",
    TaskKind.COPY: "copies",
    TaskKind.REMOVE: "deletes_remote",
    TaskKind.DELETE: "deletes_local",
}


@dataclass
class SyncTask:
    """An operation ready to be executed."""

    kind: TaskKind
    op: SyncOperation
    description: str


class SyncEngine:
    """Drives listers, comparator and transfers for one sync run."""

    def __init__(
        self,
        src_client: Optional[BosClient] = None,
        dst_client: Optional[BosClient] = None,
        output: Optional[OutputFormatter] = None,
        storage_class: str = "",
    ):
        """Initialize sync engine.

        Args:
            src_client: Client of a remote source
            dst_client: Client of a remote destination
            output: Output formatter for displaying progress/status
            storage_class: Storage class for uploaded and copied objects
        """
        self.src_client = src_client
        self.dst_client = dst_client
        self.output = output or OutputFormatter()
        self.operations = SyncOperations(src_client, dst_client, storage_class)
        self._stats_lock = threading.Lock()

    def sync(
        self,
        args: SyncArgs,
        sync_type: SyncType = SyncType.TIME_SIZE,
        filter: Optional[SyncFilter] = None,
        delete_filter: Optional[SyncFilter] = None,
        delete: bool = False,
        dry_run: bool = False,
        follow_symlinks: bool = False,
    ) -> dict:
        """Run one sync.

        Args:
            args: Parsed source and destination
            sync_type: How items present on both sides are compared
            filter: Filter applied to the source listing
            delete_filter: Patterns protecting destination items from deletion
            delete: Delete destination items missing from the source
            dry_run: If True, only show what would be done
            follow_symlinks: Sync symlinked local files with their target's content

        Returns:
            Dictionary with sync statistics

        Raises:
            SyncAbortedError: If listing or comparison fails; carries the
                statistics of the operations already executed

        Examples:
            >>> engine = SyncEngine(dst_client=client)
            >>> args = SyncArgs.parse("./photos", "bos:/bucket/photos")
            >>> stats = engine.sync(args, dry_run=True)
            >>> print(f"Would upload {stats['uploads']} files")
        """
        if not self.output.quiet:
            self.output.info(f"Syncing: {args.src_path} -> {args.dst_path}")
            self.output.info(f"Sync type: {sync_type.value}")
            if dry_run:
                self.output.info("Dry run: No changes will be made")
            self.output.print("")

        src_lister = self._build_lister(
            args.src_type,
            args.src_path,
            args.src_bucket,
            args.src_object_key,
            self.src_client,
            filter,
            follow_symlinks,
        )
        dst_lister = self._build_lister(
            args.dst_type,
            args.dst_path,
            args.dst_bucket,
            args.dst_object_key,
            self.dst_client,
            None,
            follow_symlinks,
        )
        at_both_side, not_at_dst, not_at_src = build_sync_strategies(
            sync_type,
            args,
            delete=delete,
            delete_filter=delete_filter,
            src_client=self.src_client,
            dst_client=self.dst_client,
        )
        comparator = Comparator(
            at_both_side, not_at_dst, not_at_src, args, src_lister, dst_lister
        )

        stats = self._create_empty_stats()
        if dry_run:
            error = self._plan(comparator, args, stats)
        else:
            error = self._execute(comparator, args, stats)

        if error is not None:
            self.output.error(f"Sync aborted: {error}")
            raise SyncAbortedError(str(error), stats=stats) from error

        if not self.output.quiet:
            self._display_summary(stats, dry_run)
        return stats

    def _build_lister(
        self,
        side: SideType,
        path: str,
        bucket: str,
        object_key: str,
        client: Optional[BosClient],
        filter: Optional[SyncFilter],
        follow_symlinks: bool,
    ) -> _Lister:
        if side == SideType.LOCAL:
            return LocalFileLister(
                abs_local_path(path), filter=filter, follow_symlinks=follow_symlinks
            )
        if client is None:
            raise ValueError(f"A client is required to list bos:/{bucket}/{object_key}")
        return RemoteObjectLister(client, filter, bucket, object_key)

    def _create_empty_stats(self) -> dict:
        return {
            "uploads": 0,
            "downloads": 0,
            "copies": 0,
            "deletes_local": 0,
            "deletes_remote": 0,
            "failed": 0,
        }

    def _to_task(self, op: SyncOperation, args: SyncArgs) -> Optional[SyncTask]:
        """Map a comparator operation to an executable task.

        Returns:
            SyncTask, or None if nothing is to be done for the operation
        """
        if op.action == SyncActionType.COPY:
            if args.sync_type == LOCAL_TO_BOS:
                kind = TaskKind.UPLOAD
                description = (
                    f"{kind.value}: {op.src_path} to bos:/{args.dst_bucket}/{op.dst_path}"
                )
            elif args.sync_type == BOS_TO_LOCAL:
                kind = TaskKind.DOWNLOAD
                description = (
                    f"{kind.value}: bos:/{args.src_bucket}/{op.src_path} to {op.dst_path}"
                )
            elif args.sync_type == BOS_TO_BOS:
                kind = TaskKind.COPY
                description = (
                    f"{kind.value}: bos:/{args.src_bucket}/{op.src_path} to "
                    f"bos:/{args.dst_bucket}/{op.dst_path}"
                )
            else:
                raise ValueError(f"Unknown sync direction: {args.sync_type}")
            if args.dst_type == SideType.LOCAL and os.path.isdir(op.dst_path):
                kind = TaskKind.ERROR
        elif op.action == SyncActionType.DELETE:
            if args.dst_type == SideType.BOS:
                kind = TaskKind.REMOVE
                description = f"{kind.value}: bos:/{args.dst_bucket}/{op.dst_path}"
            else:
                kind = TaskKind.DELETE
                description = f"{kind.value}: {op.dst_path}"
        else:
            return None
        return SyncTask(kind=kind, op=op, description=description)

    def _next_tasks(self, comparator: Comparator, args: SyncArgs, progress: Progress):
        """Yield tasks from the comparator; the generator's return value is the
        fatal error, if any."""
        task_id = progress.add_task("Comparing source and destination...", total=None)
        compared = 0
        while True:
            try:
                op = comparator.next()
            except Exception as e:
                return e
            if op.error is not None:
                return op.error
            if op.ended:
                return None

            compared += 1
            progress.update(task_id, description=f"Processed {compared} operation(s)")

            # Directory objects have no local counterpart
            if args.sync_type == BOS_TO_LOCAL and op.src_path.endswith(BOS_PATH_SEPARATOR):
                continue

            task = self._to_task(op, args)
            if task is not None:
                yield task

    def _progress(self) -> Progress:
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            disable=self.output.quiet or self.output.json_output,
        )

    def _plan(self, comparator: Comparator, args: SyncArgs, stats: dict) -> Optional[BaseException]:
        """Print the operations a real run would execute."""
        with self._progress() as progress:
            tasks = self._next_tasks(comparator, args, progress)
            while True:
                try:
                    task = next(tasks)
                except StopIteration as stop:
                    return stop.value
                if task.kind == TaskKind.ERROR:
                    stats["failed"] += 1
                else:
                    stats[STAT_KEYS[task.kind]] += 1
                self.output.info(task.description)

    def _execute(
        self, comparator: Comparator, args: SyncArgs, stats: dict
    ) -> Optional[BaseException]:
        """Execute tasks with at most ``args.concurrency`` in flight."""
        in_flight = threading.BoundedSemaphore(args.concurrency)
        logger.debug(f"Executing sync operations with {args.concurrency} workers")

        def on_done(future: Future) -> None:
            in_flight.release()
            kind, success = future.result()
            with self._stats_lock:
                if success:
                    stats[STAT_KEYS[kind]] += 1
                else:
                    stats["failed"] += 1

        error: Optional[BaseException] = None
        with ThreadPoolExecutor(max_workers=args.concurrency) as executor:
            with self._progress() as progress:
                tasks = self._next_tasks(comparator, args, progress)
                while True:
                    try:
                        task = next(tasks)
                    except StopIteration as stop:
                        error = stop.value
                        break
                    in_flight.acquire()
                    future = executor.submit(self._execute_with_timing, task, args)
                    future.add_done_callback(on_done)
        return error

    def _execute_with_timing(self, task: SyncTask, args: SyncArgs) -> tuple[TaskKind, bool]:
        start = time.time()
        success = True
        try:
            self._execute_single_task(task, args)
        except Exception as e:
            self.output.error(f"Failed {task.description}. Error: {e}")
            success = False
        elapsed = time.time() - start
        if success and task.op.src_file is not None:
            logger.debug(
                f"Completed {task.description} "
                f"({format_size(task.op.src_file.size)}) in {elapsed:.2f}s"
            )
        elif success:
            logger.debug(f"Completed {task.description} in {elapsed:.2f}s")
        else:
            logger.debug(f"Failed {task.description} in {elapsed:.2f}s")
        return task.kind, success

    def _execute_single_task(self, task: SyncTask, args: SyncArgs) -> None:
        op = task.op
        if task.kind == TaskKind.UPLOAD:
            local_path = op.src_path
            if op.src_file is not None and op.src_file.real_path:
                local_path = op.src_file.real_path
            self.operations.upload(local_path, args.dst_bucket, op.dst_path)
        elif task.kind == TaskKind.DOWNLOAD:
            self.operations.download(args.src_bucket, op.src_path, op.dst_path)
        elif task.kind == TaskKind.COPY:
            self.operations.copy(args.src_bucket, op.src_path, args.dst_bucket, op.dst_path)
        elif task.kind == TaskKind.REMOVE:
            self.operations.delete_object(args.dst_bucket, op.dst_path)
        elif task.kind == TaskKind.DELETE:
            self.operations.delete_local(op.dst_path)
        else:
            raise IsADirectoryError(
                f"Sync destination is a folder instead of a file: {op.dst_path}"
            )

    def _display_summary(self, stats: dict, dry_run: bool) -> None:
        """Display sync summary.

        Args:
            stats: Statistics dictionary
            dry_run: Whether this was a dry run
        """
        self.output.print("")
        if dry_run:
            self.output.success("Dry run complete!")
        else:
            self.output.success("Sync complete!")

        total_actions = sum(stats[key] for key in STAT_KEYS.values())
        if total_actions > 0:
            self.output.info(f"Total actions: {total_actions}")
            if stats["uploads"] > 0:
                self.output.info(f"  Uploaded: {stats['uploads']}")
            if stats["downloads"] > 0:
                self.output.info(f"  Downloaded: {stats['downloads']}")
            if stats["copies"] > 0:
                self.output.info(f"  Copied: {stats['copies']}")
            if stats["deletes_local"] > 0:
                self.output.info(f"  Deleted locally: {stats['deletes_local']}")
            if stats["deletes_remote"] > 0:
                self.output.info(f"  Deleted remotely: {stats['deletes_remote']}")
        else:
            self.output.info("No changes needed - everything is in sync!")

        if stats["failed"] > 0:
            self.output.warning(f"Failed: {stats['failed']} operation(s)")
