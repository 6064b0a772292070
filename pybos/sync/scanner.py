"""Listers producing sorted record streams for sync operations.

Both listers run on a background thread and hand records to the consumer
through a bounded queue. Records come out in ascending key order, which the
comparator relies on for its merge-join.
"""

import logging
import os
import stat
import time
from collections.abc import Iterator
from typing import Optional

from ..api import BosClient
from ..exceptions import FilterPatternError, MalformedTimestampError
from ..utils import (
    BOS_PATH_SEPARATOR,
    DEFAULT_LIST_TIMEOUT,
    DEFAULT_MAX_KEYS,
    LOCAL_LIST_QUEUE_SIZE,
    LOCAL_LIST_TIMEOUT,
    parse_bos_timestamp,
    read_sorted_dir_names,
    replace_to_bos_path,
)
from .filter import SyncFilter
from .records import DirRecord, FileRecord, ListEndInfo, ListResult
from .stream import BackgroundStream

logger = logging.getLogger(__name__)


class _Lister(BackgroundStream[ListResult]):
    """Common plumbing of the local and remote listers."""

    def _error_item(self, error: BaseException) -> ListResult:
        return ListResult(err=error)

    def _ended_item(self) -> ListResult:
        return ListResult(ended=True)

    def __iter__(self) -> Iterator[ListResult]:
        """Yield elements up to, not including, the end of the stream."""
        while True:
            result = self.next()
            if result.ended and result.err is None:
                return
            yield result
            if result.err is not None:
                return


class RemoteObjectLister(_Lister):
    """Lists objects under a prefix, page by page.

    Examples:
        >>> lister = RemoteObjectLister(client, None, "bucket", "photos/")
        >>> for result in lister:
        ...     print(result.file.key)
    """

    timeout_message = "Get object list time out!"

    def __init__(
        self,
        client: BosClient,
        filter: Optional[SyncFilter],
        bucket: str,
        prefix: str,
        marker: str = "",
        all_pages: bool = True,
        recursive: bool = True,
        src_is_dir: bool = True,
        show_empty_dir: bool = False,
        max_keys: int = DEFAULT_MAX_KEYS,
        timeout: float = DEFAULT_LIST_TIMEOUT,
        start: bool = True,
    ):
        """Initialize the lister and start listing.

        Args:
            client: BOS API client
            filter: Filter applied to ``bucket/key`` paths and mtimes
            bucket: Bucket name
            prefix: Key prefix (or the single object key)
            marker: Key to start listing after
            all_pages: Follow continuation markers until the listing ends
            recursive: List the whole subtree instead of one level
            src_is_dir: False to report the single object ``prefix``
            show_empty_dir: Report the prefix's own directory object
            max_keys: Page size, also the queue capacity
            timeout: Seconds ``next()`` waits for an element
            start: Start the background thread immediately
        """
        super().__init__(maxsize=max_keys, timeout=timeout, name="pybos-remote-lister")
        self.client = client
        self.filter = filter
        self.bucket = bucket
        self.prefix = prefix
        self.marker = marker
        self.all_pages = all_pages
        self.recursive = recursive
        self.src_is_dir = src_is_dir
        self.show_empty_dir = show_empty_dir
        self.max_keys = max_keys
        self.trim_pos = prefix.rfind(BOS_PATH_SEPARATOR) + 1
        if start:
            self.start()

    def _produce(self) -> None:
        if self.src_is_dir:
            self._list_all_objects()
        else:
            self._get_single_object()

    def _get_single_object(self) -> None:
        try:
            meta = self.client.get_object_meta(self.bucket, self.prefix)
        except Exception as e:
            self._emit(ListResult(err=e))
            self._emit(ListResult(ended=True))
            return

        is_dir = self.prefix.endswith(BOS_PATH_SEPARATOR)
        key = self.prefix if self.show_empty_dir and is_dir else self.prefix[self.trim_pos :]
        self._emit(
            ListResult(
                file=FileRecord(
                    path=self.prefix,
                    key=key,
                    size=meta.size,
                    mtime=meta.last_modified,
                    gtime=int(time.time()),
                    storage_class=meta.storage_class,
                    crc32=meta.crc32,
                    is_dir=is_dir,
                )
            )
        )
        self._emit(ListResult(ended=True))

    def _list_all_objects(self) -> None:
        delimiter = "" if self.recursive else BOS_PATH_SEPARATOR
        marker = self.marker
        own_dir_object: Optional[ListResult] = None

        while True:
            try:
                page = self.client.list_objects(
                    self.bucket,
                    prefix=self.prefix,
                    delimiter=delimiter,
                    marker=marker,
                    max_keys=self.max_keys,
                )
            except Exception as e:
                logger.debug(f"Listing bos:/{self.bucket}/{self.prefix} failed: {e}")
                self._emit(ListResult(err=e))
                self._emit(ListResult(ended=True))
                return
            gtime = int(time.time())

            for common_prefix in page.common_prefixes:
                self._emit(
                    ListResult(
                        dir=DirRecord(path=common_prefix, key=common_prefix[self.trim_pos :])
                    )
                )

            for item in page.contents:
                if item.key.endswith(BOS_PATH_SEPARATOR) and not self.recursive:
                    continue

                try:
                    mtime = parse_bos_timestamp(item.last_modified)
                except MalformedTimestampError as e:
                    self._emit(ListResult(err=e))
                    self._emit(ListResult(ended=True))
                    return

                record = FileRecord(
                    path=item.key,
                    key=item.key[self.trim_pos :],
                    mtime=mtime,
                    gtime=gtime,
                    size=item.size,
                    storage_class=item.storage_class,
                )

                # The prefix itself may be a directory object
                if self.recursive and not record.key.strip():
                    if self.show_empty_dir:
                        record.key = ""
                        record.is_dir = item.key.endswith(BOS_PATH_SEPARATOR)
                        own_dir_object = ListResult(file=record)
                    continue

                if self.filter is not None:
                    try:
                        excluded = self.filter.pattern_filter(
                            self.bucket + BOS_PATH_SEPARATOR + item.key
                        )
                    except FilterPatternError as e:
                        self._emit(ListResult(err=e))
                        self._emit(ListResult(ended=True))
                        return
                    if excluded or self.filter.time_filter(mtime):
                        continue

                self._emit(ListResult(file=record))

            if not self.all_pages or not page.is_truncated:
                if own_dir_object is not None:
                    self._emit(own_dir_object)
                self._emit(
                    ListResult(
                        end_info=ListEndInfo(
                            next_marker=page.next_marker,
                            is_truncated=page.is_truncated,
                        ),
                        ended=True,
                    )
                )
                return
            marker = page.next_marker


class LocalFileLister(_Lister):
    """Walks a local directory tree in object key order.

    Examples:
        >>> lister = LocalFileLister("/data/photos/")
        >>> keys = [r.file.key for r in lister if r.file and r.file.err is None]
    """

    timeout_message = "Get files list time out!"

    def __init__(
        self,
        root: str,
        filter: Optional[SyncFilter] = None,
        follow_symlinks: bool = False,
        timeout: float = LOCAL_LIST_TIMEOUT,
        start: bool = True,
    ):
        """Initialize the lister and start walking.

        Args:
            root: Absolute directory (or single file) to list
            filter: Filter applied to absolute paths and mtimes
            follow_symlinks: Report symlinked files with their target's metadata
            timeout: Seconds ``next()`` waits for an element
            start: Start the background thread immediately
        """
        super().__init__(
            maxsize=LOCAL_LIST_QUEUE_SIZE, timeout=timeout, name="pybos-local-lister"
        )
        self.root = root
        self.filter = filter
        self.follow_symlinks = follow_symlinks

        if os.path.isdir(root):
            prefix = root
        elif os.path.isfile(root):
            prefix = os.path.dirname(root)
        else:
            prefix = ""
        self.prefix_len = len(prefix)
        if start:
            self.start()

    def _produce(self) -> None:
        if not os.path.lexists(self.root):
            self._emit(ListResult(ended=True))
            return

        try:
            lstat_result = os.lstat(self.root)
        except OSError as e:
            self._emit(ListResult(err=e))
            self._emit(ListResult(ended=True))
            return

        if self._walk(self.root, lstat_result):
            self._emit(ListResult(ended=True))

    def _walk(self, local_path: str, lstat_result: os.stat_result) -> bool:
        """Emit the files under ``local_path``.

        Returns:
            False if a hard error was emitted and the stream already ended
        """
        is_link = stat.S_ISLNK(lstat_result.st_mode)
        if is_link and not self.follow_symlinks:
            return True

        try:
            info = os.stat(local_path)
        except OSError as e:
            self._emit(ListResult(file=FileRecord(path=local_path, err=e)))
            return True

        if stat.S_ISDIR(info.st_mode):
            return self._walk_dir(local_path)

        key = replace_to_bos_path(local_path[self.prefix_len :])
        record = FileRecord(
            path=local_path,
            key=key,
            real_path=os.path.realpath(local_path) if is_link else local_path,
            size=info.st_size,
            mtime=int(info.st_mtime),
            gtime=int(time.time()),
        )

        if self.filter is not None:
            try:
                if self.filter.pattern_filter(local_path):
                    return True
            except FilterPatternError as e:
                self._emit(ListResult(err=e))
                self._emit(ListResult(ended=True))
                return False
            if self.filter.time_filter(record.mtime):
                return True

        self._emit(ListResult(file=record))
        return True

    def _walk_dir(self, local_path: str) -> bool:
        if not local_path.endswith(os.sep):
            local_path += os.sep

        # Include patterns are not applied to directories: a directory may
        # not match while its children do
        if self.filter is not None:
            try:
                if self.filter.exclude_pattern_filter(local_path):
                    logger.debug(f"Excluding directory: {local_path}")
                    return True
            except FilterPatternError as e:
                self._emit(ListResult(err=e))
                self._emit(ListResult(ended=True))
                return False

        try:
            names = read_sorted_dir_names(local_path)
        except OSError as e:
            logger.debug(f"Cannot read directory {local_path}: {e}")
            self._emit(ListResult(err=e))
            self._emit(ListResult(ended=True))
            return False

        for name in names:
            child = os.path.join(local_path, name)
            try:
                child_lstat = os.lstat(child)
            except OSError as e:
                self._emit(ListResult(file=FileRecord(path=child, err=e)))
                continue
            if not self._walk(child, child_lstat):
                return False
        return True
