"""Path pattern and modification time filters for sync listings."""

import fnmatch
import logging
import os
from dataclasses import dataclass
from typing import Optional

from ..exceptions import BosCliErrorCode, FilterPatternError, SyncConfigError
from ..utils import (
    BOS_PATH_SEPARATOR,
    abs_local_path,
    filter_prefix_of_bos_path,
    parse_local_time,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeRange:
    """Closed interval of epoch seconds."""

    start: int
    end: int

    def contains(self, mtime: int) -> bool:
        return self.start <= mtime <= self.end

    @classmethod
    def parse(cls, value: str) -> "TimeRange":
        """Parse ``"START,END"``.

        Both ends are epoch seconds or local ``YYYY-MM-DD HH:MM:SS`` values.

        Raises:
            SyncConfigError: If the value is malformed
        """
        parts = value.split(",")
        if len(parts) != 2:
            raise SyncConfigError(
                f"Invalid time range: {value!r}",
                code=BosCliErrorCode.SYNC_TIME_RANGE_INVALID,
            )
        try:
            start = parse_local_time(parts[0])
            end = parse_local_time(parts[1])
        except ValueError as e:
            raise SyncConfigError(
                f"Invalid time range: {value!r}",
                code=BosCliErrorCode.SYNC_TIME_RANGE_INVALID,
            ) from e
        return cls(start=start, end=end)


def check_pattern(pattern: str) -> None:
    """Reject glob patterns with an unterminated character class.

    Raises:
        FilterPatternError: If a ``[`` has no matching ``]``
    """
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        i += 1
        if c != "[":
            continue
        j = i
        if j < n and pattern[j] in "!^":
            j += 1
        # A leading ']' is part of the class
        if j < n and pattern[j] == "]":
            j += 1
        while j < n and pattern[j] != "]":
            j += 1
        if j >= n:
            raise FilterPatternError(f"syntax error in pattern: {pattern!r}")
        i = j + 1


def match_pattern(pattern: str, path: str) -> bool:
    """Glob match where ``*`` also matches path separators."""
    check_pattern(pattern)
    return fnmatch.fnmatchcase(path, pattern)


@dataclass(frozen=True)
class SyncFilter:
    """Decides which listed items are excluded.

    Every predicate returns True when the item must be skipped. A filter
    with no patterns (or no time ranges) never excludes on that criterion.
    """

    patterns: tuple[str, ...] = ()
    path_filter_is_include: bool = False
    time_ranges: tuple[TimeRange, ...] = ()
    time_filter_is_include: bool = False
    path_separator: str = BOS_PATH_SEPARATOR

    @property
    def path_filter_enabled(self) -> bool:
        return bool(self.patterns)

    @property
    def time_filter_enabled(self) -> bool:
        return bool(self.time_ranges)

    def _pattern_for(self, pattern: str, path: str) -> str:
        if path.endswith(self.path_separator) and not pattern.endswith(self.path_separator):
            return pattern + self.path_separator
        return pattern

    def pattern_filter(self, path: str) -> bool:
        """Check a file path against the patterns.

        Raises:
            FilterPatternError: If a pattern is not a valid glob
        """
        if not self.path_filter_enabled:
            return False

        path = filter_prefix_of_bos_path(path)
        for pattern in self.patterns:
            if match_pattern(self._pattern_for(pattern, path), path):
                return not self.path_filter_is_include
        return self.path_filter_is_include

    def exclude_pattern_filter(self, path: str) -> bool:
        """Check a directory path; only exclude patterns apply.

        A directory may not match an include pattern while its children do,
        so include mode never prunes directories.

        Raises:
            FilterPatternError: If a pattern is not a valid glob
        """
        if self.path_filter_is_include or not self.path_filter_enabled:
            return False

        path = filter_prefix_of_bos_path(path)
        for pattern in self.patterns:
            if match_pattern(self._pattern_for(pattern, path), path):
                return True
        return False

    def time_filter(self, mtime: int) -> bool:
        if not self.time_filter_enabled:
            return False
        for time_range in self.time_ranges:
            if time_range.contains(mtime):
                return not self.time_filter_is_include
        return self.time_filter_is_include


def _local_pattern(pattern: str) -> str:
    if pattern.startswith(os.sep) or pattern.startswith("*"):
        return pattern
    absolute = abs_local_path(pattern)
    # abspath drops a trailing separator that marks a directory pattern
    if pattern.endswith(os.sep) and not absolute.endswith(os.sep):
        absolute += os.sep
    return absolute


def new_sync_filter(
    exclude: Optional[list[str]] = None,
    include: Optional[list[str]] = None,
    exclude_time: Optional[list[str]] = None,
    include_time: Optional[list[str]] = None,
    is_local: bool = True,
) -> SyncFilter:
    """Build a filter for the side being listed.

    Args:
        exclude: Glob patterns of items to skip
        include: Glob patterns of the only items to keep
        exclude_time: ``"START,END"`` ranges of mtimes to skip
        include_time: ``"START,END"`` ranges of the only mtimes to keep
        is_local: Whether patterns apply to local paths (made absolute)
            or to remote ``bucket/key`` paths

    Returns:
        SyncFilter instance

    Raises:
        SyncConfigError: If include and exclude lists are both given, or a
            time range is malformed
    """
    exclude = list(exclude or [])
    include = list(include or [])
    exclude_time = list(exclude_time or [])
    include_time = list(include_time or [])

    if exclude and include:
        raise SyncConfigError(
            "--exclude and --include cannot be used together",
            code=BosCliErrorCode.SYNC_EXCLUDE_INCLUDE_TOG,
        )
    if exclude_time and include_time:
        raise SyncConfigError(
            "--exclude-time and --include-time cannot be used together",
            code=BosCliErrorCode.SYNC_EXCLUDE_INCLUDE_TIME_TOG,
        )

    raw_patterns = include or exclude
    if is_local:
        separator = os.sep
        patterns = [_local_pattern(p) for p in raw_patterns]
    else:
        separator = BOS_PATH_SEPARATOR
        patterns = [filter_prefix_of_bos_path(p) for p in raw_patterns]

    time_ranges = [TimeRange.parse(r) for r in (include_time or exclude_time)]

    sync_filter = SyncFilter(
        patterns=tuple(patterns),
        path_filter_is_include=bool(include),
        time_ranges=tuple(time_ranges),
        time_filter_is_include=bool(include_time),
        path_separator=separator,
    )
    logger.debug("Built sync filter: %s", sync_filter)
    return sync_filter
