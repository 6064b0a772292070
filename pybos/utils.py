"""Utility functions for pybos."""

import calendar
import os
import time
import zlib
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Optional

from .exceptions import MalformedTimestampError

# =============================================================================
# Constants
# =============================================================================

BOS_PATH_SEPARATOR = "/"
BOS_PATH_PREFIX = "bos:/"
BOS_PATH_PREFIX_DOUBLE = "bos://"

# Timestamp formats used by the service and by the command line
BOS_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
LOCAL_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_ENDPOINT = "bj.bcebos.com"
DEFAULT_SYNC_PROCESSING_NUM = 10

# Keys requested per listing page
DEFAULT_MAX_KEYS = 1000
LOCAL_LIST_QUEUE_SIZE = 100

# Deadlines (seconds) for pulling from background streams
DEFAULT_LIST_TIMEOUT = 1200.0
LOCAL_LIST_TIMEOUT = 36000.0
SYNC_COMPARATOR_TIMEOUT = 36000.0

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0

CRC32_READ_SIZE = 1024 * 1024


# =============================================================================
# Path utilities
# =============================================================================


def filter_prefix_of_bos_path(bos_path: str) -> str:
    """Strip the ``bos:/`` or ``bos://`` scheme from a path.

    Examples:
        >>> filter_prefix_of_bos_path("bos://bucket/dir/a.txt")
        'bucket/dir/a.txt'
        >>> filter_prefix_of_bos_path("bos:/bucket")
        'bucket'
        >>> filter_prefix_of_bos_path("bucket/key")
        'bucket/key'
    """
    if bos_path.startswith(BOS_PATH_PREFIX_DOUBLE):
        return bos_path[len(BOS_PATH_PREFIX_DOUBLE) :]
    if bos_path.startswith(BOS_PATH_PREFIX):
        return bos_path[len(BOS_PATH_PREFIX) :]
    return bos_path


def is_bos_path(path: str) -> bool:
    """Check whether a command line path points to the object store."""
    return path.startswith(BOS_PATH_PREFIX)


def split_bos_bucket_key(bos_path: str) -> tuple[str, str]:
    """Split a BOS path into bucket name and object key.

    A trailing separator on the input is kept on the key so that
    ``bos:/bucket/dir/`` still denotes a directory-like prefix.

    Examples:
        >>> split_bos_bucket_key("bos:/bucket/dir/a.txt")
        ('bucket', 'dir/a.txt')
        >>> split_bos_bucket_key("bos://bucket/dir/")
        ('bucket', 'dir/')
        >>> split_bos_bucket_key("bos:/bucket/")
        ('bucket', '')
    """
    if not bos_path:
        return "", ""

    bos_path = filter_prefix_of_bos_path(bos_path).strip()
    components = [c for c in bos_path.split(BOS_PATH_SEPARATOR) if c.strip()]
    if not components:
        return "", ""

    bucket = components[0]
    key = ""
    if len(components) > 1:
        key = BOS_PATH_SEPARATOR.join(components[1:])
        if bos_path.endswith(BOS_PATH_SEPARATOR):
            key += BOS_PATH_SEPARATOR
    return bucket, key


def trim_trailing_slash(input_path: str) -> str:
    """Remove every trailing ``/`` from a path."""
    input_path = input_path.strip()
    return input_path.rstrip(BOS_PATH_SEPARATOR)


def replace_to_bos_path(input_path: str) -> str:
    """Convert an OS path fragment to the canonical ``/`` key form.

    A single leading separator is dropped so keys are always relative.
    """
    input_path = input_path.replace(os.sep, BOS_PATH_SEPARATOR)
    if input_path.startswith(BOS_PATH_SEPARATOR):
        input_path = input_path[1:]
    return input_path


def replace_to_os_path(input_path: str) -> str:
    """Convert ``/`` and ``\\`` separators to the host separator."""
    input_path = input_path.replace("\\", os.sep)
    return input_path.replace(BOS_PATH_SEPARATOR, os.sep)


def abs_local_path(local_path: str) -> str:
    """Absolute version of a local path, expanding ``~``."""
    return os.path.abspath(os.path.expanduser(local_path))


def read_sorted_dir_names(local_path: str) -> list[str]:
    """List a directory with names ordered the way object keys are ordered.

    Names are compared with ``/`` as separator. A directory whose name is a
    prefix of a sibling's name sorts as ``name/`` so that, for example, the
    children of ``a`` come after ``a.txt``, exactly as the object store
    orders ``a.txt`` before ``a/x``.

    Raises:
        OSError: If the directory cannot be read
    """
    names = sorted(os.listdir(local_path))

    # Only names that prefix their successor need the (costly on NFS) isdir
    sort_keys: dict[str, str] = {}
    for prev, cur in zip(names, names[1:]):
        if cur.startswith(prev) and os.path.isdir(os.path.join(local_path, prev)):
            sort_keys[prev] = prev + BOS_PATH_SEPARATOR
    if sort_keys:
        names.sort(key=lambda name: sort_keys.get(name, name))
    return names


def is_not_exist_error(err: Optional[BaseException]) -> bool:
    """Check whether an error means "no such file or directory"."""
    return isinstance(err, FileNotFoundError)


# =============================================================================
# Timestamp parsing utilities
# =============================================================================


def parse_bos_timestamp(timestamp_str: str) -> int:
    """Parse a listing ``lastModified`` value (UTC) to epoch seconds.

    Raises:
        MalformedTimestampError: If the value does not match the format

    Examples:
        >>> parse_bos_timestamp("2024-01-15T10:30:00Z")
        1705314600
    """
    try:
        parsed = time.strptime(timestamp_str, BOS_TIME_FORMAT)
    except (TypeError, ValueError) as e:
        raise MalformedTimestampError(
            f"Malformed object modification time: {timestamp_str!r}"
        ) from e
    return calendar.timegm(parsed)


def parse_http_date(date_str: str) -> int:
    """Parse an HTTP ``Last-Modified`` header to epoch seconds.

    Raises:
        MalformedTimestampError: If the header cannot be parsed
    """
    try:
        return int(parsedate_to_datetime(date_str).timestamp())
    except (TypeError, ValueError, IndexError) as e:
        raise MalformedTimestampError(
            f"Malformed Last-Modified header: {date_str!r}"
        ) from e


def parse_local_time(value: str) -> int:
    """Parse epoch seconds or a local ``YYYY-MM-DD HH:MM:SS`` value.

    Raises:
        ValueError: If neither form matches
    """
    value = value.strip()
    if value.lstrip("-").isdigit():
        return int(value)
    return int(time.mktime(datetime.strptime(value, LOCAL_TIME_FORMAT).timetuple()))


# =============================================================================
# Checksum and size utilities
# =============================================================================


def crc32_of_local_file(local_path: str) -> str:
    """Stream a file through CRC32 (IEEE) and return it as a decimal string.

    Raises:
        OSError: If the file cannot be read
    """
    crc = 0
    with open(local_path, "rb") as f:
        while True:
            chunk = f.read(CRC32_READ_SIZE)
            if not chunk:
                break
            crc = zlib.crc32(chunk, crc)
    return str(crc & 0xFFFFFFFF)


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
