"""Records produced by the local and remote listers."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass
class FileRecord:
    """A file (local) or object (remote) found by a lister."""

    path: str
    """Full local path, or full object key for remote records"""

    key: str = ""
    """Relative key used for matching, always ``/`` separated"""

    real_path: str = ""
    """Local path to read from; the resolved target for followed symlinks"""

    size: int = 0
    """Size in bytes"""

    mtime: int = 0
    """Last modification time (epoch seconds)"""

    gtime: int = 0
    """Time the record was fetched (epoch seconds)"""

    storage_class: str = ""
    """Remote storage class, empty for local files"""

    crc32: str = ""
    """CRC32 checksum as decimal string, filled in on demand"""

    is_dir: bool = False
    """True for a remote directory object (key ending in ``/``)"""

    err: Optional[BaseException] = None
    """Per-item error; the walk continues after it"""


@dataclass
class DirRecord:
    """A common prefix returned by a non-recursive remote listing."""

    path: str
    key: str


@dataclass
class ListEndInfo:
    """Pagination state reported with the final element of a remote listing."""

    next_marker: str = ""
    is_truncated: bool = False


class ListResultKind(str, Enum):
    """What a ListResult carries."""

    FILE = "file"
    DIR = "dir"
    END_INFO = "end_info"
    ERROR = "error"
    ENDED = "ended"


@dataclass
class ListResult:
    """One element of a lister stream.

    Exactly one of ``file``, ``dir``, ``err`` is set, or the element marks the
    end of the stream (``ended``), optionally with ``end_info``.
    """

    file: Optional[FileRecord] = None
    dir: Optional[DirRecord] = None
    end_info: Optional[ListEndInfo] = None
    err: Optional[BaseException] = None
    """Hard error, nothing more comes from the stream"""

    ended: bool = False

    @property
    def kind(self) -> ListResultKind:
        if self.err is not None:
            return ListResultKind.ERROR
        if self.end_info is not None:
            return ListResultKind.END_INFO
        if self.ended:
            return ListResultKind.ENDED
        if self.dir is not None:
            return ListResultKind.DIR
        return ListResultKind.FILE
