"""Sync engine for pybos - merge-join of sorted local and remote listings."""

from .args import SyncArgs
from .comparator import Comparator, ExistenceType, SyncOperation, deduce_dst_full_path
from .engine import SyncEngine
from .filter import SyncFilter, TimeRange, new_sync_filter
from .modes import SideType, SyncType
from .operations import SyncOperations
from .records import DirRecord, FileRecord, ListEndInfo, ListResult, ListResultKind
from .scanner import LocalFileLister, RemoteObjectLister
from .strategies import (
    AlwaysSync,
    ChecksumSide,
    Crc32Sync,
    DeleteDstSync,
    NeverSync,
    SizeAndLastModifiedAndCrc32Sync,
    SizeAndLastModifiedSync,
    SyncActionType,
    SyncStrategy,
    build_sync_strategies,
)

__all__ = [
    "SyncEngine",
    "SyncArgs",
    "SyncOperations",
    "SyncType",
    "SideType",
    "Comparator",
    "ExistenceType",
    "SyncOperation",
    "deduce_dst_full_path",
    "SyncFilter",
    "TimeRange",
    "new_sync_filter",
    "FileRecord",
    "DirRecord",
    "ListEndInfo",
    "ListResult",
    "ListResultKind",
    "LocalFileLister",
    "RemoteObjectLister",
    "SyncStrategy",
    "SyncActionType",
    "AlwaysSync",
    "NeverSync",
    "DeleteDstSync",
    "SizeAndLastModifiedSync",
    "Crc32Sync",
    "SizeAndLastModifiedAndCrc32Sync",
    "ChecksumSide",
    "build_sync_strategies",
]
