"""Strategies deciding whether an item should be synced."""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ..api import BosClient
from ..utils import BOS_PATH_SEPARATOR, crc32_of_local_file
from .filter import SyncFilter
from .modes import SideType, SyncType
from .records import FileRecord

if TYPE_CHECKING:
    from .args import SyncArgs

logger = logging.getLogger(__name__)


class SyncActionType(str, Enum):
    """What the executor does with an item that should be synced."""

    COPY = "copy"
    """Transfer the source to the destination"""

    DELETE = "delete"
    """Remove the destination"""

    NOTHING = "nothing"
    """No operation"""


class SyncStrategy:
    """Base class for sync strategies.

    ``should_sync`` raises on failure (for example a checksum that cannot
    be computed); the comparator turns that into an error operation.
    """

    action = SyncActionType.COPY

    def should_sync(
        self, src: Optional[FileRecord], dst: Optional[FileRecord]
    ) -> bool:
        raise NotImplementedError

    def which_action(self) -> SyncActionType:
        return self.action


class AlwaysSync(SyncStrategy):
    """Sync whenever there is a source."""

    def should_sync(self, src, dst):
        if src is not None:
            logger.debug("should sync")
            return True
        logger.debug("should not sync")
        return False


class NeverSync(SyncStrategy):
    action = SyncActionType.NOTHING

    def should_sync(self, src, dst):
        logger.debug("should not sync")
        return False


class DeleteDstSync(SyncStrategy):
    """Delete destination items that have no source counterpart.

    Items excluded by the delete filter are kept. Remote destinations are
    matched as ``bucket/key``.
    """

    action = SyncActionType.DELETE

    def __init__(
        self,
        delete_filter: Optional[SyncFilter] = None,
        dst_type: SideType = SideType.BOS,
        dst_bucket: str = "",
    ):
        self.delete_filter = delete_filter
        self.dst_type = dst_type
        self.dst_bucket = dst_bucket

    def should_sync(self, src, dst):
        if src is not None:
            logger.debug(f"src {src.path} exists, should not delete dst")
            return False
        if dst is None:
            logger.debug("dst is None, should not delete dst")
            return False
        if self.delete_filter is None:
            logger.debug(f"delete dst {dst.path}")
            return True

        dst_path = dst.path
        if self.dst_type == SideType.BOS:
            dst_path = self.dst_bucket + BOS_PATH_SEPARATOR + dst.path

        if self.delete_filter.pattern_filter(dst_path):
            logger.debug(f"dst {dst.path} is filtered out, should not delete")
            return False
        logger.debug(f"dst {dst.path} is not filtered out, should delete")
        return True


class SizeAndLastModifiedSync(SyncStrategy):
    """Sync when the source is newer, or equally old with another size."""

    def should_sync(self, src, dst):
        if src.mtime > dst.mtime or (src.mtime == dst.mtime and src.size != dst.size):
            logger.debug(
                f"{src.key}: src size {src.size} mtime {src.mtime}, "
                f"dst size {dst.size} mtime {dst.mtime}, should sync"
            )
            return True
        logger.debug(
            f"{src.key}: src size {src.size} mtime {src.mtime}, "
            f"dst size {dst.size} mtime {dst.mtime}, should not sync"
        )
        return False


class ChecksumSide:
    """Fetches the CRC32 of records on one side of the sync."""

    def __init__(
        self,
        type: SideType,
        bucket: str = "",
        client: Optional[BosClient] = None,
    ):
        self.type = type
        self.bucket = bucket
        self.client = client

    def checksum(self, record: FileRecord) -> str:
        """Return the record's CRC32, computing and caching it if needed.

        Raises:
            OSError: If a local file cannot be read
            BosAPIError: If remote metadata cannot be fetched
        """
        if record.crc32:
            return record.crc32
        if self.type == SideType.LOCAL:
            record.crc32 = crc32_of_local_file(record.real_path or record.path)
        else:
            if self.client is None:
                raise ValueError("A client is required for remote checksums")
            record.crc32 = self.client.get_object_meta(self.bucket, record.path).crc32
        return record.crc32


class Crc32Sync(SyncStrategy):
    """Sync unless both sides have the same non-empty CRC32."""

    def __init__(self, src_side: ChecksumSide, dst_side: ChecksumSide):
        self.src_side = src_side
        self.dst_side = dst_side

    def should_sync(self, src, dst):
        src_crc = self.src_side.checksum(src)
        dst_crc = self.dst_side.checksum(dst)
        if src_crc and src_crc == dst_crc:
            logger.debug(f"{src.path} -> {dst.path}: crc32 {src_crc} equal, should not sync")
            return False
        # An object uploaded without a checksum has an empty crc32
        logger.debug(
            f"{src.path} -> {dst.path}: crc32 {src_crc!r} vs {dst_crc!r}, should sync"
        )
        return True


class SizeAndLastModifiedAndCrc32Sync(SyncStrategy):
    """Skip older or identical-looking sources, otherwise compare CRC32."""

    def __init__(self, src_side: ChecksumSide, dst_side: ChecksumSide):
        self.crc32_sync = Crc32Sync(src_side, dst_side)

    def should_sync(self, src, dst):
        if src.mtime < dst.mtime or (src.mtime == dst.mtime and src.size == dst.size):
            logger.debug(
                f"{src.key}: src size {src.size} mtime {src.mtime}, "
                f"dst size {dst.size} mtime {dst.mtime}, should not sync"
            )
            return False
        return self.crc32_sync.should_sync(src, dst)


def build_sync_strategies(
    sync_type: SyncType,
    args: "SyncArgs",
    delete: bool = False,
    delete_filter: Optional[SyncFilter] = None,
    src_client: Optional[BosClient] = None,
    dst_client: Optional[BosClient] = None,
) -> tuple[SyncStrategy, SyncStrategy, Optional[SyncStrategy]]:
    """Pick the strategies for the three existence cases.

    Args:
        sync_type: How to compare items present on both sides
        args: Parsed sync arguments (sides and buckets)
        delete: Delete destination items missing from the source
        delete_filter: Patterns protecting destination items from deletion
        src_client: Client for a remote source
        dst_client: Client for a remote destination

    Returns:
        Tuple of (at_both_side, not_at_dst, not_at_src); not_at_src is None
        when nothing is deleted
    """
    src_side = ChecksumSide(args.src_type, args.src_bucket, src_client)
    dst_side = ChecksumSide(args.dst_type, args.dst_bucket, dst_client)

    at_both_side: SyncStrategy
    if sync_type == SyncType.ONLY_CRC32:
        at_both_side = Crc32Sync(src_side, dst_side)
    elif sync_type == SyncType.TIME_SIZE_CRC32:
        at_both_side = SizeAndLastModifiedAndCrc32Sync(src_side, dst_side)
    else:
        at_both_side = SizeAndLastModifiedSync()

    not_at_src: Optional[SyncStrategy] = None
    if delete:
        not_at_src = DeleteDstSync(delete_filter, args.dst_type, args.dst_bucket)

    return at_both_side, AlwaysSync(), not_at_src
