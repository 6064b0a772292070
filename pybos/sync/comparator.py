"""Merge-join comparison of two sorted record streams."""

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ..utils import (
    BOS_PATH_SEPARATOR,
    SYNC_COMPARATOR_TIMEOUT,
    is_not_exist_error,
    replace_to_bos_path,
    replace_to_os_path,
)
from .modes import SideType
from .records import FileRecord
from .stream import BackgroundStream
from .strategies import SyncActionType, SyncStrategy

if TYPE_CHECKING:
    from .args import SyncArgs
    from .scanner import _Lister

logger = logging.getLogger(__name__)


class ExistenceType(str, Enum):
    """Where an item was found."""

    FILE_AT_BOTH_SIDE = "fileAtBothSide"
    FILE_NOT_AT_SRC = "fileNotAtSrc"
    FILE_NOT_AT_DST = "fileNotAtDst"


@dataclass
class SyncOperation:
    """One element of the comparator's output stream."""

    action: Optional[SyncActionType] = None
    """What to do; None for error and end elements"""

    existence: Optional[ExistenceType] = None
    src_path: str = ""
    dst_path: str = ""
    src_file: Optional[FileRecord] = None
    dst_file: Optional[FileRecord] = None
    error: Optional[BaseException] = None
    """Fatal error; no further operations follow"""

    ended: bool = False


def deduce_dst_full_path(record: FileRecord, args: "SyncArgs") -> str:
    """Build the destination path of a source item missing at the destination.

    The destination root is cut at its last separator and the source key is
    appended to it.

    Examples:
        >>> args.dst_type, args.dst_object_key
        (<SideType.BOS: 'bos'>, 'backup/')
        >>> deduce_dst_full_path(FileRecord(path="/d/a/b.txt", key="a/b.txt"), args)
        'backup/a/b.txt'
    """
    if args.dst_type == SideType.LOCAL:
        prefix = args.dst_path
        separator = os.sep
    else:
        prefix = args.dst_object_key
        separator = BOS_PATH_SEPARATOR

    index = prefix.rfind(separator)
    if index != -1:
        prefix = prefix[:index]

    dst_path = prefix + separator + record.key if prefix else record.key

    if args.dst_type == SideType.LOCAL:
        return replace_to_os_path(dst_path)
    return replace_to_bos_path(dst_path)


class Comparator(BackgroundStream[SyncOperation]):
    """Walks source and destination listings in step and emits operations.

    Both listings must be sorted by key. An item is handled by the strategy
    of its existence case and produces an operation only when the strategy
    says it should be synced. A fatal error produces a single error
    operation and stops the comparison.

    Examples:
        >>> comparator = Comparator(SizeAndLastModifiedSync(), AlwaysSync(), None,
        ...                         args, src_lister, dst_lister)
        >>> for op in comparator:
        ...     print(op.action, op.src_path, op.dst_path)
    """

    timeout_message = "Get next sync operation time out!"

    def __init__(
        self,
        at_both_side: SyncStrategy,
        not_at_dst: Optional[SyncStrategy],
        not_at_src: Optional[SyncStrategy],
        args: "SyncArgs",
        src_lister: "_Lister",
        dst_lister: "_Lister",
        timeout: float = SYNC_COMPARATOR_TIMEOUT,
        start: bool = True,
    ):
        super().__init__(maxsize=args.concurrency, timeout=timeout, name="pybos-comparator")
        self.at_both_side = at_both_side
        self.not_at_dst = not_at_dst
        self.not_at_src = not_at_src
        self.args = args
        self.src_lister = src_lister
        self.dst_lister = dst_lister
        if start:
            self.start()

    def _error_item(self, error: BaseException) -> SyncOperation:
        return SyncOperation(error=error)

    def _ended_item(self) -> SyncOperation:
        return SyncOperation(ended=True)

    def deduce_dst_full_path(self, record: FileRecord) -> str:
        return deduce_dst_full_path(record, self.args)

    def _pull(self, lister: "_Lister", side: str) -> Optional[FileRecord]:
        """Next file record of one side, or None when the side is exhausted.

        Raises:
            Exception: The lister's hard error, a non-recoverable per-item
                error, or ListTimeoutError
        """
        while True:
            result = lister.next()
            if result.err is not None:
                raise result.err
            if result.ended:
                return None
            if result.file is None:
                continue
            record = result.file
            if record.err is not None:
                if is_not_exist_error(record.err):
                    # Removed between listing and stat
                    logger.warning(
                        "Skipping vanished %s file %s: %s", side, record.path, record.err
                    )
                    continue
                raise record.err
            return record

    def _produce(self) -> None:
        try:
            self._compare()
        except Exception as e:
            logger.debug("Comparison failed", exc_info=True)
            self._emit(SyncOperation(error=e))
            return
        self._emit(SyncOperation(ended=True))

    def _emit_not_at_dst(self, src: FileRecord) -> None:
        if self.not_at_dst is None:
            return
        if self.not_at_dst.should_sync(src, None):
            self._emit(
                SyncOperation(
                    action=self.not_at_dst.which_action(),
                    existence=ExistenceType.FILE_NOT_AT_DST,
                    src_path=src.path,
                    dst_path=self.deduce_dst_full_path(src),
                    src_file=src,
                )
            )

    def _emit_not_at_src(self, dst: FileRecord) -> None:
        if self.not_at_src is None:
            return
        if self.not_at_src.should_sync(None, dst):
            self._emit(
                SyncOperation(
                    action=self.not_at_src.which_action(),
                    existence=ExistenceType.FILE_NOT_AT_SRC,
                    dst_path=dst.path,
                    dst_file=dst,
                )
            )

    def _compare(self) -> None:
        src_done = dst_done = False
        src_take_next = dst_take_next = True
        src: Optional[FileRecord] = None
        dst: Optional[FileRecord] = None

        while True:
            if not src_done and src_take_next:
                src = self._pull(self.src_lister, "source")
                src_done = src is None
            if not dst_done and dst_take_next:
                dst = self._pull(self.dst_lister, "destination")
                dst_done = dst is None

            # A side is exhausted once its record is None
            if src is not None and dst is not None:
                if src.key == dst.key:
                    src_take_next = dst_take_next = True
                    if self.at_both_side.should_sync(src, dst):
                        self._emit(
                            SyncOperation(
                                action=self.at_both_side.which_action(),
                                existence=ExistenceType.FILE_AT_BOTH_SIDE,
                                src_path=src.path,
                                dst_path=dst.path,
                                src_file=src,
                                dst_file=dst,
                            )
                        )
                elif src.key < dst.key:
                    src_take_next, dst_take_next = True, False
                    self._emit_not_at_dst(src)
                else:
                    src_take_next, dst_take_next = False, True
                    self._emit_not_at_src(dst)
            elif dst is not None:
                # Remaining destination items only matter when deleting
                if self.not_at_src is None:
                    break
                dst_take_next = True
                self._emit_not_at_src(dst)
            elif src is not None:
                if self.not_at_dst is None:
                    break
                src_take_next = True
                self._emit_not_at_dst(src)
            else:
                break

    def __iter__(self) -> Iterator[SyncOperation]:
        """Yield operations until the end of the stream.

        Raises:
            Exception: The error carried by an error operation
        """
        while True:
            op = self.next()
            if op.error is not None:
                raise op.error
            if op.ended:
                return
            yield op
