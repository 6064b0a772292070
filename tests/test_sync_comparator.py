"""Tests for the merge-join Comparator."""

import logging
import os
import random
import time
from unittest.mock import Mock

import pytest

from pybos.exceptions import ListTimeoutError
from pybos.sync.args import SyncArgs
from pybos.sync.comparator import (
    Comparator,
    ExistenceType,
    SyncOperation,
    deduce_dst_full_path,
)
from pybos.sync.modes import SideType
from pybos.sync.records import DirRecord, FileRecord, ListResult
from pybos.sync.strategies import (
    AlwaysSync,
    DeleteDstSync,
    SizeAndLastModifiedSync,
    SyncActionType,
)


class FakeLister:
    """Lister replaying a fixed list of elements."""

    def __init__(self, results: list[ListResult]):
        self._results = list(results)
        self.pulled = 0

    def next(self) -> ListResult:
        if not self._results:
            raise ListTimeoutError("Get files list time out!")
        self.pulled += 1
        return self._results.pop(0)


def files(*keys: str, mtime: int = 100, size: int = 10, ended: bool = True) -> list[ListResult]:
    results = [
        ListResult(file=FileRecord(path=key, key=key, mtime=mtime, size=size)) for key in keys
    ]
    if ended:
        results.append(ListResult(ended=True))
    return results


def slow_next() -> ListResult:
    time.sleep(1)
    return ListResult(ended=True)


def make_args(concurrency: int = 4) -> SyncArgs:
    return SyncArgs(
        src_path="/data/src" + os.sep,
        dst_path="bos:/bucket/",
        src_type=SideType.LOCAL,
        dst_type=SideType.BOS,
        dst_bucket="bucket",
        dst_object_key="",
        concurrency=concurrency,
    )


def collect(comparator: Comparator, limit: int = 100) -> list[SyncOperation]:
    """Pull operations until the end or an error element."""
    ops = []
    for _ in range(limit):
        op = comparator.next()
        ops.append(op)
        if op.ended or op.error is not None:
            break
    return ops


def build(
    src: list[ListResult],
    dst: list[ListResult],
    at_both_side=None,
    not_at_dst=None,
    not_at_src=None,
    timeout: float = 5.0,
    concurrency: int = 4,
) -> Comparator:
    return Comparator(
        at_both_side or SizeAndLastModifiedSync(),
        not_at_dst,
        not_at_src,
        make_args(concurrency),
        FakeLister(src),
        FakeLister(dst),
        timeout=timeout,
    )


class TestMergeJoin:
    """Tests for the ordering and classification of operations."""

    def test_always_always_delete_trace(self):
        """Source {a,b,d} against destination {b,c} with delete."""
        comparator = build(
            files("a", "b", "d"),
            files("b", "c"),
            at_both_side=AlwaysSync(),
            not_at_dst=AlwaysSync(),
            not_at_src=DeleteDstSync(),
        )

        ops = collect(comparator)

        assert [(op.existence, op.action) for op in ops[:-1]] == [
            (ExistenceType.FILE_NOT_AT_DST, SyncActionType.COPY),
            (ExistenceType.FILE_AT_BOTH_SIDE, SyncActionType.COPY),
            (ExistenceType.FILE_NOT_AT_SRC, SyncActionType.DELETE),
            (ExistenceType.FILE_NOT_AT_DST, SyncActionType.COPY),
        ]
        assert [op.src_path for op in ops[:-1]] == ["a", "b", "", "d"]
        assert [op.dst_path for op in ops[:-1]] == ["a", "b", "c", "d"]
        assert ops[-1].ended
        assert ops[-1].error is None

    def test_identical_sides_emit_only_end(self):
        """Identical listings with time-size produce no operations."""
        comparator = build(
            files("a", "b"), files("a", "b"), not_at_dst=AlwaysSync()
        )

        ops = collect(comparator)

        assert len(ops) == 1
        assert ops[0].ended

    def test_newer_source_is_copied(self):
        """A newer source replaces the destination."""
        comparator = build(
            files("a", mtime=200), files("a", mtime=100), not_at_dst=AlwaysSync()
        )

        ops = collect(comparator)

        assert ops[0].existence == ExistenceType.FILE_AT_BOTH_SIDE
        assert ops[0].src_file.mtime == 200
        assert ops[0].dst_file.mtime == 100
        assert ops[1].ended

    def test_both_empty(self):
        """Two empty listings end immediately."""
        comparator = build(files(), files(), not_at_dst=AlwaysSync())

        ops = collect(comparator)

        assert len(ops) == 1
        assert ops[0].ended

    def test_no_delete_stops_after_source_exhausted(self):
        """Remaining destination items are not pulled without a delete strategy."""
        src = FakeLister(files("a"))
        dst = FakeLister(files("a", "b", "c", "d", "e"))
        comparator = Comparator(
            SizeAndLastModifiedSync(), AlwaysSync(), None, make_args(), src, dst, timeout=5.0
        )

        ops = collect(comparator)

        assert len(ops) == 1
        assert ops[0].ended
        # a, then b which is past the end of the source
        assert dst.pulled == 2

    def test_delete_drains_destination(self):
        """With a delete strategy every extra destination item is deleted."""
        comparator = build(
            files("a"),
            files("a", "b", "c"),
            not_at_dst=AlwaysSync(),
            not_at_src=DeleteDstSync(),
        )

        ops = collect(comparator)

        assert [op.dst_path for op in ops if op.action == SyncActionType.DELETE] == ["b", "c"]
        assert ops[-1].ended

    def test_source_only_without_strategy_is_ignored(self):
        """Source-only items are skipped when there is no strategy for them."""
        comparator = build(files("a", "b"), files("b"))

        ops = collect(comparator)

        assert len(ops) == 1
        assert ops[0].ended

    def test_destination_path_is_deduced_for_source_only_items(self):
        """Source-only items get a destination built from the destination root."""
        src = [
            ListResult(file=FileRecord(path="/data/src/dir/x.txt", key="dir/x.txt")),
            ListResult(ended=True),
        ]
        comparator = build(src, files(), not_at_dst=AlwaysSync())

        ops = collect(comparator)

        assert ops[0].src_path == "/data/src/dir/x.txt"
        assert ops[0].dst_path == "dir/x.txt"

    def test_iteration_yields_operations_until_end(self):
        """Iterating stops at the end element."""
        comparator = build(
            files("a", "b"), files(), not_at_dst=AlwaysSync()
        )

        keys = [op.src_path for op in comparator]

        assert keys == ["a", "b"]

    def test_directory_elements_are_skipped(self):
        """Pseudo-directory elements do not take part in the comparison."""
        src = [
            ListResult(dir=DirRecord(path="p/", key="p/")),
            ListResult(file=FileRecord(path="a", key="a")),
            ListResult(ended=True),
        ]
        comparator = build(src, files(), not_at_dst=AlwaysSync())

        ops = collect(comparator)

        assert [op.src_path for op in ops[:-1]] == ["a"]

    @pytest.mark.parametrize("delete", [True, False])
    @pytest.mark.parametrize("seed", range(8))
    def test_random_listings_match_set_differences(self, seed, delete):
        """Every key is classified by which sides hold it, in key order."""
        rng = random.Random(seed)
        universe = sorted(
            {
                rng.choice("ab") + "".join(rng.choices("ab-./0 ", k=rng.randint(0, 3)))
                for _ in range(80)
            }
        )
        src_keys = {key for key in universe if rng.random() < 0.6}
        dst_keys = {key for key in universe if rng.random() < 0.6}
        comparator = build(
            files(*sorted(src_keys)),
            files(*sorted(dst_keys)),
            at_both_side=AlwaysSync(),
            not_at_dst=AlwaysSync(),
            not_at_src=DeleteDstSync() if delete else None,
        )

        ops = collect(comparator, limit=len(universe) + 1)

        expected = [(ExistenceType.FILE_NOT_AT_DST, key) for key in src_keys - dst_keys]
        expected += [(ExistenceType.FILE_AT_BOTH_SIDE, key) for key in src_keys & dst_keys]
        if delete:
            expected += [(ExistenceType.FILE_NOT_AT_SRC, key) for key in dst_keys - src_keys]
        expected.sort(key=lambda item: item[1])
        assert [(op.existence, op.dst_path) for op in ops[:-1]] == expected
        assert ops[-1].ended
        assert ops[-1].error is None


class TestErrors:
    """Tests for error propagation."""

    def test_mid_stream_hard_error_emits_single_error(self):
        """A hard error from a lister ends the stream with exactly one error."""
        failure = OSError("listing failed")
        src = [
            ListResult(file=FileRecord(path="a", key="a")),
            ListResult(err=failure),
            ListResult(ended=True),
        ]
        comparator = build(src, files(), not_at_dst=AlwaysSync(), timeout=0.3)

        first = comparator.next()
        second = comparator.next()

        assert first.src_path == "a"
        assert second.error is failure
        with pytest.raises(ListTimeoutError):
            comparator.next()

    def test_vanished_source_item_is_skipped(self, caplog):
        """A source file removed before stat is skipped with a warning."""
        gone = FileNotFoundError("gone")
        src = [
            ListResult(file=FileRecord(path="a", key="a")),
            ListResult(file=FileRecord(path="b", err=gone)),
            ListResult(file=FileRecord(path="c", key="c")),
            ListResult(ended=True),
        ]
        with caplog.at_level(logging.WARNING, logger="pybos.sync.comparator"):
            comparator = build(src, files(), not_at_dst=AlwaysSync())
            ops = collect(comparator)

        assert [op.src_path for op in ops[:-1]] == ["a", "c"]
        assert ops[-1].ended
        warnings = [r for r in caplog.records if r.name == "pybos.sync.comparator"]
        assert len(warnings) == 1
        assert warnings[0].args == ("source", "b", gone)
        assert warnings[0].getMessage() == "Skipping vanished source file b: gone"

    def test_vanished_destination_item_keeps_source_pending(self):
        """A vanished destination item is skipped; the source record is kept."""
        dst = [
            ListResult(file=FileRecord(path="a", err=FileNotFoundError("gone"))),
            ListResult(file=FileRecord(path="b", key="b", mtime=100, size=10)),
            ListResult(ended=True),
        ]
        comparator = build(files("b"), dst, not_at_dst=AlwaysSync())

        ops = collect(comparator)

        assert len(ops) == 1
        assert ops[0].ended

    def test_other_soft_error_aborts(self):
        """A per-item error other than vanished aborts the comparison."""
        failure = PermissionError("denied")
        src = [
            ListResult(file=FileRecord(path="a", err=failure)),
            ListResult(ended=True),
        ]
        comparator = build(src, files(), not_at_dst=AlwaysSync(), timeout=0.3)

        op = comparator.next()

        assert op.error is failure
        with pytest.raises(ListTimeoutError):
            comparator.next()

    def test_lister_timeout_becomes_error_operation(self):
        """A lister deadline expiry is reported as an error operation."""
        src = Mock()
        src.next.side_effect = ListTimeoutError("Get files list time out!")
        comparator = Comparator(
            SizeAndLastModifiedSync(),
            AlwaysSync(),
            None,
            make_args(),
            src,
            FakeLister(files()),
            timeout=5.0,
        )

        op = comparator.next()

        assert isinstance(op.error, ListTimeoutError)

    def test_strategy_failure_becomes_error_operation(self):
        """An exception from a strategy is reported as an error operation."""
        strategy = Mock()
        strategy.should_sync.side_effect = OSError("crc32 failed")
        comparator = build(files("a"), files("a"), at_both_side=strategy)

        op = comparator.next()

        assert isinstance(op.error, OSError)
        assert "crc32 failed" in str(op.error)

    def test_iteration_raises_carried_error(self):
        """Iterating raises the error of an error operation."""
        src = [ListResult(err=ValueError("bad")), ListResult(ended=True)]
        comparator = build(src, files(), not_at_dst=AlwaysSync())

        with pytest.raises(ValueError, match="bad"):
            list(comparator)

    def test_next_times_out_without_producer_output(self):
        """next() fails once the deadline expires."""
        blocked = Mock()
        blocked.next.side_effect = slow_next
        comparator = Comparator(
            SizeAndLastModifiedSync(),
            AlwaysSync(),
            None,
            make_args(),
            blocked,
            FakeLister(files()),
            timeout=0.1,
        )

        with pytest.raises(ListTimeoutError):
            comparator.next()


class TestDeduceDstFullPath:
    """Tests for building destination paths of source-only items."""

    def _args(self, dst_type: SideType, dst_path: str = "", dst_object_key: str = "") -> SyncArgs:
        return SyncArgs(
            src_path="/src/",
            dst_path=dst_path,
            src_type=SideType.LOCAL if dst_type == SideType.BOS else SideType.BOS,
            dst_type=dst_type,
            dst_bucket="bucket",
            dst_object_key=dst_object_key,
        )

    def _record(self, key: str) -> FileRecord:
        return FileRecord(path="/src/" + key, key=key)

    def test_remote_destination_with_prefix(self):
        args = self._args(SideType.BOS, "bos:/bucket/backup/", "backup/")
        assert deduce_dst_full_path(self._record("a/b.txt"), args) == "backup/a/b.txt"

    def test_remote_destination_at_bucket_root(self):
        args = self._args(SideType.BOS, "bos:/bucket/", "")
        assert deduce_dst_full_path(self._record("a/b.txt"), args) == "a/b.txt"

    def test_remote_destination_nested_prefix(self):
        args = self._args(SideType.BOS, "bos:/bucket/x/y/", "x/y/")
        assert deduce_dst_full_path(self._record("c.txt"), args) == "x/y/c.txt"

    def test_local_destination(self):
        dst_path = os.path.join("out", "dir") + os.sep
        args = self._args(SideType.LOCAL, dst_path)
        expected = os.path.join("out", "dir", "a", "b.txt")
        assert deduce_dst_full_path(self._record("a/b.txt"), args) == expected

    def test_local_destination_root(self):
        args = self._args(SideType.LOCAL, os.sep)
        assert deduce_dst_full_path(self._record("a.txt"), args) == "a.txt"
