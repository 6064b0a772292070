"""Parsing and validation of sync source and destination arguments."""

import os
from dataclasses import dataclass
from typing import Optional

from ..config import config
from ..exceptions import BosCliErrorCode, SyncConfigError
from ..utils import (
    BOS_PATH_SEPARATOR,
    is_bos_path,
    split_bos_bucket_key,
    trim_trailing_slash,
)
from .modes import SideType

LOCAL_TO_BOS = "localbos"
BOS_TO_LOCAL = "boslocal"
BOS_TO_BOS = "bosbos"
LOCAL_TO_LOCAL = "locallocal"


@dataclass
class SyncArgs:
    """Normalized sync endpoints.

    Remote paths end with ``/`` and local paths with the OS separator.
    """

    src_path: str
    dst_path: str
    src_type: SideType
    dst_type: SideType
    src_bucket: str = ""
    src_object_key: str = ""
    dst_bucket: str = ""
    dst_object_key: str = ""
    concurrency: int = 1

    @property
    def sync_type(self) -> str:
        """Direction of the sync, e.g. ``"localbos"``."""
        return self.src_type.value + self.dst_type.value

    @classmethod
    def parse(
        cls,
        src: str,
        dst: str,
        concurrency: int = 0,
        default_concurrency: Optional[int] = None,
    ) -> "SyncArgs":
        """Parse and validate the command line endpoints.

        Args:
            src: Source, a local directory or ``bos:/bucket/prefix``
            dst: Destination, a local directory or ``bos:/bucket/prefix``
            concurrency: Operations in flight; 0 selects the configured default
            default_concurrency: Default to use instead of the configuration

        Returns:
            SyncArgs instance

        Raises:
            SyncConfigError: If the endpoints or the concurrency are invalid

        Examples:
            >>> args = SyncArgs.parse("./photos", "bos:/bucket/backup", 4)
            >>> args.sync_type, args.dst_bucket, args.dst_object_key
            ('localbos', 'bucket', 'backup/')
        """
        fields: dict = {}

        for path in (src, dst):
            if is_bos_path(path) and not split_bos_bucket_key(path)[0]:
                raise SyncConfigError(
                    f"bucket name is missing in {path}",
                    code=BosCliErrorCode.BOSPATH_IS_INVALID,
                )

        if is_bos_path(src):
            src_path = trim_trailing_slash(src) + BOS_PATH_SEPARATOR
            fields["src_bucket"], fields["src_object_key"] = split_bos_bucket_key(src_path)
            src_type = SideType.BOS
        else:
            src_path = _local_dir_path(src)
            src_type = SideType.LOCAL
            if not os.path.exists(src):
                raise SyncConfigError(
                    f"file path {src} doesn't exist",
                    code=BosCliErrorCode.LOCAL_PATH_NOT_EXIST,
                )
            if not os.path.isdir(src):
                raise SyncConfigError(
                    "SRC must be a local folder.",
                    code=BosCliErrorCode.SYNC_UPLOAD_SRC_MUST_DIR,
                )

        if is_bos_path(dst):
            dst_path = trim_trailing_slash(dst) + BOS_PATH_SEPARATOR
            fields["dst_bucket"], fields["dst_object_key"] = split_bos_bucket_key(dst_path)
            dst_type = SideType.BOS
        else:
            dst_path = _local_dir_path(dst)
            dst_type = SideType.LOCAL
            if os.path.exists(dst) and not os.path.isdir(dst):
                raise SyncConfigError(
                    "DST must be a local folder.",
                    code=BosCliErrorCode.SYNC_DOWN_DST_MUST_DIR,
                )

        if src_type == SideType.LOCAL and dst_type == SideType.LOCAL:
            raise SyncConfigError(
                "can't sync local -> local",
                code=BosCliErrorCode.SYNC_LOCAL_TO_LOCAL,
            )

        if concurrency < 0:
            raise SyncConfigError(
                "concurrency for sync must be greater than zero",
                code=BosCliErrorCode.SYNC_PROCESS_NUM_LESS_ZERO,
            )
        if concurrency == 0:
            if default_concurrency is None:
                default_concurrency = config.sync_processing_num
            concurrency = default_concurrency

        return cls(
            src_path=src_path,
            dst_path=dst_path,
            src_type=src_type,
            dst_type=dst_type,
            concurrency=concurrency,
            **fields,
        )


def _local_dir_path(path: str) -> str:
    return trim_trailing_slash(path).rstrip(os.sep) + os.sep
