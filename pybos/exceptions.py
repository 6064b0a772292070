"""Exceptions and error codes for pybos."""

from enum import Enum
from typing import Optional


class BosCliErrorCode(str, Enum):
    """Error codes reported by the command line client."""

    LOCAL_PATH_NOT_EXIST = "localPathNotExist"
    SYNC_EXCLUDE_INCLUDE_TOG = "boscliSyncExcludeIncludeTog"
    SYNC_EXCLUDE_INCLUDE_TIME_TOG = "boscliSyncExcludeIncludeTimeTog"
    SYNC_TIME_RANGE_INVALID = "boscliSyncTimeRangeInvalid"
    SYNC_UPLOAD_SRC_MUST_DIR = "boscliSyncUploadSrcMustDir"
    SYNC_DOWN_DST_MUST_DIR = "boscliSyncDownDstMustDir"
    SYNC_LOCAL_TO_LOCAL = "boscliSyncLocalToLocal"
    SYNC_PROCESS_NUM_LESS_ZERO = "boscliSyncProcessNumLessZero"
    INVALID_SYNC_TYPE = "boscliInvalidSyncType"
    BOSPATH_IS_INVALID = "boscliBosPathIsInvalid"


SUGGESTIONS: dict[BosCliErrorCode, str] = {
    BosCliErrorCode.LOCAL_PATH_NOT_EXIST: "Please check that the local path exists.",
    BosCliErrorCode.SYNC_EXCLUDE_INCLUDE_TOG: (
        "--exclude and --include cannot be used together!"
    ),
    BosCliErrorCode.SYNC_EXCLUDE_INCLUDE_TIME_TOG: (
        "--exclude-time and --include-time cannot be used together!"
    ),
    BosCliErrorCode.SYNC_TIME_RANGE_INVALID: (
        "Time ranges must look like 'START,END' where both ends are epoch "
        "seconds or 'YYYY-MM-DD HH:MM:SS'."
    ),
    BosCliErrorCode.SYNC_UPLOAD_SRC_MUST_DIR: (
        "The sync source must be an existing directory; check the path and "
        "that you have read permission."
    ),
    BosCliErrorCode.SYNC_DOWN_DST_MUST_DIR: (
        "Sync does not support single files, use cp to transfer one file. "
        "If the path is a directory, check that you have read permission."
    ),
    BosCliErrorCode.SYNC_LOCAL_TO_LOCAL: (
        "Sync does not support local to local, use a tool such as rsync."
    ),
    BosCliErrorCode.SYNC_PROCESS_NUM_LESS_ZERO: (
        "Sync concurrency cannot be less than 1."
    ),
    BosCliErrorCode.INVALID_SYNC_TYPE: (
        "Sync type must be 'time-size', 'time-size-crc32' or 'only-crc32'!"
    ),
    BosCliErrorCode.BOSPATH_IS_INVALID: (
        "BOS paths must start with bos:/ or bos://"
    ),
}


def get_suggestion(code: Optional[BosCliErrorCode]) -> Optional[str]:
    """Return the human readable suggestion for an error code, if any."""
    if code is None:
        return None
    return SUGGESTIONS.get(code)


class BosError(Exception):
    """Base exception for all pybos errors."""

    def __init__(self, message: str = "", code: Optional[BosCliErrorCode] = None):
        super().__init__(message)
        self.code = code


class BosAPIError(BosError):
    """Request to the storage service failed."""


class BosAuthenticationError(BosAPIError):
    """Credentials were rejected by the service."""


class BosPermissionError(BosAPIError):
    """Access to the resource is forbidden."""


class BosNotFoundError(BosAPIError):
    """Bucket or object does not exist."""


class BosRateLimitError(BosAPIError):
    """Request was throttled."""


class BosNetworkError(BosAPIError):
    """Transport level failure."""


class BosInvalidResponseError(BosAPIError):
    """Service answered with something we cannot parse."""


class BosConfigError(BosError):
    """Client configuration is missing or invalid."""


class SyncError(BosError):
    """Base exception for the sync engine."""


class SyncConfigError(SyncError):
    """Invalid sync configuration, detected before any listing starts."""


class FilterPatternError(SyncError):
    """A filter pattern is not a valid glob."""


class MalformedTimestampError(SyncError):
    """A remote modification time could not be parsed."""


class ListTimeoutError(SyncError):
    """No item arrived from a background stream before its deadline."""


class SyncAbortedError(SyncError):
    """Sync stopped on a fatal error; carries the statistics so far."""

    def __init__(self, message: str, stats: Optional[dict] = None):
        super().__init__(message)
        self.stats = stats or {}
