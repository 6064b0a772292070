"""pybos - command line sync between local directories and Baidu Object Storage."""

from .api import BosClient
from .exceptions import (
    BosAPIError,
    BosAuthenticationError,
    BosCliErrorCode,
    BosConfigError,
    BosError,
    BosInvalidResponseError,
    BosNetworkError,
    BosNotFoundError,
    BosPermissionError,
    BosRateLimitError,
    SyncAbortedError,
    SyncConfigError,
    SyncError,
)
from .utils import crc32_of_local_file, split_bos_bucket_key

__version__ = "0.1.0"

__all__ = [
    "BosClient",
    "BosAPIError",
    "BosAuthenticationError",
    "BosCliErrorCode",
    "BosConfigError",
    "BosError",
    "BosInvalidResponseError",
    "BosNetworkError",
    "BosNotFoundError",
    "BosPermissionError",
    "BosRateLimitError",
    "SyncAbortedError",
    "SyncConfigError",
    "SyncError",
    "crc32_of_local_file",
    "split_bos_bucket_key",
]
