"""Sync type and side definitions."""

from enum import Enum

from ..exceptions import BosCliErrorCode, SyncConfigError


class SyncType(str, Enum):
    """How files present on both sides are compared."""

    TIME_SIZE = "time-size"
    """Sync when the source is newer, or same age with a different size"""

    TIME_SIZE_CRC32 = "time-size-crc32"
    """Like TIME_SIZE, then compare CRC32 when time and size do not decide"""

    ONLY_CRC32 = "only-crc32"
    """Sync whenever the CRC32 checksums differ"""

    @classmethod
    def from_string(cls, value: str) -> "SyncType":
        """Parse a sync type; the empty string selects the default.

        Raises:
            SyncConfigError: If the value is not a known sync type
        """
        if not value:
            return cls.TIME_SIZE
        try:
            return cls(value.lower())
        except ValueError as e:
            raise SyncConfigError(
                f"Invalid sync type: {value}",
                code=BosCliErrorCode.INVALID_SYNC_TYPE,
            ) from e


class SideType(str, Enum):
    """Where one side of a sync lives."""

    LOCAL = "local"
    BOS = "bos"
