"""Data models for BOS API responses."""

from dataclasses import dataclass, field
from typing import Any, Optional

from .utils import parse_http_date


@dataclass
class ObjectSummary:
    """One object in a listing page."""

    key: str
    last_modified: str
    """Raw ``lastModified`` string, parsed by the lister"""

    size: int = 0
    etag: str = ""
    storage_class: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ObjectSummary":
        return cls(
            key=data.get("key", ""),
            last_modified=data.get("lastModified", ""),
            size=int(data.get("size", 0) or 0),
            etag=data.get("eTag", ""),
            storage_class=data.get("storageClass", ""),
        )


@dataclass
class ListObjectsResult:
    """One page of a ListObjects call."""

    contents: list[ObjectSummary] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)
    is_truncated: bool = False
    next_marker: str = ""
    marker: str = ""
    prefix: str = ""

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "ListObjectsResult":
        """Build a result from the JSON body returned by the service.

        Args:
            data: Decoded JSON response

        Returns:
            ListObjectsResult instance
        """
        contents = [ObjectSummary.from_dict(item) for item in data.get("contents") or []]
        prefixes = [
            item.get("prefix", "") for item in data.get("commonPrefixes") or []
        ]
        return cls(
            contents=contents,
            common_prefixes=prefixes,
            is_truncated=bool(data.get("isTruncated", False)),
            next_marker=data.get("nextMarker", "") or "",
            marker=data.get("marker", "") or "",
            prefix=data.get("prefix", "") or "",
        )


@dataclass
class ObjectMeta:
    """Metadata of a single object (HEAD response)."""

    key: str
    size: int
    last_modified: int
    """Epoch seconds"""

    storage_class: str = ""
    crc32: str = ""
    etag: str = ""

    @classmethod
    def from_headers(cls, key: str, headers: Any) -> "ObjectMeta":
        """Build metadata from HEAD response headers.

        Raises:
            MalformedTimestampError: If ``Last-Modified`` cannot be parsed
        """
        last_modified: Optional[str] = headers.get("Last-Modified")
        return cls(
            key=key,
            size=int(headers.get("Content-Length", 0) or 0),
            last_modified=parse_http_date(last_modified) if last_modified else 0,
            storage_class=headers.get("x-bce-storage-class", ""),
            crc32=headers.get("x-bce-content-crc32", ""),
            etag=(headers.get("ETag", "") or "").strip('"'),
        )
