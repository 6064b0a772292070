"""Transfer operations executed by the sync engine."""

import os
from pathlib import Path
from typing import Any, Optional

from ..api import BosClient


class SyncOperations:
    """Thin wrapper over the storage client for the sync directions.

    The source client serves downloads and copy sources, the destination
    client serves uploads, copies and remote deletes.
    """

    def __init__(
        self,
        src_client: Optional[BosClient] = None,
        dst_client: Optional[BosClient] = None,
        storage_class: str = "",
    ):
        """Initialize sync operations.

        Args:
            src_client: Client of a remote source
            dst_client: Client of a remote destination
            storage_class: Storage class for uploaded and copied objects
        """
        self.src_client = src_client
        self.dst_client = dst_client
        self.storage_class = storage_class

    def upload(self, local_path: str, bucket: str, key: str) -> None:
        """Upload a local file to ``bos:/bucket/key``."""
        self._require(self.dst_client).put_object_from_file(
            bucket, key, local_path, storage_class=self.storage_class
        )

    def download(self, bucket: str, key: str, local_path: str) -> Path:
        """Download ``bos:/bucket/key`` to a local path.

        Returns:
            Path where the file was saved
        """
        return self._require(self.src_client).get_object_to_file(bucket, key, local_path)

    def copy(self, src_bucket: str, src_key: str, dst_bucket: str, dst_key: str) -> Any:
        """Server-side copy between buckets (or within one)."""
        return self._require(self.dst_client).copy_object(
            src_bucket, src_key, dst_bucket, dst_key, storage_class=self.storage_class
        )

    def delete_object(self, bucket: str, key: str) -> None:
        self._require(self.dst_client).delete_object(bucket, key)

    def delete_local(self, local_path: str) -> None:
        os.remove(local_path)

    @staticmethod
    def _require(client: Optional[BosClient]) -> BosClient:
        if client is None:
            raise ValueError("No storage client configured for this operation")
        return client
