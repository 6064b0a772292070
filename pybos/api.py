"""API client for Baidu Object Storage (BOS)."""

from __future__ import annotations

import os
import random
import time
from collections.abc import Iterator
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx

from .auth import BceV1Auth
from .config import config
from .exceptions import (
    BosAPIError,
    BosAuthenticationError,
    BosConfigError,
    BosInvalidResponseError,
    BosNetworkError,
    BosNotFoundError,
    BosPermissionError,
    BosRateLimitError,
)
from .models import ListObjectsResult, ObjectMeta
from .utils import (
    DEFAULT_MAX_KEYS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    crc32_of_local_file,
)

UPLOAD_READ_SIZE = 1024 * 1024


class BosClient:
    """Client for the BOS REST API.

    Only the calls the sync engine needs are implemented: paginated listing,
    object metadata, and single-request transfer call-throughs.
    """

    def __init__(
        self,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        endpoint: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 30.0,
    ):
        """Initialize BOS API client.

        Args:
            access_key_id: Access key (uses config if not provided)
            secret_access_key: Secret key (uses config if not provided)
            endpoint: Service endpoint, with or without scheme
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
        """
        self.access_key_id = access_key_id or config.access_key_id
        self.secret_access_key = secret_access_key or config.secret_access_key
        endpoint = endpoint or config.endpoint
        if "://" not in endpoint:
            endpoint = f"https://{endpoint}"
        self.endpoint = endpoint.rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

        if not self.access_key_id or not self.secret_access_key:
            raise BosConfigError(
                "Credentials not configured. Please set BCE_ACCESS_KEY_ID and "
                "BCE_SECRET_ACCESS_KEY or run 'pybos config'."
            )

        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                auth=BceV1Auth(self.access_key_id, self.secret_access_key),
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def _url(self, bucket: str, key: str = "") -> str:
        url = f"{self.endpoint}/{quote(bucket, safe='')}"
        if key:
            url += "/" + quote(key, safe="/~")
        return url

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            exception: The exception that occurred
            attempt: Current attempt number (0-based)

        Returns:
            True if the request should be retried, False otherwise
        """
        if attempt >= self.max_retries:
            return False
        if isinstance(exception, (BosNetworkError, BosRateLimitError)):
            return True
        if isinstance(exception, httpx.HTTPStatusError):
            return 500 <= exception.response.status_code < 600
        return False

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Exponential backoff with +/- 25% jitter."""
        base_delay = self.retry_delay * (2**attempt)
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _handle_http_error(
        self, e: httpx.HTTPStatusError, attempt: int
    ) -> tuple[Exception, bool]:
        """Map an HTTP error to a pybos exception.

        Args:
            e: The HTTP error exception
            attempt: Current attempt number

        Returns:
            Tuple of (exception to raise, should_retry)
        """
        status_code = e.response.status_code

        if status_code == 401:
            raise BosAuthenticationError("Invalid credentials or unauthorized access") from e
        elif status_code == 403:
            raise BosPermissionError("Access forbidden - check your permissions") from e
        elif status_code == 404:
            raise BosNotFoundError("Bucket or object not found") from e
        elif status_code == 429:
            error = BosRateLimitError("Rate limit exceeded - please try again later")
            return (error, attempt < self.max_retries)

        error_msg = f"API request failed with status {status_code}"
        try:
            if e.response.content:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    msg = error_data.get("message") or error_data.get("code")
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            # Body is not JSON; keep the status-based message
            pass

        should_retry = 500 <= status_code < 600 and attempt < self.max_retries
        return (BosAPIError(error_msg), should_retry)

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request with retry logic.

        Raises:
            BosAPIError: If the request fails after all retries
        """
        last_exception: Exception | None = None
        client = self._get_client()

        for attempt in range(self.max_retries + 1):
            try:
                response = client.request(method, url, **kwargs)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                error, should_retry = self._handle_http_error(e, attempt)
                last_exception = error
                if should_retry:
                    retry_after = e.response.headers.get("Retry-After")
                    if isinstance(error, BosRateLimitError) and retry_after and retry_after.isdigit():
                        delay = float(retry_after)
                    else:
                        delay = self._calculate_retry_delay(attempt)
                    time.sleep(delay)
                    continue
                raise error from e
            except httpx.RequestError as e:
                error = BosNetworkError(f"Network error: {e}")
                last_exception = error
                if self._should_retry(error, attempt):
                    time.sleep(self._calculate_retry_delay(attempt))
                    continue
                raise error from e

        if last_exception:
            raise last_exception
        raise BosAPIError("Request failed after all retry attempts")

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send a request and decode its JSON body."""
        response = self._send(method, url, **kwargs)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise BosInvalidResponseError("Invalid JSON response from server") from e

    # =========================
    # Listing and metadata
    # =========================

    def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: str = "",
        marker: str = "",
        max_keys: int = DEFAULT_MAX_KEYS,
    ) -> ListObjectsResult:
        """List one page of objects in a bucket.

        Args:
            bucket: Bucket name
            prefix: Only keys starting with this prefix
            delimiter: Group keys sharing a prefix up to this character
            marker: Continuation marker returned by the previous page
            max_keys: Page size

        Returns:
            ListObjectsResult for the page
        """
        params: dict[str, Any] = {"maxKeys": max_keys}
        if prefix:
            params["prefix"] = prefix
        if delimiter:
            params["delimiter"] = delimiter
        if marker:
            params["marker"] = marker

        data = self._request("GET", self._url(bucket), params=params)
        if not isinstance(data, dict):
            raise BosInvalidResponseError(f"Unexpected listing response: {data!r}")
        return ListObjectsResult.from_api_response(data)

    def get_object_meta(self, bucket: str, key: str) -> ObjectMeta:
        """Fetch size, modification time, storage class and CRC32 of an object.

        Raises:
            BosNotFoundError: If the object does not exist
        """
        if not bucket or not key:
            raise BosAPIError("bucket name and object name can not be empty!")
        response = self._send("HEAD", self._url(bucket, key))
        return ObjectMeta.from_headers(key, response.headers)

    # =========================
    # Transfer call-throughs
    # =========================

    def put_object_from_file(
        self,
        bucket: str,
        key: str,
        file_path: str | Path,
        storage_class: str = "",
    ) -> None:
        """Upload a local file as a single object."""
        file_path = str(file_path)
        headers = {
            "Content-Length": str(os.path.getsize(file_path)),
            "x-bce-content-crc32": crc32_of_local_file(file_path),
        }
        if storage_class:
            headers["x-bce-storage-class"] = storage_class

        def _reader() -> Iterator[bytes]:
            with open(file_path, "rb") as f:
                while chunk := f.read(UPLOAD_READ_SIZE):
                    yield chunk

        try:
            response = self._get_client().put(
                self._url(bucket, key), content=_reader(), headers=headers
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            error, _ = self._handle_http_error(e, self.max_retries)
            raise error from e
        except httpx.RequestError as e:
            raise BosNetworkError(f"Network error during upload: {e}") from e

    def get_object_to_file(self, bucket: str, key: str, output_path: str | Path) -> Path:
        """Download an object to a local path, creating parent directories."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = output_path.with_name(output_path.name + ".pybos-tmp")
        client = self._get_client()

        try:
            with client.stream("GET", self._url(bucket, key)) as response:
                response.raise_for_status()
                with open(tmp_path, "wb") as f:
                    for chunk in response.iter_bytes(chunk_size=8192):
                        f.write(chunk)
            os.replace(tmp_path, output_path)
        except httpx.HTTPStatusError as e:
            error, _ = self._handle_http_error(e, self.max_retries)
            raise error from e
        except httpx.RequestError as e:
            raise BosNetworkError(f"Network error during download: {e}") from e
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
        return output_path

    def copy_object(
        self,
        src_bucket: str,
        src_key: str,
        dst_bucket: str,
        dst_key: str,
        storage_class: str = "",
    ) -> Any:
        """Server-side copy of one object."""
        headers = {"x-bce-copy-source": f"/{quote(src_bucket, safe='')}/{quote(src_key, safe='/~')}"}
        if storage_class:
            headers["x-bce-storage-class"] = storage_class
        return self._request("PUT", self._url(dst_bucket, dst_key), headers=headers)

    def delete_object(self, bucket: str, key: str) -> None:
        """Delete one object."""
        self._send("DELETE", self._url(bucket, key))
