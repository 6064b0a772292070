"""Unit tests for the BOS API client."""

import json
from unittest.mock import patch

import httpx
import pytest

from pybos.api import BosClient
from pybos.auth import BceV1Auth
from pybos.exceptions import (
    BosAPIError,
    BosAuthenticationError,
    BosConfigError,
    BosInvalidResponseError,
    BosNetworkError,
    BosNotFoundError,
    BosPermissionError,
)

LAST_MODIFIED = "Mon, 15 Jan 2024 10:30:00 GMT"


def make_client(handler, **kwargs) -> BosClient:
    """Client whose requests are answered by ``handler``."""
    client = BosClient("ak", "sk", "bj.bcebos.com", **kwargs)
    client._client = httpx.Client(
        transport=httpx.MockTransport(handler), auth=BceV1Auth("ak", "sk")
    )
    return client


class TestClientInit:
    """Tests for client construction."""

    def test_scheme_is_added(self):
        client = BosClient("ak", "sk", "gz.bcebos.com/")

        assert client.endpoint == "https://gz.bcebos.com"

    def test_explicit_scheme_is_kept(self):
        client = BosClient("ak", "sk", "http://localhost:8080")

        assert client.endpoint == "http://localhost:8080"

    def test_missing_credentials(self):
        with patch("pybos.api.config") as mock_config:
            mock_config.access_key_id = None
            mock_config.secret_access_key = None
            mock_config.endpoint = "bj.bcebos.com"

            with pytest.raises(BosConfigError):
                BosClient()

    def test_credentials_from_config(self):
        with patch("pybos.api.config") as mock_config:
            mock_config.access_key_id = "config-ak"
            mock_config.secret_access_key = "config-sk"
            mock_config.endpoint = "su.bcebos.com"

            client = BosClient()

        assert client.access_key_id == "config-ak"
        assert client.endpoint == "https://su.bcebos.com"

    def test_close(self):
        client = make_client(lambda request: httpx.Response(200))

        client.close()

        assert client._client is None


class TestListObjects:
    """Tests for list_objects."""

    def test_request_and_parsing(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(
                200,
                json={
                    "name": "bucket",
                    "prefix": "photos/",
                    "isTruncated": True,
                    "nextMarker": "photos/a.jpg",
                    "contents": [
                        {
                            "key": "photos/a.jpg",
                            "lastModified": "2024-01-15T10:30:00Z",
                            "size": 12,
                            "storageClass": "STANDARD",
                        }
                    ],
                    "commonPrefixes": [{"prefix": "photos/sub/"}],
                },
            )

        result = make_client(handler).list_objects(
            "bucket", prefix="photos/", delimiter="/", max_keys=10
        )

        request = seen["request"]
        assert request.method == "GET"
        assert request.url.path == "/bucket"
        assert request.url.params["prefix"] == "photos/"
        assert request.url.params["delimiter"] == "/"
        assert request.url.params["maxKeys"] == "10"
        assert "marker" not in request.url.params
        assert request.headers["Authorization"].startswith("bce-auth-v1/ak/")

        assert result.is_truncated is True
        assert result.next_marker == "photos/a.jpg"
        assert result.common_prefixes == ["photos/sub/"]
        assert result.contents[0].key == "photos/a.jpg"
        assert result.contents[0].size == 12
        assert result.contents[0].last_modified == "2024-01-15T10:30:00Z"

    def test_empty_listing(self):
        result = make_client(lambda request: httpx.Response(200, json={})).list_objects("bucket")

        assert result.contents == []
        assert result.is_truncated is False

    def test_unexpected_body(self):
        client = make_client(lambda request: httpx.Response(200, json=["a"]))

        with pytest.raises(BosInvalidResponseError):
            client.list_objects("bucket")

    def test_invalid_json(self):
        client = make_client(lambda request: httpx.Response(200, content=b"<xml/>"))

        with pytest.raises(BosInvalidResponseError):
            client.list_objects("bucket")


class TestErrors:
    """Tests for HTTP error mapping and retries."""

    @pytest.mark.parametrize(
        "status,error",
        [
            (401, BosAuthenticationError),
            (403, BosPermissionError),
            (404, BosNotFoundError),
        ],
    )
    def test_client_errors_are_not_retried(self, status, error):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(status)

        with pytest.raises(error):
            make_client(handler).list_objects("bucket")
        assert len(calls) == 1

    @patch("pybos.api.time.sleep")
    def test_server_error_is_retried(self, mock_sleep):
        responses = [httpx.Response(503), httpx.Response(200, json={})]

        result = make_client(lambda request: responses.pop(0)).list_objects("bucket")

        assert result.contents == []
        mock_sleep.assert_called_once()

    @patch("pybos.api.time.sleep")
    def test_server_error_after_retries(self, mock_sleep):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, json={"code": "InternalError", "message": "oops"})

        with pytest.raises(BosAPIError, match="status 500: oops"):
            make_client(handler, max_retries=2).list_objects("bucket")
        assert len(calls) == 3
        assert mock_sleep.call_count == 2

    @patch("pybos.api.time.sleep")
    def test_rate_limit_honours_retry_after(self, mock_sleep):
        responses = [
            httpx.Response(429, headers={"Retry-After": "3"}),
            httpx.Response(200, json={}),
        ]

        make_client(lambda request: responses.pop(0)).list_objects("bucket")

        mock_sleep.assert_called_once_with(3.0)

    @patch("pybos.api.time.sleep")
    def test_network_error(self, mock_sleep):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(BosNetworkError):
            make_client(handler, max_retries=1).list_objects("bucket")
        assert mock_sleep.call_count == 1


class TestObjects:
    """Tests for metadata and transfer calls."""

    def test_get_object_meta(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(
                200,
                headers={
                    "Content-Length": "5",
                    "Last-Modified": LAST_MODIFIED,
                    "ETag": '"abc"',
                    "x-bce-content-crc32": "907060870",
                    "x-bce-storage-class": "COLD",
                },
            )

        meta = make_client(handler).get_object_meta("bucket", "dir/a b.txt")

        assert seen["request"].method == "HEAD"
        assert seen["request"].url.raw_path == b"/bucket/dir/a%20b.txt"
        assert meta.key == "dir/a b.txt"
        assert meta.size == 5
        assert meta.last_modified == 1705314600
        assert meta.crc32 == "907060870"
        assert meta.storage_class == "COLD"
        assert meta.etag == "abc"

    def test_get_object_meta_requires_key(self):
        client = make_client(lambda request: httpx.Response(200))

        with pytest.raises(BosAPIError):
            client.get_object_meta("bucket", "")

    def test_put_object_from_file(self, tmp_path):
        path = tmp_path / "hello.txt"
        path.write_bytes(b"hello")
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200)

        make_client(handler).put_object_from_file(
            "bucket", "dir/hello.txt", str(path), storage_class="COLD"
        )

        request = seen["request"]
        assert request.method == "PUT"
        assert request.url.path == "/bucket/dir/hello.txt"
        assert request.content == b"hello"
        assert request.headers["Content-Length"] == "5"
        assert request.headers["x-bce-content-crc32"] == "907060870"
        assert request.headers["x-bce-storage-class"] == "COLD"

    def test_put_object_forbidden(self, tmp_path):
        path = tmp_path / "hello.txt"
        path.write_bytes(b"hello")
        client = make_client(lambda request: httpx.Response(403))

        with pytest.raises(BosPermissionError):
            client.put_object_from_file("bucket", "hello.txt", str(path))

    def test_get_object_to_file(self, tmp_path):
        output = tmp_path / "nested" / "dir" / "a.txt"
        client = make_client(lambda request: httpx.Response(200, content=b"payload"))

        result = client.get_object_to_file("bucket", "a.txt", str(output))

        assert result == output
        assert output.read_bytes() == b"payload"
        assert list(output.parent.iterdir()) == [output]

    def test_get_object_not_found_leaves_nothing(self, tmp_path):
        output = tmp_path / "a.txt"
        client = make_client(lambda request: httpx.Response(404))

        with pytest.raises(BosNotFoundError):
            client.get_object_to_file("bucket", "a.txt", str(output))
        assert list(tmp_path.iterdir()) == []

    def test_copy_object(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json={"eTag": "abc"})

        result = make_client(handler).copy_object("src", "a b/x", "dst", "y/x")

        request = seen["request"]
        assert request.method == "PUT"
        assert request.url.path == "/dst/y/x"
        assert request.headers["x-bce-copy-source"] == "/src/a%20b/x"
        assert "x-bce-storage-class" not in request.headers
        assert result == {"eTag": "abc"}

    def test_delete_object(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(204)

        make_client(handler).delete_object("bucket", "a.txt")

        assert seen["request"].method == "DELETE"
        assert seen["request"].url.path == "/bucket/a.txt"


def test_error_message_from_json_body():
    """Error bodies contribute their message to the raised error."""
    body = json.dumps({"code": "NoSuchBucket"}).encode()
    client = make_client(lambda request: httpx.Response(400, content=body))

    with pytest.raises(BosAPIError, match="NoSuchBucket"):
        client.list_objects("bucket")
