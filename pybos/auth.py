"""BCE v1 request signing for httpx."""

import hashlib
import hmac
import time
from collections.abc import Generator
from typing import Optional
from urllib.parse import quote

import httpx

DEFAULT_EXPIRATION_SECONDS = 1800

# Headers that are always signed when present, besides x-bce-*
_DEFAULT_SIGNED_HEADERS = {"host", "content-length", "content-type", "content-md5"}


def uri_encode(value: str, encode_slash: bool = True) -> str:
    """Percent-encode everything except RFC 3986 unreserved characters."""
    safe = "-_.~" if encode_slash else "-_.~/"
    return quote(value, safe=safe)


def _hmac_sha256_hex(key: str, message: str) -> str:
    return hmac.new(key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def canonical_query_string(params: list[tuple[str, str]]) -> str:
    items = sorted(
        f"{uri_encode(k)}={uri_encode(v)}"
        for k, v in params
        if k.lower() != "authorization"
    )
    return "&".join(items)


def canonical_headers(headers: dict[str, str]) -> tuple[str, str]:
    """Return ``(canonical_headers, signed_headers)`` for the given headers."""
    selected = {}
    for name, value in headers.items():
        lower = name.lower().strip()
        value = value.strip()
        if not value:
            continue
        if lower in _DEFAULT_SIGNED_HEADERS or lower.startswith("x-bce-"):
            selected[lower] = value

    lines = sorted(f"{uri_encode(k)}:{uri_encode(v)}" for k, v in selected.items())
    return "\n".join(lines), ";".join(sorted(selected))


def sign(
    access_key_id: str,
    secret_access_key: str,
    method: str,
    path: str,
    params: list[tuple[str, str]],
    headers: dict[str, str],
    timestamp: Optional[float] = None,
    expiration: int = DEFAULT_EXPIRATION_SECONDS,
) -> str:
    """Compute the ``Authorization`` header value for one request.

    Args:
        access_key_id: Access key
        secret_access_key: Secret key
        method: HTTP method
        path: Decoded request path, starting with ``/``
        params: Query parameters
        headers: Request headers (must include ``host``)
        timestamp: Signing time (epoch seconds), defaults to now
        expiration: Signature validity in seconds

    Returns:
        Authorization header value
    """
    if timestamp is None:
        timestamp = time.time()
    sign_time = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(timestamp))
    auth_prefix = f"bce-auth-v1/{access_key_id}/{sign_time}/{expiration}"
    signing_key = _hmac_sha256_hex(secret_access_key, auth_prefix)

    headers_str, signed_headers = canonical_headers(headers)
    canonical_request = "\n".join(
        [
            method.upper(),
            uri_encode(path, encode_slash=False),
            canonical_query_string(params),
            headers_str,
        ]
    )
    signature = _hmac_sha256_hex(signing_key, canonical_request)
    return f"{auth_prefix}/{signed_headers}/{signature}"


class BceV1Auth(httpx.Auth):
    """httpx auth flow adding a BCE v1 ``Authorization`` header."""

    def __init__(self, access_key_id: str, secret_access_key: str):
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key

    def auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = sign(
            self.access_key_id,
            self.secret_access_key,
            request.method,
            request.url.path,
            list(request.url.params.multi_items()),
            dict(request.headers),
        )
        yield request
