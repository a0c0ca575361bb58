"""Execution engine.

Sends a parsed HttpRequest with the requests library and prints
plain-text summaries of requests and responses.
"""

from __future__ import annotations

import logging
from typing import Iterator
from urllib.parse import urlsplit

import requests
import urllib3

from reqtext.models import (
    BodySource,
    EmptyBody,
    HttpRequest,
    StreamBody,
    TextBody,
)
from reqtext.settings import RestClientSettings

logger = logging.getLogger(__name__)

# Maximum characters of a body shown in reports
PREVIEW_LENGTH = 500


def build_headers(
    request_headers: dict[str, str],
    default_headers: dict[str, str],
    url: str | None = None,
) -> dict[str, str]:
    """Merge default headers under the request's own headers.

    Defaults only fill in names the request does not set (case-insensitive).
    Content-Length is dropped so requests recomputes it. Host is dropped
    when it names the URL's own host (or no URL is given); a Host that
    differs from the URL's authority is kept and sent as written.

    Returns:
        A new headers dictionary.
    """
    merged: dict[str, str] = {}
    present = {key.lower() for key in request_headers}

    for key, value in default_headers.items():
        if key.lower() not in present:
            merged[key] = value
    merged.update(request_headers)

    authority = urlsplit(url).netloc.lower() if url else None
    for key in list(merged.keys()):
        name = key.lower()
        if name == "content-length":
            del merged[key]
        elif name == "host" and (
            authority is None or merged[key].strip().lower() == authority
        ):
            del merged[key]

    return merged


def request_data(body: BodySource) -> bytes | Iterator[bytes] | None:
    """Convert a body into something requests can send.

    Stream bodies stay lazy: files are read while requests drains the
    generator, and the upload goes out chunked.
    """
    if isinstance(body, StreamBody):
        return body.iter_bytes()
    if isinstance(body, TextBody):
        return body.text.encode("utf-8")
    if isinstance(body, EmptyBody):
        return None
    raise TypeError(f"Unsupported body type: {type(body).__name__}")


def send_request(
    request: HttpRequest,
    settings: RestClientSettings | None = None,
    proxy: str | None = None,
    timeout: int = 30,
    verify: bool = True,
) -> requests.Response:
    """Execute a parsed request.

    Args:
        request: The parsed request.
        settings: Supplies the default headers.
        proxy: Optional proxy URL used for both http and https.
        timeout: Request timeout in seconds.
        verify: Whether to verify TLS certificates.

    Returns:
        The response; redirects are not followed.
    """
    settings = settings or RestClientSettings()

    if not verify:
        # Self-signed certificates are expected when verification is off
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    proxies = None
    if proxy:
        proxies = {"http": proxy, "https": proxy}

    logger.debug("Sending %s %s", request.method, request.url)
    return requests.request(
        method=request.method,
        url=request.url,
        headers=build_headers(
            request.headers, settings.default_headers, request.url
        ),
        data=request_data(request.body),
        proxies=proxies,
        timeout=timeout,
        verify=verify,
        allow_redirects=False,
    )


def format_request(request: HttpRequest) -> str:
    """Render a parsed request as readable text."""
    lines = [f"{request.method} {request.url}"]
    lines.extend(f"{key}: {value}" for key, value in request.headers.items())

    body = request.body
    if isinstance(body, TextBody):
        lines.extend(["", body.text[:PREVIEW_LENGTH]])
    elif isinstance(body, StreamBody):
        lines.extend(["", f"<stream body: {len(body.segments)} segments>"])
    return "\n".join(lines)


def print_response(response: requests.Response) -> None:
    """Print a formatted response summary to stdout."""
    banner = "=" * 60
    print(f"\n{banner}")
    print(f"  HTTP {response.status_code} {response.reason or ''}".rstrip())
    print(banner)
    for key, value in response.headers.items():
        print(f"  {key}: {value}")
    print(
        f"\n  Body (first {PREVIEW_LENGTH} chars):\n"
        f"    {response.text[:PREVIEW_LENGTH]}"
    )
    print(f"\n{banner}\n")
