"""Request-text parsing engine.

Converts a plain-text request document (request line, optional headers,
optional body) into an HttpRequest ready to be executed by an HTTP client.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, NamedTuple

from reqtext.encoding import (
    encode_form_pairs,
    encode_url,
    flatten_json,
    load_json,
    render_form_pairs,
)
from reqtext.headers import parse_request_headers
from reqtext.mime import (
    FORM_URL_ENCODED,
    FORM_URL_ENCODED_JSON,
    is_form_url_encoded,
    is_multipart_form_data,
)
from reqtext.models import (
    BodySource,
    EmptyBody,
    FileSegment,
    HttpRequest,
    StreamBody,
    TextBody,
    TextSegment,
    get_header,
)
from reqtext.settings import FormParamEncodingStrategy, RestClientSettings
from reqtext.uploads import match_upload_reference, resolve_file_path

logger = logging.getLogger(__name__)

DEFAULT_METHOD = "GET"

_HTTP_VERSION = re.compile(r"HTTP/.*", re.IGNORECASE)

HeaderParser = Callable[[Iterable[str]], "dict[str, str]"]
Notifier = Callable[[str], None]


class MalformedJSONBodyError(ValueError):
    """The body declared as JSON-to-form could not be parsed as JSON."""


class RequestLine(NamedTuple):
    method: str
    url: str


@dataclass
class Sections:
    """Where the header and body blocks sit in the normalized lines."""

    query_string: str = ""
    header_lines: list[str] = field(default_factory=list)
    has_headers: bool = False
    body_start: int | None = None


def is_blank(line: str) -> bool:
    return line.strip() == ""


def first_index(
    lines: list[str], predicate: Callable[[str], bool], start: int = 0
) -> int | None:
    """Index of the first line at or after ``start`` matching ``predicate``."""
    for index in range(start, len(lines)):
        if predicate(lines[index]):
            return index
    return None


def detect_line_ending(raw_text: str) -> str:
    """Return ``"\\r\\n"`` if the document uses it anywhere, else ``"\\n"``."""
    return "\r\n" if "\r\n" in raw_text else "\n"


def normalize_lines(raw_text: str, line_ending: str) -> list[str]:
    """Split a document into lines and drop blank lines at both ends."""
    lines = raw_text.split(line_ending)

    start = first_index(lines, lambda line: not is_blank(line))
    if start is None:
        return []

    end = len(lines)
    while is_blank(lines[end - 1]):
        end -= 1
    return lines[start:end]


def parse_request_line(line: str) -> RequestLine:
    """Parse ``[METHOD] URL [HTTP/version]``.

    A single token is a URL requested with GET. Otherwise the URL is the
    rest of the line after the method, so internal whitespace survives,
    minus a trailing HTTP version token.
    """
    words = line.split()
    if len(words) == 1:
        return RequestLine(DEFAULT_METHOD, words[0])

    method = words[0]
    url = line.strip()[len(method):].strip()
    last = words[-1]
    if _HTTP_VERSION.search(last):
        url = url[: url.rfind(last)].strip()
    return RequestLine(method, url)


def split_query_continuation(header_lines: list[str]) -> tuple[str, list[str]]:
    """Peel leading ``?``/``&`` lines off a header block.

    Returns:
        The concatenated query text and the remaining header lines.
    """
    query = ""
    index = 0
    for line in header_lines:
        stripped = line.strip()
        if not stripped.startswith(("?", "&")):
            break
        query += stripped
        index += 1
    return query, header_lines[index:]


def locate_sections(lines: list[str]) -> Sections:
    """Find the header block and the start of the body block.

    ``lines[0]`` is the request line. Content directly below it is a header
    block; content after a blank line with no headers is the body.
    """
    start = first_index(lines, lambda line: not is_blank(line), 1)
    if start is None:
        return Sections()

    if start > 1:
        return Sections(body_start=start)

    header_end = first_index(lines, is_blank, start)
    if header_end is None:
        header_end = len(lines)
    query, header_lines = split_query_continuation(lines[start:header_end])
    return Sections(
        query_string=query,
        header_lines=header_lines,
        has_headers=True,
        body_start=first_index(lines, lambda line: not is_blank(line), header_end),
    )


def body_block(
    lines: list[str], start: int | None, to_end: bool = False
) -> list[str]:
    """Slice the body lines, stopping at the next blank line unless ``to_end``."""
    if start is None:
        return []
    end = None if to_end else first_index(lines, is_blank, start)
    return lines[start:end]


def resolve_url(
    url: str, headers: dict[str, str], default_headers: dict[str, str]
) -> str:
    """Make a path-only URL absolute using the Host header.

    Ports 443 and 8443 imply https, anything else http.
    """
    host = get_header(headers, "host") or get_header(default_headers, "host")
    if not host or not url.startswith("/"):
        return url

    parts = host.split(":")
    port = parts[1] if len(parts) > 1 else None
    scheme = "https" if port in ("443", "8443") else "http"
    resolved = f"{scheme}://{host}{url}"
    logger.debug("Rewrote %s to %s using Host header", url, resolved)
    return resolved


def join_form_lines(lines: list[str], line_ending: str) -> str:
    """Join form body lines, gluing ``&`` continuation lines to the previous one."""
    text = ""
    for index, line in enumerate(lines):
        if index and not line.startswith("&"):
            text += line_ending
        text += line
    return text


def parse_request_body(
    lines: list[str],
    request_path: str,
    content_type: str | None,
    line_ending: str,
    workspace_root: str | None = None,
) -> BodySource:
    """Assemble the body block into text or a stream of segments.

    Any upload reference line turns the body into a StreamBody; references
    that do not resolve to a file are kept as literal text.
    """
    if not lines:
        return EmptyBody()

    references = [match_upload_reference(line) for line in lines]
    if not any(references):
        if is_form_url_encoded(content_type):
            return TextBody(join_form_lines(lines, line_ending))
        return TextBody(line_ending.join(lines))

    separator = "\r\n" if is_multipart_form_data(content_type) else line_ending
    segments: list = []
    for index, (line, ref_path) in enumerate(zip(lines, references)):
        resolved = None
        if ref_path:
            resolved = resolve_file_path(ref_path, request_path, workspace_root)
        if resolved:
            segments.append(FileSegment(resolved))
        else:
            if ref_path:
                logger.debug("Keeping unresolved upload line as text: %r", line)
            segments.append(TextSegment(line))

        if index != len(lines) - 1:
            segments.append(TextSegment(separator))

    return StreamBody(tuple(segments))


def apply_form_encoding(
    body: BodySource,
    content_type: str | None,
    strategy: FormParamEncodingStrategy,
) -> BodySource:
    """Percent-encode a textual form-urlencoded body.

    ``ALWAYS`` encodes each name and value separately. ``AUTOMATIC``
    escapes the whole text but leaves delimiters and existing ``%XX``
    escapes untouched.
    """
    if (
        strategy is FormParamEncodingStrategy.NEVER
        or not isinstance(body, TextBody)
        or not body.text
        or not is_form_url_encoded(content_type)
    ):
        return body

    if strategy is FormParamEncodingStrategy.ALWAYS:
        return TextBody(encode_form_pairs(body.text))
    return TextBody(encode_url(body.text))


def maybe_transform_json_to_form(
    content_type: str | None, raw_body: str, notify: Notifier
) -> str | None:
    """Flatten a JSON body into bracket-notation form parameters.

    Only applies to the ``application/x-www-form-urlencoded+json`` content
    type; returns None for anything else.

    Raises:
        MalformedJSONBodyError: If the body is not valid JSON.
    """
    if content_type != FORM_URL_ENCODED_JSON:
        return None

    try:
        value = load_json(raw_body)
    except ValueError as exc:
        notify(f"Unable to parse JSON: {exc}")
        raise MalformedJSONBodyError(f"Unable to parse JSON: {exc}") from exc

    return render_form_pairs(flatten_json(value))


def fix_content_type(
    headers: dict[str, str], content_type: str | None
) -> dict[str, str]:
    """Swap the JSON-to-form pseudo type for the standard form type."""
    if content_type != FORM_URL_ENCODED_JSON:
        return headers

    fixed = dict(headers)
    name = next(
        (key for key in fixed if key.lower() == "content-type"),
        "Content-Type",
    )
    fixed[name] = FORM_URL_ENCODED
    return fixed


def parse_http_request(
    raw_text: str,
    request_path: str,
    settings: RestClientSettings | None = None,
    *,
    notify: Notifier | None = None,
    header_parser: HeaderParser = parse_request_headers,
) -> HttpRequest | None:
    """Parse a request-text document.

    Args:
        raw_text: The document text.
        request_path: Absolute path of the document, used to resolve
            relative upload references.
        settings: Parser configuration (defaults when omitted).
        notify: Receives user-facing error messages.
        header_parser: Turns header lines into a header mapping.

    Returns:
        The parsed request, or None if the document has no content.

    Raises:
        MalformedJSONBodyError: If the JSON-to-form content type is used
            with a body that is not valid JSON.
    """
    settings = settings or RestClientSettings()
    notify = notify or logger.error
    line_ending = settings.line_ending or detect_line_ending(raw_text)

    lines = normalize_lines(raw_text, line_ending)
    if not lines:
        logger.debug("Document %s holds no request", request_path)
        return None

    method, url = parse_request_line(lines[0])

    sections = locate_sections(lines)
    url += sections.query_string
    headers = header_parser(sections.header_lines) if sections.has_headers else {}

    content_type = get_header(headers, "content-type") or get_header(
        settings.default_headers, "content-type"
    )
    to_end = sections.has_headers and is_multipart_form_data(content_type)
    body_lines = body_block(lines, sections.body_start, to_end=to_end)
    logger.debug(
        "Parsed %s %s: %d header lines, %d body lines",
        method, url, len(sections.header_lines), len(body_lines),
    )

    url = resolve_url(url, headers, settings.default_headers)

    raw_body = line_ending.join(body_lines)
    body = parse_request_body(
        body_lines,
        request_path,
        content_type,
        line_ending,
        settings.workspace_root,
    )
    body = apply_form_encoding(
        body, content_type, settings.form_param_encoding_strategy
    )

    if isinstance(body, TextBody):
        transformed = maybe_transform_json_to_form(content_type, raw_body, notify)
        if transformed is not None:
            body = TextBody(transformed)
        headers = fix_content_type(headers, content_type)

    return HttpRequest(
        method=method,
        url=url,
        headers=headers,
        body=body,
        raw_body=raw_body,
    )


def load_request_file(filepath: str) -> str:
    """Read and return the contents of a request document.

    Raises:
        FileNotFoundError: If the file does not exist.
        OSError: If the file cannot be read.
    """
    with open(filepath, "r", encoding="utf-8", newline="") as fh:
        return fh.read()
