"""Structured request produced by the request-text parser.

The body is a tagged variant: every consumer handles ``EmptyBody``,
``TextBody`` and ``StreamBody`` explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Union

# Soft cap on the total size of a composed stream body
MAX_STREAM_SIZE = 10 * 1024 * 1024

DEFAULT_CHUNK_SIZE = 64 * 1024


class BodyTooLargeError(ValueError):
    """Raised while draining a stream body that exceeds its size cap."""


@dataclass(frozen=True)
class TextSegment:
    """Literal text spliced into a stream body."""

    text: str


@dataclass(frozen=True)
class FileSegment:
    """Contents of a file spliced into a stream body, read on demand."""

    path: str


Segment = Union[TextSegment, FileSegment]


@dataclass(frozen=True)
class EmptyBody:
    """The request carries no body."""


@dataclass(frozen=True)
class TextBody:
    text: str


@dataclass(frozen=True)
class StreamBody:
    """Ordered segments drained lazily by the execution layer.

    Files are only opened while ``iter_bytes`` is being consumed.
    """

    segments: tuple[Segment, ...] = ()

    def iter_bytes(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_size: int | None = MAX_STREAM_SIZE,
    ) -> Iterator[bytes]:
        """Yield the body as byte chunks.

        Raises:
            BodyTooLargeError: If more than ``max_size`` bytes are produced.
            OSError: If a referenced file cannot be read.
        """
        total = 0
        for chunk in self._iter_chunks(chunk_size):
            total += len(chunk)
            if max_size is not None and total > max_size:
                raise BodyTooLargeError(
                    f"Stream body exceeds {max_size} bytes"
                )
            yield chunk

    def _iter_chunks(self, chunk_size: int) -> Iterator[bytes]:
        for segment in self.segments:
            if isinstance(segment, FileSegment):
                with open(segment.path, "rb") as fh:
                    while True:
                        chunk = fh.read(chunk_size)
                        if not chunk:
                            break
                        yield chunk
            elif segment.text:
                yield segment.text.encode("utf-8")


BodySource = Union[EmptyBody, TextBody, StreamBody]


def get_header(headers: dict[str, str] | None, name: str) -> str | None:
    """Look up a header value by name, ignoring case."""
    if not headers:
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


@dataclass(frozen=True)
class HttpRequest:
    """A parsed request-text document.

    ``raw_body`` is always the untransformed body text joined with the
    configured line ending, whatever happened to ``body``.
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: BodySource = field(default_factory=EmptyBody)
    raw_body: str = ""

    def __repr__(self) -> str:
        if isinstance(self.body, StreamBody):
            body = f"<stream of {len(self.body.segments)} segments>"
        elif isinstance(self.body, TextBody):
            body = "<text>"
        else:
            body = "<none>"
        return (
            f"HttpRequest(method={self.method!r}, url={self.url!r}, "
            f"headers=<{len(self.headers)} headers>, body={body})"
        )
