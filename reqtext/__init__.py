"""reqtext: parse HTTP request text documents into executable requests."""

from reqtext.models import (
    EmptyBody,
    FileSegment,
    HttpRequest,
    StreamBody,
    TextBody,
    TextSegment,
)
from reqtext.parser import MalformedJSONBodyError, parse_http_request
from reqtext.settings import FormParamEncodingStrategy, RestClientSettings

__version__ = "0.1.0"

__all__ = [
    "EmptyBody",
    "FileSegment",
    "FormParamEncodingStrategy",
    "HttpRequest",
    "MalformedJSONBodyError",
    "RestClientSettings",
    "StreamBody",
    "TextBody",
    "TextSegment",
    "parse_http_request",
]
