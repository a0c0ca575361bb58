"""Content-type classification."""

from __future__ import annotations

MULTIPART_FORM_DATA = "multipart/form-data"
FORM_URL_ENCODED = "application/x-www-form-urlencoded"
FORM_URL_ENCODED_JSON = "application/x-www-form-urlencoded+json"


def parse_mime_essence(content_type: str | None) -> str:
    """Return the lowercased ``type/subtype`` part of a content type."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def is_multipart_form_data(content_type: str | None) -> bool:
    return parse_mime_essence(content_type) == MULTIPART_FORM_DATA


def is_form_url_encoded(content_type: str | None) -> bool:
    return parse_mime_essence(content_type) == FORM_URL_ENCODED
